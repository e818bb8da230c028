"""
Text and dict encodings for Chain Reaction positions.

Board text format, one row per line, cells separated by single spaces:

    0 0 1R 0 0 0
    0 2B 0 0 0 0
    ...

Each cell is `<count><colour letter>` (R or B) or `0` when empty.

Game-state files add a header line naming who moved last:

    Human Move:
    <board rows>

In human-vs-AI games "Human Move:" means blue (the AI) is to move; any other
header means red is to move. In AI-vs-AI games "AI1 Move:" means blue is to
move. The winner is not stored; it is recomputed on load.
"""

from __future__ import annotations
from pathlib import Path
from typing import Any
import re

from .state import Board, GameState, Player
from .winner import check_winner

HUMAN_HEADER = "Human Move:"
AI_HEADER = "AI Move:"
AI1_HEADER = "AI1 Move:"
AI2_HEADER = "AI2 Move:"

_CELL_RE = re.compile(r"^(\d+)([RB])$")


class NotationError(ValueError):
    """Raised for malformed encodings."""


def cell_to_token(count: int, owner: Player) -> str:
    if count == 0 or owner is Player.BLANK:
        return "0"
    return f"{count}{owner.letter}"


def token_to_cell(token: str) -> tuple[int, Player]:
    """Parse one cell token into (orb_count, owner)."""
    if token == "0":
        return 0, Player.BLANK
    match = _CELL_RE.match(token)
    if not match:
        raise NotationError(f"Invalid cell token: {token!r}")
    count = int(match.group(1))
    if count == 0:
        raise NotationError(f"Owned cell must hold at least one orb: {token!r}")
    return count, Player.parse(match.group(2))


def board_to_text(board: Board) -> str:
    """Encode board as text, one row per line."""
    lines = []
    for row in range(board.rows):
        lines.append(" ".join(
            cell_to_token(board.orb_count(row, col), board.owner(row, col))
            for col in range(board.cols)
        ))
    return "\n".join(lines)


def text_to_board(text: str) -> Board:
    """Parse board text. Blank lines are ignored."""
    rows = [line.split() for line in text.strip().splitlines() if line.strip()]
    if not rows:
        raise NotationError("Board text is empty")
    try:
        return Board.from_cells([[token_to_cell(tok) for tok in row] for row in rows])
    except NotationError:
        raise
    except ValueError as e:
        raise NotationError(str(e)) from e


def current_player_from_header(header: str, ai_vs_ai: bool = False) -> Player:
    """Work out the side to move from the last mover's header."""
    if ai_vs_ai:
        return Player.BLUE if header == AI1_HEADER else Player.RED
    return Player.BLUE if header == HUMAN_HEADER else Player.RED


def header_for_player(current_player: Player, ai_vs_ai: bool = False) -> str:
    """Header that reads back as current_player to move."""
    if ai_vs_ai:
        return AI1_HEADER if current_player is Player.BLUE else AI2_HEADER
    return HUMAN_HEADER if current_player is Player.BLUE else AI_HEADER


def state_to_text(state: GameState, header: str) -> str:
    """Encode a game-state file: header line, then the board rows."""
    return f"{header}\n{board_to_text(state.board)}"


def text_to_state(text: str, ai_vs_ai: bool = False) -> tuple[str, GameState]:
    """
    Parse a game-state file.

    Returns:
        (header, state) with current_player derived from the header and the
        winner recomputed from the board.
    """
    lines = text.strip().splitlines()
    if len(lines) < 2:
        raise NotationError("Game-state text needs a header and at least one board row")
    header = lines[0].strip()
    board = text_to_board("\n".join(lines[1:]))
    state = GameState(
        board=board.freeze(),
        current_player=current_player_from_header(header, ai_vs_ai),
        winner=check_winner(board),
    )
    return header, state


def read_game_state(path: str | Path, ai_vs_ai: bool = False) -> tuple[str, GameState]:
    """Load a game-state file written by write_game_state."""
    return text_to_state(Path(path).read_text(encoding="utf-8"), ai_vs_ai)


def write_game_state(path: str | Path, header: str, state: GameState) -> None:
    """Write a game-state file."""
    Path(path).write_text(state_to_text(state, header), encoding="utf-8")


def state_to_dict(state: GameState) -> dict[str, Any]:
    """Plain JSON-compatible representation of a state."""
    board = state.board
    return {
        "rows": board.rows,
        "cols": board.cols,
        "board": [
            [
                {"orb_count": board.orb_count(r, c), "player": board.owner(r, c).label}
                for c in range(board.cols)
            ]
            for r in range(board.rows)
        ],
        "current_player": state.current_player.label,
        "winner": state.winner.label,
    }


def state_from_dict(data: dict[str, Any]) -> GameState:
    """
    Inverse of state_to_dict. rows/cols are checked when present.

    Any posted winner is ignored; it is recomputed from the board, as
    text_to_state does.
    """
    try:
        cells = [
            [(int(cell["orb_count"]), Player.parse(cell["player"])) for cell in row]
            for row in data["board"]
        ]
        board = Board.from_cells(cells)
        current = Player.parse(data.get("current_player", "red"))
    except (KeyError, TypeError) as e:
        raise NotationError(f"Malformed state: {e}") from e
    except NotationError:
        raise
    except ValueError as e:
        raise NotationError(str(e)) from e

    if "rows" in data and int(data["rows"]) != board.rows:
        raise NotationError(f"rows={data['rows']} does not match board with {board.rows} rows")
    if "cols" in data and int(data["cols"]) != board.cols:
        raise NotationError(f"cols={data['cols']} does not match board with {board.cols} cols")
    if current is Player.BLANK:
        raise NotationError("current_player must be red or blue")

    return GameState(board=board.freeze(), current_player=current, winner=check_winner(board))
