"""
Explosion engine for Chain Reaction.

Placing an orb can push a cell to its critical mass. An exploding cell sheds
critical-mass orbs (emptying it unless a neighbour overfilled it while it was
queued) and throws one orb to each orthogonal neighbour, converting it to the
exploding colour; neighbours that reach their own critical mass explode in
turn. Cascades are resolved breadth-first with a worklist local to each call.
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import Optional
import logging
import warnings

from .geometry import neighbor_table
from .moves import InvalidMove, is_valid_move
from .state import Board, GameState, Move, Player
from .winner import check_winner

logger = logging.getLogger(__name__)

# Processed-cell cap for a single move's cascade
MAX_PROPAGATION = 500

# Explosion cap for heuristic chain simulations
CHAIN_SIMULATION_LIMIT = 100


class PropagationOverrun(RuntimeWarning):
    """A cascade hit MAX_PROPAGATION before its worklist drained."""


@dataclass
class CascadeResult:
    """Outcome of resolving one cascade."""
    explosions: int = 0
    processed: int = 0
    overrun: bool = False
    winner: Player = Player.BLANK


def resolve_cascade(
    board: Board,
    start: tuple[int, int],
    *,
    max_processed: Optional[int] = None,
    max_explosions: Optional[int] = None,
    stop_on_winner: bool = True,
) -> CascadeResult:
    """
    Resolve all explosions triggered from start. Modifies board in-place.

    Args:
        board: Writable board whose start cell has just received an orb
        start: (row, col) to seed the worklist with
        max_processed: Stop (and flag overrun) once this many cells have been
            dequeued while work remains
        max_explosions: Stop once this many cells have exploded
        stop_on_winner: Stop as soon as the board has a winner

    Returns:
        CascadeResult with explosion/processed counts. winner is only
        tracked when stop_on_winner is set.
    """
    counts, owners = board.counts, board.owners
    masses = board.critical_masses
    table = neighbor_table(board.rows, board.cols)
    cols = board.cols

    result = CascadeResult()
    queue: deque[tuple[int, int]] = deque([start])

    while queue:
        if max_processed is not None and result.processed >= max_processed:
            result.overrun = True
            break

        row, col = queue.popleft()
        result.processed += 1

        if counts[row, col] < masses[row, col]:
            # Already exploded via an earlier queue entry
            continue

        # An over-full cell keeps its surplus and is re-queued while still critical
        exploding = owners[row, col]
        counts[row, col] -= masses[row, col]
        if counts[row, col] == 0:
            owners[row, col] = Player.BLANK
        elif counts[row, col] >= masses[row, col]:
            queue.append((row, col))
        result.explosions += 1

        for nr, nc in table[row * cols + col]:
            counts[nr, nc] += 1
            owners[nr, nc] = exploding
            if counts[nr, nc] >= masses[nr, nc]:
                queue.append((nr, nc))

        if stop_on_winner:
            result.winner = check_winner(board)
            if result.winner is not Player.BLANK:
                break

        if max_explosions is not None and result.explosions >= max_explosions:
            break

    return result


def _invalid_reason(board: Board, move: Move) -> str:
    if move.player is Player.BLANK:
        return "blank cannot move"
    if not board.in_bounds(move.row, move.col):
        return f"off a {board.rows}x{board.cols} board"
    return f"cell owned by {board.owner(move.row, move.col).label}"


def apply_move(state: GameState, move: Move) -> GameState:
    """
    Apply a move and return the resulting state. The input state is untouched.

    The turn always passes to the mover's opponent, whoever owns the board
    after the cascade.

    Raises:
        InvalidMove: target is off the board or owned by the opponent
    """
    if not is_valid_move(state.board, move):
        raise InvalidMove(move, _invalid_reason(state.board, move))

    board = state.board.copy()
    board.counts[move.row, move.col] += 1
    board.owners[move.row, move.col] = move.player

    result = resolve_cascade(board, move.position, max_processed=MAX_PROPAGATION)
    if result.overrun:
        logger.warning(
            "Propagation overrun: cascade from (%d, %d) stopped after %d cells "
            "(%d explosions)",
            move.row, move.col, result.processed, result.explosions,
        )
        warnings.warn(
            PropagationOverrun(
                f"cascade from ({move.row}, {move.col}) exceeded {MAX_PROPAGATION} cells"
            ),
            stacklevel=2,
        )

    return GameState(
        board=board.freeze(),
        current_player=move.player.opponent,
        winner=check_winner(board),
    )


def simulate_chain(
    board: Board,
    row: int,
    col: int,
    player: Player,
    limit: int = CHAIN_SIMULATION_LIMIT,
) -> int:
    """
    Count explosions caused by player adding one orb at (row, col).

    Runs on a scratch copy; board is not modified.
    """
    scratch = board.copy()
    scratch.counts[row, col] += 1
    scratch.owners[row, col] = player
    result = resolve_cascade(
        scratch, (row, col), max_explosions=limit, stop_on_winner=False
    )
    return result.explosions
