"""
SQLite persistence for games.

Positions are stored in the game-state text encoding (header line plus one
board row per line), so a row can be dumped straight to a file and read back
by the terminal client.
"""

import json
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from chainreaction.core.notation import header_for_player, state_to_text, text_to_state
from chainreaction.core.state import GameState, Move


# Default database location
DEFAULT_DB_PATH = Path(os.environ.get(
    "CHAINREACTION_DB_PATH", Path(__file__).parent / "games.db"
))

AI_VS_AI = "ai_vs_ai"
HUMAN_VS_AI = "human_vs_ai"


def _now(offset: timedelta = timedelta(0)) -> str:
    return (datetime.now(timezone.utc) - offset).isoformat()


def init_db(db_path: Optional[Path] = None) -> None:
    """Create the games table if it does not exist."""
    with get_connection(db_path) as conn:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS games (
                game_id TEXT PRIMARY KEY,
                mode TEXT NOT NULL DEFAULT 'human_vs_ai',
                ai_player TEXT NOT NULL DEFAULT 'blue',
                ai_depth INTEGER NOT NULL DEFAULT 3,
                state_text TEXT NOT NULL,
                winner TEXT NOT NULL DEFAULT 'blank',
                moves_json TEXT NOT NULL DEFAULT '[]',
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_games_updated ON games(updated_at)")
        conn.commit()


@contextmanager
def get_connection(db_path: Optional[Path] = None):
    """Open a connection to db_path (DEFAULT_DB_PATH, looked up at call time)."""
    conn = sqlite3.connect(str(db_path or DEFAULT_DB_PATH), timeout=10.0)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def move_to_json(move: Move) -> dict:
    return {"row": move.row, "col": move.col, "player": move.player.label}


def _row_to_game(row: sqlite3.Row) -> dict:
    _, state = text_to_state(row["state_text"], ai_vs_ai=row["mode"] == AI_VS_AI)
    return {
        "game_id": row["game_id"],
        "mode": row["mode"],
        "ai_player": row["ai_player"],
        "ai_depth": row["ai_depth"],
        "state": state,
        "moves": json.loads(row["moves_json"]) if row["moves_json"] else [],
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


def save_game(
    game_id: str,
    state: GameState,
    mode: str = HUMAN_VS_AI,
    ai_player: str = "blue",
    ai_depth: int = 3,
    db_path: Optional[Path] = None
) -> None:
    """Save or update a game's position. The move list is left untouched."""
    now = _now()
    header = header_for_player(state.current_player, ai_vs_ai=mode == AI_VS_AI)
    state_text = state_to_text(state, header)

    with get_connection(db_path) as conn:
        conn.execute("""
            INSERT INTO games (game_id, mode, ai_player, ai_depth, state_text, winner,
                               moves_json, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, '[]', ?, ?)
            ON CONFLICT(game_id) DO UPDATE SET
                state_text = excluded.state_text,
                winner = excluded.winner,
                updated_at = excluded.updated_at
        """, (game_id, mode, ai_player, ai_depth, state_text, state.winner.label, now, now))
        conn.commit()


def append_move(game_id: str, move: Move, db_path: Optional[Path] = None) -> None:
    """Append a move to a game's move history."""
    now = _now()

    with get_connection(db_path) as conn:
        row = conn.execute("SELECT moves_json FROM games WHERE game_id = ?", (game_id,)).fetchone()
        if row is None:
            return

        moves = json.loads(row["moves_json"]) if row["moves_json"] else []
        moves.append(move_to_json(move))

        conn.execute(
            "UPDATE games SET moves_json = ?, updated_at = ? WHERE game_id = ?",
            (json.dumps(moves), now, game_id)
        )
        conn.commit()


def load_game(game_id: str, db_path: Optional[Path] = None) -> Optional[dict]:
    """
    Load a game from the database.

    Returns dict with keys: game_id, mode, ai_player, ai_depth, state, moves,
    created_at, updated_at. Or None if not found.
    """
    with get_connection(db_path) as conn:
        row = conn.execute(
            "SELECT * FROM games WHERE game_id = ?", (game_id,)
        ).fetchone()
        if row is None:
            return None
        return _row_to_game(row)


def load_all_games(db_path: Optional[Path] = None) -> list[dict]:
    """Load all games from the database, most recently updated first."""
    with get_connection(db_path) as conn:
        rows = conn.execute("SELECT * FROM games ORDER BY updated_at DESC").fetchall()
        return [_row_to_game(row) for row in rows]


def delete_game(game_id: str, db_path: Optional[Path] = None) -> bool:
    """Remove a stored game. False if there was nothing to remove."""
    with get_connection(db_path) as conn:
        deleted = conn.execute("DELETE FROM games WHERE game_id = ?", (game_id,)).rowcount
        conn.commit()
    return deleted > 0


def cleanup_old_games(
    max_age_days: int = 7,
    empty_game_max_age_hours: int = 1,
    db_path: Optional[Path] = None
) -> int:
    """
    Drop stale games: anything idle for max_age_days, and games nobody has
    moved in that have been idle for empty_game_max_age_hours.

    Returns the number of games deleted.
    """
    with get_connection(db_path) as conn:
        deleted = conn.execute(
            """
            DELETE FROM games
            WHERE updated_at < ?
               OR (moves_json = '[]' AND updated_at < ?)
            """,
            (_now(timedelta(days=max_age_days)), _now(timedelta(hours=empty_game_max_age_hours)))
        ).rowcount
        conn.commit()
    return deleted
