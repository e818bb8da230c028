"""
Move legality and generation for Chain Reaction.

A player may place an orb on any empty cell or any cell they already own.
"""

from __future__ import annotations

import numpy as np

from .state import Board, Move, Player


class InvalidMove(ValueError):
    """Raised when a move targets a cell off the board or owned by the opponent."""

    def __init__(self, move: Move, reason: str = "illegal target"):
        self.move = move
        self.reason = reason
        super().__init__(f"Invalid move {move_to_notation(move)} for {move.player.label}: {reason}")


def move_to_notation(move: Move) -> str:
    """Convert move to 'row,col' notation."""
    return f"{move.row},{move.col}"


def notation_to_move(s: str, player: Player) -> Move:
    """Parse 'row,col' (or 'row col') into a move for player."""
    parts = s.replace(",", " ").split()
    if len(parts) != 2:
        raise ValueError(f"Invalid move format: {s}")
    return Move(int(parts[0]), int(parts[1]), Player.parse(player))


class MoveGenerator:
    """Generates legal moves for a board."""

    @staticmethod
    def is_valid(board: Board, move: Move) -> bool:
        """
        Check a move against the board.

        Valid iff the target is in bounds and is empty or already owned
        by the acting player.
        """
        if move.player is Player.BLANK:
            return False
        if not board.in_bounds(move.row, move.col):
            return False
        return board.owner(move.row, move.col) in (move.player, Player.BLANK)

    @staticmethod
    def get_move_mask(board: Board, player: Player) -> np.ndarray:
        """Boolean (rows, cols) grid of cells player may play on."""
        if player is Player.BLANK:
            return np.zeros(board.shape, dtype=bool)
        return (board.owners == player) | (board.owners == Player.BLANK)

    @staticmethod
    def get_legal_moves(board: Board, player: Player) -> list[Move]:
        """
        Get all legal moves for player in row-major order.

        Returns an empty list when player has nowhere to play.
        """
        mask = MoveGenerator.get_move_mask(board, player)
        return [Move(int(r), int(c), player) for r, c in np.argwhere(mask)]


# Convenience functions
def is_valid_move(board: Board, move: Move) -> bool:
    """Check if a move is legal on board."""
    return MoveGenerator.is_valid(board, move)


def get_legal_moves(board: Board, player: Player) -> list[Move]:
    """Get all legal moves for player."""
    return MoveGenerator.get_legal_moves(board, player)


def get_move_count(board: Board, player: Player) -> int:
    """Get number of legal moves."""
    return int(MoveGenerator.get_move_mask(board, player).sum())
