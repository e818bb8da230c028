"""Win detection for Chain Reaction."""

from __future__ import annotations

from .state import Board, Player


def orb_totals(board: Board) -> tuple[int, int]:
    """Return (red_orbs, blue_orbs) on board."""
    return board.total_orbs(Player.RED), board.total_orbs(Player.BLUE)


def check_winner(board: Board) -> Player:
    """
    Classify the board by scanning every cell.

    Fewer than 2 orbs on the board means both sides cannot have moved yet, so
    nobody has won. Otherwise a colour wins once it holds orbs and the other
    holds none.
    """
    red, blue = orb_totals(board)
    total = red + blue

    if total < 2:
        return Player.BLANK
    if red > 0 and blue > 0:
        return Player.BLANK
    if red > 0 and blue == 0:
        return Player.RED
    if blue > 0 and red == 0:
        return Player.BLUE
    return Player.BLANK
