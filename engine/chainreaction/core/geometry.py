"""
Board geometry for Chain Reaction.

Default board layout (9 rows x 6 cols), (row, col) with row 0 at the top:

  row 0 | 2 3 3 3 3 2
  row 1 | 3 4 4 4 4 3
   ...  | 3 4 4 4 4 3
  row 8 | 2 3 3 3 3 2
        +------------
          0 1 2 3 4 5

The numbers are each cell's critical mass: corners explode at 2 orbs,
other boundary cells at 3, interior cells at 4.

Tables are computed once per board shape and cached.
"""

from __future__ import annotations
from functools import lru_cache

import numpy as np

# Board dimensions
DEFAULT_ROWS = 9
DEFAULT_COLS = 6
MIN_SIZE = 2

# Critical masses by boundary classification
CORNER_MASS = 2
EDGE_MASS = 3
INTERIOR_MASS = 4

# Orthogonal neighbour offsets (row_delta, col_delta): S, N, E, W
ORTHOGONAL_DELTAS = [(1, 0), (-1, 0), (0, 1), (0, -1)]


def is_valid_sq(row: int, col: int, rows: int, cols: int) -> bool:
    """Check if (row, col) is on a rows x cols board."""
    return 0 <= row < rows and 0 <= col < cols


def is_corner(row: int, col: int, rows: int, cols: int) -> bool:
    return row in (0, rows - 1) and col in (0, cols - 1)


def is_edge(row: int, col: int, rows: int, cols: int) -> bool:
    """True for any boundary cell, corners included."""
    return row in (0, rows - 1) or col in (0, cols - 1)


def critical_mass(row: int, col: int, rows: int, cols: int) -> int:
    """Orb count at which the cell at (row, col) explodes."""
    if is_corner(row, col, rows, cols):
        return CORNER_MASS
    if is_edge(row, col, rows, cols):
        return EDGE_MASS
    return INTERIOR_MASS


def check_shape(rows: int, cols: int) -> None:
    """Reject board shapes the rules are not defined for."""
    if rows < MIN_SIZE or cols < MIN_SIZE:
        raise ValueError(f"Board must be at least {MIN_SIZE}x{MIN_SIZE}, got {rows}x{cols}")


@lru_cache(maxsize=None)
def critical_mass_grid(rows: int, cols: int) -> np.ndarray:
    """Read-only (rows, cols) array of critical masses."""
    check_shape(rows, cols)
    grid = np.full((rows, cols), INTERIOR_MASS, dtype=np.int16)
    grid[0, :] = EDGE_MASS
    grid[-1, :] = EDGE_MASS
    grid[:, 0] = EDGE_MASS
    grid[:, -1] = EDGE_MASS
    for r in (0, rows - 1):
        for c in (0, cols - 1):
            grid[r, c] = CORNER_MASS
    grid.flags.writeable = False
    return grid


@lru_cache(maxsize=None)
def positional_bonus_grid(rows: int, cols: int) -> np.ndarray:
    """Read-only array of positional bonuses: corner 5, edge 3, interior 0."""
    masses = critical_mass_grid(rows, cols)
    grid = np.zeros((rows, cols), dtype=np.int16)
    grid[masses == EDGE_MASS] = 3
    grid[masses == CORNER_MASS] = 5
    grid.flags.writeable = False
    return grid


@lru_cache(maxsize=None)
def neighbor_table(rows: int, cols: int) -> tuple[tuple[tuple[int, int], ...], ...]:
    """
    Precompute orthogonal neighbours for every cell.

    Indexed by row * cols + col; each entry lists in-bounds (row, col)
    neighbours in ORTHOGONAL_DELTAS order.
    """
    check_shape(rows, cols)
    table = []
    for row in range(rows):
        for col in range(cols):
            table.append(tuple(
                (row + dr, col + dc)
                for dr, dc in ORTHOGONAL_DELTAS
                if is_valid_sq(row + dr, col + dc, rows, cols)
            ))
    return tuple(table)


def neighbors(row: int, col: int, rows: int, cols: int) -> tuple[tuple[int, int], ...]:
    """In-bounds orthogonal neighbours of (row, col)."""
    return neighbor_table(rows, cols)[row * cols + col]
