"""
Game state representation for Chain Reaction.

The board is stored as two numpy grids: orb counts and owners. Boards held by
a GameState are frozen (read-only arrays); the engine works on copies.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator, Optional, Sequence

import numpy as np

from .geometry import (
    DEFAULT_ROWS, DEFAULT_COLS,
    check_shape, critical_mass_grid, is_valid_sq
)


class Player(IntEnum):
    """Orb colours. BLANK is the owner of an empty cell."""
    BLANK = 0
    RED = 1
    BLUE = 2

    @property
    def opponent(self) -> Player:
        if self is Player.RED:
            return Player.BLUE
        if self is Player.BLUE:
            return Player.RED
        raise ValueError("BLANK has no opponent")

    @property
    def label(self) -> str:
        """Lowercase name used in JSON ('red', 'blue', 'blank')."""
        return self.name.lower()

    @property
    def letter(self) -> str:
        """Colour letter used in the text encoding ('R', 'B')."""
        if self is Player.BLANK:
            raise ValueError("BLANK has no colour letter")
        return self.name[0]

    @classmethod
    def parse(cls, value: str | int | Player) -> Player:
        """Accept a Player, its int value, a name ('red') or letter ('R')."""
        if isinstance(value, Player):
            return value
        if isinstance(value, (int, np.integer)):
            return cls(int(value))
        text = str(value).strip().upper()
        for player in cls:
            if text == player.name or (player is not cls.BLANK and text == player.letter):
                return player
        raise ValueError(f"Unknown player: {value!r}")


@dataclass(frozen=True)
class Cell:
    """A single board square as seen by callers."""
    row: int
    col: int
    orb_count: int
    owner: Player


@dataclass(frozen=True)
class Move:
    """Place one orb at (row, col) for player."""
    row: int
    col: int
    player: Player

    @property
    def position(self) -> tuple[int, int]:
        return self.row, self.col


class Board:
    """
    Rectangular grid of cells.

    Attributes:
        counts: (rows, cols) int16 array of orb counts
        owners: (rows, cols) int8 array of Player values

    Invariant: counts[r, c] == 0 iff owners[r, c] == BLANK.
    """

    __slots__ = ("counts", "owners")

    def __init__(self, counts: np.ndarray, owners: np.ndarray, validate: bool = True):
        self.counts = counts
        self.owners = owners
        if validate:
            self._validate()

    @classmethod
    def empty(cls, rows: int = DEFAULT_ROWS, cols: int = DEFAULT_COLS) -> Board:
        """Create an empty board."""
        check_shape(rows, cols)
        return cls(
            np.zeros((rows, cols), dtype=np.int16),
            np.zeros((rows, cols), dtype=np.int8),
            validate=False,
        )

    @classmethod
    def from_cells(cls, cells: Sequence[Sequence[tuple[int, Player | str]]]) -> Board:
        """
        Build a board from rows of (orb_count, owner) pairs.

        Raises ValueError if the rows are ragged, a count does not fit the grid
        dtype, or a cell breaks the count/owner invariant.
        """
        if not cells or not cells[0]:
            raise ValueError("Board must have at least one row and one column")
        width = len(cells[0])
        if any(len(row) != width for row in cells):
            raise ValueError("Board rows must all have the same length")

        counts = np.zeros((len(cells), width), dtype=np.int16)
        owners = np.zeros((len(cells), width), dtype=np.int8)
        for r, row in enumerate(cells):
            for c, (count, owner) in enumerate(row):
                try:
                    counts[r, c] = count
                except OverflowError:
                    raise ValueError(f"Orb count {count} at ({r}, {c}) is too large") from None
                owners[r, c] = Player.parse(owner)
        return cls(counts, owners)

    def _validate(self) -> None:
        if self.counts.ndim != 2 or self.counts.shape != self.owners.shape:
            raise ValueError(
                f"counts {self.counts.shape} and owners {self.owners.shape} must be matching 2-D grids"
            )
        check_shape(*self.counts.shape)
        if (self.counts < 0).any():
            raise ValueError("Orb counts must be non-negative")
        if not np.isin(self.owners, [p.value for p in Player]).all():
            raise ValueError("Owners must be BLANK, RED or BLUE")
        if ((self.counts == 0) != (self.owners == Player.BLANK)).any():
            raise ValueError("A cell is empty exactly when it has no owner")

    @property
    def rows(self) -> int:
        return self.counts.shape[0]

    @property
    def cols(self) -> int:
        return self.counts.shape[1]

    @property
    def shape(self) -> tuple[int, int]:
        return self.counts.shape

    @property
    def critical_masses(self) -> np.ndarray:
        return critical_mass_grid(self.rows, self.cols)

    @property
    def is_frozen(self) -> bool:
        return not self.counts.flags.writeable

    def in_bounds(self, row: int, col: int) -> bool:
        return is_valid_sq(row, col, self.rows, self.cols)

    def critical_mass(self, row: int, col: int) -> int:
        return int(self.critical_masses[row, col])

    def owner(self, row: int, col: int) -> Player:
        return Player(int(self.owners[row, col]))

    def orb_count(self, row: int, col: int) -> int:
        return int(self.counts[row, col])

    def cell(self, row: int, col: int) -> Cell:
        if not self.in_bounds(row, col):
            raise IndexError(f"({row}, {col}) is off a {self.rows}x{self.cols} board")
        return Cell(row, col, self.orb_count(row, col), self.owner(row, col))

    def cells(self) -> Iterator[Cell]:
        """Iterate over all cells in row-major order."""
        for row in range(self.rows):
            for col in range(self.cols):
                yield self.cell(row, col)

    def total_orbs(self, player: Optional[Player] = None) -> int:
        """Total orbs on the board, or those owned by player."""
        if player is None:
            return int(self.counts.sum())
        return int(self.counts[self.owners == player].sum())

    def occupied(self, player: Player) -> int:
        """Number of cells owned by player."""
        return int((self.owners == player).sum())

    def copy(self) -> Board:
        """Independent writable copy."""
        return Board(self.counts.copy(), self.owners.copy(), validate=False)

    def freeze(self) -> Board:
        """Make the grids read-only in place and return self."""
        self.counts.flags.writeable = False
        self.owners.flags.writeable = False
        return self

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Board):
            return False
        return (
            self.shape == other.shape and
            np.array_equal(self.counts, other.counts) and
            np.array_equal(self.owners, other.owners)
        )

    def __hash__(self) -> int:
        return hash((self.shape, self.counts.tobytes(), self.owners.tobytes()))

    def __repr__(self) -> str:
        """Pretty print the board ('.' empty, '2R' two red orbs)."""
        lines = []
        for row in range(self.rows):
            tokens = []
            for col in range(self.cols):
                owner = self.owner(row, col)
                tokens.append(" ." if owner is Player.BLANK else f"{self.orb_count(row, col)}{owner.letter}")
            lines.append(f"{row} | " + " ".join(tokens))
        lines.append("  +" + "-" * (self.cols * 3))
        lines.append("    " + " ".join(f"{c:>2}" for c in range(self.cols)))
        return "\n".join(lines)


@dataclass(frozen=True)
class GameState:
    """
    Represents a Chain Reaction position.

    Attributes:
        board: Frozen board snapshot
        current_player: Side to move (RED or BLUE)
        winner: Winning colour, or BLANK while the game is ongoing
    """
    board: Board
    current_player: Player = Player.RED
    winner: Player = Player.BLANK

    def __post_init__(self):
        if self.current_player == Player.BLANK:
            raise ValueError("current_player must be RED or BLUE")
        if not self.board.is_frozen:
            # Take a private frozen copy so later edits to the caller's board
            # cannot leak into this state.
            object.__setattr__(self, "board", self.board.copy().freeze())

    @classmethod
    def new_game(cls, rows: int = DEFAULT_ROWS, cols: int = DEFAULT_COLS) -> GameState:
        """Create a new game: empty board, red to move."""
        return cls(board=Board.empty(rows, cols).freeze())

    def is_terminal(self) -> bool:
        return self.winner is not Player.BLANK

    def __repr__(self) -> str:
        status = (
            f"{self.current_player.label} to move" if not self.is_terminal()
            else f"{self.winner.label} wins"
        )
        return f"{self.board!r}\n\n{status}"
