"""Core game logic: geometry, state, moves, explosions and win detection."""

from .geometry import *
from .state import Board, Cell, GameState, Move, Player
from .moves import InvalidMove, MoveGenerator, get_legal_moves, is_valid_move
from .explosion import PropagationOverrun, apply_move, resolve_cascade
from .winner import check_winner
