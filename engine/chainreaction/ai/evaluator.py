"""
Heuristic position evaluation for Chain Reaction.

Blends five signals, each measured from one colour's perspective:

  1. Orb differential    own orbs - opponent orbs
  2. Critical control    +/-10 per cell one orb (or less) from exploding
  3. Board control       own cells - opponent cells
  4. Chain potential     explosions our near-critical cells would set off
  5. Positional safety   corner/edge bonus minus threat from enemy neighbours

Chain potential is scaled by a game-phase multiplier chosen from
2 * |orb differential|.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import math

import numpy as np

from ..core.explosion import CHAIN_SIMULATION_LIMIT, simulate_chain
from ..core.geometry import neighbor_table, positional_bonus_grid
from ..core.state import GameState, Player


@dataclass
class HeuristicWeights:
    """Weights and thresholds for the blended evaluation."""
    orb: float = 0.5
    critical: float = 2.0
    control: float = 1.0
    chain: float = 3.0
    safety: float = 1.0

    critical_cell_value: int = 10

    # Game-phase multiplier for the chain term: (upper bound, multiplier)
    phase_bands: list[tuple[float, float]] = field(
        default_factory=lambda: [(10, 0.6), (30, 1.0)]
    )
    late_phase: float = 1.5

    # Positional safety
    immediate_threat: int = 10
    gradual_threat_scale: int = 5
    vulnerable_penalty: int = 3

    chain_limit: int = CHAIN_SIMULATION_LIMIT


@dataclass
class SignalBreakdown:
    """Individual signal values behind one evaluation."""
    orb: float
    critical: float
    control: float
    chain: float
    safety: float
    phase: float
    score: float


class HeuristicEvaluator:
    """Static evaluation of Chain Reaction positions."""

    def __init__(self, weights: HeuristicWeights | None = None):
        self.weights = weights or HeuristicWeights()
        self.total_evals = 0

    def evaluate(self, state: GameState, perspective: Player) -> float:
        """
        Score state for perspective. Higher is better for perspective.

        Decided games score +inf (perspective won) or -inf (perspective lost).
        """
        self.total_evals += 1
        if state.winner is not Player.BLANK:
            return math.inf if state.winner == perspective else -math.inf
        return self._blend(state, perspective).score

    def breakdown(self, state: GameState, perspective: Player) -> SignalBreakdown:
        """Evaluate an ongoing position and return every signal."""
        return self._blend(state, perspective)

    def _blend(self, state: GameState, perspective: Player) -> SignalBreakdown:
        w = self.weights
        orb = self.orb_differential(state, perspective)
        critical = self.critical_control(state, perspective)
        control = self.board_control(state, perspective)
        chain = self.chain_potential(state, perspective)
        safety = self.positional_safety(state, perspective)
        phase = self.phase_multiplier(orb)

        score = (
            orb * w.orb +
            critical * w.critical +
            control * w.control +
            chain * (w.chain * phase) +
            safety * w.safety
        )
        return SignalBreakdown(orb, critical, control, chain, safety, phase, score)

    def phase_multiplier(self, orb_differential: float) -> float:
        """Pick the chain multiplier from the 2 * |orb differential| proxy."""
        magnitude = 2 * abs(orb_differential)
        for bound, multiplier in self.weights.phase_bands:
            if magnitude < bound:
                return multiplier
        return self.weights.late_phase

    @staticmethod
    def orb_differential(state: GameState, perspective: Player) -> int:
        board = state.board
        return board.total_orbs(perspective) - board.total_orbs(perspective.opponent)

    def critical_control(self, state: GameState, perspective: Player) -> int:
        board = state.board
        near = board.counts >= board.critical_masses - 1
        own = int((near & (board.owners == perspective)).sum())
        opp = int((near & (board.owners == perspective.opponent)).sum())
        return self.weights.critical_cell_value * (own - opp)

    @staticmethod
    def board_control(state: GameState, perspective: Player) -> int:
        board = state.board
        return board.occupied(perspective) - board.occupied(perspective.opponent)

    def chain_potential(self, state: GameState, perspective: Player) -> int:
        """Sum of explosions from adding one orb to each own near-critical cell."""
        board = state.board
        near = (board.owners == perspective) & (board.counts >= board.critical_masses - 1)
        total = 0
        for r, c in np.argwhere(near):
            total += simulate_chain(board, int(r), int(c), perspective, self.weights.chain_limit)
        return total

    def positional_safety(self, state: GameState, perspective: Player) -> int:
        w = self.weights
        board = state.board
        counts, owners, masses = board.counts, board.owners, board.critical_masses
        bonuses = positional_bonus_grid(board.rows, board.cols)
        table = neighbor_table(board.rows, board.cols)
        opponent = perspective.opponent

        score = 0
        for r, c in np.argwhere(owners == perspective):
            r, c = int(r), int(c)
            penalty = 0
            for nr, nc in table[r * board.cols + c]:
                if owners[nr, nc] != opponent:
                    continue
                n_count, n_mass = int(counts[nr, nc]), int(masses[nr, nc])
                if n_count >= n_mass - 1:
                    penalty += w.immediate_threat
                else:
                    penalty += math.floor(w.gradual_threat_scale * n_count / n_mass)
            if masses[r, c] - counts[r, c] == 1:
                penalty += w.vulnerable_penalty
            score += int(bonuses[r, c]) - penalty
        return score


class DummyEvaluator:
    """
    Evaluator that scores every position 0.

    Useful for testing search mechanics (ordering, ties, pruning).
    """

    def __init__(self):
        self.total_evals = 0

    def evaluate(self, state: GameState, perspective: Player) -> float:
        self.total_evals += 1
        return 0.0


_default_evaluator = HeuristicEvaluator()


def evaluate(state: GameState, perspective: Player) -> float:
    """Evaluate state for perspective with the default weights."""
    return _default_evaluator.evaluate(state, perspective)
