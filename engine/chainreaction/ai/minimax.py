"""
Minimax search with alpha-beta pruning for Chain Reaction.

Fixed-depth, depth-first search. Every child is produced by apply_move, which
copies the board, so sibling branches never share a mutable grid.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Protocol
import logging
import math
import random
import time

from ..core.explosion import apply_move
from ..core.moves import get_legal_moves, move_to_notation
from ..core.state import GameState, Move, Player
from .evaluator import HeuristicEvaluator

logger = logging.getLogger(__name__)


class Evaluator(Protocol):
    """Protocol for position evaluators."""
    def evaluate(self, state: GameState, perspective: Player) -> float:
        """Return a score for state from perspective's point of view."""
        ...


@dataclass
class MinimaxConfig:
    """Configuration for minimax search."""
    depth: int = 3  # Plies to search
    seed: Optional[int] = None  # Seed for the fallback move picker


@dataclass
class SearchResult:
    """Outcome of one search from the root."""
    score: float
    move: Optional[Move]
    nodes: int = 0
    cutoffs: int = 0
    used_fallback: bool = False
    elapsed_ms: int = 0
    # Root moves searched before any cutoff, with their backed-up scores
    scored_moves: list[tuple[Move, float]] = field(default_factory=list)


class Minimax:
    """Depth-limited minimax with alpha-beta pruning and a random fallback."""

    def __init__(
        self,
        evaluator: Optional[Evaluator] = None,
        config: Optional[MinimaxConfig] = None,
        rng: Optional[random.Random] = None
    ):
        self.evaluator = evaluator or HeuristicEvaluator()
        self.config = config or MinimaxConfig()
        self.rng = rng or random.Random(self.config.seed)
        self._nodes = 0
        self._cutoffs = 0

    def search(
        self,
        state: GameState,
        ai_player: Optional[Player] = None,
        depth: Optional[int] = None
    ) -> SearchResult:
        """
        Search state and return the best move for the side to move.

        Args:
            state: Root position
            ai_player: Colour whose evaluation is maximised (defaults to the
                side to move)
            depth: Overrides config.depth

        If the root is searched but no move beats the initial bound (every
        line scores -inf for the maximiser, say), a legal move is picked at
        random with self.rng. Depth-0 and decided roots return no move.
        """
        if ai_player is None:
            ai_player = state.current_player
        if depth is None:
            depth = self.config.depth
        if depth < 0:
            raise ValueError(f"depth must be non-negative, got {depth}")

        start_time = time.time()
        self._nodes = 0
        self._cutoffs = 0
        scored_moves: list[tuple[Move, float]] = []

        score, move = self._alphabeta(
            state, depth, -math.inf, math.inf, ai_player, scored_moves
        )

        used_fallback = False
        if move is None and depth > 0 and not state.is_terminal():
            candidates = get_legal_moves(state.board, state.current_player)
            if candidates:
                move = self.rng.choice(candidates)
                used_fallback = True
                logger.debug(
                    "No improving root move (score %s); random fallback %s",
                    score, move_to_notation(move),
                )

        result = SearchResult(
            score=score,
            move=move,
            nodes=self._nodes,
            cutoffs=self._cutoffs,
            used_fallback=used_fallback,
            elapsed_ms=int((time.time() - start_time) * 1000),
            scored_moves=scored_moves,
        )
        logger.debug(
            "Searched depth %d for %s: move=%s score=%s nodes=%d cutoffs=%d in %dms",
            depth, ai_player.label,
            move_to_notation(move) if move else None,
            score, result.nodes, result.cutoffs, result.elapsed_ms,
        )
        return result

    def _alphabeta(
        self,
        state: GameState,
        depth: int,
        alpha: float,
        beta: float,
        ai_player: Player,
        root_scores: Optional[list[tuple[Move, float]]] = None
    ) -> tuple[float, Optional[Move]]:
        self._nodes += 1

        if depth == 0 or state.winner is not Player.BLANK:
            return self.evaluator.evaluate(state, ai_player), None

        moves = get_legal_moves(state.board, state.current_player)
        if not moves:
            return self.evaluator.evaluate(state, ai_player), None

        maximizing = state.current_player == ai_player
        best_score = -math.inf if maximizing else math.inf
        best_move: Optional[Move] = None

        for move in moves:
            child = apply_move(state, move)
            score, _ = self._alphabeta(child, depth - 1, alpha, beta, ai_player)
            if root_scores is not None:
                root_scores.append((move, score))

            if maximizing:
                if score > best_score:
                    best_score = score
                    best_move = move
                alpha = max(alpha, best_score)
            else:
                if score < best_score:
                    best_score = score
                    best_move = move
                beta = min(beta, best_score)

            if beta <= alpha:
                self._cutoffs += 1
                break

        return best_score, best_move

    def select_move(self, state: GameState) -> Optional[Move]:
        """Best move for the side to move, or None if it has no legal move."""
        return self.search(state).move

    def analyze(self, result: SearchResult, top_k: int = 5) -> list[dict]:
        """
        Summarise the root moves of a finished search.

        Scores of moves searched after the best one may be bounds rather
        than exact values because of pruning.
        """
        moves = [
            {'move': m, 'notation': move_to_notation(m), 'score': s}
            for m, s in result.scored_moves
        ]
        moves.sort(key=lambda m: m['score'], reverse=True)
        return moves[:top_k]


def minimax_search(
    state: GameState,
    depth_limit: int,
    ai_player: Player,
    rng: Optional[random.Random] = None,
    evaluator: Optional[Evaluator] = None
) -> tuple[float, Optional[Move]]:
    """
    Search state to depth_limit, maximising ai_player's evaluation.

    Returns (score, move); move is None at depth 0, in decided positions,
    and when the side to move has no legal move.
    """
    result = Minimax(evaluator, MinimaxConfig(depth=depth_limit), rng).search(state, ai_player)
    return result.score, result.move


def play_move(
    state: GameState,
    depth: int = 3,
    evaluator: Optional[Evaluator] = None,
    rng: Optional[random.Random] = None
) -> tuple[GameState, Optional[Move]]:
    """
    Search for the side to move and apply the chosen move.

    Returns (new_state, move); the state is returned unchanged with move None
    when there is nothing to play.
    """
    move = Minimax(evaluator, MinimaxConfig(depth=depth), rng).select_move(state)
    if move is None:
        return state, None
    return apply_move(state, move), move
