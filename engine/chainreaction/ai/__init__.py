"""AI components: heuristic evaluation and minimax search."""

from .evaluator import HeuristicEvaluator, HeuristicWeights, evaluate
from .minimax import Minimax, MinimaxConfig, SearchResult, minimax_search
