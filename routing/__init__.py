"""
routing - Venue quote fan-out, scoring and route selection.
"""

from routing.optimizer import RouteOptimizer
from routing.scoring import score_quotes, select_quote

__all__ = [
    "RouteOptimizer",
    "score_quotes",
    "select_quote",
]
