"""
lending - Flash-loan provider scoring, selection and fallback execution.
"""

from lending.aggregator import LoanAggregator
from lending.fallback import (
    VALID_TRANSITIONS,
    FallbackState,
    FallbackStateMachine,
    build_fallback_order,
)
from lending.scoring import fee_score, liquidity_score, priority_score, score_provider

__all__ = [
    "VALID_TRANSITIONS",
    "FallbackState",
    "FallbackStateMachine",
    "LoanAggregator",
    "build_fallback_order",
    "fee_score",
    "liquidity_score",
    "priority_score",
    "score_provider",
]
