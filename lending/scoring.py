# PATH: lending/scoring.py
"""
Flash-loan provider scoring.

BALANCED score (0-10000), weights fee 30% / liquidity 25% /
reliability 35% / priority 10%:

- fee:         10000 * 10 // (10 + fee_bps)   (0 bps -> 10000, 10 bps -> 5000)
- liquidity:   headroom over the requested amount; 0 at max == amount,
               10000 once max >= 2 * amount
- reliability: provider success_rate_bps (EMA)
- priority:    configured priority 0..100, scaled to 0..10000
"""

from typing import Dict

from config.settings import LoanScoringWeights
from core.constants import FEE_SCORE_HALF_LIFE_BPS, MAX_SCORE
from core.math import clamp_score, weighted_score
from core.models import ProviderConfig

MAX_PRIORITY = 100


def fee_score(fee_bps: int) -> int:
    """Hyperbolic fee score; zero fee scores 10000."""
    return MAX_SCORE * FEE_SCORE_HALF_LIFE_BPS // (FEE_SCORE_HALF_LIFE_BPS + max(0, fee_bps))


def liquidity_score(max_amount: int, amount: int) -> int:
    """How comfortably the provider covers the amount."""
    if amount <= 0:
        return MAX_SCORE
    if max_amount < amount:
        return 0
    return clamp_score((max_amount - amount) * MAX_SCORE // amount)


def priority_score(priority: int) -> int:
    """Higher configured priority scores higher."""
    return clamp_score(min(max(0, priority), MAX_PRIORITY) * MAX_SCORE // MAX_PRIORITY)


def score_provider(
    fee_bps: int,
    max_amount: int,
    amount: int,
    config: ProviderConfig,
    weights: LoanScoringWeights,
) -> int:
    """
    Composite score for one available provider.

    Args:
        fee_bps: Quoted fee
        max_amount: Provider's available liquidity for the asset
        amount: Requested loan
        config: Provider stats
        weights: Component weights

    Returns:
        Score on the 0-10000 scale
    """
    components: Dict[str, int] = {
        "fee": fee_score(fee_bps),
        "liquidity": liquidity_score(max_amount, amount),
        "reliability": clamp_score(config.success_rate_bps),
        "priority": priority_score(config.priority),
    }
    return weighted_score(components, weights.as_dict())
