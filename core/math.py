# PATH: core/math.py
"""
Integer math utilities for flashroute.

Amounts are integers in the token's smallest unit and all rates are
basis points. Every division truncates (floor for non-negative inputs),
matching on-chain uint256 arithmetic.
"""

from decimal import Decimal
from typing import Union

from core.constants import BPS_DENOMINATOR, EMA_WEIGHT_OLD, EMA_WEIGHT_TOTAL, MAX_SCORE


def apply_bps(amount: int, bps: int) -> int:
    """
    Take a basis-point share of an amount.

    Args:
        amount: Base amount
        bps: Share in basis points (50 = 0.5%)

    Returns:
        amount * bps // 10000
    """
    return amount * bps // BPS_DENOMINATOR


def ratio_bps(numerator: int, denominator: int) -> int:
    """Express numerator/denominator in basis points (0 if denominator is 0)."""
    if denominator <= 0:
        return 0
    return numerator * BPS_DENOMINATOR // denominator


def clamp_score(value: int) -> int:
    """Clamp a score into [0, MAX_SCORE]."""
    return max(0, min(MAX_SCORE, value))


def normalize_to_best(value: int, best: int) -> int:
    """
    Normalize a value against the best observed value on the 0-10000 scale.

    The best candidate scores MAX_SCORE; a zero best yields 0 for everyone.
    """
    if best <= 0:
        return 0
    return clamp_score(value * MAX_SCORE // best)


def weighted_score(components: dict[str, int], weights: dict[str, int]) -> int:
    """
    Combine 0-10000 components with bps weights that sum to 10000.

    Args:
        components: name -> component score
        weights: name -> weight in bps

    Returns:
        Composite score on the 0-10000 scale
    """
    total = sum(components[name] * weights.get(name, 0) for name in components)
    return clamp_score(total // BPS_DENOMINATOR)


def ema_update(previous: int, observation: int) -> int:
    """
    Exponential moving average step with 9:1 weighting.

    new = (previous * 9 + observation) // 10
    """
    return (previous * EMA_WEIGHT_OLD + observation) // EMA_WEIGHT_TOTAL


def to_decimal_units(amount: Union[int, str], decimals: int) -> Decimal:
    """
    Convert smallest units to token units for display.

    Args:
        amount: Amount in smallest unit (wei)
        decimals: Token decimals

    Returns:
        Decimal token amount
    """
    return Decimal(int(amount)) / (Decimal(10) ** decimals)
