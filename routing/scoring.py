# PATH: routing/scoring.py
"""
Venue quote scoring and selection.

BALANCED score (0-10000):
    score = (amount_out_norm * 7000 + reliability * 2000 + gas_efficiency * 1000) // 10000

- amount_out_norm: amount_out * 10000 // best amount_out among valid quotes
- reliability:     venue success_rate_bps (EMA)
- gas_efficiency:  amount_out per gas unit, normalized against the best quote

Other criteria pick by a single dimension:
- LOWEST_FEE:        min fee_bps (ties: higher amount_out)
- HIGHEST_LIQUIDITY: max liquidity (ties: higher amount_out)
- FASTEST_EXECUTION: min estimated_gas (ties: higher amount_out)
"""

from dataclasses import replace
from typing import Dict, List, Mapping, Sequence

from config.settings import RouteScoringWeights
from core.constants import DEFAULT_SUCCESS_RATE_BPS, SelectionCriteria
from core.math import clamp_score, normalize_to_best, weighted_score
from core.models import ProviderConfig, VenueQuote

# Fixed-point scale for amount-per-gas before normalization
GAS_EFFICIENCY_SCALE = 10**18


def gas_efficiency(quote: VenueQuote) -> int:
    """Output per gas unit (scaled)."""
    return quote.amount_out * GAS_EFFICIENCY_SCALE // max(1, quote.estimated_gas)


def score_quotes(
    quotes: Sequence[VenueQuote],
    stats: Mapping[str, ProviderConfig],
    weights: RouteScoringWeights,
) -> List[VenueQuote]:
    """
    Attach BALANCED scores to valid quotes.

    Invalid quotes pass through with score 0. Order is preserved.

    Args:
        quotes: Candidate quotes
        stats: venue_id -> ProviderConfig
        weights: Component weights

    Returns:
        New list of quotes with score set
    """
    valid = [q for q in quotes if q.valid]
    if not valid:
        return [replace(q, score=0) for q in quotes]

    best_out = max(q.amount_out for q in valid)
    best_efficiency = max(gas_efficiency(q) for q in valid)
    weight_map = weights.as_dict()

    scored: List[VenueQuote] = []
    for quote in quotes:
        if not quote.valid:
            scored.append(replace(quote, score=0))
            continue

        config = stats.get(quote.venue_id)
        reliability = config.success_rate_bps if config else DEFAULT_SUCCESS_RATE_BPS

        components: Dict[str, int] = {
            "amount_out": normalize_to_best(quote.amount_out, best_out),
            "reliability": clamp_score(reliability),
            "gas_efficiency": normalize_to_best(gas_efficiency(quote), best_efficiency),
        }
        scored.append(replace(quote, score=weighted_score(components, weight_map)))

    return scored


def select_quote(
    quotes: Sequence[VenueQuote],
    criteria: SelectionCriteria = SelectionCriteria.BALANCED,
) -> VenueQuote:
    """
    Pick the winning valid quote. Earlier quotes win exact ties.

    Raises:
        ValueError: If no valid quote is given
    """
    valid = [q for q in quotes if q.valid]
    if not valid:
        raise ValueError("No valid quotes to select from")

    if criteria == SelectionCriteria.LOWEST_FEE:
        return min(valid, key=lambda q: (q.fee_bps, -q.amount_out))
    if criteria == SelectionCriteria.HIGHEST_LIQUIDITY:
        return max(valid, key=lambda q: (q.liquidity, q.amount_out))
    if criteria == SelectionCriteria.FASTEST_EXECUTION:
        return min(valid, key=lambda q: (q.estimated_gas, -q.amount_out))
    return max(valid, key=lambda q: (q.score, q.amount_out))
