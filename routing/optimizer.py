# PATH: routing/optimizer.py
"""
RouteOptimizer - best swap route across liquidity venues.

Fans out one quote call per active venue (one per fee tier for tiered
venues), scores the valid answers and picks the winner. A venue that
errors, declines, times out or outlives the fan-out budget becomes an
invalid candidate; it never fails the batch.
"""

import asyncio
from typing import Dict, List, Optional, Sequence, Tuple

from config.settings import EngineConfig
from core.constants import ProviderKind, SelectionCriteria
from core.exceptions import NoRouteFoundError
from core.fanout import BudgetExceeded, fan_out
from core.interfaces import VenueQuoteSource
from core.logging import get_logger
from core.models import QuoteUnavailable, SourceQuote, VenueQuote
from core.store import ProviderStatsStore
from routing.scoring import score_quotes, select_quote

logger = get_logger(__name__)

CandidateKey = Tuple[str, Optional[int]]


class RouteOptimizer:
    """
    Queries venues concurrently and selects the optimal route.

    Args:
        sources: Venue quote sources
        stats: Provider stats store (venue reliability, active flags)
        config: Engine config (weights, timeouts, default criteria)
    """

    def __init__(
        self,
        sources: Sequence[VenueQuoteSource],
        stats: Optional[ProviderStatsStore] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.config = config or EngineConfig()
        self.stats = stats or ProviderStatsStore()
        self._sources: Dict[str, VenueQuoteSource] = {}
        for source in sources:
            self.add_source(source)

    def add_source(self, source: VenueQuoteSource) -> None:
        """Register a venue (replaces one with the same id)."""
        self._sources[source.venue_id] = source
        self.stats.ensure(source.venue_id, ProviderKind.VENUE)

    @property
    def venue_ids(self) -> List[str]:
        return list(self._sources)

    def _active_calls(self) -> List[Tuple[VenueQuoteSource, Optional[int]]]:
        calls = []
        for venue_id, source in self._sources.items():
            if not self.stats.is_active(venue_id):
                continue
            tiers = getattr(source, "fee_tiers", None) or (None,)
            for tier in tiers:
                calls.append((source, tier))
        return calls

    @staticmethod
    def _to_venue_quote(
        venue_id: str,
        fee_tier: Optional[int],
        outcome: object,
    ) -> VenueQuote:
        if isinstance(outcome, SourceQuote):
            if outcome.amount_out <= 0:
                return VenueQuote.invalid(venue_id, "zero output", fee_tier)
            return VenueQuote(
                venue_id=venue_id,
                amount_out=outcome.amount_out,
                estimated_gas=outcome.estimated_gas,
                route_data=dict(outcome.route_data),
                fee_tier=fee_tier,
                fee_bps=outcome.fee_bps if outcome.fee_bps else (fee_tier or 0),
                liquidity=outcome.liquidity,
            )
        if isinstance(outcome, QuoteUnavailable):
            return VenueQuote.invalid(venue_id, outcome.reason, fee_tier)
        if isinstance(outcome, asyncio.TimeoutError):
            return VenueQuote.invalid(venue_id, "timeout", fee_tier)
        if isinstance(outcome, BudgetExceeded):
            return VenueQuote.invalid(venue_id, "fan-out budget exceeded", fee_tier)
        if isinstance(outcome, Exception):
            return VenueQuote.invalid(venue_id, f"error: {outcome}", fee_tier)
        return VenueQuote.invalid(venue_id, f"unexpected result: {type(outcome).__name__}", fee_tier)

    async def quote_all(
        self,
        token_in: str,
        token_out: str,
        amount_in: int,
    ) -> List[VenueQuote]:
        """
        Fan out to every active venue and score the answers.

        Returns:
            All candidates (valid and invalid), in registration order
        """
        if amount_in <= 0:
            raise ValueError(f"amount_in must be positive, got {amount_in}")

        async def request(source: VenueQuoteSource, tier: Optional[int]):
            return await source.quote(token_in, token_out, amount_in, fee_tier=tier)

        calls: Dict[CandidateKey, object] = {
            (source.venue_id, tier): request(source, tier)
            for source, tier in self._active_calls()
        }

        outcomes = await fan_out(
            calls,
            per_call_timeout=self.config.quote_timeout_seconds,
            budget=self.config.fanout_budget_seconds,
        )

        quotes = []
        for (venue_id, tier), outcome in outcomes.items():
            quote = self._to_venue_quote(venue_id, tier, outcome)
            if not quote.valid:
                logger.warning(
                    f"Venue quote invalid: {quote.error}",
                    extra={
                        "context": {
                            "venue_id": venue_id,
                            "fee_tier": tier,
                            "token_in": token_in,
                            "token_out": token_out,
                        }
                    },
                )
            quotes.append(quote)

        stats = self.stats.snapshot(ProviderKind.VENUE)
        return score_quotes(quotes, stats, self.config.route_weights)

    async def find_optimal_route(
        self,
        token_in: str,
        token_out: str,
        amount_in: int,
        criteria: Optional[SelectionCriteria] = None,
    ) -> VenueQuote:
        """
        Find the best route for a swap.

        Args:
            token_in: Input token
            token_out: Output token
            amount_in: Input amount
            criteria: Selection criteria (default: config.selection_criteria)

        Returns:
            Winning VenueQuote

        Raises:
            NoRouteFoundError: If no venue produced a valid quote
        """
        criteria = criteria or self.config.selection_criteria
        quotes = await self.quote_all(token_in, token_out, amount_in)
        valid = [q for q in quotes if q.valid]

        if not valid:
            raise NoRouteFoundError(
                f"No valid route for {token_in} -> {token_out}",
                details={
                    "token_in": token_in,
                    "token_out": token_out,
                    "amount_in": amount_in,
                    "errors": {q.candidate_key: q.error for q in quotes},
                },
            )

        best = select_quote(valid, criteria)

        logger.info(
            "Route selected",
            extra={
                "context": {
                    "venue_id": best.venue_id,
                    "fee_tier": best.fee_tier,
                    "amount_out": best.amount_out,
                    "score": best.score,
                    "criteria": criteria.value,
                    "candidates": len(quotes),
                    "valid_candidates": len(valid),
                }
            },
        )
        return best
