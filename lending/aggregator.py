# PATH: lending/aggregator.py
"""
LoanAggregator - flash-loan provider selection and fallback execution.

Quoting fans out to every provider concurrently. Execution is strictly
sequential: one provider at a time, primary first, then the fallback
list, until one succeeds or the attempt budget is spent.

After every attempt the provider's EMA stats are updated through the
ProviderStatsStore.
"""

import asyncio
from typing import Any, Dict, List, Mapping, Optional, Sequence

from config.settings import EngineConfig
from core.constants import ErrorCode, ProviderKind, SelectionCriteria
from core.exceptions import ExecutionFailedError, NoProviderAvailableError
from core.fanout import BudgetExceeded, fan_out
from core.interfaces import LendingQuoteSource
from core.logging import get_logger
from core.math import apply_bps
from core.models import ExecutionResult, FallbackAttempt, LoanFailure, LoanQuote, LoanReceipt
from core.store import ProviderStatsStore
from lending.fallback import FallbackState, FallbackStateMachine, build_fallback_order
from lending.scoring import score_provider

logger = get_logger(__name__)


class LoanAggregator:
    """
    Chooses a flash-loan provider and executes with fallback.

    Args:
        sources: Lending providers
        stats: Provider stats store (reliability, priority, active flags)
        config: Engine config (weights, fallback policy, timeouts)
    """

    def __init__(
        self,
        sources: Sequence[LendingQuoteSource],
        stats: Optional[ProviderStatsStore] = None,
        config: Optional[EngineConfig] = None,
    ):
        self.config = config or EngineConfig()
        self.stats = stats or ProviderStatsStore()
        self._sources: Dict[str, LendingQuoteSource] = {}
        for source in sources:
            self.add_source(source)

    def add_source(self, source: LendingQuoteSource) -> None:
        """Register a lender (replaces one with the same id)."""
        self._sources[source.provider_id] = source
        self.stats.ensure(source.provider_id, ProviderKind.LENDER)

    @property
    def provider_ids(self) -> List[str]:
        return list(self._sources)

    # =========================================================================
    # QUOTING
    # =========================================================================

    async def _quote_provider(
        self,
        source: LendingQuoteSource,
        asset: str,
        amount: int,
    ) -> LoanQuote:
        provider_id = source.provider_id
        if not self.stats.is_active(provider_id):
            return LoanQuote.unavailable(provider_id, "inactive")
        if not source.supports(asset):
            return LoanQuote.unavailable(provider_id, f"asset {asset} not supported")

        fee_bps, max_amount = await asyncio.gather(
            source.fee(asset, amount),
            source.max_amount(asset),
        )
        if max_amount < amount:
            return LoanQuote.unavailable(
                provider_id, f"insufficient liquidity: {max_amount} < {amount}"
            )

        config = self.stats.get(provider_id)
        return LoanQuote(
            provider_id=provider_id,
            fee=fee_bps,
            fee_amount=apply_bps(amount, fee_bps),
            max_amount=max_amount,
            estimated_gas=config.avg_gas_used,
            score=score_provider(fee_bps, max_amount, amount, config, self.config.loan_weights),
        )

    async def quote_all(self, asset: str, amount: int) -> Dict[str, LoanQuote]:
        """
        Quote every registered provider concurrently.

        Returns:
            provider_id -> LoanQuote (unavailable ones included)
        """
        outcomes = await fan_out(
            {
                provider_id: self._quote_provider(source, asset, amount)
                for provider_id, source in self._sources.items()
            },
            per_call_timeout=self.config.quote_timeout_seconds,
            budget=self.config.fanout_budget_seconds,
        )

        quotes: Dict[str, LoanQuote] = {}
        for provider_id, outcome in outcomes.items():
            if isinstance(outcome, LoanQuote):
                quote = outcome
            elif isinstance(outcome, asyncio.TimeoutError):
                quote = LoanQuote.unavailable(provider_id, "timeout")
            elif isinstance(outcome, BudgetExceeded):
                quote = LoanQuote.unavailable(provider_id, "fan-out budget exceeded")
            else:
                quote = LoanQuote.unavailable(provider_id, f"error: {outcome}")

            if not quote.available:
                logger.warning(
                    f"Lender unavailable: {quote.error}",
                    extra={"context": {"provider_id": provider_id, "asset": asset, "amount": amount}},
                )
            quotes[provider_id] = quote
        return quotes

    @staticmethod
    def _pick(quotes: Sequence[LoanQuote], criteria: SelectionCriteria) -> LoanQuote:
        if criteria == SelectionCriteria.LOWEST_FEE:
            return min(quotes, key=lambda q: (q.fee, -q.score))
        if criteria == SelectionCriteria.HIGHEST_LIQUIDITY:
            return max(quotes, key=lambda q: (q.max_amount, q.score))
        if criteria == SelectionCriteria.FASTEST_EXECUTION:
            return min(quotes, key=lambda q: (q.estimated_gas, -q.score))
        return max(quotes, key=lambda q: (q.score, -q.fee))

    async def select_optimal_provider(
        self,
        asset: str,
        amount: int,
        criteria: Optional[SelectionCriteria] = None,
        quotes: Optional[Mapping[str, LoanQuote]] = None,
    ) -> LoanQuote:
        """
        Best available provider for a loan.

        Args:
            asset: Asset to borrow
            amount: Loan amount
            criteria: Selection criteria (default: config.selection_criteria)
            quotes: Quotes from quote_all() (fetched when omitted)

        Returns:
            Winning LoanQuote

        Raises:
            NoProviderAvailableError: If no provider can serve the loan
        """
        criteria = criteria or self.config.selection_criteria
        if quotes is None:
            quotes = await self.quote_all(asset, amount)
        available = [q for q in quotes.values() if q.available]

        if not available:
            raise NoProviderAvailableError(
                f"No lender can provide {amount} {asset}",
                details={"errors": {pid: q.error for pid, q in quotes.items()}},
            )

        best = self._pick(available, criteria)
        logger.info(
            "Lender selected",
            extra={
                "context": {
                    "provider_id": best.provider_id,
                    "fee_bps": best.fee,
                    "score": best.score,
                    "criteria": criteria.value,
                    "available": len(available),
                }
            },
        )
        return best

    # =========================================================================
    # EXECUTION
    # =========================================================================

    async def _attempt(
        self,
        provider_id: str,
        asset: str,
        amount: int,
        payload: Any,
    ) -> FallbackAttempt:
        source = self._sources[provider_id]
        try:
            outcome = await source.execute(asset, amount, payload)
        except Exception as e:
            outcome = LoanFailure(provider_id=provider_id, reason=f"error: {e}")

        if isinstance(outcome, LoanReceipt):
            attempt = FallbackAttempt(
                provider_id=provider_id,
                success=True,
                gas_used=outcome.gas_used,
                fee_amount=outcome.fee_amount,
            )
        elif isinstance(outcome, LoanFailure):
            attempt = FallbackAttempt(
                provider_id=provider_id,
                success=False,
                gas_used=outcome.gas_used,
                reason=outcome.reason,
            )
        else:
            attempt = FallbackAttempt(
                provider_id=provider_id,
                success=False,
                reason=f"unexpected result: {type(outcome).__name__}",
            )

        await self.stats.record_attempt(
            provider_id, attempt.success, attempt.gas_used, ProviderKind.LENDER
        )
        return attempt

    def _advance(self, machine: FallbackStateMachine, target: FallbackState) -> None:
        if not machine.transition_to(target):
            raise ExecutionFailedError(machine.error_reason or "Invalid fallback transition")

    async def execute_with_fallback(
        self,
        asset: str,
        amount: int,
        payload: Any,
        primary_provider_id: Optional[str] = None,
        quotes: Optional[Mapping[str, LoanQuote]] = None,
    ) -> ExecutionResult:
        """
        Execute a flash loan, falling back through providers on failure.

        Args:
            asset: Asset to borrow
            amount: Loan amount
            payload: Opaque callback data handed to the provider
            primary_provider_id: Provider to try first (default: best score)
            quotes: Quotes the primary was selected from (fetched when omitted)

        Returns:
            ExecutionResult. On exhaustion success=False and
            error_reason="NO_PROVIDER_AVAILABLE".
        """
        if quotes is None:
            quotes = await self.quote_all(asset, amount)
        available = [q for q in quotes.values() if q.available]

        primary_id = primary_provider_id
        if primary_id is None and available:
            primary_id = self._pick(available, SelectionCriteria.BALANCED).provider_id

        fallbacks = build_fallback_order(primary_id, quotes, self.config.fallback_order)
        fallbacks = fallbacks[: self.config.max_fallback_attempts]

        machine = FallbackStateMachine()
        attempts: List[FallbackAttempt] = []
        tried = set()

        primary_quote = quotes.get(primary_id) if primary_id else None
        queue: List[str] = []
        if primary_quote is not None and primary_quote.available:
            queue.append(primary_id)
        elif primary_id is not None:
            logger.warning(
                "Primary lender unusable, going to fallbacks",
                extra={
                    "context": {
                        "provider_id": primary_id,
                        "error": primary_quote.error if primary_quote else "unknown provider",
                    }
                },
            )
        queue.extend(fallbacks)

        for provider_id in queue:
            if provider_id in tried or not self.stats.is_active(provider_id):
                continue
            tried.add(provider_id)

            if machine.state == FallbackState.ATTEMPT_FAILED or provider_id != primary_id:
                self._advance(machine, FallbackState.NEXT_FALLBACK)
            self._advance(machine, FallbackState.ATTEMPTING)

            logger.info(
                "Flash loan attempt",
                extra={
                    "context": {
                        "provider_id": provider_id,
                        "attempt": len(attempts) + 1,
                        "asset": asset,
                        "amount": amount,
                    }
                },
            )
            attempt = await self._attempt(provider_id, asset, amount, payload)
            attempts.append(attempt)

            if attempt.success:
                self._advance(machine, FallbackState.SUCCEEDED)
                logger.info(
                    "Flash loan succeeded",
                    extra={
                        "context": {
                            "provider_id": provider_id,
                            "fee_amount": attempt.fee_amount,
                            "gas_used": attempt.gas_used,
                            "failed_attempts": len(attempts) - 1,
                        }
                    },
                )
                return ExecutionResult(
                    success=True,
                    used_provider_id=provider_id,
                    actual_fee=attempt.fee_amount,
                    gas_used=attempt.gas_used,
                    attempts=tuple(attempts),
                )

            self._advance(machine, FallbackState.ATTEMPT_FAILED)
            logger.warning(
                f"Flash loan attempt failed: {attempt.reason}",
                extra={"context": {"provider_id": provider_id, "gas_used": attempt.gas_used}},
            )

        self._advance(machine, FallbackState.EXHAUSTED)
        last_reason = attempts[-1].reason if attempts else "no usable provider"
        logger.warning(
            "Flash loan fallback exhausted",
            extra={"context": {"attempts": len(attempts), "history": machine.to_dict()["history"]}},
        )
        return ExecutionResult(
            success=False,
            gas_used=sum(a.gas_used for a in attempts),
            error_reason=ErrorCode.NO_PROVIDER_AVAILABLE.value,
            error_detail=last_reason,
            attempts=tuple(attempts),
        )
