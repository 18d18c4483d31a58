# PATH: adapters/static.py
"""
In-memory adapters for paper mode and tests.

- StaticVenueSource: fixed quotes, optional delay / failure
- StaticLendingSource: fixed fee and liquidity, scripted execute outcomes
- StaticGasPriceSource: fixed gas price
- PaperLedger: settles by re-simulating the route against current pools
"""

import asyncio
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from config.settings import GasModel
from core.constants import ExecutionStatus
from core.interfaces import PoolDataSource
from core.logging import get_logger
from core.math import apply_bps
from core.models import (
    ExecutionResult,
    LoanFailure,
    LoanReceipt,
    QuoteUnavailable,
    SourceQuote,
    VenueQuote,
)
from simulation.amm import simulate_route

logger = get_logger(__name__)


class StaticVenueSource:
    """
    Venue returning a fixed quote.

    Args:
        venue_id: Venue id
        amount_out: Output for every request (or per-tier via tier_amounts)
        estimated_gas: Gas units for the swap
        fee_bps: Venue fee
        liquidity: Reported liquidity
        fee_tiers: Discrete fee tiers
        tier_amounts: fee_tier -> amount_out
        delay: Seconds to sleep before answering
        error: Exception to raise instead of answering
        unavailable: Reason to decline with
    """

    def __init__(
        self,
        venue_id: str,
        amount_out: int = 0,
        estimated_gas: int = 150_000,
        fee_bps: int = 30,
        liquidity: int = 0,
        fee_tiers: Optional[Tuple[int, ...]] = None,
        tier_amounts: Optional[Dict[int, int]] = None,
        delay: float = 0.0,
        error: Optional[Exception] = None,
        unavailable: Optional[str] = None,
        route_data: Optional[Dict[str, Any]] = None,
    ):
        self.venue_id = venue_id
        self.fee_tiers = fee_tiers
        self.amount_out = amount_out
        self.estimated_gas = estimated_gas
        self.fee_bps = fee_bps
        self.liquidity = liquidity
        self.tier_amounts = tier_amounts or {}
        self.delay = delay
        self.error = error
        self.unavailable = unavailable
        self.route_data = route_data or {}
        self.calls: List[Tuple[str, str, int, Optional[int]]] = []

    async def quote(
        self,
        token_in: str,
        token_out: str,
        amount_in: int,
        fee_tier: Optional[int] = None,
    ) -> Union[SourceQuote, QuoteUnavailable]:
        self.calls.append((token_in, token_out, amount_in, fee_tier))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.unavailable:
            return QuoteUnavailable(self.unavailable)

        amount_out = self.tier_amounts.get(fee_tier, self.amount_out) if fee_tier is not None else self.amount_out
        return SourceQuote(
            amount_out=amount_out,
            estimated_gas=self.estimated_gas,
            route_data=dict(self.route_data),
            fee_bps=fee_tier if fee_tier is not None else self.fee_bps,
            liquidity=self.liquidity,
        )


class StaticLendingSource:
    """
    Lender with fixed fee and liquidity.

    execute() outcomes are scripted: each entry of `outcomes` is consumed
    in order; True succeeds, a string fails with that reason. Once the
    script runs out every call succeeds.
    """

    def __init__(
        self,
        provider_id: str,
        fee_bps: int,
        max_amounts: Dict[str, int],
        outcomes: Optional[Sequence[Union[bool, str]]] = None,
        gas_used: int = 120_000,
        delay: float = 0.0,
    ):
        self.provider_id = provider_id
        self.fee_bps = fee_bps
        self.max_amounts = {k.lower(): v for k, v in max_amounts.items()}
        self._outcomes = list(outcomes or [])
        self.gas_used = gas_used
        self.delay = delay
        self.executions: List[Tuple[str, int, Any]] = []

    def supports(self, asset: str) -> bool:
        return asset.lower() in self.max_amounts

    async def fee(self, asset: str, amount: int) -> int:
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.fee_bps

    async def max_amount(self, asset: str) -> int:
        return self.max_amounts.get(asset.lower(), 0)

    async def execute(
        self,
        asset: str,
        amount: int,
        payload: Any,
    ) -> Union[LoanReceipt, LoanFailure]:
        self.executions.append((asset, amount, payload))
        outcome = self._outcomes.pop(0) if self._outcomes else True
        if outcome is True:
            return LoanReceipt(
                provider_id=self.provider_id,
                amount=amount,
                fee_amount=apply_bps(amount, self.fee_bps),
                gas_used=self.gas_used,
                reference=f"{self.provider_id}-{len(self.executions)}",
            )
        return LoanFailure(
            provider_id=self.provider_id,
            reason=str(outcome) if outcome else "execution failed",
            gas_used=self.gas_used // 2,
        )


class StaticGasPriceSource:
    """Gas oracle returning a fixed price."""

    def __init__(self, price: int):
        self.price = price

    async def gas_price(self) -> int:
        return self.price


class PaperLedger:
    """
    Paper settlement.

    Re-simulates the route at settlement time and books
    realized_profit = amount_out - amount - loan fee - gas cost.
    Venues listed in fail_venues always fail (gas is still spent).
    """

    def __init__(
        self,
        pool_source: PoolDataSource,
        gas_model: Optional[GasModel] = None,
        gas_price: int = 0,
        lender_fees_bps: Optional[Dict[str, int]] = None,
        fail_venues: Sequence[str] = (),
    ):
        self._pool_source = pool_source
        self._gas_model = gas_model or GasModel()
        self._gas_price = gas_price
        self._lender_fees_bps = dict(lender_fees_bps or {})
        self._fail_venues = set(fail_venues)
        self.settlements: List[ExecutionResult] = []

    async def settle(
        self,
        route: VenueQuote,
        provider_id: str,
        amount: int,
    ) -> ExecutionResult:
        pools = list(await self._pool_source.get_route_pools(route))
        gas_used = self._gas_model.units_for(len(pools))
        gas_cost = gas_used * self._gas_price

        if route.venue_id in self._fail_venues:
            result = ExecutionResult(
                success=False,
                used_provider_id=provider_id,
                gas_used=gas_used,
                error_reason="settlement reverted",
                realized_profit=-gas_cost,
                status=ExecutionStatus.FAILED,
            )
        else:
            amount_out = simulate_route(amount, pools)[-1].amount_out if pools else 0
            loan_fee = apply_bps(amount, self._lender_fees_bps.get(provider_id, 0))
            result = ExecutionResult(
                success=True,
                used_provider_id=provider_id,
                actual_fee=loan_fee,
                gas_used=gas_used,
                realized_profit=amount_out - amount - loan_fee - gas_cost,
                status=ExecutionStatus.COMPLETED,
            )

        logger.info(
            "Paper settlement",
            extra={
                "context": {
                    "venue_id": route.venue_id,
                    "provider_id": provider_id,
                    "amount": amount,
                    "success": result.success,
                    "realized_profit": result.realized_profit,
                }
            },
        )
        self.settlements.append(result)
        return result
