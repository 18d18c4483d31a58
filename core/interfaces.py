"""
core/interfaces.py - Collaborator protocols.

The core never talks to a chain directly. Venue adapters, lending
adapters, pool-data feeds, gas oracles and the settlement layer are
injected behind these protocols. Adapters report per-call failures as
values (QuoteUnavailable, LoanFailure); exceptions they raise anyway are
caught at the fan-out boundary and treated the same way.
"""

from typing import Any, Optional, Protocol, Sequence, Tuple, Union, runtime_checkable

from core.models import (
    ExecutionResult,
    LoanFailure,
    LoanReceipt,
    PoolSnapshot,
    QuoteUnavailable,
    SourceQuote,
    VenueQuote,
)


@runtime_checkable
class VenueQuoteSource(Protocol):
    """One liquidity venue."""

    venue_id: str
    # Discrete fee tiers (bps); None for venues with a single fee
    fee_tiers: Optional[Tuple[int, ...]]

    async def quote(
        self,
        token_in: str,
        token_out: str,
        amount_in: int,
        fee_tier: Optional[int] = None,
    ) -> Union[SourceQuote, QuoteUnavailable]:
        ...


@runtime_checkable
class LendingQuoteSource(Protocol):
    """One flash-loan provider."""

    provider_id: str

    def supports(self, asset: str) -> bool:
        ...

    async def fee(self, asset: str, amount: int) -> int:
        """Flash-loan fee in bps."""
        ...

    async def max_amount(self, asset: str) -> int:
        ...

    async def execute(
        self,
        asset: str,
        amount: int,
        payload: Any,
    ) -> Union[LoanReceipt, LoanFailure]:
        """Borrow, run payload, repay amount + fee before reporting success."""
        ...


@runtime_checkable
class PoolDataSource(Protocol):
    """Liquidity-data feed that resolves a quote's route into pool snapshots."""

    async def get_route_pools(self, route: VenueQuote) -> Sequence[PoolSnapshot]:
        ...


@runtime_checkable
class GasPriceSource(Protocol):
    """Gas oracle. Price is expressed in token-in base units per gas unit."""

    async def gas_price(self) -> int:
        ...


@runtime_checkable
class Ledger(Protocol):
    """Settlement collaborator that executes the chosen route on-chain."""

    async def settle(
        self,
        route: VenueQuote,
        provider_id: str,
        amount: int,
    ) -> ExecutionResult:
        ...
