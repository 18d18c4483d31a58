# PATH: adapters/amm_venue.py
"""
Pool-backed venue adapter.

PoolRegistry holds pool snapshots by id and resolves a quote's route back
into pools (PoolDataSource). PoolVenueSource quotes swaps by chaining
constant-product math over the registry's pools (VenueQuoteSource).

Routes are registered per (token_in, token_out[, fee_tier]) as an ordered
list of pool ids; snapshots are oriented in swap direction.
"""

from typing import Dict, List, Optional, Sequence, Tuple, Union

from config.settings import GasModel
from core.exceptions import InsufficientLiquidityError
from core.models import PoolSnapshot, QuoteUnavailable, SourceQuote, VenueQuote
from simulation.amm import simulate_route

RouteKey = Tuple[str, str, Optional[int]]


class PoolRegistry:
    """In-memory pool snapshots keyed by pool id."""

    def __init__(self, pools: Optional[Sequence[PoolSnapshot]] = None):
        self._pools: Dict[str, PoolSnapshot] = {}
        for pool in pools or []:
            self.upsert(pool)

    def upsert(self, pool: PoolSnapshot) -> None:
        self._pools[pool.pool_id] = pool

    def get(self, pool_id: str) -> Optional[PoolSnapshot]:
        return self._pools.get(pool_id)

    def __len__(self) -> int:
        return len(self._pools)

    def resolve(self, pool_ids: Sequence[str]) -> List[PoolSnapshot]:
        """
        Snapshots for a list of pool ids.

        Raises:
            InsufficientLiquidityError: If an id is unknown
        """
        missing = [pid for pid in pool_ids if pid not in self._pools]
        if missing:
            raise InsufficientLiquidityError(
                f"Unknown pools: {', '.join(missing)}",
                details={"missing": missing},
            )
        return [self._pools[pid] for pid in pool_ids]

    async def get_route_pools(self, route: VenueQuote) -> List[PoolSnapshot]:
        """Pools named in route_data['pools']."""
        return self.resolve(list(route.route_data.get("pools", [])))


class PoolVenueSource:
    """Venue that quotes from registered pool routes."""

    def __init__(
        self,
        venue_id: str,
        registry: PoolRegistry,
        fee_tiers: Optional[Tuple[int, ...]] = None,
        gas_model: Optional[GasModel] = None,
    ):
        self.venue_id = venue_id
        self.fee_tiers = fee_tiers
        self._registry = registry
        self._gas_model = gas_model or GasModel()
        self._routes: Dict[RouteKey, List[str]] = {}

    def add_route(
        self,
        token_in: str,
        token_out: str,
        pool_ids: Sequence[str],
        fee_tier: Optional[int] = None,
    ) -> None:
        self._routes[(token_in.lower(), token_out.lower(), fee_tier)] = list(pool_ids)

    async def quote(
        self,
        token_in: str,
        token_out: str,
        amount_in: int,
        fee_tier: Optional[int] = None,
    ) -> Union[SourceQuote, QuoteUnavailable]:
        pool_ids = self._routes.get((token_in.lower(), token_out.lower(), fee_tier))
        if not pool_ids:
            return QuoteUnavailable(f"no route for {token_in}->{token_out} tier={fee_tier}")

        pools = [self._registry.get(pid) for pid in pool_ids]
        if any(p is None or not p.active for p in pools):
            return QuoteUnavailable("route has unknown or inactive pool")

        hops = simulate_route(amount_in, pools)
        amount_out = hops[-1].amount_out
        if amount_out <= 0:
            return QuoteUnavailable("zero output")

        return SourceQuote(
            amount_out=amount_out,
            estimated_gas=self._gas_model.units_for(len(pools)),
            route_data={
                "pools": list(pool_ids),
                "price_impact_bps": [h.price_impact_bps for h in hops],
            },
            fee_bps=sum(p.fee_rate_bps for p in pools),
            liquidity=min(p.liquidity for p in pools),
        )
