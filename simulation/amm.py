# PATH: simulation/amm.py
"""
Constant-product AMM math.

All functions are pure integer math on smallest-unit amounts:

    out = in * (10000 - fee) * reserve_out // (reserve_in * 10000 + in * (10000 - fee))

Example: in=100, reserves 1000/2000, fee 0 -> 181.
"""

from typing import List, Sequence

from core.constants import BPS_DENOMINATOR
from core.exceptions import InsufficientLiquidityError
from core.models import HopResult, PoolSnapshot


def constant_product_amount_out(
    amount_in: int,
    reserve_in: int,
    reserve_out: int,
    fee_bps: int,
) -> int:
    """
    Output amount for a single constant-product swap.

    Args:
        amount_in: Input amount
        reserve_in: Pool reserve of the input token
        reserve_out: Pool reserve of the output token
        fee_bps: Pool fee in bps (30 = 0.3%)

    Returns:
        Output amount (truncated)
    """
    if amount_in <= 0 or reserve_in <= 0 or reserve_out <= 0:
        return 0
    amount_in_with_fee = amount_in * (BPS_DENOMINATOR - fee_bps)
    numerator = amount_in_with_fee * reserve_out
    denominator = reserve_in * BPS_DENOMINATOR + amount_in_with_fee
    return numerator // denominator


def price_impact_bps(
    amount_in: int,
    amount_out: int,
    reserve_in: int,
    reserve_out: int,
) -> int:
    """
    Price impact of a swap from the pool state change.

    Compares the spot price reserve_out/reserve_in before the swap with
    the spot price after it.

    Returns:
        Impact in bps (0 = no move, 10000 = pool drained)
    """
    if reserve_in <= 0 or reserve_out <= 0 or amount_in <= 0:
        return 0
    new_reserve_in = reserve_in + amount_in
    new_reserve_out = max(0, reserve_out - amount_out)
    # after / before, both sides multiplied out to stay integral
    ratio = new_reserve_out * reserve_in * BPS_DENOMINATOR // (new_reserve_in * reserve_out)
    return max(0, BPS_DENOMINATOR - ratio)


def validate_pools(pools: Sequence[PoolSnapshot]) -> int:
    """
    Check every pool on the route can be traded through.

    Returns:
        Minimum liquidity across the route

    Raises:
        InsufficientLiquidityError: Empty route, inactive pool or empty reserves
    """
    if not pools:
        raise InsufficientLiquidityError("Route has no pools")

    for pool in pools:
        if not pool.active:
            raise InsufficientLiquidityError(
                f"Pool {pool.pool_id} is inactive",
                details={"pool_id": pool.pool_id},
            )
        if pool.reserve_in <= 0 or pool.reserve_out <= 0 or pool.liquidity <= 0:
            raise InsufficientLiquidityError(
                f"Pool {pool.pool_id} has no liquidity",
                details={
                    "pool_id": pool.pool_id,
                    "reserve_in": pool.reserve_in,
                    "reserve_out": pool.reserve_out,
                    "liquidity": pool.liquidity,
                },
            )

    return min(pool.liquidity for pool in pools)


def simulate_route(amount_in: int, pools: Sequence[PoolSnapshot]) -> List[HopResult]:
    """
    Chain swaps through the pools, feeding each hop's output to the next.

    Args:
        amount_in: Amount entering the first pool
        pools: Ordered pools, oriented in swap direction

    Returns:
        One HopResult per pool
    """
    hops: List[HopResult] = []
    current = amount_in
    for pool in pools:
        out = constant_product_amount_out(
            current, pool.reserve_in, pool.reserve_out, pool.fee_rate_bps
        )
        hops.append(
            HopResult(
                pool_id=pool.pool_id,
                amount_in=current,
                amount_out=out,
                price_impact_bps=price_impact_bps(
                    current, out, pool.reserve_in, pool.reserve_out
                ),
            )
        )
        current = out
    return hops
