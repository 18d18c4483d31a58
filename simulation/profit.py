# PATH: simulation/profit.py
"""
ProfitSimulator - the single deterministic gate for execution.

Pipeline for one candidate route:
1. Validate pools (active, non-empty) and clip the amount to
   max_pool_percentage_bps of the shallowest pool
2. Chain constant-product swaps
3. Gas cost and protocol fee
4. Gross / net profit, ROI, slippage
5. Verdict: net >= threshold AND slippage valid AND not paused

The simulator never adjusts intent parameters to force a pass.
"""

from typing import Optional, Sequence

from config.settings import EngineConfig
from core.constants import BPS_DENOMINATOR, ErrorCode
from core.exceptions import InsufficientLiquidityError
from core.logging import get_logger
from core.math import apply_bps
from core.models import ArbitrageIntent, PoolSnapshot, ProfitCalculation
from risk.kill_switch import KillSwitch
from simulation.amm import simulate_route, validate_pools
from simulation.gas import estimate_gas_units

logger = get_logger(__name__)


class ProfitSimulator:
    """
    Simulates a route and decides whether it is worth executing.

    Args:
        config: Engine config (gas model, fee, thresholds)
        kill_switch: System pause flag; paused routes are never profitable
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        kill_switch: Optional[KillSwitch] = None,
    ):
        self.config = config or EngineConfig()
        self.kill_switch = kill_switch or KillSwitch()

    def suggested_amount(self, requested: int, min_liquidity: int) -> int:
        """Clip the requested amount to the pool percentage cap."""
        cap = apply_bps(min_liquidity, self.config.max_pool_percentage_bps)
        return min(requested, cap)

    def profit_threshold(self, intent: ArbitrageIntent) -> int:
        return max(self.config.min_profit_threshold, intent.min_profit)

    def slippage_tolerance(self, intent: ArbitrageIntent) -> int:
        """Intent tolerance, bounded by the engine-wide maximum."""
        return min(intent.max_slippage_bps, self.config.max_slippage_bps)

    def simulate(
        self,
        intent: ArbitrageIntent,
        candidate_route: Sequence[PoolSnapshot],
        gas_price: Optional[int] = None,
    ) -> ProfitCalculation:
        """
        Simulate the intent against an ordered list of pools.

        Args:
            intent: Arbitrage intent
            candidate_route: Pools in swap order
            gas_price: Token-in units per gas (default: fallback gas price)

        Returns:
            ProfitCalculation with verdict and diagnostics

        Raises:
            InsufficientLiquidityError: Route cannot carry any amount
        """
        pools = list(candidate_route)
        min_liquidity = validate_pools(pools)

        suggested = self.suggested_amount(intent.amount, min_liquidity)
        if suggested <= 0:
            raise InsufficientLiquidityError(
                "Pool liquidity too shallow for any amount",
                details={"min_liquidity": min_liquidity},
            )

        hops = simulate_route(suggested, pools)
        final_amount_out = hops[-1].amount_out

        # Costs
        price = self.config.gas.fallback_gas_price if gas_price is None else gas_price
        gas_units = estimate_gas_units(self.config.gas, len(pools))
        gas_cost = gas_units * price
        protocol_fee = apply_bps(final_amount_out, self.config.protocol_fee_bps)

        # Profit
        gross_profit = max(0, final_amount_out - suggested)
        net_profit = max(0, gross_profit - gas_cost - protocol_fee)
        roi_bps = net_profit * BPS_DENOMINATOR // suggested if net_profit > 0 else 0

        # Slippage
        if final_amount_out >= suggested:
            slippage_bps = 0
        else:
            slippage_bps = (suggested - final_amount_out) * BPS_DENOMINATOR // suggested
        slippage_valid = slippage_bps <= self.slippage_tolerance(intent)

        threshold = self.profit_threshold(intent)
        paused = self.kill_switch.is_active
        is_profitable = net_profit >= threshold and slippage_valid and not paused

        reject_code = None
        if not is_profitable:
            if paused:
                reject_code = ErrorCode.SYSTEM_PAUSED
            elif not slippage_valid:
                reject_code = ErrorCode.SLIPPAGE_EXCEEDED
            else:
                reject_code = ErrorCode.INSUFFICIENT_PROFIT

        result = ProfitCalculation(
            gross_profit=gross_profit,
            gas_cost=gas_cost,
            protocol_fee=protocol_fee,
            net_profit=net_profit,
            roi_bps=roi_bps,
            is_profitable=is_profitable,
            suggested_amount=suggested,
            final_amount_out=final_amount_out,
            slippage_bps=slippage_bps,
            slippage_valid=slippage_valid,
            paused=paused,
            gas_units=gas_units,
            min_liquidity=min_liquidity,
            profit_threshold=threshold,
            hops=tuple(hops),
            reject_code=reject_code,
        )

        logger.debug(
            "Route simulated",
            extra={
                "context": {
                    "intent_id": intent.id,
                    "suggested_amount": suggested,
                    "final_amount_out": final_amount_out,
                    "net_profit": net_profit,
                    "slippage_bps": slippage_bps,
                    "is_profitable": is_profitable,
                    "reject_code": reject_code.value if reject_code else None,
                }
            },
        )
        return result
