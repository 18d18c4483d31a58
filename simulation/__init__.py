"""
simulation - Route simulation and profitability verdict.

- amm.py: constant-product swap math, price impact, pool validation
- gas.py: gas units/cost and gas price resolution
- profit.py: ProfitSimulator
"""

from simulation.amm import (
    constant_product_amount_out,
    price_impact_bps,
    simulate_route,
    validate_pools,
)
from simulation.gas import estimate_gas_cost, estimate_gas_units, resolve_gas_price
from simulation.profit import ProfitSimulator

__all__ = [
    "ProfitSimulator",
    "constant_product_amount_out",
    "estimate_gas_cost",
    "estimate_gas_units",
    "price_impact_bps",
    "resolve_gas_price",
    "simulate_route",
    "validate_pools",
]
