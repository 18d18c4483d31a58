# PATH: simulation/gas.py
"""
Gas cost estimation.

gas_units = base + transfer + hops * per_hop
gas_cost  = gas_units * gas_price   (gas price in token-in units per gas)
"""

import asyncio
from typing import Optional

from config.settings import GasModel
from core.interfaces import GasPriceSource
from core.logging import get_logger

logger = get_logger(__name__)


def estimate_gas_units(model: GasModel, hops: int) -> int:
    """Gas units for a route with the given number of hops."""
    return model.units_for(hops)


def estimate_gas_cost(model: GasModel, hops: int, gas_price: int) -> int:
    """Gas cost in token-in units."""
    return estimate_gas_units(model, hops) * gas_price


async def resolve_gas_price(
    source: Optional[GasPriceSource],
    model: GasModel,
    timeout: Optional[float] = None,
) -> int:
    """
    Current gas price, or the model's fallback price.

    The fallback is used when there is no source, the source fails,
    times out, or returns a non-positive price.
    """
    if source is None:
        return model.fallback_gas_price

    try:
        price = await asyncio.wait_for(source.gas_price(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(
            "Gas price source timed out, using fallback",
            extra={"context": {"fallback_gas_price": model.fallback_gas_price}},
        )
        return model.fallback_gas_price
    except Exception as e:
        logger.warning(
            f"Gas price source failed, using fallback: {e}",
            extra={"context": {"fallback_gas_price": model.fallback_gas_price}},
        )
        return model.fallback_gas_price

    if price is None or price <= 0:
        return model.fallback_gas_price
    return int(price)
