"""
adapters - Collaborator implementations.

- amm_venue.py: pool registry + constant-product venue
- static.py: in-memory venue/lender/gas sources and paper ledger
- http_sources.py: httpx quote API venue and JSON-RPC gas oracle
"""

from adapters.amm_venue import PoolRegistry, PoolVenueSource
from adapters.http_sources import HttpVenueSource, RpcGasPriceSource
from adapters.static import (
    PaperLedger,
    StaticGasPriceSource,
    StaticLendingSource,
    StaticVenueSource,
)

__all__ = [
    "HttpVenueSource",
    "PaperLedger",
    "PoolRegistry",
    "PoolVenueSource",
    "RpcGasPriceSource",
    "StaticGasPriceSource",
    "StaticLendingSource",
    "StaticVenueSource",
]
