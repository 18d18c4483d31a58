# PATH: core/constants.py
"""
Constants for flashroute.

Contains enums, defaults, and configuration constants shared by the
routing, lending, simulation, risk and execution layers.

All amounts are integers in the token's smallest unit.
All rates and scores are integer basis points on a 0-10000 scale.
"""

from enum import Enum
from typing import Final

# =============================================================================
# SCALES
# =============================================================================

BPS_DENOMINATOR: Final[int] = 10_000
MAX_SCORE: Final[int] = 10_000

# Seconds in the rolling risk window
RISK_WINDOW_SECONDS: Final[int] = 24 * 60 * 60

# =============================================================================
# LIQUIDITY / SIMULATION DEFAULTS
# =============================================================================

# Executable amount is capped at this share of the shallowest pool
MAX_POOL_PERCENTAGE_BPS: Final[int] = 2000

# Gas units per arbitrage transaction
DEFAULT_BASE_GAS: Final[int] = 100_000
DEFAULT_TRANSFER_GAS: Final[int] = 50_000
DEFAULT_PER_HOP_GAS: Final[int] = 80_000

# Gas price used when the gas source is unreachable (token-in units per gas)
DEFAULT_FALLBACK_GAS_PRICE: Final[int] = 20

# Protocol fee charged on final output
DEFAULT_PROTOCOL_FEE_BPS: Final[int] = 50

DEFAULT_MIN_PROFIT_THRESHOLD: Final[int] = 0
DEFAULT_MAX_SLIPPAGE_BPS: Final[int] = 300

# =============================================================================
# RISK DEFAULTS
# =============================================================================

DEFAULT_MAX_SINGLE_TRADE_LOSS_BPS: Final[int] = 500  # loan-financed: 5%
DEFAULT_MAX_SINGLE_TRADE_LOSS_BPS_SELF_FUNDED: Final[int] = 1000  # 10%

# =============================================================================
# LENDING DEFAULTS
# =============================================================================

DEFAULT_MAX_FALLBACK_ATTEMPTS: Final[int] = 3

# Fee score = MAX_SCORE * K / (K + fee_bps)
FEE_SCORE_HALF_LIFE_BPS: Final[int] = 10

# =============================================================================
# PROVIDER STATS DEFAULTS
# =============================================================================

# New providers start fully trusted; the EMA pulls them down on failures
DEFAULT_SUCCESS_RATE_BPS: Final[int] = 10_000
EMA_WEIGHT_OLD: Final[int] = 9
EMA_WEIGHT_TOTAL: Final[int] = 10

# =============================================================================
# TIMEOUTS
# =============================================================================

DEFAULT_QUOTE_TIMEOUT_SECONDS: Final[float] = 2.0
DEFAULT_FANOUT_BUDGET_SECONDS: Final[float] = 5.0


# =============================================================================
# ENUMS
# =============================================================================

class ErrorCode(str, Enum):
    """
    Machine-matchable failure kinds.

    Per-candidate: PROVIDER_UNAVAILABLE (absorbed during fan-out).
    Everything else terminates the intent.
    """
    EXPIRED = "EXPIRED"
    NO_ROUTE_FOUND = "NO_ROUTE_FOUND"
    INSUFFICIENT_LIQUIDITY = "INSUFFICIENT_LIQUIDITY"
    INSUFFICIENT_PROFIT = "INSUFFICIENT_PROFIT"
    SLIPPAGE_EXCEEDED = "SLIPPAGE_EXCEEDED"
    RISK_LIMIT_EXCEEDED = "RISK_LIMIT_EXCEEDED"
    DUPLICATE_INTENT = "DUPLICATE_INTENT"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"
    NO_PROVIDER_AVAILABLE = "NO_PROVIDER_AVAILABLE"
    EXECUTION_FAILED = "EXECUTION_FAILED"
    SYSTEM_PAUSED = "SYSTEM_PAUSED"
    CONFIG_INVALID = "CONFIG_INVALID"
    UNKNOWN = "UNKNOWN"


class SelectionCriteria(str, Enum):
    """Comparator used to pick a venue quote or loan quote."""
    LOWEST_FEE = "LOWEST_FEE"
    HIGHEST_LIQUIDITY = "HIGHEST_LIQUIDITY"
    FASTEST_EXECUTION = "FASTEST_EXECUTION"
    BALANCED = "BALANCED"


class ProviderKind(str, Enum):
    """Kind of process-wide provider tracked in the stats store."""
    VENUE = "VENUE"
    LENDER = "LENDER"


class ExecutionStatus(str, Enum):
    """Terminal status of an intent."""
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"
