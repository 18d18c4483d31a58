"""
core - Core utilities and models for flashroute.

This package contains:
- constants.py: Enums, defaults and scales
- exceptions.py: Typed exceptions with error codes
- logging.py: Structured JSON logging
- math.py: Integer bps math, EMA, score helpers
- time.py: Clocks and deadline helpers
- models.py: Intents, quotes, pools, stats and results
- interfaces.py: Collaborator protocols
- store.py: Keyed stores for provider stats, risk state and intent ids
"""

from core.constants import (
    ErrorCode,
    ExecutionStatus,
    ProviderKind,
    SelectionCriteria,
)
from core.exceptions import (
    ConfigError,
    DuplicateIntentError,
    ExecutionFailedError,
    ExpiredError,
    FlashRouteError,
    InsufficientLiquidityError,
    InsufficientProfitError,
    NoProviderAvailableError,
    NoRouteFoundError,
    ProviderUnavailableError,
    RiskLimitExceededError,
    SlippageExceededError,
    SystemPausedError,
)
from core.logging import get_logger, setup_logging
from core.models import (
    ArbitrageIntent,
    ExecutionResult,
    LoanQuote,
    PoolSnapshot,
    ProfitCalculation,
    ProviderConfig,
    RiskState,
    VenueQuote,
)

__all__ = [
    # Constants
    "ErrorCode",
    "ExecutionStatus",
    "ProviderKind",
    "SelectionCriteria",
    # Exceptions
    "ConfigError",
    "DuplicateIntentError",
    "ExecutionFailedError",
    "ExpiredError",
    "FlashRouteError",
    "InsufficientLiquidityError",
    "InsufficientProfitError",
    "NoProviderAvailableError",
    "NoRouteFoundError",
    "ProviderUnavailableError",
    "RiskLimitExceededError",
    "SlippageExceededError",
    "SystemPausedError",
    # Models
    "ArbitrageIntent",
    "ExecutionResult",
    "LoanQuote",
    "PoolSnapshot",
    "ProfitCalculation",
    "ProviderConfig",
    "RiskState",
    "VenueQuote",
    # Logging
    "get_logger",
    "setup_logging",
]
