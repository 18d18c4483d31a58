# PATH: core/exceptions.py
"""
Typed exceptions for flashroute.

Every intent-level failure carries a machine-matchable ErrorCode plus a
human-readable message and optional details. The coordinator converts them
into a terminal ExecutionResult; they never escape ExecutionCoordinator.submit.
"""

from typing import Any, Dict, Optional

from core.constants import ErrorCode


class FlashRouteError(Exception):
    """Base exception for flashroute."""

    def __init__(
        self,
        message: str = "",
        code: ErrorCode = ErrorCode.UNKNOWN,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self):
        return f"[{self.code.value}] {self.message}"


class ExpiredError(FlashRouteError):
    """Intent deadline has passed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.EXPIRED, details)


class NoRouteFoundError(FlashRouteError):
    """No venue produced a valid quote."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.NO_ROUTE_FOUND, details)


class InsufficientLiquidityError(FlashRouteError):
    """A pool on the route is inactive or too shallow."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.INSUFFICIENT_LIQUIDITY, details)


class InsufficientProfitError(FlashRouteError):
    """Net profit below threshold."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.INSUFFICIENT_PROFIT, details)


class SlippageExceededError(FlashRouteError):
    """Simulated slippage above the intent's tolerance."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.SLIPPAGE_EXCEEDED, details)


class SystemPausedError(FlashRouteError):
    """Kill switch is active."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.SYSTEM_PAUSED, details)


class RiskLimitExceededError(FlashRouteError):
    """Per-trade or daily loss cap would be breached."""

    def __init__(
        self,
        message: str,
        limit: Optional[int] = None,
        current: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, ErrorCode.RISK_LIMIT_EXCEEDED, details)
        self.limit = limit
        self.current = current


class DuplicateIntentError(FlashRouteError):
    """Intent id was already recorded."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.DUPLICATE_INTENT, details)


class ProviderUnavailableError(FlashRouteError):
    """A single venue or lender could not serve the request (non-fatal)."""

    def __init__(
        self,
        message: str,
        provider_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, ErrorCode.PROVIDER_UNAVAILABLE, details)
        self.provider_id = provider_id


class NoProviderAvailableError(FlashRouteError):
    """Every lending provider was unavailable or failed."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.NO_PROVIDER_AVAILABLE, details)


class ExecutionFailedError(FlashRouteError):
    """Settlement collaborator reported a failure."""

    def __init__(
        self,
        message: str,
        reason: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, ErrorCode.EXECUTION_FAILED, details)
        self.reason = reason or message


class ConfigError(FlashRouteError):
    """Configuration is missing or invalid."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.CONFIG_INVALID, details)
