# PATH: core/models.py
"""
Core data models for flashroute.

INTENT_ID CONTRACT:
===================
  id = sha256("token_in|token_out|amount|min_profit|max_slippage_bps|
               deadline|caller_id|issued_at").hexdigest()

  Same fields + same issuance timestamp -> same id. The coordinator uses
  the id to reject duplicate submissions.
===================

Lifecycles:
  - ArbitrageIntent: immutable, one per request
  - VenueQuote / LoanQuote / ProfitCalculation: ephemeral, per evaluation
  - ProviderConfig / RiskState: process-wide, mutated through stores only
  - ExecutionResult: terminal, immutable
"""

import hashlib
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple

from core.constants import (
    DEFAULT_SUCCESS_RATE_BPS,
    ErrorCode,
    ExecutionStatus,
    ProviderKind,
)
from core.time import now_timestamp


# =============================================================================
# INTENT
# =============================================================================

def compute_intent_id(
    token_in: str,
    token_out: str,
    amount: int,
    min_profit: int,
    max_slippage_bps: int,
    deadline: float,
    caller_id: str,
    issued_at: float,
) -> str:
    """
    Content hash of intent fields plus issuance timestamp.

    Deterministic given the same inputs.
    """
    payload = "|".join(
        [
            token_in.lower(),
            token_out.lower(),
            str(int(amount)),
            str(int(min_profit)),
            str(int(max_slippage_bps)),
            repr(float(deadline)),
            caller_id,
            repr(float(issued_at)),
        ]
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class ArbitrageIntent:
    """A proposed arbitrage trade. Build with ArbitrageIntent.create()."""
    id: str
    token_in: str
    token_out: str
    amount: int
    min_profit: int
    max_slippage_bps: int
    deadline: float
    caller_id: str
    issued_at: float

    def __post_init__(self):
        if self.amount <= 0:
            raise ValueError(f"Intent amount must be positive, got {self.amount}")
        if not 0 <= self.max_slippage_bps <= 10_000:
            raise ValueError(f"max_slippage_bps out of range: {self.max_slippage_bps}")
        if self.min_profit < 0:
            raise ValueError(f"min_profit must be non-negative, got {self.min_profit}")

    @classmethod
    def create(
        cls,
        token_in: str,
        token_out: str,
        amount: int,
        min_profit: int,
        max_slippage_bps: int,
        deadline: float,
        caller_id: str,
        issued_at: Optional[float] = None,
    ) -> "ArbitrageIntent":
        """Create an intent and derive its content-hash id."""
        issued = now_timestamp() if issued_at is None else issued_at
        intent_id = compute_intent_id(
            token_in, token_out, amount, min_profit,
            max_slippage_bps, deadline, caller_id, issued,
        )
        return cls(
            id=intent_id,
            token_in=token_in,
            token_out=token_out,
            amount=amount,
            min_profit=min_profit,
            max_slippage_bps=max_slippage_bps,
            deadline=deadline,
            caller_id=caller_id,
            issued_at=issued,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# VENUE QUOTES
# =============================================================================

@dataclass(frozen=True)
class SourceQuote:
    """Raw answer from a VenueQuoteSource."""
    amount_out: int
    estimated_gas: int
    route_data: Dict[str, Any] = field(default_factory=dict)
    fee_bps: int = 0
    liquidity: int = 0


@dataclass(frozen=True)
class QuoteUnavailable:
    """A venue declined to quote."""
    reason: str = "unavailable"


@dataclass(frozen=True)
class VenueQuote:
    """Scored swap quote from one venue (and fee tier)."""
    venue_id: str
    amount_out: int
    estimated_gas: int
    route_data: Dict[str, Any] = field(default_factory=dict)
    score: int = 0
    valid: bool = True
    fee_tier: Optional[int] = None
    fee_bps: int = 0
    liquidity: int = 0
    error: Optional[str] = None

    @property
    def candidate_key(self) -> str:
        """Unique key per venue and fee tier."""
        if self.fee_tier is None:
            return self.venue_id
        return f"{self.venue_id}:{self.fee_tier}"

    @classmethod
    def invalid(
        cls,
        venue_id: str,
        error: str,
        fee_tier: Optional[int] = None,
    ) -> "VenueQuote":
        return cls(
            venue_id=venue_id,
            amount_out=0,
            estimated_gas=0,
            valid=False,
            fee_tier=fee_tier,
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# LOANS
# =============================================================================

@dataclass(frozen=True)
class LoanQuote:
    """Scored flash-loan offer from one lending provider."""
    provider_id: str
    fee: int  # bps
    fee_amount: int
    max_amount: int
    estimated_gas: int
    score: int = 0
    available: bool = True
    error: Optional[str] = None

    @classmethod
    def unavailable(cls, provider_id: str, error: str) -> "LoanQuote":
        return cls(
            provider_id=provider_id,
            fee=0,
            fee_amount=0,
            max_amount=0,
            estimated_gas=0,
            available=False,
            error=error,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class LoanReceipt:
    """Successful flash-loan execution (principal + fee repaid)."""
    provider_id: str
    amount: int
    fee_amount: int
    gas_used: int = 0
    reference: Optional[str] = None


@dataclass(frozen=True)
class LoanFailure:
    """Failed flash-loan execution."""
    provider_id: str
    reason: str
    gas_used: int = 0


@dataclass(frozen=True)
class FallbackAttempt:
    """One provider attempt inside the fallback chain."""
    provider_id: str
    success: bool
    gas_used: int = 0
    fee_amount: int = 0
    reason: Optional[str] = None


# =============================================================================
# POOLS / SIMULATION
# =============================================================================

@dataclass(frozen=True)
class PoolSnapshot:
    """Read-only view of one pool on a route, oriented in swap direction."""
    pool_id: str
    reserve_in: int
    reserve_out: int
    fee_rate_bps: int
    liquidity: int
    active: bool = True


@dataclass(frozen=True)
class HopResult:
    """Simulated output of one hop."""
    pool_id: str
    amount_in: int
    amount_out: int
    price_impact_bps: int


@dataclass(frozen=True)
class ProfitCalculation:
    """Profitability verdict for a candidate route."""
    gross_profit: int
    gas_cost: int
    protocol_fee: int
    net_profit: int
    roi_bps: int
    is_profitable: bool
    suggested_amount: int = 0
    final_amount_out: int = 0
    slippage_bps: int = 0
    slippage_valid: bool = True
    paused: bool = False
    gas_units: int = 0
    min_liquidity: int = 0
    profit_threshold: int = 0
    hops: Tuple[HopResult, ...] = ()
    reject_code: Optional[ErrorCode] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["reject_code"] = self.reject_code.value if self.reject_code else None
        return data


# =============================================================================
# PROCESS-WIDE STATE
# =============================================================================

@dataclass
class ProviderConfig:
    """Per-provider configuration and EMA statistics."""
    provider_id: str
    kind: ProviderKind = ProviderKind.VENUE
    active: bool = True
    priority: int = 0
    success_rate_bps: int = DEFAULT_SUCCESS_RATE_BPS
    avg_gas_used: int = 0
    total_executions: int = 0
    total_failed: int = 0
    last_executed_at: Optional[float] = None

    @property
    def total_succeeded(self) -> int:
        return self.total_executions - self.total_failed

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data


@dataclass
class RiskState:
    """Rolling daily loss accumulator for one caller."""
    caller_id: str
    daily_loss_accumulated: int = 0
    window_start_at: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# =============================================================================
# RESULT
# =============================================================================

@dataclass(frozen=True)
class ExecutionResult:
    """Terminal outcome of an intent (or of a settlement / fallback run)."""
    success: bool
    used_provider_id: Optional[str] = None
    actual_fee: int = 0
    gas_used: int = 0
    error_reason: Optional[str] = None
    intent_id: Optional[str] = None
    status: Optional[ExecutionStatus] = None
    stage: Optional[str] = None
    error_detail: Optional[str] = None
    realized_profit: int = 0
    attempts: Tuple[FallbackAttempt, ...] = ()

    @property
    def failed_attempts(self) -> Tuple[FallbackAttempt, ...]:
        return tuple(a for a in self.attempts if not a.success)

    @classmethod
    def rejected(
        cls,
        intent_id: str,
        code: ErrorCode,
        stage: Optional[str] = None,
        detail: Optional[str] = None,
    ) -> "ExecutionResult":
        return cls(
            success=False,
            error_reason=code.value,
            intent_id=intent_id,
            status=ExecutionStatus.REJECTED,
            stage=stage,
            error_detail=detail,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value if self.status else None
        return data
