"""
config/settings.py - Engine configuration.

Scoring weights, gas model, liquidity cap, fallback policy and risk
limits. Every field has a default; YAML and environment values override.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from core.constants import (
    BPS_DENOMINATOR,
    DEFAULT_BASE_GAS,
    DEFAULT_FALLBACK_GAS_PRICE,
    DEFAULT_FANOUT_BUDGET_SECONDS,
    DEFAULT_MAX_FALLBACK_ATTEMPTS,
    DEFAULT_MAX_SINGLE_TRADE_LOSS_BPS,
    DEFAULT_MAX_SINGLE_TRADE_LOSS_BPS_SELF_FUNDED,
    DEFAULT_MAX_SLIPPAGE_BPS,
    DEFAULT_MIN_PROFIT_THRESHOLD,
    DEFAULT_PER_HOP_GAS,
    DEFAULT_PROTOCOL_FEE_BPS,
    DEFAULT_QUOTE_TIMEOUT_SECONDS,
    DEFAULT_TRANSFER_GAS,
    MAX_POOL_PERCENTAGE_BPS,
    RISK_WINDOW_SECONDS,
    SelectionCriteria,
)
from core.exceptions import ConfigError


@dataclass
class RouteScoringWeights:
    """BALANCED venue score weights (bps, sum 10000)."""
    amount_out: int = 7000
    reliability: int = 2000
    gas_efficiency: int = 1000

    def as_dict(self) -> Dict[str, int]:
        return {
            "amount_out": self.amount_out,
            "reliability": self.reliability,
            "gas_efficiency": self.gas_efficiency,
        }


@dataclass
class LoanScoringWeights:
    """BALANCED lender score weights (bps, sum 10000)."""
    fee: int = 3000
    liquidity: int = 2500
    reliability: int = 3500
    priority: int = 1000

    def as_dict(self) -> Dict[str, int]:
        return {
            "fee": self.fee,
            "liquidity": self.liquidity,
            "reliability": self.reliability,
            "priority": self.priority,
        }


@dataclass
class GasModel:
    """Gas units charged per arbitrage transaction."""
    base_gas: int = DEFAULT_BASE_GAS
    transfer_gas: int = DEFAULT_TRANSFER_GAS
    per_hop_gas: int = DEFAULT_PER_HOP_GAS
    fallback_gas_price: int = DEFAULT_FALLBACK_GAS_PRICE

    def units_for(self, hops: int) -> int:
        return self.base_gas + self.transfer_gas + hops * self.per_hop_gas


@dataclass
class RiskLimits:
    """Per-caller loss limits."""
    max_single_trade_loss_bps: int = DEFAULT_MAX_SINGLE_TRADE_LOSS_BPS
    max_single_trade_loss_bps_self_funded: int = DEFAULT_MAX_SINGLE_TRADE_LOSS_BPS_SELF_FUNDED
    # Absolute cap used when no notional is supplied
    max_single_trade_loss: Optional[int] = None
    # Absolute notional cap per trade
    max_notional: Optional[int] = None
    max_daily_loss: int = 10**18
    # Daily loss at which the kill switch pauses the whole engine
    emergency_stop_loss: Optional[int] = None
    window_seconds: int = RISK_WINDOW_SECONDS


@dataclass
class EngineConfig:
    """Full engine configuration."""
    max_slippage_bps: int = DEFAULT_MAX_SLIPPAGE_BPS
    min_profit_threshold: int = DEFAULT_MIN_PROFIT_THRESHOLD
    max_pool_percentage_bps: int = MAX_POOL_PERCENTAGE_BPS
    protocol_fee_bps: int = DEFAULT_PROTOCOL_FEE_BPS
    max_fallback_attempts: int = DEFAULT_MAX_FALLBACK_ATTEMPTS
    fallback_order: List[str] = field(default_factory=list)
    selection_criteria: SelectionCriteria = SelectionCriteria.BALANCED
    quote_timeout_seconds: float = DEFAULT_QUOTE_TIMEOUT_SECONDS
    fanout_budget_seconds: float = DEFAULT_FANOUT_BUDGET_SECONDS
    route_weights: RouteScoringWeights = field(default_factory=RouteScoringWeights)
    loan_weights: LoanScoringWeights = field(default_factory=LoanScoringWeights)
    gas: GasModel = field(default_factory=GasModel)
    risk: RiskLimits = field(default_factory=RiskLimits)

    def validate(self) -> "EngineConfig":
        """
        Check ranges and weight sums.

        Raises:
            ConfigError: On the first invalid value
        """
        bps_fields = {
            "max_slippage_bps": self.max_slippage_bps,
            "max_pool_percentage_bps": self.max_pool_percentage_bps,
            "protocol_fee_bps": self.protocol_fee_bps,
            "risk.max_single_trade_loss_bps": self.risk.max_single_trade_loss_bps,
            "risk.max_single_trade_loss_bps_self_funded": self.risk.max_single_trade_loss_bps_self_funded,
        }
        for name, value in bps_fields.items():
            if not 0 <= value <= BPS_DENOMINATOR:
                raise ConfigError(
                    f"{name} must be within 0..{BPS_DENOMINATOR}",
                    details={"field": name, "value": value},
                )

        for name, weights in (
            ("route_weights", self.route_weights.as_dict()),
            ("loan_weights", self.loan_weights.as_dict()),
        ):
            if any(w < 0 for w in weights.values()):
                raise ConfigError(f"{name} must be non-negative", details=weights)
            if sum(weights.values()) != BPS_DENOMINATOR:
                raise ConfigError(
                    f"{name} must sum to {BPS_DENOMINATOR}",
                    details={"field": name, "sum": sum(weights.values())},
                )

        if self.max_fallback_attempts < 0:
            raise ConfigError(
                "max_fallback_attempts must be >= 0",
                details={"value": self.max_fallback_attempts},
            )
        if self.min_profit_threshold < 0:
            raise ConfigError("min_profit_threshold must be >= 0")
        if self.risk.max_daily_loss < 0:
            raise ConfigError("risk.max_daily_loss must be >= 0")
        if self.risk.max_notional is not None and self.risk.max_notional <= 0:
            raise ConfigError("risk.max_notional must be positive when set")
        if self.quote_timeout_seconds <= 0 or self.fanout_budget_seconds <= 0:
            raise ConfigError("timeouts must be positive")
        return self

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Build from a parsed YAML mapping (unknown keys rejected)."""
        data = dict(data or {})
        nested = {
            "route_weights": RouteScoringWeights,
            "loan_weights": LoanScoringWeights,
            "gas": GasModel,
            "risk": RiskLimits,
        }
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key in nested:
                try:
                    kwargs[key] = nested[key](**(value or {}))
                except TypeError as e:
                    raise ConfigError(f"Invalid '{key}' section: {e}", details={"section": key})
            elif key == "selection_criteria":
                try:
                    kwargs[key] = SelectionCriteria(str(value).upper())
                except ValueError:
                    raise ConfigError(
                        f"Unknown selection_criteria: {value}",
                        details={"allowed": [c.value for c in SelectionCriteria]},
                    )
            elif key == "fallback_order":
                kwargs[key] = [str(p) for p in (value or [])]
            elif key in cls.__dataclass_fields__:
                kwargs[key] = value
            else:
                raise ConfigError(f"Unknown config key: {key}", details={"key": key})
        return cls(**kwargs).validate()
