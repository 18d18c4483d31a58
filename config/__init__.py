"""
Configuration loading utilities for flashroute.

Defaults live in config/engine.yaml. Environment variables prefixed with
FLASHROUTE_ (also read from a .env file) override file values.
"""

import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml
from dotenv import load_dotenv

from config.settings import (
    EngineConfig,
    GasModel,
    LoanScoringWeights,
    RiskLimits,
    RouteScoringWeights,
)
from core.exceptions import ConfigError
from core.logging import get_logger

logger = get_logger(__name__)

CONFIG_DIR = Path(__file__).parent
DEFAULT_CONFIG_FILE = CONFIG_DIR / "engine.yaml"

ENV_PREFIX = "FLASHROUTE_"

# env suffix -> (section or None, key, parser)
_ENV_OVERRIDES: Dict[str, tuple[Optional[str], str, Callable[[str], Any]]] = {
    "MAX_SLIPPAGE_BPS": (None, "max_slippage_bps", int),
    "MIN_PROFIT_THRESHOLD": (None, "min_profit_threshold", int),
    "MAX_POOL_PERCENTAGE_BPS": (None, "max_pool_percentage_bps", int),
    "PROTOCOL_FEE_BPS": (None, "protocol_fee_bps", int),
    "MAX_FALLBACK_ATTEMPTS": (None, "max_fallback_attempts", int),
    "FALLBACK_ORDER": (None, "fallback_order", lambda v: [p.strip() for p in v.split(",") if p.strip()]),
    "SELECTION_CRITERIA": (None, "selection_criteria", str),
    "QUOTE_TIMEOUT_SECONDS": (None, "quote_timeout_seconds", float),
    "FANOUT_BUDGET_SECONDS": (None, "fanout_budget_seconds", float),
    "MAX_DAILY_LOSS": ("risk", "max_daily_loss", int),
    "MAX_SINGLE_TRADE_LOSS_BPS": ("risk", "max_single_trade_loss_bps", int),
    "EMERGENCY_STOP_LOSS": ("risk", "emergency_stop_loss", int),
    "MAX_NOTIONAL": ("risk", "max_notional", int),
    "FALLBACK_GAS_PRICE": ("gas", "fallback_gas_price", int),
}

__all__ = [
    "CONFIG_DIR",
    "EngineConfig",
    "GasModel",
    "LoanScoringWeights",
    "RiskLimits",
    "RouteScoringWeights",
    "apply_env_overrides",
    "load_engine_config",
    "load_yaml",
]


def load_yaml(path: Path) -> Dict[str, Any]:
    """
    Load a YAML file.

    Args:
        path: File path

    Returns:
        Parsed YAML as dict
    """
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {path}")
    return data


def apply_env_overrides(
    data: Dict[str, Any],
    environ: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    """
    Overlay FLASHROUTE_* environment variables onto a config mapping.

    Args:
        data: Parsed config mapping (not mutated)
        environ: Environment (defaults to os.environ)

    Returns:
        New mapping with overrides applied
    """
    env = os.environ if environ is None else environ
    merged = {k: (dict(v) if isinstance(v, dict) else v) for k, v in data.items()}

    for suffix, (section, key, parser) in _ENV_OVERRIDES.items():
        raw = env.get(f"{ENV_PREFIX}{suffix}")
        if raw is None or raw == "":
            continue
        try:
            value = parser(raw)
        except ValueError:
            raise ConfigError(
                f"Invalid value for {ENV_PREFIX}{suffix}: {raw!r}",
                details={"variable": f"{ENV_PREFIX}{suffix}"},
            )
        if section is None:
            merged[key] = value
        else:
            merged.setdefault(section, {})
            merged[section] = {**(merged[section] or {}), key: value}

        logger.debug(
            "Config override from environment",
            extra={"context": {"variable": f"{ENV_PREFIX}{suffix}"}},
        )

    return merged


def load_engine_config(
    config_path: Optional[Path] = None,
    use_env: bool = True,
) -> EngineConfig:
    """
    Load engine configuration.

    Args:
        config_path: YAML file (default: config/engine.yaml)
        use_env: Apply .env / FLASHROUTE_* overrides

    Returns:
        Validated EngineConfig

    Raises:
        ConfigError: If a value is invalid
    """
    path = config_path or DEFAULT_CONFIG_FILE
    data = load_yaml(path) if path.exists() else {}

    if use_env:
        load_dotenv()
        data = apply_env_overrides(data)

    config = EngineConfig.from_dict(data)

    logger.info(
        "Engine config loaded",
        extra={
            "context": {
                "path": str(path),
                "selection_criteria": config.selection_criteria.value,
                "max_fallback_attempts": config.max_fallback_attempts,
            }
        },
    )
    return config
