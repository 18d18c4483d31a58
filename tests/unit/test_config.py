# PATH: tests/unit/test_config.py
"""
Unit tests for configuration loading.
"""

import unittest
from pathlib import Path

import pytest

from config import (
    CONFIG_DIR,
    EngineConfig,
    apply_env_overrides,
    load_engine_config,
    load_yaml,
)
from core.constants import SelectionCriteria
from core.exceptions import ConfigError


class TestConfigLoading(unittest.TestCase):
    """Tests for config loading functions."""

    def test_config_dir_exists(self):
        """Config directory exists."""
        self.assertTrue((CONFIG_DIR / "engine.yaml").exists())

    def test_load_defaults(self):
        """engine.yaml loads into a valid EngineConfig."""
        config = load_engine_config(use_env=False)

        self.assertEqual(config.max_slippage_bps, 300)
        self.assertEqual(config.max_pool_percentage_bps, 2000)
        self.assertEqual(config.protocol_fee_bps, 50)
        self.assertEqual(config.max_fallback_attempts, 3)
        self.assertEqual(config.selection_criteria, SelectionCriteria.BALANCED)
        self.assertEqual(config.risk.max_daily_loss, 5 * 10**18)
        self.assertEqual(config.gas.fallback_gas_price, 20 * 10**9)
        self.assertEqual(config.route_weights.amount_out, 7000)
        self.assertEqual(config.loan_weights.reliability, 3500)

    def test_missing_file_uses_dataclass_defaults(self):
        """A missing config file falls back to built-in defaults."""
        config = load_engine_config(Path("/nonexistent/engine.yaml"), use_env=False)
        self.assertEqual(config, EngineConfig())

    def test_load_yaml_missing_raises(self):
        with self.assertRaises(FileNotFoundError):
            load_yaml(Path("/nonexistent/engine.yaml"))


class TestEnvOverrides:
    def test_overrides_applied(self):
        data = load_yaml(CONFIG_DIR / "engine.yaml")
        env = {
            "FLASHROUTE_MAX_SLIPPAGE_BPS": "150",
            "FLASHROUTE_FALLBACK_ORDER": "balancer, aave,,dydx",
            "FLASHROUTE_SELECTION_CRITERIA": "lowest_fee",
            "FLASHROUTE_MAX_DAILY_LOSS": "42",
            "FLASHROUTE_FALLBACK_GAS_PRICE": "7",
        }

        config = EngineConfig.from_dict(apply_env_overrides(data, env))

        assert config.max_slippage_bps == 150
        assert config.fallback_order == ["balancer", "aave", "dydx"]
        assert config.selection_criteria == SelectionCriteria.LOWEST_FEE
        assert config.risk.max_daily_loss == 42
        assert config.risk.max_single_trade_loss_bps == 500
        assert config.gas.fallback_gas_price == 7
        assert config.gas.per_hop_gas == 80_000

    def test_source_mapping_untouched(self):
        data = {"risk": {"max_daily_loss": 1}}
        apply_env_overrides(data, {"FLASHROUTE_MAX_DAILY_LOSS": "2"})
        assert data == {"risk": {"max_daily_loss": 1}}

    def test_empty_value_ignored(self):
        assert apply_env_overrides({}, {"FLASHROUTE_MAX_SLIPPAGE_BPS": ""}) == {}

    def test_unparsable_value_raises(self):
        with pytest.raises(ConfigError):
            apply_env_overrides({}, {"FLASHROUTE_MAX_SLIPPAGE_BPS": "lots"})

    def test_process_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "engine.yaml"
        path.write_text("max_fallback_attempts: 1\n")
        monkeypatch.setenv("FLASHROUTE_PROTOCOL_FEE_BPS", "25")

        config = load_engine_config(path)

        assert config.max_fallback_attempts == 1
        assert config.protocol_fee_bps == 25


class TestValidation:
    @pytest.mark.parametrize(
        "data",
        [
            {"route_weights": {"amount_out": 8000, "reliability": 2000, "gas_efficiency": 1000}},
            {"loan_weights": {"fee": -1000, "liquidity": 4500, "reliability": 5500, "priority": 1000}},
            {"max_slippage_bps": 10_001},
            {"risk": {"max_single_trade_loss_bps": 20_000}},
            {"risk": {"max_notional": 0}},
            {"quote_timeout_seconds": 0},
            {"max_fallback_attempts": -1},
            {"selection_criteria": "cheapest"},
            {"gas": {"gwei": 1}},
            {"mystery_knob": True},
        ],
    )
    def test_invalid_config_rejected(self, data):
        with pytest.raises(ConfigError):
            EngineConfig.from_dict(data)

    def test_non_mapping_yaml_rejected(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError):
            load_yaml(path)
