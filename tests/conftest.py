# PATH: tests/conftest.py
"""
Pytest configuration and fixtures for flashroute tests.
"""

import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config.settings import EngineConfig  # noqa: E402
from core.models import ArbitrageIntent, PoolSnapshot  # noqa: E402
from core.time import ManualClock  # noqa: E402

WETH = "WETH"
ETHER = 10**18


def pytest_configure(config):
    """Configure pytest."""
    # Add custom markers
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )


@pytest.fixture
def clock():
    """Pinned clock at 2026-01-01T00:00:00Z."""
    return ManualClock()


@pytest.fixture
def engine_config():
    """Defaults with a 1 wei profit floor and 1 wei gas price."""
    config = EngineConfig(min_profit_threshold=1)
    config.gas.fallback_gas_price = 1
    return config.validate()


@pytest.fixture
def make_intent(clock):
    """Factory for intents valid for 60s on the pinned clock."""
    counter = {"n": 0}

    def _make(**overrides) -> ArbitrageIntent:
        counter["n"] += 1
        fields = {
            "token_in": WETH,
            "token_out": WETH,
            "amount": 10 * ETHER,
            "min_profit": 0,
            "max_slippage_bps": 100,
            "deadline": clock.now() + 60,
            "caller_id": "alice",
            "issued_at": clock.now() + counter["n"] * 1e-3,
        }
        fields.update(overrides)
        return ArbitrageIntent.create(**fields)

    return _make


@pytest.fixture
def profitable_pools():
    """WETH -> USDC -> WETH with a ~5% price gap, 1000 WETH liquidity."""
    return [
        PoolSnapshot(
            pool_id="uni-weth-usdc",
            reserve_in=1000 * ETHER,
            reserve_out=2_100_000 * 10**6,
            fee_rate_bps=30,
            liquidity=1000 * ETHER,
        ),
        PoolSnapshot(
            pool_id="sushi-usdc-weth",
            reserve_in=2_000_000 * 10**6,
            reserve_out=1000 * ETHER,
            fee_rate_bps=30,
            liquidity=1000 * ETHER,
        ),
    ]
