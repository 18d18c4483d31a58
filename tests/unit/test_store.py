# PATH: tests/unit/test_store.py
"""
Unit tests for keyed stores.
"""

import asyncio

import pytest

from core.constants import ProviderKind
from core.models import ProviderConfig
from core.store import IntentRegistry, ProviderStatsStore, RiskStateStore


class TestProviderStatsStore:
    @pytest.fixture
    def store(self, clock):
        return ProviderStatsStore([ProviderConfig("aave", kind=ProviderKind.LENDER)], clock=clock)

    @pytest.mark.asyncio
    async def test_record_failure_updates_ema(self, store, clock):
        updated = await store.record_attempt("aave", success=False, gas_used=100_000)

        assert updated.success_rate_bps == 9_000
        assert updated.avg_gas_used == 10_000
        assert updated.total_executions == 1
        assert updated.total_failed == 1
        assert updated.last_executed_at == clock.now()

    @pytest.mark.asyncio
    async def test_concurrent_updates_are_not_lost(self, store):
        await asyncio.gather(*(
            store.record_attempt("aave", success=(i % 2 == 0), gas_used=1_000)
            for i in range(20)
        ))

        config = store.get("aave")
        assert config.total_executions == 20
        assert config.total_failed == 10

    @pytest.mark.asyncio
    async def test_unknown_provider_registered_on_first_attempt(self, store):
        await store.record_attempt("dydx", success=True, gas_used=0)
        assert "dydx" in store
        assert store.get("dydx").kind == ProviderKind.LENDER

    def test_get_returns_copy(self, store):
        config = store.get("aave")
        config.priority = 99
        assert store.get("aave").priority == 0

    def test_unknown_is_active_by_default(self, store):
        assert store.is_active("nobody")
        store.set_active("aave", False)
        assert not store.is_active("aave")

    def test_snapshot_filters_by_kind(self, store):
        store.ensure("uni", ProviderKind.VENUE)
        assert set(store.snapshot(ProviderKind.VENUE)) == {"uni"}
        assert set(store.snapshot()) == {"aave", "uni"}


class TestRiskStateStore:
    @pytest.mark.asyncio
    async def test_locked_yields_live_state(self):
        store = RiskStateStore()
        async with store.locked("alice") as state:
            state.daily_loss_accumulated = 42
        assert store.get("alice").daily_loss_accumulated == 42

    def test_unknown_caller_is_zeroed(self):
        assert RiskStateStore().get("bob").daily_loss_accumulated == 0


class TestIntentRegistry:
    @pytest.mark.asyncio
    async def test_record_once(self, clock):
        registry = IntentRegistry(clock)
        assert await registry.record("abc")
        assert not await registry.record("abc")
        assert "abc" in registry
        assert registry.recorded_at("abc") == clock.now()

    @pytest.mark.asyncio
    async def test_concurrent_record_single_winner(self):
        registry = IntentRegistry()
        results = await asyncio.gather(*(registry.record("same") for _ in range(5)))
        assert results.count(True) == 1
        assert len(registry) == 1
