# PATH: tests/unit/test_lending.py
"""
Unit tests for LoanAggregator, provider scoring and the fallback state machine.
"""

import pytest

from adapters.static import StaticLendingSource
from config.settings import EngineConfig
from core.constants import ErrorCode, ProviderKind, SelectionCriteria
from core.exceptions import NoProviderAvailableError
from core.models import LoanQuote, ProviderConfig
from core.store import ProviderStatsStore
from lending.aggregator import LoanAggregator
from lending.fallback import (
    FallbackState,
    FallbackStateMachine,
    build_fallback_order,
)
from lending.scoring import fee_score, liquidity_score, priority_score

ETHER = 10**18
AMOUNT = 100 * ETHER


def _lender(provider_id, fee_bps, outcomes=None, max_amount=2 * AMOUNT, asset="WETH"):
    return StaticLendingSource(provider_id, fee_bps, {asset: max_amount}, outcomes=outcomes)


class CountingLender(StaticLendingSource):
    """Counts quote calls."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fee_calls = 0

    async def fee(self, asset, amount):
        self.fee_calls += 1
        return await super().fee(asset, amount)


@pytest.fixture
def config():
    return EngineConfig(quote_timeout_seconds=0.5, fanout_budget_seconds=1.0)


class TestScoring:
    @pytest.mark.parametrize("fee,expected", [(0, 10_000), (10, 5_000), (9, 5_263), (90, 1_000)])
    def test_fee_score(self, fee, expected):
        assert fee_score(fee) == expected

    @pytest.mark.parametrize(
        "max_amount,expected",
        [(2 * AMOUNT, 10_000), (5 * AMOUNT, 10_000), (AMOUNT, 0), (AMOUNT * 3 // 2, 5_000)],
    )
    def test_liquidity_score(self, max_amount, expected):
        assert liquidity_score(max_amount, AMOUNT) == expected

    def test_priority_score(self):
        assert priority_score(50) == 5_000
        assert priority_score(150) == 10_000
        assert priority_score(-3) == 0

    @pytest.mark.asyncio
    async def test_quote_scores_in_range(self, config):
        aggregator = LoanAggregator(
            [_lender("balancer", 0), _lender("aave", 9), _lender("dydx", 2_000)], config=config
        )
        quotes = await aggregator.quote_all("WETH", AMOUNT)
        for quote in quotes.values():
            assert 0 <= quote.score <= 10_000
        assert quotes["aave"].fee_amount == AMOUNT * 9 // 10_000


class TestSelection:
    @pytest.mark.asyncio
    async def test_cheapest_reliable_provider_wins(self, config):
        aggregator = LoanAggregator([_lender("aave", 9), _lender("balancer", 0)], config=config)

        best = await aggregator.select_optimal_provider("WETH", AMOUNT)

        assert best.provider_id == "balancer"

    @pytest.mark.asyncio
    async def test_priority_breaks_even_fees(self, config):
        stats = ProviderStatsStore()
        aggregator = LoanAggregator(
            [_lender("aave", 5), _lender("spark", 5)], stats=stats, config=config
        )
        stats.set_priority("spark", 100)

        best = await aggregator.select_optimal_provider("WETH", AMOUNT)

        assert best.provider_id == "spark"

    @pytest.mark.asyncio
    async def test_highest_liquidity_criteria(self, config):
        aggregator = LoanAggregator(
            [_lender("balancer", 0), _lender("aave", 9, max_amount=10 * AMOUNT)], config=config
        )
        best = await aggregator.select_optimal_provider(
            "WETH", AMOUNT, criteria=SelectionCriteria.HIGHEST_LIQUIDITY
        )
        assert best.provider_id == "aave"

    @pytest.mark.asyncio
    async def test_lowest_fee_criteria(self, config):
        stats = ProviderStatsStore([
            ProviderConfig("balancer", kind=ProviderKind.LENDER, success_rate_bps=0),
        ])
        aggregator = LoanAggregator(
            [_lender("balancer", 0), _lender("aave", 5)], stats=stats, config=config
        )

        balanced = await aggregator.select_optimal_provider("WETH", AMOUNT)
        cheapest = await aggregator.select_optimal_provider(
            "WETH", AMOUNT, criteria=SelectionCriteria.LOWEST_FEE
        )

        assert balanced.provider_id == "aave"
        assert cheapest.provider_id == "balancer"

    @pytest.mark.asyncio
    async def test_fastest_execution_criteria(self, config):
        stats = ProviderStatsStore([
            ProviderConfig("balancer", kind=ProviderKind.LENDER, avg_gas_used=200_000),
            ProviderConfig("aave", kind=ProviderKind.LENDER, avg_gas_used=90_000),
        ])
        aggregator = LoanAggregator(
            [_lender("balancer", 0), _lender("aave", 9)], stats=stats, config=config
        )

        balanced = await aggregator.select_optimal_provider("WETH", AMOUNT)
        fastest = await aggregator.select_optimal_provider(
            "WETH", AMOUNT, criteria=SelectionCriteria.FASTEST_EXECUTION
        )

        assert balanced.provider_id == "balancer"
        assert fastest.provider_id == "aave"
        assert fastest.estimated_gas == 90_000

    @pytest.mark.asyncio
    async def test_supplied_quotes_are_not_refetched(self, config):
        aave = CountingLender("aave", 9, {"WETH": 2 * AMOUNT})
        aggregator = LoanAggregator([aave], config=config)
        quotes = await aggregator.quote_all("WETH", AMOUNT)

        best = await aggregator.select_optimal_provider("WETH", AMOUNT, quotes=quotes)
        result = await aggregator.execute_with_fallback(
            "WETH", AMOUNT, payload=None, primary_provider_id=best.provider_id, quotes=quotes
        )

        assert result.used_provider_id == "aave"
        assert aave.fee_calls == 1

    @pytest.mark.asyncio
    async def test_unusable_providers_are_unavailable(self, config):
        stats = ProviderStatsStore()
        aggregator = LoanAggregator(
            [
                _lender("shallow", 0, max_amount=AMOUNT // 2),
                _lender("usdc-only", 0, asset="USDC"),
                _lender("paused", 0),
            ],
            stats=stats,
            config=config,
        )
        stats.set_active("paused", False)

        quotes = await aggregator.quote_all("WETH", AMOUNT)

        assert not any(q.available for q in quotes.values())
        assert quotes["paused"].error == "inactive"
        assert quotes["usdc-only"].error.startswith("asset WETH")
        assert quotes["shallow"].error.startswith("insufficient liquidity")
        with pytest.raises(NoProviderAvailableError) as exc_info:
            await aggregator.select_optimal_provider("WETH", AMOUNT)
        assert exc_info.value.code == ErrorCode.NO_PROVIDER_AVAILABLE

    @pytest.mark.asyncio
    async def test_slow_provider_times_out(self):
        slow = StaticLendingSource("slow", 0, {"WETH": 2 * AMOUNT}, delay=1.0)
        aggregator = LoanAggregator(
            [slow, _lender("aave", 9)],
            config=EngineConfig(quote_timeout_seconds=0.05, fanout_budget_seconds=1.0),
        )

        quotes = await aggregator.quote_all("WETH", AMOUNT)

        assert quotes["slow"].error == "timeout"
        assert quotes["aave"].available


class TestExecuteWithFallback:
    @pytest.mark.asyncio
    async def test_falls_back_in_fee_order(self, config):
        stats = ProviderStatsStore()
        balancer = _lender("balancer", 0, outcomes=["reverted"])
        aave = _lender("aave", 5, outcomes=["reverted"])
        dydx = _lender("dydx", 9)
        aggregator = LoanAggregator([dydx, aave, balancer], stats=stats, config=config)

        result = await aggregator.execute_with_fallback("WETH", AMOUNT, payload={"intent": "x"})

        assert result.success
        assert result.used_provider_id == "dydx"
        assert [a.provider_id for a in result.attempts] == ["balancer", "aave", "dydx"]
        assert len(result.failed_attempts) == 2
        assert result.actual_fee == AMOUNT * 9 // 10_000
        assert dydx.executions == [("WETH", AMOUNT, {"intent": "x"})]

        balancer_stats = stats.get("balancer")
        assert balancer_stats.success_rate_bps == 9_000
        assert balancer_stats.total_failed == 1
        assert stats.get("dydx").success_rate_bps == 10_000

    @pytest.mark.asyncio
    async def test_attempt_budget_exhausts(self, config):
        config.max_fallback_attempts = 1
        aggregator = LoanAggregator(
            [
                _lender("balancer", 0, outcomes=["reverted"]),
                _lender("aave", 5, outcomes=["reverted"]),
                _lender("dydx", 9),
            ],
            config=config,
        )

        result = await aggregator.execute_with_fallback("WETH", AMOUNT, payload=None)

        assert not result.success
        assert result.error_reason == "NO_PROVIDER_AVAILABLE"
        assert result.error_detail == "reverted"
        assert len(result.attempts) == 2
        assert result.gas_used == 2 * 60_000

    @pytest.mark.asyncio
    async def test_configured_order_is_followed(self, config):
        config.fallback_order = ["dydx", "aave"]
        aave = _lender("aave", 5)
        aggregator = LoanAggregator(
            [_lender("balancer", 0, outcomes=["reverted"]), aave, _lender("dydx", 9)],
            config=config,
        )

        result = await aggregator.execute_with_fallback("WETH", AMOUNT, payload=None)

        assert [a.provider_id for a in result.attempts] == ["balancer", "dydx"]
        assert aave.executions == []

    @pytest.mark.asyncio
    async def test_explicit_primary_tried_first(self, config):
        aggregator = LoanAggregator([_lender("balancer", 0), _lender("aave", 9)], config=config)

        result = await aggregator.execute_with_fallback(
            "WETH", AMOUNT, payload=None, primary_provider_id="aave"
        )

        assert result.used_provider_id == "aave"
        assert len(result.attempts) == 1

    @pytest.mark.asyncio
    async def test_inactive_provider_skipped(self, config):
        stats = ProviderStatsStore()
        aave = _lender("aave", 5)
        aggregator = LoanAggregator(
            [_lender("balancer", 0, outcomes=["reverted"]), aave, _lender("dydx", 9)],
            stats=stats,
            config=config,
        )
        stats.set_active("aave", False)

        result = await aggregator.execute_with_fallback("WETH", AMOUNT, payload=None)

        assert result.used_provider_id == "dydx"
        assert aave.executions == []

    @pytest.mark.asyncio
    async def test_raising_provider_counts_as_failure(self, config):
        class Exploding(StaticLendingSource):
            async def execute(self, asset, amount, payload):
                raise RuntimeError("node unreachable")

        aggregator = LoanAggregator(
            [Exploding("balancer", 0, {"WETH": 2 * AMOUNT}), _lender("aave", 9)], config=config
        )

        result = await aggregator.execute_with_fallback("WETH", AMOUNT, payload=None)

        assert result.success
        assert result.attempts[0].reason == "error: node unreachable"
        assert result.used_provider_id == "aave"

    @pytest.mark.asyncio
    async def test_nobody_available(self, config):
        aggregator = LoanAggregator([_lender("balancer", 0, asset="USDC")], config=config)

        result = await aggregator.execute_with_fallback("WETH", AMOUNT, payload=None)

        assert not result.success
        assert result.attempts == ()
        assert result.error_detail == "no usable provider"


class TestFallbackStateMachine:
    def test_happy_path(self):
        machine = FallbackStateMachine()
        assert machine.transition_to(FallbackState.ATTEMPTING)
        assert machine.transition_to(FallbackState.ATTEMPT_FAILED)
        assert machine.transition_to(FallbackState.NEXT_FALLBACK)
        assert machine.transition_to(FallbackState.ATTEMPTING)
        assert machine.transition_to(FallbackState.SUCCEEDED)
        assert machine.is_terminal
        assert machine.to_dict()["history"][0] == "SELECTED"

    def test_invalid_transition_rejected(self):
        machine = FallbackStateMachine()
        assert not machine.transition_to(FallbackState.SUCCEEDED)
        assert machine.state == FallbackState.SELECTED
        assert "SELECTED -> SUCCEEDED" in machine.error_reason

    def test_terminal_has_no_exits(self):
        machine = FallbackStateMachine()
        machine.transition_to(FallbackState.EXHAUSTED)
        for state in FallbackState:
            assert not machine.can_transition_to(state)


class TestBuildFallbackOrder:
    def _quotes(self):
        return {
            "aave": LoanQuote("aave", 9, 0, AMOUNT, 0),
            "balancer": LoanQuote("balancer", 0, 0, AMOUNT, 0),
            "maker": LoanQuote("maker", 0, 0, AMOUNT, 0),
            "dead": LoanQuote.unavailable("dead", "inactive"),
        }

    def test_fee_order_skips_primary_and_unavailable(self):
        assert build_fallback_order("balancer", self._quotes()) == ["maker", "aave"]

    def test_configured_order_filters_unknown(self):
        order = build_fallback_order(
            "balancer", self._quotes(), ["dead", "aave", "ghost", "aave", "balancer"]
        )
        assert order == ["aave"]
