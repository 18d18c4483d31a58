# PATH: tests/unit/test_profit_simulator.py
"""
Unit tests for ProfitSimulator.
"""

from dataclasses import replace

import pytest

from core.constants import ErrorCode
from core.exceptions import InsufficientLiquidityError
from core.models import PoolSnapshot
from risk.kill_switch import KillSwitch
from simulation.amm import simulate_route
from simulation.profit import ProfitSimulator

ETHER = 10**18


@pytest.fixture
def simulator(engine_config):
    return ProfitSimulator(engine_config)


@pytest.fixture
def losing_pools(profitable_pools):
    """Second pool priced so the round trip loses ~7%."""
    return [
        profitable_pools[0],
        replace(profitable_pools[1], reserve_in=2_200_000 * 10**6),
    ]


class TestLiquidityClipping:
    def test_amount_within_cap_is_kept(self, simulator, make_intent, profitable_pools):
        calc = simulator.simulate(make_intent(amount=10 * ETHER), profitable_pools)
        assert calc.suggested_amount == 10 * ETHER
        assert calc.min_liquidity == 1000 * ETHER

    def test_amount_clipped_to_twenty_percent(self, simulator, make_intent, profitable_pools):
        shallow = [replace(profitable_pools[0], liquidity=100 * ETHER), profitable_pools[1]]

        calc = simulator.simulate(make_intent(amount=50 * ETHER), shallow)

        assert calc.suggested_amount == 20 * ETHER
        for pool in shallow:
            assert calc.suggested_amount * 10_000 <= pool.liquidity * 2_000

    def test_inactive_pool_rejects(self, simulator, make_intent, profitable_pools):
        pools = [profitable_pools[0], replace(profitable_pools[1], active=False)]
        with pytest.raises(InsufficientLiquidityError):
            simulator.simulate(make_intent(), pools)

    def test_zero_cap_rejects(self, simulator, make_intent, profitable_pools):
        pools = [replace(p, liquidity=4) for p in profitable_pools]
        with pytest.raises(InsufficientLiquidityError):
            simulator.simulate(make_intent(), pools)


class TestProfit:
    def test_profitable_route(self, simulator, make_intent, profitable_pools):
        calc = simulator.simulate(make_intent(), profitable_pools, gas_price=1)

        expected_out = simulate_route(10 * ETHER, profitable_pools)[-1].amount_out
        assert calc.final_amount_out == expected_out
        assert calc.gross_profit == expected_out - 10 * ETHER
        assert calc.protocol_fee == expected_out * 50 // 10_000
        assert calc.net_profit == calc.gross_profit - calc.gas_cost - calc.protocol_fee
        assert calc.roi_bps == calc.net_profit * 10_000 // (10 * ETHER)
        assert calc.slippage_bps == 0
        assert calc.is_profitable
        assert calc.reject_code is None
        assert len(calc.hops) == 2

    def test_gas_model(self, simulator, make_intent, profitable_pools):
        calc = simulator.simulate(make_intent(), profitable_pools, gas_price=7)
        # base 100k + transfer 50k + 2 hops * 80k
        assert calc.gas_units == 310_000
        assert calc.gas_cost == 2_170_000

    def test_fallback_gas_price_when_none(self, simulator, make_intent, profitable_pools):
        calc = simulator.simulate(make_intent(), profitable_pools)
        assert calc.gas_cost == 310_000 * simulator.config.gas.fallback_gas_price

    def test_net_below_intent_threshold_is_not_profitable(self, simulator, make_intent, profitable_pools):
        calc = simulator.simulate(make_intent(min_profit=1000 * ETHER), profitable_pools)

        assert calc.net_profit < calc.profit_threshold
        assert not calc.is_profitable
        assert calc.reject_code == ErrorCode.INSUFFICIENT_PROFIT

    def test_global_threshold_applies(self, engine_config, make_intent, profitable_pools):
        engine_config.min_profit_threshold = 1000 * ETHER
        calc = ProfitSimulator(engine_config).simulate(make_intent(), profitable_pools)
        assert calc.profit_threshold == 1000 * ETHER
        assert not calc.is_profitable

    def test_never_negative(self, simulator, make_intent, losing_pools):
        calc = simulator.simulate(make_intent(max_slippage_bps=10_000), losing_pools)
        assert calc.gross_profit == 0
        assert calc.net_profit == 0
        assert calc.roi_bps == 0


class TestSlippage:
    def test_slippage_exceeded(self, simulator, make_intent, losing_pools):
        calc = simulator.simulate(make_intent(max_slippage_bps=100), losing_pools)

        expected = (10 * ETHER - calc.final_amount_out) * 10_000 // (10 * ETHER)
        assert calc.slippage_bps == expected
        assert calc.slippage_bps > 100
        assert not calc.slippage_valid
        assert calc.reject_code == ErrorCode.SLIPPAGE_EXCEEDED

    def test_engine_cap_bounds_intent_tolerance(self, simulator, make_intent):
        intent = make_intent(max_slippage_bps=5_000)
        assert simulator.slippage_tolerance(intent) == simulator.config.max_slippage_bps


class TestPause:
    def test_paused_system_is_never_profitable(self, engine_config, make_intent, profitable_pools):
        simulator = ProfitSimulator(engine_config, kill_switch=KillSwitch(active=True))

        calc = simulator.simulate(make_intent(), profitable_pools)

        assert calc.paused
        assert calc.net_profit > 0
        assert not calc.is_profitable
        assert calc.reject_code == ErrorCode.SYSTEM_PAUSED


def test_single_pool_route(simulator, make_intent):
    pool = PoolSnapshot("flat", 1_000 * ETHER, 1_000 * ETHER, 0, 1_000 * ETHER)
    calc = simulator.simulate(make_intent(amount=ETHER), [pool])
    assert calc.gas_units == 230_000
    assert calc.final_amount_out < ETHER
