# PATH: tests/unit/test_risk.py
"""
Unit tests for RiskGovernor and KillSwitch.
"""

import asyncio

import pytest

from config.settings import RiskLimits
from core.constants import ErrorCode
from core.exceptions import RiskLimitExceededError
from risk.governor import RiskGovernor
from risk.kill_switch import KillSwitch

DAY = 86_400


@pytest.fixture
def limits():
    return RiskLimits(max_daily_loss=1_000)


@pytest.fixture
def governor(limits, clock):
    return RiskGovernor(limits, clock=clock)


class TestSingleTradeCap:
    @pytest.mark.asyncio
    async def test_loan_financed_cap(self, governor):
        # 5% of 10000 = 500
        decision = await governor.check_and_reserve("alice", 600, notional=10_000)

        assert not decision.allowed
        assert decision.limit == 500
        assert decision.reservation is None
        assert governor.get_state("alice").daily_loss_accumulated == 0

    @pytest.mark.asyncio
    async def test_self_funded_cap_is_wider(self, governor):
        decision = await governor.check_and_reserve(
            "alice", 600, notional=10_000, loan_financed=False
        )
        assert decision.allowed

    @pytest.mark.asyncio
    async def test_absolute_cap_without_notional(self, clock):
        governor = RiskGovernor(RiskLimits(max_single_trade_loss=100), clock=clock)
        assert not (await governor.check_and_reserve("alice", 101)).allowed
        assert (await governor.check_and_reserve("alice", 100)).allowed

    @pytest.mark.asyncio
    async def test_negative_potential_loss_rejected(self, governor):
        with pytest.raises(ValueError):
            await governor.check_and_reserve("alice", -1)


class TestDailyCap:
    @pytest.mark.asyncio
    async def test_reservations_accumulate(self, governor):
        first = await governor.check_and_reserve("alice", 400)
        second = await governor.check_and_reserve("alice", 400)
        third = await governor.check_and_reserve("alice", 400)

        assert first.allowed and second.allowed
        assert not third.allowed
        assert third.reason == "Daily loss limit exceeded"
        assert third.current == 800
        assert governor.get_state("alice").daily_loss_accumulated == 800

    @pytest.mark.asyncio
    async def test_callers_are_independent(self, governor):
        await governor.check_and_reserve("alice", 1_000)
        assert (await governor.check_and_reserve("bob", 1_000)).allowed

    @pytest.mark.asyncio
    async def test_exact_limit_allowed(self, governor):
        assert (await governor.check_and_reserve("alice", 1_000)).allowed
        assert not (await governor.check_and_reserve("alice", 1)).allowed

    @pytest.mark.asyncio
    async def test_window_resets_after_a_day(self, governor, clock):
        await governor.check_and_reserve("alice", 1_000)
        clock.advance(25 * 3_600)

        decision = await governor.check_and_reserve("alice", 1_000)

        assert decision.allowed
        assert governor.get_state("alice").window_start_at == clock.now()

    @pytest.mark.asyncio
    async def test_window_holds_at_exactly_a_day(self, governor, clock):
        await governor.check_and_reserve("alice", 1_000)
        clock.advance(DAY)
        assert not (await governor.check_and_reserve("alice", 1)).allowed

    @pytest.mark.asyncio
    async def test_concurrent_reservations_respect_limit(self, clock):
        governor = RiskGovernor(RiskLimits(max_daily_loss=500), clock=clock)

        decisions = await asyncio.gather(*(
            governor.check_and_reserve("alice", 100) for _ in range(10)
        ))

        assert sum(d.allowed for d in decisions) == 5
        assert governor.get_state("alice").daily_loss_accumulated == 500


class TestPositionCap:
    @pytest.mark.asyncio
    async def test_notional_above_cap_rejected(self, clock):
        governor = RiskGovernor(RiskLimits(max_notional=50_000, max_daily_loss=10_000), clock=clock)

        too_big = await governor.check_and_reserve("alice", 10, notional=50_001)
        at_cap = await governor.check_and_reserve("alice", 10, notional=50_000)

        assert not too_big.allowed
        assert too_big.reason == "Position size limit exceeded"
        assert too_big.limit == 50_000
        assert at_cap.allowed
        assert governor.get_state("alice").daily_loss_accumulated == 10

    @pytest.mark.asyncio
    async def test_no_cap_by_default(self, governor):
        assert (await governor.check_and_reserve("alice", 10, notional=10**30)).allowed


class TestExtend:
    @pytest.mark.asyncio
    async def test_extend_grows_reservation(self, governor):
        decision = await governor.check_and_reserve("alice", 300, notional=10_000)

        extended = await governor.extend(decision.reservation, 100, notional=10_000)

        assert extended.allowed
        assert extended.reservation.amount == 400
        assert governor.get_state("alice").daily_loss_accumulated == 400

        state = await governor.commit("alice", 100, extended.reservation)
        assert state.daily_loss_accumulated == 100

    @pytest.mark.asyncio
    async def test_combined_amount_hits_trade_cap(self, governor):
        decision = await governor.check_and_reserve("alice", 450, notional=10_000)

        extended = await governor.extend(decision.reservation, 100, notional=10_000)

        assert not extended.allowed
        assert extended.limit == 500
        assert extended.potential_loss == 550
        # Original reservation is still held
        assert governor.get_state("alice").daily_loss_accumulated == 450
        state = await governor.release(decision.reservation)
        assert state.daily_loss_accumulated == 0

    @pytest.mark.asyncio
    async def test_combined_amount_hits_daily_cap(self, governor):
        await governor.check_and_reserve("alice", 600)
        decision = await governor.check_and_reserve("alice", 300)

        extended = await governor.extend(decision.reservation, 200)

        assert not extended.allowed
        assert extended.reason == "Daily loss limit exceeded"
        assert extended.current == 600
        assert governor.get_state("alice").daily_loss_accumulated == 900

    @pytest.mark.asyncio
    async def test_extend_after_window_reset(self, governor, clock):
        decision = await governor.check_and_reserve("alice", 300)
        clock.advance(25 * 3_600)

        extended = await governor.extend(decision.reservation, 100)

        assert extended.allowed
        assert governor.get_state("alice").daily_loss_accumulated == 400

    @pytest.mark.asyncio
    async def test_negative_extension_rejected(self, governor):
        decision = await governor.check_and_reserve("alice", 300)
        with pytest.raises(ValueError):
            await governor.extend(decision.reservation, -1)


class TestCommit:
    @pytest.mark.asyncio
    async def test_commit_replaces_reservation(self, governor):
        decision = await governor.check_and_reserve("alice", 400)

        state = await governor.commit("alice", 150, decision.reservation)

        assert state.daily_loss_accumulated == 150

    @pytest.mark.asyncio
    async def test_profit_floors_at_zero(self, governor):
        decision = await governor.check_and_reserve("alice", 400)

        state = await governor.commit("alice", -10_000, decision.reservation)

        assert state.daily_loss_accumulated == 0

    @pytest.mark.asyncio
    async def test_release(self, governor):
        keep = await governor.check_and_reserve("alice", 300)
        drop = await governor.check_and_reserve("alice", 400)

        state = await governor.release(drop.reservation)

        assert state.daily_loss_accumulated == keep.potential_loss

    @pytest.mark.asyncio
    async def test_stale_reservation_not_subtracted(self, governor, clock):
        decision = await governor.check_and_reserve("alice", 400)
        clock.advance(25 * 3_600)

        state = await governor.commit("alice", 50, decision.reservation)

        assert state.daily_loss_accumulated == 50

    @pytest.mark.asyncio
    async def test_commit_trips_kill_switch(self, clock):
        kill_switch = KillSwitch(emergency_stop_loss=700, clock=clock)
        governor = RiskGovernor(RiskLimits(max_daily_loss=1_000), clock=clock, kill_switch=kill_switch)
        decision = await governor.check_and_reserve("alice", 200)

        await governor.commit("alice", 650, decision.reservation)
        assert kill_switch.can_execute

        await governor.commit("alice", 50)
        assert kill_switch.is_active
        assert kill_switch.get_status()["triggers"][-1]["reason"] == "EMERGENCY_STOP_LOSS"


class TestRiskDecision:
    @pytest.mark.asyncio
    async def test_raise_for_rejection(self, governor):
        decision = await governor.check_and_reserve("alice", 600, notional=10_000)

        with pytest.raises(RiskLimitExceededError) as exc_info:
            decision.raise_for_rejection()

        assert exc_info.value.code == ErrorCode.RISK_LIMIT_EXCEEDED
        assert exc_info.value.limit == 500

    @pytest.mark.asyncio
    async def test_allowed_does_not_raise(self, governor):
        decision = await governor.check_and_reserve("alice", 10)
        decision.raise_for_rejection()
        assert decision.to_dict()["allowed"] is True


class TestKillSwitch:
    def test_starts_released(self):
        kill_switch = KillSwitch()
        assert kill_switch.can_execute
        assert kill_switch.get_status()["triggers"] == []

    def test_started_paused(self):
        assert KillSwitch(active=True).is_active

    def test_manual_trigger_and_release(self):
        kill_switch = KillSwitch()

        kill_switch.manual_trigger("OPERATOR")
        assert not kill_switch.can_execute
        assert kill_switch.get_status()["triggers"][0]["reason"] == "OPERATOR"

        kill_switch.release()
        assert kill_switch.can_execute

    def test_check_loss_without_level_never_trips(self):
        kill_switch = KillSwitch()
        assert kill_switch.check_loss("alice", 10**30)
        assert kill_switch.can_execute

    def test_check_loss_at_level_trips(self):
        kill_switch = KillSwitch(emergency_stop_loss=100)
        assert kill_switch.check_loss("alice", 99)
        assert not kill_switch.check_loss("alice", 100)
        assert kill_switch.is_active
