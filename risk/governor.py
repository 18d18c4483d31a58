# PATH: risk/governor.py
"""
RiskGovernor - per-caller loss limits, independent of profitability.

Rules (evaluated under the caller's lock):
- Window reset: once now - window_start_at > 24h, the accumulator is
  zeroed and the window restarts at now, before anything else.
- Per-trade cap: potential_loss <= notional * cap_bps // 10000
  (cap_bps differs for loan-financed and self-funded trades). Without a
  notional, the absolute max_single_trade_loss applies if configured.
- Position cap: notional <= max_notional when configured.
- Daily cap: accumulated + potential_loss <= max_daily_loss.

An allowed request reserves its potential loss in the accumulator;
extend() grows a held reservation once the loan fee is known.
commit() swaps the reservation for the realized loss; a negative
realized loss (profit) lowers the accumulator, never below zero.
"""

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from config.settings import RiskLimits
from core.exceptions import RiskLimitExceededError
from core.logging import get_logger
from core.math import apply_bps
from core.models import RiskState
from core.store import RiskStateStore
from core.time import Clock, SystemClock, window_elapsed
from risk.kill_switch import KillSwitch

logger = get_logger(__name__)


@dataclass(frozen=True)
class RiskReservation:
    """Potential loss held against a caller's daily limit."""
    caller_id: str
    amount: int
    window_start_at: float


@dataclass(frozen=True)
class RiskDecision:
    """Allow (with reservation) or reject."""
    allowed: bool
    caller_id: str
    potential_loss: int
    reservation: Optional[RiskReservation] = None
    reason: Optional[str] = None
    limit: Optional[int] = None
    current: int = 0

    def raise_for_rejection(self) -> None:
        """Raise RiskLimitExceededError if the request was rejected."""
        if not self.allowed:
            raise RiskLimitExceededError(
                self.reason or "Risk limit exceeded",
                limit=self.limit,
                current=self.current,
                details={"caller_id": self.caller_id, "potential_loss": self.potential_loss},
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allowed": self.allowed,
            "caller_id": self.caller_id,
            "potential_loss": self.potential_loss,
            "reason": self.reason,
            "limit": self.limit,
            "current": self.current,
        }


class RiskGovernor:
    """Enforces per-trade and rolling daily loss limits per caller."""

    def __init__(
        self,
        limits: Optional[RiskLimits] = None,
        store: Optional[RiskStateStore] = None,
        clock: Optional[Clock] = None,
        kill_switch: Optional[KillSwitch] = None,
    ):
        self.limits = limits or RiskLimits()
        self.store = store or RiskStateStore()
        self.clock = clock or SystemClock()
        self.kill_switch = kill_switch

    def _reset_if_elapsed(self, state: RiskState, now: float) -> None:
        if window_elapsed(state.window_start_at, self.limits.window_seconds, now):
            if state.daily_loss_accumulated:
                logger.info(
                    "Daily risk window reset",
                    extra={
                        "context": {
                            "caller_id": state.caller_id,
                            "previous_loss": state.daily_loss_accumulated,
                        }
                    },
                )
            state.daily_loss_accumulated = 0
            state.window_start_at = now

    def single_trade_cap(
        self,
        notional: Optional[int],
        loan_financed: bool = True,
    ) -> Optional[int]:
        """Per-trade loss cap, or None when no cap applies."""
        if notional is None:
            return self.limits.max_single_trade_loss
        cap_bps = (
            self.limits.max_single_trade_loss_bps
            if loan_financed
            else self.limits.max_single_trade_loss_bps_self_funded
        )
        return apply_bps(notional, cap_bps)

    def _evaluate(
        self,
        state: RiskState,
        potential_loss: int,
        baseline: int,
        notional: Optional[int],
        loan_financed: bool,
    ) -> RiskDecision:
        """Apply the caps; on success hold baseline + potential_loss. Caller holds the lock."""
        caller_id = state.caller_id
        max_notional = self.limits.max_notional
        cap = self.single_trade_cap(notional, loan_financed)

        if max_notional is not None and notional is not None and notional > max_notional:
            reason, limit = "Position size limit exceeded", max_notional
        elif cap is not None and potential_loss > cap:
            reason, limit = "Single trade loss limit exceeded", cap
        elif baseline + potential_loss > self.limits.max_daily_loss:
            reason, limit = "Daily loss limit exceeded", self.limits.max_daily_loss
        else:
            state.daily_loss_accumulated = baseline + potential_loss
            return RiskDecision(
                allowed=True,
                caller_id=caller_id,
                potential_loss=potential_loss,
                reservation=RiskReservation(
                    caller_id=caller_id,
                    amount=potential_loss,
                    window_start_at=state.window_start_at,
                ),
                current=state.daily_loss_accumulated,
            )

        return RiskDecision(
            allowed=False,
            caller_id=caller_id,
            potential_loss=potential_loss,
            reason=reason,
            limit=limit,
            current=baseline,
        )

    async def check_and_reserve(
        self,
        caller_id: str,
        potential_loss: int,
        notional: Optional[int] = None,
        loan_financed: bool = True,
    ) -> RiskDecision:
        """
        Check limits and reserve the potential loss if allowed.

        Args:
            caller_id: Caller whose limits apply
            potential_loss: Worst-case loss of the trade
            notional: Trade size for the percentage cap
            loan_financed: Use the flash-loan cap (else self-funded cap)

        Returns:
            RiskDecision (reservation set when allowed)
        """
        if potential_loss < 0:
            raise ValueError(f"potential_loss must be non-negative, got {potential_loss}")

        async with self.store.locked(caller_id) as state:
            self._reset_if_elapsed(state, self.clock.now())
            decision = self._evaluate(
                state, potential_loss, state.daily_loss_accumulated, notional, loan_financed
            )

        if decision.allowed:
            logger.debug("Risk reserved", extra={"context": decision.to_dict()})
        else:
            logger.info(f"Risk rejected: {decision.reason}", extra={"context": decision.to_dict()})
        return decision

    async def extend(
        self,
        reservation: RiskReservation,
        additional_loss: int,
        notional: Optional[int] = None,
        loan_financed: bool = True,
    ) -> RiskDecision:
        """
        Grow a held reservation by additional_loss, re-checking every cap.

        The caps see the combined amount. On rejection the original
        reservation stays held and must still be committed or released.

        Returns:
            RiskDecision whose reservation replaces the original when allowed
        """
        if additional_loss < 0:
            raise ValueError(f"additional_loss must be non-negative, got {additional_loss}")

        caller_id = reservation.caller_id
        async with self.store.locked(caller_id) as state:
            self._reset_if_elapsed(state, self.clock.now())
            held = reservation.amount if reservation.window_start_at == state.window_start_at else 0
            decision = self._evaluate(
                state,
                reservation.amount + additional_loss,
                max(0, state.daily_loss_accumulated - held),
                notional,
                loan_financed,
            )

        if decision.allowed:
            logger.debug("Risk reservation extended", extra={"context": decision.to_dict()})
        else:
            logger.info(f"Risk rejected: {decision.reason}", extra={"context": decision.to_dict()})
        return decision

    async def commit(
        self,
        caller_id: str,
        realized_loss: int,
        reservation: Optional[RiskReservation] = None,
    ) -> RiskState:
        """
        Record the realized loss of an executed trade.

        A reservation from a window that has since been reset is not
        subtracted, since the reset already cleared it.

        Args:
            caller_id: Caller
            realized_loss: Loss (negative for profit)
            reservation: Reservation made by check_and_reserve

        Returns:
            Copy of the updated RiskState
        """
        async with self.store.locked(caller_id) as state:
            self._reset_if_elapsed(state, self.clock.now())

            reserved = 0
            if reservation is not None and reservation.window_start_at == state.window_start_at:
                reserved = reservation.amount

            state.daily_loss_accumulated = max(
                0, state.daily_loss_accumulated - reserved + realized_loss
            )
            updated = replace(state)

        logger.debug(
            "Risk committed",
            extra={
                "context": {
                    "caller_id": caller_id,
                    "realized_loss": realized_loss,
                    "released_reservation": reserved,
                    "daily_loss_accumulated": updated.daily_loss_accumulated,
                }
            },
        )

        if self.kill_switch is not None:
            self.kill_switch.check_loss(caller_id, updated.daily_loss_accumulated)
        return updated

    async def release(self, reservation: RiskReservation) -> RiskState:
        """Drop a reservation for a trade that never executed."""
        return await self.commit(reservation.caller_id, 0, reservation)

    def get_state(self, caller_id: str) -> RiskState:
        """Copy of the caller's stored state (no window reset applied)."""
        return self.store.get(caller_id)
