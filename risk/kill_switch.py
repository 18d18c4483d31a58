# PATH: risk/kill_switch.py
"""
Kill switch for emergency system pause.

Triggers:
- Manual trigger
- Emergency stop loss (a caller's daily loss reaching the configured level)

While active, the profit simulator marks every route as paused, so no
intent passes validation.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from core.logging import get_logger
from core.time import Clock, SystemClock, to_iso

logger = get_logger(__name__)


@dataclass
class KillSwitchTrigger:
    """Kill switch trigger event."""
    timestamp: str
    reason: str
    details: Optional[str] = None


class KillSwitch:
    """
    Process-wide pause flag.

    Starts released unless active=True. Released only explicitly.
    """

    def __init__(
        self,
        active: bool = False,
        emergency_stop_loss: Optional[int] = None,
        clock: Optional[Clock] = None,
    ):
        self._active = False
        self._emergency_stop_loss = emergency_stop_loss
        self._clock = clock or SystemClock()
        self._triggers: List[KillSwitchTrigger] = []

        if active:
            self._trigger("STARTED_PAUSED", "Kill switch active at startup")

    @property
    def is_active(self) -> bool:
        """Check if kill switch is triggered."""
        return self._active

    @property
    def can_execute(self) -> bool:
        """Check if execution is allowed."""
        return not self._active

    def _trigger(self, reason: str, details: Optional[str] = None) -> None:
        self._active = True
        self._triggers.append(KillSwitchTrigger(
            timestamp=to_iso(self._clock.now()),
            reason=reason,
            details=details,
        ))
        logger.warning(
            f"Kill switch triggered: {reason}",
            extra={"context": {"reason": reason, "details": details}},
        )

    def check_loss(self, caller_id: str, daily_loss: int) -> bool:
        """
        Trip the switch if a caller's daily loss reached the emergency level.

        Returns:
            False if the switch tripped
        """
        if self._emergency_stop_loss is None:
            return True
        if daily_loss >= self._emergency_stop_loss:
            self._trigger(
                "EMERGENCY_STOP_LOSS",
                f"Caller {caller_id} daily loss {daily_loss} >= {self._emergency_stop_loss}",
            )
            return False
        return True

    def manual_trigger(self, reason: str = "MANUAL") -> None:
        """Manually trigger kill switch."""
        self._trigger(reason, "Manually triggered")

    def release(self) -> None:
        """Release kill switch."""
        if self._active:
            logger.info("Kill switch released")
        self._active = False

    def get_status(self) -> Dict[str, Any]:
        return {
            "active": self._active,
            "can_execute": self.can_execute,
            "emergency_stop_loss": self._emergency_stop_loss,
            "triggers": [
                {"timestamp": t.timestamp, "reason": t.reason, "details": t.details}
                for t in self._triggers[-5:]  # Last 5 triggers
            ],
        }
