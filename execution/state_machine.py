# PATH: execution/state_machine.py
"""
Intent lifecycle state machine.

Stages:
- RECEIVED: Accepted for processing
- QUOTING: Route fan-out across venues
- VALIDATING: Pool snapshot + profit simulation
- RISK_CHECKING: Loss limits and reservation
- SELECTING: Flash-loan provider choice
- EXECUTING: Flash loan with fallback
- SETTLING: Ledger settlement
- COMPLETED / REJECTED / FAILED: Terminal

Every move into a working stage first checks now <= deadline and raises
ExpiredError otherwise. Moves into a terminal stage are always allowed
from a working stage, so an expired intent can still be closed out.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple

from core.constants import ExecutionStatus
from core.exceptions import ExecutionFailedError, ExpiredError
from core.models import ArbitrageIntent
from core.time import Clock, SystemClock, is_expired


class IntentStage(str, Enum):
    RECEIVED = "RECEIVED"
    QUOTING = "QUOTING"
    VALIDATING = "VALIDATING"
    RISK_CHECKING = "RISK_CHECKING"
    SELECTING = "SELECTING"
    EXECUTING = "EXECUTING"
    SETTLING = "SETTLING"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"


TERMINAL_STAGES = (IntentStage.COMPLETED, IntentStage.REJECTED, IntentStage.FAILED)

_CLOSE = (IntentStage.REJECTED, IntentStage.FAILED)

VALID_TRANSITIONS: Dict[IntentStage, Tuple[IntentStage, ...]] = {
    IntentStage.RECEIVED: (IntentStage.QUOTING,) + _CLOSE,
    IntentStage.QUOTING: (IntentStage.VALIDATING,) + _CLOSE,
    IntentStage.VALIDATING: (IntentStage.RISK_CHECKING,) + _CLOSE,
    IntentStage.RISK_CHECKING: (IntentStage.SELECTING,) + _CLOSE,
    IntentStage.SELECTING: (IntentStage.EXECUTING,) + _CLOSE,
    IntentStage.EXECUTING: (IntentStage.SETTLING,) + _CLOSE,
    IntentStage.SETTLING: (IntentStage.COMPLETED,) + _CLOSE,
    IntentStage.COMPLETED: (),
    IntentStage.REJECTED: (),
    IntentStage.FAILED: (),
}

STATUS_BY_STAGE = {
    IntentStage.COMPLETED: ExecutionStatus.COMPLETED,
    IntentStage.REJECTED: ExecutionStatus.REJECTED,
    IntentStage.FAILED: ExecutionStatus.FAILED,
}


class IntentStateMachine:
    """Stage tracker for one intent."""

    def __init__(self, intent: ArbitrageIntent, clock: Optional[Clock] = None):
        self._intent = intent
        self._clock = clock or SystemClock()
        self._stage = IntentStage.RECEIVED
        self._history: List[IntentStage] = [IntentStage.RECEIVED]
        # Last working stage reached, kept after closing for reporting
        self._last_working = IntentStage.RECEIVED

    @property
    def stage(self) -> IntentStage:
        return self._stage

    @property
    def last_working_stage(self) -> IntentStage:
        return self._last_working

    @property
    def history(self) -> Tuple[IntentStage, ...]:
        return tuple(self._history)

    @property
    def is_terminal(self) -> bool:
        return self._stage in TERMINAL_STAGES

    def can_transition_to(self, target: IntentStage) -> bool:
        """Check if transition is allowed."""
        return target in VALID_TRANSITIONS.get(self._stage, ())

    def check_deadline(self) -> None:
        """Raise ExpiredError if the intent deadline has passed."""
        now = self._clock.now()
        if is_expired(self._intent.deadline, now):
            raise ExpiredError(
                f"Intent expired before {self._stage.value} could proceed",
                details={
                    "intent_id": self._intent.id,
                    "deadline": self._intent.deadline,
                    "now": now,
                    "stage": self._stage.value,
                },
            )

    def advance(self, target: IntentStage) -> None:
        """
        Move to the next working stage.

        Raises:
            ExpiredError: Deadline passed
            ExecutionFailedError: Transition not allowed
        """
        self.check_deadline()
        if target in TERMINAL_STAGES or not self.can_transition_to(target):
            raise ExecutionFailedError(
                f"Invalid transition: {self._stage.value} -> {target.value}",
                details={"intent_id": self._intent.id},
            )
        self._stage = target
        self._last_working = target
        self._history.append(target)

    def close(self, terminal: IntentStage) -> ExecutionStatus:
        """
        Move to a terminal stage.

        Returns:
            Matching ExecutionStatus
        """
        if terminal not in TERMINAL_STAGES or not self.can_transition_to(terminal):
            raise ExecutionFailedError(
                f"Invalid transition: {self._stage.value} -> {terminal.value}",
                details={"intent_id": self._intent.id},
            )
        self._stage = terminal
        self._history.append(terminal)
        return STATUS_BY_STAGE[terminal]

    def to_dict(self) -> dict:
        return {
            "intent_id": self._intent.id,
            "stage": self._stage.value,
            "history": [s.value for s in self._history],
        }
