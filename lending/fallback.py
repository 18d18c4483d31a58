# PATH: lending/fallback.py
"""
Flash-loan fallback state machine.

States:
- SELECTED: Primary provider chosen, nothing attempted yet
- ATTEMPTING: A provider's execute() is in flight
- ATTEMPT_FAILED: The last attempt failed
- NEXT_FALLBACK: Moving to the next provider in the fallback list
- SUCCEEDED: A provider executed (terminal)
- EXHAUSTED: No provider left or attempt budget spent (terminal)

    SELECTED -> ATTEMPTING -> SUCCEEDED
                    |
                    v
             ATTEMPT_FAILED -> NEXT_FALLBACK -> ATTEMPTING ...
                    |               |
                    v               v
                EXHAUSTED       EXHAUSTED
"""

from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from core.models import LoanQuote


class FallbackState(str, Enum):
    SELECTED = "SELECTED"
    ATTEMPTING = "ATTEMPTING"
    ATTEMPT_FAILED = "ATTEMPT_FAILED"
    NEXT_FALLBACK = "NEXT_FALLBACK"
    SUCCEEDED = "SUCCEEDED"
    EXHAUSTED = "EXHAUSTED"


VALID_TRANSITIONS: Dict[FallbackState, Tuple[FallbackState, ...]] = {
    # SELECTED -> NEXT_FALLBACK / EXHAUSTED when the primary is not usable
    FallbackState.SELECTED: (
        FallbackState.ATTEMPTING,
        FallbackState.NEXT_FALLBACK,
        FallbackState.EXHAUSTED,
    ),
    FallbackState.ATTEMPTING: (FallbackState.SUCCEEDED, FallbackState.ATTEMPT_FAILED),
    FallbackState.ATTEMPT_FAILED: (FallbackState.NEXT_FALLBACK, FallbackState.EXHAUSTED),
    FallbackState.NEXT_FALLBACK: (FallbackState.ATTEMPTING, FallbackState.EXHAUSTED),
    FallbackState.SUCCEEDED: (),
    FallbackState.EXHAUSTED: (),
}

TERMINAL_STATES = (FallbackState.SUCCEEDED, FallbackState.EXHAUSTED)


class FallbackStateMachine:
    """Tracks one execute_with_fallback run."""

    def __init__(self):
        self._state = FallbackState.SELECTED
        self._history: List[FallbackState] = [FallbackState.SELECTED]
        self._error_reason: Optional[str] = None

    @property
    def state(self) -> FallbackState:
        return self._state

    @property
    def history(self) -> Tuple[FallbackState, ...]:
        return tuple(self._history)

    @property
    def error_reason(self) -> Optional[str]:
        return self._error_reason

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    def can_transition_to(self, target: FallbackState) -> bool:
        """Check if transition is allowed."""
        return target in VALID_TRANSITIONS.get(self._state, ())

    def transition_to(self, target: FallbackState) -> bool:
        """Attempt state transition."""
        if not self.can_transition_to(target):
            self._error_reason = f"Invalid transition: {self._state.value} -> {target.value}"
            return False

        self._state = target
        self._history.append(target)
        self._error_reason = None
        return True

    def to_dict(self) -> dict:
        return {
            "state": self._state.value,
            "history": [s.value for s in self._history],
            "error_reason": self._error_reason,
        }


def build_fallback_order(
    primary_id: Optional[str],
    quotes: Mapping[str, LoanQuote],
    configured_order: Sequence[str] = (),
) -> List[str]:
    """
    Fallback providers to try after the primary, in order.

    Uses the configured order when given, otherwise ascending fee (ties by
    provider id). Unavailable providers and the primary are left out.

    Args:
        primary_id: Provider tried first
        quotes: provider_id -> LoanQuote for this asset and amount
        configured_order: Explicit fallback order

    Returns:
        Ordered provider ids
    """
    if configured_order:
        candidates: Iterable[str] = configured_order
    else:
        candidates = [
            q.provider_id
            for q in sorted(quotes.values(), key=lambda q: (q.fee, q.provider_id))
        ]

    order: List[str] = []
    for provider_id in candidates:
        quote = quotes.get(provider_id)
        if provider_id == primary_id or provider_id in order:
            continue
        if quote is None or not quote.available:
            continue
        order.append(provider_id)
    return order
