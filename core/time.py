# PATH: core/time.py
"""
Time utilities for flashroute.

Deadlines and risk windows are Unix timestamps in seconds (float).
Components take a Clock so tests can pin and advance time.
"""

import time
from datetime import datetime, timezone
from typing import Optional, Protocol, runtime_checkable


def now_utc() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def now_iso() -> str:
    """Get current UTC datetime as ISO string."""
    return now_utc().isoformat()


def now_timestamp() -> float:
    """Get current Unix timestamp."""
    return time.time()


def now_ms() -> int:
    """Get current Unix timestamp in milliseconds."""
    return int(time.time() * 1000)


def to_iso(timestamp: float) -> str:
    """Format a Unix timestamp as a UTC ISO string."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


@runtime_checkable
class Clock(Protocol):
    """Source of the current Unix timestamp."""

    def now(self) -> float:
        ...


class SystemClock:
    """Production clock backed by time.time()."""

    def now(self) -> float:
        return time.time()


class ManualClock:
    """Deterministic clock for tests and replays."""

    def __init__(self, start: float = 1_767_225_600.0):  # 2026-01-01
        self._now = start

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        """Move time forward."""
        self._now += seconds

    def set(self, timestamp: float) -> None:
        """Jump to an absolute timestamp."""
        self._now = timestamp


def is_expired(
    deadline: float,
    current_time: Optional[float] = None,
) -> bool:
    """
    Check whether a deadline has passed.

    A deadline equal to the current time is still valid (now <= deadline).

    Args:
        deadline: Unix timestamp
        current_time: Current time (defaults to now)

    Returns:
        True if now > deadline
    """
    current = time.time() if current_time is None else current_time
    return current > deadline


def window_elapsed(
    window_start: float,
    window_seconds: float,
    current_time: float,
) -> bool:
    """True once strictly more than window_seconds have passed since window_start."""
    return current_time - window_start > window_seconds
