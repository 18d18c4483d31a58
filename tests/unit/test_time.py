# PATH: tests/unit/test_time.py
"""
Unit tests for time utilities.
"""

import unittest

from core.time import (
    Clock,
    ManualClock,
    SystemClock,
    is_expired,
    now_iso,
    now_ms,
    now_timestamp,
    now_utc,
    to_iso,
    window_elapsed,
)


class TestNowFunctions(unittest.TestCase):
    """Tests for now_* functions."""

    def test_now_utc(self):
        """now_utc returns datetime."""
        dt = now_utc()
        self.assertIsNotNone(dt.tzinfo)

    def test_now_iso(self):
        """now_iso returns ISO string."""
        iso = now_iso()
        self.assertIn("T", iso)
        self.assertIn("+", iso)  # Has timezone

    def test_now_timestamp(self):
        """now_timestamp returns float."""
        ts = now_timestamp()
        self.assertIsInstance(ts, float)
        self.assertGreater(ts, 0)

    def test_now_ms(self):
        self.assertGreater(now_ms(), 1_700_000_000_000)

    def test_to_iso(self):
        self.assertEqual(to_iso(1_767_225_600.0), "2026-01-01T00:00:00+00:00")


class TestClocks(unittest.TestCase):
    """Tests for Clock implementations."""

    def test_manual_clock(self):
        clock = ManualClock()
        start = clock.now()

        clock.advance(30)
        self.assertEqual(clock.now(), start + 30)

        clock.set(5.0)
        self.assertEqual(clock.now(), 5.0)

    def test_protocol(self):
        self.assertIsInstance(ManualClock(), Clock)
        self.assertIsInstance(SystemClock(), Clock)


class TestDeadlines(unittest.TestCase):
    """Tests for deadline and window checks."""

    def test_deadline_inclusive(self):
        """A deadline equal to now is still valid."""
        self.assertFalse(is_expired(100.0, current_time=100.0))
        self.assertTrue(is_expired(100.0, current_time=100.001))

    def test_window_elapsed_strict(self):
        self.assertFalse(window_elapsed(0.0, 86_400, 86_400.0))
        self.assertTrue(window_elapsed(0.0, 86_400, 86_400.5))


if __name__ == "__main__":
    unittest.main()
