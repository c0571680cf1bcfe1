# src/pagepulse/core/clock.py
"""Clock abstraction for testable time-dependent logic.

Engagement accounting (active time, total time) and the connection probe
measure elapsed time; events carry a wall-clock timestamp. Both go through
a Clock so tests can control time without sleep().

Production code uses SystemClock (the default).
Tests inject MockClock to control time advancement.
"""

from __future__ import annotations

import time
from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Abstract clock.

    Implementations:
    - SystemClock: time.monotonic() and datetime.now(UTC) (production)
    - MockClock: Returns controllable times (testing)
    """

    def monotonic(self) -> float:
        """Return monotonic time in seconds.

        Must never go backwards. Used for elapsed-time calculations only.
        """
        ...

    def now(self) -> datetime:
        """Return the current wall-clock instant as an aware UTC datetime."""
        ...


class SystemClock:
    """Production clock backed by the system monotonic and wall clocks."""

    def monotonic(self) -> float:
        """Return system monotonic time."""
        return time.monotonic()

    def now(self) -> datetime:
        """Return the current UTC time."""
        return datetime.now(UTC)


class MockClock:
    """Controllable clock for deterministic testing.

    Wall-clock time moves in lockstep with monotonic time, starting from
    `wall_start`.

    Example:
        clock = MockClock()
        tracker = EngagementTracker(state, emit, clock=clock)

        tracker.on_activity()
        clock.advance(2.5)
        tracker.on_activity()
        assert state.active_time_ms == 2500
    """

    def __init__(self, start: float = 0.0, wall_start: datetime | None = None) -> None:
        """Initialize mock clock.

        Args:
            start: Initial monotonic time value (default 0.0).
            wall_start: Wall-clock instant matching `start`
                (default 2026-01-01T00:00:00Z).
        """
        self._start = start
        self._current = start
        self._wall_start = wall_start if wall_start is not None else datetime(2026, 1, 1, tzinfo=UTC)

    def monotonic(self) -> float:
        """Return current mock time."""
        return self._current

    def now(self) -> datetime:
        """Return the wall-clock instant matching the current mock time."""
        return self._wall_start + timedelta(seconds=self._current - self._start)

    def advance(self, seconds: float) -> None:
        """Advance mock time by specified seconds.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError(f"Cannot advance time by negative amount: {seconds}")
        self._current += seconds


# Default clock for production use
DEFAULT_CLOCK: Clock = SystemClock()
