# src/pagepulse/session/state.py
"""Session state for one collector lifecycle.

Holds identity and engagement accumulators. Mutated only by the
EngagementTracker; event construction reads it but never writes.
Discarded when the session ends. Only visitor_id outlives it, and that
lives in the VisitorStore, not here.
"""

import math
from dataclasses import dataclass


def round_half_up(value: float) -> int:
    """Round to the nearest integer, with .5 always going up."""
    return math.floor(value + 0.5)


@dataclass(slots=True)
class SessionState:
    """Identity and engagement accumulators for a single session.

    Attributes:
        visitor_id: Long-lived client identity (read once at construction)
        session_id: Fresh identity for this lifecycle
        start_time: Monotonic seconds at session start
        last_active_time: Monotonic seconds of the latest activity signal
        active_time_ms: Accumulated engaged time, never decreases
        is_active: Set on first activity signal, never reset
        interactions: Activity signal count, never decreases
        max_scroll_depth: Deepest scroll percentage seen, in [0, 100]
    """

    visitor_id: str
    session_id: str
    start_time: float
    last_active_time: float
    active_time_ms: int = 0
    is_active: bool = False
    interactions: int = 0
    max_scroll_depth: int = 0

    @classmethod
    def begin(cls, visitor_id: str, session_id: str, now: float) -> "SessionState":
        """Create state for a session starting at monotonic time `now`."""
        return cls(
            visitor_id=visitor_id,
            session_id=session_id,
            start_time=now,
            last_active_time=now,
        )

    def total_time_ms(self, now: float) -> int:
        """Wall time since session start in milliseconds."""
        return max(0, round_half_up((now - self.start_time) * 1000))
