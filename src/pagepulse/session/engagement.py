# src/pagepulse/session/engagement.py
"""Engagement tracking: turns raw activity signals into session state and events.

Signal categories handled here:
- activity (pointer, keyboard, click): first-activity event, active time,
  interaction count
- scroll position: monotonic maximum depth, scroll_depth events
- visibility change: page_hide / page_show
- exit: page_exit summary, then a forced flush

Active time measures engaged time, not wall-clock time. It only grows when
a new activity signal arrives, by the gap since the previous one, and only
when that gap exceeds ACTIVITY_GAP_SECONDS. A dormant tab therefore never
inflates it; long idle gaps are counted once, on the next signal.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

import structlog

from pagepulse.contracts.enums import EventType
from pagepulse.core.clock import DEFAULT_CLOCK
from pagepulse.session.state import round_half_up

if TYPE_CHECKING:
    from pagepulse.core.clock import Clock
    from pagepulse.session.state import SessionState

logger = structlog.get_logger(__name__)

EmitCallback = Callable[[str, Mapping[str, Any] | None], None]

# Gaps at or below this are treated as continuous activity and not accumulated
ACTIVITY_GAP_SECONDS = 1.0


def compute_scroll_depth(scroll_top: float, document_height: float, viewport_height: float) -> int | None:
    """Return scroll depth as a percentage in [0, 100].

    Returns None when the document does not scroll (no depth is defined).
    """
    scrollable = document_height - viewport_height
    if scrollable <= 0:
        return None
    depth = round_half_up(max(0.0, scroll_top) / scrollable * 100)
    return min(100, depth)


class EngagementTracker:
    """Consumes raw signals, updates SessionState and emits derived events.

    The tracker does not know about the queue. It emits through `emit`
    (normally Collector.track) and asks for the exit flush through
    `on_forced_flush`.

    Thread Safety:
        NOT thread-safe. The Collector serializes signal delivery.
    """

    def __init__(
        self,
        state: SessionState,
        emit: EmitCallback,
        on_forced_flush: Callable[[], None],
        *,
        clock: Clock | None = None,
    ) -> None:
        self._state = state
        self._emit = emit
        self._on_forced_flush = on_forced_flush
        self._clock = clock if clock is not None else DEFAULT_CLOCK

    @property
    def state(self) -> SessionState:
        return self._state

    def on_activity(self) -> None:
        """Handle a pointer, keyboard or click signal."""
        state = self._state
        now = self._clock.monotonic()

        if not state.is_active:
            state.is_active = True
            self._emit(EventType.ACTIVITY_START, None)

        elapsed = now - state.last_active_time
        if elapsed > ACTIVITY_GAP_SECONDS:
            state.active_time_ms += round_half_up(elapsed * 1000)

        state.last_active_time = now
        state.interactions += 1

    def on_scroll(self, scroll_top: float, document_height: float, viewport_height: float) -> None:
        """Handle a scroll position signal.

        Emits scroll_depth only when the depth exceeds the session maximum.
        """
        depth = compute_scroll_depth(scroll_top, document_height, viewport_height)
        if depth is None or depth <= self._state.max_scroll_depth:
            return
        self._state.max_scroll_depth = depth
        self._emit(EventType.SCROLL_DEPTH, {"depth": depth})

    def on_visibility_change(self, hidden: bool) -> None:
        """Handle the document becoming hidden or visible again."""
        if hidden:
            self._emit(
                EventType.PAGE_HIDE,
                {
                    "activeTime": self._state.active_time_ms,
                    "totalTime": self._state.total_time_ms(self._clock.monotonic()),
                },
            )
        else:
            self._emit(EventType.PAGE_SHOW, None)

    def on_exit(self) -> None:
        """Handle the session ending: emit the summary, then force a flush."""
        state = self._state
        self._emit(
            EventType.PAGE_EXIT,
            {
                "activeTime": state.active_time_ms,
                "totalTime": state.total_time_ms(self._clock.monotonic()),
                "maxScrollDepth": state.max_scroll_depth,
                "interactions": state.interactions,
            },
        )
        logger.debug(
            "Session exit",
            session_id=state.session_id,
            active_time_ms=state.active_time_ms,
            interactions=state.interactions,
        )
        self._on_forced_flush()
