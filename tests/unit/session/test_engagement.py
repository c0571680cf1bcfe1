# tests/unit/session/test_engagement.py
"""Tests for EngagementTracker and scroll depth computation."""

from collections.abc import Mapping
from typing import Any

import pytest

from pagepulse.contracts.enums import EventType
from pagepulse.core.clock import MockClock
from pagepulse.session.engagement import EngagementTracker, compute_scroll_depth
from pagepulse.session.state import SessionState


class EmitRecorder:
    """Records (event_type, payload) pairs emitted by the tracker."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Mapping[str, Any] | None]] = []
        self.forced_flushes = 0

    def emit(self, event_type: str, payload: Mapping[str, Any] | None) -> None:
        self.events.append((event_type, payload))

    def force_flush(self) -> None:
        self.forced_flushes += 1

    def of_type(self, event_type: str) -> list[Mapping[str, Any] | None]:
        return [payload for kind, payload in self.events if kind == event_type]


@pytest.fixture
def recorder() -> EmitRecorder:
    return EmitRecorder()


@pytest.fixture
def state(clock: MockClock) -> SessionState:
    return SessionState.begin(visitor_id="v-1", session_id="s-1", now=clock.monotonic())


@pytest.fixture
def tracker(state: SessionState, recorder: EmitRecorder, clock: MockClock) -> EngagementTracker:
    return EngagementTracker(state, recorder.emit, recorder.force_flush, clock=clock)


# =============================================================================
# Scroll depth computation
# =============================================================================


class TestComputeScrollDepth:
    @pytest.mark.parametrize(
        ("scroll_top", "document_height", "viewport_height", "expected"),
        [
            (0, 3000, 1000, 0),
            (1000, 3000, 1000, 50),
            (2000, 3000, 1000, 100),
            (666, 3000, 1000, 33),
            (1, 1008, 1000, 13),  # 12.5 rounds up
            (5, 1008, 1000, 63),  # 62.5 rounds up
            (2500, 3000, 1000, 100),  # overscroll clamps
            (-50, 3000, 1000, 0),  # rubber-band clamps
        ],
    )
    def test_depth_percentage(self, scroll_top: float, document_height: float, viewport_height: float, expected: int) -> None:
        assert compute_scroll_depth(scroll_top, document_height, viewport_height) == expected

    @pytest.mark.parametrize(("document_height", "viewport_height"), [(900, 900), (500, 900)])
    def test_non_scrollable_document_has_no_depth(self, document_height: float, viewport_height: float) -> None:
        assert compute_scroll_depth(0, document_height, viewport_height) is None


# =============================================================================
# Activity
# =============================================================================


class TestOnActivity:
    def test_first_activity_emits_activity_start_once(
        self, tracker: EngagementTracker, recorder: EmitRecorder, state: SessionState
    ) -> None:
        tracker.on_activity()
        tracker.on_activity()

        assert recorder.events == [(EventType.ACTIVITY_START, None)]
        assert state.is_active

    def test_interactions_count_every_signal(self, tracker: EngagementTracker, state: SessionState) -> None:
        for _ in range(5):
            tracker.on_activity()
        assert state.interactions == 5

    def test_gap_above_one_second_adds_active_time(self, tracker: EngagementTracker, state: SessionState, clock: MockClock) -> None:
        tracker.on_activity()
        clock.advance(2.5)
        tracker.on_activity()

        assert state.active_time_ms == 2500

    def test_gap_at_or_below_one_second_is_not_counted(
        self, tracker: EngagementTracker, state: SessionState, clock: MockClock
    ) -> None:
        tracker.on_activity()
        clock.advance(0.5)
        tracker.on_activity()
        clock.advance(1.0)
        tracker.on_activity()

        assert state.active_time_ms == 0
        assert state.last_active_time == clock.monotonic()

    def test_first_activity_counts_gap_since_session_start(
        self, tracker: EngagementTracker, state: SessionState, clock: MockClock
    ) -> None:
        clock.advance(3.0)
        tracker.on_activity()

        assert state.active_time_ms == 3000

    def test_half_millisecond_gap_rounds_up(self, tracker: EngagementTracker, state: SessionState, clock: MockClock) -> None:
        clock.advance(1.0625)
        tracker.on_activity()

        assert state.active_time_ms == 1063

    def test_activity_never_resets_is_active(self, tracker: EngagementTracker, state: SessionState, clock: MockClock) -> None:
        tracker.on_activity()
        clock.advance(600)
        tracker.on_activity()
        assert state.is_active


# =============================================================================
# Scroll
# =============================================================================


class TestOnScroll:
    def test_scroll_30_20_45_emits_30_and_45(self, tracker: EngagementTracker, recorder: EmitRecorder, state: SessionState) -> None:
        # document 1100, viewport 100: scroll_top == depth * 10
        for depth in (30, 20, 45):
            tracker.on_scroll(depth * 10, 1100, 100)

        assert recorder.of_type(EventType.SCROLL_DEPTH) == [{"depth": 30}, {"depth": 45}]
        assert state.max_scroll_depth == 45

    def test_equal_depth_is_not_emitted_again(self, tracker: EngagementTracker, recorder: EmitRecorder) -> None:
        tracker.on_scroll(500, 1100, 100)
        tracker.on_scroll(500, 1100, 100)
        assert len(recorder.of_type(EventType.SCROLL_DEPTH)) == 1

    def test_zero_depth_is_not_emitted(self, tracker: EngagementTracker, recorder: EmitRecorder) -> None:
        tracker.on_scroll(0, 1100, 100)
        assert recorder.events == []

    def test_non_scrollable_document_emits_nothing(self, tracker: EngagementTracker, recorder: EmitRecorder, state: SessionState) -> None:
        tracker.on_scroll(0, 800, 900)
        assert recorder.events == []
        assert state.max_scroll_depth == 0


# =============================================================================
# Visibility and exit
# =============================================================================


class TestVisibility:
    def test_hidden_emits_page_hide_with_times(
        self, tracker: EngagementTracker, recorder: EmitRecorder, clock: MockClock
    ) -> None:
        tracker.on_activity()
        clock.advance(2.0)
        tracker.on_activity()
        clock.advance(3.0)

        tracker.on_visibility_change(hidden=True)

        assert recorder.of_type(EventType.PAGE_HIDE) == [{"activeTime": 2000, "totalTime": 5000}]

    def test_shown_emits_page_show_without_payload(self, tracker: EngagementTracker, recorder: EmitRecorder) -> None:
        tracker.on_visibility_change(hidden=False)
        assert recorder.events == [(EventType.PAGE_SHOW, None)]


class TestOnExit:
    def test_emits_summary_then_forces_flush(self, recorder: EmitRecorder, state: SessionState, clock: MockClock) -> None:
        order: list[str] = []

        def emit(event_type: str, payload: Mapping[str, Any] | None) -> None:
            order.append(f"emit:{event_type}")
            recorder.emit(event_type, payload)

        tracker = EngagementTracker(state, emit, lambda: order.append("flush"), clock=clock)
        tracker.on_activity()
        clock.advance(1.5)
        tracker.on_activity()
        tracker.on_scroll(700, 1100, 100)
        clock.advance(0.5)

        tracker.on_exit()

        assert recorder.of_type(EventType.PAGE_EXIT) == [
            {"activeTime": 1500, "totalTime": 2000, "maxScrollDepth": 70, "interactions": 2}
        ]
        assert order[-2:] == [f"emit:{EventType.PAGE_EXIT}", "flush"]
