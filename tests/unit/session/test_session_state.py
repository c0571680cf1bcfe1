# tests/unit/session/test_session_state.py
"""Tests for SessionState."""

import pytest

from pagepulse.session.state import SessionState, round_half_up


class TestRoundHalfUp:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (0.5, 1),
            (2.5, 3),
            (62.5, 63),
            (3.4, 3),
            (3.6, 4),
            (0.0, 0),
        ],
    )
    def test_halves_round_up(self, value: float, expected: int) -> None:
        assert round_half_up(value) == expected


class TestSessionState:
    def test_begin_initializes_accumulators(self) -> None:
        state = SessionState.begin(visitor_id="v", session_id="s", now=42.0)

        assert state.start_time == 42.0
        assert state.last_active_time == 42.0
        assert state.active_time_ms == 0
        assert not state.is_active
        assert state.interactions == 0
        assert state.max_scroll_depth == 0

    def test_total_time_ms(self) -> None:
        state = SessionState.begin(visitor_id="v", session_id="s", now=10.0)
        assert state.total_time_ms(12.3456) == 2346

    def test_total_time_half_millisecond_rounds_up(self) -> None:
        state = SessionState.begin(visitor_id="v", session_id="s", now=10.0)
        assert state.total_time_ms(10.0625) == 63

    def test_total_time_never_negative(self) -> None:
        state = SessionState.begin(visitor_id="v", session_id="s", now=10.0)
        assert state.total_time_ms(5.0) == 0
