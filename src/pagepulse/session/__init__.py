# src/pagepulse/session/__init__.py
"""Session state and engagement tracking."""

from pagepulse.session.engagement import ACTIVITY_GAP_SECONDS, EngagementTracker, compute_scroll_depth
from pagepulse.session.state import SessionState

__all__ = [
    "ACTIVITY_GAP_SECONDS",
    "EngagementTracker",
    "SessionState",
    "compute_scroll_depth",
]
