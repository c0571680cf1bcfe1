# src/pagepulse/contracts/enums.py
"""Event type tags and flush trigger kinds used across subsystem boundaries."""

from enum import StrEnum


class EventType(StrEnum):
    """Tags for events emitted by the collector itself.

    Hosts may track arbitrary tags via Collector.track(); these are the
    ones produced by the engagement tracker and page collaborators.
    """

    PAGEVIEW = "pageview"
    ACTIVITY_START = "activity_start"
    SCROLL_DEPTH = "scroll_depth"
    PAGE_HIDE = "page_hide"
    PAGE_SHOW = "page_show"
    PAGE_EXIT = "page_exit"
    PERFORMANCE = "performance"
    CONNECTION_SPEED = "connection_speed"


class FlushTrigger(StrEnum):
    """What initiated a flush attempt.

    Recorded in delivery logs so failures can be correlated with the
    trigger that caused them.
    """

    THRESHOLD = "threshold"
    TIMER = "timer"
    FORCED = "forced"
    MANUAL = "manual"
