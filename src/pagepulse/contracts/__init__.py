# src/pagepulse/contracts/__init__.py
"""Shared contracts crossing subsystem boundaries."""

from pagepulse.contracts.enums import EventType, FlushTrigger
from pagepulse.contracts.events import ENVELOPE_KEYS, Event

__all__ = [
    "ENVELOPE_KEYS",
    "Event",
    "EventType",
    "FlushTrigger",
]
