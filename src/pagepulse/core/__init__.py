# src/pagepulse/core/__init__.py
"""Core infrastructure: Configuration, Clock, Identity, Logging."""

from pagepulse.core.clock import DEFAULT_CLOCK, Clock, MockClock, SystemClock
from pagepulse.core.config import CollectorSettings, load_settings
from pagepulse.core.identity import (
    VISITOR_ID_KEY,
    InMemoryVisitorStore,
    JsonFileVisitorStore,
    VisitorStore,
    generate_id,
    load_or_create_visitor_id,
)
from pagepulse.core.logging import configure_logging, get_logger

__all__ = [
    "DEFAULT_CLOCK",
    "VISITOR_ID_KEY",
    "Clock",
    "CollectorSettings",
    "InMemoryVisitorStore",
    "JsonFileVisitorStore",
    "MockClock",
    "SystemClock",
    "VisitorStore",
    "configure_logging",
    "generate_id",
    "get_logger",
    "load_or_create_visitor_id",
    "load_settings",
]
