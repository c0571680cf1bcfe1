# tests/conftest.py
"""Shared test fixtures and hypothesis configuration.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/property/
"""

from __future__ import annotations

import itertools
import logging
import os
from collections.abc import Callable, Iterator

import pytest
import structlog
from hypothesis import Phase, Verbosity, settings

from pagepulse.core.clock import MockClock
from pagepulse.core.config import CollectorSettings
from pagepulse.core.identity import InMemoryVisitorStore
from tests.fixtures.transports import RecordingBeacon, RecordingTransport

settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


@pytest.fixture(autouse=True)
def _restore_logging() -> Iterator[None]:
    """Undo logging configuration done by CLI tests."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.fixture
def clock() -> MockClock:
    return MockClock(start=100.0)


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def beacon() -> RecordingBeacon:
    return RecordingBeacon()


@pytest.fixture
def visitor_store() -> InMemoryVisitorStore:
    return InMemoryVisitorStore()


@pytest.fixture
def collector_settings() -> CollectorSettings:
    return CollectorSettings(
        endpoint="https://collect.example.com/",
        domain_id="site-test",
        batch_size=3,
        batch_interval=60_000,
    )


@pytest.fixture
def id_factory() -> Callable[[], str]:
    """Deterministic ids: id-1, id-2, ..."""
    counter = itertools.count(1)
    return lambda: f"id-{next(counter)}"
