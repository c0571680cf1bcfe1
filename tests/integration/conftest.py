# tests/integration/conftest.py
"""Shared fixtures for integration tests.

Integration tests run real threads (the delivery worker, beacon senders)
and the CLI end to end. HTTP is mocked with respx; nothing leaves the
process.
"""

from collections.abc import Callable
from pathlib import Path

import pytest
import yaml


@pytest.fixture
def write_settings(tmp_path: Path) -> Callable[..., Path]:
    """Write a settings YAML file from keyword arguments and return its path."""

    def _write(**values: object) -> Path:
        path = tmp_path / "settings.yaml"
        path.write_text(yaml.dump(values), encoding="utf-8")
        return path

    return _write
