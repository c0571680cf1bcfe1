# src/pagepulse/core/identity.py
"""Visitor and session identifiers.

The visitor id is the only state that survives a reload: it is read once
from client-local persistent storage when a collector is constructed and
written once if absent. Session ids are fresh per collector instance.
"""

from __future__ import annotations

import json
import threading
import uuid
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger(__name__)

VISITOR_ID_KEY = "_pp_vid"


def generate_id() -> str:
    """Return a random RFC 4122 version 4 identifier."""
    return str(uuid.uuid4())


class VisitorStore(Protocol):
    """Client-local key/value persistence for identifiers."""

    def get(self, key: str) -> str | None:
        """Return the stored value, or None if absent."""
        ...

    def set(self, key: str, value: str) -> None:
        """Persist a value under key."""
        ...


class InMemoryVisitorStore:
    """Non-persistent store. Each process sees a new visitor."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = value


class JsonFileVisitorStore:
    """Store backed by a small JSON object on disk.

    The file is read on every get() and rewritten on every set(); it holds a
    handful of keys at most. A missing or unreadable file reads as empty.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Visitor store unreadable, starting empty", path=str(self._path), error=str(e))
            return {}
        if not isinstance(data, dict):
            logger.warning("Visitor store is not a JSON object, starting empty", path=str(self._path))
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(data, sort_keys=True), encoding="utf-8")


def load_or_create_visitor_id(
    store: VisitorStore,
    id_factory: Callable[[], str] = generate_id,
) -> str:
    """Read the persisted visitor id, creating and persisting one if absent.

    Args:
        store: Client-local persistent storage
        id_factory: Generator for new ids (injectable for tests)

    Returns:
        The visitor id for this client.
    """
    visitor_id = store.get(VISITOR_ID_KEY)
    if visitor_id:
        return visitor_id
    visitor_id = id_factory()
    store.set(VISITOR_ID_KEY, visitor_id)
    logger.debug("Created visitor id", visitor_id=visitor_id)
    return visitor_id
