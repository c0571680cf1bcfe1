# tests/unit/core/test_visitor_identity.py
"""Tests for id generation and visitor id persistence."""

import uuid
from pathlib import Path

from structlog.testing import capture_logs

from pagepulse.core.identity import (
    VISITOR_ID_KEY,
    InMemoryVisitorStore,
    JsonFileVisitorStore,
    generate_id,
    load_or_create_visitor_id,
)


class CountingStore(InMemoryVisitorStore):
    def __init__(self, initial: dict[str, str] | None = None) -> None:
        super().__init__(initial)
        self.gets = 0
        self.sets = 0

    def get(self, key: str) -> str | None:
        self.gets += 1
        return super().get(key)

    def set(self, key: str, value: str) -> None:
        self.sets += 1
        super().set(key, value)


class TestGenerateId:
    def test_is_uuid4(self) -> None:
        assert uuid.UUID(generate_id()).version == 4

    def test_ids_are_unique(self) -> None:
        assert len({generate_id() for _ in range(100)}) == 100


class TestLoadOrCreateVisitorId:
    def test_existing_id_is_reused_without_write(self) -> None:
        store = CountingStore({VISITOR_ID_KEY: "returning-visitor"})

        assert load_or_create_visitor_id(store) == "returning-visitor"
        assert store.gets == 1
        assert store.sets == 0

    def test_absent_id_is_created_and_persisted_once(self) -> None:
        store = CountingStore()

        visitor_id = load_or_create_visitor_id(store, lambda: "new-visitor")

        assert visitor_id == "new-visitor"
        assert store.get(VISITOR_ID_KEY) == "new-visitor"
        assert store.sets == 1


class TestJsonFileVisitorStore:
    def test_round_trip_persists_across_instances(self, tmp_path: Path) -> None:
        path = tmp_path / "state" / "visitor.json"
        JsonFileVisitorStore(path).set(VISITOR_ID_KEY, "abc")

        assert JsonFileVisitorStore(path).get(VISITOR_ID_KEY) == "abc"
        assert path.parent.is_dir()

    def test_missing_file_reads_as_empty(self, tmp_path: Path) -> None:
        assert JsonFileVisitorStore(tmp_path / "absent.json").get(VISITOR_ID_KEY) is None

    def test_corrupt_file_reads_as_empty_and_warns(self, tmp_path: Path) -> None:
        path = tmp_path / "visitor.json"
        path.write_text("{not json", encoding="utf-8")

        with capture_logs() as logs:
            assert JsonFileVisitorStore(path).get(VISITOR_ID_KEY) is None

        assert logs[0]["log_level"] == "warning"

    def test_non_object_file_reads_as_empty(self, tmp_path: Path) -> None:
        path = tmp_path / "visitor.json"
        path.write_text("[1, 2]", encoding="utf-8")

        assert JsonFileVisitorStore(path).get(VISITOR_ID_KEY) is None

    def test_set_preserves_other_keys(self, tmp_path: Path) -> None:
        store = JsonFileVisitorStore(tmp_path / "visitor.json")
        store.set("other", "1")
        store.set(VISITOR_ID_KEY, "abc")

        assert store.get("other") == "1"
        assert store.path == tmp_path / "visitor.json"
