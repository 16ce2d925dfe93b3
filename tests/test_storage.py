"""Tests for the in-memory and SQL stores."""

import pytest

from bundle_scheduler.errors import NotFoundError
from bundle_scheduler.sql_store import SqlStore
from bundle_scheduler.storage import InMemoryStore, Kind


def _make_sql_store() -> SqlStore:
    store = SqlStore("sqlite+pysqlite:///:memory:")
    store.setup()
    return store


@pytest.fixture(params=["memory", "sql"])
def store(request):
    if request.param == "memory":
        return InMemoryStore()
    return _make_sql_store()


class TestStore:
    """Behaviour shared by every store implementation."""

    def test_create_assigns_id_and_timestamps(self, store):
        record = store.create(Kind.TASK, {"description": "Write draft", "date": "2026-04-15"})
        assert record["id"]
        assert record["created_at"]
        assert record["updated_at"] == record["created_at"]
        assert record["description"] == "Write draft"

    def test_get(self, store):
        record = store.create(Kind.BUNDLE, {"title": "Event"})
        assert store.get(Kind.BUNDLE, record["id"]) == record

    def test_get_missing_returns_none(self, store):
        assert store.get(Kind.BUNDLE, "missing") is None

    def test_kinds_are_separate(self, store):
        record = store.create(Kind.BUNDLE, {"title": "Event"})
        assert store.get(Kind.TASK, record["id"]) is None
        assert store.scan(Kind.TASK) == []

    def test_update_merges_fields(self, store):
        record = store.create(Kind.BUNDLE, {"title": "Event", "stage": "preparation"})
        updated = store.update(Kind.BUNDLE, record["id"], {"stage": "announced"})
        assert updated["stage"] == "announced"
        assert updated["title"] == "Event"
        assert store.get(Kind.BUNDLE, record["id"])["stage"] == "announced"

    def test_update_missing_raises(self, store):
        with pytest.raises(NotFoundError):
            store.update(Kind.BUNDLE, "missing", {"stage": "done"})

    def test_scan_with_predicate(self, store):
        store.create(Kind.TASK, {"description": "a", "source": "recurring"})
        store.create(Kind.TASK, {"description": "b", "source": "manual"})
        store.create(Kind.TASK, {"description": "c", "source": "recurring"})

        found = store.scan(Kind.TASK, lambda r: r["source"] == "recurring")

        assert sorted(r["description"] for r in found) == ["a", "c"]
        assert len(store.scan(Kind.TASK)) == 3


class TestInMemoryStore:
    def test_returned_records_are_copies(self):
        store = InMemoryStore()
        record = store.create(Kind.TEMPLATE, {"name": "Event", "tags": ["a"]})
        record["tags"].append("b")
        assert store.get(Kind.TEMPLATE, record["id"])["tags"] == ["a"]


class TestSqlStore:
    def test_setup_is_idempotent(self):
        store = _make_sql_store()
        store.setup()
        store.create(Kind.TASK, {"description": "x"})
        store.setup()
        assert len(store.scan(Kind.TASK)) == 1

    def test_setup_creates_sqlite_directory(self, tmp_path):
        db_path = tmp_path / "nested" / "bundles.db"
        store = SqlStore(f"sqlite+pysqlite:///{db_path}")
        store.setup()
        store.create(Kind.TASK, {"description": "x"})
        assert db_path.exists()

    def test_nested_values_survive(self):
        store = _make_sql_store()
        record = store.create(Kind.BUNDLE, {"bundle_links": [{"name": "Draft", "url": ""}]})
        assert store.get(Kind.BUNDLE, record["id"])["bundle_links"] == [{"name": "Draft", "url": ""}]
