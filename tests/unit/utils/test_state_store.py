from pathlib import Path

import pytest

from ocdesk.utils import MockStateStore, SQLiteStateStore, StateStore


@pytest.fixture(params=["mock", "sqlite"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> StateStore:
    if request.param == "mock":
        return MockStateStore()
    return SQLiteStateStore(tmp_path / "state.db")


class TestStateStore:
    def test_conforms_to_protocol(self, store: StateStore) -> None:
        assert isinstance(store, StateStore)

    def test_get_missing_returns_default(self, store: StateStore) -> None:
        assert store.get("config") is None
        assert store.get("config", "fallback") == "fallback"

    def test_getitem_missing_raises(self, store: StateStore) -> None:
        with pytest.raises(KeyError):
            _ = store["config"]

    def test_set_and_get(self, store: StateStore) -> None:
        store.set("config", '{"preferred_port": 1600}')
        assert store.get("config") == '{"preferred_port": 1600}'
        assert store["config"] == '{"preferred_port": 1600}'
        assert "config" in store

    def test_update_preserves_created_at(self, store: StateStore) -> None:
        store.set("config", "a")
        first = store.get_entry("config")
        store.set("config", "b")
        second = store.get_entry("config")

        assert first is not None
        assert second is not None
        assert second.value == "b"
        assert second.created_at == first.created_at

    def test_delete(self, store: StateStore) -> None:
        store.set("instance_lock", "x")
        assert store.delete("instance_lock") is True
        assert store.delete("instance_lock") is False
        assert "instance_lock" not in store

    def test_iterates_sorted_keys(self, store: StateStore) -> None:
        store.set("instance_lock", "x")
        store.set("config", "y")
        assert list(store) == ["config", "instance_lock"]

    def test_non_string_key_not_contained(self, store: StateStore) -> None:
        assert 42 not in store


class TestSQLiteStateStore:
    def test_persists_across_instances(self, tmp_path: Path) -> None:
        db_path = tmp_path / "nested" / "state.db"
        SQLiteStateStore(db_path).set("config", "persisted")

        assert SQLiteStateStore(db_path).get("config") == "persisted"

    def test_namespaces_are_isolated(self, tmp_path: Path) -> None:
        db_path = tmp_path / "state.db"
        SQLiteStateStore(db_path, "launcher").set("config", "a")

        other = SQLiteStateStore(db_path, "other")
        assert other.get("config") is None
        assert other.namespace == "other"
