"""Key-value state store implementations for launcher persistence.

This module provides the state store protocol and two implementations: an
SQLite store shared by every launcher instance on the machine, and an
in-memory store for tests. The launcher configuration and the
single-instance lock are both persisted through this interface.
"""

import sqlite3
from collections.abc import Iterator
from pathlib import Path
from typing import TYPE_CHECKING, Protocol, cast, runtime_checkable

import pendulum
from pydantic import BaseModel

from .database import (
    connect,
    create_database,
    fetch_all,
    fetch_one,
    safe_identifier,
    upsert,
)

if TYPE_CHECKING:
    from structlog.typing import FilteringBoundLogger

type StateStoreKey = str
type StateStoreValue = str | int | float | bytes | None

DEFAULT_NAMESPACE = "launcher"

_TABLE = safe_identifier("state_store")
_NAMESPACE_COL = safe_identifier("namespace")
_KEY_COL = safe_identifier("key")


class StateEntry(BaseModel):
    """An entry in the state store.

    Attributes:
        namespace: Scope the entry belongs to (one per application).
        key: The unique identifier for this entry within the namespace.
        value: The stored value.
        created_at: When this entry was first created (ISO 8601 string).
        updated_at: When this entry was last modified (ISO 8601 string).
    """

    namespace: str = DEFAULT_NAMESPACE
    key: str
    value: str | int | float | bytes | None
    created_at: str
    updated_at: str


@runtime_checkable
class StateStore(Protocol):
    """Protocol for state store implementations."""

    def __getitem__(self, key: StateStoreKey) -> StateStoreValue:
        """Get the value for a key.

        Raises:
            KeyError: If the key does not exist.
        """
        ...

    def __iter__(self) -> Iterator[StateStoreKey]:
        """Iterate over all keys in the store."""
        ...

    def __contains__(self, key: object) -> bool:
        """Check if a key exists in the store."""
        ...

    def get(
        self, key: StateStoreKey, default: StateStoreValue = None
    ) -> StateStoreValue:
        """Get the value for a key, or a default if it is missing."""
        ...

    def get_entry(self, key: StateStoreKey) -> StateEntry | None:
        """Get the full entry for a key, including timestamps."""
        ...

    def set(self, key: StateStoreKey, value: StateStoreValue) -> None:
        """Set a value in the store, preserving created_at on update."""
        ...

    def delete(self, key: StateStoreKey) -> bool:
        """Delete a key from the store.

        Returns:
            True if the key was deleted, False if it didn't exist.
        """
        ...


class MockStateStore:
    """In-memory mock implementation of state store.

    Data is not persisted. Can be used as a drop-in replacement for
    SQLiteStateStore in tests.
    """

    _entries: dict[StateStoreKey, StateEntry]
    _namespace: str
    _logger: "FilteringBoundLogger | None"  # noqa: UP037

    def __init__(
        self,
        namespace: str = DEFAULT_NAMESPACE,
        *,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> None:
        """Initialize an empty in-memory store.

        Args:
            namespace: Scope of the store.
            logger: Optional logger for debug-level operation logging.
        """
        self._entries = {}
        self._namespace = namespace
        self._logger = logger

    @property
    def namespace(self) -> str:
        """Get the namespace of this store."""
        return self._namespace

    def __getitem__(self, key: StateStoreKey) -> StateStoreValue:
        try:
            value = self._entries[key].value
        except KeyError:
            if self._logger:
                self._logger.debug("store_get", key=key, found=False)
            raise
        if self._logger:
            self._logger.debug("store_get", key=key, found=True)
        return value

    def __iter__(self) -> Iterator[StateStoreKey]:
        return iter(sorted(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key in self._entries

    def get(
        self, key: StateStoreKey, default: StateStoreValue = None
    ) -> StateStoreValue:
        entry = self._entries.get(key)
        return entry.value if entry is not None else default

    def get_entry(self, key: StateStoreKey) -> StateEntry | None:
        return self._entries.get(key)

    def set(self, key: StateStoreKey, value: StateStoreValue) -> None:
        now_str = pendulum.now("UTC").to_iso8601_string()
        existing = self._entries.get(key)
        self._entries[key] = StateEntry(
            namespace=self._namespace,
            key=key,
            value=value,
            created_at=existing.created_at if existing is not None else now_str,
            updated_at=now_str,
        )
        if self._logger:
            self._logger.debug("store_set", key=key, is_update=existing is not None)

    def delete(self, key: StateStoreKey) -> bool:
        deleted = self._entries.pop(key, None) is not None
        if self._logger:
            self._logger.debug("store_delete", key=key, deleted=deleted)
        return deleted


_SQLITE_SCHEMA = """
CREATE TABLE IF NOT EXISTS state_store (
    namespace TEXT NOT NULL,
    key TEXT NOT NULL,
    value BLOB,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    PRIMARY KEY (namespace, key)
);
"""

# S608 is safe: safe_identifier validates all table/column names
_SQL_SELECT_BY_KEY = (
    f"SELECT * FROM {_TABLE} WHERE {_NAMESPACE_COL} = ? AND {_KEY_COL} = ?"  # noqa: S608
)
_SQL_SELECT_ALL = (
    f"SELECT * FROM {_TABLE} WHERE {_NAMESPACE_COL} = ? ORDER BY {_KEY_COL}"  # noqa: S608
)
_SQL_EXISTS = (
    f"SELECT 1 FROM {_TABLE} WHERE {_NAMESPACE_COL} = ? AND {_KEY_COL} = ?"  # noqa: S608
)
_SQL_DELETE = (
    f"DELETE FROM {_TABLE} WHERE {_NAMESPACE_COL} = ? AND {_KEY_COL} = ?"  # noqa: S608
)


class SQLiteStateStore:
    """SQLite-backed implementation of state store.

    Persists entries to a SQLite database file shared by every launcher
    instance of the same user. Each call opens its own short transaction.
    """

    _db_path: str
    _namespace: str
    _logger: "FilteringBoundLogger | None"  # noqa: UP037

    def __init__(
        self,
        db_path: str | Path,
        namespace: str = DEFAULT_NAMESPACE,
        *,
        logger: "FilteringBoundLogger | None" = None,  # noqa: UP037
    ) -> None:
        """Initialize a SQLite state store.

        Creates the database file and schema if they don't exist.

        Args:
            db_path: Path to the SQLite database file.
            namespace: Scope of the store.
            logger: Optional logger for debug-level operation logging.
        """
        self._db_path = str(db_path)
        self._namespace = namespace
        self._logger = logger
        create_database(self._db_path, _SQLITE_SCHEMA)

    @property
    def namespace(self) -> str:
        """Get the namespace of this store."""
        return self._namespace

    def __getitem__(self, key: StateStoreKey) -> StateStoreValue:
        entry = self.get_entry(key)
        if entry is None:
            raise KeyError(key)
        return entry.value

    def __iter__(self) -> Iterator[StateStoreKey]:
        with connect(self._db_path) as conn:
            results = fetch_all(conn, StateEntry, _SQL_SELECT_ALL, (self._namespace,))
        return iter([entry.key for entry in results])

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def __contains__(self, key: object) -> bool:
        if not isinstance(key, str):
            return False
        with connect(self._db_path) as conn:
            cursor = conn.execute(_SQL_EXISTS, (self._namespace, key))
            row = cast("sqlite3.Row | None", cursor.fetchone())
        return row is not None

    def get(
        self, key: StateStoreKey, default: StateStoreValue = None
    ) -> StateStoreValue:
        entry = self.get_entry(key)
        return entry.value if entry is not None else default

    def get_entry(self, key: StateStoreKey) -> StateEntry | None:
        with connect(self._db_path) as conn:
            entry = fetch_one(
                conn, StateEntry, _SQL_SELECT_BY_KEY, (self._namespace, key)
            )
        if self._logger:
            self._logger.debug("store_get_entry", key=key, found=entry is not None)
        return entry

    def set(self, key: StateStoreKey, value: StateStoreValue) -> None:
        now_str = pendulum.now("UTC").to_iso8601_string()

        with connect(self._db_path) as conn:
            existing = fetch_one(
                conn, StateEntry, _SQL_SELECT_BY_KEY, (self._namespace, key)
            )
            model = StateEntry(
                namespace=self._namespace,
                key=key,
                value=value,
                created_at=existing.created_at if existing is not None else now_str,
                updated_at=now_str,
            )
            _ = upsert(
                conn, "state_store", model, conflict_columns=["namespace", "key"]
            )

        if self._logger:
            self._logger.debug("store_set", key=key, is_update=existing is not None)

    def delete(self, key: StateStoreKey) -> bool:
        with connect(self._db_path) as conn:
            cursor = conn.execute(_SQL_DELETE, (self._namespace, key))
            deleted = cursor.rowcount > 0
        if self._logger:
            self._logger.debug("store_delete", key=key, deleted=deleted)
        return deleted
