"""SQLite database utilities for Pydantic models.

This module provides the small set of CRUD helpers the persistent state
store needs, using Pydantic models for serialization/deserialization.

Note:
    Fields with ``None`` values are excluded from INSERT/UPDATE operations via
    ``exclude_none=True``. Return values of 0 from ``upsert`` indicate "no
    meaningful row id", not "row id is zero."
"""

import re
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager, suppress
from pathlib import Path
from typing import Literal, cast

from pydantic import BaseModel

# Valid SQL identifier pattern (alphanumeric and underscores, not starting with digit)
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# SQLite-compatible value types
type SQLValue = str | int | float | bytes | None

# SQLite transaction isolation levels
type IsolationLevel = Literal["DEFERRED", "EXCLUSIVE", "IMMEDIATE"] | None


@contextmanager
def connect(
    path: str | Path,
    *,
    timeout: float = 30.0,
    isolation_level: IsolationLevel = "IMMEDIATE",
    wal_mode: bool = True,
) -> Iterator[sqlite3.Connection]:
    """Context manager for SQLite connections with automatic transaction handling.

    Opens a connection, yields it for use, and handles cleanup. On successful
    completion, commits the transaction. On any exception, rolls back and
    re-raises. The connection is always closed on exit.

    Args:
        path: Database file path, or ``:memory:`` for in-memory database.
        timeout: Seconds to wait for lock before raising OperationalError.
        isolation_level: Transaction isolation level.
        wal_mode: If True, enable WAL journal mode so that several launcher
            instances can read the store while one writes.

    Yields:
        SQLite connection with row_factory set to sqlite3.Row.

    Raises:
        sqlite3.OperationalError: If the database cannot be opened.
    """
    conn = sqlite3.connect(
        str(path),
        timeout=timeout,
        isolation_level=isolation_level,
    )
    conn.row_factory = sqlite3.Row

    if wal_mode and str(path) != ":memory:":
        with suppress(sqlite3.OperationalError):
            _ = conn.execute("PRAGMA journal_mode=WAL")
        _ = conn.execute("PRAGMA busy_timeout=10000")

    try:
        yield conn
        conn.commit()
    except BaseException:
        with suppress(Exception):
            conn.rollback()
        raise
    finally:
        conn.close()


def create_database(path: str | Path, schema: str | None = None) -> None:
    """Create an empty SQLite database, optionally with a schema.

    Creates the database file and any parent directories if they don't exist.

    Args:
        path: Path to the database file.
        schema: Optional DDL statements to execute.
    """
    path_obj = Path(path)
    if str(path) != ":memory:":
        path_obj.parent.mkdir(parents=True, exist_ok=True)

    with connect(path_obj) as conn:
        if schema:
            _ = conn.executescript(schema)


def safe_identifier(name: str) -> str:
    """Validate and quote a SQL identifier.

    Args:
        name: The identifier to validate and quote.

    Returns:
        The quoted identifier (e.g., ``"state_store"``).

    Raises:
        ValueError: If the identifier contains invalid characters.
    """
    if not _IDENTIFIER_RE.match(name):
        msg = f"Invalid SQL identifier: {name!r}"
        raise ValueError(msg)
    return f'"{name}"'


def fetch_one[T: BaseModel](
    conn: sqlite3.Connection,
    model: type[T],
    sql: str,
    params: tuple[SQLValue, ...] = (),
) -> T | None:
    """Fetch a single row and return it as a Pydantic model.

    Returns:
        Model instance or None if no row found.
    """
    row = cast("sqlite3.Row | None", conn.execute(sql, params).fetchone())
    if row is None:
        return None
    return model.model_validate(dict(row))


def fetch_all[T: BaseModel](
    conn: sqlite3.Connection,
    model: type[T],
    sql: str,
    params: tuple[SQLValue, ...] = (),
) -> list[T]:
    """Fetch all rows and return them as Pydantic models."""
    rows = cast("list[sqlite3.Row]", conn.execute(sql, params).fetchall())
    return [model.model_validate(dict(row)) for row in rows]


def upsert(
    conn: sqlite3.Connection,
    table: str,
    obj: BaseModel,
    conflict_columns: list[str],
    *,
    commit: bool = True,
) -> int:
    """Insert or update on conflict.

    If a row with matching conflict_columns exists, updates the non-conflict
    columns. If all data columns are conflict columns, uses DO NOTHING.

    Args:
        conn: SQLite connection.
        table: Table name.
        obj: Pydantic model to upsert.
        conflict_columns: Columns to check for conflicts.
        commit: Whether to commit the transaction (default True).

    Returns:
        The lastrowid of the upserted row, or 0 if not available.
    """
    safe_table = safe_identifier(table)
    conflict = ", ".join(safe_identifier(col) for col in conflict_columns)
    data = obj.model_dump(exclude_none=True)
    cols = ", ".join(safe_identifier(k) for k in data)
    placeholders = ", ".join(f":{k}" for k in data)
    updates = ", ".join(
        f"{safe_identifier(k)} = excluded.{safe_identifier(k)}"
        for k in data
        if k not in conflict_columns
    )

    if updates:
        sql = f"""INSERT INTO {safe_table} ({cols}) VALUES ({placeholders})
            ON CONFLICT ({conflict}) DO UPDATE SET {updates}"""  # noqa: S608
    else:
        sql = f"""INSERT INTO {safe_table} ({cols}) VALUES ({placeholders})
            ON CONFLICT ({conflict}) DO NOTHING"""  # noqa: S608

    cursor = conn.execute(sql, data)
    if commit:
        conn.commit()
    return cursor.lastrowid or 0
