"""
Record store: one keyed SQLite table per bot.

Provides upsert-by-key with additive column growth and bounded retry on
busy/locked databases, plus the thin readers the engines need.

Manifesto:
    Bots discover their record shape as they go. A licence bot may learn
    about ``expiry_date`` months after its first run; the table has to grow
    to hold it without a migration step, and it must never shrink.

    - **Idempotent writes:** Same key -> same row, updated in place
    - **Additive schema:** Unknown fields become new columns before a write
    - **Bounded retry:** Busy/locked writes are retried, then surfaced
    - **Forgiving reads:** Queries on absent columns return no rows

Architecture:
    ::

        upsert(["uid"], {"uid": "1", "name": "Foo", "status": "active"})
              │
              ├── ensure_column("name"), ensure_column("status")   (ALTER TABLE if absent)
              │
              ▼
        INSERT INTO ocdata (uid, name, status) VALUES (?, ?, ?)
        ON CONFLICT(uid) DO UPDATE SET name = excluded.name, status = excluded.status
              │
              ├── OperationalError("database is locked") → retry (4 attempts total)
              └── still busy → StorageBusyError

Examples:
    >>> from botsync.core.connection import create_connection
    >>> conn, _ = create_connection()
    >>> store = RecordStore(conn, key_fields=("uid",))
    >>> store.upsert(["uid"], {"uid": "1", "name": "Foo"})
    True
    >>> store.upsert(["uid"], {"uid": "1", "name": "Bar"})
    True
    >>> store.count()
    1

Guardrails:
    ❌ DON'T: Run two writers against the same table from separate processes
    ✅ DO: Hold the instance lock (``botsync.framework.lock``) around a run

Tags:
    storage, sqlite, upsert, retry, botsync
"""

from __future__ import annotations

import re
import sqlite3
import threading
from collections.abc import Iterable, Sequence
from typing import Any

from botsync.core.errors import ConfigError, StorageBusyError, StorageError
from botsync.core.logging import get_logger
from botsync.core.protocols import Connection

logger = get_logger(__name__)

DEFAULT_TABLE = "ocdata"
DEFAULT_BUSY_RETRIES = 3

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def is_identifier(name: str) -> bool:
    return bool(name) and _IDENTIFIER.match(name) is not None


def quote_identifier(name: str) -> str:
    """Quote a column or table name for SQL, rejecting anything odd."""
    if not is_identifier(name):
        raise ConfigError(f"Invalid identifier: {name!r}")
    return f'"{name}"'


def is_busy_error(error: BaseException) -> bool:
    """True for the driver errors SQLite raises on contention."""
    if not isinstance(error, sqlite3.OperationalError):
        return False
    message = str(error).lower()
    return "locked" in message or "busy" in message


def _is_missing_schema_error(error: sqlite3.OperationalError) -> bool:
    message = str(error).lower()
    return "no such column" in message or "no such table" in message


class RecordStore:
    """
    Keyed, additively-growing table.

    Args:
        conn: Object satisfying :class:`~botsync.core.protocols.Connection`
        table: Table name (``ocdata`` by default)
        key_fields: Fields making up the unique upsert key
        busy_retries: Extra attempts after a busy/locked write
    """

    def __init__(
        self,
        conn: Connection,
        table: str = DEFAULT_TABLE,
        key_fields: Sequence[str] = ("uid",),
        busy_retries: int = DEFAULT_BUSY_RETRIES,
    ) -> None:
        if not key_fields:
            raise ConfigError("RecordStore needs at least one key field")
        quote_identifier(table)
        self.conn = conn
        self.table = table
        self.key_fields = tuple(key_fields)
        self.busy_retries = busy_retries
        # Serializes sync writes and export stamping within one process
        self.write_lock = threading.RLock()
        self._columns: set[str] | None = None

    # -- Schema ------------------------------------------------------------

    def ensure_table(self) -> None:
        """Create the table and its unique key index if they do not exist."""
        table = quote_identifier(self.table)
        cols = ", ".join(f"{quote_identifier(k)} TEXT" for k in self.key_fields)
        keys = ", ".join(quote_identifier(k) for k in self.key_fields)
        self.conn.execute(f"CREATE TABLE IF NOT EXISTS {table} ({cols})")
        self.conn.execute(
            f"CREATE UNIQUE INDEX IF NOT EXISTS "
            f"{quote_identifier(self._index_name(self.key_fields))} ON {table} ({keys})"
        )
        self.conn.commit()
        self._columns = None

    def _index_name(self, key_fields: Sequence[str]) -> str:
        return f"{self.table}_unique_{'_'.join(key_fields)}"

    def columns(self) -> list[str]:
        """Column names of the table, in table order (empty if no table)."""
        cursor = self.conn.execute(f"PRAGMA table_info({quote_identifier(self.table)})")
        names = [row[1] for row in cursor.fetchall()]
        self._columns = set(names)
        return names

    def has_column(self, name: str) -> bool:
        if self._columns is None or name not in self._columns:
            self.columns()
        return name in (self._columns or set())

    def ensure_column(self, name: str) -> bool:
        """
        Add column *name* if absent.

        Returns:
            True if the column was created, False if it already existed
        """
        if self.has_column(name):
            return False
        if not self._columns:
            self.ensure_table()
            if self.has_column(name):
                return False
        self.conn.execute(
            f"ALTER TABLE {quote_identifier(self.table)} ADD COLUMN {quote_identifier(name)}"
        )
        self.conn.commit()
        self._columns = None
        logger.debug("column_added", table=self.table, column=name)
        return True

    def ensure_columns(self, names: Iterable[str]) -> None:
        for name in names:
            self.ensure_column(name)

    def unique_indexes(self) -> list[tuple[str, ...]]:
        """Column tuples of every unique index on the table."""
        table = quote_identifier(self.table)
        result = []
        for row in self.conn.execute(f"PRAGMA index_list({table})").fetchall():
            name, unique = row[1], row[2]
            if not unique:
                continue
            cols = self.conn.execute(f"PRAGMA index_info({quote_identifier(name)})").fetchall()
            result.append(tuple(c[2] for c in cols))
        return result

    def check_unique_index(self, key_fields: Sequence[str] | None = None) -> None:
        """
        Make sure the table is keyed the way the record type says.

        Raises:
            ConfigError: If the table already has a unique index over
                different fields (the record type's key changed)
        """
        wanted = tuple(key_fields or self.key_fields)
        existing = self.unique_indexes()
        if existing and wanted not in existing:
            raise ConfigError(
                f"Unique index on {self.table} is {existing[0]}, record type declares {wanted}"
            ).with_context(table=self.table)

    # -- Writes ------------------------------------------------------------

    def upsert(self, key_fields: Sequence[str], row: dict[str, Any]) -> bool:
        """
        Insert *row*, or update the existing row with the same key values.

        Every field of *row* becomes a column if it is not one already.
        A busy/locked database is retried ``busy_retries`` more times; any
        other error propagates immediately.

        Raises:
            StorageBusyError: Still busy after the last attempt
        """
        missing = [k for k in key_fields if row.get(k) is None]
        if missing:
            raise StorageError(f"Missing key field(s) {missing} for upsert into {self.table}")

        attempts = self.busy_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                with self.write_lock:
                    self.ensure_columns(row.keys())
                    self.insert_or_update(key_fields, row)
                return True
            except sqlite3.OperationalError as exc:
                if not is_busy_error(exc):
                    raise
                self._rollback_quietly()
                if attempt == attempts:
                    raise StorageBusyError(
                        f"{self.table} still busy after {attempts} attempts: {exc}",
                        attempts=attempts,
                        cause=exc,
                    ).with_context(table=self.table) from exc
                logger.warning("store_busy_retry", table=self.table, attempt=attempt, error=str(exc))
        return False  # pragma: no cover

    def insert_or_update(self, key_fields: Sequence[str], row: dict[str, Any]) -> None:
        """Single upsert statement; no retry, no column extension."""
        table = quote_identifier(self.table)
        columns = list(row.keys())
        cols = ", ".join(quote_identifier(c) for c in columns)
        ph = ", ".join("?" for _ in columns)
        keys = ", ".join(quote_identifier(k) for k in key_fields)
        updates = [c for c in columns if c not in key_fields]
        if updates:
            action = "DO UPDATE SET " + ", ".join(
                f"{quote_identifier(c)} = excluded.{quote_identifier(c)}" for c in updates
            )
        else:
            action = "DO NOTHING"
        self.conn.execute(
            f"INSERT INTO {table} ({cols}) VALUES ({ph}) ON CONFLICT({keys}) {action}",
            tuple(row[c] for c in columns),
        )
        self.conn.commit()

    def _rollback_quietly(self) -> None:
        try:
            self.conn.rollback()
        except sqlite3.Error as exc:
            logger.debug("rollback_failed", table=self.table, error=str(exc))

    # -- Reads -------------------------------------------------------------

    def select(self, clause: str, params: tuple = ()) -> list[dict[str, Any]]:
        """
        Run ``SELECT <clause>`` and return rows as dicts.

        Queries referencing a column or table that does not exist yet
        return ``[]`` instead of raising.
        """
        try:
            cursor = self.conn.execute(f"SELECT {clause}", params)
            rows = cursor.fetchall()
        except sqlite3.OperationalError as exc:
            if _is_missing_schema_error(exc):
                return []
            raise
        if not rows:
            return []
        try:
            return [dict(row) for row in rows]
        except (TypeError, ValueError):
            columns = [desc[0] for desc in cursor.description]
            return [dict(zip(columns, row, strict=False)) for row in rows]

    def fetch(self, key: Any) -> dict[str, Any] | None:
        """Row for a single-field primary key, or None."""
        pk = quote_identifier(self.key_fields[0])
        rows = self.select(
            f"* FROM {quote_identifier(self.table)} WHERE {pk} = ? LIMIT 1", (key,)
        )
        return rows[0] if rows else None

    def exists(self, key: Any) -> bool:
        pk = quote_identifier(self.key_fields[0])
        rows = self.select(
            f"{pk} FROM {quote_identifier(self.table)} WHERE {pk} = ? LIMIT 1", (key,)
        )
        return bool(rows)

    def keys(self) -> list[Any]:
        """Primary key values in insertion order."""
        pk = quote_identifier(self.key_fields[0])
        rows = self.select(f"{pk} FROM {quote_identifier(self.table)} ORDER BY rowid")
        return [row[self.key_fields[0]] for row in rows]

    def all_rows(self) -> list[dict[str, Any]]:
        return self.select(f"* FROM {quote_identifier(self.table)} ORDER BY rowid")

    def count(self) -> int:
        rows = self.select(f"COUNT(*) AS n FROM {quote_identifier(self.table)}")
        return int(rows[0]["n"]) if rows else 0


__all__ = [
    "DEFAULT_TABLE",
    "DEFAULT_BUSY_RETRIES",
    "RecordStore",
    "is_busy_error",
    "is_identifier",
    "quote_identifier",
]
