"""Connection factory: create record-store connections from URL strings.

This is the single entry point for opening a bot's database. Every
module that needs a connection should use ``create_connection()`` rather
than calling ``sqlite3.connect`` directly.

Supported URL schemes
---------------------
==================  ==========================================  ============
Scheme              Example                                     Backend
==================  ==========================================  ============
``memory``          ``memory`` or ``:memory:`` or ``None``       SQLite RAM
``sqlite``          ``sqlite:///path/to/file.db``                SQLite file
``(file path)``     ``./db/acme.db`` or ``/tmp/acme.db``         SQLite file
==================  ==========================================  ============

Usage
-----
::

    from botsync.core.connection import create_connection

    conn, info = create_connection()                  # ephemeral
    conn, info = create_connection("db/acme.db")      # persistent
    print(info)
    # ConnectionInfo(backend='sqlite', persistent=True, path='/.../db/acme.db')
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from botsync.core.logging import get_logger

logger = get_logger(__name__)


class SqliteConnection:
    """Adapter: ``sqlite3.Connection`` -> ``Connection`` protocol.

    Maintains a single cursor so that ``execute`` / ``fetchone`` /
    ``fetchall`` operate on the same result set. Rows come back as
    :class:`sqlite3.Row` so ``dict(row)`` works.
    """

    def __init__(
        self,
        path: str = ":memory:",
        *,
        timeout: float = 5.0,
        row_factory: Any = sqlite3.Row,
    ) -> None:
        self._conn = sqlite3.connect(path, timeout=timeout, check_same_thread=False)
        self._conn.row_factory = row_factory
        self._cursor = self._conn.cursor()

    # -- Connection protocol -----------------------------------------------

    def execute(self, sql: str, params: tuple = ()) -> Any:
        self._cursor.execute(sql, params)
        return self._cursor

    def executemany(self, sql: str, params: list[tuple]) -> Any:
        self._cursor.executemany(sql, params)
        return self._cursor

    def fetchone(self) -> Any:
        return self._cursor.fetchone()

    def fetchall(self) -> list:
        return self._cursor.fetchall()

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()

    # -- convenience -------------------------------------------------------

    @property
    def raw(self) -> sqlite3.Connection:
        """Access the underlying ``sqlite3.Connection`` (e.g. for pragmas)."""
        return self._conn

    def __repr__(self) -> str:
        return f"SqliteConnection({self._conn!r})"


@dataclass(frozen=True)
class ConnectionInfo:
    """Metadata about a database connection."""

    backend: str
    persistent: bool
    url: str
    resolved_path: str | None = None

    def __repr__(self) -> str:
        parts = [f"backend={self.backend!r}", f"persistent={self.persistent}"]
        if self.resolved_path:
            parts.append(f"path={self.resolved_path!r}")
        else:
            parts.append(f"url={self.url!r}")
        return f"ConnectionInfo({', '.join(parts)})"


def _parse_url(db: str | Path | None) -> tuple[str, str]:
    """Parse a database URL into ``(scheme, target)``."""
    if db is None:
        return "memory", ":memory:"
    db = str(db)
    if db in ("", "memory", ":memory:"):
        return "memory", ":memory:"

    for prefix in ("sqlite:///", "sqlite://"):
        if db.startswith(prefix):
            path = db[len(prefix):]
            if not path or path == ":memory:":
                return "memory", ":memory:"
            return "sqlite", path

    # Bare file path
    return "sqlite", db


def create_connection(
    db: str | Path | None = None,
    *,
    timeout: float = 5.0,
) -> tuple[SqliteConnection, ConnectionInfo]:
    """Create a connection from a URL, path, or keyword.

    File-based databases get their parent directory created on demand.

    Parameters
    ----------
    db:
        ``None``/``"memory"`` for an in-memory database, a file path, or
        a ``sqlite:///`` URL.
    timeout:
        Seconds SQLite waits on a locked database before reporting busy.
    """
    scheme, target = _parse_url(db)

    if scheme == "memory":
        conn = SqliteConnection(":memory:", timeout=timeout)
        info = ConnectionInfo(backend="sqlite", persistent=False, url=":memory:")
    else:
        path = Path(target)
        path.parent.mkdir(parents=True, exist_ok=True)
        resolved = str(path.resolve())
        conn = SqliteConnection(resolved, timeout=timeout)
        info = ConnectionInfo(
            backend="sqlite",
            persistent=True,
            url=target,
            resolved_path=resolved,
        )

    logger.debug("connection_opened", backend=info.backend, persistent=info.persistent, url=info.url)
    return conn, info


__all__ = ["SqliteConnection", "ConnectionInfo", "create_connection"]
