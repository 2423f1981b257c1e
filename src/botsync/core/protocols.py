"""
Canonical protocol definitions for botsync.

The engine depends on shapes, not implementations: the record store needs
a DB-API style connection, the synchronization engine needs something that
fetches raw content for a key, and sweeps report their outcome to a sink.
Every module that needs one of these contracts imports it from here.

Architecture:
    ::

        protocols.py
        ├── Connection      sync DB protocol (SqliteConnection, sqlite3)
        ├── Fetcher         fetch_datum(key) -> raw content | None
        ├── PageClient      get_content(url) -> str
        └── RunReportSink   save_run_report({"status": ..., "error"?: ...})

Tags:
    protocol, connection, fetcher, botsync, contracts
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """Minimal synchronous connection interface used by the record store."""

    def execute(self, sql: str, params: tuple = ()) -> Any:
        """Execute a single SQL statement and return a cursor."""
        ...

    def fetchone(self) -> Any:
        ...

    def fetchall(self) -> list[Any]:
        ...

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...


@runtime_checkable
class Fetcher(Protocol):
    """
    Fetch collaborator: retrieve raw source content for one key.

    Returning ``None`` (or any empty value) means "no data for this key";
    the engine skips the key without writing anything. Raising is a fetch
    failure and is not retried by the engine.
    """

    def fetch_datum(self, key: Any) -> Any:
        ...


@runtime_checkable
class PageClient(Protocol):
    """HTTP client used to download registry pages."""

    def get_content(self, url: str) -> str:
        ...


@runtime_checkable
class RunReportSink(Protocol):
    """Receives one ``{"status": "success"|"failure", "error"?: str}`` per sweep."""

    def save_run_report(self, report: dict[str, Any]) -> None:
        ...


__all__ = ["Connection", "Fetcher", "PageClient", "RunReportSink"]
