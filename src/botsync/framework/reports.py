"""
Run-report sinks.

``SyncEngine.update_data`` files one report per run:
``{"status": "success"}`` or ``{"status": "failure", "error": "..."}``.
Where it goes is up to the sink; the SQLite sink keeps a history table next
to the bot's records so operators can see when a bot last ran cleanly.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from datetime import datetime
from typing import Any

from botsync.core.logging import get_logger
from botsync.core.protocols import Connection
from botsync.core.staleness import utcnow
from botsync.core.store import quote_identifier

logger = get_logger(__name__)


class MemoryRunReportSink:
    """Keeps reports in a list. Useful in tests and for embedding."""

    def __init__(self) -> None:
        self.reports: list[dict[str, Any]] = []

    def save_run_report(self, report: dict[str, Any]) -> None:
        self.reports.append(dict(report))

    @property
    def last(self) -> dict[str, Any] | None:
        return self.reports[-1] if self.reports else None


class SqliteRunReportSink:
    """
    Appends reports to a ``run_reports`` table.

    Columns: ``id``, ``bot``, ``status``, ``error``, ``details`` (JSON of
    any extra report keys), ``reported_at`` (ISO-8601 UTC).
    """

    def __init__(
        self,
        conn: Connection,
        bot: str,
        table: str = "run_reports",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.conn = conn
        self.bot = bot
        self.table = table
        self.clock = clock
        self._ensure_table()

    def _ensure_table(self) -> None:
        self.conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {quote_identifier(self.table)} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                bot TEXT NOT NULL,
                status TEXT NOT NULL,
                error TEXT,
                details TEXT,
                reported_at TEXT NOT NULL
            )
            """
        )
        self.conn.commit()

    def save_run_report(self, report: dict[str, Any]) -> None:
        extra = {k: v for k, v in report.items() if k not in ("status", "error")}
        self.conn.execute(
            f"""
            INSERT INTO {quote_identifier(self.table)} (bot, status, error, details, reported_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                self.bot,
                report.get("status", "unknown"),
                report.get("error"),
                json.dumps(extra, default=str) if extra else None,
                self.clock().isoformat(),
            ),
        )
        self.conn.commit()
        logger.info("run_report_saved", bot=self.bot, status=report.get("status"))

    def reports(self, limit: int = 20) -> list[dict[str, Any]]:
        """Most recent reports first."""
        cursor = self.conn.execute(
            f"""
            SELECT bot, status, error, details, reported_at
            FROM {quote_identifier(self.table)}
            WHERE bot = ?
            ORDER BY id DESC
            LIMIT ?
            """,
            (self.bot, limit),
        )
        result = []
        for row in cursor.fetchall():
            item = dict(zip(("bot", "status", "error", "details", "reported_at"), row, strict=False))
            item["details"] = json.loads(item["details"]) if item["details"] else {}
            result.append(item)
        return result


__all__ = ["MemoryRunReportSink", "SqliteRunReportSink"]
