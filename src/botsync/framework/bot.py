"""
Bot: one record type wired to its store, engines and collaborators.

Manifesto:
    A bot author writes a :class:`RecordType` and a fetcher; everything
    else (where the database lives, how long records stay fresh, where run
    reports go) comes from settings. ``Bot`` assembles those pieces and
    checks the wiring before the first key is fetched.

Architecture:
    ::

        Bot(name, record_type, fetcher=...)
          │
          ├── BotSettings ──► <db_dir>/<name>.db, stale_after, busy_retries
          ├── RecordStore  (unique index checked, then created)
          ├── Validator    (schema names checked)
          ├── SyncEngine   (update_data / update_stale / update_datum / save_entity*)
          └── ExportEngine (export_data / export / validate_data / spotcheck_data)

Examples:
    >>> bot = Bot("acme_licences", licence_type, fetcher=AcmeFetcher())
    >>> bot.update_data(limit=100)
    SweepSummary(attempted=100, succeeded=97, skipped=3, failed=0, errors=[])
    >>> for publication in bot.export_data():
    ...     print(publication["company"]["name"])

Tags:
    bot, composition, botsync
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import datetime
from typing import Any, TextIO

from botsync.core.connection import create_connection
from botsync.core.errors import ConfigError
from botsync.core.logging import get_logger
from botsync.core.protocols import Connection, Fetcher, PageClient, RunReportSink
from botsync.core.settings import BotSettings, get_settings
from botsync.core.staleness import StalenessPolicy, utcnow
from botsync.core.store import RecordStore
from botsync.core.validation import ValidationIssue, Validator
from botsync.framework.export import ExportEngine
from botsync.framework.record_type import RecordType
from botsync.framework.reports import SqliteRunReportSink
from botsync.framework.sync import ErrorMode, SweepSummary, SyncEngine

logger = get_logger(__name__)


class Bot:
    """
    Composition root for one bot.

    Args:
        name: Bot name; also names the SQLite file and the pid files
        record_type: What the bot stores and publishes
        fetcher: Fetch collaborator for per-key refreshes
        conn: Existing connection (default: ``<db_dir>/<name>.db``)
        settings: Settings (default: :func:`get_settings`)
        validator: Validator (default: built-in schemas)
        report_sink: Run-report sink (default: ``run_reports`` table in the bot DB)
        page_client: HTTP client for ``fetch_registry_page``
        error_mode: Per-key failure handling of the sync engine
        strict: Abort sweeps on the first failing key
        clock: Callable returning the current aware datetime
        output: Stream for REPORT-mode JSON lines

    Raises:
        ConfigError: The table is keyed differently from the record type
        SchemaNotFoundError: A declared schema name does not resolve
    """

    def __init__(
        self,
        name: str,
        record_type: RecordType,
        *,
        fetcher: Fetcher | None = None,
        conn: Connection | None = None,
        settings: BotSettings | None = None,
        validator: Validator | None = None,
        report_sink: RunReportSink | None = None,
        page_client: PageClient | None = None,
        error_mode: ErrorMode = ErrorMode.RAISE,
        strict: bool = False,
        clock: Callable[[], datetime] = utcnow,
        output: TextIO | None = None,
    ) -> None:
        self.name = name
        self.record_type = record_type
        self.settings = settings or get_settings()

        if conn is None:
            conn, _info = create_connection(
                self.settings.db_path(name), timeout=self.settings.busy_timeout
            )
        self.conn = conn

        self.store = RecordStore(
            conn,
            table=self.settings.table_name,
            key_fields=(record_type.primary_key,),
            busy_retries=self.settings.busy_retries,
        )
        # Must run before ensure_table, which would add a second unique index
        self.store.check_unique_index()
        self.store.ensure_table()

        self.validator = validator or Validator()
        for schema in (record_type.schema, record_type.publish_schema):
            if schema:
                self.validator.registry.get(schema)

        self.staleness = StalenessPolicy(
            self.store,
            primary_key=record_type.primary_key,
            stale_after=record_type.stale_after or self.settings.stale_after,
            clock=clock,
        )
        self.sync = SyncEngine(
            record_type,
            self.store,
            self.validator,
            fetcher,
            staleness=self.staleness,
            error_mode=error_mode,
            strict=strict,
            report_sink=report_sink if report_sink is not None else SqliteRunReportSink(conn, name),
            page_client=page_client,
            output=output,
            clock=clock,
        )
        self._export = (
            ExportEngine(record_type, self.store, self.validator, clock=clock)
            if record_type.publish is not None
            else None
        )
        logger.debug("bot_initialized", bot=name, record_type=record_type.name, table=self.store.table)

    def __repr__(self) -> str:
        return f"Bot({self.name!r}, record_type={self.record_type.name!r})"

    @property
    def export_engine(self) -> ExportEngine:
        if self._export is None:
            raise ConfigError(f"Bot {self.name!r} is not exportable").with_context(bot=self.name)
        return self._export

    # -- Synchronization -----------------------------------------------------

    def update_data(self, limit: int | None = None) -> SweepSummary | None:
        return self.sync.update_data(limit)

    def update_stale(self, limit: int | None = None) -> SweepSummary:
        return self.sync.update_stale(limit)

    def update_datum(self, key: Any, *, error_mode: ErrorMode | None = None) -> dict[str, Any] | None:
        return self.sync.update_datum(key, error_mode=error_mode)

    def due_keys(self, limit: int | None = None) -> list[Any]:
        return list(self.staleness.due_keys(limit))

    def datum_exists(self, key: Any) -> bool:
        return self.store.exists(key)

    def validate_datum(self, record: dict[str, Any]) -> list[ValidationIssue]:
        return self.sync.validate_datum(record)

    def save_entity(self, record: dict[str, Any]) -> bool:
        return self.sync.save_entity(record)

    def save_entity_strict(self, record: dict[str, Any]) -> bool:
        return self.sync.save_entity_strict(record)

    def registry_url(self, key: Any) -> str | None:
        return self.sync.registry_url(key)

    def fetch_registry_page(self, key: Any) -> str:
        return self.sync.fetch_registry_page(key)

    # -- Export --------------------------------------------------------------

    def all_stored_records(self, skip_nulls: bool = False) -> list[dict[str, Any]]:
        return self.export_engine.all_stored_records(skip_nulls=skip_nulls)

    def export_data(self, stamp: bool = True) -> Iterator[dict[str, Any]]:
        return self.export_engine.export_data(stamp=stamp)

    def export_batch(self) -> list[dict[str, Any]]:
        return self.export_engine.export_batch()

    def export(self, output: TextIO, as_array: bool = False) -> int:
        return self.export_engine.export(output, as_array=as_array)

    def spotcheck_data(self, sample: int | None = None) -> list[dict[str, Any]]:
        return self.export_engine.spotcheck_data(sample)

    def validate_data(self) -> list[dict[str, Any]]:
        return self.export_engine.validate_data()

    def close(self) -> None:
        close = getattr(self.conn, "close", None)
        if close is not None:
            close()


__all__ = ["Bot"]
