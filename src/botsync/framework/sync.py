"""
Synchronization engine: fetch -> transform -> stamp -> persist.

Manifesto:
    Every bot refreshes records the same way; only fetching and parsing
    differ. The engine owns the lifecycle so bots cannot forget to stamp
    freshness, cannot create duplicate rows, and cannot let one bad page
    sink a whole sweep.

    - **Per-key state machine:** Success, Skipped (no data) or Failed
    - **Isolated failures:** One key failing does not abort a sweep unless
      the engine is strict
    - **Source-declared freshness wins:** A transform may supply its own
      ``retrieved_at``
    - **Explicit error mode:** ``ErrorMode.RAISE`` or ``ErrorMode.REPORT``,
      not a boolean argument

Architecture:
    ::

        update_data()
          │
          ├── discover: fetch_records / discover_all (alpha) / discover_new (incremental)
          │
          ├── update_stale(limit)
          │     └── for key in StalenessPolicy.due_keys(limit):
          │           update_datum(key)
          │             Fetch ──► None? ─────────────────────► Skipped
          │               │
          │             Transform ──► raises? ──► RAISE: TransformError
          │               │                      REPORT: {"error": {...}} line
          │             Stamp (pk, retrieved_at)
          │               │
          │             Persist (codec.encode + store.upsert, busy retry)
          │               │
          │             Report (REPORT mode: JSON line) ───► Success
          │
          └── report_sink.save_run_report({"status": "success"|"failure", ...})

Examples:
    >>> engine = SyncEngine(record_type, store, Validator(), fetcher)
    >>> engine.update_datum("12345")
    {'name': 'Foo Inc', 'uid': '12345', 'retrieved_at': datetime.datetime(...)}

Tags:
    synchronization, sweep, incremental, botsync
"""

from __future__ import annotations

import json
import sys
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, TextIO

from botsync.core.codec import RESERVED_PAYLOAD_FIELD, encode, strip_payload
from botsync.core.errors import (
    BotError,
    ConfigError,
    FetchError,
    RecordInvalid,
    TransformError,
    error_envelope,
)
from botsync.core.logging import get_logger
from botsync.core.protocols import Fetcher, PageClient, RunReportSink
from botsync.core.staleness import RETRIEVED_AT, StalenessPolicy, as_instant, utcnow
from botsync.core.store import RecordStore
from botsync.core.validation import ValidationIssue, Validator
from botsync.framework.record_type import RecordType

logger = get_logger(__name__)


class ErrorMode(str, Enum):
    """What ``update_datum`` does with a failure after fetching."""

    RAISE = "raise"    # re-raise with the key in the message
    REPORT = "report"  # write a JSON error envelope to the output, carry on


class _ReportedFailure(Exception):
    """A per-key failure already written out as a REPORT-mode error envelope."""

    def __init__(self, error: BotError):
        super().__init__(error.message)
        self.error = error


@dataclass
class SweepSummary:
    """Outcome counts of one staleness sweep."""

    attempted: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
        }


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def to_json(value: Any) -> str:
    """Compact JSON for report-mode output lines."""
    return json.dumps(value, default=_json_default)


class SyncEngine:
    """
    Refreshes the records of one record type.

    Args:
        record_type: Declaration of the records being synchronized
        store: The bot's record store
        validator: Schema validator for the save contracts
        fetcher: Fetch collaborator (``fetch_datum(key)``); optional for
            bots that only use ``fetch_records``
        staleness: Due-key policy; built from ``stale_after`` if omitted
        error_mode: RAISE (default) or REPORT
        strict: Abort a sweep on the first failing key
        report_sink: Receives one run report per ``update_data``
        page_client: HTTP client for ``fetch_registry_page``
        output: Stream for REPORT-mode JSON lines (stdout by default)
        clock: Callable returning the current aware datetime
    """

    def __init__(
        self,
        record_type: RecordType,
        store: RecordStore,
        validator: Validator,
        fetcher: Fetcher | None = None,
        *,
        staleness: StalenessPolicy | None = None,
        error_mode: ErrorMode = ErrorMode.RAISE,
        strict: bool = False,
        report_sink: RunReportSink | None = None,
        page_client: PageClient | None = None,
        output: TextIO | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.record_type = record_type
        self.store = store
        self.validator = validator
        self.fetcher = fetcher
        self.clock = clock
        self.staleness = staleness or StalenessPolicy(
            store,
            primary_key=record_type.primary_key,
            clock=clock,
            **({"stale_after": record_type.stale_after} if record_type.stale_after else {}),
        )
        self.error_mode = ErrorMode(error_mode)
        self.strict = strict
        self.report_sink = report_sink
        self.page_client = page_client
        self._output = output

    @property
    def primary_key(self) -> str:
        return self.record_type.primary_key

    @property
    def output(self) -> TextIO:
        return self._output or sys.stdout

    # -- Per-key state machine ---------------------------------------------

    def update_datum(self, key: Any, *, error_mode: ErrorMode | None = None) -> dict[str, Any] | None:
        """
        Refresh the record for *key*.

        Returns:
            The stamped record, or None when the fetcher had no data, the
            transform returned nothing, or (REPORT mode) the key failed

        Raises:
            FetchError: The fetch collaborator raised
            TransformError: RAISE mode, transforming or persisting failed
            StorageBusyError: RAISE mode, the store stayed busy
        """
        try:
            return self._refresh(key, ErrorMode(error_mode or self.error_mode))
        except _ReportedFailure:
            return None

    def _refresh(self, key: Any, mode: ErrorMode) -> dict[str, Any] | None:
        # Like update_datum, but a reported failure surfaces as _ReportedFailure
        raw = self.fetch_datum(key)
        if not raw:
            logger.debug("datum_skipped", key=key, reason="no_data")
            return None

        try:
            candidate = self.process_datum(raw)
            if candidate is None:
                logger.debug("datum_skipped", key=key, reason="empty_transform")
                return None
            stamped = self.stamp(key, candidate)
            issues = self.validate_datum(stamped)
            if issues:
                logger.warning(
                    "datum_invalid",
                    key=key,
                    issues=[issue.to_dict() for issue in issues],
                )
            self.prepare_and_save_data({**stamped, RESERVED_PAYLOAD_FIELD: raw})
        except Exception as exc:
            if mode is ErrorMode.REPORT:
                logger.error("datum_failed", key=key, error=str(exc), klass=exc.__class__.__name__)
                self.output.write(to_json(error_envelope(exc)) + "\n")
                raise _ReportedFailure(self._keyed_error(key, exc)) from exc
            error = self._keyed_error(key, exc)
            if error is exc:
                raise
            raise error from exc

        if mode is ErrorMode.REPORT:
            self.output.write(to_json(stamped) + "\n")
        logger.debug("datum_updated", key=key)
        return stamped

    def _keyed_error(self, key: Any, exc: Exception) -> BotError:
        if isinstance(exc, BotError):
            return exc.with_context(key=str(key))
        return TransformError(
            f"{exc} updating entry with uid: {key}", key=key, cause=exc
        ).with_context(record_type=self.record_type.name)

    def fetch_datum(self, key: Any) -> Any:
        """Call the fetch collaborator; faults surface as :class:`FetchError`."""
        if self.fetcher is None:
            raise ConfigError(
                f"Record type {self.record_type.name!r} has no fetcher"
            ).with_context(record_type=self.record_type.name)
        try:
            return self.fetcher.fetch_datum(key)
        except BotError:
            raise
        except Exception as exc:
            raise FetchError(f"{exc} fetching entry with uid: {key}", cause=exc).with_context(
                key=str(key), record_type=self.record_type.name
            ) from exc

    def process_datum(self, raw: Any) -> dict[str, Any] | None:
        """Run the record type's transform (identity for dict payloads if none)."""
        if self.record_type.transform is None:
            return dict(raw) if isinstance(raw, dict) else None
        return self.record_type.transform(raw)

    def stamp(self, key: Any, candidate: dict[str, Any]) -> dict[str, Any]:
        """Attach the key and, unless the transform supplied one, ``retrieved_at``."""
        stamped = dict(candidate)
        stamped[self.primary_key] = key
        supplied = stamped.get(RETRIEVED_AT)
        if supplied is None:
            stamped[RETRIEVED_AT] = self.clock()
        elif isinstance(supplied, str):
            # Stored text must be UTC to compare with the staleness cutoff
            stamped[RETRIEVED_AT] = as_instant(supplied) or supplied
        return stamped

    # -- Sweeps ------------------------------------------------------------

    def update_stale(self, limit: int | None = None) -> SweepSummary:
        """
        Refresh every due key (at most *limit* of them).

        Failures are logged and counted per key; with ``strict`` the first
        failure is re-raised and the sweep stops. In REPORT mode a failing
        key still counts as failed, after its error envelope is written.
        """
        summary = SweepSummary()
        for key in self.staleness.due_keys(limit):
            summary.attempted += 1
            try:
                result = self._refresh(key, self.error_mode)
            except _ReportedFailure as reported:
                error: BaseException = reported.error
            except Exception as exc:
                if self.strict:
                    raise
                logger.exception("datum_update_failed", key=key, error=str(exc))
                error = exc
            else:
                if result is None:
                    summary.skipped += 1
                else:
                    summary.succeeded += 1
                continue
            if self.strict:
                raise error
            summary.failed += 1
            detail = error.to_dict() if isinstance(error, BotError) else {"message": str(error)}
            summary.errors.append({"key": key, **detail})
        logger.info("stale_sweep_completed", record_type=self.record_type.name, **summary.to_dict())
        return summary

    def register_keys(self, keys: Iterable[Any]) -> int:
        """Store a bare row for each key not stored yet; returns how many were new."""
        added = 0
        for key in keys:
            if key is None or self.store.exists(key):
                continue
            self.store.upsert([self.primary_key], {self.primary_key: key})
            added += 1
        return added

    def fetch_data_via_incremental_search(self) -> int:
        """Register keys the discovery collaborator reports as new."""
        if self.record_type.discover_new is None:
            return 0
        added = self.register_keys(self.record_type.discover_new(self))
        logger.info("incremental_search_completed", new_keys=added)
        return added

    def fetch_data_via_alpha_search(self) -> int:
        """Register every key of the re-enumerated key space not stored yet."""
        if self.record_type.discover_all is None:
            return 0
        added = self.register_keys(self.record_type.discover_all(self))
        logger.info("alpha_search_completed", new_keys=added)
        return added

    def fetch_all(self, records: Iterable[dict[str, Any]]) -> int:
        """
        Persist complete records yielded by a bot that lists everything at once.

        Each record is projected onto the declared fields, stamped with
        ``retrieved_at`` and upserted on the primary key.
        """
        saved = 0
        for record in records:
            record = self.record_type.project(record)
            key = record.get(self.primary_key)
            if key is None:
                raise ConfigError(
                    f"Record without {self.primary_key!r} yielded by {self.record_type.name!r}"
                ).with_context(record_type=self.record_type.name)
            self.prepare_and_save_data(self.stamp(key, record))
            saved += 1
        logger.info("records_fetched", record_type=self.record_type.name, saved=saved)
        return saved

    def update_data(self, limit: int | None = None) -> SweepSummary | None:
        """
        Discover keys, refresh the due ones, and file a run report.

        Returns:
            The staleness sweep summary (None if the bot has no fetcher)
        """
        try:
            if self.record_type.fetch_records is not None:
                self.fetch_all(self.record_type.fetch_records(self))
            if self.record_type.use_alpha_search:
                self.fetch_data_via_alpha_search()
            else:
                self.fetch_data_via_incremental_search()
            summary = self.update_stale(limit) if self.fetcher is not None else None
        except Exception as exc:
            self.save_run_report({"status": "failure", "error": str(exc)})
            raise
        self.save_run_report({"status": "success"})
        return summary

    def save_run_report(self, report: dict[str, Any]) -> None:
        if self.report_sink is None:
            return
        self.report_sink.save_run_report(report)

    # -- Validation & save contracts ----------------------------------------

    def validate_datum(self, record: dict[str, Any]) -> list[ValidationIssue]:
        """Schema issues for *record*; empty when valid or when no schema is declared."""
        if not self.record_type.schema:
            return []
        return self.validator.validate(self.record_type.schema, record)

    def prepare_and_save_data(self, record: dict[str, Any]) -> bool:
        """Encode *record* (leaving it untouched) and upsert it on the primary key."""
        return self.store.upsert([self.primary_key], encode(record))

    def save_entity(self, record: dict[str, Any]) -> bool:
        """
        Validate (ignoring the raw ``data`` payload) and save.

        Returns:
            True if saved, False if the record was invalid (nothing written)
        """
        issues = self.validate_datum(strip_payload(record))
        if issues:
            logger.info(
                "entity_rejected",
                key=record.get(self.primary_key),
                issues=[issue.to_dict() for issue in issues],
            )
            return False
        return self.prepare_and_save_data(record)

    def save_entity_strict(self, record: dict[str, Any]) -> bool:
        """
        Like :meth:`save_entity` but raise instead of returning False.

        Raises:
            RecordInvalid: Carrying the validation issues; nothing is written
        """
        issues = self.validate_datum(strip_payload(record))
        if issues:
            raise RecordInvalid(
                f"Invalid {self.record_type.name} record: "
                + "; ".join(issue.message for issue in issues),
                errors=issues,
            ).with_context(key=str(record.get(self.primary_key)), record_type=self.record_type.name)
        return self.prepare_and_save_data(record)

    # -- Registry pages ------------------------------------------------------

    def registry_url(self, key: Any) -> str | None:
        """Computed URL for *key* if the record type knows one, else the stored one."""
        if self.record_type.computed_registry_url is not None:
            url = self.record_type.computed_registry_url(key)
            if url:
                return url
        return self.registry_url_from_db(key)

    def registry_url_from_db(self, key: Any) -> str | None:
        row = self.store.fetch(key)
        if row is None:
            return None
        return row.get("registry_url")

    def fetch_registry_page(self, key: Any) -> str:
        """GET the registry page for *key* through the page client."""
        if self.page_client is None:
            raise ConfigError("fetch_registry_page needs a page client")
        url = self.registry_url(key)
        if not url:
            raise FetchError(f"No registry url for uid: {key}").with_context(key=str(key))
        return self.page_client.get_content(url)


__all__ = ["ErrorMode", "SweepSummary", "SyncEngine", "to_json"]
