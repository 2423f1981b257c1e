"""
Export engine: stored records -> publications, minus the unchanged ones.

Manifesto:
    Downstream consumers want each change once. Every stored record is
    published through the record type's ``publish`` transform, then
    compared with what was emitted last time:

    - **Fingerprint match:** The published content hashes the same as the
      stored ``export_fingerprint`` (volatile fields excluded)
    - **No newer source update:** ``last_updated(record)`` is not later
      than the stored ``last_exported_at``

    Only when both hold is the record suppressed. Every record that is
    emitted gets ``last_exported_at`` and ``export_fingerprint`` stamped.

Architecture:
    ::

        export_data()  (streaming; stamp-then-yield per item)
          │
          for record in all_stored_records():
              published = publish(record)
              fp = fingerprint(published, exclude=volatile_fields)
              unchanged? ──► skip
              stamp(record, fp) ──► yield published

        export_batch()  (two-phase)
          │
          ├── phase 1: compute every publishable item (no writes)
          └── phase 2: stamp all, return list

Consumption semantics:
    ``export_data`` is a generator. An item is stamped right before it is
    handed to the caller, so abandoning the iteration leaves items already
    received stamped and items never received unstamped. Use
    ``export_batch`` when partial stamping is unwanted.

Tags:
    export, deduplication, fingerprint, botsync
"""

from __future__ import annotations

import random
from collections.abc import Callable, Iterator
from datetime import datetime
from typing import Any, TextIO

from botsync.core.codec import decode, encode
from botsync.core.errors import ConfigError
from botsync.core.hashing import fingerprint
from botsync.core.logging import get_logger
from botsync.core.staleness import as_instant, utcnow
from botsync.core.store import RecordStore
from botsync.core.validation import Validator
from botsync.framework.record_type import RecordType
from botsync.framework.sync import to_json

logger = get_logger(__name__)

LAST_EXPORTED_AT = "last_exported_at"
EXPORT_FINGERPRINT = "export_fingerprint"


class ExportEngine:
    """
    Emits publications for the records of one record type.

    Args:
        record_type: Must be exportable (``publish`` and ``last_updated`` set)
        store: The bot's record store
        validator: Validator for the publish schema
        clock: Callable returning the current aware datetime
    """

    def __init__(
        self,
        record_type: RecordType,
        store: RecordStore,
        validator: Validator,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if record_type.publish is None:
            raise ConfigError(
                f"Record type {record_type.name!r} is not exportable"
            ).with_context(record_type=record_type.name)
        self.record_type = record_type
        self.store = store
        self.validator = validator
        self.clock = clock

    @property
    def primary_key(self) -> str:
        return self.record_type.primary_key

    def all_stored_records(self, skip_nulls: bool = False) -> list[dict[str, Any]]:
        """Every stored row decoded back into a record, in insertion order."""
        return [decode(row, skip_nulls=skip_nulls) for row in self.store.all_rows()]

    def publish(self, record: dict[str, Any]) -> dict[str, Any]:
        return self.record_type.publish(record)

    def fingerprint(self, published: dict[str, Any]) -> str:
        return fingerprint(published, exclude=self.record_type.volatile_fields)

    def is_unchanged(self, record: dict[str, Any], fp: str) -> bool:
        """True when *record* would re-emit exactly what was exported last time."""
        if record.get(EXPORT_FINGERPRINT) != fp:
            return False
        exported_at = as_instant(record.get(LAST_EXPORTED_AT))
        if exported_at is None:
            return False
        updated_at = as_instant(self.record_type.last_updated(record))
        return updated_at is None or updated_at <= exported_at

    def pending(self) -> Iterator[tuple[dict[str, Any], dict[str, Any], str]]:
        """Yield ``(record, published, fingerprint)`` for every record due for export."""
        for record in self.all_stored_records():
            published = self.publish(record)
            fp = self.fingerprint(published)
            if self.is_unchanged(record, fp):
                logger.debug("export_suppressed", key=record.get(self.primary_key))
                continue
            yield record, published, fp

    def stamp(self, record: dict[str, Any], fp: str) -> None:
        """Persist export bookkeeping for one emitted record."""
        self.store.upsert(
            [self.primary_key],
            encode(
                {
                    self.primary_key: record[self.primary_key],
                    LAST_EXPORTED_AT: self.clock(),
                    EXPORT_FINGERPRINT: fp,
                }
            ),
        )

    def export_data(self, stamp: bool = True) -> Iterator[dict[str, Any]]:
        """
        Lazily yield publications of new or changed records.

        Args:
            stamp: Record each yielded item as exported. Disable for dry runs
                that must not advance export state.
        """
        emitted = 0
        for record, published, fp in self.pending():
            if stamp:
                self.stamp(record, fp)
            emitted += 1
            yield published
        logger.info("export_completed", record_type=self.record_type.name, emitted=emitted)

    def export_batch(self) -> list[dict[str, Any]]:
        """
        Two-phase export: compute every publication, then stamp them all.

        Nothing is stamped if publishing any record raises.
        """
        with self.store.write_lock:
            batch = list(self.pending())
            for record, _published, fp in batch:
                self.stamp(record, fp)
        logger.info("export_batch_completed", record_type=self.record_type.name, emitted=len(batch))
        return [published for _record, published, _fp in batch]

    def export(self, output: TextIO, as_array: bool = False) -> int:
        """
        Write publications to *output*.

        One JSON document per line, or a single JSON array with ``as_array``.

        Returns:
            Number of publications written
        """
        if as_array:
            items = self.export_batch()
            output.write(to_json(items) + "\n")
            return len(items)
        count = 0
        for item in self.export_data():
            output.write(to_json(item) + "\n")
            count += 1
        return count

    def spotcheck_data(self, sample: int | None = None) -> list[dict[str, Any]]:
        """Publish every record (or a random *sample* of them) without stamping."""
        records = self.all_stored_records()
        if sample is not None and sample < len(records):
            records = random.sample(records, sample)
        return [self.publish(record) for record in records]

    def validate_data(self) -> list[dict[str, Any]]:
        """
        Validate the published form of every stored record.

        Returns:
            ``[{"record": published, "errors": [...]}]`` for invalid records only
        """
        schema = self.record_type.publish_schema
        if not schema:
            raise ConfigError(
                f"Record type {self.record_type.name!r} declares no publish_schema"
            ).with_context(record_type=self.record_type.name)
        invalid = []
        for record in self.all_stored_records():
            published = self.publish(record)
            issues = self.validator.validate(schema, published)
            if issues:
                invalid.append(
                    {"record": published, "errors": [issue.to_dict() for issue in issues]}
                )
        logger.info("validate_data_completed", record_type=self.record_type.name, invalid=len(invalid))
        return invalid


__all__ = ["ExportEngine", "LAST_EXPORTED_AT", "EXPORT_FINGERPRINT"]
