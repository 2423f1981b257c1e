"""
Declarative record types.

A :class:`RecordType` tells the generic engines everything that is
specific to one kind of record: which field is the key, which fields are
stored, which schemas apply, how raw fetched content becomes a record,
how a record is published, and how new keys are discovered. Bots differ
only in the RecordType (and fetcher) they hand to the engines.

Example::

    licence = RecordType(
        name="licence",
        primary_key="name",
        fields=("name", "type", "sample_date", "source_url", "confidence"),
        publish_schema="licence-schema",
        publish=to_publication,
        last_updated=lambda record: record.get("sample_date"),
    )

Declarations are checked when constructed; a malformed one raises
:class:`~botsync.core.errors.ConfigError` naming every problem at once.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from botsync.core.errors import ConfigError
from botsync.core.store import is_identifier

if TYPE_CHECKING:
    from botsync.framework.sync import SyncEngine

DEFAULT_PRIMARY_KEY = "uid"
BOOKKEEPING_FIELDS = ("retrieved_at", "last_exported_at", "export_fingerprint")


@dataclass(frozen=True)
class RecordType:
    """
    Configuration for one kind of record.

    Attributes:
        name: Identifier used in logs and errors
        primary_key: Sole upsert key field (``uid`` unless overridden)
        fields: Declared stored fields; empty means "whatever the transform returns"
        schema: Schema name for stored records (``validate_datum``/save contracts)
        publish_schema: Schema name for the published form (``validate_data``)
        transform: Raw fetched content -> candidate record (or None to skip)
        publish: Stored record -> publication-shaped dict
        last_updated: Stored record -> timestamp the source says it changed
        discover_new: Yields keys not seen before (incremental search)
        discover_all: Yields the complete key space (alpha search)
        fetch_records: Yields complete records for bots that list everything at once
        computed_registry_url: Key -> registry page URL, or None to use the stored one
        use_alpha_search: Prefer ``discover_all`` over ``discover_new`` in a sweep
        stale_after: Freshness threshold; None falls back to settings
        volatile_fields: Published fields ignored by the export fingerprint
        exportable: Whether ``publish``/``last_updated``/``publish_schema`` are required
    """

    name: str
    primary_key: str = DEFAULT_PRIMARY_KEY
    fields: tuple[str, ...] = ()
    schema: str | None = None
    publish_schema: str | None = None
    transform: Callable[[Any], dict[str, Any] | None] | None = None
    publish: Callable[[dict[str, Any]], dict[str, Any]] | None = None
    last_updated: Callable[[dict[str, Any]], Any] | None = None
    discover_new: Callable[[SyncEngine], Iterable[Any]] | None = None
    discover_all: Callable[[SyncEngine], Iterable[Any]] | None = None
    fetch_records: Callable[[SyncEngine], Iterable[dict[str, Any]]] | None = None
    computed_registry_url: Callable[[Any], str | None] | None = None
    use_alpha_search: bool = False
    stale_after: timedelta | None = None
    volatile_fields: tuple[str, ...] = BOOKKEEPING_FIELDS
    exportable: bool = True
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        problems = []
        if not self.name:
            problems.append("name is required")
        if not self.primary_key or not is_identifier(self.primary_key):
            problems.append(f"primary_key {self.primary_key!r} is not a valid field name")
        bad_fields = [f for f in self.fields if not is_identifier(f)]
        if bad_fields:
            problems.append(f"fields {bad_fields} are not valid field names")
        if self.fields and self.primary_key not in self.fields:
            problems.append(f"primary_key {self.primary_key!r} must be one of the declared fields")
        if self.exportable:
            if self.publish is None:
                problems.append("publish (to the publication shape) is required")
            if self.last_updated is None:
                problems.append("last_updated accessor is required")
            if not self.publish_schema:
                problems.append("publish_schema is required")
        if self.use_alpha_search and self.discover_all is None:
            problems.append("use_alpha_search needs discover_all")
        if problems:
            raise ConfigError(
                f"Invalid record type {self.name!r}: " + "; ".join(problems)
            ).with_context(record_type=self.name)

    def project(self, record: dict[str, Any]) -> dict[str, Any]:
        """
        Keep only declared fields plus bookkeeping.

        Records of a type with no declared fields pass through unchanged.
        """
        if not self.fields:
            return dict(record)
        keep = set(self.fields) | set(BOOKKEEPING_FIELDS)
        return {k: v for k, v in record.items() if k in keep}
