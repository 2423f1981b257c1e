"""
Field codec: typed record values <-> flat storable rows.

SQLite stores scalars only, so compound values (lists, dicts) are written
as compact JSON text and decoded again on every read. Timestamps are
written as ISO-8601 text, which sorts lexicographically in the same order
as the instants it names (for values in one timezone, UTC by convention).

Round trip:
    ::

        {"uid": "1", "officers": [{"name": "A"}], "retrieved_at": datetime(...)}
                          │ encode
                          ▼
        {"uid": "1", "officers": '[{"name":"A"}]', "retrieved_at": "2024-05-01T10:00:00+00:00"}
                          │ decode
                          ▼
        {"uid": "1", "officers": [{"name": "A"}], "retrieved_at": "2024-05-01T10:00:00+00:00"}

The reserved ``data`` field carries the raw fetched payload alongside the
record. It is stored but never returned by :func:`decode`.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import UTC, date, datetime
from typing import Any

RESERVED_PAYLOAD_FIELD = "data"


def encode_value(value: Any) -> Any:
    """Encode a single value for storage."""
    if isinstance(value, (list, tuple, dict)):
        return json.dumps(value, separators=(",", ":"), default=_json_default)
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


def encode(record: Mapping[str, Any]) -> dict[str, Any]:
    """
    Prepare a record for saving.

    Returns a new dict; the input record (and anything nested in it) is
    left untouched. ``None`` values stay ``None`` so they land as SQL NULL.
    """
    return {name: encode_value(value) for name, value in record.items()}


def decode_value(value: Any) -> Any:
    """Decode a stored value, passing through anything that is not JSON text."""
    if not isinstance(value, str):
        return value
    stripped = value.strip()
    if not stripped or stripped[0] not in "[{":
        return value
    try:
        return json.loads(stripped)
    except ValueError:
        return value


def decode(row: Mapping[str, Any], skip_nulls: bool = False) -> dict[str, Any]:
    """
    Turn a stored row back into a record.

    Args:
        row: Mapping of column name to stored value (e.g. ``dict(sqlite3.Row)``)
        skip_nulls: Drop fields whose value is ``None`` instead of keeping them

    Returns:
        A new dict without the reserved ``data`` payload field.
    """
    record: dict[str, Any] = {}
    for name, value in row.items():
        if name == RESERVED_PAYLOAD_FIELD:
            continue
        if value is None:
            if not skip_nulls:
                record[name] = None
            continue
        record[name] = decode_value(value)
    return record


def strip_payload(record: Mapping[str, Any]) -> dict[str, Any]:
    """Copy of *record* without the reserved ``data`` field."""
    return {k: v for k, v in record.items() if k != RESERVED_PAYLOAD_FIELD}


def _json_default(value: Any) -> Any:
    # Timestamps nested inside compound values
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


__all__ = [
    "RESERVED_PAYLOAD_FIELD",
    "encode",
    "encode_value",
    "decode",
    "decode_value",
    "strip_payload",
]
