"""
Deterministic hashing for export change detection.

Manifesto:
    Export must not re-emit a record whose published content is the same
    as last time. A fingerprint of the published form, stored next to the
    record, makes that a string comparison:

    - **Deterministic:** Same published content -> same fingerprint, always
    - **Key-order independent:** Dicts are canonicalized with sorted keys
    - **Volatile-aware:** Fields that change on every run (e.g. a
      ``retrieved_at`` copied into the publication) can be excluded

Examples:
    >>> a = fingerprint({"company": {"name": "Foo"}, "data": []})
    >>> b = fingerprint({"data": [], "company": {"name": "Foo"}})
    >>> a == b
    True

Tags:
    hashing, deduplication, change-detection, botsync
"""

import hashlib
import json
from collections.abc import Iterable
from typing import Any


def _without(value: Any, exclude: frozenset[str]) -> Any:
    if isinstance(value, dict):
        return {k: _without(v, exclude) for k, v in value.items() if k not in exclude}
    if isinstance(value, (list, tuple)):
        return [_without(v, exclude) for v in value]
    return value


def canonical_json(value: Any, exclude: Iterable[str] = ()) -> str:
    """Compact, key-sorted JSON text of *value* minus any *exclude* keys at any depth."""
    cleaned = _without(value, frozenset(exclude))
    return json.dumps(cleaned, sort_keys=True, separators=(",", ":"), default=str)


def fingerprint(published: Any, exclude: Iterable[str] = (), length: int = 32) -> str:
    """
    Fingerprint a published record.

    Args:
        published: The publication-shaped structure (nested dicts/lists)
        exclude: Field names to ignore wherever they appear
        length: Hex digest length

    Returns:
        Hex string of specified length
    """
    content = canonical_json(published, exclude)
    return hashlib.sha256(content.encode()).hexdigest()[:length]
