"""
Staleness policy: which keys are due for a refetch.

A key is due when its row has never been retrieved (``retrieved_at`` is
NULL) or was retrieved longer ago than the freshness threshold. Due keys
come out never-fetched first, then oldest first, so a sweep that is cut
short by ``limit`` still works on the most overdue records.

Manifesto:
    - **Recomputed per sweep:** ``due_keys`` runs a fresh query every call;
      it is not a live cursor that sees its own writes
    - **Bootstrap-safe:** A table that predates ``retrieved_at`` gets the
      column created and every key treated as due
    - **Deterministic:** Ties inside the never-fetched group keep insertion
      order

Examples:
    >>> policy = StalenessPolicy(store, primary_key="custom_uid")
    >>> list(policy.due_keys(limit=2))
    ['99999', 'A094567']

Tags:
    staleness, scheduling, incremental, botsync
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import UTC, date, datetime, timedelta
from typing import Any

from botsync.core.logging import get_logger
from botsync.core.store import RecordStore, quote_identifier

logger = get_logger(__name__)

RETRIEVED_AT = "retrieved_at"
DEFAULT_STALE_AFTER = timedelta(days=30)


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_instant(value: Any) -> datetime | None:
    """Normalize a stored or source-supplied timestamp to an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        instant = value
    elif isinstance(value, date):
        instant = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            instant = datetime.fromisoformat(value)
        except ValueError:
            logger.warning("unparseable_timestamp", value=value)
            return None
    else:
        return None
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC)


class StalenessPolicy:
    """
    Decides which keys of a :class:`RecordStore` are due.

    Args:
        store: The bot's record store
        primary_key: Name of the key column to return
        stale_after: Freshness threshold
        clock: Callable returning the current aware datetime
    """

    def __init__(
        self,
        store: RecordStore,
        primary_key: str = "uid",
        stale_after: timedelta = DEFAULT_STALE_AFTER,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.primary_key = primary_key
        self.stale_after = stale_after
        self.clock = clock

    def cutoff(self) -> str:
        """ISO-8601 UTC instant before which a retrieval counts as stale."""
        return (self.clock() - self.stale_after).astimezone(UTC).isoformat()

    def due_keys(self, limit: int | None = None) -> Iterator[Any]:
        """
        Yield due keys, never-fetched first, then by ascending ``retrieved_at``.

        Args:
            limit: Return at most this many keys (applied after ordering)
        """
        if limit is not None and limit <= 0:
            return iter(())

        table = quote_identifier(self.store.table)
        pk = quote_identifier(self.primary_key)

        if not self.store.has_column(RETRIEVED_AT):
            self.store.ensure_column(RETRIEVED_AT)
            logger.info("retrieved_at_bootstrapped", table=self.store.table)

        sql = (
            f"{pk} FROM {table} "
            f"WHERE {RETRIEVED_AT} IS NULL OR {RETRIEVED_AT} < ? "
            f"ORDER BY {RETRIEVED_AT} IS NOT NULL, {RETRIEVED_AT}, rowid"
        )
        params: tuple = (self.cutoff(),)
        if limit is not None:
            sql += " LIMIT ?"
            params += (limit,)

        rows = self.store.select(sql, params)
        logger.debug("due_keys_computed", table=self.store.table, due=len(rows))
        return (row[self.primary_key] for row in rows)


__all__ = ["StalenessPolicy", "RETRIEVED_AT", "DEFAULT_STALE_AFTER", "as_instant", "utcnow"]
