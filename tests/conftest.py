"""
Shared pytest fixtures for botsync tests.

This module provides:
- In-memory SQLite connections and record stores
- A controllable clock for staleness and export timing
- A sample licence record type with a publish transform
- Registry and settings cleanup for test isolation
"""

from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from botsync.core.connection import create_connection
from botsync.core.logging import configure_logging
from botsync.core.settings import BotSettings, clear_settings_cache
from botsync.core.store import RecordStore
from botsync.framework.record_type import RecordType
from botsync.framework.registry import clear_registry


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-mark tests based on their location."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Isolation
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_logging() -> None:
    configure_logging(level="WARNING", format="console", force=True)


@pytest.fixture(autouse=True)
def clean_bot_registry() -> Generator[None, None, None]:
    clear_registry()
    yield
    clear_registry()


@pytest.fixture(autouse=True)
def clean_settings_cache() -> Generator[None, None, None]:
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings(tmp_path: Path) -> BotSettings:
    return BotSettings(db_dir=tmp_path / "db", pid_dir=tmp_path / "pids")


# =============================================================================
# Storage
# =============================================================================


@pytest.fixture
def conn():
    connection, _ = create_connection()
    yield connection
    connection.close()


@pytest.fixture
def store(conn) -> RecordStore:
    record_store = RecordStore(conn)
    record_store.ensure_table()
    return record_store


# =============================================================================
# Time
# =============================================================================


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 5, 1, 12, 0, tzinfo=UTC))


# =============================================================================
# Record types
# =============================================================================


def to_licence_publication(record: dict[str, Any]) -> dict[str, Any]:
    return {
        "company": {"name": record["name"], "jurisdiction": record.get("jurisdiction", "gb")},
        "data": [
            {
                "data_type": "licence",
                "sample_date": record.get("sample_date", "2024-01-01"),
                "source_url": record.get("source_url", "http://example.com/licences"),
                "confidence": "HIGH",
                "properties": {"category": record.get("category")},
            }
        ],
    }


def parse_licence(raw: dict[str, Any]) -> dict[str, Any] | None:
    if raw.get("empty"):
        return None
    return {
        "name": raw["name"],
        "category": raw.get("category", "General"),
        "sample_date": raw.get("sample_date", "2024-01-01"),
        "updated_at": raw.get("updated_at"),
    }


@pytest.fixture
def licence_type() -> RecordType:
    return RecordType(
        name="licence",
        schema=None,
        publish_schema="licence-schema",
        transform=parse_licence,
        publish=to_licence_publication,
        last_updated=lambda record: record.get("updated_at"),
    )


class DictFetcher:
    """Fetch collaborator backed by a dict; records every key asked for."""

    def __init__(self, pages: dict[Any, Any] | None = None):
        self.pages = dict(pages or {})
        self.calls: list[Any] = []

    def fetch_datum(self, key: Any) -> Any:
        self.calls.append(key)
        value = self.pages.get(key)
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture
def fetcher() -> DictFetcher:
    return DictFetcher(
        {
            "A1": {"name": "Acme Ltd", "category": "Alcohol"},
            "B2": {"name": "Bravo Ltd", "category": "Gaming"},
        }
    )


@pytest.fixture
def make_fetcher():
    return DictFetcher
