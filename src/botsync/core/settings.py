"""
Centralized settings for botsync.

:class:`BotSettings` is the single, validated, cached source of truth for
where bot databases and pid files live, how long a record stays fresh,
and how logging is rendered. Every field can be set through a
``BOTSYNC_*`` environment variable (e.g. ``BOTSYNC_STALE_AFTER_DAYS=7``)
or a ``.env`` file in the working directory.

Tags:
    botsync, configuration, settings, pydantic
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class BotSettings(BaseSettings):
    """botsync configuration."""

    model_config = SettingsConfigDict(
        env_prefix="BOTSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────
    db_dir: Path = Field(default=Path("db"), description="One SQLite file per bot lives here")
    table_name: str = Field(default="ocdata")
    busy_retries: int = Field(default=3, ge=0, description="Extra attempts after a busy/locked write")
    busy_timeout: float = Field(default=5.0, ge=0, description="sqlite3 busy timeout, seconds")

    # ── Staleness ────────────────────────────────────────────────
    stale_after_days: int = Field(default=30, ge=0)

    # ── Process ──────────────────────────────────────────────────
    pid_dir: Path = Field(default=Path("pids"))

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        value = value.upper()
        if value not in {"DEBUG", "INFO", "WARNING", "ERROR"}:
            raise ValueError(f"Unknown log level: {value}")
        return value

    @field_validator("log_format")
    @classmethod
    def _known_format(cls, value: str) -> str:
        value = value.lower()
        if value not in {"json", "console"}:
            raise ValueError(f"Unknown log format: {value}")
        return value

    @property
    def stale_after(self) -> timedelta:
        return timedelta(days=self.stale_after_days)

    def db_path(self, bot_name: str) -> Path:
        """SQLite file for *bot_name*."""
        return self.db_dir / f"{bot_name}.db"


_settings_cache: dict[str, BotSettings] = {}


def get_settings(*, _force_reload: bool = False) -> BotSettings:
    """Load, validate, and cache a :class:`BotSettings` instance."""
    if not _force_reload and "default" in _settings_cache:
        return _settings_cache["default"]
    settings = BotSettings()
    _settings_cache["default"] = settings
    return settings


def clear_settings_cache() -> None:
    """Clear the settings cache (primarily for testing)."""
    _settings_cache.clear()


__all__ = ["BotSettings", "get_settings", "clear_settings_cache"]
