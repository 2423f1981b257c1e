"""Tests for botsync.core.settings module."""

from datetime import timedelta
from pathlib import Path

import pytest
from pydantic import ValidationError

from botsync.core.settings import BotSettings, clear_settings_cache, get_settings


class TestBotSettings:
    def test_defaults(self, monkeypatch):
        for name in ("BOTSYNC_DB_DIR", "BOTSYNC_STALE_AFTER_DAYS", "BOTSYNC_BUSY_RETRIES"):
            monkeypatch.delenv(name, raising=False)
        settings = BotSettings(_env_file=None)
        assert settings.table_name == "ocdata"
        assert settings.busy_retries == 3
        assert settings.stale_after == timedelta(days=30)
        assert settings.db_path("acme") == Path("db") / "acme.db"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("BOTSYNC_STALE_AFTER_DAYS", "7")
        monkeypatch.setenv("BOTSYNC_DB_DIR", "/tmp/bots")
        settings = BotSettings(_env_file=None)
        assert settings.stale_after == timedelta(days=7)
        assert settings.db_path("acme") == Path("/tmp/bots/acme.db")

    def test_log_level_normalized(self):
        assert BotSettings(log_level="debug", _env_file=None).log_level == "DEBUG"

    def test_bad_log_level(self):
        with pytest.raises(ValidationError):
            BotSettings(log_level="LOUD", _env_file=None)

    def test_bad_log_format(self):
        with pytest.raises(ValidationError):
            BotSettings(log_format="xml", _env_file=None)

    def test_negative_retries_rejected(self):
        with pytest.raises(ValidationError):
            BotSettings(busy_retries=-1, _env_file=None)


class TestGetSettings:
    def test_cached(self):
        assert get_settings() is get_settings()

    def test_force_reload(self, monkeypatch):
        first = get_settings()
        monkeypatch.setenv("BOTSYNC_TABLE_NAME", "licences")
        assert get_settings() is first
        assert get_settings(_force_reload=True).table_name == "licences"

    def test_clear_cache(self):
        first = get_settings()
        clear_settings_cache()
        assert get_settings() is not first
