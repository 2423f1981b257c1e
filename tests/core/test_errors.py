"""Tests for botsync.core.errors module."""

import json

import pytest

from botsync.core.errors import (
    AlreadyRunningError,
    BotError,
    ConfigError,
    ErrorCategory,
    ErrorContext,
    FetchError,
    RecordInvalid,
    SchemaNotFoundError,
    StorageBusyError,
    StorageError,
    TransformError,
    ValidationError,
    error_envelope,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_create_empty_context(self):
        ctx = ErrorContext()
        assert ctx.bot is None
        assert ctx.key is None
        assert ctx.metadata == {}

    def test_to_dict_includes_set_fields(self):
        ctx = ErrorContext(bot="acme", key="123", metadata={"url": "http://x"})
        d = ctx.to_dict()
        assert d == {"bot": "acme", "key": "123", "url": "http://x"}


class TestBotError:
    """Test BotError base class."""

    def test_create_minimal_error(self):
        err = BotError("Something failed")
        assert err.message == "Something failed"
        assert err.category == ErrorCategory.INTERNAL
        assert err.retryable is False

    def test_create_with_cause(self):
        cause = ValueError("Invalid value")
        err = BotError("Failed", cause=cause)
        assert err.cause is cause
        assert err.__cause__ is cause

    def test_with_context_fluent_api(self):
        err = BotError("Failed").with_context(bot="acme", key="1", url="http://x")
        assert err.context.bot == "acme"
        assert err.context.key == "1"
        assert err.context.metadata["url"] == "http://x"

    def test_to_dict(self):
        err = BotError("Failed", cause=ValueError("inner")).with_context(table="ocdata")
        d = err.to_dict()
        assert d["error_type"] == "BotError"
        assert d["message"] == "Failed"
        assert d["category"] == "INTERNAL"
        assert d["context"] == {"table": "ocdata"}
        assert d["cause"] == "inner"


class TestSubclasses:
    @pytest.mark.parametrize(
        "error, category",
        [
            (FetchError("x"), ErrorCategory.SOURCE),
            (TransformError("x"), ErrorCategory.PARSE),
            (ValidationError("x"), ErrorCategory.VALIDATION),
            (StorageError("x"), ErrorCategory.DATABASE),
            (ConfigError("x"), ErrorCategory.CONFIG),
        ],
    )
    def test_categories(self, error, category):
        assert error.category == category

    def test_only_busy_is_retryable(self):
        assert StorageBusyError("locked", attempts=4).retryable
        assert not StorageError("x").retryable
        assert not FetchError("x").retryable

    def test_transform_error_carries_key(self):
        err = TransformError("boom updating entry with uid: 7", key=7)
        assert err.key == 7
        assert err.context.key == "7"

    def test_record_invalid_errors(self):
        err = RecordInvalid("bad", errors=[{"field": "name"}])
        assert isinstance(err, ValidationError)
        assert err.to_dict()["errors"] == [{"field": "name"}]

    def test_schema_not_found(self):
        err = SchemaNotFoundError("company-schema")
        assert isinstance(err, ConfigError)
        assert "company-schema" in err.message

    def test_already_running(self):
        err = AlreadyRunningError("acme-run", 123)
        assert err.pid == 123
        assert "Already running" in err.message

    def test_busy_to_dict_has_attempts(self):
        assert StorageBusyError("locked", attempts=4).to_dict()["attempts"] == 4


class TestErrorEnvelope:
    def test_shape(self):
        try:
            raise ValueError("bad page")
        except ValueError as exc:
            envelope = error_envelope(exc)

        assert envelope["error"]["message"] == "bad page"
        assert envelope["error"]["klass"] == "ValueError"
        assert isinstance(envelope["error"]["backtrace"], list)
        assert envelope["error"]["backtrace"]
        json.dumps(envelope)

    def test_bot_error_uses_message(self):
        envelope = error_envelope(FetchError("registry down"))
        assert envelope["error"]["message"] == "registry down"
        assert envelope["error"]["backtrace"] == []
