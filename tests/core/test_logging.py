"""
Tests for botsync.core.logging module.

Tests verify:
- configure_logging marks logging configured and is idempotent
- LogContext binds and unbinds bot/task context
- get_logger returns a usable structlog logger
"""

import structlog

from botsync.core.logging import (
    LogContext,
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    is_configured,
    unbind_context,
)


def _bound() -> dict:
    return structlog.contextvars.get_contextvars()


class TestConfigureLogging:
    def test_configured_for_session(self):
        assert is_configured()

    def test_second_call_is_noop(self):
        configure_logging(level="DEBUG", format="json")
        assert is_configured()

    def test_logger_accepts_key_values(self):
        logger = get_logger(__name__)
        logger.info("datum_updated", key="12345")


class TestContext:
    def setup_method(self):
        clear_context()

    def teardown_method(self):
        clear_context()

    def test_bind_and_unbind(self):
        bind_context(bot="acme", task="run")
        assert _bound() == {"bot": "acme", "task": "run"}

        unbind_context("task")
        assert _bound() == {"bot": "acme"}

    def test_log_context_scoped(self):
        bind_context(request="outer")
        with LogContext(bot="acme", task="export"):
            assert _bound() == {"request": "outer", "bot": "acme", "task": "export"}
        assert _bound() == {"request": "outer"}
