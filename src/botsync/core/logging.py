"""
botsync logging - structured logging for bots.

Manifesto:
    A bot run touches thousands of keys; the log has to say which key,
    which bot and which stage failed without grepping free text.

    - **Structured:** snake_case events with key/value context
    - **Correlated:** ``bot`` and ``task`` bound once per run via contextvars
    - **Flexible:** console output for development, JSON for cron/log shipping

Configuration is read from arguments, falling back to environment variables:

- ``BOTSYNC_LOG_LEVEL``: DEBUG | INFO | WARNING | ERROR (default: INFO)
- ``BOTSYNC_LOG_FORMAT``: json | console (default: console)

Examples:
    >>> from botsync.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", format="console")
    >>> logger = get_logger(__name__)
    >>> logger.info("datum_updated", key="12345")

Tags:
    logging, structlog, observability, botsync
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, Literal

import structlog
from structlog.types import Processor

_configured = False


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None,
    format: Literal["json", "console"] | None = None,
    force: bool = False,
) -> None:
    """
    Configure structured logging for the application.

    Should be called once at startup (CLI entry). Subsequent calls are
    no-ops unless ``force=True``. Logs go to stderr so that ``export``
    can keep stdout for published records.

    Args:
        level: Log level (overrides BOTSYNC_LOG_LEVEL env var)
        format: Output format (overrides BOTSYNC_LOG_FORMAT env var)
        force: Reconfigure even if already configured
    """
    global _configured

    if _configured and not force:
        return

    log_level = (level or os.environ.get("BOTSYNC_LOG_LEVEL", "INFO")).upper()
    log_format = (format or os.environ.get("BOTSYNC_LOG_FORMAT", "console")).lower()

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, log_level),
        force=True,
    )
    logging.getLogger("botsync").setLevel(getattr(logging, log_level))

    _configured = True


def is_configured() -> bool:
    """Check if logging has been configured."""
    return _configured


def get_logger(name: str | None = None) -> Any:
    """Get a structured logger (usually ``get_logger(__name__)``)."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(bot="acme_licences", task="run"):
            logger.info("sweep_started")
        # Context cleared here
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args: Any) -> None:
        unbind_context(*self._context.keys())


__all__ = [
    "configure_logging",
    "is_configured",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
