"""
Structured error types for botsync.

Every failure the engine can surface carries a category, a retry flag and
a context block, so sweeps can decide whether to isolate, retry or abort,
and so the CLI can render a stable JSON error envelope.

Manifesto:
    - **Typed hierarchy:** One class per failure kind named in the design
      (fetch, transform, validation, storage busy, configuration)
    - **Explicit retry semantics:** Only ``StorageBusyError`` is retryable
    - **Rich context:** Errors carry bot, key and table metadata
    - **Error chaining:** The driver or transform exception is kept as cause

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                         BotError                             │
        │  (category, retryable, context, cause)                       │
        ├─────────────────────────────────────────────────────────────┤
        │  FetchError        TransformError     ValidationError       │
        │  (SOURCE)          (PARSE)            (VALIDATION)          │
        │                                            │                 │
        │                                       RecordInvalid         │
        │                                                              │
        │  StorageError      ConfigError        AlreadyRunningError   │
        │  (DATABASE)        (CONFIG)           (CONFIG)              │
        │       │                 │                                    │
        │  StorageBusyError  SchemaNotFoundError                      │
        └─────────────────────────────────────────────────────────────┘

Examples:
    >>> error = StorageBusyError("database is locked", attempts=4)
    >>> error.retryable
    True
    >>> error.with_context(table="ocdata").context.table
    'ocdata'

Tags:
    error-handling, exception-hierarchy, retry-logic, botsync
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    SOURCE = "SOURCE"             # Fetch collaborator faults
    PARSE = "PARSE"               # Transform of raw content failed
    VALIDATION = "VALIDATION"     # Schema violations
    DATABASE = "DATABASE"         # Record store faults
    CONFIG = "CONFIG"             # Record type / schema / settings faults
    INTERNAL = "INTERNAL"         # Bugs, unexpected state
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only fields that were set are emitted by :meth:`to_dict`, so the
    dictionary can be splatted straight into a structlog call.
    """

    bot: str | None = None
    record_type: str | None = None
    key: str | None = None
    table: str | None = None
    schema: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for name in ["bot", "record_type", "key", "table", "schema"]:
            value = getattr(self, name)
            if value is not None:
                result[name] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class BotError(Exception):
    """
    Base exception for all botsync errors.

    Subclasses set ``default_category`` and ``default_retryable`` so that
    raising sites only pass what is specific to the failure.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> BotError:
        """
        Add context to this error (fluent API).

        Usage:
            raise FetchError("Registry down").with_context(bot="acme", key="123")
        """
        for name, value in kwargs.items():
            if hasattr(self.context, name) and name != "metadata":
                setattr(self.context, name, value)
            else:
                self.context.metadata[name] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# PER-KEY FAILURES
# =============================================================================


class FetchError(BotError):
    """
    The fetch collaborator failed for a key.

    Never retried by the engine; retrying is the collaborator's business.
    """

    default_category = ErrorCategory.SOURCE
    default_retryable = False


class TransformError(BotError):
    """Turning raw fetched content into a candidate record raised."""

    default_category = ErrorCategory.PARSE
    default_retryable = False

    def __init__(self, message: str, *, key: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.key = key
        if key is not None:
            self.context.key = str(key)


# =============================================================================
# VALIDATION
# =============================================================================


class ValidationError(BotError):
    """
    Data validation error.

    Ordinary validation outcomes are returned as data; this class only
    exists for callers that explicitly ask for an exception.
    """

    default_category = ErrorCategory.VALIDATION
    default_retryable = False

    def __init__(self, message: str, *, errors: list[Any] | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.errors = list(errors or [])

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["errors"] = [
            e.to_dict() if hasattr(e, "to_dict") else e for e in self.errors
        ]
        return result


class RecordInvalid(ValidationError):
    """Raised by the strict save contract when a record fails its schema."""

    pass


# =============================================================================
# STORAGE
# =============================================================================


class StorageError(BotError):
    """Record store failure."""

    default_category = ErrorCategory.DATABASE
    default_retryable = False


class StorageBusyError(StorageError):
    """
    The store stayed busy/locked for every attempt of a write.

    The only retryable kind at the store layer; by the time it reaches a
    caller the retry budget has already been spent.
    """

    default_retryable = True

    def __init__(self, message: str, *, attempts: int = 0, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.attempts = attempts

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["attempts"] = self.attempts
        return result


# =============================================================================
# CONFIGURATION
# =============================================================================


class ConfigError(BotError):
    """Malformed record type, bot or settings. Fatal at definition time."""

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class SchemaNotFoundError(ConfigError):
    """A schema name did not resolve in the schema registry."""

    def __init__(self, name: str, message: str | None = None):
        super().__init__(message or f"Schema not found: {name}")
        self.context.schema = name


class AlreadyRunningError(ConfigError):
    """Another live process holds the instance lock for this bot task."""

    def __init__(self, task: str, pid: int):
        super().__init__(f"Already running: {task} (pid {pid})")
        self.task = task
        self.pid = pid


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def error_envelope(error: BaseException) -> dict[str, Any]:
    """
    Render an exception as the JSON error envelope used in report mode.

    The shape is ``{"error": {"message", "klass", "backtrace"}}``.
    """
    message = error.message if isinstance(error, BotError) else str(error)
    return {
        "error": {
            "message": message,
            "klass": error.__class__.__name__,
            "backtrace": traceback.format_tb(error.__traceback__),
        }
    }


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "BotError",
    "FetchError",
    "TransformError",
    "ValidationError",
    "RecordInvalid",
    "StorageError",
    "StorageBusyError",
    "ConfigError",
    "SchemaNotFoundError",
    "AlreadyRunningError",
    "error_envelope",
]
