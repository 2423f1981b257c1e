"""
botsync core - storage, codec, staleness and validation primitives.

Everything here is bot-agnostic: the framework layer
(:mod:`botsync.framework`) composes these into synchronization and export
engines for a declared record type.
"""

from botsync.core.codec import decode, encode
from botsync.core.connection import ConnectionInfo, SqliteConnection, create_connection
from botsync.core.errors import (
    AlreadyRunningError,
    BotError,
    ConfigError,
    FetchError,
    RecordInvalid,
    SchemaNotFoundError,
    StorageBusyError,
    StorageError,
    TransformError,
    ValidationError,
)
from botsync.core.hashing import fingerprint
from botsync.core.staleness import StalenessPolicy
from botsync.core.store import RecordStore
from botsync.core.validation import SchemaRegistry, ValidationIssue, Validator

__all__ = [
    # Codec
    "encode",
    "decode",
    # Storage
    "SqliteConnection",
    "ConnectionInfo",
    "create_connection",
    "RecordStore",
    "StalenessPolicy",
    # Validation
    "SchemaRegistry",
    "Validator",
    "ValidationIssue",
    # Hashing
    "fingerprint",
    # Errors
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
]
