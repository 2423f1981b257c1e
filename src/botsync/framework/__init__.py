"""
botsync framework - bots built from a record type and the core primitives.

This module provides:
- Declarative record types
- Synchronization and export engines
- The Bot composition root and the bot registry
- Run-report sinks, the instance lock and the HTTP page client
"""

from botsync.framework.bot import Bot
from botsync.framework.export import ExportEngine
from botsync.framework.record_type import RecordType
from botsync.framework.registry import clear_registry, get_bot, list_bots, register_bot
from botsync.framework.reports import MemoryRunReportSink, SqliteRunReportSink
from botsync.framework.sync import ErrorMode, SweepSummary, SyncEngine

# Imported on use: botsync.framework.http (httpx), botsync.framework.lock

__all__ = [
    # Declarations
    "RecordType",
    # Engines
    "SyncEngine",
    "ExportEngine",
    "ErrorMode",
    "SweepSummary",
    # Bots
    "Bot",
    "register_bot",
    "get_bot",
    "list_bots",
    "clear_registry",
    # Reports
    "MemoryRunReportSink",
    "SqliteRunReportSink",
]
