"""
botsync - record lifecycle and synchronization engine for data-collection bots.

- botsync.core: codec, record store, staleness, validation, errors, settings
- botsync.framework: record types, sync/export engines, bots, registry
- botsync.cli: ``botsync`` command line
"""

__version__ = "0.1.0"

from botsync.core import *  # noqa
