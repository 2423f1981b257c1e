"""
CLI layer for botsync.

Terminal transport only: argument parsing, bot loading, the instance lock
and coloured output. Record handling lives in :mod:`botsync.framework`.

Entry point::

    botsync --help
"""

from botsync.cli.app import app

__all__ = ["app"]
