"""
Single-instance lock per bot task.

A pid file ``<pid_dir>/<task>.pid`` marks a running task. Acquiring fails
with :class:`~botsync.core.errors.AlreadyRunningError` while the pid in the
file belongs to a live process; a pid file left by a dead process is
replaced.

Usage:
    with InstanceLock(settings.pid_dir, "acme-run"):
        bot.update_data()
"""

from __future__ import annotations

import os
from pathlib import Path

from botsync.core.errors import AlreadyRunningError
from botsync.core.logging import get_logger

logger = get_logger(__name__)


def pid_alive(pid: int) -> bool:
    """True if a process with *pid* exists."""
    if pid <= 0:
        return False
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but belongs to another user
        return True
    return True


class InstanceLock:
    """Pid-file lock; use as a context manager."""

    def __init__(self, pid_dir: Path | str, task: str) -> None:
        self.pid_dir = Path(pid_dir)
        self.task = task
        self.path = self.pid_dir / f"{task}.pid"
        self._held = False

    def read_pid(self) -> int | None:
        try:
            text = self.path.read_text().strip()
        except FileNotFoundError:
            return None
        try:
            return int(text)
        except ValueError:
            return None

    def acquire(self) -> None:
        """
        Raises:
            AlreadyRunningError: Another live process holds the lock
        """
        existing = self.read_pid()
        if existing is not None and existing != os.getpid() and pid_alive(existing):
            raise AlreadyRunningError(self.task, existing)
        if existing is not None:
            logger.info("stale_pid_file_replaced", task=self.task, pid=existing)
        self.pid_dir.mkdir(parents=True, exist_ok=True)
        self.path.write_text(str(os.getpid()))
        self._held = True

    def release(self) -> None:
        if not self._held:
            return
        if self.read_pid() == os.getpid():
            self.path.unlink(missing_ok=True)
        self._held = False

    def __enter__(self) -> InstanceLock:
        self.acquire()
        return self

    def __exit__(self, *args: object) -> None:
        self.release()


__all__ = ["InstanceLock", "pid_alive"]
