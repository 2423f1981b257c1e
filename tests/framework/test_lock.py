"""Tests for botsync.framework.lock module."""

import os
from unittest.mock import patch

import pytest

from botsync.core.errors import AlreadyRunningError
from botsync.framework.lock import InstanceLock, pid_alive


class TestPidAlive:
    def test_own_process(self):
        assert pid_alive(os.getpid())

    def test_non_positive(self):
        assert not pid_alive(0)
        assert not pid_alive(-1)

    def test_missing_process(self):
        with patch("botsync.framework.lock.os.kill", side_effect=ProcessLookupError):
            assert not pid_alive(999999)

    def test_other_users_process(self):
        with patch("botsync.framework.lock.os.kill", side_effect=PermissionError):
            assert pid_alive(1)


class TestInstanceLock:
    def test_writes_and_removes_pid_file(self, tmp_path):
        lock = InstanceLock(tmp_path / "pids", "acme-run")
        with lock:
            assert lock.path.read_text() == str(os.getpid())
        assert not lock.path.exists()

    def test_live_holder_blocks(self, tmp_path):
        pid_dir = tmp_path / "pids"
        pid_dir.mkdir()
        (pid_dir / "acme-run.pid").write_text("4242")

        with patch("botsync.framework.lock.pid_alive", return_value=True):
            with pytest.raises(AlreadyRunningError) as exc_info:
                InstanceLock(pid_dir, "acme-run").acquire()

        assert exc_info.value.pid == 4242
        assert (pid_dir / "acme-run.pid").read_text() == "4242"

    def test_stale_pid_file_replaced(self, tmp_path):
        pid_dir = tmp_path / "pids"
        pid_dir.mkdir()
        (pid_dir / "acme-run.pid").write_text("4242")

        with patch("botsync.framework.lock.pid_alive", return_value=False):
            with InstanceLock(pid_dir, "acme-run") as lock:
                assert lock.read_pid() == os.getpid()

    def test_tasks_are_independent(self, tmp_path):
        with InstanceLock(tmp_path, "acme-run"):
            with InstanceLock(tmp_path, "acme-export") as export_lock:
                assert export_lock.path.exists()

    def test_released_on_error(self, tmp_path):
        lock = InstanceLock(tmp_path, "acme-run")
        with pytest.raises(RuntimeError):
            with lock:
                raise RuntimeError("boom")
        assert not lock.path.exists()

    def test_garbage_pid_file_ignored(self, tmp_path):
        (tmp_path / "acme-run.pid").write_text("not a pid")
        with InstanceLock(tmp_path, "acme-run") as lock:
            assert lock.read_pid() == os.getpid()
