"""
Unit tests for the locking module.

Tests cover:
- Resource name sanitization
- Lock acquisition and release
- Retry exhaustion
- Stale lock reclamation and heartbeat refresh
"""

import os
import threading
import time

import pytest
from filelock import FileLock

from frameworkkit.core.exceptions import IllegalFileNameError, LockTimeoutError
from frameworkkit.core.locking import LockManager, sanitize_file_name


class TestSanitizeFileName:
    """Tests for sanitize_file_name."""

    def test_slashes_are_replaced(self):
        """Test scoped package names map to a flat file name."""
        assert (
            sanitize_file_name("package-@openui5/sap.m@1.120.0")
            == "package-@openui5-sap.m@1.120.0"
        )

    def test_plain_name_unchanged(self):
        """Test names without special characters are kept."""
        assert sanitize_file_name("metadata-com.sap_x_1.0.0") == "metadata-com.sap_x_1.0.0"

    @pytest.mark.parametrize("name", ["a b", "a:b", "a\\b", "a*b", ".hidden", ""])
    def test_illegal_names_rejected(self, name):
        """Test names with illegal characters raise."""
        with pytest.raises(IllegalFileNameError) as exc_info:
            sanitize_file_name(name)

        assert f'Illegal file name: "{name}"' in str(exc_info.value)


class TestLockManager:
    """Tests for LockManager class."""

    def test_lock_path_inside_lock_dir(self, tmp_path):
        """Test lock files are placed in the lock directory."""
        manager = LockManager(tmp_path / "locks")

        path = manager.get_lock_path("package-@openui5/sap.m@1.0.0")

        assert path == tmp_path / "locks" / "package-@openui5-sap.m@1.0.0.lock"

    def test_named_lock_creates_lock_dir(self, tmp_path):
        """Test the lock directory is created on first use."""
        lock_dir = tmp_path / "locks"
        manager = LockManager(lock_dir)

        with manager.named_lock("resource") as lock_path:
            assert lock_dir.is_dir()
            assert lock_path.exists()

    def test_lock_released_after_block(self, tmp_path):
        """Test the lock can be acquired again after release."""
        manager = LockManager(tmp_path, wait=0.1, retries=1)

        with manager.named_lock("resource"):
            pass

        with manager.named_lock("resource"):
            pass

    def test_lock_released_on_exception(self, tmp_path):
        """Test the lock is released when the block raises."""
        manager = LockManager(tmp_path, wait=0.1, retries=1)

        with pytest.raises(RuntimeError):
            with manager.named_lock("resource"):
                raise RuntimeError("boom")

        with manager.named_lock("resource"):
            pass

    def test_synchronize_returns_callback_result(self, tmp_path):
        """Test synchronize runs the callback under the lock."""
        manager = LockManager(tmp_path)

        assert manager.synchronize("resource", lambda: 42) == 42

    def test_timeout_after_retries(self, tmp_path):
        """Test LockTimeoutError when a fresh lock stays held."""
        manager = LockManager(tmp_path, wait=0.05, stale_after=60, retries=2)
        holder = FileLock(manager.get_lock_path("resource"))

        with holder:
            with pytest.raises(LockTimeoutError) as exc_info:
                with manager.named_lock("resource"):
                    pass

        assert exc_info.value.lock_name == "resource"
        assert exc_info.value.attempts == 2

    def test_illegal_name_raises_before_locking(self, tmp_path):
        """Test illegal names are rejected."""
        manager = LockManager(tmp_path)

        with pytest.raises(IllegalFileNameError):
            with manager.named_lock("bad name"):
                pass

    def test_acquire_touches_lock_file(self, tmp_path):
        """Test the lock file's mtime reflects the current holder."""
        manager = LockManager(tmp_path)
        lock_path = manager.get_lock_path("resource")
        lock_path.write_text("")
        old = time.time() - 3600
        os.utime(lock_path, (old, old))

        with manager.named_lock("resource"):
            assert lock_path.stat().st_mtime > old + 1800

    def test_serializes_threads(self, tmp_path):
        """Test concurrent holders never overlap."""
        manager = LockManager(tmp_path, wait=5)
        active = []
        overlaps = []

        def work():
            with manager.named_lock("resource"):
                active.append(1)
                if len(active) > 1:
                    overlaps.append(True)
                time.sleep(0.02)
                active.pop()

        threads = [threading.Thread(target=work) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert overlaps == []


class TestStaleLocks:
    """Tests for stale lock detection."""

    def test_is_stale_for_old_lock_file(self, tmp_path):
        """Test lock files older than stale_after are stale."""
        manager = LockManager(tmp_path, stale_after=10)
        lock_path = manager.get_lock_path("resource")
        lock_path.write_text("")
        old = time.time() - 60
        os.utime(lock_path, (old, old))

        assert manager._is_stale(lock_path)

    def test_is_not_stale_for_fresh_lock_file(self, tmp_path):
        """Test recently touched lock files are not stale."""
        manager = LockManager(tmp_path, stale_after=10)
        lock_path = manager.get_lock_path("resource")
        lock_path.write_text("")

        assert not manager._is_stale(lock_path)

    def test_missing_lock_file_is_not_stale(self, tmp_path):
        """Test a vanished lock file is not reported as stale."""
        manager = LockManager(tmp_path)

        assert not manager._is_stale(tmp_path / "missing.lock")

    def test_stale_lock_is_reclaimed(self, tmp_path):
        """Test an abandoned lock is removed and acquisition succeeds."""
        manager = LockManager(tmp_path, wait=0.05, stale_after=1, retries=3)
        lock_path = manager.get_lock_path("resource")
        holder = FileLock(lock_path)
        holder.acquire()
        try:
            old = time.time() - 120
            os.utime(lock_path, (old, old))

            with manager.named_lock("resource"):
                assert lock_path.exists()
        finally:
            holder.release()

    def test_held_lock_stays_fresh(self, tmp_path):
        """Test a holder working longer than stale_after keeps its file fresh."""
        manager = LockManager(tmp_path, stale_after=0.2)

        with manager.named_lock("resource") as lock_path:
            time.sleep(0.6)
            assert not manager._is_stale(lock_path)

    def test_long_running_holder_not_reclaimed(self, tmp_path):
        """Test a waiter never enters while a live holder outlasts stale_after."""
        manager = LockManager(tmp_path, wait=0.1, stale_after=0.3, retries=50)
        holder_inside = threading.Event()
        active = []
        overlaps = []

        def hold(label, duration):
            with manager.named_lock("package-x@1.0.0"):
                if active:
                    overlaps.append((label, list(active)))
                active.append(label)
                holder_inside.set()
                time.sleep(duration)
                active.remove(label)

        first = threading.Thread(target=hold, args=("first", 1.0))
        first.start()
        assert holder_inside.wait(5)
        second = threading.Thread(target=hold, args=("second", 0))
        second.start()
        first.join()
        second.join()

        assert overlaps == []
        assert active == []
