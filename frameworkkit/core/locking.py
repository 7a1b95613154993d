"""
Cross-process locking for framework installations.

Installers running in different processes share the same package, artifact
and metadata directories. Every mutation of those directories happens while
holding a named file lock managed here.

Usage:
    from frameworkkit.core.locking import LockManager

    lock_manager = LockManager(lock_dir)
    with lock_manager.named_lock("package-@openui5/sap.m@1.120.0"):
        # Exclusive access to the package directory
        pass

    path = lock_manager.synchronize("artifact-foo", lambda: install(...))
"""

import logging
import os
import re
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, TypeVar, Union

from filelock import FileLock, Timeout

from frameworkkit.core.exceptions import IllegalFileNameError, LockTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

ILLEGAL_FILE_NAME_PATTERN = re.compile(r"[^0-9a-zA-Z\-._@/]")

DEFAULT_LOCK_WAIT = 10
DEFAULT_LOCK_STALE_AFTER = 60
DEFAULT_LOCK_RETRIES = 10


def sanitize_file_name(name: str) -> str:
    """
    Map a resource name to a file name.

    Names may contain alphanumerics and ``-._@/``; ``/`` is replaced by
    ``-``. Names starting with a dot are rejected.

    Raises:
        IllegalFileNameError: If the name contains other characters

    Example:
        >>> sanitize_file_name("package-@openui5/sap.m@1.120.0")
        'package-@openui5-sap.m@1.120.0'
    """
    if not name or name.startswith(".") or ILLEGAL_FILE_NAME_PATTERN.search(name):
        raise IllegalFileNameError(name)
    return name.replace("/", "-")


class LockManager:
    """
    Named advisory file locks shared by cooperating processes.

    Locks are backed by ``filelock.FileLock``. Each acquisition attempt
    waits up to ``wait`` seconds. When an attempt times out and the lock
    file has not been touched for ``stale_after`` seconds, the lock is
    considered abandoned and its file is removed before retrying. While a
    lock is held, a heartbeat thread keeps its file fresh so that live
    holders are never reclaimed.

    Attributes:
        lock_dir: Directory where lock files are stored
        wait: Seconds to wait per acquisition attempt
        stale_after: Age in seconds after which a held lock is reclaimed
        retries: Number of acquisition attempts
    """

    def __init__(
        self,
        lock_dir: Union[str, Path],
        wait: float = DEFAULT_LOCK_WAIT,
        stale_after: float = DEFAULT_LOCK_STALE_AFTER,
        retries: int = DEFAULT_LOCK_RETRIES,
    ):
        self.lock_dir = Path(lock_dir)
        self.wait = wait
        self.stale_after = stale_after
        self.retries = max(1, retries)

    def get_lock_path(self, name: str) -> Path:
        """Return the lock file used for a resource name."""
        return self.lock_dir / f"{sanitize_file_name(name)}.lock"

    @contextmanager
    def named_lock(self, name: str) -> Iterator[Path]:
        """
        Hold the lock for a resource name.

        Args:
            name: Resource name (see :func:`sanitize_file_name`)

        Yields:
            Path of the lock file

        Raises:
            IllegalFileNameError: If the name cannot be used as a file name
            LockTimeoutError: If the lock could not be acquired
        """
        lock_path = self.get_lock_path(name)
        self.lock_dir.mkdir(parents=True, exist_ok=True)

        lock = self._acquire(name, lock_path)
        logger.debug(f"Acquired lock: {lock_path}")
        heartbeat = _LockHeartbeat(lock_path, self.stale_after / 2)
        heartbeat.start()
        try:
            yield lock_path
        finally:
            heartbeat.stop()
            lock.release()
            logger.debug(f"Released lock: {lock_path}")

    def synchronize(self, name: str, callback: Callable[[], T]) -> T:
        """
        Run a callback while holding the named lock.

        Returns:
            The callback's result
        """
        with self.named_lock(name):
            return callback()

    def _acquire(self, name: str, lock_path: Path) -> FileLock:
        for attempt in range(1, self.retries + 1):
            lock = FileLock(lock_path, timeout=self.wait)
            try:
                lock.acquire()
            except Timeout:
                if self._is_stale(lock_path):
                    logger.warning(
                        f"Removing stale lock '{name}' "
                        f"(not updated for more than {self.stale_after}s)"
                    )
                    lock_path.unlink(missing_ok=True)
                else:
                    logger.debug(
                        f"Lock '{name}' is busy "
                        f"(attempt {attempt}/{self.retries}), retrying"
                    )
                continue

            # Age of the lock file reflects the current holder
            os.utime(lock_path, None)
            return lock

        raise LockTimeoutError(name, self.retries, self.wait)

    def _is_stale(self, lock_path: Path) -> bool:
        try:
            age = time.time() - lock_path.stat().st_mtime
        except FileNotFoundError:
            return False
        return age > self.stale_after


class _LockHeartbeat(threading.Thread):
    """Touches a held lock file periodically so it never looks stale."""

    def __init__(self, lock_path: Path, interval: float):
        super().__init__(name=f"lock-heartbeat-{lock_path.name}", daemon=True)
        self.lock_path = lock_path
        self.interval = interval
        self._stopped = threading.Event()

    def run(self) -> None:
        while not self._stopped.wait(self.interval):
            try:
                os.utime(self.lock_path, None)
            except FileNotFoundError:
                logger.warning(f"Lock file vanished while held: {self.lock_path}")
                return

    def stop(self) -> None:
        self._stopped.set()
        self.join()
