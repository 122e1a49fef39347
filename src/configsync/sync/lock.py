"""Exclusive advisory lock on the engine root."""

from __future__ import annotations

import fcntl
import logging
import os
from pathlib import Path
from typing import Any

from ..exceptions import AlreadyRunningError

logger = logging.getLogger(__name__)

LOCK_FILE = ".config-sync.lock"


class RootLock:
    """Non-blocking exclusive lock scoped to an engine root.

    The lock is an flock on {root}/.config-sync.lock, so the OS releases it
    when the holding process exits.

    Usage:
        with RootLock(root):
            ...
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.lock_path = root / LOCK_FILE
        self._fd: int | None = None

    @property
    def is_held(self) -> bool:
        """Whether this instance currently holds the lock."""
        return self._fd is not None

    def acquire(self) -> None:
        """Take the lock or fail immediately.

        Raises:
            AlreadyRunningError: If another holder has the lock
        """
        self.root.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.lock_path, os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            os.close(fd)
            raise AlreadyRunningError(
                f"Another config-sync process is already running on {self.root}"
            ) from None
        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        self._fd = fd
        logger.debug("Acquired lock %s", self.lock_path)

    def release(self) -> None:
        """Release the lock if held."""
        if not self.is_held:
            return
        fcntl.flock(self._fd, fcntl.LOCK_UN)
        os.close(self._fd)
        self._fd = None
        logger.debug("Released lock %s", self.lock_path)

    def __enter__(self) -> RootLock:
        self.acquire()
        return self

    def __exit__(self, *args: Any) -> None:
        self.release()
