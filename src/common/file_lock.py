"""Cross-process advisory file locking for the shared HTTP cache."""

from __future__ import annotations

import contextlib
import fcntl
import hashlib
import os
import threading
from typing import Callable, Dict, Iterator, TypeVar

_T = TypeVar("_T")

_LOCK_SUFFIX = ".lock"


class _LockRegistry:
    """In-process locks keyed by path; flock alone does not serialize threads."""

    def __init__(self) -> None:
        self._gate = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    def get(self, key: str) -> threading.RLock:
        with self._gate:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock


_LOCKS = _LockRegistry()


def lock_path_for(path: str) -> str:
    """Return the sidecar lock file used to guard ``path``."""
    directory = os.path.dirname(os.path.abspath(path))
    digest = hashlib.sha256(os.path.basename(path).encode("utf-8")).hexdigest()[:16]
    return os.path.join(directory, f".{digest}{_LOCK_SUFFIX}")


@contextlib.contextmanager
def file_locked(path: str) -> Iterator[None]:
    """Hold an exclusive advisory lock associated with ``path``.

    The lock lives in a sidecar file next to ``path`` so the guarded file
    itself can be replaced or deleted while the lock is held.
    """
    lock_file = lock_path_for(path)
    os.makedirs(os.path.dirname(lock_file), exist_ok=True)
    with _LOCKS.get(lock_file):
        with open(lock_file, "a+", encoding="utf-8") as handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


def execute_with_file_locked(path: str, action: Callable[[str], _T]) -> _T:
    """Run ``action(path)`` while holding the lock for ``path``."""
    with file_locked(path):
        return action(path)
