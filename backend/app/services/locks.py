from __future__ import annotations

from contextlib import contextmanager
import hashlib
from threading import Lock
import time
from typing import Hashable, Iterable, Iterator

from app.core.exceptions import ConcurrencyError


class ResourceLockRegistry:
    """In-process advisory locks keyed by ``(resource kind, day, resource id)``."""

    def __init__(self) -> None:
        self._locks: dict[Hashable, Lock] = {}
        self._guard = Lock()

    def _lock_for(self, key: Hashable) -> Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, keys: Iterable[Hashable], *, timeout: float) -> Iterator[list]:
        # Sorted acquisition keeps two writers with overlapping key sets from deadlocking.
        ordered = sorted(set(keys), key=repr)
        deadline = time.monotonic() + max(0.0, timeout)
        acquired: list[Lock] = []
        try:
            for key in ordered:
                lock = self._lock_for(key)
                remaining = max(0.0, deadline - time.monotonic())
                if not lock.acquire(timeout=remaining):
                    raise ConcurrencyError(f"Timed out waiting for schedule lock on {key}")
                acquired.append(lock)
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()

    def clear(self) -> None:
        with self._guard:
            self._locks.clear()


_registry = ResourceLockRegistry()


def get_lock_registry() -> ResourceLockRegistry:
    return _registry


def advisory_lock_id(key: Hashable) -> int:
    """Stable signed 64-bit id for ``pg_advisory_xact_lock``."""
    digest = hashlib.sha256(repr(key).encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big", signed=True)
