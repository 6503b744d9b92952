"""Per-key mutual exclusion for ledger writes."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Hashable, Iterator, Optional

from .errors import StorageError


class KeyedLock:
    """Hand out one lock per key; unrelated keys never contend.

    Entries are reference counted and dropped once no caller holds or waits
    on them.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._timeout = timeout
        self._guard = threading.Lock()
        self._locks: dict[Hashable, list] = {}

    def _checkout(self, key: Hashable) -> threading.Lock:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: Hashable) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: Hashable, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold the lock for *key*; raise :class:`StorageError` on timeout."""

        wait = self._timeout if timeout is None else timeout
        lock = self._checkout(key)
        try:
            acquired = lock.acquire(timeout=-1 if wait is None else wait)
            if not acquired:
                raise StorageError(f"Timed out after {wait}s waiting for ledger lock on {key!r}")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
