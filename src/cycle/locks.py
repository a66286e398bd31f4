"""
Per-key mutual exclusion for mutating cycle operations.

Mutations are serialized per workspace: the active-cycle invariant spans
every cycle in a workspace, so a workspace lock also covers per-cycle
pointer and compensation updates. Cross-process safety comes from the
row lock taken by `CycleRepository.get_for_update`.
"""

from __future__ import annotations

import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager


class LockRegistry:
    """Lazily creates one lock per key."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[Hashable, threading.RLock] = {}

    def _lock_for(self, key: Hashable) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Block until the lock for `key` is acquired; release on exit."""
        lock = self._lock_for(key)
        with lock:
            yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
