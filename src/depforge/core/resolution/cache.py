"""Memoization of resolve results.

``ResolutionCache`` maps a key (the dependency set and the requested scope
set) to a ``ResolveResult``. Lookup-or-compute is atomic per key: two
threads asking for the same key trigger one computation, while different
keys compute concurrently. ``invalidate()`` drops everything and is called
whenever the owning dependency set is replaced.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Hashable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResolutionCache(Generic[T]):
    """Thread-safe compute-if-absent cache with explicit invalidation."""

    def __init__(self) -> None:
        self._entries: dict[Hashable, T] = {}
        self._key_locks: dict[Hashable, threading.Lock] = {}
        self._lock = threading.Lock()
        self._generation = 0

    def get(self, key: Hashable) -> T | None:
        with self._lock:
            return self._entries.get(key)

    def get_or_compute(self, key: Hashable, compute: Callable[[], T]) -> T:
        """Return the cached value for *key*, computing and storing it once."""
        with self._lock:
            if key in self._entries:
                logger.debug("Resolution cache hit")
                return self._entries[key]
            key_lock = self._key_locks.setdefault(key, threading.Lock())
            generation = self._generation
        with key_lock:
            with self._lock:
                if key in self._entries:
                    return self._entries[key]
            logger.debug("Resolution cache miss")
            try:
                value = compute()
                with self._lock:
                    # An invalidate() during compute means the value is stale.
                    if generation == self._generation:
                        self._entries[key] = value
            finally:
                with self._lock:
                    self._key_locks.pop(key, None)
            return value

    def invalidate(self) -> None:
        with self._lock:
            self._entries.clear()
            self._key_locks.clear()
            self._generation += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
