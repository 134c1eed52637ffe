"""In-memory lookaside caches for upstream responses."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Generic, Hashable, TypeVar

from cachetools import TTLCache

LOGGER = logging.getLogger(__name__)

V = TypeVar("V")


class LookasideCache(Generic[V]):
    """Keyed, TTL-bounded, size-capped cache shared between threads.

    Entries expire ``ttl_seconds`` after insertion; once ``max_entries`` is
    reached the least recently used entry is evicted.
    """

    def __init__(
        self,
        name: str,
        max_entries: int,
        ttl_seconds: float,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self._entries: TTLCache = TTLCache(maxsize=max_entries, ttl=ttl_seconds, timer=timer)
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def get(self, key: Hashable) -> V | None:
        with self._lock:
            value = self._entries.get(key)
            if value is None:
                self.misses += 1
            else:
                self.hits += 1
            return value

    def set(self, key: Hashable, value: V) -> None:
        with self._lock:
            self._entries[key] = value

    def get_or_load(self, key: Hashable, loader: Callable[[], V]) -> V:
        """Return the cached value for ``key`` or compute, store and return it.

        The loader runs outside the lock; exceptions propagate and nothing
        is cached.
        """
        cached = self.get(key)
        if cached is not None:
            LOGGER.debug("%s cache hit for %r", self.name, key)
            return cached
        value = loader()
        self.set(key, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
