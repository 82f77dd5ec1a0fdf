"""
Read-Through Cache

A small TTL cache that sits in front of bulk collection reads.

DESIGN DECISION: The cache is an explicit object handed to the store,
not a module-level singleton. Each BillStore owns its cache, tests get a
fresh one, and the clock is injectable so expiry can be tested without
sleeping.
"""

import copy
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional


@dataclass
class CacheEntry:
    value: Any
    stored_at: float
    ttl_seconds: float

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl_seconds


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    invalidations: int = 0


class ReadThroughCache:
    """
    Keyed TTL cache.

    Values are deep-copied in both directions; a caller mutating a cached
    list must not change what the next reader sees.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self.stats = CacheStats()

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            self.stats.misses += 1
            return None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            self.stats.misses += 1
            return None
        self.stats.hits += 1
        return copy.deepcopy(entry.value)

    def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        if ttl_seconds <= 0:
            return
        self._entries[key] = CacheEntry(
            value=copy.deepcopy(value),
            stored_at=self._clock(),
            ttl_seconds=ttl_seconds,
        )

    def invalidate(self, key: str) -> None:
        if self._entries.pop(key, None) is not None:
            self.stats.invalidations += 1

    def invalidate_prefix(self, prefix: str) -> None:
        for key in [k for k in self._entries if k.startswith(prefix)]:
            self.invalidate(key)

    def clear(self) -> None:
        self._entries.clear()
