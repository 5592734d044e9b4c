"""
TTL Cache

Small in-process cache whose staleness policy is driven by an injected
clock, so expiry can be tested without waiting on the wall clock.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Generic, Hashable, Optional, TypeVar

from core.schemas.timestamps import Clock, utc_now

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value and the time it was fetched."""
    value: T
    fetched_at: datetime

    def age(self, now: datetime) -> timedelta:
        return now - self.fetched_at

    def is_fresh(self, now: datetime, ttl: timedelta) -> bool:
        return self.age(now) < ttl


class TTLCache(Generic[T]):
    """
    Key/value cache with a fixed time-to-live.

    A ttl of zero disables caching: every get misses.
    """

    def __init__(self, ttl_seconds: float, clock: Optional[Clock] = None) -> None:
        if ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must be non-negative, got {ttl_seconds}")
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or utc_now
        self._entries: dict[Hashable, CacheEntry[T]] = {}
        self._lock = threading.Lock()

    def get(self, key: Hashable) -> Optional[CacheEntry[T]]:
        """Return the fresh entry for key, or None (expired entries are dropped)."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if not entry.is_fresh(now, self.ttl):
                del self._entries[key]
                return None
            return entry

    def put(self, key: Hashable, value: T) -> CacheEntry[T]:
        entry = CacheEntry(value=value, fetched_at=self._clock())
        with self._lock:
            self._entries[key] = entry
        return entry

    def get_or_load(self, key: Hashable, loader: Callable[[], T]) -> T:
        """
        Return the cached value or call loader and cache its result.

        Exceptions from loader propagate and nothing is cached.
        """
        entry = self.get(key)
        if entry is not None:
            return entry.value
        value = loader()
        self.put(key, value)
        return value

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
