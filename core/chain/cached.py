"""
Cached Chain Reader

Wraps a ChainReader with a TTL cache for the committed root and timing
window. Claim flags change with every claim and are always read through.
"""

from __future__ import annotations

import logging
from typing import Optional

from core.cache.ttl import TTLCache
from core.schemas.chain import ClaimRecord, TimingWindow
from core.schemas.timestamps import Clock

from .reader import ChainReader

logger = logging.getLogger(__name__)


class CachedChainReader(ChainReader):
    """
    ChainReader decorator with time-bounded caching.

    Absent values (root not yet committed) are not cached, so a fresh
    commit is observed on the next call.
    """

    def __init__(
        self,
        inner: ChainReader,
        ttl_seconds: float = 60.0,
        clock: Optional[Clock] = None,
    ) -> None:
        self.inner = inner
        self._roots: TTLCache[bytes] = TTLCache(ttl_seconds, clock)
        self._windows: TTLCache[TimingWindow] = TTLCache(ttl_seconds, clock)

    def get_root(self, distribution_id: int) -> Optional[bytes]:
        entry = self._roots.get(distribution_id)
        if entry is not None:
            logger.debug("Root cache hit for distribution %d", distribution_id)
            return entry.value
        root = self.inner.get_root(distribution_id)
        if root is not None:
            self._roots.put(distribution_id, root)
        return root

    def get_timing_window(self, distribution_id: int) -> Optional[TimingWindow]:
        entry = self._windows.get(distribution_id)
        if entry is not None:
            return entry.value
        window = self.inner.get_timing_window(distribution_id)
        if window is not None:
            self._windows.put(distribution_id, window)
        return window

    def get_claimed_flags(self, distribution_id: int, leaf_count: int) -> dict[int, ClaimRecord]:
        return self.inner.get_claimed_flags(distribution_id, leaf_count)

    def invalidate(self, distribution_id: int) -> None:
        self._roots.invalidate(distribution_id)
        self._windows.invalidate(distribution_id)
