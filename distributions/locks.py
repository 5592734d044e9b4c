"""
Per-distribution mutation locks.

At most one mutating operation (sync, cancel, confirm, status refresh)
runs per distribution id at a time. Reads never take these locks; they
rely on store snapshots instead.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator, Optional

from core.schemas.errors import ErrorCodes, StateConflictException


class DistributionLocks:
    """Registry of one lock per distribution id."""

    def __init__(self, default_timeout: Optional[float] = None) -> None:
        self.default_timeout = default_timeout
        self._guard = threading.Lock()
        self._locks: dict[int, threading.Lock] = {}

    def _lock_for(self, distribution_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(distribution_id)
            if lock is None:
                lock = self._locks[distribution_id] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, distribution_id: int, timeout: Optional[float] = None) -> Iterator[None]:
        """
        Hold the mutation lock for a distribution.

        Args:
            distribution_id: Distribution to lock
            timeout: Seconds to wait; None uses the registry default,
                and a default of None waits indefinitely

        Raises:
            StateConflictException: the lock was not acquired in time
        """
        effective = self.default_timeout if timeout is None else timeout
        lock = self._lock_for(distribution_id)
        acquired = lock.acquire(timeout=effective) if effective is not None else lock.acquire()
        if not acquired:
            raise StateConflictException(
                f"Distribution {distribution_id} is busy with another operation",
                distribution_id=distribution_id,
                code=ErrorCodes.CONCURRENT_MODIFICATION,
                details={"timeout_s": effective},
            )
        try:
            yield
        finally:
            lock.release()

    def is_locked(self, distribution_id: int) -> bool:
        return self._lock_for(distribution_id).locked()
