"""
Distribution Store

Persistence interface for distributions and their leaves, plus an
in-memory implementation.

Write rules shared by every implementation:
- create() persists a distribution and all of its leaves, or nothing
- totals on the distribution must equal the sums over its leaves
- update() and apply_sync() are compare-and-swap on Distribution.version
- merkle_root, leaf_encoding and the totals never change after create()
- a terminal status never changes
- reads return copies; mutating a returned object never touches the store
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional, Sequence

from core.schemas.distribution import Distribution, DistributionFilters, Leaf
from core.schemas.errors import (
    ErrorCodes,
    IntegrityException,
    NotFoundException,
    StateConflictException,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeafUpdate:
    """New claim state for one leaf, produced by reconciliation."""
    index: int
    claimed: bool
    claimed_at: Optional[datetime] = None
    claim_tx_ref: Optional[str] = None


# =============================================================================
# Shared write checks
# =============================================================================

def check_leaf_set(distribution: Distribution, leaves: Sequence[Leaf]) -> None:
    """
    Verify a full leaf set against its distribution.

    Raises:
        IntegrityException: indices not 0..n-1, duplicate addresses,
            foreign leaves, or totals that disagree with the leaves
    """
    did = distribution.distribution_id
    indices = [leaf.index for leaf in leaves]
    if indices != list(range(len(leaves))):
        raise IntegrityException(
            "Leaf indices must be contiguous from 0 in order",
            distribution_id=did,
            code=ErrorCodes.TOTALS_MISMATCH,
        )
    if any(leaf.distribution_id != did for leaf in leaves):
        raise IntegrityException(
            "Leaf belongs to another distribution",
            distribution_id=did,
            code=ErrorCodes.TOTALS_MISMATCH,
        )
    if len({leaf.address for leaf in leaves}) != len(leaves):
        raise IntegrityException(
            "Duplicate address in leaf set",
            distribution_id=did,
            code=ErrorCodes.TOTALS_MISMATCH,
        )
    check_totals(distribution, leaves)


def check_totals(distribution: Distribution, leaves: Sequence[Leaf]) -> None:
    """Totals and claim counters must equal the sums over the leaves."""
    claimed = [leaf for leaf in leaves if leaf.claimed]
    expected = {
        "total_recipients": len(leaves),
        "total_amount": sum(leaf.amount for leaf in leaves),
        "claimed_count": len(claimed),
        "claimed_amount": sum(leaf.amount for leaf in claimed),
    }
    actual = {name: getattr(distribution, name) for name in expected}
    if actual != expected:
        raise IntegrityException(
            "Distribution totals disagree with its leaves",
            distribution_id=distribution.distribution_id,
            code=ErrorCodes.TOTALS_MISMATCH,
            details={"expected": expected, "actual": actual},
        )


def check_transition(stored: Distribution, new: Distribution, expected_version: int) -> None:
    """
    Compare-and-swap and immutability checks for an update.

    Raises:
        StateConflictException: stale version or illegal change
    """
    did = stored.distribution_id
    if stored.version != expected_version:
        raise StateConflictException(
            f"Distribution {did} was modified concurrently "
            f"(expected version {expected_version}, found {stored.version})",
            distribution_id=did,
            code=ErrorCodes.CONCURRENT_MODIFICATION,
            details={"expected_version": expected_version, "actual_version": stored.version},
        )
    for name in ("merkle_root", "leaf_encoding", "total_amount", "total_recipients", "vault_type", "created_at"):
        if getattr(stored, name) != getattr(new, name):
            raise StateConflictException(
                f"{name} of distribution {did} is immutable",
                distribution_id=did,
                status=stored.status.value,
                code=ErrorCodes.ILLEGAL_TRANSITION,
            )
    if stored.status.is_terminal and new.status != stored.status:
        raise StateConflictException(
            f"Distribution {did} is {stored.status.value} and cannot change status",
            distribution_id=did,
            status=stored.status.value,
            code=ErrorCodes.ILLEGAL_TRANSITION,
        )


def matches_filters(distribution: Distribution, filters: DistributionFilters) -> bool:
    if filters.status is not None and distribution.status != filters.status:
        return False
    if filters.vault_type is not None and distribution.vault_type != filters.vault_type:
        return False
    if filters.created_from is not None and distribution.created_at < filters.created_from:
        return False
    if filters.created_to is not None and distribution.created_at > filters.created_to:
        return False
    return True


# =============================================================================
# Interface
# =============================================================================

class DistributionStore(ABC):
    """Storage for distributions and their leaves."""

    @abstractmethod
    def next_distribution_id(self) -> int:
        """Reserve the next distribution id."""

    @abstractmethod
    def create(self, distribution: Distribution, leaves: Sequence[Leaf]) -> Distribution:
        """Persist a new distribution and all of its leaves atomically."""

    @abstractmethod
    def get(self, distribution_id: int) -> Optional[Distribution]:
        """Snapshot of a distribution, or None."""

    @abstractmethod
    def list(self, filters: DistributionFilters) -> tuple[list[Distribution], int]:
        """One page of matching distributions, newest first, and the total match count."""

    @abstractmethod
    def get_leaves(self, distribution_id: int) -> list[Leaf]:
        """All leaves ordered by index."""

    @abstractmethod
    def get_leaf_by_address(self, distribution_id: int, address: str) -> Optional[Leaf]:
        """Leaf for an address (any hex case), or None."""

    @abstractmethod
    def list_leaves(self, distribution_id: int, offset: int, limit: int) -> tuple[list[Leaf], int]:
        """A slice of leaves ordered by index, and the leaf count."""

    @abstractmethod
    def find_leaves_by_address(self, address: str) -> list[Leaf]:
        """Leaves for an address across every distribution."""

    @abstractmethod
    def update(self, distribution: Distribution, expected_version: int) -> Distribution:
        """Replace the distribution record if its version is still expected_version."""

    @abstractmethod
    def apply_sync(
        self,
        distribution: Distribution,
        leaf_updates: Iterable[LeafUpdate],
        expected_version: int,
    ) -> Distribution:
        """Apply a distribution update and leaf claim updates in one transaction."""


# =============================================================================
# In-memory implementation
# =============================================================================

class InMemoryDistributionStore(DistributionStore):
    """Thread-safe dict-backed store. Suitable for tests and single-process use."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._distributions: dict[int, Distribution] = {}
        self._leaves: dict[int, list[Leaf]] = {}
        self._next_id = 1

    def next_distribution_id(self) -> int:
        with self._lock:
            distribution_id = self._next_id
            self._next_id += 1
            return distribution_id

    def create(self, distribution: Distribution, leaves: Sequence[Leaf]) -> Distribution:
        check_leaf_set(distribution, leaves)
        with self._lock:
            did = distribution.distribution_id
            if did in self._distributions:
                raise StateConflictException(
                    f"Distribution {did} already exists",
                    distribution_id=did,
                    code=ErrorCodes.DUPLICATE_DISTRIBUTION,
                )
            self._distributions[did] = distribution.model_copy(deep=True)
            self._leaves[did] = [leaf.model_copy(deep=True) for leaf in leaves]
            self._next_id = max(self._next_id, did + 1)
            return distribution.model_copy(deep=True)

    def get(self, distribution_id: int) -> Optional[Distribution]:
        with self._lock:
            stored = self._distributions.get(distribution_id)
            return stored.model_copy(deep=True) if stored is not None else None

    def list(self, filters: DistributionFilters) -> tuple[list[Distribution], int]:
        with self._lock:
            matching = [d for d in self._distributions.values() if matches_filters(d, filters)]
        matching.sort(key=lambda d: (d.created_at, d.distribution_id), reverse=True)
        page = matching[filters.offset:filters.offset + filters.limit]
        return [d.model_copy(deep=True) for d in page], len(matching)

    def _require_leaves(self, distribution_id: int) -> list[Leaf]:
        if distribution_id not in self._leaves:
            raise NotFoundException(
                f"Distribution {distribution_id} not found",
                distribution_id=distribution_id,
            )
        return self._leaves[distribution_id]

    def get_leaves(self, distribution_id: int) -> list[Leaf]:
        with self._lock:
            return [leaf.model_copy(deep=True) for leaf in self._require_leaves(distribution_id)]

    def get_leaf_by_address(self, distribution_id: int, address: str) -> Optional[Leaf]:
        address = address.lower()
        with self._lock:
            for leaf in self._require_leaves(distribution_id):
                if leaf.address == address:
                    return leaf.model_copy(deep=True)
        return None

    def list_leaves(self, distribution_id: int, offset: int, limit: int) -> tuple[list[Leaf], int]:
        with self._lock:
            leaves = self._require_leaves(distribution_id)
            return [leaf.model_copy(deep=True) for leaf in leaves[offset:offset + limit]], len(leaves)

    def find_leaves_by_address(self, address: str) -> list[Leaf]:
        address = address.lower()
        with self._lock:
            return [
                leaf.model_copy(deep=True)
                for did in sorted(self._leaves)
                for leaf in self._leaves[did]
                if leaf.address == address
            ]

    def _stored(self, distribution_id: int) -> Distribution:
        stored = self._distributions.get(distribution_id)
        if stored is None:
            raise NotFoundException(
                f"Distribution {distribution_id} not found",
                distribution_id=distribution_id,
            )
        return stored

    def update(self, distribution: Distribution, expected_version: int) -> Distribution:
        with self._lock:
            did = distribution.distribution_id
            stored = self._stored(did)
            check_transition(stored, distribution, expected_version)
            new = distribution.evolve(version=expected_version + 1)
            check_totals(new, self._leaves[did])
            self._distributions[did] = new
            return new.model_copy(deep=True)

    def apply_sync(
        self,
        distribution: Distribution,
        leaf_updates: Iterable[LeafUpdate],
        expected_version: int,
    ) -> Distribution:
        with self._lock:
            did = distribution.distribution_id
            stored = self._stored(did)
            check_transition(stored, distribution, expected_version)

            leaves = [leaf.model_copy(deep=True) for leaf in self._leaves[did]]
            for update in leaf_updates:
                if not 0 <= update.index < len(leaves):
                    raise IntegrityException(
                        f"Leaf index {update.index} out of range",
                        distribution_id=did,
                        code=ErrorCodes.CLAIM_INDEX_OUT_OF_RANGE,
                    )
                leaves[update.index] = leaves[update.index].model_copy(update={
                    "claimed": update.claimed,
                    "claimed_at": update.claimed_at,
                    "claim_tx_ref": update.claim_tx_ref,
                })

            new = distribution.evolve(version=expected_version + 1)
            check_totals(new, leaves)

            self._distributions[did] = new
            self._leaves[did] = leaves
            logger.debug("Applied sync to distribution %d (version %d)", did, new.version)
            return new.model_copy(deep=True)
