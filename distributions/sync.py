"""
Chain Reconciliation

Brings the off-chain index back into agreement with on-chain state.

The chain is the source of truth for claim flags, claim totals, whether a
distribution is confirmed at all, and its claim window. A root that
disagrees with the stored one is an integrity failure and is reported,
never repaired.

Order of work:
1. take the per-distribution mutation lock
2. recompute every stored leaf hash and the root from them
3. read root, window and claim flags (any failure: nothing is written)
4. check root equality and claim index ranges
5. write the merged result in one store transaction, or nothing if no
   field would change
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

from core.chain.reader import ChainReader
from core.crypto.hashing import to_hex
from core.schemas.chain import ClaimRecord, TimingWindow
from core.schemas.distribution import Distribution, DistributionStatus, Leaf
from core.schemas.errors import (
    ErrorCodes,
    IntegrityException,
    MerkledropException,
    NotFoundException,
    StateConflictException,
    UpstreamUnavailableException,
)
from core.schemas.timestamps import Clock, ensure_utc, utc_now

from .locks import DistributionLocks
from .manager import recompute_leaf_hashes, resolve_status
from .store import DistributionStore, LeafUpdate

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of one reconciliation pass."""
    distribution: Distribution
    changed: bool
    newly_claimed: list[int] = field(default_factory=list)
    reverted: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class _ChainSnapshot:
    root: Optional[bytes]
    window: Optional[TimingWindow]
    claims: dict[int, ClaimRecord]


class ChainReconciler:
    """
    Reconciles stored distributions against a ChainReader.

    Shares its DistributionLocks with the DistributionManager so that a
    sync never interleaves with a cancel or confirm on the same id.
    """

    def __init__(
        self,
        store: DistributionStore,
        reader: ChainReader,
        *,
        locks: Optional[DistributionLocks] = None,
        clock: Optional[Clock] = None,
        lock_timeout: Optional[float] = None,
    ) -> None:
        self.store = store
        self.reader = reader
        self.locks = locks or DistributionLocks()
        self.clock = clock or utc_now
        self.lock_timeout = lock_timeout

    def sync(self, distribution_id: int) -> Distribution:
        """Reconcile one distribution and return its current state."""
        return self.reconcile(distribution_id).distribution

    def _read_chain(self, distribution_id: int, leaf_count: int) -> _ChainSnapshot:
        try:
            root = self.reader.get_root(distribution_id)
            if root is None:
                return _ChainSnapshot(root=None, window=None, claims={})
            window = self.reader.get_timing_window(distribution_id)
            claims = self.reader.get_claimed_flags(distribution_id, leaf_count)
        except MerkledropException:
            raise
        except Exception as e:
            logger.warning("Chain read for distribution %d failed: %s", distribution_id, e)
            raise UpstreamUnavailableException(
                f"Chain data unavailable for distribution {distribution_id}: {e}",
                distribution_id=distribution_id,
                details={"error_type": type(e).__name__},
            ) from e
        return _ChainSnapshot(root=root, window=window, claims=dict(claims))

    def reconcile(self, distribution_id: int) -> SyncResult:
        """
        Reconcile one distribution.

        Raises:
            NotFoundException: unknown distribution
            StateConflictException: distribution is cancelled, or lock timeout
            IntegrityException: stored or on-chain root disagrees
            UpstreamUnavailableException: chain data could not be read
        """
        with self.locks.hold(distribution_id, self.lock_timeout):
            current = self.store.get(distribution_id)
            if current is None:
                raise NotFoundException(
                    f"Distribution {distribution_id} not found",
                    distribution_id=distribution_id,
                )
            if current.status == DistributionStatus.CANCELLED:
                raise StateConflictException(
                    f"Distribution {distribution_id} is cancelled and cannot be synced",
                    distribution_id=distribution_id,
                    status=current.status.value,
                    code=ErrorCodes.ILLEGAL_TRANSITION,
                )

            leaves = self.store.get_leaves(distribution_id)
            recompute_leaf_hashes(current, leaves)

            chain = self._read_chain(distribution_id, len(leaves))
            self._check_chain(current, chain)

            if chain.root is None:
                logger.info("Distribution %d: root not committed yet, nothing to sync", distribution_id)
                return SyncResult(distribution=current, changed=False)

            updates, newly_claimed, reverted = self._merge_claims(leaves, chain.claims)
            candidate = self._merge_distribution(current, leaves, updates, chain.window)
            if candidate is None:
                logger.info("Distribution %d already in sync", distribution_id)
                return SyncResult(distribution=current, changed=False)

            stored = self.store.apply_sync(candidate, updates, current.version)

        logger.info(
            "Synced distribution %d: status %s, %d/%d claimed, +%d claimed, %d reverted",
            distribution_id, stored.status.value, stored.claimed_count,
            stored.total_recipients, len(newly_claimed), len(reverted),
        )
        if reverted:
            logger.warning(
                "Distribution %d: claim flags not seen on-chain were cleared for indices %s",
                distribution_id, reverted,
            )
        return SyncResult(
            distribution=stored,
            changed=True,
            newly_claimed=newly_claimed,
            reverted=reverted,
        )

    def _check_chain(self, current: Distribution, chain: _ChainSnapshot) -> None:
        did = current.distribution_id
        if chain.root is None:
            if current.status != DistributionStatus.PENDING or current.confirmed:
                logger.error("Distribution %d: no root on-chain but status is %s", did, current.status.value)
                raise IntegrityException(
                    f"Distribution {did} is {current.status.value} but has no committed root on-chain",
                    distribution_id=did,
                    code=ErrorCodes.ROOT_NOT_COMMITTED,
                )
            return

        onchain_root = to_hex(chain.root)
        if onchain_root != current.merkle_root:
            logger.error(
                "Distribution %d: on-chain root %s != stored root %s",
                did, onchain_root, current.merkle_root,
            )
            raise IntegrityException(
                "On-chain root does not match the stored root",
                distribution_id=did,
                code=ErrorCodes.ROOT_MISMATCH,
                details={"stored_root": current.merkle_root, "onchain_root": onchain_root},
            )

        out_of_range = sorted(i for i in chain.claims if not 0 <= i < current.total_recipients)
        if out_of_range:
            logger.error("Distribution %d: claimed indices out of range: %s", did, out_of_range)
            raise IntegrityException(
                f"On-chain claims reference leaf indices outside [0, {current.total_recipients})",
                distribution_id=did,
                code=ErrorCodes.CLAIM_INDEX_OUT_OF_RANGE,
                details={"indices": out_of_range},
            )

    @staticmethod
    def _merge_claims(
        leaves: list[Leaf],
        claims: dict[int, ClaimRecord],
    ) -> tuple[list[LeafUpdate], list[int], list[int]]:
        updates: list[LeafUpdate] = []
        newly_claimed: list[int] = []
        reverted: list[int] = []

        for leaf in leaves:
            record = claims.get(leaf.index)
            if record is not None:
                claimed_at = ensure_utc(record.claimed_at) if record.claimed_at else None
                if leaf.claimed and leaf.claimed_at == claimed_at and leaf.claim_tx_ref == record.tx_hash:
                    continue
                if not leaf.claimed:
                    newly_claimed.append(leaf.index)
                updates.append(LeafUpdate(
                    index=leaf.index,
                    claimed=True,
                    claimed_at=claimed_at,
                    claim_tx_ref=record.tx_hash,
                ))
            elif leaf.claimed:
                reverted.append(leaf.index)
                updates.append(LeafUpdate(index=leaf.index, claimed=False))

        return updates, newly_claimed, reverted

    def _merge_distribution(
        self,
        current: Distribution,
        leaves: list[Leaf],
        updates: list[LeafUpdate],
        window: Optional[TimingWindow],
    ) -> Optional[Distribution]:
        """Merged distribution record, or None when nothing would change."""
        claimed = {leaf.index: leaf.claimed for leaf in leaves}
        for update in updates:
            claimed[update.index] = update.claimed
        claimed_count = sum(1 for flag in claimed.values() if flag)
        claimed_amount = sum(leaf.amount for leaf in leaves if claimed[leaf.index])

        changes: dict[str, object] = {}
        if not current.confirmed:
            changes["confirmed"] = True
        if claimed_count != current.claimed_count:
            changes["claimed_count"] = claimed_count
        if claimed_amount != current.claimed_amount:
            changes["claimed_amount"] = claimed_amount
        if window is not None and (window.start_time, window.end_time) != (current.start_time, current.end_time):
            changes["start_time"] = window.start_time
            changes["end_time"] = window.end_time

        now = ensure_utc(self.clock())
        merged = current.evolve(**changes) if changes else current
        status = resolve_status(merged, now)
        if status != current.status:
            changes["status"] = status

        if not changes and not updates:
            return None
        changes["updated_at"] = now
        changes["last_synced_at"] = now
        return current.evolve(**changes)
