"""
Distribution Lifecycle Manager

Creates distributions from validated allocations, answers eligibility and
proof queries, and drives the administrative lifecycle transitions.

State machine:
    pending --(confirmed, start reached)--> active
    pending|active --(end passed or every leaf claimed)--> completed
    pending|active --(cancel, no claims recorded)--> cancelled
completed and cancelled are terminal.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any, Iterable, Optional

from eth_utils import is_hex_address
from pydantic import BaseModel

from core.config.runtime import ValidationConfig
from core.crypto.hashing import to_hex
from core.merkle.leaf_codec import encode_leaf
from core.merkle.merkle_tree import build_merkle_proof, build_merkle_root, build_tree
from core.schemas.allocation import VaultType
from core.schemas.distribution import (
    Distribution,
    DistributionFilters,
    DistributionMetadata,
    DistributionPage,
    DistributionStats,
    DistributionStatus,
    EligibilityResult,
    Leaf,
    LeafPage,
    MerkleProof,
    OnchainRef,
    UserDistribution,
)
from core.schemas.errors import (
    ErrorCodes,
    IntegrityException,
    InvalidRequestException,
    NotFoundException,
    StateConflictException,
)
from core.schemas.timestamps import Clock, ensure_utc, utc_now
from core.schemas.versioning import LEAF_ENCODING_VERSION, assert_supported_leaf_encoding
from core.validation.allocations import ValidationPolicy, require_valid

from .locks import DistributionLocks
from .store import DistributionStore

logger = logging.getLogger(__name__)


MAX_DURATION_DAYS = 365
MAX_PAGE_LIMIT = 100


class CreateDistributionResult(BaseModel):
    """Outcome of create_distribution()."""
    distribution: Distribution
    root: str
    leaf_count: int


# =============================================================================
# Lifecycle rules
# =============================================================================

def resolve_status(distribution: Distribution, now: datetime) -> DistributionStatus:
    """
    Time- and claim-driven status for a distribution.

    Terminal states are returned unchanged. Unconfirmed distributions stay
    pending regardless of time; only an administrator can cancel them.
    """
    status = distribution.status
    if status.is_terminal or not distribution.confirmed:
        return status

    now = ensure_utc(now)
    if distribution.claimed_count == distribution.total_recipients:
        return DistributionStatus.COMPLETED
    if now >= distribution.end_time:
        return DistributionStatus.COMPLETED
    if distribution.in_window(now):
        return DistributionStatus.ACTIVE
    return status


def recompute_leaf_hashes(distribution: Distribution, leaves: list[Leaf]) -> list[bytes]:
    """
    Re-encode every stored leaf and fold the root.

    Raises:
        IntegrityException: a stored leaf hash or the stored root differs
            from the recomputed value
    """
    did = distribution.distribution_id
    assert_supported_leaf_encoding(distribution.leaf_encoding)

    hashes: list[bytes] = []
    for leaf in leaves:
        leaf_hash = encode_leaf(leaf.index, leaf.address, leaf.amount, distribution.leaf_encoding)
        if to_hex(leaf_hash) != leaf.leaf_hash:
            logger.error("Distribution %d: leaf %d hash mismatch", did, leaf.index)
            raise IntegrityException(
                f"Stored hash of leaf {leaf.index} does not match its contents",
                distribution_id=did,
                code=ErrorCodes.LEAF_HASH_MISMATCH,
                details={"index": leaf.index},
            )
        hashes.append(leaf_hash)

    root = to_hex(build_merkle_root(hashes))
    if root != distribution.merkle_root:
        logger.error("Distribution %d: recomputed root %s != stored %s", did, root, distribution.merkle_root)
        raise IntegrityException(
            "Recomputed root does not match the stored root",
            distribution_id=did,
            code=ErrorCodes.ROOT_MISMATCH,
            details={"stored_root": distribution.merkle_root, "computed_root": root},
        )
    return hashes


def _normalize_address(address: str) -> str:
    if not isinstance(address, str) or not address.startswith("0x") or not is_hex_address(address):
        raise InvalidRequestException(
            f"Malformed address: {address!r}",
            code=ErrorCodes.INVALID_ADDRESS,
            details={"address": str(address)},
        )
    return address.lower()


# =============================================================================
# Manager
# =============================================================================

class DistributionManager:
    """
    Owns the distribution lifecycle.

    Usage:
        manager = DistributionManager(InMemoryDistributionStore())
        result = manager.create_distribution(allocations, VaultType.PLAYER_TASKS, 30)
        proof = manager.get_proof(result.distribution.distribution_id, address)
    """

    def __init__(
        self,
        store: DistributionStore,
        *,
        policy: Optional[ValidationPolicy] = None,
        locks: Optional[DistributionLocks] = None,
        clock: Optional[Clock] = None,
        lock_timeout: Optional[float] = None,
        leaf_encoding: str = LEAF_ENCODING_VERSION,
    ) -> None:
        assert_supported_leaf_encoding(leaf_encoding)
        self.store = store
        self.policy = policy or ValidationPolicy()
        self.locks = locks or DistributionLocks()
        self.clock = clock or utc_now
        self.lock_timeout = lock_timeout
        self.leaf_encoding = leaf_encoding

    @classmethod
    def from_config(
        cls,
        store: DistributionStore,
        config: ValidationConfig,
        **kwargs: Any,
    ) -> "DistributionManager":
        return cls(store, policy=ValidationPolicy.from_config(config), **kwargs)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_distribution(
        self,
        allocations: Iterable[Any],
        vault_type: VaultType | str,
        duration_days: int,
        metadata: DistributionMetadata | dict[str, Any] | None = None,
    ) -> CreateDistributionResult:
        """
        Validate allocations, build the tree and persist a pending distribution.

        The claim window is provisional (now .. now + duration_days) until
        the commit is confirmed on-chain.

        Raises:
            AllocationValidationException: any allocation problem; nothing is persisted
            InvalidRequestException: bad vault type or duration
        """
        try:
            vault = VaultType(vault_type)
        except ValueError:
            raise InvalidRequestException(
                f"Unknown vault type: {vault_type!r}",
                details={"allowed": [v.value for v in VaultType]},
            ) from None
        if isinstance(duration_days, bool) or not isinstance(duration_days, int) \
                or not 1 <= duration_days <= MAX_DURATION_DAYS:
            raise InvalidRequestException(
                f"duration_days must be an integer between 1 and {MAX_DURATION_DAYS}",
                details={"duration_days": duration_days},
            )
        if not isinstance(metadata, DistributionMetadata):
            metadata = DistributionMetadata.model_validate(metadata or {})

        normalized = require_valid(allocations, self.policy)
        tree = build_tree(normalized, self.leaf_encoding)

        now = ensure_utc(self.clock())
        distribution_id = self.store.next_distribution_id()
        distribution = Distribution(
            distribution_id=distribution_id,
            merkle_root=tree.root_hex,
            leaf_encoding=tree.leaf_encoding,
            vault_type=vault,
            total_amount=tree.total_amount,
            total_recipients=len(tree.leaves),
            start_time=now,
            end_time=now + timedelta(days=duration_days),
            status=DistributionStatus.PENDING,
            metadata=metadata,
            created_at=now,
            updated_at=now,
        )
        leaves = [
            Leaf(
                distribution_id=distribution_id,
                index=leaf.index,
                address=leaf.address,
                amount=leaf.amount,
                leaf_hash=leaf.leaf_hash_hex,
            )
            for leaf in tree.leaves
        ]
        stored = self.store.create(distribution, leaves)

        logger.info(
            "Created distribution %d: %d recipients, total %d, root %s",
            distribution_id, len(leaves), tree.total_amount, tree.root_hex,
        )
        return CreateDistributionResult(
            distribution=stored,
            root=tree.root_hex,
            leaf_count=len(leaves),
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_distribution(self, distribution_id: int) -> Distribution:
        distribution = self.store.get(distribution_id)
        if distribution is None:
            raise NotFoundException(
                f"Distribution {distribution_id} not found",
                distribution_id=distribution_id,
            )
        return distribution

    def list_distributions(self, filters: Optional[DistributionFilters] = None) -> DistributionPage:
        """Distributions matching filters, newest first."""
        filters = filters or DistributionFilters()
        items, total = self.store.list(filters)
        return DistributionPage(page=filters.page, limit=filters.limit, total=total, items=items)

    def check_eligibility(self, distribution_id: int, address: str) -> EligibilityResult:
        """
        Whether an address can claim right now.

        An address with no leaf is a normal "not eligible" answer. The status
        is evaluated at the current time, so a confirmed distribution whose
        window has opened counts as active before refresh_statuses() has
        persisted the transition.
        """
        distribution = self.get_distribution(distribution_id)
        now = ensure_utc(self.clock())
        status = resolve_status(distribution, now)
        normalized = _normalize_address(address)
        leaf = self.store.get_leaf_by_address(distribution_id, normalized)

        def result(eligible: bool, reason: str) -> EligibilityResult:
            return EligibilityResult(
                eligible=eligible,
                reason=reason,
                distribution_id=distribution_id,
                address=normalized,
                allocation=leaf,
            )

        if leaf is None:
            return result(False, "Address has no allocation in this distribution")
        if leaf.claimed:
            return result(False, "Allocation already claimed")
        if status != DistributionStatus.ACTIVE:
            return result(False, f"Distribution is {status.value}")
        if not distribution.in_window(now):
            return result(False, "Outside the claim window")
        return result(True, "Eligible to claim")

    def get_proof(self, distribution_id: int, address: str) -> Optional[MerkleProof]:
        """
        Inclusion proof for an address, rebuilt from the stored leaves.

        Returns None when the address has no leaf.

        Raises:
            NotFoundException: unknown distribution
            IntegrityException: stored leaves no longer fold to the stored root
        """
        distribution = self.get_distribution(distribution_id)
        normalized = _normalize_address(address)
        leaf = self.store.get_leaf_by_address(distribution_id, normalized)
        if leaf is None:
            return None

        hashes = recompute_leaf_hashes(distribution, self.store.get_leaves(distribution_id))
        proof = build_merkle_proof(hashes, leaf.index)
        return MerkleProof(
            distribution_id=distribution_id,
            address=leaf.address,
            amount=leaf.amount,
            index=leaf.index,
            leaf_hash=leaf.leaf_hash,
            proof=[to_hex(s) for s in proof.siblings],
            root=distribution.merkle_root,
        )

    def list_leaves(self, distribution_id: int, page: int = 1, limit: int = 50) -> LeafPage:
        """Leaves ordered by index, one page at a time."""
        if page < 1 or not 1 <= limit <= MAX_PAGE_LIMIT:
            raise InvalidRequestException(
                f"page must be >= 1 and limit between 1 and {MAX_PAGE_LIMIT}",
                details={"page": page, "limit": limit},
            )
        self.get_distribution(distribution_id)
        items, total = self.store.list_leaves(distribution_id, (page - 1) * limit, limit)
        return LeafPage(page=page, limit=limit, total=total, items=items)

    def get_distribution_stats(self, distribution_id: int) -> DistributionStats:
        d = self.get_distribution(distribution_id)
        return DistributionStats(
            distribution_id=d.distribution_id,
            status=d.status,
            total_amount=d.total_amount,
            claimed_amount=d.claimed_amount,
            unclaimed_amount=d.unclaimed_amount,
            claim_rate=round(d.claimed_amount * 100 / d.total_amount, 2),
            total_recipients=d.total_recipients,
            claimed_count=d.claimed_count,
            start_time=d.start_time,
            end_time=d.end_time,
        )

    def get_user_distributions(self, address: str) -> list[UserDistribution]:
        """Every distribution that holds a leaf for the address."""
        normalized = _normalize_address(address)
        result: list[UserDistribution] = []
        for leaf in self.store.find_leaves_by_address(normalized):
            distribution = self.store.get(leaf.distribution_id)
            if distribution is not None:
                result.append(UserDistribution(distribution=distribution, leaf=leaf))
        return result

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def confirm_commit(
        self,
        distribution_id: int,
        tx_hash: str,
        block_number: int,
        start_time: datetime,
        end_time: datetime,
    ) -> Distribution:
        """
        Record the confirmed on-chain commit of a pending distribution.

        Repeating the same confirmation is a no-op.

        Raises:
            StateConflictException: not pending, or confirmed by another transaction
        """
        with self.locks.hold(distribution_id, self.lock_timeout):
            current = self.get_distribution(distribution_id)
            ref = OnchainRef(tx_hash=tx_hash.lower(), block_number=block_number)
            start_time, end_time = ensure_utc(start_time), ensure_utc(end_time)

            if current.onchain_ref is not None:
                if current.onchain_ref == ref and (current.start_time, current.end_time) == (start_time, end_time):
                    return current
                raise StateConflictException(
                    f"Distribution {distribution_id} is already confirmed",
                    distribution_id=distribution_id,
                    status=current.status.value,
                    code=ErrorCodes.ILLEGAL_TRANSITION,
                    details={"tx_hash": current.onchain_ref.tx_hash},
                )
            if current.status != DistributionStatus.PENDING:
                raise StateConflictException(
                    f"Only pending distributions can be confirmed (status: {current.status.value})",
                    distribution_id=distribution_id,
                    status=current.status.value,
                    code=ErrorCodes.ILLEGAL_TRANSITION,
                )
            if start_time >= end_time:
                raise InvalidRequestException(
                    "start_time must be before end_time",
                    details={"start_time": start_time.isoformat(), "end_time": end_time.isoformat()},
                )

            now = ensure_utc(self.clock())
            confirmed = current.evolve(
                confirmed=True,
                onchain_ref=ref,
                start_time=start_time,
                end_time=end_time,
                updated_at=now,
            )
            confirmed = confirmed.evolve(status=resolve_status(confirmed, now))
            stored = self.store.update(confirmed, current.version)

        logger.info(
            "Confirmed distribution %d in tx %s (block %d), status %s",
            distribution_id, ref.tx_hash, block_number, stored.status.value,
        )
        return stored

    def cancel_distribution(self, distribution_id: int) -> Distribution:
        """
        Cancel a pending or active distribution that has no recorded claims.

        Raises:
            StateConflictException: terminal status or claims already recorded
        """
        with self.locks.hold(distribution_id, self.lock_timeout):
            current = self.get_distribution(distribution_id)
            if current.status not in (DistributionStatus.PENDING, DistributionStatus.ACTIVE):
                raise StateConflictException(
                    f"Cannot cancel a {current.status.value} distribution",
                    distribution_id=distribution_id,
                    status=current.status.value,
                    code=ErrorCodes.ILLEGAL_TRANSITION,
                )
            if current.claimed_count > 0:
                raise StateConflictException(
                    f"Cannot cancel distribution {distribution_id}: "
                    f"{current.claimed_count} claim(s) recorded",
                    distribution_id=distribution_id,
                    status=current.status.value,
                    details={"claimed_count": current.claimed_count},
                )
            cancelled = current.evolve(
                status=DistributionStatus.CANCELLED,
                updated_at=ensure_utc(self.clock()),
            )
            stored = self.store.update(cancelled, current.version)

        logger.info("Cancelled distribution %d", distribution_id)
        return stored

    def refresh_statuses(self, now: Optional[datetime] = None) -> list[Distribution]:
        """
        Apply time-driven transitions to every non-terminal distribution.

        Returns:
            The distributions whose status changed
        """
        now = ensure_utc(now or self.clock())
        candidates: list[int] = []
        for status in (DistributionStatus.PENDING, DistributionStatus.ACTIVE):
            page = 1
            while True:
                items, total = self.store.list(
                    DistributionFilters(status=status, page=page, limit=MAX_PAGE_LIMIT)
                )
                candidates.extend(d.distribution_id for d in items if resolve_status(d, now) != d.status)
                if page * MAX_PAGE_LIMIT >= total:
                    break
                page += 1

        changed: list[Distribution] = []
        for distribution_id in candidates:
            with self.locks.hold(distribution_id, self.lock_timeout):
                current = self.get_distribution(distribution_id)
                status = resolve_status(current, now)
                if status == current.status:
                    continue
                stored = self.store.update(current.evolve(status=status, updated_at=now), current.version)
            logger.info(
                "Distribution %d: %s -> %s",
                distribution_id, current.status.value, stored.status.value,
            )
            changed.append(stored)
        return changed
