"""
Module 01 - Schemas & Errors
File: distribution.py

Purpose: Distribution aggregate, its leaves, and the ephemeral query
results (proofs, eligibility, pages, stats).

Invariants held by Distribution itself:
- 0 <= claimed_count <= total_recipients
- 0 <= claimed_amount <= total_amount
- start_time < end_time

Invariants that need the leaf set (totals equal leaf sums) are enforced
by the manager on creation and by the stores on every write.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .allocation import VaultType
from .timestamps import ensure_utc
from .versioning import LEAF_ENCODING_VERSION, SCHEMA_VERSION


class DistributionStatus(str, Enum):
    """Lifecycle state of a distribution."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (DistributionStatus.COMPLETED, DistributionStatus.CANCELLED)


class OnchainRef(BaseModel):
    """Reference to the transaction that committed the root."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    tx_hash: str = Field(..., pattern=r"^0x[0-9a-fA-F]{64}$")
    block_number: int = Field(..., ge=0)


class DistributionMetadata(BaseModel):
    """Descriptive, off-chain only metadata."""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(default="", max_length=200)
    description: str = Field(default="", max_length=1000)
    tags: list[str] = Field(default_factory=list)
    category: str = Field(default="general")
    created_by: str | None = Field(default=None)


class Leaf(BaseModel):
    """
    One recipient leaf of a distribution tree.

    leaf_hash, index, address and amount are fixed when the tree is built;
    only the claim fields change afterwards, and only through sync.
    """

    model_config = ConfigDict(extra="forbid")

    distribution_id: int = Field(..., ge=0)
    index: int = Field(..., ge=0, description="0-based position in the committed ordering")
    address: str
    amount: int = Field(..., gt=0)
    leaf_hash: str = Field(..., pattern=r"^0x[0-9a-f]{64}$")
    claimed: bool = False
    claimed_at: datetime | None = None
    claim_tx_ref: str | None = None

    @field_validator("claimed_at")
    @classmethod
    def _utc_claimed_at(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None


class Distribution(BaseModel):
    """Aggregate root for one Merkle distribution."""

    model_config = ConfigDict(extra="forbid")

    schema_version: str = Field(default=SCHEMA_VERSION)
    distribution_id: int = Field(..., ge=0)
    merkle_root: str = Field(..., pattern=r"^0x[0-9a-f]{64}$")
    leaf_encoding: str = Field(default=LEAF_ENCODING_VERSION)
    vault_type: VaultType
    total_amount: int = Field(..., gt=0)
    total_recipients: int = Field(..., gt=0)
    claimed_count: int = Field(default=0, ge=0)
    claimed_amount: int = Field(default=0, ge=0)
    start_time: datetime
    end_time: datetime
    status: DistributionStatus = DistributionStatus.PENDING
    confirmed: bool = Field(default=False, description="Root observed on-chain")
    onchain_ref: OnchainRef | None = None
    metadata: DistributionMetadata = Field(default_factory=DistributionMetadata)
    created_at: datetime
    updated_at: datetime
    last_synced_at: datetime | None = None
    version: int = Field(
        default=0,
        ge=0,
        description="Incremented on every persisted change (compare-and-swap)",
    )

    @field_validator("start_time", "end_time", "created_at", "updated_at", "last_synced_at")
    @classmethod
    def _utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _check_invariants(self) -> "Distribution":
        if self.claimed_count > self.total_recipients:
            raise ValueError(
                f"claimed_count {self.claimed_count} exceeds "
                f"total_recipients {self.total_recipients}"
            )
        if self.claimed_amount > self.total_amount:
            raise ValueError(
                f"claimed_amount {self.claimed_amount} exceeds "
                f"total_amount {self.total_amount}"
            )
        if self.start_time >= self.end_time:
            raise ValueError("start_time must be before end_time")
        return self

    @property
    def unclaimed_amount(self) -> int:
        return self.total_amount - self.claimed_amount

    def in_window(self, now: datetime) -> bool:
        """Claim window check: start_time <= now < end_time."""
        now = ensure_utc(now)
        return self.start_time <= now < self.end_time

    def evolve(self, **changes: Any) -> "Distribution":
        """Return a validated copy with the given fields replaced."""
        data = self.model_dump()
        data.update(changes)
        return Distribution.model_validate(data)


class MerkleProof(BaseModel):
    """Claim proof for one address. Computed on demand, never persisted."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    distribution_id: int
    address: str
    amount: int
    index: int
    leaf_hash: str
    proof: list[str] = Field(default_factory=list, description="Sibling hashes, bottom-up")
    root: str


class EligibilityResult(BaseModel):
    """Answer to an eligibility query. Never raised as an error for unknown addresses."""

    model_config = ConfigDict(extra="forbid")

    eligible: bool
    reason: str
    distribution_id: int
    address: str
    allocation: Leaf | None = None


class DistributionFilters(BaseModel):
    """Filters and pagination for listing distributions."""

    model_config = ConfigDict(extra="forbid")

    status: DistributionStatus | None = None
    vault_type: VaultType | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=50, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class Page(BaseModel):
    """Pagination envelope."""

    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0


class DistributionPage(Page):
    items: list[Distribution] = Field(default_factory=list)


class LeafPage(Page):
    items: list[Leaf] = Field(default_factory=list)


class DistributionStats(BaseModel):
    """Claim progress summary for one distribution."""

    distribution_id: int
    status: DistributionStatus
    total_amount: int
    claimed_amount: int
    unclaimed_amount: int
    claim_rate: float = Field(..., description="Claimed share of total_amount, in percent")
    total_recipients: int
    claimed_count: int
    start_time: datetime
    end_time: datetime


class UserDistribution(BaseModel):
    """A distribution together with one user's leaf in it."""

    distribution: Distribution
    leaf: Leaf
