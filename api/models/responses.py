"""
Module 09D - API Response Models

Pydantic models for API response serialization.
Token amounts are decimal strings: they routinely exceed 2**53.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from core.schemas.distribution import (
    Distribution,
    DistributionMetadata,
    DistributionStats,
    Leaf,
    OnchainRef,
)


class HealthResponse(BaseModel):
    """Response for GET /health endpoint."""

    ok: bool = True
    service: str = "merkledrop-api"
    version: str = "v1"
    storage: str = Field(default="memory", description="Active store backend")
    chain_configured: bool = Field(default=False, description="Whether sync can reach a chain reader")


class LeafView(BaseModel):
    """One recipient leaf."""

    index: int
    address: str
    amount: str
    leaf_hash: str
    claimed: bool
    claimed_at: datetime | None = None
    claim_tx_ref: str | None = None

    @classmethod
    def from_leaf(cls, leaf: Leaf) -> "LeafView":
        return cls(
            index=leaf.index,
            address=leaf.address,
            amount=str(leaf.amount),
            leaf_hash=leaf.leaf_hash,
            claimed=leaf.claimed,
            claimed_at=leaf.claimed_at,
            claim_tx_ref=leaf.claim_tx_ref,
        )


class DistributionView(BaseModel):
    """Public view of a distribution."""

    distribution_id: int
    merkle_root: str
    leaf_encoding: str
    vault_type: str
    total_amount: str
    total_recipients: int
    claimed_count: int
    claimed_amount: str
    unclaimed_amount: str
    start_time: datetime
    end_time: datetime
    status: str
    confirmed: bool
    onchain_ref: OnchainRef | None = None
    metadata: DistributionMetadata
    created_at: datetime
    updated_at: datetime
    last_synced_at: datetime | None = None

    @classmethod
    def from_distribution(cls, d: Distribution) -> "DistributionView":
        return cls(
            distribution_id=d.distribution_id,
            merkle_root=d.merkle_root,
            leaf_encoding=d.leaf_encoding,
            vault_type=d.vault_type.value,
            total_amount=str(d.total_amount),
            total_recipients=d.total_recipients,
            claimed_count=d.claimed_count,
            claimed_amount=str(d.claimed_amount),
            unclaimed_amount=str(d.unclaimed_amount),
            start_time=d.start_time,
            end_time=d.end_time,
            status=d.status.value,
            confirmed=d.confirmed,
            onchain_ref=d.onchain_ref,
            metadata=d.metadata,
            created_at=d.created_at,
            updated_at=d.updated_at,
            last_synced_at=d.last_synced_at,
        )


class StatsView(BaseModel):
    """Claim progress for one distribution."""

    total_amount: str
    claimed_amount: str
    unclaimed_amount: str
    claim_rate: float = Field(..., description="Claimed share of the total, in percent")
    total_recipients: int
    claimed_count: int

    @classmethod
    def from_stats(cls, stats: DistributionStats) -> "StatsView":
        return cls(
            total_amount=str(stats.total_amount),
            claimed_amount=str(stats.claimed_amount),
            unclaimed_amount=str(stats.unclaimed_amount),
            claim_rate=stats.claim_rate,
            total_recipients=stats.total_recipients,
            claimed_count=stats.claimed_count,
        )


class DistributionResponse(BaseModel):
    """Response for single-distribution endpoints."""

    ok: bool = True
    distribution: DistributionView
    stats: StatsView | None = None


class CreateDistributionResponse(BaseModel):
    """Response for POST /distributions."""

    ok: bool = True
    distribution: DistributionView
    root: str = Field(..., description="Merkle root to commit on-chain")
    leaf_count: int


class PageInfo(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class DistributionListResponse(BaseModel):
    """Response for GET /distributions."""

    ok: bool = True
    items: list[DistributionView] = Field(default_factory=list)
    pagination: PageInfo


class LeafListResponse(BaseModel):
    """Response for GET /distributions/{id}/leaves."""

    ok: bool = True
    distribution_id: int
    items: list[LeafView] = Field(default_factory=list)
    pagination: PageInfo


class EligibilityResponse(BaseModel):
    """Response for GET /distributions/{id}/eligibility/{address}."""

    ok: bool = True
    eligible: bool
    reason: str
    distribution_id: int
    address: str
    allocation: LeafView | None = None


class ProofResponse(BaseModel):
    """Response for GET /distributions/{id}/proof/{address}."""

    ok: bool = True
    distribution_id: int
    address: str
    amount: str
    index: int
    leaf_hash: str
    proof: list[str] = Field(default_factory=list, description="Sibling hashes, bottom-up")
    root: str


class UserDistributionView(BaseModel):
    distribution: DistributionView
    allocation: LeafView


class UserDistributionsResponse(BaseModel):
    """Response for GET /users/{address}/distributions."""

    ok: bool = True
    address: str
    items: list[UserDistributionView] = Field(default_factory=list)


class SyncResponse(BaseModel):
    """Response for POST /distributions/{id}/sync."""

    ok: bool = True
    changed: bool
    newly_claimed: list[int] = Field(default_factory=list)
    reverted: list[int] = Field(default_factory=list)
    distribution: DistributionView


class RefreshResponse(BaseModel):
    """Response for POST /distributions/refresh."""

    ok: bool = True
    changed: list[DistributionView] = Field(default_factory=list)


class ValidationResponse(BaseModel):
    """Response for POST /allocations/validate."""

    ok: bool = True
    valid: bool
    errors: list[dict[str, Any]] = Field(default_factory=list)
    total_amount: str
    recipient_count: int


class ErrorDetail(BaseModel):
    """Detailed error information."""

    code: str = Field(..., description="Error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(default_factory=dict)
    retryable: bool = Field(default=False, description="Whether retrying the request may succeed")


class ErrorResponse(BaseModel):
    """Standard error response."""

    ok: bool = False
    error: ErrorDetail = Field(..., description="Error details")
