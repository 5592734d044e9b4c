"""
Module 09D - API Request Models

Pydantic models for API request validation.
Allocation entries are only shape-checked here; address and amount rules
belong to the allocation validator so every issue is reported together.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from core.schemas.allocation import VaultType
from core.schemas.distribution import DistributionMetadata


class AllocationInput(BaseModel):
    """One raw allocation entry."""

    address: str | None = Field(default=None, description="Recipient account (0x-prefixed hex)")
    amount: int | str | None = Field(
        default=None,
        description="Amount in base units, or a decimal string when decimals is set",
    )


class CreateDistributionRequest(BaseModel):
    """Request body for POST /distributions."""

    allocations: list[AllocationInput] = Field(
        ...,
        description="Recipients in committed order",
    )
    vault_type: VaultType = Field(..., description="Funding source category")
    duration_days: int = Field(
        default=30,
        ge=1,
        le=365,
        description="Provisional claim window length",
    )
    decimals: int | None = Field(
        default=None,
        ge=0,
        le=36,
        description="Scale human-readable amounts to base units",
    )
    metadata: DistributionMetadata | None = None


class ConfirmCommitRequest(BaseModel):
    """Request body for POST /distributions/{id}/confirm."""

    tx_hash: str = Field(..., pattern=r"^0x[0-9a-fA-F]{64}$")
    block_number: int = Field(..., ge=0)
    start_time: datetime
    end_time: datetime


class ValidateAllocationsRequest(BaseModel):
    """Request body for POST /allocations/validate."""

    allocations: list[AllocationInput]
    decimals: int | None = Field(default=None, ge=0, le=36)
