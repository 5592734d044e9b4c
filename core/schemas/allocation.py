"""
Module 01 - Schemas & Errors
File: allocation.py

Purpose: Allocation input models and the validation report returned by
the allocation validator.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .errors import AllocationIssue


class VaultType(str, Enum):
    """Funding source category for a distribution."""

    PLAYER_TASKS = "PLAYER_TASKS"
    SOCIAL_FOLLOWERS = "SOCIAL_FOLLOWERS"
    SOCIAL_POSTERS = "SOCIAL_POSTERS"
    ECOSYSTEM_FUND = "ECOSYSTEM_FUND"

    @classmethod
    def from_onchain(cls, value: int) -> "VaultType":
        members = list(cls)
        if not 0 <= value < len(members):
            raise ValueError(f"Unknown on-chain vault type: {value}")
        return members[value]


class Allocation(BaseModel):
    """
    One recipient's allocation.

    Address is a 0x-prefixed 20-byte hex account; amount is an integer
    quantity in the token's base units. Instances coming out of the
    validator are normalized (lowercase address).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    address: str = Field(..., description="Recipient account (0x-prefixed hex)")
    amount: int = Field(..., description="Token amount in base units", ge=0)


class ValidationReport(BaseModel):
    """Outcome of validating a raw allocation list."""

    model_config = ConfigDict(extra="forbid")

    valid: bool
    errors: list[AllocationIssue] = Field(default_factory=list)
    total_amount: int = Field(
        default=0,
        description="Sum of the well-formed amounts",
    )
    recipient_count: int = Field(
        default=0,
        description="Number of unique well-formed addresses",
    )

    def errors_for_index(self, index: int) -> list[AllocationIssue]:
        """Issues that mention the given allocation index."""
        return [
            e for e in self.errors
            if e.index == index or e.related_index == index
        ]

    def codes(self) -> set[str]:
        return {e.code for e in self.errors}

    def summary(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "error_count": len(self.errors),
            "total_amount": str(self.total_amount),
            "recipient_count": self.recipient_count,
        }
