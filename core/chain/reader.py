"""
Chain Reader Interface

Read-only view of the on-chain distribution contract, injected into
reconciliation so tests can substitute a deterministic fake.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from core.schemas.chain import ClaimRecord, TimingWindow


class ChainReader(ABC):
    """
    Source of authoritative on-chain state for a distribution.

    Implementations raise UpstreamUnavailableException when the data
    source cannot be reached; they never return partial results.
    """

    @abstractmethod
    def get_root(self, distribution_id: int) -> Optional[bytes]:
        """Committed 32-byte root, or None if nothing is committed yet."""

    @abstractmethod
    def get_claimed_flags(self, distribution_id: int, leaf_count: int) -> dict[int, ClaimRecord]:
        """Claim records keyed by leaf index. Unclaimed leaves are absent."""

    @abstractmethod
    def get_timing_window(self, distribution_id: int) -> Optional[TimingWindow]:
        """Claim window enforced by the contract, or None if not committed."""
