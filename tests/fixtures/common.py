"""
Common test fixtures shared by all modules.

Provides factory functions and fakes for the distribution engine:
- Allocation lists (including the three-recipient reference set)
- FixedClock: a settable clock for time-driven rules
- FakeChainReader: deterministic stand-in for on-chain state
- make_manager / make_confirmed_distribution: wired-up managers
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from core.chain.reader import ChainReader
from core.crypto.hashing import from_hex
from core.schemas.allocation import VaultType
from core.schemas.chain import ClaimRecord, TimingWindow
from core.schemas.errors import UpstreamUnavailableException
from distributions import (
    ChainReconciler,
    DistributionLocks,
    DistributionManager,
    InMemoryDistributionStore,
)


# =============================================================================
# Addresses and allocations
# =============================================================================

ADDR_A = "0x" + "a" * 40
ADDR_B = "0x" + "b" * 40
ADDR_C = "0x" + "c" * 40
ADDR_UNKNOWN = "0x" + "d" * 40

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

COMMIT_TX = "0x" + "1" * 64


def make_address(n: int) -> str:
    """Deterministic distinct address for an integer seed."""
    return "0x" + f"{n + 1:040x}"


def make_reference_allocations() -> list[dict[str, Any]]:
    """Three recipients, total 350."""
    return [
        {"address": ADDR_A, "amount": 100},
        {"address": ADDR_B, "amount": 200},
        {"address": ADDR_C, "amount": 50},
    ]


def make_allocations(count: int, base_amount: int = 1000) -> list[dict[str, Any]]:
    """count distinct recipients with amounts base_amount, base_amount+1, ..."""
    return [
        {"address": make_address(i), "amount": base_amount + i}
        for i in range(count)
    ]


def make_tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


# =============================================================================
# Clock
# =============================================================================

class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = T0) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> None:
        self.now = now


# =============================================================================
# Chain
# =============================================================================

class FakeChainReader(ChainReader):
    """
    In-memory on-chain state.

    Tests commit roots, windows and claims directly; setting fail=True
    makes every read raise UpstreamUnavailableException.
    """

    def __init__(self) -> None:
        self.roots: dict[int, bytes] = {}
        self.windows: dict[int, TimingWindow] = {}
        self.claims: dict[int, dict[int, ClaimRecord]] = {}
        self.fail = False
        self.calls: list[tuple[str, int]] = []

    def commit(
        self,
        distribution_id: int,
        root_hex: str,
        start_time: datetime,
        end_time: datetime,
    ) -> None:
        self.roots[distribution_id] = from_hex(root_hex)
        self.windows[distribution_id] = TimingWindow(start_time=start_time, end_time=end_time)

    def claim(
        self,
        distribution_id: int,
        index: int,
        claimed_at: Optional[datetime] = None,
        tx_hash: Optional[str] = None,
    ) -> None:
        self.claims.setdefault(distribution_id, {})[index] = ClaimRecord(
            index=index,
            claimed_at=claimed_at,
            tx_hash=tx_hash or make_tx_hash(1000 + index),
        )

    def unclaim(self, distribution_id: int, index: int) -> None:
        self.claims.get(distribution_id, {}).pop(index, None)

    def _check(self, method: str, distribution_id: int) -> None:
        self.calls.append((method, distribution_id))
        if self.fail:
            raise UpstreamUnavailableException(
                "fake chain is down",
                distribution_id=distribution_id,
            )

    def get_root(self, distribution_id: int) -> Optional[bytes]:
        self._check("get_root", distribution_id)
        return self.roots.get(distribution_id)

    def get_claimed_flags(self, distribution_id: int, leaf_count: int) -> dict[int, ClaimRecord]:
        self._check("get_claimed_flags", distribution_id)
        return dict(self.claims.get(distribution_id, {}))

    def get_timing_window(self, distribution_id: int) -> Optional[TimingWindow]:
        self._check("get_timing_window", distribution_id)
        return self.windows.get(distribution_id)


# =============================================================================
# Wiring
# =============================================================================

def make_manager(
    store: Optional[InMemoryDistributionStore] = None,
    clock: Optional[FixedClock] = None,
    locks: Optional[DistributionLocks] = None,
    **kwargs: Any,
) -> DistributionManager:
    return DistributionManager(
        store or InMemoryDistributionStore(),
        clock=clock or FixedClock(),
        locks=locks or DistributionLocks(),
        **kwargs,
    )


def make_reconciler(
    manager: DistributionManager,
    reader: ChainReader,
) -> ChainReconciler:
    """Reconciler sharing the manager's store, locks and clock."""
    return ChainReconciler(
        manager.store,
        reader,
        locks=manager.locks,
        clock=manager.clock,
    )


def make_confirmed_distribution(
    manager: DistributionManager,
    allocations: Optional[list[dict[str, Any]]] = None,
    start_offset: timedelta = timedelta(0),
    duration: timedelta = timedelta(days=30),
    vault_type: VaultType = VaultType.PLAYER_TASKS,
):
    """Create and confirm a distribution whose window starts at now + start_offset."""
    result = manager.create_distribution(
        allocations or make_reference_allocations(),
        vault_type,
        30,
    )
    start = manager.clock() + start_offset
    return manager.confirm_commit(
        result.distribution.distribution_id,
        tx_hash=COMMIT_TX,
        block_number=100,
        start_time=start,
        end_time=start + duration,
    )
