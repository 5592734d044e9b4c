"""
Distributions Module

Lifecycle management, persistence and chain reconciliation for Merkle
distributions.
"""

from .locks import DistributionLocks
from .manager import (
    CreateDistributionResult,
    DistributionManager,
    recompute_leaf_hashes,
    resolve_status,
)
from .parsing import (
    load_allocations,
    parse_allocations_csv,
    parse_allocations_json,
    parse_amount,
)
from .sqlite_store import SQLiteDistributionStore
from .store import DistributionStore, InMemoryDistributionStore, LeafUpdate
from .sync import ChainReconciler, SyncResult

__all__ = [
    "ChainReconciler",
    "CreateDistributionResult",
    "DistributionLocks",
    "DistributionManager",
    "DistributionStore",
    "InMemoryDistributionStore",
    "LeafUpdate",
    "SQLiteDistributionStore",
    "SyncResult",
    "load_allocations",
    "parse_allocations_csv",
    "parse_allocations_json",
    "parse_amount",
    "recompute_leaf_hashes",
    "resolve_status",
]
