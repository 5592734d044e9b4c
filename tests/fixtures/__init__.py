"""
Test fixtures package for distribution engine tests.

This package provides factory functions and fakes for creating test objects.
- common.py: allocations, FixedClock, FakeChainReader, manager wiring

Usage:
    from fixtures.common import make_reference_allocations, FakeChainReader

    def test_something():
        manager = make_manager()
        result = manager.create_distribution(make_reference_allocations(), "PLAYER_TASKS", 30)
"""

from .common import (
    ADDR_A,
    ADDR_B,
    ADDR_C,
    ADDR_UNKNOWN,
    COMMIT_TX,
    T0,
    FakeChainReader,
    FixedClock,
    make_address,
    make_allocations,
    make_confirmed_distribution,
    make_manager,
    make_reconciler,
    make_reference_allocations,
    make_tx_hash,
)

__all__ = [
    "ADDR_A",
    "ADDR_B",
    "ADDR_C",
    "ADDR_UNKNOWN",
    "COMMIT_TX",
    "T0",
    "FakeChainReader",
    "FixedClock",
    "make_address",
    "make_allocations",
    "make_confirmed_distribution",
    "make_manager",
    "make_reconciler",
    "make_reference_allocations",
    "make_tx_hash",
]
