"""
Pytest configuration and shared fixtures for distribution engine tests.

This conftest.py:
1. Adds project root to sys.path for imports
2. Provides commonly-used fixtures via pytest's autodiscovery
3. Configures pytest markers and settings
"""

import sys
from pathlib import Path

import pytest

# =============================================================================
# Path Setup - Must happen before any local imports
# =============================================================================

# Get the project root (parent of tests/)
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_TESTS_ROOT = Path(__file__).resolve().parent

# Add both project root and tests root to sys.path
for _path in [str(_PROJECT_ROOT), str(_TESTS_ROOT)]:
    if _path not in sys.path:
        sys.path.insert(0, _path)

# =============================================================================
# Import fixtures using importlib (more robust for pytest loading)
# =============================================================================

import importlib

_common = importlib.import_module("fixtures.common")

FixedClock = _common.FixedClock
FakeChainReader = _common.FakeChainReader
make_manager = _common.make_manager
make_reconciler = _common.make_reconciler
make_reference_allocations = _common.make_reference_allocations


# =============================================================================
# Pytest Fixtures (autodiscovered by pytest)
# =============================================================================

@pytest.fixture
def clock():
    """A FixedClock at 2026-01-01T12:00:00Z."""
    return FixedClock()


@pytest.fixture
def chain():
    """An empty FakeChainReader."""
    return FakeChainReader()


@pytest.fixture
def manager(clock):
    """DistributionManager over an in-memory store, driven by the fixed clock."""
    return make_manager(clock=clock)


@pytest.fixture
def reconciler(manager, chain):
    """ChainReconciler sharing the manager's store, locks and clock."""
    return make_reconciler(manager, chain)


@pytest.fixture
def reference_allocations():
    """Three recipients (0xaa.., 0xbb.., 0xcc..) with amounts 100, 200, 50."""
    return make_reference_allocations()


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Keep MERKLEDROP_* variables from the host out of every test."""
    import os
    for name in list(os.environ):
        if name.startswith("MERKLEDROP_"):
            monkeypatch.delenv(name, raising=False)


# =============================================================================
# Pytest Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
