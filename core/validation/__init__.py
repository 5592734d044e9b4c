"""
Allocation Validation Module

Validates recipient allocation lists before a tree is built.
"""

from .allocations import (
    ZERO_ADDRESS,
    ValidationPolicy,
    require_valid,
    validate_allocations,
)

__all__ = [
    "ZERO_ADDRESS",
    "ValidationPolicy",
    "require_valid",
    "validate_allocations",
]
