"""
Module 01 - Schemas & Errors
File: __init__.py

Purpose: Export the public API for the schemas module.
This is the main entry point for other modules to import schema definitions.
"""

# Version constants
from .versioning import (
    LEAF_ENCODING_VERSION,
    SCHEMA_VERSION,
    SUPPORTED_LEAF_ENCODINGS,
    SUPPORTED_SCHEMA_VERSIONS,
    LeafEncodingVersion,
    UnsupportedLeafEncodingError,
    UnsupportedSchemaVersionError,
    assert_supported_leaf_encoding,
    assert_supported_schema_version,
)

# Time helpers
from .timestamps import (
    Clock,
    ensure_utc,
    from_unix_seconds,
    parse_datetime,
    utc_now,
)

# Error models and exceptions
from .errors import (
    AllocationIssue,
    AllocationParseError,
    AllocationValidationException,
    ChainEventDecodeException,
    ErrorCodes,
    IntegrityException,
    InvalidRequestException,
    MerkledropError,
    MerkledropException,
    NotFoundException,
    StateConflictException,
    UpstreamUnavailableException,
)

# Allocation models
from .allocation import (
    Allocation,
    ValidationReport,
    VaultType,
)

# Distribution models
from .distribution import (
    Distribution,
    DistributionFilters,
    DistributionMetadata,
    DistributionPage,
    DistributionStats,
    DistributionStatus,
    EligibilityResult,
    Leaf,
    LeafPage,
    MerkleProof,
    OnchainRef,
    UserDistribution,
)

# Chain views and events
from .chain import (
    ChainEvent,
    ClaimedEvent,
    ClaimRecord,
    DistributionCreatedEvent,
    DistributionFinalizedEvent,
    TimingWindow,
    decode_chain_event,
)

__all__ = [
    # Versioning
    "LEAF_ENCODING_VERSION",
    "SCHEMA_VERSION",
    "SUPPORTED_LEAF_ENCODINGS",
    "SUPPORTED_SCHEMA_VERSIONS",
    "LeafEncodingVersion",
    "UnsupportedLeafEncodingError",
    "UnsupportedSchemaVersionError",
    "assert_supported_leaf_encoding",
    "assert_supported_schema_version",
    # Time
    "Clock",
    "ensure_utc",
    "from_unix_seconds",
    "parse_datetime",
    "utc_now",
    # Errors
    "AllocationIssue",
    "AllocationParseError",
    "AllocationValidationException",
    "ChainEventDecodeException",
    "ErrorCodes",
    "IntegrityException",
    "InvalidRequestException",
    "MerkledropError",
    "MerkledropException",
    "NotFoundException",
    "StateConflictException",
    "UpstreamUnavailableException",
    # Allocation
    "Allocation",
    "ValidationReport",
    "VaultType",
    # Distribution
    "Distribution",
    "DistributionFilters",
    "DistributionMetadata",
    "DistributionPage",
    "DistributionStats",
    "DistributionStatus",
    "EligibilityResult",
    "Leaf",
    "LeafPage",
    "MerkleProof",
    "OnchainRef",
    "UserDistribution",
    # Chain
    "ChainEvent",
    "ClaimedEvent",
    "ClaimRecord",
    "DistributionCreatedEvent",
    "DistributionFinalizedEvent",
    "TimingWindow",
    "decode_chain_event",
]
