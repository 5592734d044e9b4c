"""
Module 01 - Schemas & Errors
File: versioning.py

Purpose: Centralize schema and leaf-encoding version constants.
This file must stay tiny and have no imports from other schema files
to avoid circular dependencies.
"""

from typing import Literal

# Current schema version for persisted records
SCHEMA_VERSION: str = "v1"

# Leaf encoding version. Changing the encoding invalidates every root that
# was committed with an earlier version, so a new encoding gets a new tag.
LEAF_ENCODING_VERSION: str = "v1"

# Type alias for leaf encoding version
LeafEncodingVersion = Literal["v1"]

SUPPORTED_SCHEMA_VERSIONS: frozenset[str] = frozenset({"v1"})
SUPPORTED_LEAF_ENCODINGS: frozenset[str] = frozenset({"v1"})


class UnsupportedSchemaVersionError(ValueError):
    """Raised when an unsupported schema version is encountered."""

    def __init__(self, version: str, supported: frozenset[str] | None = None) -> None:
        self.version = version
        self.supported = supported or SUPPORTED_SCHEMA_VERSIONS
        super().__init__(
            f"Unsupported schema version: '{version}'. "
            f"Supported versions: {sorted(self.supported)}"
        )


class UnsupportedLeafEncodingError(ValueError):
    """Raised when a distribution references an unknown leaf encoding."""

    def __init__(self, version: str, supported: frozenset[str] | None = None) -> None:
        self.version = version
        self.supported = supported or SUPPORTED_LEAF_ENCODINGS
        super().__init__(
            f"Unsupported leaf encoding: '{version}'. "
            f"Supported encodings: {sorted(self.supported)}"
        )


def assert_supported_schema_version(version: str) -> None:
    """
    Validate that the given schema version is supported.

    Raises:
        UnsupportedSchemaVersionError: If the version is not supported.
    """
    if version not in SUPPORTED_SCHEMA_VERSIONS:
        raise UnsupportedSchemaVersionError(version)


def assert_supported_leaf_encoding(version: str) -> None:
    """
    Validate that the given leaf encoding version is supported.

    Raises:
        UnsupportedLeafEncodingError: If the version is not supported.
    """
    if version not in SUPPORTED_LEAF_ENCODINGS:
        raise UnsupportedLeafEncodingError(version)
