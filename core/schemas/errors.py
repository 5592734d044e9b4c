"""
Module 01 - Schemas & Errors
File: errors.py

Purpose: Standard error taxonomy for the Merkle distribution engine.
Defines both Pydantic models for structured error communication
and Python exceptions for control flow.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Error Codes (Machine-Readable Constants)
# =============================================================================

class ErrorCodes:
    """Stable machine-readable error codes used across the engine."""

    # Allocation validation
    ALLOCATION_VALIDATION_ERROR = "ALLOCATION_VALIDATION_ERROR"
    EMPTY_ALLOCATIONS = "EMPTY_ALLOCATIONS"
    MISSING_ADDRESS = "MISSING_ADDRESS"
    INVALID_ADDRESS = "INVALID_ADDRESS"
    ZERO_ADDRESS = "ZERO_ADDRESS"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    NON_POSITIVE_AMOUNT = "NON_POSITIVE_AMOUNT"
    AMOUNT_EXCEEDS_MAX = "AMOUNT_EXCEEDS_MAX"
    DUPLICATE_ADDRESS = "DUPLICATE_ADDRESS"
    TOO_MANY_RECIPIENTS = "TOO_MANY_RECIPIENTS"
    ALLOCATION_PARSE_ERROR = "ALLOCATION_PARSE_ERROR"

    # Request shape
    INVALID_REQUEST = "INVALID_REQUEST"

    # Lookup
    DISTRIBUTION_NOT_FOUND = "DISTRIBUTION_NOT_FOUND"
    LEAF_NOT_FOUND = "LEAF_NOT_FOUND"

    # Merkle & commitment integrity
    ROOT_MISMATCH = "ROOT_MISMATCH"
    LEAF_HASH_MISMATCH = "LEAF_HASH_MISMATCH"
    ROOT_NOT_COMMITTED = "ROOT_NOT_COMMITTED"
    CLAIM_INDEX_OUT_OF_RANGE = "CLAIM_INDEX_OUT_OF_RANGE"
    UNSUPPORTED_LEAF_ENCODING = "UNSUPPORTED_LEAF_ENCODING"
    TOTALS_MISMATCH = "TOTALS_MISMATCH"

    # Lifecycle
    STATE_CONFLICT = "STATE_CONFLICT"
    ILLEGAL_TRANSITION = "ILLEGAL_TRANSITION"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    DUPLICATE_DISTRIBUTION = "DUPLICATE_DISTRIBUTION"

    # Upstream chain data
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    CHAIN_EVENT_DECODE_ERROR = "CHAIN_EVENT_DECODE_ERROR"


# =============================================================================
# Pydantic Error Models (Structured Communication)
# =============================================================================

class MerkledropError(BaseModel):
    """
    Base error model for structured error communication.

    Used for passing errors between layers without exceptions and
    for serializing errors over the HTTP API.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=False,
        validate_assignment=True,
    )

    code: str = Field(
        ...,
        description="Stable machine-readable error code",
        examples=[ErrorCodes.ALLOCATION_VALIDATION_ERROR],
    )
    message: str = Field(
        ...,
        description="Human-readable error message",
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional structured details about the error",
    )
    retryable: bool = Field(
        default=False,
        description="Whether the operation can be retried",
    )


class AllocationIssue(BaseModel):
    """A single problem found in an allocation list."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    code: str = Field(..., description="Error code from ErrorCodes")
    index: int | None = Field(
        default=None,
        description="Index of the offending allocation (None for list-level errors)",
    )
    message: str = Field(..., description="Human-readable description")
    address: str | None = Field(default=None)
    related_index: int | None = Field(
        default=None,
        description="Index of the earlier entry involved (duplicates)",
    )


# =============================================================================
# Python Exceptions (Control Flow)
# =============================================================================

class MerkledropException(Exception):
    """
    Base exception for all Merkle distribution engine errors.

    Carries structured error information and can be converted
    to a MerkledropError model.
    """

    def __init__(
        self,
        message: str,
        code: str = "MERKLEDROP_ERROR",
        details: dict[str, Any] | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}
        self.retryable = retryable

    def to_error_model(self) -> MerkledropError:
        """Convert this exception to a MerkledropError model."""
        return MerkledropError(
            code=self.code,
            message=self.message,
            details=self.details,
            retryable=self.retryable,
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class AllocationValidationException(MerkledropException):
    """Raised when an allocation list fails validation. Carries every issue."""

    def __init__(
        self,
        message: str,
        issues: list[AllocationIssue] | None = None,
    ) -> None:
        self.issues = list(issues or [])
        super().__init__(
            message=message,
            code=ErrorCodes.ALLOCATION_VALIDATION_ERROR,
            details={"errors": [issue.model_dump() for issue in self.issues]},
            retryable=False,
        )


class AllocationParseError(MerkledropException):
    """Raised when an allocation file cannot be parsed."""

    def __init__(self, message: str, line: int | None = None) -> None:
        details: dict[str, Any] = {}
        if line is not None:
            details["line"] = line
        super().__init__(
            message=message,
            code=ErrorCodes.ALLOCATION_PARSE_ERROR,
            details=details,
            retryable=False,
        )


class NotFoundException(MerkledropException):
    """Raised for an unknown distribution or an address with no leaf."""

    def __init__(
        self,
        message: str,
        distribution_id: int | None = None,
        address: str | None = None,
        code: str = ErrorCodes.DISTRIBUTION_NOT_FOUND,
    ) -> None:
        details: dict[str, Any] = {}
        if distribution_id is not None:
            details["distribution_id"] = distribution_id
        if address:
            details["address"] = address
        super().__init__(message=message, code=code, details=details, retryable=False)


class IntegrityException(MerkledropException):
    """
    Raised when a recomputed root or leaf disagrees with a persisted or
    on-chain value. Fatal: never auto-corrected.
    """

    def __init__(
        self,
        message: str,
        distribution_id: int | None = None,
        code: str = ErrorCodes.ROOT_MISMATCH,
        details: dict[str, Any] | None = None,
    ) -> None:
        full_details = details or {}
        if distribution_id is not None:
            full_details["distribution_id"] = distribution_id
        super().__init__(message=message, code=code, details=full_details, retryable=False)


class StateConflictException(MerkledropException):
    """Raised for an illegal lifecycle transition or a concurrent modification."""

    def __init__(
        self,
        message: str,
        distribution_id: int | None = None,
        status: str | None = None,
        code: str = ErrorCodes.STATE_CONFLICT,
        details: dict[str, Any] | None = None,
    ) -> None:
        full_details = details or {}
        if distribution_id is not None:
            full_details["distribution_id"] = distribution_id
        if status:
            full_details["status"] = status
        super().__init__(message=message, code=code, details=full_details, retryable=False)


class UpstreamUnavailableException(MerkledropException):
    """Raised when the chain-data source cannot be reached. Local state is untouched."""

    def __init__(
        self,
        message: str,
        distribution_id: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        full_details = details or {}
        if distribution_id is not None:
            full_details["distribution_id"] = distribution_id
        super().__init__(
            message=message,
            code=ErrorCodes.UPSTREAM_UNAVAILABLE,
            details=full_details,
            retryable=True,
        )


class ChainEventDecodeException(MerkledropException):
    """Raised when a raw chain event payload has an unexpected shape."""

    def __init__(
        self,
        message: str,
        event_type: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        full_details = details or {}
        if event_type:
            full_details["event_type"] = event_type
        super().__init__(
            message=message,
            code=ErrorCodes.CHAIN_EVENT_DECODE_ERROR,
            details=full_details,
            retryable=False,
        )


class InvalidRequestException(MerkledropException):
    """Raised for malformed arguments (address, duration, pagination)."""

    def __init__(
        self,
        message: str,
        code: str = ErrorCodes.INVALID_REQUEST,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code=code, details=details, retryable=False)
