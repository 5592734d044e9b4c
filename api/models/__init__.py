"""API request and response models."""

from api.models.requests import (
    AllocationInput,
    ConfirmCommitRequest,
    CreateDistributionRequest,
    ValidateAllocationsRequest,
)
from api.models.responses import (
    CreateDistributionResponse,
    DistributionListResponse,
    DistributionResponse,
    DistributionView,
    EligibilityResponse,
    ErrorDetail,
    ErrorResponse,
    HealthResponse,
    LeafListResponse,
    LeafView,
    PageInfo,
    ProofResponse,
    StatsView,
    SyncResponse,
    UserDistributionsResponse,
    UserDistributionView,
    ValidationResponse,
)

__all__ = [
    "AllocationInput",
    "ConfirmCommitRequest",
    "CreateDistributionRequest",
    "ValidateAllocationsRequest",
    "CreateDistributionResponse",
    "DistributionListResponse",
    "DistributionResponse",
    "DistributionView",
    "EligibilityResponse",
    "ErrorDetail",
    "ErrorResponse",
    "HealthResponse",
    "LeafListResponse",
    "LeafView",
    "PageInfo",
    "ProofResponse",
    "StatsView",
    "SyncResponse",
    "UserDistributionsResponse",
    "UserDistributionView",
    "ValidationResponse",
]
