"""
Module 09D - Health Check Route

Simple health check endpoint for liveness probes.
"""

from fastapi import APIRouter, Depends

from api.deps import Services, get_services
from api.models.responses import HealthResponse


router = APIRouter(tags=["health"])


def _health(services: Services) -> HealthResponse:
    return HealthResponse(
        ok=True,
        service="merkledrop-api",
        version="v1",
        storage=services.config.storage.backend,
        chain_configured=services.reconciler is not None,
    )


@router.get("/health", response_model=HealthResponse)
async def health_check(services: Services = Depends(get_services)) -> HealthResponse:
    """
    Health check endpoint.

    Returns service status for liveness probes.
    """
    return _health(services)


@router.get("/", response_model=HealthResponse)
async def root(services: Services = Depends(get_services)) -> HealthResponse:
    """
    Root endpoint - same as health check.
    """
    return _health(services)
