"""Health check router for the duckprom API.

This module provides health check endpoints for monitoring
and load balancer integration.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, status
from pydantic import BaseModel

from duckprom import __version__
from duckprom.api.dependencies import Adapter
from duckprom.api.exceptions import ServiceUnavailableException
from duckprom.exceptions import StorageError

router = APIRouter(prefix="/health", tags=["health"])


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    timestamp: datetime
    version: str


class ReadinessResponse(HealthResponse):
    """Readiness response with storage details."""

    storage: str
    stored_samples: int


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """Basic health check endpoint.

    Example:
        GET /health
        {
            "status": "healthy",
            "version": "0.1.0"
        }
    """
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=__version__,
    )


@router.get(
    "/ready",
    response_model=ReadinessResponse,
    status_code=status.HTTP_200_OK,
    summary="Readiness check",
)
async def readiness_check(adapter: Adapter) -> ReadinessResponse:
    """Readiness check for Kubernetes/load balancers.

    Ready once the storage backend answers a count query.

    Raises:
        ServiceUnavailableException: If storage is unreachable
    """
    try:
        stored = await adapter.backend.count()
    except StorageError as e:
        raise ServiceUnavailableException(f"Storage not ready: {e.message}") from e

    return ReadinessResponse(
        status="ready",
        timestamp=datetime.now(timezone.utc),
        version=__version__,
        storage=adapter.backend.name,
        stored_samples=stored,
    )
