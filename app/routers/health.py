# =============================================================================
# app/routers/health.py - Health Check Endpoints
# =============================================================================
# Provides health check endpoints for monitoring and load balancers.
# =============================================================================

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from pydantic import BaseModel

from app.config import settings
from app.dependencies import ContainerDep
from lib.record_store import RecordStoreError

logger = logging.getLogger(__name__)

router = APIRouter()

API_VERSION = "1.0.0"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Response Models
# =============================================================================

class HealthResponse(BaseModel):
    """Basic health check response."""
    status: str
    timestamp: str
    environment: str
    version: str


class ChecksResponse(BaseModel):
    """Individual service checks."""
    record_store: str
    resources: int


class ReadinessResponse(BaseModel):
    """Readiness check response."""
    status: str
    checks: ChecksResponse
    timestamp: str


class LivenessResponse(BaseModel):
    """Liveness check response."""
    status: str
    timestamp: str


# =============================================================================
# Endpoints
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Health check endpoint.

    Returns basic health status for load balancers and monitoring.
    """
    return HealthResponse(
        status="healthy",
        timestamp=_now(),
        environment=settings.ENVIRONMENT,
        version=API_VERSION,
    )


@router.get("/health/ready", response_model=ReadinessResponse)
def readiness_check(container: ContainerDep):
    """
    Readiness check endpoint.

    Returns whether the service is ready to accept requests: the record
    store answers and the resource registry is frozen.
    """
    try:
        store_status = "healthy" if container.store.ping() else "unhealthy"
    except RecordStoreError as e:
        logger.warning(f"Record store ping failed: {e}")
        store_status = f"unhealthy: {str(e)[:50]}"

    checks = ChecksResponse(
        record_store=store_status,
        resources=len(container.registry.exposed_names()),
    )
    ready = store_status == "healthy" and container.registry.frozen

    return ReadinessResponse(
        status="ready" if ready else "degraded",
        checks=checks,
        timestamp=_now(),
    )


@router.get("/health/live", response_model=LivenessResponse)
async def liveness_check():
    """
    Liveness check endpoint.

    Returns whether the service process is alive.
    Used by Kubernetes/Docker for restart decisions.
    """
    return LivenessResponse(
        status="alive",
        timestamp=_now(),
    )
