"""Health check endpoints."""

from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter
from pydantic import BaseModel

from restock_service import __version__
from restock_service.api.deps import RepositoryDep, SettingsDep

logger = structlog.get_logger()

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str
    timestamp: str
    dependencies: dict[str, Any]


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    ready: bool
    checks: dict[str, bool]


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: SettingsDep) -> HealthResponse:
    """
    Basic health check endpoint.

    Returns the service status and version information.
    This endpoint is used by load balancers and orchestrators
    to determine if the service is running.
    """
    return HealthResponse(
        status="healthy",
        version=__version__,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc).isoformat(),
        dependencies={
            "database": "configured",
            "email": settings.email_service,
            "dispatch": "worker" if settings.dispatch_via_worker else "inline",
        },
    )


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(repository: RepositoryDep) -> ReadinessResponse:
    """
    Readiness check endpoint.

    Verifies that the database answers a trivial query.
    This endpoint is used by Kubernetes readiness probes.
    """
    checks: dict[str, bool] = {}

    try:
        await repository.ping()
        checks["database"] = True
    except Exception as e:
        logger.warning("Database readiness check failed", error=str(e))
        checks["database"] = False

    return ReadinessResponse(
        ready=all(checks.values()),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """
    Liveness check endpoint.

    Simple endpoint that returns 200 if the service is running.
    This endpoint is used by Kubernetes liveness probes.
    """
    return {"status": "alive"}
