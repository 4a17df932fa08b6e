"""
Health Check Endpoints

Provides health and readiness checks for orchestration systems.
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from src.config import get_settings
from src.database.connection import check_database_health
from src.serving.cache import check_redis_health

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    environment: str
    timestamp: datetime
    checks: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Comprehensive health check endpoint.

    Checks:
    - Database connectivity
    - Redis connectivity (reported as disabled when the cache is off)
    """
    settings = get_settings()
    checks = {
        "database": await check_database_health(),
        "redis": await check_redis_health(),
    }

    overall_status = "healthy"
    if checks["database"].get("status") != "healthy":
        overall_status = "unhealthy"
    elif checks["redis"].get("status") == "unhealthy":
        overall_status = "degraded"

    return HealthResponse(
        status=overall_status,
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.now(timezone.utc),
        checks=checks,
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """Returns 200 while the process is serving requests."""
    return {"status": "alive"}


@router.get("/health/ready")
async def readiness_check(response: Response) -> Dict[str, str]:
    """Returns 503 until the database answers."""
    db_health = await check_database_health()
    if db_health.get("status") != "healthy":
        response.status_code = 503
        return {"status": "not_ready", "reason": "database_unavailable"}
    return {"status": "ready"}


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus exposition of analyzer counters and timings."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
