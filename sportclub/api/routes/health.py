"""
Health Check Routes

Endpoints for health, liveness, and readiness probes.
"""

from typing import Dict, Any
from datetime import datetime, timezone

from fastapi import APIRouter
from sqlalchemy import text

from sportclub.api.deps import DbSession, RedisClient
from sportclub.config import settings

router = APIRouter()


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Basic health check endpoint.
    Returns application status and version.
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/ready")
async def readiness_check(db: DbSession, redis_client: RedisClient) -> Dict[str, Any]:
    """
    Readiness probe - checks the database and Redis are reachable.
    """
    checks: Dict[str, Dict[str, Any]] = {}
    overall_status = "ready"

    try:
        await db.execute(text("SELECT 1"))
        checks["database"] = {"status": "ok"}
    except Exception as e:
        checks["database"] = {"status": "error", "error": str(e)}
        overall_status = "not_ready"

    try:
        await redis_client.ping()
        checks["redis"] = {"status": "ok"}
    except Exception as e:
        checks["redis"] = {"status": "error", "error": str(e)}
        overall_status = "not_ready"

    return {
        "status": overall_status,
        "checks": checks,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Liveness probe - basic check that the service is running.
    """
    return {"status": "alive"}
