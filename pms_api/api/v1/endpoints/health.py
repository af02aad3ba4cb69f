"""
Health Check Endpoints
Service health, readiness and liveness
"""

import time
from typing import Any, Dict

from fastapi import APIRouter
import structlog

from pms_api.core.cache import InMemoryPermissionCache, NullPermissionCache, permission_cache
from pms_api.core.database import check_database_health
from pms_api.schemas.base import HealthCheck, HealthStatus

logger = structlog.get_logger()
router = APIRouter()

SERVICE_NAME = "pms-api"
SERVICE_VERSION = "1.0.0"


def _cache_backend() -> str:
    if isinstance(permission_cache, NullPermissionCache):
        return "none"
    if isinstance(permission_cache, InMemoryPermissionCache):
        return "memory"
    return "redis"


@router.get("", response_model=HealthCheck)
@router.get("/", response_model=HealthCheck, include_in_schema=False)
async def health_check() -> HealthCheck:
    """Database connectivity plus the active permission cache backend"""
    checks: Dict[str, Any] = {}
    overall_status = HealthStatus.HEALTHY

    db_healthy = await check_database_health()
    checks["database"] = {"status": "healthy" if db_healthy else "unhealthy"}
    if not db_healthy:
        overall_status = HealthStatus.UNHEALTHY

    checks["permission_cache"] = {"status": "healthy", "backend": _cache_backend()}

    return HealthCheck(
        status=overall_status,
        service=SERVICE_NAME,
        version=SERVICE_VERSION,
        checks=checks,
    )


@router.get("/ready")
async def readiness_check() -> Dict[str, Any]:
    if await check_database_health():
        return {"status": "ready", "timestamp": time.time()}
    return {"status": "not ready", "reason": "database unavailable", "timestamp": time.time()}


@router.get("/live")
async def liveness_check() -> Dict[str, Any]:
    return {"status": "alive", "timestamp": time.time()}
