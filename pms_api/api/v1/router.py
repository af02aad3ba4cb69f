"""
API v1 Router
Main router for all API v1 endpoints
"""

from fastapi import APIRouter
from pms_api.api.v1.endpoints import health, rbac, settings

api_router = APIRouter()

# Roles, permissions and assignments
api_router.include_router(
    rbac.router,
    prefix="/rbac",
    tags=["rbac"]
)

# Layered settings
api_router.include_router(
    settings.router,
    prefix="/settings",
    tags=["settings"]
)

# Health and monitoring endpoints
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"]
)
