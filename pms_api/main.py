"""
FastAPI Main Application
Project Management System API Service
"""

from contextlib import asynccontextmanager
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from pms_api.api.v1.router import api_router
from pms_api.core.cache import permission_cache
from pms_api.core.config import settings
from pms_api.core.database import AsyncSessionLocal, check_database_health, close_database, init_database
from pms_api.core.exceptions import AppError
from pms_api.core.logging import setup_logging
from pms_api.core.rbac import check_registry
from pms_api.middleware.request_context import RequestContextMiddleware
from pms_api.services.authorization import authorization_error_payload
from pms_api.services.rbac import rbac_service
from pms_api.services.settings import settings_service

# Setup structured logging
setup_logging()
logger = structlog.get_logger()

SERVICE_VERSION = "1.0.0"


async def seed_defaults() -> None:
    """Idempotent: existing permissions, roles and global settings are kept"""
    async with AsyncSessionLocal() as session:
        await rbac_service.initialize_rbac(session)
        await settings_service.initialize_default_settings(session)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Starting PMS API Service", version=SERVICE_VERSION)

    # Default roles must only reference registered permission keys
    check_registry()
    await init_database()
    if settings.SEED_DEFAULTS_ON_STARTUP:
        await seed_defaults()

    yield

    logger.info("Shutting down PMS API Service")
    await permission_cache.close()
    await close_database()


# Create FastAPI application
app = FastAPI(
    title="PMS API",
    description="Project management API: role-based permissions and layered settings",
    version=SERVICE_VERSION,
    docs_url="/docs" if settings.ENVIRONMENT == "development" else None,
    redoc_url="/redoc" if settings.ENVIRONMENT == "development" else None,
    lifespan=lifespan
)

# Build CORS origins list
if settings.ENVIRONMENT == "development":
    cors_origins = ["http://localhost:3000", "http://127.0.0.1:3000"]
    for origin in settings.CORS_ORIGINS:
        if origin not in cors_origins:
            cors_origins.append(origin)
else:
    # In production: use only explicitly configured origins
    cors_origins = settings.CORS_ORIGINS

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
    max_age=600,
)
app.add_middleware(RequestContextMiddleware)

# Include API router
app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Health check endpoint for Docker and load balancers"""
    if await check_database_health():
        return {
            "status": "healthy",
            "service": "pms-api",
            "version": SERVICE_VERSION,
            "timestamp": time.time(),
            "database": "connected"
        }
    return JSONResponse(
        status_code=503,
        content={
            "status": "unhealthy",
            "service": "pms-api",
            "version": SERVICE_VERSION,
            "timestamp": time.time(),
            "database": "unavailable"
        }
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Domain errors carry their own status and code"""
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, code=exc.code, error=exc.message)
    else:
        logger.info("Request rejected", path=request.url.path, code=exc.code, status=exc.status_code)
    payload = authorization_error_payload(exc)
    return JSONResponse(status_code=payload["status"], content=payload)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler"""
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal server error",
            "code": "INTERNAL_ERROR",
            "status": 500,
            "success": False,
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pms_api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development",
        log_level=settings.LOG_LEVEL.lower()
    )
