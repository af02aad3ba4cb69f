"""
Application Configuration
Environment variables and settings management
"""

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Application
    ENVIRONMENT: str = Field(default="development", description="Application environment")
    DEBUG: bool = Field(default=False, description="Debug mode")
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")

    # Database
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./pms.db",
        description="Database URL (postgresql:// or sqlite+aiosqlite://)"
    )
    DB_POOL_SIZE: int = Field(default=10, description="Database connection pool size")
    DB_MAX_OVERFLOW: int = Field(default=20, description="Database max overflow connections")
    DB_POOL_TIMEOUT: int = Field(default=30, description="Database pool timeout in seconds")
    DB_POOL_RECYCLE: int = Field(default=3600, description="Database pool recycle time in seconds")

    # Redis
    REDIS_URL: str = Field(default="redis://localhost:6379/0", description="Redis URL")

    # Permission cache
    PERMISSION_CACHE_BACKEND: str = Field(
        default="memory",
        description="Permission cache backend: none, memory or redis"
    )
    PERMISSION_CACHE_TTL_SECONDS: int = Field(
        default=300,
        description="Upper bound on permission cache staleness; writes invalidate explicitly"
    )

    # Startup
    SEED_DEFAULTS_ON_STARTUP: bool = Field(
        default=True,
        description="Seed permissions, system roles and global settings at startup (idempotent)"
    )

    # JWT Authentication
    JWT_SECRET_KEY: str = Field(
        default="change-me-in-production-this-key-must-be-at-least-32-chars",
        description="JWT secret key"
    )
    JWT_ALGORITHM: str = Field(default="HS256", description="JWT algorithm")
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=30, description="JWT access token expiration")

    # Security
    CORS_ORIGINS: List[str] = Field(default=[], description="CORS allowed origins")

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from string or list"""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v if isinstance(v, list) else []

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment value"""
        allowed = ["development", "testing", "staging", "production"]
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level"""
        allowed = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @field_validator("PERMISSION_CACHE_BACKEND")
    @classmethod
    def validate_cache_backend(cls, v):
        allowed = ["none", "memory", "redis"]
        if v.lower() not in allowed:
            raise ValueError(f"Permission cache backend must be one of: {allowed}")
        return v.lower()

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "ignore",
    }


# Create settings instance
settings = Settings()

# Derived settings
DATABASE_CONFIG = {
    "pool_size": settings.DB_POOL_SIZE,
    "max_overflow": settings.DB_MAX_OVERFLOW,
    "pool_timeout": settings.DB_POOL_TIMEOUT,
    "pool_recycle": settings.DB_POOL_RECYCLE,
    "pool_pre_ping": True,
    "echo": settings.ENVIRONMENT == "development" and settings.DEBUG,
}
