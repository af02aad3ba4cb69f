"""
Base Pydantic Schemas
Common schemas and base classes for request/response models
"""

from datetime import datetime, timezone
from typing import Optional, Any, Dict, List
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict
from enum import Enum


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin(BaseModel):
    """Mixin for timestamp fields"""
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")


class BaseSchema(BaseModel):
    """Base schema with common configuration"""
    model_config = ConfigDict(
        from_attributes=True,
        validate_assignment=True,
        str_strip_whitespace=True,
        use_enum_values=True
    )


class BaseResponseSchema(BaseSchema, TimestampMixin):
    """Base schema for API responses"""
    id: UUID = Field(..., description="Unique identifier")


class PaginationParams(BaseModel):
    """Pagination parameters"""
    skip: int = Field(0, ge=0, description="Number of items to skip")
    limit: int = Field(50, ge=1, le=500, description="Maximum number of items to return")


class PaginatedResponse(BaseModel):
    """Paginated response wrapper"""
    items: List[Any] = Field(..., description="List of items")
    total: int = Field(..., description="Total number of items")
    skip: int = Field(..., description="Number of items skipped")
    limit: int = Field(..., description="Maximum number of items returned")
    has_next: bool = Field(..., description="Whether there are more items")
    has_prev: bool = Field(..., description="Whether there are previous items")

    @classmethod
    def create(
        cls,
        items: List[Any],
        total: int,
        skip: int,
        limit: int
    ) -> "PaginatedResponse":
        return cls(
            items=items,
            total=total,
            skip=skip,
            limit=limit,
            has_next=skip + len(items) < total,
            has_prev=skip > 0
        )


class ErrorResponse(BaseModel):
    """Error body rendered for domain errors"""
    error: str = Field(..., description="Error message")
    code: str = Field(..., description="Machine-readable error code")
    status: int = Field(..., description="HTTP status")
    success: bool = Field(False, description="Always false")


class SuccessResponse(BaseModel):
    """Success response schema"""
    message: str = Field(..., description="Success message")
    data: Optional[Dict[str, Any]] = Field(None, description="Additional data")
    timestamp: datetime = Field(default_factory=_utcnow, description="Response timestamp")


class HealthStatus(str, Enum):
    """Health status enumeration"""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


class HealthCheck(BaseModel):
    """Health check response"""
    status: HealthStatus = Field(..., description="Overall health status")
    service: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    timestamp: datetime = Field(default_factory=_utcnow, description="Check timestamp")
    checks: Dict[str, Any] = Field(default_factory=dict, description="Individual health checks")
