"""
RBAC Schemas
Request/response models for roles, permissions and role assignments
"""

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from pms_api.core.rbac import ScopeType
from pms_api.schemas.base import BaseResponseSchema, BaseSchema


class PermissionResponse(BaseSchema):
    id: UUID
    key: str
    name: str
    module: str
    category: str


class RoleCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=100, description="Unique role name")
    description: Optional[str] = Field(None, max_length=500)
    permission_keys: List[str] = Field(default_factory=list, description="Permission keys granted by the role")


class RoleUpdate(BaseSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    permission_keys: Optional[List[str]] = Field(None, description="Replaces the role's permission set")


class RoleResponse(BaseResponseSchema):
    name: str
    description: Optional[str] = None
    is_system_role: bool
    permission_keys: List[str] = Field(default_factory=list)


class RoleAssignmentRequest(BaseModel):
    """Body for assigning or removing a role; scope_type None means global"""
    role_id: UUID
    scope_type: Optional[ScopeType] = None
    scope_id: Optional[UUID] = None

    @model_validator(mode="after")
    def check_scope(self):
        if self.scope_type == ScopeType.PROJECT and self.scope_id is None:
            raise ValueError("scope_id is required for project-scoped assignments")
        if self.scope_type != ScopeType.PROJECT and self.scope_id is not None:
            raise ValueError("scope_id is only valid for project-scoped assignments")
        return self


class RoleAssignmentResponse(BaseResponseSchema):
    user_id: UUID
    role_id: UUID
    role_name: str
    scope_type: Optional[str] = None
    scope_id: Optional[UUID] = None


class UserPermissionsResponse(BaseModel):
    user_id: UUID
    scope_id: Optional[UUID] = None
    permissions: List[str]

    @field_validator("permissions", mode="before")
    @classmethod
    def sort_permissions(cls, v):
        return sorted(v)
