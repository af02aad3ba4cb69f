"""
RBAC Endpoints
Roles, permissions and role assignments
"""

from typing import Any, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from pms_api.core.database import get_db
from pms_api.core.deps import get_current_user, get_permission_resolver, require_permission
from pms_api.core.permission_resolver import PermissionResolver
from pms_api.models.rbac import Role, UserRole
from pms_api.models.user import User
from pms_api.schemas.base import SuccessResponse
from pms_api.schemas.rbac import (
    PermissionResponse,
    RoleAssignmentRequest,
    RoleAssignmentResponse,
    RoleCreate,
    RoleResponse,
    RoleUpdate,
    UserPermissionsResponse,
)
from pms_api.services.rbac import rbac_service

logger = structlog.get_logger()
router = APIRouter()


def _role_response(role: Role) -> RoleResponse:
    return RoleResponse(
        id=role.id,
        name=role.name,
        description=role.description,
        is_system_role=role.is_system_role,
        permission_keys=role.permission_keys,
        created_at=role.created_at,
        updated_at=role.updated_at,
    )


def _assignment_response(assignment: UserRole) -> RoleAssignmentResponse:
    return RoleAssignmentResponse(
        id=assignment.id,
        user_id=assignment.user_id,
        role_id=assignment.role_id,
        role_name=assignment.role.name,
        scope_type=assignment.scope_type,
        scope_id=assignment.scope_id,
        created_at=assignment.created_at,
        updated_at=assignment.updated_at,
    )


# ==================== Current user (before parameterized routes) ====================


@router.get("/me/permissions", response_model=UserPermissionsResponse)
async def get_my_permissions(
    project_id: Optional[UUID] = Query(None, description="Include grants scoped to this project"),
    current_user: User = Depends(get_current_user),
    resolver: PermissionResolver = Depends(get_permission_resolver),
) -> Any:
    """Effective permission keys of the current user."""
    permissions = await resolver.get_user_permissions(current_user.id, project_id)
    return UserPermissionsResponse(user_id=current_user.id, scope_id=project_id, permissions=permissions)


# ==================== Permissions ====================


@router.get("/permissions", response_model=List[PermissionResponse])
async def list_permissions(
    current_user: User = Depends(require_permission("role.read")),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await rbac_service.list_permissions(db)


# ==================== Roles ====================


@router.get("/roles", response_model=List[RoleResponse])
async def list_roles(
    current_user: User = Depends(require_permission("role.read")),
    db: AsyncSession = Depends(get_db),
) -> Any:
    roles = await rbac_service.list_roles(db)
    return [_role_response(role) for role in roles]


@router.post("/roles", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    role_in: RoleCreate,
    current_user: User = Depends(require_permission("role.create")),
    db: AsyncSession = Depends(get_db),
) -> Any:
    role = await rbac_service.create_role(
        db,
        name=role_in.name,
        description=role_in.description,
        permission_keys=role_in.permission_keys,
    )
    logger.info("Role created via API", role_id=str(role.id), by=str(current_user.id))
    return _role_response(role)


@router.get("/roles/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: UUID,
    current_user: User = Depends(require_permission("role.read")),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return _role_response(await rbac_service.get_role(db, role_id))


@router.patch("/roles/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: UUID,
    role_in: RoleUpdate,
    current_user: User = Depends(require_permission("role.update")),
    db: AsyncSession = Depends(get_db),
) -> Any:
    role = await rbac_service.update_role(
        db,
        role_id,
        name=role_in.name,
        description=role_in.description,
        permission_keys=role_in.permission_keys,
    )
    return _role_response(role)


@router.delete("/roles/{role_id}", response_model=SuccessResponse)
async def delete_role(
    role_id: UUID,
    current_user: User = Depends(require_permission("role.delete")),
    db: AsyncSession = Depends(get_db),
) -> Any:
    await rbac_service.delete_role(db, role_id)
    return SuccessResponse(message="Role deleted", data={"role_id": str(role_id)})


# ==================== Assignments ====================


@router.get("/users/{user_id}/roles", response_model=List[RoleAssignmentResponse])
async def list_user_roles(
    user_id: UUID,
    current_user: User = Depends(require_permission("role.read")),
    db: AsyncSession = Depends(get_db),
) -> Any:
    assignments = await rbac_service.list_user_roles(db, user_id)
    return [_assignment_response(a) for a in assignments]


@router.post(
    "/users/{user_id}/roles",
    response_model=List[RoleAssignmentResponse],
    status_code=status.HTTP_201_CREATED,
)
async def assign_role(
    user_id: UUID,
    assignment_in: RoleAssignmentRequest,
    current_user: User = Depends(require_permission("role.assign")),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Assign a role and return the user's assignments."""
    await rbac_service.assign_role(
        db,
        user_id=user_id,
        role_id=assignment_in.role_id,
        scope_type=assignment_in.scope_type,
        scope_id=assignment_in.scope_id,
    )
    assignments = await rbac_service.list_user_roles(db, user_id)
    return [_assignment_response(a) for a in assignments]


@router.delete("/users/{user_id}/roles", response_model=SuccessResponse)
async def remove_role(
    user_id: UUID,
    role_id: UUID = Query(...),
    scope_type: Optional[str] = Query(None),
    scope_id: Optional[UUID] = Query(None),
    current_user: User = Depends(require_permission("role.assign")),
    db: AsyncSession = Depends(get_db),
) -> Any:
    await rbac_service.remove_role(
        db,
        user_id=user_id,
        role_id=role_id,
        scope_type=scope_type,
        scope_id=scope_id,
    )
    return SuccessResponse(message="Role removed", data={"user_id": str(user_id), "role_id": str(role_id)})
