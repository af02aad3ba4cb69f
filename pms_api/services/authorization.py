"""
Authorization helpers
Raise domain errors when the resolver denies; the resolver itself never raises.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from pms_api.core.exceptions import AppError, NotFoundError, PermissionDeniedError
from pms_api.core.permission_resolver import PermissionResolver
from pms_api.repositories.project import project_repository, task_repository

logger = structlog.get_logger()


async def require_permission(
    resolver: PermissionResolver,
    user_id: Any,
    permission: str,
    scope_id: Any = None,
) -> None:
    """
    Require a permission through RBAC only.

    Raises:
        PermissionDeniedError: if the resolver denies (including on store failure)
    """
    if not await resolver.has_permission(user_id, permission, scope_id):
        logger.warning(
            "Permission denied",
            user_id=str(user_id),
            permission=permission,
            scope_id=str(scope_id) if scope_id is not None else None,
        )
        raise PermissionDeniedError(f"Permission denied: {permission}", "PERMISSION_DENIED")


async def require_any_permission(
    resolver: PermissionResolver,
    user_id: Any,
    permissions: Iterable[str],
    scope_id: Any = None,
) -> None:
    permissions = list(permissions)
    if not await resolver.has_any_permission(user_id, permissions, scope_id):
        logger.warning("Permission denied", user_id=str(user_id), required_any=permissions)
        raise PermissionDeniedError(
            f"Permission denied: requires one of [{', '.join(permissions)}]",
            "PERMISSION_DENIED",
        )


async def verify_project_access(
    db: AsyncSession,
    resolver: PermissionResolver,
    user_id: Any,
    project_id: UUID,
    permission: str,
) -> None:
    """
    Verify the project exists and the permission is granted for it.

    Raises:
        NotFoundError: project does not exist
        PermissionDeniedError: permission denied for this project
    """
    project = await project_repository.get(db, project_id)
    if not project:
        raise NotFoundError(f"Project {project_id} not found")

    if not await resolver.has_permission(user_id, permission, project_id):
        raise PermissionDeniedError(
            f"You don't have permission to {permission} on this project",
            "PROJECT_ACCESS_DENIED",
        )


async def verify_task_access(
    db: AsyncSession,
    resolver: PermissionResolver,
    user_id: Any,
    task_id: UUID,
    permission: str,
) -> UUID:
    """
    Tasks are scoped to their project: the permission is checked against the
    task's project. Returns that project id.
    """
    project_id = await task_repository.get_project_id(db, task_id)
    if project_id is None:
        raise NotFoundError(f"Task {task_id} not found")

    if not await resolver.has_permission(user_id, permission, project_id):
        raise PermissionDeniedError(
            f"You don't have permission to {permission} on this task",
            "TASK_ACCESS_DENIED",
        )
    return project_id


async def verify_project_owner(db: AsyncSession, user_id: Any, project_id: UUID) -> None:
    project = await project_repository.get(db, project_id)
    if not project:
        raise NotFoundError(f"Project {project_id} not found")

    if project.created_by_id != user_id:
        raise PermissionDeniedError("You are not the owner of this project", "NOT_OWNER")


def authorization_error_payload(error: Optional[BaseException]) -> dict[str, Any]:
    """Map an authorization failure to ``{error, code, status, success}``"""
    if isinstance(error, AppError):
        return error.to_payload()

    logger.error("Unknown authorization error", error=str(error))
    return {
        "error": "Authorization failed",
        "code": "AUTHORIZATION_ERROR",
        "status": 500,
        "success": False,
    }
