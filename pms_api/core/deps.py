"""
FastAPI Dependencies
Authentication, resolvers, and permission-check dependencies
"""

from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from pms_api.core.cache import permission_cache
from pms_api.core.database import get_db
from pms_api.core.exceptions import PermissionDeniedError
from pms_api.core.permission_resolver import PermissionResolver
from pms_api.core.security import verify_token
from pms_api.core.settings_resolver import SettingsResolver
from pms_api.models.user import User
from pms_api.repositories.rbac import SQLRoleAssignmentStore
from pms_api.repositories.settings import SQLSettingsStore
from pms_api.repositories.user import user_repository

logger = structlog.get_logger()

# Security scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security)
) -> User:
    """
    Get current authenticated user from JWT token

    Raises:
        HTTPException: 401 if the token is missing or invalid, or the user
            is unknown or inactive
    """
    if not credentials:
        logger.warning("Missing authentication credentials")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    subject = verify_token(credentials.credentials, token_type="access")
    try:
        user_id = UUID(subject)
    except ValueError:
        logger.warning("Token subject is not a user id", subject=subject)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await user_repository.get_active(db, user_id)
    if not user:
        logger.warning("User not found or inactive", user_id=subject)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )

    structlog.contextvars.bind_contextvars(user_id=subject)
    logger.debug("User authenticated successfully", user_id=subject)
    return user


def get_permission_resolver(db: AsyncSession = Depends(get_db)) -> PermissionResolver:
    return PermissionResolver(SQLRoleAssignmentStore(db), permission_cache)


def get_settings_resolver(db: AsyncSession = Depends(get_db)) -> SettingsResolver:
    return SettingsResolver(SQLSettingsStore(db))


def require_permission(permission: str, scope_param: Optional[str] = None):
    """
    Dependency factory for RBAC permission checks

    Args:
        permission: Required permission key
        scope_param: Name of the path parameter holding the project id the
            check is scoped to; None checks unscoped and global grants only

    Returns:
        Dependency function returning the current user
    """
    async def permission_checker(
        request: Request,
        current_user: User = Depends(get_current_user),
        resolver: PermissionResolver = Depends(get_permission_resolver),
    ) -> User:
        scope_id = None
        if scope_param:
            raw = request.path_params.get(scope_param)
            try:
                scope_id = UUID(str(raw)) if raw is not None else None
            except ValueError:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail=f"Invalid {scope_param}",
                )

        if not await resolver.has_permission(current_user.id, permission, scope_id):
            logger.warning(
                "User lacks required permission",
                user_id=str(current_user.id),
                required=permission,
                scope_id=str(scope_id) if scope_id else None,
            )
            raise PermissionDeniedError(f"Permission required: {permission}", "PERMISSION_DENIED")

        logger.debug("Permission check passed", user_id=str(current_user.id), permission=permission)
        return current_user

    return permission_checker
