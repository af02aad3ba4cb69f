"""
Settings Endpoints
Resolved settings and per-layer writes
"""

from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from pms_api.core.database import get_db
from pms_api.core.deps import (
    get_current_user,
    get_permission_resolver,
    get_settings_resolver,
    require_permission,
)
from pms_api.core.permission_resolver import PermissionResolver
from pms_api.core.setting_defaults import SettingScope
from pms_api.core.settings_resolver import ResolvedSetting, SettingsResolver
from pms_api.models.user import User
from pms_api.schemas.base import PaginatedResponse, SuccessResponse
from pms_api.schemas.settings import (
    ChangeLogEntry,
    GlobalSettingUpdate,
    ProjectSettingUpdate,
    ResolvedSettingResponse,
    ResolvedSettingsResponse,
    StoredSettingResponse,
    UserSettingUpdate,
)
from pms_api.services.authorization import require_permission as check_permission
from pms_api.services.authorization import verify_project_access
from pms_api.services.settings import settings_service

logger = structlog.get_logger()
router = APIRouter()


def _resolved(settings: Dict[str, ResolvedSetting]) -> Dict[str, ResolvedSettingResponse]:
    return {category: ResolvedSettingResponse(**resolved.to_dict()) for category, resolved in settings.items()}


async def _require_self_or(
    resolver: PermissionResolver,
    current_user: User,
    user_id: UUID,
    permission: str,
) -> None:
    if current_user.id != user_id:
        await check_permission(resolver, current_user.id, permission)


# ==================== Resolved reads ====================


@router.get("/resolved", response_model=ResolvedSettingsResponse)
async def get_resolved_settings(
    project_id: Optional[UUID] = Query(None, description="Resolve inside this project's overrides"),
    current_user: User = Depends(get_current_user),
    resolver: SettingsResolver = Depends(get_settings_resolver),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Effective user-facing settings of the current user."""
    settings = await settings_service.get_resolved_user_settings(
        db, current_user.id, project_id, resolver=resolver
    )
    return ResolvedSettingsResponse(user_id=current_user.id, project_id=project_id, settings=_resolved(settings))


@router.get("/projects/{project_id}/resolved", response_model=ResolvedSettingsResponse)
async def get_resolved_project_settings(
    project_id: UUID,
    current_user: User = Depends(get_current_user),
    permissions: PermissionResolver = Depends(get_permission_resolver),
    resolver: SettingsResolver = Depends(get_settings_resolver),
    db: AsyncSession = Depends(get_db),
) -> Any:
    await verify_project_access(db, permissions, current_user.id, project_id, "settings.project.read")
    settings = await settings_service.get_resolved_project_settings(db, project_id, resolver=resolver)
    return ResolvedSettingsResponse(project_id=project_id, settings=_resolved(settings))


# ==================== User layer ====================


@router.put("/users/{user_id}/{key}", response_model=StoredSettingResponse)
async def update_user_setting(
    user_id: UUID,
    key: str,
    setting_in: UserSettingUpdate,
    current_user: User = Depends(get_current_user),
    permissions: PermissionResolver = Depends(get_permission_resolver),
    db: AsyncSession = Depends(get_db),
) -> Any:
    await _require_self_or(permissions, current_user, user_id, "settings.user.edit")
    return await settings_service.update_user_setting(
        db,
        user_id=user_id,
        key=key,
        value=setting_in.value,
        changed_by=current_user.id,
        reason=setting_in.reason,
    )


@router.delete("/users/{user_id}/{key}", response_model=SuccessResponse)
async def reset_user_setting(
    user_id: UUID,
    key: str,
    current_user: User = Depends(get_current_user),
    permissions: PermissionResolver = Depends(get_permission_resolver),
    db: AsyncSession = Depends(get_db),
) -> Any:
    await _require_self_or(permissions, current_user, user_id, "settings.user.edit")
    await settings_service.reset_user_setting(db, user_id=user_id, key=key, changed_by=current_user.id)
    return SuccessResponse(message="User setting reset", data={"key": key})


# ==================== Project layer ====================


@router.put("/projects/{project_id}/{key}", response_model=StoredSettingResponse)
async def update_project_setting(
    project_id: UUID,
    key: str,
    setting_in: ProjectSettingUpdate,
    current_user: User = Depends(require_permission("settings.project.edit", scope_param="project_id")),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await settings_service.update_project_setting(
        db,
        project_id=project_id,
        key=key,
        value=setting_in.value,
        enabled=setting_in.enabled,
        changed_by=current_user.id,
        reason=setting_in.reason,
    )


@router.delete("/projects/{project_id}/{key}", response_model=StoredSettingResponse)
async def reset_project_setting(
    project_id: UUID,
    key: str,
    current_user: User = Depends(require_permission("settings.project.edit", scope_param="project_id")),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Disable the project override; the value is kept for re-enabling."""
    return await settings_service.reset_project_setting(
        db, project_id=project_id, key=key, changed_by=current_user.id
    )


# ==================== Global layer ====================


@router.put("/global/{key}", response_model=StoredSettingResponse)
async def update_global_setting(
    key: str,
    setting_in: GlobalSettingUpdate,
    current_user: User = Depends(require_permission("settings.global.edit")),
    db: AsyncSession = Depends(get_db),
) -> Any:
    return await settings_service.update_global_setting(
        db,
        key=key,
        value=setting_in.value,
        changed_by=current_user.id,
        reason=setting_in.reason,
        category=setting_in.category,
    )


# ==================== Change log ====================


@router.get("/change-log", response_model=PaginatedResponse)
async def get_change_log(
    scope: SettingScope = Query(SettingScope.USER),
    owner_id: Optional[UUID] = Query(None, description="User or project id; defaults to the current user for user scope"),
    setting_key: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    current_user: User = Depends(get_current_user),
    permissions: PermissionResolver = Depends(get_permission_resolver),
    db: AsyncSession = Depends(get_db),
) -> Any:
    """Settings history. Reading anything but your own user history requires log.view."""
    if scope == SettingScope.USER and owner_id is None:
        owner_id = current_user.id
    if not (scope == SettingScope.USER and owner_id == current_user.id):
        await check_permission(permissions, current_user.id, "log.view")

    entries, total = await settings_service.get_change_log(
        db, scope=scope, owner_id=owner_id, setting_key=setting_key, skip=skip, limit=limit
    )
    items = [ChangeLogEntry.model_validate(entry) for entry in entries]
    return PaginatedResponse.create(items=items, total=total, skip=skip, limit=limit)
