"""
Settings Service
Resolved reads and logged writes for user, project and global settings
"""

import copy
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from pms_api.core.exceptions import NotFoundError
from pms_api.core.setting_defaults import (
    GLOBAL_ONLY_CATEGORIES,
    PROJECT_CATEGORIES,
    SETTING_DESCRIPTIONS,
    SYSTEM_DEFAULTS,
    USER_CATEGORIES,
    SettingScope,
    category_from_key,
)
from pms_api.core.settings_resolver import ResolvedSetting, SettingsResolver
from pms_api.models.settings import ProjectSetting, SettingsChangeLog, SystemSetting, UserSetting
from pms_api.repositories.project import project_repository
from pms_api.repositories.settings import SQLSettingsStore, settings_repository
from pms_api.repositories.user import user_repository
from pms_api.schemas.settings import validate_setting_value

logger = structlog.get_logger()

RESET_TO_GLOBAL_REASON = "Reset to global default"


class SettingsService:
    """Service for layered settings management"""

    def __init__(self):
        self.repository = settings_repository

    def _resolver(self, db: AsyncSession) -> SettingsResolver:
        return SettingsResolver(SQLSettingsStore(db))

    # ==================== Resolved reads ====================

    async def get_resolved_user_settings(
        self,
        db: AsyncSession,
        user_id: UUID,
        project_id: Optional[UUID] = None,
        resolver: Optional[SettingsResolver] = None,
    ) -> Dict[str, ResolvedSetting]:
        """User-facing categories as seen by this user, optionally inside a project"""
        resolver = resolver or self._resolver(db)
        return await resolver.resolve_many(USER_CATEGORIES, user_id=user_id, project_id=project_id)

    async def get_resolved_project_settings(
        self,
        db: AsyncSession,
        project_id: UUID,
        resolver: Optional[SettingsResolver] = None,
    ) -> Dict[str, ResolvedSetting]:
        """Project categories with no user layer"""
        resolver = resolver or self._resolver(db)
        return await resolver.resolve_many(PROJECT_CATEGORIES, user_id=None, project_id=project_id)

    # ==================== User settings ====================

    async def update_user_setting(
        self,
        db: AsyncSession,
        *,
        user_id: UUID,
        key: str,
        value: Any,
        changed_by: Optional[UUID],
        reason: Optional[str] = None,
    ) -> UserSetting:
        category = category_from_key(key)
        validate_setting_value(category, key, value)
        if not await user_repository.get(db, user_id):
            raise NotFoundError(f"User {user_id} not found", "USER_NOT_FOUND")

        setting = await self.repository.get_user_setting(db, user_id, key)
        old_value = copy.deepcopy(setting.value) if setting else None
        if setting:
            setting.value = value
            setting.category = category
            setting.updated_by = changed_by
        else:
            setting = UserSetting(user_id=user_id, key=key, category=category, value=value, updated_by=changed_by)
            db.add(setting)

        await self.repository.add_change_log(
            db,
            scope=SettingScope.USER,
            owner_id=user_id,
            setting_key=key,
            category=category,
            old_value=old_value,
            new_value=value,
            changed_by=changed_by,
            reason=reason,
        )
        await db.commit()
        await db.refresh(setting)

        logger.info("User setting updated", user_id=str(user_id), key=key, category=category)
        return setting

    async def reset_user_setting(
        self,
        db: AsyncSession,
        *,
        user_id: UUID,
        key: str,
        changed_by: Optional[UUID],
    ) -> None:
        """Delete the user's value so resolution falls through to lower layers"""
        setting = await self.repository.get_user_setting(db, user_id, key)
        if not setting:
            raise NotFoundError(f"User setting '{key}' not found", "SETTING_NOT_FOUND")

        await self.repository.add_change_log(
            db,
            scope=SettingScope.USER,
            owner_id=user_id,
            setting_key=key,
            category=setting.category,
            old_value=setting.value,
            new_value=None,
            changed_by=changed_by,
            reason=RESET_TO_GLOBAL_REASON,
        )
        await db.delete(setting)
        await db.commit()

        logger.info("User setting reset", user_id=str(user_id), key=key)

    # ==================== Project settings ====================

    async def update_project_setting(
        self,
        db: AsyncSession,
        *,
        project_id: UUID,
        key: str,
        value: Any,
        changed_by: Optional[UUID],
        enabled: bool = True,
        reason: Optional[str] = None,
    ) -> ProjectSetting:
        category = key
        validate_setting_value(category, key, value)
        if not await project_repository.get(db, project_id):
            raise NotFoundError(f"Project {project_id} not found", "PROJECT_NOT_FOUND")

        setting = await self.repository.get_project_setting(db, project_id, key)
        old_value = copy.deepcopy(setting.value) if setting else None
        if setting:
            setting.value = value
            setting.enabled = enabled
            setting.updated_by = changed_by
        else:
            setting = ProjectSetting(
                project_id=project_id,
                key=key,
                category=category,
                value=value,
                enabled=enabled,
                updated_by=changed_by,
            )
            db.add(setting)

        await self.repository.add_change_log(
            db,
            scope=SettingScope.PROJECT,
            owner_id=project_id,
            setting_key=key,
            category=category,
            old_value=old_value,
            new_value=value,
            changed_by=changed_by,
            reason=reason,
        )
        await db.commit()
        await db.refresh(setting)

        logger.info("Project setting updated", project_id=str(project_id), key=key, enabled=enabled)
        return setting

    async def reset_project_setting(
        self,
        db: AsyncSession,
        *,
        project_id: UUID,
        key: str,
        changed_by: Optional[UUID],
    ) -> ProjectSetting:
        """Disable the override; the row is kept so it can be re-enabled"""
        setting = await self.repository.get_project_setting(db, project_id, key)
        if not setting:
            raise NotFoundError(f"Project setting '{key}' not found", "SETTING_NOT_FOUND")

        setting.enabled = False
        setting.updated_by = changed_by
        await self.repository.add_change_log(
            db,
            scope=SettingScope.PROJECT,
            owner_id=project_id,
            setting_key=key,
            category=setting.category,
            old_value=setting.value,
            new_value=None,
            changed_by=changed_by,
            reason=RESET_TO_GLOBAL_REASON,
        )
        await db.commit()
        await db.refresh(setting)

        logger.info("Project setting reset", project_id=str(project_id), key=key)
        return setting

    # ==================== Global settings ====================

    async def update_global_setting(
        self,
        db: AsyncSession,
        *,
        key: str,
        value: Any,
        changed_by: Optional[UUID],
        reason: Optional[str] = None,
        category: Optional[str] = None,
    ) -> SystemSetting:
        """
        Update a global default. A missing key is created only when its
        category is given.
        """
        setting = await self.repository.get_system_setting(db, key)
        if not setting and not category:
            raise NotFoundError(f"Global setting '{key}' not found", "SETTING_NOT_FOUND")

        category = setting.category if setting else category
        validate_setting_value(category, key, value)

        old_value = copy.deepcopy(setting.value) if setting else None
        if setting:
            setting.value = value
            setting.updated_by = changed_by
        else:
            setting = SystemSetting(
                key=key,
                category=category,
                value=value,
                description=SETTING_DESCRIPTIONS.get(category),
                updated_by=changed_by,
            )
            db.add(setting)

        await self.repository.add_change_log(
            db,
            scope=SettingScope.GLOBAL,
            owner_id=None,
            setting_key=key,
            category=category,
            old_value=old_value,
            new_value=value,
            changed_by=changed_by,
            reason=reason,
        )
        await db.commit()
        await db.refresh(setting)

        logger.info("Global setting updated", key=key, category=category)
        return setting

    async def initialize_default_settings(self, db: AsyncSession, changed_by: Optional[UUID] = None) -> int:
        """Seed global rows for system categories that have none; returns the number created"""
        created = 0
        for category in (*PROJECT_CATEGORIES, *GLOBAL_ONLY_CATEGORIES):
            if await self.repository.get_system_setting(db, category):
                continue
            db.add(SystemSetting(
                key=category,
                category=category,
                value=copy.deepcopy(SYSTEM_DEFAULTS[category]),
                description=SETTING_DESCRIPTIONS.get(category),
                updated_by=changed_by,
            ))
            created += 1

        await db.commit()
        logger.info("Default settings initialized", created=created)
        return created

    # ==================== Change log ====================

    async def get_change_log(
        self,
        db: AsyncSession,
        *,
        scope: SettingScope,
        owner_id: Optional[UUID] = None,
        setting_key: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> Tuple[List[SettingsChangeLog], int]:
        return await self.repository.list_change_log(
            db,
            scope=scope,
            owner_id=owner_id,
            setting_key=setting_key,
            skip=skip,
            limit=limit,
        )


settings_service = SettingsService()
