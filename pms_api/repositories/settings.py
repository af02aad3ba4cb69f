"""
Settings Repository
Database operations for the three settings layers and the change log
"""

from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pms_api.core.setting_defaults import SettingScope
from pms_api.core.settings_resolver import SettingsStore, StoredSetting
from pms_api.models.settings import ProjectSetting, SettingsChangeLog, SystemSetting, UserSetting

logger = structlog.get_logger()


class SettingsRepository:
    """
    Category lookups match the row whose key equals the category; finer keys
    (e.g. ``taskView.defaultSort``) are stored but never picked by resolution.
    """

    async def get_system_setting(self, db: AsyncSession, key: str) -> Optional[SystemSetting]:
        result = await db.execute(select(SystemSetting).where(SystemSetting.key == key))
        return result.scalar_one_or_none()

    async def get_project_setting(self, db: AsyncSession, project_id: UUID, key: str) -> Optional[ProjectSetting]:
        result = await db.execute(
            select(ProjectSetting).where(ProjectSetting.project_id == project_id, ProjectSetting.key == key)
        )
        return result.scalar_one_or_none()

    async def get_user_setting(self, db: AsyncSession, user_id: UUID, key: str) -> Optional[UserSetting]:
        result = await db.execute(
            select(UserSetting).where(UserSetting.user_id == user_id, UserSetting.key == key)
        )
        return result.scalar_one_or_none()

    async def find_setting(
        self,
        db: AsyncSession,
        scope: SettingScope,
        owner_id: Any,
        category: str,
    ) -> Optional[StoredSetting]:
        if scope == SettingScope.USER:
            row = await self.get_user_setting(db, owner_id, category)
            return StoredSetting(value=row.value) if row else None
        if scope == SettingScope.PROJECT:
            row = await self.get_project_setting(db, owner_id, category)
            return StoredSetting(value=row.value, enabled=row.enabled) if row else None
        row = await self.get_system_setting(db, category)
        return StoredSetting(value=row.value) if row else None

    async def list_system_settings(self, db: AsyncSession) -> list[SystemSetting]:
        result = await db.execute(select(SystemSetting).order_by(SystemSetting.category, SystemSetting.key))
        return list(result.scalars().all())

    async def list_project_settings(self, db: AsyncSession, project_id: UUID) -> list[ProjectSetting]:
        result = await db.execute(
            select(ProjectSetting)
            .where(ProjectSetting.project_id == project_id)
            .order_by(ProjectSetting.category, ProjectSetting.key)
        )
        return list(result.scalars().all())

    async def list_user_settings(self, db: AsyncSession, user_id: UUID) -> list[UserSetting]:
        result = await db.execute(
            select(UserSetting).where(UserSetting.user_id == user_id).order_by(UserSetting.category, UserSetting.key)
        )
        return list(result.scalars().all())

    async def add_change_log(
        self,
        db: AsyncSession,
        *,
        scope: SettingScope,
        owner_id: Optional[UUID],
        setting_key: str,
        category: str,
        old_value: Any,
        new_value: Any,
        changed_by: Optional[UUID],
        reason: Optional[str] = None,
    ) -> SettingsChangeLog:
        entry = SettingsChangeLog(
            scope=scope.value,
            owner_id=owner_id,
            setting_key=setting_key,
            category=category,
            old_value=old_value,
            new_value=new_value,
            reason=reason,
            changed_by=changed_by,
        )
        db.add(entry)
        await db.flush()
        logger.info(
            "Settings change logged",
            scope=scope.value,
            owner_id=str(owner_id) if owner_id else None,
            key=setting_key,
        )
        return entry

    async def list_change_log(
        self,
        db: AsyncSession,
        *,
        scope: SettingScope,
        owner_id: Optional[UUID] = None,
        setting_key: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[list[SettingsChangeLog], int]:
        query = select(SettingsChangeLog).where(SettingsChangeLog.scope == scope.value)
        if owner_id is not None:
            query = query.where(SettingsChangeLog.owner_id == owner_id)
        if setting_key:
            query = query.where(SettingsChangeLog.setting_key == setting_key)

        count_query = select(func.count()).select_from(query.subquery())
        total = (await db.execute(count_query)).scalar() or 0

        query = query.order_by(SettingsChangeLog.created_at.desc()).offset(skip).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all()), total


settings_repository = SettingsRepository()


class SQLSettingsStore(SettingsStore):
    """SettingsStore bound to one request's session"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_setting(self, scope: SettingScope, owner_id: Any, category: str) -> Optional[StoredSetting]:
        return await settings_repository.find_setting(self.db, scope, owner_id, category)
