"""
RBAC Repository
Database operations for permissions, roles and role assignments
"""

from __future__ import annotations

from typing import Any, Optional, Sequence
from uuid import UUID

import structlog
from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from pms_api.core.permission_resolver import RoleAssignmentStore, ScopeFilter
from pms_api.models.rbac import Permission, Role, UserRole
from pms_api.repositories.base import CRUDBase

logger = structlog.get_logger()


class PermissionRepository(CRUDBase[Permission]):
    async def get_by_key(self, db: AsyncSession, key: str) -> Optional[Permission]:
        result = await db.execute(select(Permission).where(Permission.key == key))
        return result.scalar_one_or_none()

    async def get_by_keys(self, db: AsyncSession, keys: Sequence[str]) -> list[Permission]:
        if not keys:
            return []
        result = await db.execute(select(Permission).where(Permission.key.in_(list(keys))))
        return list(result.scalars().all())

    async def list_all(self, db: AsyncSession) -> list[Permission]:
        result = await db.execute(select(Permission).order_by(Permission.module, Permission.key))
        return list(result.scalars().all())


class RoleRepository(CRUDBase[Role]):
    async def get_by_name(self, db: AsyncSession, name: str, exclude_id: Optional[UUID] = None) -> Optional[Role]:
        query = select(Role).where(Role.name == name)
        if exclude_id:
            query = query.where(Role.id != exclude_id)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def list_roles(self, db: AsyncSession) -> list[Role]:
        result = await db.execute(select(Role).order_by(Role.is_system_role.desc(), Role.name))
        return list(result.scalars().all())

    async def count_assignments(self, db: AsyncSession, role_id: UUID) -> int:
        result = await db.execute(select(func.count(UserRole.id)).where(UserRole.role_id == role_id))
        return result.scalar() or 0

    async def get_holders(self, db: AsyncSession, role_id: UUID) -> list[tuple[UUID, Optional[UUID]]]:
        """(user_id, scope_id) pairs holding the role, for cache invalidation"""
        result = await db.execute(
            select(UserRole.user_id, UserRole.scope_id).where(UserRole.role_id == role_id).distinct()
        )
        return [(row.user_id, row.scope_id) for row in result.all()]


class UserRoleRepository(CRUDBase[UserRole]):
    async def find_assignment(
        self,
        db: AsyncSession,
        user_id: UUID,
        role_id: UUID,
        scope_type: str,
        scope_id: Optional[UUID],
    ) -> Optional[UserRole]:
        query = select(UserRole).where(
            UserRole.user_id == user_id,
            UserRole.role_id == role_id,
            UserRole.scope_type == scope_type,
        )
        query = query.where(UserRole.scope_id.is_(None) if scope_id is None else UserRole.scope_id == scope_id)
        result = await db.execute(query)
        return result.scalar_one_or_none()

    async def list_for_user(self, db: AsyncSession, user_id: UUID) -> list[UserRole]:
        result = await db.execute(
            select(UserRole)
            .options(selectinload(UserRole.role))
            .where(UserRole.user_id == user_id)
            .order_by(UserRole.created_at)
        )
        return list(result.scalars().all())

    async def find_role_assignments(self, db: AsyncSession, user_id: Any, scope_filter: ScopeFilter) -> list[UserRole]:
        conditions = [UserRole.scope_type.is_(None), UserRole.scope_type == "global"]
        if scope_filter.includes_project:
            conditions.append(
                and_(UserRole.scope_type == "project", UserRole.scope_id == scope_filter.project_id)
            )

        result = await db.execute(
            select(UserRole)
            .options(selectinload(UserRole.role).selectinload(Role.permissions))
            .where(UserRole.user_id == user_id, or_(*conditions))
        )
        return list(result.scalars().all())


permission_repository = PermissionRepository(Permission)
role_repository = RoleRepository(Role)
user_role_repository = UserRoleRepository(UserRole)


class SQLRoleAssignmentStore(RoleAssignmentStore):
    """RoleAssignmentStore bound to one request's session"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_role_assignments(self, user_id: Any, scope_filter: ScopeFilter) -> list[UserRole]:
        return await user_role_repository.find_role_assignments(self.db, user_id, scope_filter)
