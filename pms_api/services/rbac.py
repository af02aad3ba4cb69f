"""
RBAC Service
Every role and assignment mutation goes through here so the permission cache
is invalidated, after the commit, before the caller sees success.
"""

from enum import Enum
from typing import Any, Iterable, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from pms_api.core.cache import PermissionCache, permission_cache
from pms_api.core.exceptions import ConflictError, ForbiddenError, InvalidRequestError, NotFoundError
from pms_api.core.rbac import (
    DEFAULT_ROLES,
    SYSTEM_ADMIN_ROLE,
    ScopeType,
    permission_definitions,
    validate_permission_keys,
)
from pms_api.models.rbac import Permission, Role, UserRole
from pms_api.repositories.rbac import permission_repository, role_repository, user_role_repository
from pms_api.repositories.user import user_repository

logger = structlog.get_logger()


def _normalize_scope(scope_type: Any, scope_id: Optional[UUID]) -> tuple[str, Optional[UUID]]:
    """An omitted scope type is the global scope; both spellings name one assignment"""
    if isinstance(scope_type, Enum):
        scope_type = scope_type.value
    if scope_type is None:
        scope_type = ScopeType.GLOBAL.value
    if scope_type not in (ScopeType.GLOBAL.value, ScopeType.PROJECT.value):
        raise InvalidRequestError(f"Unknown scope type '{scope_type}'", "INVALID_SCOPE")
    if scope_type == ScopeType.PROJECT.value and scope_id is None:
        raise InvalidRequestError("Project-scoped assignments require a scope_id", "INVALID_SCOPE")
    if scope_type != ScopeType.PROJECT.value and scope_id is not None:
        raise InvalidRequestError("scope_id is only valid for project-scoped assignments", "INVALID_SCOPE")
    return scope_type, scope_id


class RbacService:
    """Role, permission and assignment management with cache invalidation"""

    def __init__(self, cache: Optional[PermissionCache] = None):
        self.cache = cache if cache is not None else permission_cache

    # ==================== Reads ====================

    async def list_permissions(self, db: AsyncSession) -> List[Permission]:
        return await permission_repository.list_all(db)

    async def list_roles(self, db: AsyncSession) -> List[Role]:
        return await role_repository.list_roles(db)

    async def get_role(self, db: AsyncSession, role_id: UUID) -> Role:
        role = await role_repository.get(db, role_id)
        if not role:
            raise NotFoundError(f"Role {role_id} not found", "ROLE_NOT_FOUND")
        return role

    async def list_user_roles(self, db: AsyncSession, user_id: UUID) -> List[UserRole]:
        return await user_role_repository.list_for_user(db, user_id)

    # ==================== Roles ====================

    async def _resolve_permissions(self, db: AsyncSession, keys: Iterable[str]) -> List[Permission]:
        try:
            keys = validate_permission_keys(keys)
        except ValueError as e:
            raise InvalidRequestError(str(e), "UNKNOWN_PERMISSION")

        permissions = await permission_repository.get_by_keys(db, keys)
        missing = set(keys) - {permission.key for permission in permissions}
        if missing:
            # Registered in code but not seeded yet
            raise NotFoundError(
                f"Permissions not initialized: {', '.join(sorted(missing))}",
                "PERMISSION_NOT_FOUND",
            )
        return sorted(permissions, key=lambda permission: permission.key)

    async def create_role(
        self,
        db: AsyncSession,
        *,
        name: str,
        description: Optional[str] = None,
        permission_keys: Iterable[str] = (),
    ) -> Role:
        if await role_repository.get_by_name(db, name):
            raise ConflictError(f"Role '{name}' already exists", "ROLE_EXISTS")

        permissions = await self._resolve_permissions(db, permission_keys)
        role = Role(name=name, description=description, is_system_role=False, permissions=permissions)
        db.add(role)
        await db.commit()
        await db.refresh(role)

        # Nobody holds a new role; nothing to invalidate
        logger.info("Role created", role_id=str(role.id), name=name, permissions=len(permissions))
        return role

    async def update_role(
        self,
        db: AsyncSession,
        role_id: UUID,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        permission_keys: Optional[Iterable[str]] = None,
    ) -> Role:
        role = await self.get_role(db, role_id)
        if role.is_system_role and role.name == SYSTEM_ADMIN_ROLE:
            raise ForbiddenError("The System Admin role cannot be modified", "SYSTEM_ROLE_IMMUTABLE")

        if name is not None and name != role.name:
            if await role_repository.get_by_name(db, name, exclude_id=role.id):
                raise ConflictError(f"Role '{name}' already exists", "ROLE_EXISTS")
            role.name = name
        if description is not None:
            role.description = description
        if permission_keys is not None:
            role.permissions = await self._resolve_permissions(db, permission_keys)

        holders = await role_repository.get_holders(db, role.id)
        await db.commit()
        await db.refresh(role)

        await self._invalidate_holders(holders)
        logger.info("Role updated", role_id=str(role.id), name=role.name, holders=len(holders))
        return role

    async def delete_role(self, db: AsyncSession, role_id: UUID) -> None:
        role = await self.get_role(db, role_id)
        if role.is_system_role:
            raise ForbiddenError("System roles cannot be deleted", "SYSTEM_ROLE_PROTECTED")

        in_use = await role_repository.count_assignments(db, role.id)
        if in_use:
            raise ConflictError(
                f"Role '{role.name}' is assigned to {in_use} user(s) and cannot be deleted",
                "ROLE_IN_USE",
            )

        await db.delete(role)
        await db.commit()
        logger.info("Role deleted", role_id=str(role_id), name=role.name)

    # ==================== Assignments ====================

    async def assign_role(
        self,
        db: AsyncSession,
        *,
        user_id: UUID,
        role_id: UUID,
        scope_type: Any = None,
        scope_id: Optional[UUID] = None,
    ) -> UserRole:
        scope_type, scope_id = _normalize_scope(scope_type, scope_id)

        if not await user_repository.get(db, user_id):
            raise NotFoundError(f"User {user_id} not found", "USER_NOT_FOUND")
        role = await self.get_role(db, role_id)

        if await user_role_repository.find_assignment(db, user_id, role_id, scope_type, scope_id):
            raise ConflictError(f"User already has role '{role.name}' in this scope", "ROLE_ALREADY_ASSIGNED")

        assignment = await user_role_repository.create(
            db,
            obj_in_data={
                "user_id": user_id,
                "role_id": role_id,
                "scope_type": scope_type,
                "scope_id": scope_id,
            },
        )

        await self.cache.invalidate(user_id, scope_id)
        logger.info(
            "Role assigned",
            user_id=str(user_id),
            role=role.name,
            scope_type=scope_type,
            scope_id=str(scope_id) if scope_id else None,
        )
        return assignment

    async def remove_role(
        self,
        db: AsyncSession,
        *,
        user_id: UUID,
        role_id: UUID,
        scope_type: Any = None,
        scope_id: Optional[UUID] = None,
    ) -> None:
        scope_type, scope_id = _normalize_scope(scope_type, scope_id)

        assignment = await user_role_repository.find_assignment(db, user_id, role_id, scope_type, scope_id)
        if not assignment:
            raise NotFoundError("Role assignment not found", "ASSIGNMENT_NOT_FOUND")

        await user_role_repository.delete(db, db_obj=assignment, soft_delete=False)

        await self.cache.invalidate(user_id, scope_id)
        logger.info(
            "Role removed",
            user_id=str(user_id),
            role_id=str(role_id),
            scope_type=scope_type,
            scope_id=str(scope_id) if scope_id else None,
        )

    async def _invalidate_holders(self, holders: Iterable[tuple[UUID, Optional[UUID]]]) -> None:
        for user_id, scope_id in holders:
            await self.cache.invalidate(user_id, scope_id)

    # ==================== Seeding ====================

    async def initialize_rbac(self, db: AsyncSession) -> dict[str, int]:
        """
        Seed registered permissions and the default system roles.

        Idempotent: existing permissions and roles are left untouched.
        """
        existing = {permission.key: permission for permission in await permission_repository.list_all(db)}
        created_permissions = 0
        for definition in permission_definitions():
            if definition.key in existing:
                continue
            permission = Permission(
                key=definition.key,
                name=definition.name,
                module=definition.module,
                category=definition.category,
            )
            db.add(permission)
            existing[definition.key] = permission
            created_permissions += 1

        created_roles = 0
        for role_def in DEFAULT_ROLES:
            if await role_repository.get_by_name(db, role_def.name):
                continue
            db.add(Role(
                name=role_def.name,
                description=role_def.description,
                is_system_role=True,
                permissions=[existing[key] for key in role_def.permissions],
            ))
            created_roles += 1

        await db.commit()
        logger.info("RBAC initialized", permissions_created=created_permissions, roles_created=created_roles)
        return {"permissions_created": created_permissions, "roles_created": created_roles}


rbac_service = RbacService()
