"""
Permission resolution without role bypass.

``has_permission`` answers "do the user's role assignments grant this key in
this scope?" and nothing else: no admin or role-name shortcut is applied here.
Callers that want a legacy shortcut use ``has_permission_or_role`` so the
bypass is an explicit, auditable decision at the call site.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Protocol, Sequence

import structlog

from pms_api.core.cache import NullPermissionCache, PermissionCache

logger = structlog.get_logger()

LEGACY_BYPASS_ROLES: tuple[str, ...] = ("admin", "project_manager")


@dataclass(frozen=True)
class ScopeFilter:
    """
    Which assignments apply to a check.

    Always matches unscoped and global assignments; matches project
    assignments only for ``project_id`` and only when one is given.
    """
    project_id: Any = None

    @property
    def includes_project(self) -> bool:
        return self.project_id is not None

    def matches(self, scope_type: Optional[str], scope_id: Any) -> bool:
        if scope_type is None or scope_type == "global":
            return True
        return self.includes_project and scope_type == "project" and scope_id == self.project_id


class _PermissionLike(Protocol):
    key: str


class _RoleLike(Protocol):
    name: str
    permissions: Sequence[_PermissionLike]


class RoleAssignmentLike(Protocol):
    role: _RoleLike
    scope_type: Optional[str]
    scope_id: Any


class RoleAssignmentStore(ABC):
    """Read side of the role store"""

    @abstractmethod
    async def find_role_assignments(self, user_id: Any, scope_filter: ScopeFilter) -> Sequence[RoleAssignmentLike]:
        raise NotImplementedError


@dataclass(frozen=True)
class RoleGrant:
    role_name: str
    scope_type: Optional[str]
    scope_id: Any


class PermissionResolver:
    def __init__(self, store: RoleAssignmentStore, cache: Optional[PermissionCache] = None):
        self.store = store
        self.cache = cache if cache is not None else NullPermissionCache()

    async def get_user_permissions(self, user_id: Any, scope_id: Any = None) -> frozenset[str]:
        """
        Union of permission keys over every applicable assignment.

        Store errors propagate; boolean checks below convert them to a denial.
        """
        cached = await self.cache.get(user_id, scope_id)
        if cached is not None:
            return cached

        # Taken before the store read; an invalidation in between discards our write
        generation = await self.cache.generation(user_id)
        assignments = await self.store.find_role_assignments(user_id, ScopeFilter(project_id=scope_id))
        permissions = frozenset(
            permission.key
            for assignment in assignments
            for permission in assignment.role.permissions
        )

        if generation is not None:
            await self.cache.set(user_id, scope_id, permissions, generation)
        return permissions

    async def has_permission(self, user_id: Any, permission_key: str, scope_id: Any = None) -> bool:
        try:
            permissions = await self.get_user_permissions(user_id, scope_id)
        except Exception as e:
            # Fail closed: an incomplete check is a denial
            logger.error(
                "Permission check failed, denying",
                user_id=str(user_id),
                permission=permission_key,
                scope_id=str(scope_id) if scope_id is not None else None,
                error=str(e),
            )
            return False
        return permission_key in permissions

    async def has_any_permission(self, user_id: Any, permission_keys: Iterable[str], scope_id: Any = None) -> bool:
        try:
            permissions = await self.get_user_permissions(user_id, scope_id)
        except Exception as e:
            logger.error("Permission check failed, denying", user_id=str(user_id), error=str(e))
            return False
        return any(key in permissions for key in permission_keys)

    async def has_all_permissions(self, user_id: Any, permission_keys: Iterable[str], scope_id: Any = None) -> bool:
        try:
            permissions = await self.get_user_permissions(user_id, scope_id)
        except Exception as e:
            logger.error("Permission check failed, denying", user_id=str(user_id), error=str(e))
            return False
        return all(key in permissions for key in permission_keys)

    async def get_user_roles(self, user_id: Any, scope_id: Any = None) -> list[RoleGrant]:
        assignments = await self.store.find_role_assignments(user_id, ScopeFilter(project_id=scope_id))
        return [
            RoleGrant(role_name=a.role.name, scope_type=a.scope_type, scope_id=a.scope_id)
            for a in assignments
        ]

    async def has_role(self, user_id: Any, role_name: str, scope_id: Any = None) -> bool:
        try:
            roles = await self.get_user_roles(user_id, scope_id)
        except Exception as e:
            logger.error("Role check failed, denying", user_id=str(user_id), role=role_name, error=str(e))
            return False
        return any(grant.role_name == role_name for grant in roles)

    async def has_permission_or_role(
        self,
        user_id: Any,
        permission_key: str,
        legacy_role: Optional[str],
        allowed_legacy_roles: Iterable[str] = LEGACY_BYPASS_ROLES,
        scope_id: Any = None,
    ) -> bool:
        """Legacy shortcut: a coarse session role in ``allowed_legacy_roles`` grants everything"""
        if legacy_role and legacy_role in set(allowed_legacy_roles):
            logger.info(
                "Permission granted by legacy role bypass",
                user_id=str(user_id),
                permission=permission_key,
                legacy_role=legacy_role,
            )
            return True
        return await self.has_permission(user_id, permission_key, scope_id)
