"""
Tests for RbacService
Seeding, role management and cache invalidation against SQLite
"""

from uuid import uuid4

import pytest
import pytest_asyncio

from pms_api.core.cache import InMemoryPermissionCache
from pms_api.core.exceptions import ConflictError, ForbiddenError, InvalidRequestError, NotFoundError
from pms_api.core.permission_resolver import PermissionResolver
from pms_api.core.rbac import DEFAULT_ROLES, KNOWN_PERMISSION_KEYS, SYSTEM_ADMIN_ROLE, ScopeType
from pms_api.repositories.rbac import SQLRoleAssignmentStore, role_repository
from pms_api.services.rbac import RbacService


@pytest.fixture
def cache():
    return InMemoryPermissionCache()


@pytest_asyncio.fixture
async def service(db_session, cache):
    service = RbacService(cache=cache)
    await service.initialize_rbac(db_session)
    return service


@pytest.fixture
def resolver(db_session, cache):
    return PermissionResolver(SQLRoleAssignmentStore(db_session), cache)


async def _role(db_session, name):
    return await role_repository.get_by_name(db_session, name)


class TestInitializeRbac:
    @pytest.mark.asyncio
    async def test_seeds_registry_and_system_roles(self, db_session):
        result = await RbacService(cache=InMemoryPermissionCache()).initialize_rbac(db_session)

        assert result == {"permissions_created": len(KNOWN_PERMISSION_KEYS), "roles_created": len(DEFAULT_ROLES)}
        admin = await _role(db_session, SYSTEM_ADMIN_ROLE)
        assert admin.is_system_role
        assert set(admin.permission_keys) == KNOWN_PERMISSION_KEYS

    @pytest.mark.asyncio
    async def test_is_idempotent(self, db_session, service):
        result = await service.initialize_rbac(db_session)

        assert result == {"permissions_created": 0, "roles_created": 0}
        assert len(await service.list_roles(db_session)) == len(DEFAULT_ROLES)


class TestRoles:
    @pytest.mark.asyncio
    async def test_create_role(self, db_session, service):
        role = await service.create_role(
            db_session, name="Auditor", description="Read-only", permission_keys=["log.view", "report.view"]
        )

        assert role.is_system_role is False
        assert role.permission_keys == ["log.view", "report.view"]

    @pytest.mark.asyncio
    async def test_create_role_rejects_unknown_keys(self, db_session, service):
        with pytest.raises(InvalidRequestError) as exc_info:
            await service.create_role(db_session, name="Broken", permission_keys=["project.teleport"])

        assert exc_info.value.code == "UNKNOWN_PERMISSION"

    @pytest.mark.asyncio
    async def test_create_role_rejects_duplicate_name(self, db_session, service):
        with pytest.raises(ConflictError):
            await service.create_role(db_session, name="Developer")

    @pytest.mark.asyncio
    async def test_system_admin_is_immutable(self, db_session, service):
        admin = await _role(db_session, SYSTEM_ADMIN_ROLE)

        with pytest.raises(ForbiddenError) as exc_info:
            await service.update_role(db_session, admin.id, permission_keys=["task.read"])

        assert exc_info.value.code == "SYSTEM_ROLE_IMMUTABLE"

    @pytest.mark.asyncio
    async def test_system_roles_cannot_be_deleted(self, db_session, service):
        developer = await _role(db_session, "Developer")

        with pytest.raises(ForbiddenError):
            await service.delete_role(db_session, developer.id)

    @pytest.mark.asyncio
    async def test_assigned_role_cannot_be_deleted(self, db_session, service, user):
        role = await service.create_role(db_session, name="Auditor", permission_keys=["log.view"])
        await service.assign_role(db_session, user_id=user.id, role_id=role.id)

        with pytest.raises(ConflictError) as exc_info:
            await service.delete_role(db_session, role.id)

        assert exc_info.value.code == "ROLE_IN_USE"

    @pytest.mark.asyncio
    async def test_delete_unassigned_custom_role(self, db_session, service):
        role = await service.create_role(db_session, name="Auditor", permission_keys=["log.view"])

        await service.delete_role(db_session, role.id)

        with pytest.raises(NotFoundError):
            await service.get_role(db_session, role.id)


class TestAssignments:
    @pytest.mark.asyncio
    async def test_assignment_is_visible_to_the_next_check(self, db_session, service, resolver, user):
        developer = await _role(db_session, "Developer")
        assert not await resolver.has_permission(user.id, "task.update")

        await service.assign_role(db_session, user_id=user.id, role_id=developer.id)

        assert await resolver.has_permission(user.id, "task.update")

    @pytest.mark.asyncio
    async def test_project_assignment_is_scoped(self, db_session, service, resolver, user, project):
        manager = await _role(db_session, "Project Manager")

        await service.assign_role(
            db_session,
            user_id=user.id,
            role_id=manager.id,
            scope_type=ScopeType.PROJECT,
            scope_id=project.id,
        )

        assert await resolver.has_permission(user.id, "project.update", project.id)
        assert not await resolver.has_permission(user.id, "project.update", uuid4())
        assert not await resolver.has_permission(user.id, "project.update")

    @pytest.mark.asyncio
    async def test_project_assignment_requires_scope_id(self, db_session, service, user):
        manager = await _role(db_session, "Project Manager")

        with pytest.raises(InvalidRequestError):
            await service.assign_role(db_session, user_id=user.id, role_id=manager.id, scope_type="project")

    @pytest.mark.asyncio
    async def test_duplicate_assignment_conflicts(self, db_session, service, user):
        developer = await _role(db_session, "Developer")
        await service.assign_role(db_session, user_id=user.id, role_id=developer.id)

        with pytest.raises(ConflictError):
            await service.assign_role(db_session, user_id=user.id, role_id=developer.id)

    @pytest.mark.asyncio
    async def test_omitted_scope_is_the_global_scope(self, db_session, service, user):
        developer = await _role(db_session, "Developer")
        assignment = await service.assign_role(db_session, user_id=user.id, role_id=developer.id)

        assert assignment.scope_type == "global"
        with pytest.raises(ConflictError):
            await service.assign_role(db_session, user_id=user.id, role_id=developer.id, scope_type="global")

    @pytest.mark.asyncio
    async def test_global_removal_matches_an_unscoped_assignment(self, db_session, service, resolver, user):
        developer = await _role(db_session, "Developer")
        await service.assign_role(db_session, user_id=user.id, role_id=developer.id)

        await service.remove_role(db_session, user_id=user.id, role_id=developer.id, scope_type=ScopeType.GLOBAL)

        assert await service.list_user_roles(db_session, user.id) == []
        assert not await resolver.has_permission(user.id, "task.update")

    @pytest.mark.asyncio
    async def test_assign_to_unknown_user(self, db_session, service):
        developer = await _role(db_session, "Developer")

        with pytest.raises(NotFoundError):
            await service.assign_role(db_session, user_id=uuid4(), role_id=developer.id)

    @pytest.mark.asyncio
    async def test_removal_is_visible_to_the_next_check(self, db_session, service, resolver, user):
        developer = await _role(db_session, "Developer")
        await service.assign_role(db_session, user_id=user.id, role_id=developer.id)
        assert await resolver.has_permission(user.id, "task.update")

        await service.remove_role(db_session, user_id=user.id, role_id=developer.id)

        assert not await resolver.has_permission(user.id, "task.update")

    @pytest.mark.asyncio
    async def test_remove_missing_assignment(self, db_session, service, user):
        developer = await _role(db_session, "Developer")

        with pytest.raises(NotFoundError):
            await service.remove_role(db_session, user_id=user.id, role_id=developer.id)

    @pytest.mark.asyncio
    async def test_role_update_reaches_every_holder(self, db_session, service, resolver, user, other_user, project):
        role = await service.create_role(db_session, name="Auditor", permission_keys=["log.view"])
        await service.assign_role(db_session, user_id=user.id, role_id=role.id)
        await service.assign_role(
            db_session, user_id=other_user.id, role_id=role.id, scope_type="project", scope_id=project.id
        )
        assert not await resolver.has_permission(user.id, "report.view")
        assert not await resolver.has_permission(other_user.id, "report.view", project.id)

        await service.update_role(db_session, role.id, permission_keys=["log.view", "report.view"])

        assert await resolver.has_permission(user.id, "report.view")
        assert await resolver.has_permission(other_user.id, "report.view", project.id)

    @pytest.mark.asyncio
    async def test_list_user_roles(self, db_session, service, user):
        developer = await _role(db_session, "Developer")
        await service.assign_role(db_session, user_id=user.id, role_id=developer.id)

        assignments = await service.list_user_roles(db_session, user.id)

        assert [a.role.name for a in assignments] == ["Developer"]
