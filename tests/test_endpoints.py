"""
API tests
Full request path over httpx against an in-memory database
"""

from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from conftest import create_project, create_user
from pms_api.core.database import get_db
from pms_api.core.security import create_access_token
from pms_api.main import app
from pms_api.repositories.rbac import role_repository
from pms_api.services.rbac import RbacService


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(subject=user.id)}"}


@pytest_asyncio.fixture
async def rbac(db_session):
    service = RbacService()
    await service.initialize_rbac(db_session)
    return service


@pytest_asyncio.fixture
async def client(db_session):
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def admin(db_session, rbac):
    admin = await create_user(db_session, email="admin@example.com")
    role = await role_repository.get_by_name(db_session, "System Admin")
    await rbac.assign_role(db_session, user_id=admin.id, role_id=role.id)
    return admin


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        response = await client.get("/api/v1/rbac/me/permissions")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_user(self, client):
        headers = {"Authorization": f"Bearer {create_access_token(subject=uuid4())}"}

        response = await client.get("/api/v1/rbac/me/permissions", headers=headers)

        assert response.status_code == 401


class TestRbacEndpoints:
    @pytest.mark.asyncio
    async def test_my_permissions(self, client, db_session, rbac, user):
        developer = await role_repository.get_by_name(db_session, "Developer")
        await rbac.assign_role(db_session, user_id=user.id, role_id=developer.id)

        response = await client.get("/api/v1/rbac/me/permissions", headers=auth_headers(user))

        assert response.status_code == 200
        body = response.json()
        assert "task.update" in body["permissions"]
        assert body["permissions"] == sorted(body["permissions"])

    @pytest.mark.asyncio
    async def test_denied_without_permission(self, client, rbac, user):
        response = await client.post(
            "/api/v1/rbac/roles",
            json={"name": "Auditor", "permission_keys": ["log.view"]},
            headers=auth_headers(user),
        )

        assert response.status_code == 403
        assert response.json() == {
            "error": "Permission required: role.create",
            "code": "PERMISSION_DENIED",
            "status": 403,
            "success": False,
        }

    @pytest.mark.asyncio
    async def test_admin_manages_roles(self, client, admin, user):
        headers = auth_headers(admin)

        created = await client.post(
            "/api/v1/rbac/roles",
            json={"name": "Auditor", "permission_keys": ["log.view"]},
            headers=headers,
        )
        assert created.status_code == 201
        role_id = created.json()["id"]

        assigned = await client.post(
            f"/api/v1/rbac/users/{user.id}/roles",
            json={"role_id": role_id},
            headers=headers,
        )
        assert assigned.status_code == 201
        assert [a["role_name"] for a in assigned.json()] == ["Auditor"]

        mine = await client.get("/api/v1/rbac/me/permissions", headers=auth_headers(user))
        assert mine.json()["permissions"] == ["log.view"]

        in_use = await client.delete(f"/api/v1/rbac/roles/{role_id}", headers=headers)
        assert in_use.status_code == 409
        assert in_use.json()["code"] == "ROLE_IN_USE"

    @pytest.mark.asyncio
    async def test_unknown_permission_key(self, client, admin):
        response = await client.post(
            "/api/v1/rbac/roles",
            json={"name": "Broken", "permission_keys": ["project.teleport"]},
            headers=auth_headers(admin),
        )

        assert response.status_code == 422
        assert response.json()["code"] == "UNKNOWN_PERMISSION"

    @pytest.mark.asyncio
    async def test_list_permissions(self, client, admin):
        response = await client.get("/api/v1/rbac/permissions", headers=auth_headers(admin))

        assert response.status_code == 200
        assert "admin.access" in {p["key"] for p in response.json()}


class TestSettingsEndpoints:
    @pytest.mark.asyncio
    async def test_resolved_settings_default_to_system(self, client, user):
        response = await client.get("/api/v1/settings/resolved", headers=auth_headers(user))

        assert response.status_code == 200
        settings = response.json()["settings"]
        assert settings["taskView"]["source"] == "system"
        assert settings["taskView"]["enabled"] is False

    @pytest.mark.asyncio
    async def test_user_updates_own_setting(self, client, user):
        headers = auth_headers(user)

        response = await client.put(
            f"/api/v1/settings/users/{user.id}/taskView",
            json={"value": {"defaultView": "board"}},
            headers=headers,
        )
        assert response.status_code == 200

        resolved = await client.get("/api/v1/settings/resolved", headers=headers)
        assert resolved.json()["settings"]["taskView"] == {
            "value": {"defaultView": "board"},
            "source": "user",
            "enabled": True,
        }

    @pytest.mark.asyncio
    async def test_cannot_update_another_users_setting(self, client, rbac, user, other_user):
        response = await client.put(
            f"/api/v1/settings/users/{other_user.id}/taskView",
            json={"value": {"defaultView": "board"}},
            headers=auth_headers(user),
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_invalid_setting_value(self, client, user):
        response = await client.put(
            f"/api/v1/settings/users/{user.id}/notifications",
            json={"value": {"grouping": "whenever"}},
            headers=auth_headers(user),
        )

        assert response.status_code == 422
        assert response.json()["code"] == "INVALID_SETTING_VALUE"

    @pytest.mark.asyncio
    async def test_project_setting_needs_project_scoped_permission(self, client, db_session, rbac, user):
        project = await create_project(db_session, owner=user)
        other_project = await create_project(db_session, owner=user, name="Gemini")
        manager = await role_repository.get_by_name(db_session, "Project Manager")
        await rbac.assign_role(
            db_session, user_id=user.id, role_id=manager.id, scope_type="project", scope_id=project.id
        )
        body = {"value": {"autoBlockTasks": False}}

        allowed = await client.put(
            f"/api/v1/settings/projects/{project.id}/dependencies", json=body, headers=auth_headers(user)
        )
        denied = await client.put(
            f"/api/v1/settings/projects/{other_project.id}/dependencies", json=body, headers=auth_headers(user)
        )

        assert allowed.status_code == 200
        assert denied.status_code == 403

        resolved = await client.get(
            f"/api/v1/settings/projects/{project.id}/resolved", headers=auth_headers(user)
        )
        assert resolved.json()["settings"]["dependencies"]["source"] == "project"

    @pytest.mark.asyncio
    async def test_setting_for_unknown_project_is_not_found(self, client, admin):
        response = await client.put(
            f"/api/v1/settings/projects/{uuid4()}/dependencies",
            json={"value": {"autoBlockTasks": False}},
            headers=auth_headers(admin),
        )

        assert response.status_code == 404
        assert response.json()["code"] == "PROJECT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_setting_for_unknown_user_is_not_found(self, client, admin):
        response = await client.put(
            f"/api/v1/settings/users/{uuid4()}/taskView",
            json={"value": {"defaultView": "board"}},
            headers=auth_headers(admin),
        )

        assert response.status_code == 404
        assert response.json()["code"] == "USER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_global_setting_requires_permission(self, client, rbac, user, admin):
        body = {"value": {"autoBlockTasks": False}, "category": "dependencies"}

        denied = await client.put("/api/v1/settings/global/dependencies", json=body, headers=auth_headers(user))
        allowed = await client.put("/api/v1/settings/global/dependencies", json=body, headers=auth_headers(admin))

        assert denied.status_code == 403
        assert allowed.status_code == 200

    @pytest.mark.asyncio
    async def test_own_change_log(self, client, user):
        headers = auth_headers(user)
        await client.put(
            f"/api/v1/settings/users/{user.id}/workflow",
            json={"value": {"defaultLandingPage": "tasks"}, "reason": "Start on tasks"},
            headers=headers,
        )

        response = await client.get("/api/v1/settings/change-log", headers=headers)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["reason"] == "Start on tasks"

    @pytest.mark.asyncio
    async def test_global_change_log_requires_log_view(self, client, rbac, user):
        response = await client.get(
            "/api/v1/settings/change-log", params={"scope": "global"}, headers=auth_headers(user)
        )

        assert response.status_code == 403


class TestHealth:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
