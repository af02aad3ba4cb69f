"""
Tests for the authorization helpers
"""

from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from pms_api.core.exceptions import NotFoundError, PermissionDeniedError, SettingsResolutionError
from pms_api.services import authorization
from pms_api.services.authorization import (
    authorization_error_payload,
    require_any_permission,
    require_permission,
    verify_project_access,
    verify_project_owner,
    verify_task_access,
)


USER = uuid4()
PROJECT = uuid4()
TASK = uuid4()


@pytest.fixture
def resolver():
    resolver = MagicMock()
    resolver.has_permission = AsyncMock(return_value=True)
    resolver.has_any_permission = AsyncMock(return_value=True)
    return resolver


@pytest.fixture
def mock_db():
    return AsyncMock()


@pytest.fixture
def project_repository(monkeypatch):
    repository = MagicMock()
    repository.get = AsyncMock(return_value=MagicMock(id=PROJECT, created_by_id=USER))
    monkeypatch.setattr(authorization, "project_repository", repository)
    return repository


@pytest.fixture
def task_repository(monkeypatch):
    repository = MagicMock()
    repository.get_project_id = AsyncMock(return_value=PROJECT)
    monkeypatch.setattr(authorization, "task_repository", repository)
    return repository


class TestRequirePermission:
    @pytest.mark.asyncio
    async def test_granted(self, resolver):
        await require_permission(resolver, USER, "task.read", PROJECT)
        resolver.has_permission.assert_awaited_once_with(USER, "task.read", PROJECT)

    @pytest.mark.asyncio
    async def test_denied(self, resolver):
        resolver.has_permission.return_value = False

        with pytest.raises(PermissionDeniedError) as exc_info:
            await require_permission(resolver, USER, "task.delete")

        assert exc_info.value.code == "PERMISSION_DENIED"
        assert exc_info.value.status_code == 403

    @pytest.mark.asyncio
    async def test_any_denied(self, resolver):
        resolver.has_any_permission.return_value = False

        with pytest.raises(PermissionDeniedError) as exc_info:
            await require_any_permission(resolver, USER, ["task.update", "task.assign"])

        assert "task.update" in exc_info.value.message


class TestVerifyProjectAccess:
    @pytest.mark.asyncio
    async def test_checks_permission_in_project_scope(self, mock_db, resolver, project_repository):
        await verify_project_access(mock_db, resolver, USER, PROJECT, "project.update")

        resolver.has_permission.assert_awaited_once_with(USER, "project.update", PROJECT)

    @pytest.mark.asyncio
    async def test_missing_project(self, mock_db, resolver, project_repository):
        project_repository.get.return_value = None

        with pytest.raises(NotFoundError):
            await verify_project_access(mock_db, resolver, USER, PROJECT, "project.update")

        resolver.has_permission.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_denied(self, mock_db, resolver, project_repository):
        resolver.has_permission.return_value = False

        with pytest.raises(PermissionDeniedError) as exc_info:
            await verify_project_access(mock_db, resolver, USER, PROJECT, "project.update")

        assert exc_info.value.code == "PROJECT_ACCESS_DENIED"


class TestVerifyTaskAccess:
    @pytest.mark.asyncio
    async def test_checks_permission_in_the_tasks_project(self, mock_db, resolver, task_repository):
        project_id = await verify_task_access(mock_db, resolver, USER, TASK, "task.update")

        assert project_id == PROJECT
        resolver.has_permission.assert_awaited_once_with(USER, "task.update", PROJECT)

    @pytest.mark.asyncio
    async def test_missing_task(self, mock_db, resolver, task_repository):
        task_repository.get_project_id.return_value = None

        with pytest.raises(NotFoundError):
            await verify_task_access(mock_db, resolver, USER, TASK, "task.update")

    @pytest.mark.asyncio
    async def test_denied(self, mock_db, resolver, task_repository):
        resolver.has_permission.return_value = False

        with pytest.raises(PermissionDeniedError) as exc_info:
            await verify_task_access(mock_db, resolver, USER, TASK, "task.update")

        assert exc_info.value.code == "TASK_ACCESS_DENIED"


class TestVerifyProjectOwner:
    @pytest.mark.asyncio
    async def test_owner(self, mock_db, project_repository):
        await verify_project_owner(mock_db, USER, PROJECT)

    @pytest.mark.asyncio
    async def test_not_owner(self, mock_db, project_repository):
        with pytest.raises(PermissionDeniedError) as exc_info:
            await verify_project_owner(mock_db, uuid4(), PROJECT)

        assert exc_info.value.code == "NOT_OWNER"


class TestErrorPayload:
    def test_domain_error(self):
        payload = authorization_error_payload(NotFoundError("Project x not found"))

        assert payload == {"error": "Project x not found", "code": "NOT_FOUND", "status": 404, "success": False}

    def test_settings_error_keeps_its_status(self):
        assert authorization_error_payload(SettingsResolutionError("down"))["status"] == 503

    def test_unknown_error(self):
        payload = authorization_error_payload(RuntimeError("boom"))

        assert payload == {
            "error": "Authorization failed",
            "code": "AUTHORIZATION_ERROR",
            "status": 500,
            "success": False,
        }
