"""
Project Repository
Lookups used by the authorization helpers
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from pms_api.models.project import Project, Task
from pms_api.repositories.base import CRUDBase

logger = structlog.get_logger()


class ProjectRepository(CRUDBase[Project]):
    async def get_by_name(self, db: AsyncSession, name: str) -> Optional[Project]:
        result = await db.execute(
            select(Project).where(Project.name == name, Project.is_deleted == False)  # noqa: E712
        )
        return result.scalar_one_or_none()


class TaskRepository(CRUDBase[Task]):
    async def get_project_id(self, db: AsyncSession, task_id: UUID) -> Optional[UUID]:
        """Project id of a live task, or None when the task does not exist"""
        result = await db.execute(
            select(Task.project_id).where(Task.id == task_id, Task.is_deleted == False)  # noqa: E712
        )
        return result.scalar_one_or_none()


project_repository = ProjectRepository(Project)
task_repository = TaskRepository(Task)
