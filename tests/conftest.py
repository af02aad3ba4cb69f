"""
Shared test fixtures
In-memory SQLite sessions, fake stores and seeded users
"""

import os

# Settings are read at import time
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("PERMISSION_CACHE_BACKEND", "none")
os.environ.setdefault("SEED_DEFAULTS_ON_STARTUP", "false")

from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from pms_api.core.database import Base
from pms_api.core.permission_resolver import RoleAssignmentStore, ScopeFilter
from pms_api.core.setting_defaults import SettingScope
from pms_api.core.settings_resolver import SettingsStore, StoredSetting
import pms_api.models  # noqa: F401
from pms_api.models.project import Project, Task
from pms_api.models.user import User


# ==================== Fake stores ====================

def make_assignment(role_name: str, permission_keys, scope_type=None, scope_id=None) -> SimpleNamespace:
    """Role assignment shaped like the ORM rows the resolver reads"""
    role = SimpleNamespace(
        name=role_name,
        permissions=[SimpleNamespace(key=key) for key in permission_keys],
    )
    return SimpleNamespace(role=role, scope_type=scope_type, scope_id=scope_id)


class FakeRoleStore(RoleAssignmentStore):
    """Applies the scope filter the same way the SQL store does"""

    def __init__(self, assignments: Optional[Dict[Any, List[SimpleNamespace]]] = None):
        self.assignments = assignments or {}
        self.calls: List[Tuple[Any, ScopeFilter]] = []
        self.error: Optional[Exception] = None

    async def find_role_assignments(self, user_id, scope_filter):
        self.calls.append((user_id, scope_filter))
        if self.error:
            raise self.error
        return [
            a for a in self.assignments.get(user_id, [])
            if scope_filter.matches(a.scope_type, a.scope_id)
        ]


class FakeSettingsStore(SettingsStore):
    def __init__(self):
        self.rows: Dict[Tuple[SettingScope, Any, str], StoredSetting] = {}
        self.calls: List[Tuple[SettingScope, Any, str]] = []
        self.error: Optional[Exception] = None

    def put(self, scope: SettingScope, owner_id: Any, category: str, value: Any, enabled: bool = True):
        self.rows[(scope, owner_id, category)] = StoredSetting(value=value, enabled=enabled)

    async def find_setting(self, scope, owner_id, category):
        self.calls.append((scope, owner_id, category))
        if self.error:
            raise self.error
        return self.rows.get((scope, owner_id, category))


@pytest.fixture
def role_store():
    return FakeRoleStore()


@pytest.fixture
def settings_store():
    return FakeSettingsStore()


# ==================== Database ====================

@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine):
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session


async def create_user(db: AsyncSession, email: Optional[str] = None, role: Optional[str] = None) -> User:
    user = User(
        email=email or f"user-{uuid4().hex[:8]}@example.com",
        full_name="Test User",
        is_active=True,
        role=role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def create_project(db: AsyncSession, owner: Optional[User] = None, name: str = "Apollo") -> Project:
    project = Project(name=name, created_by_id=owner.id if owner else None)
    db.add(project)
    await db.commit()
    await db.refresh(project)
    return project


async def create_task(db: AsyncSession, project: Project, title: str = "Write tests") -> Task:
    task = Task(title=title, project_id=project.id)
    db.add(task)
    await db.commit()
    await db.refresh(task)
    return task


@pytest_asyncio.fixture
async def user(db_session):
    return await create_user(db_session)


@pytest_asyncio.fixture
async def other_user(db_session):
    return await create_user(db_session)


@pytest_asyncio.fixture
async def project(db_session, user):
    return await create_project(db_session, owner=user)
