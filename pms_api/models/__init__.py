"""
SQLAlchemy Models Package
"""

from pms_api.models.user import User
from pms_api.models.project import Project, Task, TaskStatus
from pms_api.models.rbac import Permission, Role, UserRole, role_permissions
from pms_api.models.settings import (
    ProjectSetting,
    SettingsChangeLog,
    SystemSetting,
    UserSetting,
)

__all__ = [
    "User",
    "Project",
    "Task",
    "TaskStatus",
    "Permission",
    "Role",
    "UserRole",
    "role_permissions",
    "ProjectSetting",
    "SettingsChangeLog",
    "SystemSetting",
    "UserSetting",
]
