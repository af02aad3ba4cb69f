"""
RBAC helpers and canonical permission definitions.

Permission keys are free-form strings (``module.action`` or
``module.category.action``). This registry is the set of known keys; role
writes and the startup check validate against it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable


class ScopeType(str, Enum):
    GLOBAL = "global"
    PROJECT = "project"


PERMISSIONS: dict[str, dict[str, str]] = {
    "user": {
        "CREATE": "user.create",
        "READ": "user.read",
        "UPDATE": "user.update",
        "DELETE": "user.delete",
        "ASSIGN_ROLE": "user.assign_role",
        "ACTIVATE": "user.activate",
        "DEACTIVATE": "user.deactivate",
    },
    "team": {
        "CREATE": "team.create",
        "READ": "team.read",
        "UPDATE": "team.update",
        "DELETE": "team.delete",
        "ADD_MEMBER": "team.add_member",
        "REMOVE_MEMBER": "team.remove_member",
        "ASSIGN_PROJECT": "team.assign_project",
        "REMOVE_PROJECT": "team.remove_project",
    },
    "project": {
        "CREATE": "project.create",
        "READ": "project.read",
        "UPDATE": "project.update",
        "DELETE": "project.delete",
        "ASSIGN_TEAM": "project.assign_team",
        "REMOVE_TEAM": "project.remove_team",
        "MANAGE_SETTINGS": "project.manage_settings",
    },
    "task": {
        "CREATE": "task.create",
        "READ": "task.read",
        "UPDATE": "task.update",
        "DELETE": "task.delete",
        "ASSIGN": "task.assign",
        "CHANGE_STATUS": "task.change_status",
        "CHANGE_PRIORITY": "task.change_priority",
    },
    "dependency": {
        "CREATE": "dependency.create",
        "READ": "dependency.read",
        "UPDATE": "dependency.update",
        "DELETE": "dependency.delete",
        "MANUAL_UNBLOCK": "dependency.manual_unblock",
    },
    "today_task": {
        "ASSIGN": "today_task.assign",
        "REMOVE": "today_task.remove",
        "REORDER": "today_task.reorder",
        "VIEW_ALL": "today_task.view_all",
    },
    "settings": {
        "GLOBAL_READ": "settings.global.read",
        "GLOBAL_EDIT": "settings.global.edit",
        "PROJECT_READ": "settings.project.read",
        "PROJECT_EDIT": "settings.project.edit",
        "USER_READ": "settings.user.read",
        "USER_EDIT": "settings.user.edit",
        "PROJECT_TYPE_MANAGE": "settings.project_type.manage",
        "PROJECT_STATUS_MANAGE": "settings.project_status.manage",
        "TASK_STATUS_MANAGE": "settings.task_status.manage",
    },
    "notification": {
        "VIEW": "notification.view",
        "MANAGE": "notification.manage",
        "CONFIGURE": "notification.configure",
    },
    "log": {
        "VIEW": "log.view",
        "EXPORT": "log.export",
        "VIEW_DETAILS": "log.view_details",
    },
    "role": {
        "CREATE": "role.create",
        "READ": "role.read",
        "UPDATE": "role.update",
        "DELETE": "role.delete",
        "ASSIGN": "role.assign",
        "MANAGE_PERMISSIONS": "role.manage_permissions",
    },
    "report": {
        "VIEW": "report.view",
        "EXPORT": "report.export",
        "GENERATE": "report.generate",
    },
    "admin": {
        "ACCESS": "admin.access",
    },
}

# Permission "category" column: view / edit / management
_VIEW_ACTIONS = {"read", "view", "view_all", "view_details"}
_EDIT_ACTIONS = {"update", "edit", "change_status", "change_priority", "reorder"}


@dataclass(frozen=True)
class PermissionDef:
    key: str
    name: str
    module: str
    category: str


@dataclass(frozen=True)
class SystemRoleDef:
    name: str
    description: str
    permissions: tuple[str, ...]


def all_permissions() -> list[str]:
    """All registered permission keys, in registry order"""
    return [key for module in PERMISSIONS.values() for key in module.values()]


def permissions_by_module(module: str) -> list[str]:
    return list(PERMISSIONS.get(module.lower(), {}).values())


KNOWN_PERMISSION_KEYS: frozenset[str] = frozenset(all_permissions())


def _humanize(key: str) -> str:
    return " ".join(part.replace("_", " ").title() for part in reversed(key.split(".")))


def permission_definitions() -> list[PermissionDef]:
    definitions = []
    for module, keys in PERMISSIONS.items():
        for key in keys.values():
            action = key.rsplit(".", 1)[-1]
            if action in _VIEW_ACTIONS:
                category = "view"
            elif action in _EDIT_ACTIONS:
                category = "edit"
            else:
                category = "management"
            definitions.append(PermissionDef(key=key, name=_humanize(key), module=module, category=category))
    return definitions


def validate_permission_keys(keys: Iterable[str]) -> list[str]:
    """Return the keys de-duplicated and sorted; raise on anything unregistered"""
    normalized = {key.strip() for key in keys if key and key.strip()}
    unknown = normalized - KNOWN_PERMISSION_KEYS
    if unknown:
        raise ValueError(f"Unknown permission keys: {sorted(unknown)}")
    return sorted(normalized)


def _module(module: str) -> tuple[str, ...]:
    return tuple(PERMISSIONS[module].values())


SYSTEM_ADMIN_ROLE = "System Admin"

DEFAULT_ROLES: tuple[SystemRoleDef, ...] = (
    SystemRoleDef(
        name=SYSTEM_ADMIN_ROLE,
        description="Full system access with all permissions",
        permissions=tuple(all_permissions()),
    ),
    SystemRoleDef(
        name="Project Manager",
        description="Manage projects, tasks, teams, and dependencies",
        permissions=(
            *_module("project"),
            *_module("task"),
            *_module("dependency"),
            "team.read",
            "team.update",
            "team.add_member",
            "team.remove_member",
            "team.assign_project",
            "team.remove_project",
            *_module("today_task"),
            "settings.project.read",
            "settings.project.edit",
            "settings.project_type.manage",
            "settings.project_status.manage",
            "settings.task_status.manage",
            "notification.view",
            "notification.manage",
            "log.view",
            "log.view_details",
            "user.read",
            *_module("report"),
        ),
    ),
    SystemRoleDef(
        name="Team Lead",
        description="Manage team tasks, dependencies, and team members",
        permissions=(
            "project.read",
            *_module("task"),
            *_module("dependency"),
            "team.read",
            "team.update",
            "team.add_member",
            "team.remove_member",
            *_module("today_task"),
            "settings.project.read",
            "notification.view",
            "log.view",
            "log.view_details",
            "user.read",
            "report.view",
        ),
    ),
    SystemRoleDef(
        name="Developer",
        description="Basic task management and updates",
        permissions=(
            "project.read",
            "task.read",
            "task.update",
            "task.change_status",
            "task.change_priority",
            "dependency.read",
            *_module("today_task"),
            "notification.view",
            "log.view",
        ),
    ),
)

SYSTEM_ROLE_BY_NAME: dict[str, SystemRoleDef] = {role.name: role for role in DEFAULT_ROLES}


def check_registry() -> None:
    """Startup check: default roles only reference registered keys"""
    for role in DEFAULT_ROLES:
        validate_permission_keys(role.permissions)
