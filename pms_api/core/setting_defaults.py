"""
Settings categories and hardcoded system defaults.

Every recognized category has a non-null default so resolution always ends
with a value.
"""

from __future__ import annotations

import enum
from typing import Any


class SettingScope(str, enum.Enum):
    USER = "user"
    PROJECT = "project"
    GLOBAL = "global"


USER_CATEGORIES: tuple[str, ...] = (
    "preferences",
    "taskView",
    "todayTasks",
    "notifications",
    "workflow",
)

PROJECT_CATEGORIES: tuple[str, ...] = (
    "general",
    "tasks",
    "dependencies",
    "today_tasks",
    "workflow",
    "permissions",
    "notifications",
)

GLOBAL_ONLY_CATEGORIES: tuple[str, ...] = ("audit",)

# The user's own value wins over an enabled project override for these
ALWAYS_USER_OVERRIDABLE: frozenset[str] = frozenset({"preferences", "notifications", "workflow"})

SYSTEM_DEFAULTS: dict[str, Any] = {
    "general": {
        "systemName": "Project Management System",
        "systemLogo": "/assets/logo.png",
        "allowRegistration": True,
        "defaultLanguage": "en",
        "defaultTimezone": "UTC",
        "workingDays": [1, 2, 3, 4, 5],
        "defaultWorkingHours": {"start": "09:00", "end": "17:00"},
    },
    "tasks": {
        "statuses": [
            {"name": "Pending", "key": "pending", "order": 1, "color": "#fbbf24", "isFinal": False, "isDefault": True},
            {"name": "Waiting", "key": "waiting", "order": 2, "color": "#f97316", "isFinal": False, "isDefault": False},
            {"name": "In Progress", "key": "in_progress", "order": 3, "color": "#3b82f6", "isFinal": False, "isDefault": False},
            {"name": "Review", "key": "review", "order": 4, "color": "#a855f7", "isFinal": False, "isDefault": False},
            {"name": "Completed", "key": "completed", "order": 5, "color": "#10b981", "isFinal": True, "isDefault": False},
        ],
        "priorities": [
            {"name": "Low", "key": "low", "weight": 1, "color": "#6b7280", "isDefault": False},
            {"name": "Normal", "key": "normal", "weight": 2, "color": "#3b82f6", "isDefault": True},
            {"name": "High", "key": "high", "weight": 3, "color": "#f59e0b", "isDefault": False},
            {"name": "Urgent", "key": "urgent", "weight": 4, "color": "#ef4444", "isDefault": False},
        ],
    },
    "dependencies": {
        "allowMultipleDependencies": True,
        "allowCrossTeamDependencies": True,
        "allowCrossProjectDependencies": False,
        "autoBlockTasks": True,
        "allowAdminManualUnblock": True,
    },
    "today_tasks": {
        "dailyResetTime": "00:00",
        "resetTimezoneSource": "system",
        "autoCarryOver": True,
        "carryOverRules": {"excludeBlocked": True, "incompleteOnly": True, "maxDays": 7},
        "adminOverridePermissions": True,
    },
    "permissions": {
        "admin": {
            "taskCreation": True,
            "taskAssignment": True,
            "todayTasksManagement": True,
            "dependencyManagement": True,
            "projectCreation": True,
            "userManagement": True,
        },
        "team_lead": {
            "taskCreation": True,
            "taskAssignment": True,
            "todayTasksManagement": True,
            "dependencyManagement": True,
            "projectCreation": False,
            "userManagement": False,
        },
        "developer": {
            "taskCreation": False,
            "taskAssignment": False,
            "todayTasksManagement": False,
            "dependencyManagement": False,
            "projectCreation": False,
            "userManagement": False,
        },
    },
    "audit": {
        "enableSettingsChangeLogs": True,
        "enableOverrideLogs": True,
        "logRetentionPolicy": {"retentionDays": 365, "archiveAfterDays": 90, "maxLogSizeMB": 100},
    },
    "preferences": {
        "timezone": "Africa/Cairo",
        "workingHours": {"start": "09:00", "end": "17:00"},
    },
    "taskView": {
        "defaultView": "list",
        "defaultSort": {"field": "priority", "order": "desc"},
        "showCompleted": True,
        "showBlocked": True,
        "defaultProjectFilter": None,
    },
    "todayTasks": {
        "autoOpenOnLogin": False,
        "defaultView": "compact",
        "highlightBlocked": True,
        "showDependencyDetails": False,
    },
    "notifications": {
        "channels": {"inApp": True, "email": True},
        "grouping": "realtime",
        "priorityFilter": ["low", "normal", "high", "urgent"],
        "soundEnabled": True,
    },
    "workflow": {
        "defaultLandingPage": "dashboard",
        "defaultProjectContext": None,
        "standupSummaryDisplay": {"enabled": False, "format": "compact"},
    },
}

RECOGNIZED_CATEGORIES: frozenset[str] = frozenset(SYSTEM_DEFAULTS)

SETTING_DESCRIPTIONS: dict[str, str] = {
    "general": "General system settings",
    "tasks": "Task statuses and priority levels",
    "dependencies": "Task dependency rules",
    "today_tasks": "Today's Tasks configuration",
    "permissions": "Default permissions by role",
    "notifications": "Notification preferences",
    "audit": "Audit and logging configuration",
}


def category_from_key(key: str) -> str:
    """Map a user settings key (e.g. ``taskView.defaultSort``) to its category"""
    for category in USER_CATEGORIES:
        if key.startswith(category):
            return category
    return key
