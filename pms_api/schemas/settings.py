"""
Settings Schemas
Request/response models and per-category value validation
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Type
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from pms_api.core.exceptions import SettingValidationError
from pms_api.core.setting_defaults import SettingScope
from pms_api.schemas.base import BaseSchema

_TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


# ==================== Category values ====================

class CategoryValue(BaseModel):
    """
    Stored category values are replaced whole, never merged. Known fields are
    type-checked; unknown fields are kept so clients can extend a category.
    """
    model_config = ConfigDict(extra="allow")


class WorkingHours(BaseModel):
    start: str = Field(..., pattern=_TIME_PATTERN)
    end: str = Field(..., pattern=_TIME_PATTERN)


class GeneralSettings(CategoryValue):
    systemName: Optional[str] = Field(None, min_length=1, max_length=100)
    systemLogo: Optional[str] = None
    allowRegistration: Optional[bool] = None
    defaultLanguage: Optional[str] = Field(None, min_length=2, max_length=10)
    defaultTimezone: Optional[str] = None
    workingDays: Optional[List[int]] = None
    defaultWorkingHours: Optional[WorkingHours] = None

    @field_validator("workingDays")
    @classmethod
    def validate_working_days(cls, v):
        if v is not None and any(day < 0 or day > 6 for day in v):
            raise ValueError("workingDays must contain weekday numbers 0-6")
        return v


class StatusDefinition(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)
    order: int = Field(..., ge=0)
    color: Optional[str] = None
    isFinal: bool = False
    isDefault: bool = False


class PriorityDefinition(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str = Field(..., min_length=1)
    key: str = Field(..., min_length=1)
    weight: int = Field(..., ge=0)
    color: Optional[str] = None
    isDefault: bool = False


class TasksSettings(CategoryValue):
    statuses: Optional[List[StatusDefinition]] = None
    priorities: Optional[List[PriorityDefinition]] = None

    @field_validator("statuses")
    @classmethod
    def validate_single_default_status(cls, v):
        if v is not None and sum(1 for status in v if status.isDefault) > 1:
            raise ValueError("At most one status can be the default")
        return v


class DependenciesSettings(CategoryValue):
    allowMultipleDependencies: Optional[bool] = None
    allowCrossTeamDependencies: Optional[bool] = None
    allowCrossProjectDependencies: Optional[bool] = None
    autoBlockTasks: Optional[bool] = None
    allowAdminManualUnblock: Optional[bool] = None


class CarryOverRules(BaseModel):
    model_config = ConfigDict(extra="allow")

    excludeBlocked: bool = True
    incompleteOnly: bool = True
    maxDays: int = Field(7, ge=0, le=365)


class TodayTasksSettings(CategoryValue):
    dailyResetTime: Optional[str] = Field(None, pattern=_TIME_PATTERN)
    resetTimezoneSource: Optional[Literal["system", "user", "project"]] = None
    autoCarryOver: Optional[bool] = None
    carryOverRules: Optional[CarryOverRules] = None
    adminOverridePermissions: Optional[bool] = None


class PermissionsSettings(CategoryValue):
    """Role name -> capability flag map"""

    @model_validator(mode="after")
    def validate_flags(self):
        for role, flags in (self.model_extra or {}).items():
            if not isinstance(flags, dict) or not all(isinstance(flag, bool) for flag in flags.values()):
                raise ValueError(f"Permission flags for '{role}' must be a map of booleans")
        return self


class LogRetentionPolicy(BaseModel):
    retentionDays: int = Field(..., ge=1)
    archiveAfterDays: int = Field(..., ge=0)
    maxLogSizeMB: int = Field(..., ge=1)


class AuditSettings(CategoryValue):
    enableSettingsChangeLogs: Optional[bool] = None
    enableOverrideLogs: Optional[bool] = None
    logRetentionPolicy: Optional[LogRetentionPolicy] = None


class PreferencesSettings(CategoryValue):
    timezone: Optional[str] = None
    workingHours: Optional[WorkingHours] = None


class SortSpec(BaseModel):
    field: str
    order: Literal["asc", "desc"] = "desc"


class TaskViewSettings(CategoryValue):
    defaultView: Optional[Literal["list", "board", "calendar"]] = None
    defaultSort: Optional[SortSpec] = None
    showCompleted: Optional[bool] = None
    showBlocked: Optional[bool] = None
    defaultProjectFilter: Optional[str] = None


class TodayTasksViewSettings(CategoryValue):
    autoOpenOnLogin: Optional[bool] = None
    defaultView: Optional[Literal["compact", "detailed"]] = None
    highlightBlocked: Optional[bool] = None
    showDependencyDetails: Optional[bool] = None


class NotificationSettings(CategoryValue):
    channels: Optional[Dict[str, bool]] = None
    grouping: Optional[Literal["realtime", "hourly", "daily"]] = None
    priorityFilter: Optional[List[Literal["low", "normal", "high", "urgent"]]] = None
    soundEnabled: Optional[bool] = None


class StandupSummaryDisplay(BaseModel):
    enabled: bool = False
    format: Literal["compact", "detailed"] = "compact"


class WorkflowSettings(CategoryValue):
    defaultLandingPage: Optional[str] = None
    defaultProjectContext: Optional[str] = None
    standupSummaryDisplay: Optional[StandupSummaryDisplay] = None


CATEGORY_SCHEMAS: Dict[str, Type[CategoryValue]] = {
    "general": GeneralSettings,
    "tasks": TasksSettings,
    "dependencies": DependenciesSettings,
    "today_tasks": TodayTasksSettings,
    "permissions": PermissionsSettings,
    "audit": AuditSettings,
    "preferences": PreferencesSettings,
    "taskView": TaskViewSettings,
    "todayTasks": TodayTasksViewSettings,
    "notifications": NotificationSettings,
    "workflow": WorkflowSettings,
}


def validate_setting_value(category: str, key: str, value: Any) -> Any:
    """
    Validate a value written under ``key``.

    Only whole-category rows (key == category) are checked against the
    category model; finer keys are stored as given.

    Raises:
        SettingValidationError: value does not fit the category
    """
    schema = CATEGORY_SCHEMAS.get(category)
    if schema is None or key != category:
        return value
    if not isinstance(value, dict):
        raise SettingValidationError(f"Setting '{key}' must be an object")
    try:
        schema.model_validate(value)
    except (ValidationError, ValueError) as e:
        raise SettingValidationError(f"Invalid value for setting '{key}': {e}")
    return value


# ==================== Requests / responses ====================

class UserSettingUpdate(BaseModel):
    value: Any = Field(..., description="New value, stored whole")
    reason: Optional[str] = Field(None, max_length=500)


class ProjectSettingUpdate(BaseModel):
    value: Any = Field(..., description="New value, stored whole")
    enabled: bool = Field(True, description="Disabled overrides are ignored by resolution")
    reason: Optional[str] = Field(None, max_length=500)


class GlobalSettingUpdate(BaseModel):
    value: Any = Field(..., description="New value, stored whole")
    category: Optional[str] = Field(None, description="Required to create a missing global setting")
    reason: Optional[str] = Field(None, max_length=500)


class ResolvedSettingResponse(BaseModel):
    value: Any = None
    source: Literal["user", "project", "global", "system"]
    enabled: bool


class ResolvedSettingsResponse(BaseModel):
    user_id: Optional[UUID] = None
    project_id: Optional[UUID] = None
    settings: Dict[str, ResolvedSettingResponse]


class StoredSettingResponse(BaseSchema):
    id: UUID
    key: str
    category: str
    value: Any = None
    enabled: bool = True
    updated_at: datetime


class ChangeLogEntry(BaseSchema):
    id: UUID
    scope: SettingScope
    owner_id: Optional[UUID] = None
    setting_key: str
    category: str
    old_value: Any = None
    new_value: Any = None
    reason: Optional[str] = None
    changed_by: Optional[UUID] = None
    created_at: datetime
