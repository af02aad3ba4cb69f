"""
Settings Models
One table per configuration layer plus a shared change log
"""

from sqlalchemy import Column, String, Text, Boolean, ForeignKey, Index, UniqueConstraint, Uuid
from pms_api.models.base import BaseModel, JSONType


class SystemSetting(BaseModel):
    """Global default for a settings key"""
    __tablename__ = "system_settings"

    key = Column(String(100), nullable=False, unique=True, index=True)
    category = Column(String(50), nullable=False, index=True)
    value = Column(JSONType, nullable=True)
    description = Column(Text, nullable=True)
    updated_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)

    def __repr__(self):
        return f"<SystemSetting(key='{self.key}')>"


class ProjectSetting(BaseModel):
    """
    Project override. A disabled row is kept so the override can be
    re-enabled; resolution treats it as absent.
    """
    __tablename__ = "project_settings"

    project_id = Column(Uuid(as_uuid=True), ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    key = Column(String(100), nullable=False)
    category = Column(String(50), nullable=False, index=True)
    value = Column(JSONType, nullable=True)
    enabled = Column(Boolean, default=True, nullable=False)
    updated_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        UniqueConstraint("project_id", "key", name="uq_project_settings_project_key"),
    )

    def __repr__(self):
        return f"<ProjectSetting(project_id='{self.project_id}', key='{self.key}', enabled={self.enabled})>"


class UserSetting(BaseModel):
    __tablename__ = "user_settings"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    key = Column(String(100), nullable=False)
    category = Column(String(50), nullable=False, index=True)
    value = Column(JSONType, nullable=True)
    updated_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "key", name="uq_user_settings_user_key"),
    )

    def __repr__(self):
        return f"<UserSetting(user_id='{self.user_id}', key='{self.key}')>"


class SettingsChangeLog(BaseModel):
    """Audit row written for every settings change at any layer"""
    __tablename__ = "settings_change_logs"

    scope = Column(String(20), nullable=False, index=True)
    owner_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    setting_key = Column(String(100), nullable=False, index=True)
    category = Column(String(50), nullable=False)
    old_value = Column(JSONType, nullable=True)
    new_value = Column(JSONType, nullable=True)
    reason = Column(Text, nullable=True)
    changed_by = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        Index("ix_settings_change_logs_scope_owner", "scope", "owner_id"),
    )
