"""
RBAC Models
Permissions, roles, and scoped role assignments
"""

from sqlalchemy import Column, String, Text, Boolean, ForeignKey, Index, Table, UniqueConstraint, Uuid, text
from sqlalchemy.orm import relationship
from pms_api.core.database import Base
from pms_api.models.base import BaseModel


role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", Uuid(as_uuid=True), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", Uuid(as_uuid=True), ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)


class Permission(BaseModel):
    """A capability identifier such as ``project.create``"""
    __tablename__ = "permissions"

    key = Column(String(100), nullable=False, unique=True, index=True)
    name = Column(String(150), nullable=False)
    module = Column(String(50), nullable=False, index=True)
    category = Column(String(50), nullable=False)

    def __repr__(self):
        return f"<Permission(key='{self.key}')>"


class Role(BaseModel):
    __tablename__ = "roles"

    name = Column(String(100), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=True)
    is_system_role = Column(Boolean, default=False, nullable=False)

    permissions = relationship(
        "Permission",
        secondary=role_permissions,
        lazy="selectin",
        order_by="Permission.key",
    )
    assignments = relationship("UserRole", back_populates="role", lazy="noload")

    def __repr__(self):
        return f"<Role(name='{self.name}', system={self.is_system_role})>"

    @property
    def permission_keys(self) -> list[str]:
        return [permission.key for permission in self.permissions]


class UserRole(BaseModel):
    """
    Role held by a user within a scope.

    scope_type "global" applies everywhere; "project" applies only to checks
    made for scope_id. Assignments are created and deleted, never updated.
    """
    __tablename__ = "user_roles"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role_id = Column(Uuid(as_uuid=True), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    scope_type = Column(String(20), nullable=False, default="global", server_default="global")
    scope_id = Column(Uuid(as_uuid=True), nullable=True)

    user = relationship("User", back_populates="role_assignments")
    role = relationship("Role", back_populates="assignments", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("user_id", "role_id", "scope_type", "scope_id", name="uq_user_roles_assignment"),
        # NULL scope_id never collides under the constraint above
        Index(
            "uq_user_roles_global_assignment",
            "user_id",
            "role_id",
            unique=True,
            postgresql_where=text("scope_id IS NULL"),
            sqlite_where=text("scope_id IS NULL"),
        ),
        Index("ix_user_roles_user_scope", "user_id", "scope_type", "scope_id"),
    )

    def __repr__(self):
        return f"<UserRole(user_id='{self.user_id}', role_id='{self.role_id}', scope={self.scope_type}:{self.scope_id})>"
