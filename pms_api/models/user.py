"""
User Model
Identity record referenced by role assignments and settings
"""

from sqlalchemy import Column, String, Boolean, Index
from sqlalchemy.orm import relationship
from pms_api.models.base import SoftDeleteModel


class User(SoftDeleteModel):
    """User account"""
    __tablename__ = "users"

    email = Column(String(254), nullable=False, unique=True, index=True)
    full_name = Column(String(100), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Coarse legacy role ("admin", "project_manager", "developer").
    # Never consulted by PermissionResolver.has_permission.
    role = Column(String(50), nullable=True)

    role_assignments = relationship(
        "UserRole",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index('ix_user_email_active', 'email', 'is_active'),
    )

    def __repr__(self):
        return f"<User(email='{self.email}', full_name='{self.full_name}')>"
