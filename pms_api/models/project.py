"""
Project and Task Models
Business entities that authorization scopes refer to
"""

from sqlalchemy import Column, String, Text, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship
from pms_api.models.base import SoftDeleteModel
import enum


class TaskStatus(enum.Enum):
    PENDING = "pending"
    WAITING = "waiting"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    COMPLETED = "completed"


class Project(SoftDeleteModel):
    """Project: the scope of project-level role assignments and settings"""
    __tablename__ = "projects"

    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)

    created_by_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)
    project_manager_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=True, index=True)

    tasks = relationship("Task", back_populates="project", cascade="all, delete-orphan", passive_deletes=True)

    def __repr__(self):
        return f"<Project(name='{self.name}')>"


class Task(SoftDeleteModel):
    __tablename__ = "tasks"

    title = Column(String(255), nullable=False)
    status = Column(String(30), default=TaskStatus.PENDING.value, nullable=False, index=True)

    project_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project = relationship("Project", back_populates="tasks")

    __table_args__ = (
        Index('ix_task_project_status', 'project_id', 'status'),
    )

    def __repr__(self):
        return f"<Task(title='{self.title}', status='{self.status}')>"
