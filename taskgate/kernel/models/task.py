"""
Task model.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from taskgate.kernel.models.base import Base, IdMixin, SoftDeleteMixin, TimestampMixin, as_utc

if TYPE_CHECKING:
    from taskgate.kernel.models.organization import Organization
    from taskgate.kernel.models.user import User


class TaskStatus(str, Enum):
    """Task workflow status."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    IN_REVIEW = "in_review"
    DONE = "done"
    CANCELLED = "cancelled"


class TaskPriority(str, Enum):
    """Task priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Task(Base, IdMixin, TimestampMixin, SoftDeleteMixin):
    """
    A unit of work owned by an organization.

    ``completed_at`` is stamped when the status moves into ``done`` and
    cleared when it moves out again. The owning organization is fixed once set.
    """

    __tablename__ = "tasks"

    title: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    status: Mapped[TaskStatus] = mapped_column(
        String(20),
        default=TaskStatus.TODO,
        nullable=False,
        index=True,
    )
    priority: Mapped[TaskPriority] = mapped_column(
        String(20),
        default=TaskPriority.MEDIUM,
        nullable=False,
    )
    assignee_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    created_by_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("users.id"),
        nullable=False,
        index=True,
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    due_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    tags: Mapped[List[str]] = mapped_column(
        JSON,
        default=list,
        nullable=False,
    )
    is_public: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )

    # Relationships
    organization: Mapped["Organization"] = relationship(
        "Organization",
        back_populates="tasks",
    )
    created_by: Mapped["User"] = relationship(
        "User",
        back_populates="created_tasks",
        foreign_keys=[created_by_id],
    )
    assignee: Mapped[Optional["User"]] = relationship(
        "User",
        back_populates="assigned_tasks",
        foreign_keys=[assignee_id],
    )

    @validates("status")
    def _track_completion(self, key: str, value) -> TaskStatus:
        status = TaskStatus(value)
        previous = self.status
        if status == TaskStatus.DONE:
            if previous != TaskStatus.DONE or self.completed_at is None:
                self.completed_at = datetime.now(timezone.utc)
        elif self.completed_at is not None:
            self.completed_at = None
        return status

    @validates("priority")
    def _coerce_priority(self, key: str, value) -> TaskPriority:
        return TaskPriority(value)

    @validates("organization_id")
    def _freeze_organization(self, key: str, value):
        current = self.organization_id
        if current is not None and value is not None and str(current) != str(value):
            raise ValueError("A task cannot be moved to another organization")
        return value

    @property
    def is_assigned(self) -> bool:
        return self.assignee_id is not None

    @property
    def is_overdue(self) -> bool:
        """Past its due date and not finished."""
        due = as_utc(self.due_date)
        if due is None or self.status in (TaskStatus.DONE, TaskStatus.CANCELLED):
            return False
        return due < datetime.now(timezone.utc)

    @property
    def days_until_due(self) -> Optional[int]:
        due = as_utc(self.due_date)
        if due is None:
            return None
        return (due - datetime.now(timezone.utc)).days

    def __repr__(self) -> str:
        return f"<Task {self.title} ({self.status})>"
