"""
User model for identity management.
"""

import uuid
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskgate.kernel.models.base import Base, IdMixin, SoftDeleteMixin, TimestampMixin

if TYPE_CHECKING:
    from taskgate.kernel.models.organization import Organization
    from taskgate.kernel.models.role import Role
    from taskgate.kernel.models.task import Task


class User(Base, IdMixin, TimestampMixin, SoftDeleteMixin):
    """User account. Always holds exactly one role in exactly one organization."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    username: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        index=True,
        nullable=False,
    )
    password_hash: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    first_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    last_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("roles.id"),
        nullable=False,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # Relationships
    organization: Mapped["Organization"] = relationship(
        "Organization",
        back_populates="users",
    )
    role: Mapped[Optional["Role"]] = relationship(
        "Role",
        back_populates="users",
    )
    created_tasks: Mapped[List["Task"]] = relationship(
        "Task",
        back_populates="created_by",
        foreign_keys="Task.created_by_id",
    )
    assigned_tasks: Mapped[List["Task"]] = relationship(
        "Task",
        back_populates="assignee",
        foreign_keys="Task.assignee_id",
    )

    def can_manage(self, other: "User") -> bool:
        """Same organization and a strictly higher role."""
        if self.organization_id != other.organization_id:
            return False
        if self.role is None or other.role is None:
            return False
        return self.role.can_manage_role(other.role)

    def __repr__(self) -> str:
        return f"<User {self.email}>"
