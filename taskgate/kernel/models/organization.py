"""
Organization model - the tenancy boundary.
"""

import uuid
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskgate.kernel.models.base import Base, IdMixin, SoftDeleteMixin, TimestampMixin

if TYPE_CHECKING:
    from taskgate.kernel.models.role import Role
    from taskgate.kernel.models.task import Task
    from taskgate.kernel.models.user import User


class Organization(Base, IdMixin, TimestampMixin, SoftDeleteMixin):
    """
    Organization (tenant).

    Organizations form a tree through ``parent_id``, but access checks only
    compare a user's own organization; the tree is not walked.
    """

    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(),
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # Relationships
    parent: Mapped[Optional["Organization"]] = relationship(
        "Organization",
        remote_side="Organization.id",
        back_populates="children",
    )
    children: Mapped[List["Organization"]] = relationship(
        "Organization",
        back_populates="parent",
    )
    users: Mapped[List["User"]] = relationship(
        "User",
        back_populates="organization",
    )
    roles: Mapped[List["Role"]] = relationship(
        "Role",
        back_populates="organization",
    )
    tasks: Mapped[List["Task"]] = relationship(
        "Task",
        back_populates="organization",
    )

    def __repr__(self) -> str:
        return f"<Organization {self.name}>"
