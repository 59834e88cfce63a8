"""
Role and permission models for RBAC.
"""

import uuid
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, Column, ForeignKey, String, Table, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from taskgate.kernel.models.base import Base, IdMixin, SoftDeleteMixin, TimestampMixin
from taskgate.kernel.rbac.catalog import PermissionKind, RoleKind, rank

if TYPE_CHECKING:
    from taskgate.kernel.models.organization import Organization
    from taskgate.kernel.models.user import User


role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", Uuid(), ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", Uuid(), ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)


class Permission(Base, IdMixin, TimestampMixin):
    """
    Persisted catalog permission.

    One row per PermissionKind. Roles reference rows to extend their
    defaults; deactivating a row withdraws every explicit grant of it.
    """

    __tablename__ = "permissions"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    kind: Mapped[PermissionKind] = mapped_column(
        String(50),
        unique=True,
        index=True,
        nullable=False,
    )
    resource: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    action: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    roles: Mapped[List["Role"]] = relationship(
        "Role",
        secondary=role_permissions,
        back_populates="permissions",
    )

    def __repr__(self) -> str:
        return f"<Permission {self.kind}>"


class Role(Base, IdMixin, TimestampMixin, SoftDeleteMixin):
    """
    Role within an organization.

    Effective permissions are the role kind's defaults plus any active
    explicit grants; explicit grants can only extend, never revoke.
    """

    __tablename__ = "roles"

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    kind: Mapped[RoleKind] = mapped_column(
        String(20),
        nullable=False,
    )
    description: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    organization_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    # Relationships
    organization: Mapped["Organization"] = relationship(
        "Organization",
        back_populates="roles",
    )
    permissions: Mapped[List[Permission]] = relationship(
        Permission,
        secondary=role_permissions,
        back_populates="roles",
    )
    users: Mapped[List["User"]] = relationship(
        "User",
        back_populates="role",
    )

    @property
    def rank(self) -> int:
        return rank(self.kind)

    def is_higher_than(self, other: "Role") -> bool:
        return self.rank > other.rank

    def can_manage_role(self, other: "Role") -> bool:
        """A role manages strictly lower roles of its own organization."""
        return self.is_higher_than(other) and self.organization_id == other.organization_id

    def __repr__(self) -> str:
        return f"<Role {self.name} ({self.kind})>"
