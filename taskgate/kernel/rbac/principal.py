"""
Principal snapshots consumed by the access decision engine.

The engine never touches ORM objects directly. The HTTP layer resolves the
authenticated user and converts it with ``Principal.from_user`` so that a
decision always sees one consistent, read-only view of the user's role.
"""

from typing import TYPE_CHECKING, Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator

from taskgate.kernel.ids import normalize_id
from taskgate.kernel.rbac.catalog import PermissionKind, RoleKind, coerce_permission

if TYPE_CHECKING:
    from taskgate.kernel.models.user import User


class PermissionGrant(BaseModel):
    """An explicit permission attached to a role."""

    model_config = ConfigDict(frozen=True)

    kind: PermissionKind
    is_active: bool = True


class RoleSnapshot(BaseModel):
    """The role a principal holds, with its explicit grants."""

    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    name: str = ""
    kind: RoleKind
    organization_id: Optional[str] = None
    is_active: bool = True
    is_deleted: bool = False
    permissions: Tuple[PermissionGrant, ...] = ()

    @field_validator("id", "organization_id", mode="before")
    @classmethod
    def _normalize_ids(cls, v: Any) -> Optional[str]:
        return normalize_id(v)

    @property
    def is_assigned(self) -> bool:
        """Inactive or tombstoned roles confer nothing."""
        return self.is_active and not self.is_deleted

    @property
    def active_grants(self) -> frozenset:
        return frozenset(p.kind for p in self.permissions if p.is_active)


class Principal(BaseModel):
    """Resolved, authenticated user as seen by the authorization core."""

    model_config = ConfigDict(frozen=True)

    id: str
    organization_id: Optional[str] = None
    role: Optional[RoleSnapshot] = None
    email: Optional[str] = None
    username: Optional[str] = None

    @field_validator("id", "organization_id", mode="before")
    @classmethod
    def _normalize_ids(cls, v: Any) -> Optional[str]:
        return normalize_id(v)

    @property
    def active_role(self) -> Optional[RoleSnapshot]:
        if self.role is None or not self.role.is_assigned:
            return None
        return self.role

    @classmethod
    def from_user(cls, user: "User") -> "Principal":
        """
        Build a principal from an ORM user.

        The user's role and the role's permissions must already be loaded.
        Permission rows whose kind is not in the catalog are dropped.
        """
        role = None
        if user.role is not None:
            grants = []
            for permission in user.role.permissions or []:
                kind = coerce_permission(permission.kind)
                if kind is not None:
                    grants.append(PermissionGrant(kind=kind, is_active=bool(permission.is_active)))
            role = RoleSnapshot(
                id=user.role.id,
                name=user.role.name,
                kind=user.role.kind,
                organization_id=user.role.organization_id,
                is_active=bool(user.role.is_active),
                is_deleted=user.role.deleted_at is not None,
                permissions=tuple(grants),
            )

        return cls(
            id=user.id,
            organization_id=user.organization_id,
            role=role,
            email=user.email,
            username=user.username,
        )
