"""
Composable access requirements.

A protected operation declares what it needs as one ``AccessRequirement``
value and hands it to ``AccessDecisionEngine.authorize`` together with the
request-specific ``AccessContext``.
"""

from typing import Any, Optional, Tuple

from pydantic import BaseModel, ConfigDict, field_validator

from taskgate.kernel.ids import normalize_id
from taskgate.kernel.rbac.catalog import PermissionKind, RoleKind


class AccessRequirement(BaseModel):
    """
    What a protected operation requires of the acting principal.

    A requirement built by ``merge`` holds its operands in ``all_of`` and
    is satisfied only when every one of them is.
    """

    model_config = ConfigDict(frozen=True)

    roles: Tuple[RoleKind, ...] = ()
    permissions: Tuple[PermissionKind, ...] = ()
    resource: Optional[str] = None
    action: Optional[str] = None
    require_ownership: bool = False
    ownership_param: str = "id"
    require_organization_access: bool = False
    organization_param: str = "organization_id"
    # When set, roles[0] is treated as a minimum rank instead of an exact match
    allow_inheritance: bool = False
    all_of: Tuple["AccessRequirement", ...] = ()

    @property
    def parts(self) -> Tuple["AccessRequirement", ...]:
        """Leaf requirements, in evaluation order."""
        return self.all_of or (self,)

    @property
    def is_empty(self) -> bool:
        return all(
            not (
                part.roles
                or part.permissions
                or (part.resource and part.action)
                or part.require_ownership
                or part.require_organization_access
            )
            for part in self.parts
        )

    @property
    def resource_type(self) -> Optional[str]:
        """First named resource; used to label the audit entry."""
        return next((part.resource for part in self.parts if part.resource), None)

    @property
    def owner_param(self) -> Optional[str]:
        """Request parameter holding the owner id, if any part checks ownership."""
        return next((part.ownership_param for part in self.parts if part.require_ownership), None)

    @property
    def organization_scope_param(self) -> Optional[str]:
        """Request parameter holding the organization id, if any part checks it."""
        return next(
            (part.organization_param for part in self.parts if part.require_organization_access),
            None,
        )

    def merge(self, other: "AccessRequirement") -> "AccessRequirement":
        """
        Conjunction of two requirements: both must hold.

        Raises:
            ValueError: both sides read the owner or organization id from
                different request parameters
        """
        parts = self.parts + other.parts
        owner_params = {p.ownership_param for p in parts if p.require_ownership}
        organization_params = {p.organization_param for p in parts if p.require_organization_access}
        if len(owner_params) > 1 or len(organization_params) > 1:
            raise ValueError("Merged requirements read ids from conflicting request parameters")
        return AccessRequirement(all_of=parts)


AccessRequirement.model_rebuild()


class AccessContext(BaseModel):
    """Request-specific inputs to a decision."""

    model_config = ConfigDict(frozen=True)

    resource_owner_id: Optional[str] = None
    organization_id: Optional[str] = None
    resource_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None

    @field_validator("resource_owner_id", "organization_id", "resource_id", mode="before")
    @classmethod
    def _normalize_ids(cls, v: Any) -> Optional[str]:
        return normalize_id(v)


class AccessDecision(BaseModel):
    """Outcome of a decision. ``reason`` is set whenever access is denied."""

    model_config = ConfigDict(frozen=True)

    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed

    @classmethod
    def allow(cls) -> "AccessDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: str) -> "AccessDecision":
        return cls(allowed=False, reason=reason)


def require_roles(*roles: RoleKind, allow_inheritance: bool = False) -> AccessRequirement:
    return AccessRequirement(roles=tuple(roles), allow_inheritance=allow_inheritance)


def require_permissions(*permissions: PermissionKind) -> AccessRequirement:
    return AccessRequirement(permissions=tuple(permissions))


def require_resource_action(resource: str, action: str) -> AccessRequirement:
    return AccessRequirement(resource=resource, action=action)


def require_ownership(param: str = "id") -> AccessRequirement:
    return AccessRequirement(require_ownership=True, ownership_param=param)


def require_organization_access(param: str = "organization_id") -> AccessRequirement:
    return AccessRequirement(require_organization_access=True, organization_param=param)
