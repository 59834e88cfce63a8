"""
Pure RBAC rules.

These functions make no audit records; ``AccessDecisionEngine`` wraps them
so that each public decision is logged exactly once.
"""

from typing import Any, FrozenSet, Iterable, Optional

from taskgate.kernel.ids import normalize_id
from taskgate.kernel.rbac.catalog import (
    PermissionKind,
    RoleKind,
    coerce_permission,
    default_permissions,
    lookup_permission,
    rank,
)
from taskgate.kernel.rbac.principal import Principal


def has_role(principal: Optional[Principal], kind: RoleKind) -> bool:
    if principal is None or principal.active_role is None:
        return False
    return principal.active_role.kind == kind


def has_any_role(principal: Optional[Principal], kinds: Iterable[RoleKind]) -> bool:
    return any(has_role(principal, kind) for kind in kinds)


def has_role_at_least(principal: Optional[Principal], kind: RoleKind) -> bool:
    if principal is None or principal.active_role is None:
        return False
    required = rank(kind)
    if required == 0:
        return False
    return rank(principal.active_role.kind) >= required


def effective_permissions(principal: Optional[Principal]) -> FrozenSet[PermissionKind]:
    """Explicit active grants united with the role kind's defaults."""
    if principal is None or principal.active_role is None:
        return frozenset()
    role = principal.active_role
    return role.active_grants | default_permissions(role.kind)


def has_permission(principal: Optional[Principal], permission: Any) -> bool:
    kind = coerce_permission(permission)
    if kind is None:
        return False
    return kind in effective_permissions(principal)


def has_any_permission(principal: Optional[Principal], permissions: Iterable[Any]) -> bool:
    granted = effective_permissions(principal)
    return any(coerce_permission(p) in granted for p in permissions)


def has_all_permissions(principal: Optional[Principal], permissions: Iterable[Any]) -> bool:
    granted = effective_permissions(principal)
    return all(coerce_permission(p) in granted for p in permissions)


def can_access_resource(principal: Optional[Principal], resource: str, action: str) -> bool:
    kind = lookup_permission(resource, action)
    if kind is None:
        return False
    return has_permission(principal, kind)


def is_owner(principal: Optional[Principal], resource_owner_id: Any) -> bool:
    if principal is None or resource_owner_id is None:
        return False
    return principal.id == normalize_id(resource_owner_id)


def belongs_to_organization(principal: Optional[Principal], organization_id: Any) -> bool:
    # Direct membership only; the organization tree is not walked.
    if principal is None or principal.organization_id is None or organization_id is None:
        return False
    return principal.organization_id == normalize_id(organization_id)


def role_label(principal: Optional[Principal]) -> str:
    if principal is None or principal.active_role is None:
        return "none"
    return principal.active_role.kind.value
