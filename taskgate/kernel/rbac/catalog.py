"""
Role hierarchy and permission catalog.

The catalog is fixed at import time. Lookups that cannot be resolved fail
closed: an unknown role kind has rank 0 and no default permissions, an unknown
resource/action pair maps to no permission.
"""

from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple


class RoleKind(str, Enum):
    """Role kinds, ordered Owner > Admin > Viewer."""
    OWNER = "owner"
    ADMIN = "admin"
    VIEWER = "viewer"


class PermissionKind(str, Enum):
    """Atomic capabilities of the form ``resource:action``."""

    # Task permissions
    TASK_CREATE = "task:create"
    TASK_READ = "task:read"
    TASK_UPDATE = "task:update"
    TASK_DELETE = "task:delete"
    TASK_ASSIGN = "task:assign"

    # User permissions
    USER_CREATE = "user:create"
    USER_READ = "user:read"
    USER_UPDATE = "user:update"
    USER_DELETE = "user:delete"

    # Organization permissions
    ORGANIZATION_CREATE = "organization:create"
    ORGANIZATION_READ = "organization:read"
    ORGANIZATION_UPDATE = "organization:update"
    ORGANIZATION_DELETE = "organization:delete"

    # Role permissions
    ROLE_CREATE = "role:create"
    ROLE_READ = "role:read"
    ROLE_UPDATE = "role:update"
    ROLE_DELETE = "role:delete"
    ROLE_ASSIGN = "role:assign"

    # Permission management
    PERMISSION_READ = "permission:read"
    PERMISSION_MANAGE = "permission:manage"

    @property
    def resource(self) -> str:
        return self.value.split(":", 1)[0]

    @property
    def action(self) -> str:
        return self.value.split(":", 1)[1]


# Higher rank includes everything a lower rank may do
ROLE_HIERARCHY: Dict[RoleKind, int] = {
    RoleKind.VIEWER: 1,
    RoleKind.ADMIN: 2,
    RoleKind.OWNER: 3,
}

_ADMIN_EXCLUDED = frozenset({
    PermissionKind.ORGANIZATION_CREATE,
    PermissionKind.ORGANIZATION_UPDATE,
    PermissionKind.ORGANIZATION_DELETE,
    PermissionKind.PERMISSION_MANAGE,
})

DEFAULT_ROLE_PERMISSIONS: Dict[RoleKind, FrozenSet[PermissionKind]] = {
    RoleKind.OWNER: frozenset(PermissionKind),
    RoleKind.ADMIN: frozenset(p for p in PermissionKind if p not in _ADMIN_EXCLUDED),
    RoleKind.VIEWER: frozenset(p for p in PermissionKind if p.action == "read"),
}

# Explicit (resource, action) table; keeps lookups from drifting with member names
RESOURCE_ACTION_PERMISSIONS: Dict[Tuple[str, str], PermissionKind] = {
    (p.resource, p.action): p for p in PermissionKind
}


def _coerce_role_kind(kind) -> Optional[RoleKind]:
    if isinstance(kind, RoleKind):
        return kind
    try:
        return RoleKind(kind)
    except ValueError:
        return None


def rank(kind) -> int:
    """Return the hierarchy rank of a role kind (0 for unknown kinds)."""
    role_kind = _coerce_role_kind(kind)
    if role_kind is None:
        return 0
    return ROLE_HIERARCHY[role_kind]


def default_permissions(kind) -> FrozenSet[PermissionKind]:
    """Return the permissions granted to a role kind by default."""
    role_kind = _coerce_role_kind(kind)
    if role_kind is None:
        return frozenset()
    return DEFAULT_ROLE_PERMISSIONS[role_kind]


def lookup_permission(resource: str, action: str) -> Optional[PermissionKind]:
    """
    Resolve a resource/action pair to a catalog permission.

    Matching is case-insensitive and ignores surrounding whitespace.

    Returns:
        The PermissionKind, or None when the pair is not in the catalog
    """
    if not isinstance(resource, str) or not isinstance(action, str):
        return None
    key = (resource.strip().lower(), action.strip().lower())
    return RESOURCE_ACTION_PERMISSIONS.get(key)


def coerce_permission(permission) -> Optional[PermissionKind]:
    """Accept a PermissionKind or its string value; None if not in the catalog."""
    if isinstance(permission, PermissionKind):
        return permission
    try:
        return PermissionKind(permission)
    except ValueError:
        return None
