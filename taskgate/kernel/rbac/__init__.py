"""
RBAC core - role hierarchy, permission catalog, decisions and visibility.
"""

from taskgate.kernel.rbac.catalog import (
    DEFAULT_ROLE_PERMISSIONS,
    ROLE_HIERARCHY,
    PermissionKind,
    RoleKind,
    default_permissions,
    lookup_permission,
    rank,
)
from taskgate.kernel.rbac.principal import PermissionGrant, Principal, RoleSnapshot
from taskgate.kernel.rbac.requirements import (
    AccessContext,
    AccessDecision,
    AccessRequirement,
    require_organization_access,
    require_ownership,
    require_permissions,
    require_resource_action,
    require_roles,
)
from taskgate.kernel.rbac.engine import AccessDecisionEngine
from taskgate.kernel.rbac.visibility import TaskVisibilityPolicy

__all__ = [
    # Catalog
    "DEFAULT_ROLE_PERMISSIONS",
    "ROLE_HIERARCHY",
    "PermissionKind",
    "RoleKind",
    "default_permissions",
    "lookup_permission",
    "rank",
    # Principal
    "PermissionGrant",
    "Principal",
    "RoleSnapshot",
    # Requirements
    "AccessContext",
    "AccessDecision",
    "AccessRequirement",
    "require_organization_access",
    "require_ownership",
    "require_permissions",
    "require_resource_action",
    "require_roles",
    # Decisions
    "AccessDecisionEngine",
    "TaskVisibilityPolicy",
]
