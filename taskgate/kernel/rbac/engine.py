"""
Access decision engine.

Answers role, permission and resource/action questions about a principal
and records every answer in the audit log. Nothing here raises for bad
input: an unresolvable question is a denial with a reason.
"""

from typing import Any, FrozenSet, Iterable, Optional, Sequence

from taskgate.kernel.audit import AuditRecord, AuditSink
from taskgate.kernel.rbac import checks
from taskgate.kernel.rbac.catalog import PermissionKind, RoleKind, coerce_permission, lookup_permission
from taskgate.kernel.rbac.principal import Principal
from taskgate.kernel.rbac.requirements import AccessContext, AccessDecision, AccessRequirement

NO_USER_REASON = "No user found"

# Audit actions
ROLE_CHECK = "role_check"
PERMISSION_CHECK = "permission_check"
RESOURCE_ACCESS_CHECK = "resource_access_check"
OWNERSHIP_CHECK = "ownership_check"
ORGANIZATION_ACCESS_CHECK = "organization_access_check"
PERMISSION_INTROSPECTION = "permission_introspection"
ACCESS_CONTROL_CHECK = "access_control_check"


def _join(values: Iterable[Any]) -> str:
    return ", ".join(getattr(v, "value", str(v)) for v in values)


class AccessDecisionEngine:
    """
    RBAC decision engine.

    Every public method appends exactly one entry to the audit sink, whether
    access is allowed or denied. Decisions themselves are pure: the same
    inputs always give the same answer.

    Usage:
        engine = AccessDecisionEngine(audit_log)
        if not engine.has_permission(principal, PermissionKind.TASK_CREATE):
            raise HTTPException(status_code=403, ...)
    """

    def __init__(self, audit_log: AuditSink):
        self.audit_log = audit_log

    # Role checks

    def has_role(
        self,
        principal: Optional[Principal],
        kind: RoleKind,
        context: Optional[AccessContext] = None,
    ) -> bool:
        allowed = checks.has_role(principal, kind)
        self._record(
            principal, ROLE_CHECK, "role", allowed,
            f"User does not have required role: {_join([kind])}",
            context=context,
        )
        return allowed

    def has_any_role(
        self,
        principal: Optional[Principal],
        kinds: Sequence[RoleKind],
        context: Optional[AccessContext] = None,
    ) -> bool:
        allowed = checks.has_any_role(principal, kinds)
        self._record(
            principal, ROLE_CHECK, "role", allowed,
            f"User does not have required role(s): {_join(kinds)}",
            context=context,
        )
        return allowed

    def has_role_at_least(
        self,
        principal: Optional[Principal],
        kind: RoleKind,
        context: Optional[AccessContext] = None,
    ) -> bool:
        allowed = checks.has_role_at_least(principal, kind)
        self._record(
            principal, ROLE_CHECK, "role", allowed,
            f"User role '{checks.role_label(principal)}' is below required role: {_join([kind])}",
            context=context,
        )
        return allowed

    # Permission checks

    def has_permission(
        self,
        principal: Optional[Principal],
        permission: PermissionKind,
        context: Optional[AccessContext] = None,
    ) -> bool:
        allowed = checks.has_permission(principal, permission)
        kind = coerce_permission(permission)
        self._record(
            principal, PERMISSION_CHECK, kind.resource if kind else "permission", allowed,
            f"User lacks permission '{_join([permission])}'",
            context=context,
        )
        return allowed

    def has_any_permission(
        self,
        principal: Optional[Principal],
        permissions: Sequence[PermissionKind],
        context: Optional[AccessContext] = None,
    ) -> bool:
        allowed = checks.has_any_permission(principal, permissions)
        self._record(
            principal, PERMISSION_CHECK, "permission", allowed,
            f"User does not have any of the required permissions: {_join(permissions)}",
            context=context,
        )
        return allowed

    def has_all_permissions(
        self,
        principal: Optional[Principal],
        permissions: Sequence[PermissionKind],
        context: Optional[AccessContext] = None,
    ) -> bool:
        allowed = checks.has_all_permissions(principal, permissions)
        missing = [p for p in permissions if not checks.has_permission(principal, p)]
        self._record(
            principal, PERMISSION_CHECK, "permission", allowed,
            f"User is missing required permission(s): {_join(missing)}",
            context=context,
        )
        return allowed

    def effective_permissions(
        self,
        principal: Optional[Principal],
        context: Optional[AccessContext] = None,
    ) -> FrozenSet[PermissionKind]:
        permissions = checks.effective_permissions(principal)
        self._record(
            principal, PERMISSION_INTROSPECTION, "permission", principal is not None,
            NO_USER_REASON,
            context=context,
        )
        return permissions

    def can_access_resource(
        self,
        principal: Optional[Principal],
        resource_type: str,
        action: str,
        context: Optional[AccessContext] = None,
    ) -> bool:
        kind = lookup_permission(resource_type, action)
        allowed = kind is not None and checks.has_permission(principal, kind)
        if kind is None:
            reason = f"Unknown permission '{resource_type}:{action}'"
        else:
            reason = f"User lacks permission '{kind.value}' to perform '{action}' on '{resource_type}'"
        self._record(
            principal, RESOURCE_ACCESS_CHECK, str(resource_type), allowed, reason,
            context=context,
        )
        return allowed

    # Ownership and tenancy

    def is_owner(
        self,
        principal: Optional[Principal],
        resource_owner_id: Any,
        context: Optional[AccessContext] = None,
    ) -> bool:
        allowed = checks.is_owner(principal, resource_owner_id)
        self._record(
            principal, OWNERSHIP_CHECK, "resource", allowed,
            "User is not the owner of the resource",
            resource_id=resource_owner_id,
            context=context,
        )
        return allowed

    def belongs_to_organization(
        self,
        principal: Optional[Principal],
        organization_id: Any,
        context: Optional[AccessContext] = None,
    ) -> bool:
        allowed = checks.belongs_to_organization(principal, organization_id)
        self._record(
            principal, ORGANIZATION_ACCESS_CHECK, "organization", allowed,
            "User does not belong to the specified organization",
            resource_id=organization_id,
            context=context,
        )
        return allowed

    def can_access_organization_resource(
        self,
        principal: Optional[Principal],
        organization_id: Any,
        context: Optional[AccessContext] = None,
    ) -> bool:
        return self.belongs_to_organization(principal, organization_id, context=context)

    # Composite requirements

    def authorize(
        self,
        principal: Optional[Principal],
        requirement: AccessRequirement,
        context: Optional[AccessContext] = None,
    ) -> AccessDecision:
        """
        Evaluate a composite requirement.

        Within each part checks run in a fixed order (roles, permissions,
        resource/action, ownership, organization). Merged parts are
        evaluated in turn and the first failure denies. Exactly one audit
        entry is written for the whole evaluation.
        """
        context = context or AccessContext()
        decision = self._evaluate(principal, requirement, context)
        self._record(
            principal,
            ACCESS_CONTROL_CHECK,
            requirement.resource_type or "unknown",
            decision.allowed,
            decision.reason,
            resource_id=context.resource_id,
            context=context,
        )
        return decision

    def _evaluate(
        self,
        principal: Optional[Principal],
        requirement: AccessRequirement,
        context: AccessContext,
    ) -> AccessDecision:
        if principal is None:
            return AccessDecision.deny(NO_USER_REASON)
        for part in requirement.parts:
            decision = self._evaluate_part(principal, part, context)
            if not decision.allowed:
                return decision
        return AccessDecision.allow()

    @staticmethod
    def _evaluate_part(
        principal: Principal,
        requirement: AccessRequirement,
        context: AccessContext,
    ) -> AccessDecision:
        if requirement.roles:
            if requirement.allow_inheritance:
                has_required_role = checks.has_role_at_least(principal, requirement.roles[0])
            else:
                has_required_role = checks.has_any_role(principal, requirement.roles)
            if not has_required_role:
                return AccessDecision.deny(
                    f"User does not have required role(s): {_join(requirement.roles)}"
                )

        if requirement.permissions:
            if not checks.has_any_permission(principal, requirement.permissions):
                return AccessDecision.deny(
                    f"User does not have required permission(s): {_join(requirement.permissions)}"
                )

        if requirement.resource and requirement.action:
            if not checks.can_access_resource(principal, requirement.resource, requirement.action):
                return AccessDecision.deny(
                    f"User cannot perform '{requirement.action}' on '{requirement.resource}'"
                )

        if requirement.require_ownership:
            if context.resource_owner_id is None:
                return AccessDecision.deny("Resource ID not found for ownership check")
            if not checks.is_owner(principal, context.resource_owner_id):
                return AccessDecision.deny("User is not the owner of the resource")

        if requirement.require_organization_access:
            if context.organization_id is None:
                return AccessDecision.deny("Organization ID not found for access check")
            if not checks.belongs_to_organization(principal, context.organization_id):
                return AccessDecision.deny("User does not belong to the specified organization")

        return AccessDecision.allow()

    # Audit

    def record_decision(
        self,
        principal: Optional[Principal],
        action: str,
        resource_type: str,
        allowed: bool,
        reason: Optional[str] = None,
        resource_id: Any = None,
        context: Optional[AccessContext] = None,
    ) -> None:
        """Record an outcome decided outside the engine (e.g. a service operation)."""
        self._record(
            principal, action, resource_type, allowed, reason,
            resource_id=resource_id, context=context,
        )

    def _record(
        self,
        principal: Optional[Principal],
        action: str,
        resource_type: str,
        allowed: bool,
        reason: Optional[str],
        resource_id: Any = None,
        context: Optional[AccessContext] = None,
    ) -> None:
        if principal is None:
            allowed = False
            reason = NO_USER_REASON
        self.audit_log.record(AuditRecord(
            user_id=principal.id if principal else None,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id if resource_id is not None else (context.resource_id if context else None),
            organization_id=principal.organization_id if principal else None,
            success=allowed,
            reason=None if allowed else (reason or "Access denied"),
            ip_address=context.ip_address if context else None,
            user_agent=context.user_agent if context else None,
            request_id=context.request_id if context else None,
        ))
