"""
Task visibility policy.

Composes role, permission, ownership and tenancy rules into read, modify,
delete and listing decisions for tasks. Works on any object exposing
``id``, ``organization_id``, ``created_by_id``, ``assignee_id`` and
``is_public``, so ORM rows and plain records are both accepted.
"""

import uuid
from typing import Any, Optional, Tuple

from sqlalchemy import and_, false, or_

from taskgate.kernel.ids import normalize_id
from taskgate.kernel.models.task import Task
from taskgate.kernel.rbac import checks
from taskgate.kernel.rbac.catalog import PermissionKind, RoleKind
from taskgate.kernel.rbac.engine import AccessDecisionEngine
from taskgate.kernel.rbac.principal import Principal
from taskgate.kernel.rbac.requirements import AccessContext

# Role kinds allowed to modify any task in their organization
ELEVATED_ROLES = (RoleKind.ADMIN, RoleKind.OWNER)


def _same_organization(principal: Principal, task: Any) -> bool:
    return checks.belongs_to_organization(principal, task.organization_id)


def _is_creator(principal: Principal, task: Any) -> bool:
    return checks.is_owner(principal, task.created_by_id)


def _is_assignee(principal: Principal, task: Any) -> bool:
    return task.assignee_id is not None and checks.is_owner(principal, task.assignee_id)


class TaskVisibilityPolicy:
    """
    Who may see and change a task.

    Read access is granted when any of these holds:
    1. The task is public and the requester is in the task's organization
    2. The requester created the task
    3. The requester is the assignee
    4. The requester is in the task's organization and holds task:read

    Modification requires the matching permission, membership of the task's
    organization, and being creator, assignee, or an Admin/Owner.

    Every ``can_*`` call writes one audit entry.
    """

    def __init__(self, engine: AccessDecisionEngine):
        self.engine = engine

    def can_read(
        self,
        principal: Optional[Principal],
        task: Any,
        context: Optional[AccessContext] = None,
    ) -> bool:
        allowed, reason = self._read_decision(principal, task)
        self.engine.record_decision(
            principal, PermissionKind.TASK_READ.value, "task", allowed, reason,
            resource_id=task.id, context=context,
        )
        return allowed

    def can_modify(
        self,
        principal: Optional[Principal],
        task: Any,
        context: Optional[AccessContext] = None,
    ) -> bool:
        allowed, reason = self._write_decision(principal, task, PermissionKind.TASK_UPDATE)
        self.engine.record_decision(
            principal, PermissionKind.TASK_UPDATE.value, "task", allowed, reason,
            resource_id=task.id, context=context,
        )
        return allowed

    def can_delete(
        self,
        principal: Optional[Principal],
        task: Any,
        context: Optional[AccessContext] = None,
    ) -> bool:
        allowed, reason = self._write_decision(principal, task, PermissionKind.TASK_DELETE)
        self.engine.record_decision(
            principal, PermissionKind.TASK_DELETE.value, "task", allowed, reason,
            resource_id=task.id, context=context,
        )
        return allowed

    @staticmethod
    def is_listed(principal: Optional[Principal], task: Any) -> bool:
        """Row-level form of ``list_filter``. Not audited."""
        if principal is None or not _same_organization(principal, task):
            return False
        if checks.has_any_role(principal, ELEVATED_ROLES):
            return True
        return bool(task.is_public) or _is_creator(principal, task) or _is_assignee(principal, task)

    @staticmethod
    def list_filter(principal: Principal):
        """
        SQLAlchemy criterion restricting a task query to what the principal may list.

        Admins and Owners see every task in their organization; everyone else
        sees public tasks plus tasks they created or are assigned to.
        """
        if principal is None or principal.organization_id is None:
            return false()

        try:
            organization_id = uuid.UUID(principal.organization_id)
            user_id = uuid.UUID(principal.id)
        except ValueError:
            return false()

        in_organization = Task.organization_id == organization_id
        if checks.has_any_role(principal, ELEVATED_ROLES):
            return in_organization

        return and_(
            in_organization,
            or_(
                Task.is_public.is_(True),
                Task.created_by_id == user_id,
                Task.assignee_id == user_id,
            ),
        )

    # Decisions

    @staticmethod
    def _read_decision(principal: Optional[Principal], task: Any) -> Tuple[bool, Optional[str]]:
        if principal is None:
            return False, "No user found"
        same_org = _same_organization(principal, task)
        if task.is_public and same_org:
            return True, None
        if _is_creator(principal, task) or _is_assignee(principal, task):
            return True, None
        if same_org and checks.has_permission(principal, PermissionKind.TASK_READ):
            return True, None
        if not same_org:
            return False, "Task belongs to another organization"
        return False, f"User lacks permission '{PermissionKind.TASK_READ.value}'"

    @staticmethod
    def _write_decision(
        principal: Optional[Principal],
        task: Any,
        permission: PermissionKind,
    ) -> Tuple[bool, Optional[str]]:
        if principal is None:
            return False, "No user found"
        if not checks.has_permission(principal, permission):
            return False, f"User lacks permission '{permission.value}'"
        if not _same_organization(principal, task):
            return False, "Task belongs to another organization"
        if _is_creator(principal, task) or _is_assignee(principal, task):
            return True, None
        if checks.has_any_role(principal, ELEVATED_ROLES):
            return True, None
        return False, (
            f"User is neither creator nor assignee of task {normalize_id(task.id)} "
            f"and role '{checks.role_label(principal)}' cannot modify others' tasks"
        )
