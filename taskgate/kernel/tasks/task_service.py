"""
Task service: CRUD for tasks behind the visibility policy.
"""

import uuid
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.kernel.models import Task, User
from taskgate.kernel.rbac import (
    AccessContext,
    AccessDecisionEngine,
    PermissionKind,
    Principal,
    TaskVisibilityPolicy,
)
from taskgate.logging_config import get_logger
from taskgate.schemas.task import TaskCreate, TaskFilters, TaskUpdate

logger = get_logger(__name__)

# Columns that may not be cleared through a partial update
_REQUIRED_FIELDS = frozenset({"title", "status", "priority", "tags", "is_public"})


class TaskService:
    """
    Service for task operations.

    Every operation writes one operation-level audit entry (``create``,
    ``read``, ``update`` or ``delete`` on ``task``) recording the outcome,
    on top of the decision entries written by the engine and the policy.

    Failures are raised as:
        LookupError: task not found in the caller's organization
        PermissionError: the caller may not perform the operation
        ValueError: the request is invalid (e.g. unknown assignee)
    """

    def __init__(
        self,
        session: AsyncSession,
        engine: AccessDecisionEngine,
        policy: Optional[TaskVisibilityPolicy] = None,
    ):
        self.session = session
        self.engine = engine
        self.policy = policy or TaskVisibilityPolicy(engine)

    async def create_task(
        self,
        principal: Principal,
        data: TaskCreate,
        context: Optional[AccessContext] = None,
    ) -> Task:
        """
        Create a task in the caller's organization.

        Assigning on creation needs ``task:assign`` and an assignee from the
        same organization.
        """
        try:
            organization_id = self._organization_of(principal)
            if data.assignee_id is not None:
                await self._check_assignee(principal, organization_id, data.assignee_id, context)

            task = Task(
                title=data.title.strip(),
                description=data.description,
                status=data.status,
                priority=data.priority,
                assignee_id=data.assignee_id,
                due_date=data.due_date,
                tags=list(data.tags),
                is_public=data.is_public,
                created_by_id=uuid.UUID(principal.id),
                organization_id=organization_id,
            )
            self.session.add(task)
            await self.session.flush()
            await self.session.refresh(task)
        except (LookupError, PermissionError, ValueError) as exc:
            self._audit(principal, "create", False, str(exc), context=context)
            raise

        self._audit(principal, "create", True, resource_id=task.id, context=context)
        logger.info("Task created", extra={"task_id": str(task.id), "user_id": principal.id})
        return task

    async def list_tasks(
        self,
        principal: Principal,
        filters: Optional[TaskFilters] = None,
        context: Optional[AccessContext] = None,
    ) -> Tuple[List[Task], int]:
        """
        List the tasks the caller may see, newest first.

        Returns:
            Tuple of (page of tasks, total matching)
        """
        filters = filters or TaskFilters()
        try:
            organization_id = self._organization_of(principal)
        except PermissionError as exc:
            self._audit(principal, "read", False, str(exc), context=context)
            raise

        query = select(Task).where(
            Task.organization_id == organization_id,
            Task.deleted_at.is_(None),
            self.policy.list_filter(principal),
        )

        if filters.status is not None:
            query = query.where(Task.status == filters.status.value)
        if filters.priority is not None:
            query = query.where(Task.priority == filters.priority.value)
        if filters.assignee_id is not None:
            query = query.where(Task.assignee_id == filters.assignee_id)
        if filters.created_by_id is not None:
            query = query.where(Task.created_by_id == filters.created_by_id)
        if filters.is_public is not None:
            query = query.where(Task.is_public.is_(filters.is_public))
        if filters.search:
            pattern = f"%{filters.search.strip()}%"
            query = query.where(or_(Task.title.ilike(pattern), Task.description.ilike(pattern)))

        total = await self.session.scalar(
            select(func.count()).select_from(query.subquery())
        )

        query = (
            query.order_by(Task.created_at.desc(), Task.id.desc())
            .offset((filters.page - 1) * filters.limit)
            .limit(filters.limit)
        )
        result = await self.session.execute(query)
        tasks = list(result.scalars().all())

        self._audit(principal, "read", True, context=context)
        return tasks, total or 0

    async def get_task(
        self,
        principal: Principal,
        task_id: uuid.UUID,
        context: Optional[AccessContext] = None,
    ) -> Task:
        """Fetch one task the caller may read."""
        try:
            task = await self._load(principal, task_id)
            if not self.policy.can_read(principal, task, context=context):
                raise PermissionError("You do not have permission to view this task")
        except (LookupError, PermissionError) as exc:
            self._audit(principal, "read", False, str(exc), resource_id=task_id, context=context)
            raise

        self._audit(principal, "read", True, resource_id=task.id, context=context)
        return task

    async def update_task(
        self,
        principal: Principal,
        task_id: uuid.UUID,
        data: TaskUpdate,
        context: Optional[AccessContext] = None,
    ) -> Task:
        """
        Apply a partial update.

        Changing the assignee needs ``task:assign``; a new assignee must
        belong to the task's organization. The organization never changes.
        """
        changes = data.model_dump(exclude_unset=True)
        try:
            task = await self._load(principal, task_id)
            if not self.policy.can_modify(principal, task, context=context):
                raise PermissionError("You do not have permission to modify this task")

            if "assignee_id" in changes and changes["assignee_id"] != task.assignee_id:
                new_assignee = changes["assignee_id"]
                if new_assignee is not None:
                    await self._check_assignee(principal, task.organization_id, new_assignee, context)
                elif not self.engine.has_permission(principal, PermissionKind.TASK_ASSIGN, context=context):
                    raise PermissionError("You do not have permission to assign tasks")

            for field, value in changes.items():
                if value is None and field in _REQUIRED_FIELDS:
                    continue
                if field == "title":
                    value = value.strip()
                setattr(task, field, value)

            await self.session.flush()
            await self.session.refresh(task)
        except (LookupError, PermissionError, ValueError) as exc:
            self._audit(principal, "update", False, str(exc), resource_id=task_id, context=context)
            raise

        self._audit(principal, "update", True, resource_id=task.id, context=context)
        logger.info(
            "Task updated",
            extra={"task_id": str(task.id), "user_id": principal.id, "fields": sorted(changes)},
        )
        return task

    async def delete_task(
        self,
        principal: Principal,
        task_id: uuid.UUID,
        context: Optional[AccessContext] = None,
    ) -> None:
        """Soft-delete a task."""
        try:
            task = await self._load(principal, task_id)
            if not self.policy.can_delete(principal, task, context=context):
                raise PermissionError("You do not have permission to delete this task")
            task.soft_delete()
            await self.session.flush()
        except (LookupError, PermissionError) as exc:
            self._audit(principal, "delete", False, str(exc), resource_id=task_id, context=context)
            raise

        self._audit(principal, "delete", True, resource_id=task_id, context=context)
        logger.info("Task deleted", extra={"task_id": str(task_id), "user_id": principal.id})

    # Helpers

    @staticmethod
    def _organization_of(principal: Principal) -> uuid.UUID:
        try:
            return uuid.UUID(principal.organization_id)
        except (TypeError, ValueError):
            raise PermissionError("User does not belong to an organization") from None

    async def _load(self, principal: Principal, task_id: uuid.UUID) -> Task:
        """Live task in the caller's organization; anything else is not found."""
        organization_id = self._organization_of(principal)
        result = await self.session.execute(
            select(Task).where(
                Task.id == task_id,
                Task.organization_id == organization_id,
                Task.deleted_at.is_(None),
            )
        )
        task = result.scalar_one_or_none()
        if task is None:
            raise LookupError("Task not found")
        return task

    async def _check_assignee(
        self,
        principal: Principal,
        organization_id: uuid.UUID,
        assignee_id: uuid.UUID,
        context: Optional[AccessContext],
    ) -> None:
        result = await self.session.execute(
            select(User.id).where(
                User.id == assignee_id,
                User.organization_id == organization_id,
                User.deleted_at.is_(None),
                User.is_active.is_(True),
            )
        )
        if result.first() is None:
            raise ValueError("Assignee not found or not in the same organization")
        if not self.engine.has_permission(principal, PermissionKind.TASK_ASSIGN, context=context):
            raise PermissionError("You do not have permission to assign tasks")

    def _audit(
        self,
        principal: Principal,
        action: str,
        success: bool,
        reason: Optional[str] = None,
        resource_id=None,
        context: Optional[AccessContext] = None,
    ) -> None:
        self.engine.record_decision(
            principal, action, "task", success, reason,
            resource_id=resource_id, context=context,
        )
