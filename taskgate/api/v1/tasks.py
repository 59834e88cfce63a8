"""
Task endpoints.
"""

import uuid
from datetime import datetime
from typing import Annotated, Optional

from fastapi import APIRouter, HTTPException, Query, Response, status

from taskgate.api.deps import AuditLog, RequestContext, TaskServiceDep
from taskgate.api.middleware.access_control import require_access
from taskgate.kernel.audit import AuditQuery
from taskgate.kernel.models.task import TaskPriority, TaskStatus
from taskgate.kernel.rbac import (
    PermissionKind,
    Principal,
    RoleKind,
    require_permissions,
    require_roles,
)
from taskgate.schemas.audit import AuditLogEntryResponse, AuditLogResponse
from taskgate.schemas.common import PaginatedResponse
from taskgate.schemas.task import TaskCreate, TaskFilters, TaskResponse, TaskUpdate

router = APIRouter()

CanCreateTasks = Annotated[Principal, require_access(require_permissions(PermissionKind.TASK_CREATE))]
CanReadTasks = Annotated[Principal, require_access(require_permissions(PermissionKind.TASK_READ))]
CanUpdateTasks = Annotated[Principal, require_access(require_permissions(PermissionKind.TASK_UPDATE))]
CanDeleteTasks = Annotated[Principal, require_access(require_permissions(PermissionKind.TASK_DELETE))]
CanReadAuditLog = Annotated[
    Principal,
    require_access(
        require_permissions(PermissionKind.PERMISSION_READ).merge(
            require_roles(RoleKind.OWNER, RoleKind.ADMIN)
        )
    ),
]


def _raise_for(exc: Exception) -> None:
    if isinstance(exc, LookupError):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, PermissionError):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    data: TaskCreate,
    principal: CanCreateTasks,
    service: TaskServiceDep,
    context: RequestContext,
):
    """Create a task in the caller's organization."""
    try:
        task = await service.create_task(principal, data, context=context)
    except (LookupError, PermissionError, ValueError) as e:
        _raise_for(e)
    return TaskResponse.model_validate(task)


@router.get("", response_model=PaginatedResponse[TaskResponse])
async def list_tasks(
    principal: CanReadTasks,
    service: TaskServiceDep,
    context: RequestContext,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[TaskStatus] = Query(None, alias="status"),
    priority: Optional[TaskPriority] = None,
    assignee_id: Optional[uuid.UUID] = None,
    created_by_id: Optional[uuid.UUID] = None,
    is_public: Optional[bool] = None,
    search: Optional[str] = Query(None, max_length=255),
):
    """
    List tasks visible to the caller, newest first.

    Admins and Owners see every task of their organization; other roles see
    public tasks and the tasks they created or are assigned to.
    """
    filters = TaskFilters(
        page=page,
        limit=limit,
        status=status_filter,
        priority=priority,
        assignee_id=assignee_id,
        created_by_id=created_by_id,
        is_public=is_public,
        search=search,
    )
    try:
        tasks, total = await service.list_tasks(principal, filters, context=context)
    except PermissionError as e:
        _raise_for(e)

    return PaginatedResponse[TaskResponse].create(
        items=[TaskResponse.model_validate(t) for t in tasks],
        total=total,
        page=page,
        page_size=limit,
    )


@router.get("/audit-log", response_model=AuditLogResponse)
async def get_audit_log(
    principal: CanReadAuditLog,
    audit_log: AuditLog,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    user_id: Optional[uuid.UUID] = None,
    action: Optional[str] = None,
    resource: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
):
    """
    Access decisions recorded for the caller's organization, newest first.

    ``action`` and ``resource`` match as substrings; the date range is inclusive.
    """
    entries = audit_log.query(AuditQuery(
        user_id=user_id,
        organization_id=principal.organization_id,
        action=action,
        resource=resource,
        start=start_date,
        end=end_date,
    ))
    start = (page - 1) * limit
    return AuditLogResponse(
        items=[AuditLogEntryResponse.model_validate(e) for e in entries[start:start + limit]],
        total=len(entries),
        page=page,
        page_size=limit,
    )


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: uuid.UUID,
    principal: CanReadTasks,
    service: TaskServiceDep,
    context: RequestContext,
):
    """Get one task."""
    try:
        task = await service.get_task(principal, task_id, context=context)
    except (LookupError, PermissionError) as e:
        _raise_for(e)
    return TaskResponse.model_validate(task)


@router.put("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: uuid.UUID,
    data: TaskUpdate,
    principal: CanUpdateTasks,
    service: TaskServiceDep,
    context: RequestContext,
):
    """Update a task the caller may modify."""
    try:
        task = await service.update_task(principal, task_id, data, context=context)
    except (LookupError, PermissionError, ValueError) as e:
        _raise_for(e)
    return TaskResponse.model_validate(task)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: uuid.UUID,
    principal: CanDeleteTasks,
    service: TaskServiceDep,
    context: RequestContext,
):
    """Soft-delete a task."""
    try:
        await service.delete_task(principal, task_id, context=context)
    except (LookupError, PermissionError) as e:
        _raise_for(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
