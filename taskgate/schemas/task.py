"""
Task schemas.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from taskgate.kernel.models.task import TaskPriority, TaskStatus


def _clean_tags(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is None:
        return v
    seen = []
    for tag in v:
        tag = tag.strip()
        if tag and tag not in seen:
            seen.append(tag)
    return seen


class TaskCreate(BaseModel):
    """Task creation request. The organization always comes from the caller."""

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.TODO
    assignee_id: Optional[uuid.UUID] = None
    due_date: Optional[datetime] = None
    tags: List[str] = Field(default_factory=list)
    is_public: bool = False

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: List[str]) -> List[str]:
        return _clean_tags(v)


class TaskUpdate(BaseModel):
    """
    Partial task update.

    Only fields present in the request are applied; an explicit
    ``"assignee_id": null`` unassigns the task.
    """

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assignee_id: Optional[uuid.UUID] = None
    due_date: Optional[datetime] = None
    tags: Optional[List[str]] = None
    is_public: Optional[bool] = None

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, v: Optional[List[str]]) -> Optional[List[str]]:
        return _clean_tags(v)


class TaskFilters(BaseModel):
    """List filters and pagination."""

    page: int = Field(1, ge=1)
    limit: int = Field(20, ge=1, le=100)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    assignee_id: Optional[uuid.UUID] = None
    created_by_id: Optional[uuid.UUID] = None
    is_public: Optional[bool] = None
    search: Optional[str] = Field(None, max_length=255)


class TaskResponse(BaseModel):
    """Task response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    assignee_id: Optional[uuid.UUID] = None
    created_by_id: uuid.UUID
    organization_id: uuid.UUID
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    tags: List[str] = []
    is_public: bool
    is_overdue: bool = False
    created_at: datetime
    updated_at: datetime
