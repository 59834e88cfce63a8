"""
Kernel Data Models

Core SQLAlchemy models: organizations, roles and permissions, users, tasks.
"""

from taskgate.kernel.models.base import Base, IdMixin, TimestampMixin, SoftDeleteMixin, generate_uuid
from taskgate.kernel.models.organization import Organization
from taskgate.kernel.models.role import Permission, Role, role_permissions
from taskgate.kernel.models.user import User
from taskgate.kernel.models.task import Task, TaskPriority, TaskStatus

__all__ = [
    # Base
    "Base",
    "IdMixin",
    "TimestampMixin",
    "SoftDeleteMixin",
    "generate_uuid",
    # Tenancy
    "Organization",
    # RBAC
    "Permission",
    "Role",
    "role_permissions",
    # Identity
    "User",
    # Tasks
    "Task",
    "TaskPriority",
    "TaskStatus",
]
