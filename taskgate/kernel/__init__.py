"""
Kernel Layer

Foundational components the API is built on:
- Data models (organizations, roles, users, tasks)
- RBAC decision engine and task visibility policy
- Append-only audit log of every access decision
- Identity (password hashing, JWT, user lifecycle)

Invariants:
- Every access decision is logged, allowed or denied
- Audit entries are never modified or removed
- Nothing crosses an organization boundary
"""

from taskgate.kernel.models import (
    Organization,
    Permission,
    Role,
    Task,
    TaskPriority,
    TaskStatus,
    User,
)

__all__ = [
    "Organization",
    "Permission",
    "Role",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "User",
]
