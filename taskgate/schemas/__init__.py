"""
Pydantic schemas for API request/response validation.
"""

from taskgate.schemas.auth import (
    UserCreate,
    UserLogin,
    UserResponse,
    TokenResponse,
    RoleChangeRequest,
    EffectivePermissionsResponse,
)
from taskgate.schemas.task import (
    TaskCreate,
    TaskUpdate,
    TaskFilters,
    TaskResponse,
)
from taskgate.schemas.audit import (
    AuditLogEntryResponse,
    AuditLogResponse,
)
from taskgate.schemas.common import (
    PaginatedResponse,
    ErrorResponse,
    HealthResponse,
    ValidationErrorResponse,
)

__all__ = [
    # Auth
    "UserCreate",
    "UserLogin",
    "UserResponse",
    "TokenResponse",
    "RoleChangeRequest",
    "EffectivePermissionsResponse",
    # Tasks
    "TaskCreate",
    "TaskUpdate",
    "TaskFilters",
    "TaskResponse",
    # Audit
    "AuditLogEntryResponse",
    "AuditLogResponse",
    # Common
    "PaginatedResponse",
    "ErrorResponse",
    "HealthResponse",
    "ValidationErrorResponse",
]
