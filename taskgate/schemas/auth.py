"""
Authentication and user schemas.
"""

import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


def _check_password(v: str) -> str:
    if not any(c.isalpha() for c in v):
        raise ValueError("Password must contain at least one letter")
    if not any(c.isdigit() for c in v):
        raise ValueError("Password must contain at least one digit")
    return v


class UserCreate(BaseModel):
    """User registration request."""

    email: EmailStr
    username: str = Field(..., min_length=3, max_length=100)
    password: str = Field(..., min_length=6, max_length=128)
    first_name: str = Field(..., min_length=2, max_length=100)
    last_name: str = Field(..., min_length=2, max_length=100)
    organization_id: Optional[uuid.UUID] = None

    @field_validator("password")
    @classmethod
    def validate_password(cls, v: str) -> str:
        return _check_password(v)


class UserLogin(BaseModel):
    """User login request."""

    email: EmailStr
    password: str


class OrganizationSummary(BaseModel):
    """Organization as embedded in user payloads."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    parent_id: Optional[uuid.UUID] = None


class RoleSummary(BaseModel):
    """Role as embedded in user payloads."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    kind: str
    organization_id: uuid.UUID


class UserResponse(BaseModel):
    """User profile response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    email: str
    username: str
    first_name: str
    last_name: str
    organization_id: uuid.UUID
    role: Optional[RoleSummary] = None
    organization: Optional[OrganizationSummary] = None
    is_active: bool
    created_at: datetime


class TokenResponse(BaseModel):
    """Authentication token response."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int
    user: UserResponse


class RoleChangeRequest(BaseModel):
    """Move a user to another role of the same organization."""

    role_id: uuid.UUID


class EffectivePermissionsResponse(BaseModel):
    """What the current user may do."""

    user_id: uuid.UUID
    organization_id: Optional[uuid.UUID] = None
    role: Optional[str] = None
    permissions: List[str]
