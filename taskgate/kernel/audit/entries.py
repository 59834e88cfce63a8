"""
Audit log entry types.

Entries are frozen Pydantic models: once written they never change.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from taskgate.kernel.ids import normalize_id


class AuditRecord(BaseModel):
    """An access decision or operation outcome, before it is stamped."""

    model_config = ConfigDict(frozen=True)

    user_id: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    organization_id: Optional[str] = None
    success: bool
    reason: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    request_id: Optional[str] = None

    @field_validator("user_id", "resource_id", "organization_id", mode="before")
    @classmethod
    def _normalize_ids(cls, v: Any) -> Optional[str]:
        return normalize_id(v)


class AuditLogEntry(AuditRecord):
    """A stamped, appended audit record."""

    sequence: int
    timestamp: datetime

    @classmethod
    def stamp(cls, record: AuditRecord, sequence: int, timestamp: datetime) -> "AuditLogEntry":
        return cls(**record.model_dump(), sequence=sequence, timestamp=timestamp)


class AuditQuery(BaseModel):
    """
    Filters for reading the audit log.

    All provided filters must match. ``action`` and ``resource`` match as
    substrings; ``start`` and ``end`` are inclusive.
    """

    user_id: Optional[str] = None
    organization_id: Optional[str] = None
    action: Optional[str] = None
    resource: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @field_validator("user_id", "organization_id", mode="before")
    @classmethod
    def _normalize_ids(cls, v: Any) -> Optional[str]:
        if isinstance(v, uuid.UUID) or v:
            return normalize_id(v)
        return None

    @field_validator("start", "end")
    @classmethod
    def _assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # Entries are stamped in UTC; naive bounds are read as UTC too
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def matches(self, entry: AuditLogEntry) -> bool:
        if self.user_id and entry.user_id != self.user_id:
            return False
        if self.organization_id and entry.organization_id != self.organization_id:
            return False
        if self.action and self.action not in entry.action:
            return False
        if self.resource and self.resource not in entry.resource_type:
            return False
        if self.start and entry.timestamp < self.start:
            return False
        if self.end and entry.timestamp > self.end:
            return False
        return True
