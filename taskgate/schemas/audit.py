"""
Audit log schemas.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class AuditLogEntryResponse(BaseModel):
    """One recorded access decision."""

    model_config = ConfigDict(from_attributes=True)

    sequence: int
    timestamp: datetime
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


class AuditLogResponse(BaseModel):
    """Filtered slice of the audit log, newest first."""

    items: List[AuditLogEntryResponse]
    total: int
    page: int
    page_size: int
