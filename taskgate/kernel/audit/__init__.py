"""
Append-only audit log of access decisions.
"""

from taskgate.kernel.audit.entries import AuditLogEntry, AuditQuery, AuditRecord
from taskgate.kernel.audit.audit_log import AuditSink, InMemoryAuditLog

__all__ = [
    "AuditLogEntry",
    "AuditQuery",
    "AuditRecord",
    "AuditSink",
    "InMemoryAuditLog",
]
