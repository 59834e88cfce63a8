"""
Append-only audit log for access decisions.

Every decision made by the access decision engine and the visibility policy
is recorded here, allowed or denied. The log exposes no update or delete
operation; ``clear`` exists for tests only.
"""

import threading
from abc import ABC, abstractmethod
from collections import deque
from datetime import datetime, timezone
from typing import Deque, List, Optional

from taskgate.kernel.audit.entries import AuditLogEntry, AuditQuery, AuditRecord
from taskgate.logging_config import AUDIT_LOGGER_NAME, get_logger, get_request_id

logger = get_logger(AUDIT_LOGGER_NAME)
store_logger = get_logger(__name__)


class AuditSink(ABC):
    """Interface for anything that can store and query decision records."""

    @abstractmethod
    def record(self, record: AuditRecord) -> AuditLogEntry:
        """Stamp and append a record."""

    @abstractmethod
    def query(self, query: Optional[AuditQuery] = None) -> List[AuditLogEntry]:
        """Return matching entries, newest first."""

    @abstractmethod
    def clear(self) -> None:
        """Drop every entry. Testing only."""

    @abstractmethod
    def __len__(self) -> int:
        ...


class InMemoryAuditLog(AuditSink):
    """
    Audit sink buffered in process memory.

    Appends and snapshots are serialised with a lock, so the log can be
    shared by concurrent requests on the event loop and by worker threads.
    Entries are totally ordered by their sequence number; timestamps never
    go backwards but may tie.

    Usage:
        audit_log = InMemoryAuditLog()
        audit_log.record(AuditRecord(
            user_id=principal.id,
            action="task:update",
            resource_type="task",
            resource_id=task.id,
            organization_id=principal.organization_id,
            success=False,
            reason="User lacks permission 'task:update'",
        ))
    """

    def __init__(self, max_entries: int = 0):
        self._lock = threading.Lock()
        self._entries: Deque[AuditLogEntry] = deque(maxlen=max_entries or None)
        if max_entries:
            store_logger.warning(
                "Audit log capped at %d entries; older decisions will be discarded", max_entries,
            )
        self._next_sequence = 1
        self._last_timestamp: Optional[datetime] = None

    def record(self, record: AuditRecord) -> AuditLogEntry:
        if record.request_id is None:
            request_id = get_request_id()
            if request_id:
                record = record.model_copy(update={"request_id": request_id})

        with self._lock:
            now = datetime.now(timezone.utc)
            if self._last_timestamp is not None and now < self._last_timestamp:
                now = self._last_timestamp
            entry = AuditLogEntry.stamp(record, sequence=self._next_sequence, timestamp=now)
            evicted = self._entries[0] if len(self._entries) == self._entries.maxlen else None
            self._entries.append(entry)
            self._next_sequence += 1
            self._last_timestamp = now

        if evicted is not None:
            store_logger.warning(
                "Audit entry %d discarded by the capacity limit",
                evicted.sequence,
                extra={"evicted_sequence": evicted.sequence, "capacity": self._entries.maxlen},
            )
        self._emit(entry)
        return entry

    def query(self, query: Optional[AuditQuery] = None) -> List[AuditLogEntry]:
        with self._lock:
            snapshot = list(self._entries)

        if query is not None:
            snapshot = [entry for entry in snapshot if query.matches(entry)]

        snapshot.sort(key=lambda e: (e.timestamp, e.sequence), reverse=True)
        return snapshot

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._last_timestamp = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @staticmethod
    def _emit(entry: AuditLogEntry) -> None:
        extra = {
            "audit_sequence": entry.sequence,
            "user_id": entry.user_id,
            "organization_id": entry.organization_id,
            "resource_id": entry.resource_id,
        }
        if entry.success:
            logger.info(
                "ALLOWED: %s attempted %s on %s",
                entry.user_id or "anonymous", entry.action, entry.resource_type,
                extra=extra,
            )
        else:
            logger.warning(
                "DENIED: %s attempted %s on %s (%s)",
                entry.user_id or "anonymous", entry.action, entry.resource_type,
                entry.reason or "no reason given",
                extra=extra,
            )
