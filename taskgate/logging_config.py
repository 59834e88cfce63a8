"""
Logging for the Taskgate service.

Every record carries the id of the request that produced it. Production
output is one JSON object per line; access-decision records from the
audit logger keep their fields together under an ``audit`` key so they
can be shipped to a separate index. Development output is plain text.

Usage:
    from taskgate.logging_config import get_logger
    logger = get_logger(__name__)
    logger.info("Task created", extra={"task_id": str(task.id)})
"""

import json
import logging
import sys
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Callable, Optional

AUDIT_LOGGER_NAME = "taskgate.rbac.audit"

# Set by RequestIdMiddleware for the lifetime of one request
request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

# extra= keys written by the audit log
AUDIT_FIELDS = ("audit_sequence", "user_id", "organization_id", "resource_id")

_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", (), None))
) | {"message", "asctime", "request_id"}

_base_record_factory: Optional[Callable[..., logging.LogRecord]] = None


def get_request_id() -> Optional[str]:
    return request_id_var.get()


class RequestContextFilter(logging.Filter):
    """Stamp the current request id (or ``-``) on each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id() or "-"  # type: ignore[attr-defined]
        return True


def _jsonable(value: Any) -> Any:
    try:
        json.dumps(value)
    except (TypeError, ValueError):
        return str(value)
    return value


class JsonFormatter(logging.Formatter):
    """One JSON document per record."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None)
        if request_id and request_id != "-":
            payload["request_id"] = request_id

        extras = {
            key: _jsonable(value)
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS and value is not None
        }
        if record.name == AUDIT_LOGGER_NAME:
            payload["audit"] = {
                "outcome": "allowed" if record.levelno < logging.WARNING else "denied",
                **{key: extras.pop(key) for key in AUDIT_FIELDS if key in extras},
            }
        payload.update(extras)

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


class DevFormatter(logging.Formatter):
    """Single-line text; audit records get their sequence number appended."""

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s %(levelname)-7s %(name)s [%(request_id)s] %(message)s",
            datefmt="%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        sequence = getattr(record, "audit_sequence", None)
        if record.name == AUDIT_LOGGER_NAME and sequence is not None:
            line = f"{line} #{sequence}"
        return line


def _install_record_factory() -> None:
    # Records created outside a handler (e.g. caplog) still need request_id
    global _base_record_factory
    if _base_record_factory is not None:
        return
    _base_record_factory = base = logging.getLogRecordFactory()

    def factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
        record = base(*args, **kwargs)
        if not hasattr(record, "request_id"):
            record.request_id = "-"  # type: ignore[attr-defined]
        return record

    logging.setLogRecordFactory(factory)


def configure_logging(
    *,
    log_level: str = "INFO",
    environment: str = "development",
    debug: bool = False,
    audit_level: str = "INFO",
) -> None:
    """
    Install the root handler. Safe to call more than once.

    Args:
        log_level: Root level name; ``debug=True`` forces DEBUG
        environment: ``production`` switches to JSON output
        audit_level: Level for the access-decision logger. ``WARNING``
            keeps denials and drops the allowed decisions.
    """
    level = logging.DEBUG if debug else logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    _install_record_factory()

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(JsonFormatter() if environment == "production" else DevFormatter())

    root = logging.getLogger()
    for existing in root.handlers[:]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    logging.getLogger(AUDIT_LOGGER_NAME).setLevel(audit_level.upper())
    for noisy in ("uvicorn.access", "sqlalchemy.engine", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Module logger; pass structured fields through ``extra=``."""
    return logging.getLogger(name)
