"""
Request correlation.

Each request gets an id that ends up in three places: the ``X-Request-ID``
response header, every log line written while it runs, and every audit
entry it produces.
"""

import re
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from taskgate.logging_config import get_logger, request_id_var

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
SLOW_REQUEST_MS = 1000

# Client ids are copied into audit entries verbatim; anything else is replaced
_ACCEPTED_ID = re.compile(r"[A-Za-z0-9._:\-]{1,128}")


def resolve_request_id(incoming: Optional[str]) -> str:
    """Reuse a well-formed client-supplied id, otherwise mint a UUID4."""
    candidate = (incoming or "").strip()
    if candidate and _ACCEPTED_ID.fullmatch(candidate):
        return candidate
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind a request id for the duration of the request and log the outcome."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = request_id
        token = request_id_var.set(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
            elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
            response.headers[REQUEST_ID_HEADER] = request_id

            details = {
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
            }
            if elapsed_ms > SLOW_REQUEST_MS:
                logger.warning("Slow request", extra=details)
            else:
                logger.debug("Request handled", extra=details)
            return response
        finally:
            request_id_var.reset(token)
