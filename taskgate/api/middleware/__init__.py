"""
API middleware and route guards.
"""

from taskgate.api.middleware.access_control import build_access_context, require_access
from taskgate.api.middleware.request_id import REQUEST_ID_HEADER, RequestIdMiddleware

__all__ = [
    "build_access_context",
    "require_access",
    "REQUEST_ID_HEADER",
    "RequestIdMiddleware",
]
