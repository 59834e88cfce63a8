"""
Response envelopes shared by every route: error bodies, paging, health.
"""

from typing import Any, Dict, Generic, Iterable, List, Optional, TypeVar
from pydantic import BaseModel

T = TypeVar("T")


class ErrorResponse(BaseModel):
    """Body of every 4xx/5xx answer."""

    detail: str
    request_id: Optional[str] = None
    type: Optional[str] = None


class FieldError(BaseModel):
    field: str
    message: str
    type: str


class ValidationErrorResponse(BaseModel):
    """422 body; one entry per rejected input location."""

    detail: str = "Validation error"
    errors: List[FieldError] = []

    @classmethod
    def from_errors(cls, errors: Iterable[Dict[str, Any]]) -> "ValidationErrorResponse":
        """Flatten pydantic error dicts; ``loc`` becomes a dotted path like ``body.title``."""
        return cls(
            errors=[
                FieldError(
                    field=".".join(str(part) for part in error.get("loc", ())),
                    message=error.get("msg", ""),
                    type=error.get("type", "value_error"),
                )
                for error in errors
            ]
        )


class PaginatedResponse(BaseModel, Generic[T]):
    """One page of a listing plus the count of everything that matched."""

    items: List[T]
    total: int
    page: int = 1
    page_size: int = 20
    total_pages: int = 0
    has_more: bool = False

    @classmethod
    def create(
        cls,
        items: List[T],
        total: int,
        page: int = 1,
        page_size: int = 20,
    ) -> "PaginatedResponse[T]":
        total_pages = -(-total // page_size) if page_size else 0
        return cls(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            total_pages=total_pages,
            has_more=page < total_pages,
        )


class HealthResponse(BaseModel):
    """Liveness plus the state of the database and the audit trail."""

    status: str = "ok"
    version: str
    database: str = "connected"
    audit_entries: int = 0
