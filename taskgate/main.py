"""
Taskgate API application.

``create_app()`` wires one audit log and one access decision engine per
application instance; the module-level ``app`` is what uvicorn serves.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taskgate.api.middleware.request_id import REQUEST_ID_HEADER, RequestIdMiddleware
from taskgate.api.v1 import router as api_v1_router
from taskgate.config import Settings, get_settings
from taskgate.database import async_session_maker, close_db, init_db, ping_db
from taskgate.kernel.audit import InMemoryAuditLog
from taskgate.kernel.rbac import AccessDecisionEngine, RoleKind, rank
from taskgate.logging_config import configure_logging, get_logger
from taskgate.schemas.common import ErrorResponse, HealthResponse, ValidationErrorResponse
from taskgate.seed import seed_database

logger = get_logger(__name__)

API_DESCRIPTION = """
Multi-tenant task management with role-based access control.

- **Tasks** belong to exactly one organization and never leave it.
- **Roles** rank Owner > Admin > Viewer; each role carries explicit grants
  on top of its defaults.
- **Audit log**: every access decision, allowed or denied, is appended and
  never rewritten.

Anything not explicitly allowed is denied.
"""


def _request_headers(request: Request) -> dict:
    request_id = getattr(request.state, "request_id", None)
    return {REQUEST_ID_HEADER: request_id} if request_id else {}


def _install_error_handlers(app: FastAPI, settings: Settings) -> None:
    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        """401/403/404/409 bodies are always ``{"detail": ...}``."""
        headers = _request_headers(request)
        headers.update(exc.headers or {})
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(detail=str(exc.detail)).model_dump(exclude_none=True),
            headers=headers,
        )

    @app.exception_handler(RequestValidationError)
    async def invalid_request(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=ValidationErrorResponse.from_errors(exc.errors()).model_dump(),
            headers=_request_headers(request),
        )

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        # Internals are only echoed back in debug mode
        logger.exception("Unhandled %s on %s %s", type(exc).__name__, request.method, request.url.path)
        body = ErrorResponse(
            detail=str(exc) if settings.debug else "Internal server error",
            request_id=getattr(request.state, "request_id", None),
            type=type(exc).__name__ if settings.debug else None,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=body.model_dump(exclude_none=True),
            headers=_request_headers(request),
        )


def create_app(settings: Settings) -> FastAPI:
    """Build the API: state, middleware, error handlers and routes."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(
            log_level=settings.log_level,
            environment=settings.environment,
            debug=settings.debug,
            audit_level=settings.audit_log_level,
        )
        logger.info(
            "Starting %s %s",
            settings.project_name,
            settings.version,
            extra={"environment": settings.environment},
        )
        await init_db()
        if settings.seed_on_startup:
            async with async_session_maker() as session:
                await seed_database(session)
        yield
        logger.info(
            "Stopping %s",
            settings.project_name,
            extra={"audit_entries": len(app.state.audit_log)},
        )
        await close_db()

    app = FastAPI(
        title=settings.project_name,
        description=API_DESCRIPTION,
        version=settings.version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    app.state.audit_log = InMemoryAuditLog(max_entries=settings.audit_log_max_entries)
    app.state.access_engine = AccessDecisionEngine(app.state.audit_log)

    # Added last, so CORS wraps the request id middleware
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
    )

    _install_error_handlers(app, settings)

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health(request: Request):
        """Degraded when the database does not answer."""
        reachable = await ping_db()
        return HealthResponse(
            status="ok" if reachable else "degraded",
            version=settings.version,
            database="connected" if reachable else "unavailable",
            audit_entries=len(request.app.state.audit_log),
        )

    @app.get("/", tags=["Root"])
    async def index():
        return {
            "name": settings.project_name,
            "version": settings.version,
            "api": settings.api_v1_prefix,
            "roles": [kind.value for kind in sorted(RoleKind, key=rank, reverse=True)],
            "docs": "/docs" if settings.debug else None,
        }

    app.include_router(api_v1_router, prefix=settings.api_v1_prefix)
    return app


app = create_app(get_settings())


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("taskgate.main:app", host="0.0.0.0", port=8000, reload=get_settings().debug)
