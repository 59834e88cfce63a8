"""
FastAPI dependencies for authentication, authorization, and database sessions.
"""

import uuid
from typing import Annotated, AsyncGenerator, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.database import session_scope
from taskgate.kernel.audit import AuditSink
from taskgate.kernel.identity.identity_service import IdentityService
from taskgate.kernel.identity.jwt import JWTManager
from taskgate.kernel.models.user import User
from taskgate.kernel.rbac import AccessContext, AccessDecisionEngine, Principal, TaskVisibilityPolicy
from taskgate.kernel.tasks import TaskService


# Security scheme
security = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request, committed when the handler returns."""
    async with session_scope() as session:
        yield session


DbSession = Annotated[AsyncSession, Depends(get_db)]


async def _resolve_user(token: str, db: AsyncSession) -> Optional[User]:
    payload = JWTManager().verify_access_token(token)
    if not payload:
        return None
    try:
        user_id = uuid.UUID(payload.sub)
    except ValueError:
        return None
    return await IdentityService(db).get_user_by_id(user_id)


async def get_current_user_optional(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: DbSession,
) -> Optional[User]:
    """Get current user if authenticated, None otherwise."""
    if not credentials:
        return None

    user = await _resolve_user(credentials.credentials, db)
    if not user or not user.is_active:
        return None

    return user


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: DbSession,
) -> User:
    """Get current authenticated user or raise 401."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await _resolve_user(credentials.credentials, db)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is disabled",
        )

    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
OptionalUser = Annotated[Optional[User], Depends(get_current_user_optional)]


async def get_current_principal(user: CurrentUser) -> Principal:
    """Immutable view of the current user for the authorization core."""
    return Principal.from_user(user)


CurrentPrincipal = Annotated[Principal, Depends(get_current_principal)]


def get_audit_log(request: Request) -> AuditSink:
    """Process-wide audit log created at startup."""
    return request.app.state.audit_log


def get_access_engine(request: Request) -> AccessDecisionEngine:
    return request.app.state.access_engine


AuditLog = Annotated[AuditSink, Depends(get_audit_log)]
AccessEngine = Annotated[AccessDecisionEngine, Depends(get_access_engine)]


def get_request_id(request: Request) -> Optional[str]:
    """Get request correlation ID (set by RequestIdMiddleware)."""
    return getattr(request.state, "request_id", None)


def get_client_ip(request: Request) -> Optional[str]:
    """Extract client IP from request."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


def get_user_agent(request: Request) -> Optional[str]:
    """Extract user agent from request."""
    return request.headers.get("User-Agent")


def get_access_context(request: Request) -> AccessContext:
    """Request metadata attached to every audit entry."""
    return AccessContext(
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
        request_id=get_request_id(request),
    )


RequestContext = Annotated[AccessContext, Depends(get_access_context)]


def get_task_service(db: DbSession, engine: AccessEngine) -> TaskService:
    return TaskService(db, engine, TaskVisibilityPolicy(engine))


TaskServiceDep = Annotated[TaskService, Depends(get_task_service)]
