"""
Pytest fixtures for Taskgate tests.
"""

import os
import tempfile
import uuid
from typing import AsyncGenerator, Callable, Iterable, Optional

# Point the app at a throwaway SQLite file before any taskgate import reads settings
_tmp = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_tmp.close()
TEST_DB_PATH = _tmp.name
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["SEED_ON_STARTUP"] = "false"
os.environ["ENVIRONMENT"] = "test"

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from taskgate.config import get_settings

get_settings.cache_clear()

from taskgate.kernel.audit import InMemoryAuditLog
from taskgate.kernel.identity import IdentityService
from taskgate.kernel.identity.jwt import JWTManager
from taskgate.kernel.models import Base, Organization, User
from taskgate.kernel.rbac import (
    AccessDecisionEngine,
    PermissionGrant,
    PermissionKind,
    Principal,
    RoleKind,
    RoleSnapshot,
    TaskVisibilityPolicy,
)
from taskgate.seed import ensure_organization_roles, seed_permissions


def pytest_sessionfinish(session, exitstatus):
    """Clean up temp DB file after test run."""
    for suffix in ("", "-wal", "-shm"):
        path = TEST_DB_PATH + suffix
        if os.path.exists(path):
            os.unlink(path)


# Authorization core

@pytest.fixture
def audit_log() -> InMemoryAuditLog:
    return InMemoryAuditLog()


@pytest.fixture
def engine(audit_log: InMemoryAuditLog) -> AccessDecisionEngine:
    return AccessDecisionEngine(audit_log)


@pytest.fixture
def policy(engine: AccessDecisionEngine) -> TaskVisibilityPolicy:
    return TaskVisibilityPolicy(engine)


@pytest.fixture
def make_principal() -> Callable[..., Principal]:
    """
    Factory for principals.

    Usage:
        viewer = make_principal(RoleKind.VIEWER, organization_id="org-1")
    """

    def _make(
        kind: Optional[RoleKind] = RoleKind.VIEWER,
        organization_id: Optional[str] = "org-1",
        user_id: Optional[str] = None,
        grants: Iterable[PermissionKind] = (),
        inactive_grants: Iterable[PermissionKind] = (),
        role_active: bool = True,
        role_deleted: bool = False,
    ) -> Principal:
        role = None
        if kind is not None:
            role = RoleSnapshot(
                id=f"role-{kind.value}",
                name=kind.value.title(),
                kind=kind,
                organization_id=organization_id,
                is_active=role_active,
                is_deleted=role_deleted,
                permissions=tuple(
                    [PermissionGrant(kind=p) for p in grants]
                    + [PermissionGrant(kind=p, is_active=False) for p in inactive_grants]
                ),
            )
        return Principal(
            id=user_id or str(uuid.uuid4()),
            organization_id=organization_id,
            role=role,
        )

    return _make


@pytest.fixture
def jwt_manager() -> JWTManager:
    """Create a JWT manager for tests."""
    return JWTManager(
        secret_key="test-secret-key-for-testing-only",
        algorithm="HS256",
        access_token_expire_minutes=30,
    )


# Database

@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite engine shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    session_maker = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def organization(db_session: AsyncSession) -> Organization:
    """An organization with its three roles and the permission catalog."""
    await seed_permissions(db_session)
    org = Organization(name=f"Org {uuid.uuid4().hex[:6]}")
    db_session.add(org)
    await db_session.flush()
    await ensure_organization_roles(db_session, org)
    return org


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory creating a user with the given role kind in an organization."""

    async def _make(org: Organization, kind: RoleKind = RoleKind.VIEWER) -> User:
        roles = await ensure_organization_roles(db_session, org)
        suffix = uuid.uuid4().hex[:8]
        user = User(
            email=f"user-{suffix}@example.com",
            username=f"user-{suffix}",
            password_hash="not-a-real-hash",
            first_name="Test",
            last_name="User",
            organization_id=org.id,
            role_id=roles[kind].id,
        )
        db_session.add(user)
        await db_session.flush()
        # Reload with role, grants and organization attached
        return await IdentityService(db_session).get_user_by_id(user.id)

    return _make
