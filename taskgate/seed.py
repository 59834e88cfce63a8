"""
Database bootstrap.

Creates the permission catalog rows, the default organization tree and one
role per role kind in every seeded organization. Safe to run repeatedly.

Run directly:
    python -m taskgate.seed
"""

import asyncio
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.config import get_settings
from taskgate.kernel.identity.password import hash_password
from taskgate.kernel.models import Organization, Permission, Role, User
from taskgate.kernel.rbac.catalog import PermissionKind, RoleKind
from taskgate.logging_config import get_logger

logger = get_logger(__name__)

ROLE_NAMES = {
    RoleKind.OWNER: ("Organization Owner", "Full access to all resources"),
    RoleKind.ADMIN: ("Organization Admin", "Administrative access to most resources"),
    RoleKind.VIEWER: ("Organization Viewer", "Read-only access to resources"),
}

CHILD_ORGANIZATION_NAME = "Development Team"


def _permission_name(kind: PermissionKind) -> str:
    return f"{kind.action.title()} {kind.resource.title()}"


async def seed_permissions(session: AsyncSession) -> int:
    """Insert any missing catalog permissions. Returns how many were created."""
    result = await session.execute(select(Permission.kind))
    existing = {str(kind) for kind in result.scalars().all()}

    created = 0
    for kind in PermissionKind:
        if kind.value in existing:
            continue
        session.add(Permission(
            name=_permission_name(kind),
            kind=kind.value,
            resource=kind.resource,
            action=kind.action,
        ))
        created += 1

    await session.flush()
    return created


async def ensure_organization_roles(
    session: AsyncSession,
    organization: Organization,
) -> Dict[RoleKind, Role]:
    """
    Make sure an organization has one active role per kind.

    Seeded roles carry no explicit grants; their kind's defaults apply.
    """
    result = await session.execute(
        select(Role).where(
            Role.organization_id == organization.id,
            Role.deleted_at.is_(None),
        )
    )
    roles: Dict[RoleKind, Role] = {}
    for role in result.scalars().all():
        try:
            kind = RoleKind(role.kind)
        except ValueError:
            continue
        roles.setdefault(kind, role)

    for kind, (name, description) in ROLE_NAMES.items():
        if kind in roles:
            continue
        role = Role(
            name=name,
            kind=kind.value,
            description=description,
            organization_id=organization.id,
            permissions=[],
        )
        session.add(role)
        roles[kind] = role

    await session.flush()
    return roles


async def get_or_create_organization(
    session: AsyncSession,
    name: str,
    description: Optional[str] = None,
    parent: Optional[Organization] = None,
) -> Organization:
    result = await session.execute(
        select(Organization).where(
            Organization.name == name,
            Organization.deleted_at.is_(None),
        )
    )
    organization = result.scalars().first()
    if organization is None:
        organization = Organization(
            name=name,
            description=description,
            parent_id=parent.id if parent else None,
        )
        session.add(organization)
        await session.flush()
        logger.info("Created organization", extra={"organization": name})
    return organization


async def seed_database(session: AsyncSession) -> Organization:
    """
    Seed permissions, the root organization with a child team, and roles.

    When ``seed_admin_email`` and ``seed_admin_password`` are configured an
    Owner account is created in the root organization as well.

    Returns:
        The root organization
    """
    settings = get_settings()

    created = await seed_permissions(session)
    root = await get_or_create_organization(
        session,
        settings.default_organization_name,
        description="The root organization for the system",
    )
    child = await get_or_create_organization(
        session,
        CHILD_ORGANIZATION_NAME,
        description="Development team organization",
        parent=root,
    )
    root_roles = await ensure_organization_roles(session, root)
    await ensure_organization_roles(session, child)

    if settings.seed_admin_email and settings.seed_admin_password:
        email = settings.seed_admin_email.lower().strip()
        result = await session.execute(select(User).where(User.email == email))
        if result.scalar_one_or_none() is None:
            session.add(User(
                email=email,
                username="admin",
                password_hash=hash_password(settings.seed_admin_password),
                first_name="System",
                last_name="Administrator",
                organization_id=root.id,
                role_id=root_roles[RoleKind.OWNER].id,
            ))
            await session.flush()
            logger.info("Created seed owner account", extra={"email": email})

    await session.commit()
    logger.info("Database seeded", extra={"permissions_created": created})
    return root


async def _main() -> None:
    from taskgate.database import async_session_maker, close_db, init_db
    from taskgate.logging_config import configure_logging

    settings = get_settings()
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
        audit_level=settings.audit_log_level,
    )
    await init_db()
    async with async_session_maker() as session:
        await seed_database(session)
    await close_db()


if __name__ == "__main__":
    asyncio.run(_main())
