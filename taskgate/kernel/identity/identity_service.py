"""
Identity service for user management operations.
"""

import uuid
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from taskgate.config import get_settings
from taskgate.kernel.identity.jwt import AccessToken, JWTManager
from taskgate.kernel.identity.password import hash_password, verify_password
from taskgate.kernel.models import Organization, Role, User
from taskgate.kernel.rbac import AccessContext, AccessDecisionEngine, PermissionKind, Principal, RoleKind
from taskgate.logging_config import get_logger

logger = get_logger(__name__)


class DuplicateUserError(ValueError):
    """Email or username already taken."""


def _kind_value(kind) -> str:
    # Enum members when set in-process, plain strings when loaded
    return getattr(kind, "value", kind)


def _user_query():
    return (
        select(User)
        .options(
            selectinload(User.role).selectinload(Role.permissions),
            selectinload(User.organization),
        )
        .execution_options(populate_existing=True)
    )


class IdentityService:
    """
    Service for user identity operations.

    Handles registration, authentication and role reassignment.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.jwt_manager = JWTManager()

    async def register_user(
        self,
        email: str,
        username: str,
        password: str,
        first_name: str,
        last_name: str,
        organization_id: Optional[uuid.UUID] = None,
    ) -> User:
        """
        Register a new user.

        The user joins ``organization_id`` (or the default organization).
        The first member of an organization becomes its Owner; everyone
        after that starts as a Viewer.

        Raises:
            DuplicateUserError: If email or username already exists
            ValueError: If the organization does not exist
        """
        email = email.lower().strip()
        username = username.strip()

        existing = await self.session.execute(
            select(User.id).where(or_(User.email == email, User.username == username))
        )
        if existing.first() is not None:
            raise DuplicateUserError("User with this email or username already exists")

        organization = await self._resolve_organization(organization_id)
        if organization is None:
            raise ValueError("Organization not found")

        # Local import: seed depends on this package for password hashing
        from taskgate.seed import ensure_organization_roles

        roles = await ensure_organization_roles(self.session, organization)
        member_count = await self.session.scalar(
            select(func.count(User.id)).where(
                User.organization_id == organization.id,
                User.deleted_at.is_(None),
            )
        )
        kind = RoleKind.OWNER if not member_count else RoleKind.VIEWER

        user = User(
            email=email,
            username=username,
            password_hash=hash_password(password),
            first_name=first_name.strip(),
            last_name=last_name.strip(),
            organization_id=organization.id,
            role_id=roles[kind].id,
        )
        self.session.add(user)
        await self.session.flush()

        logger.info(
            "User registered",
            extra={"user_id": str(user.id), "organization_id": str(organization.id), "role": kind.value},
        )
        return await self.get_user_by_id(user.id)

    async def authenticate(
        self,
        email: str,
        password: str,
    ) -> Optional[Tuple[User, AccessToken]]:
        """
        Authenticate a user and issue an access token.

        Returns:
            Tuple of (User, AccessToken) if successful, None otherwise
        """
        user = await self.get_user_by_email(email)
        if not user or not user.is_active:
            return None

        if not verify_password(password, user.password_hash):
            logger.info("Login failed", extra={"user_id": str(user.id)})
            return None

        token = self.jwt_manager.create_access_token(
            user_id=user.id,
            email=user.email,
            username=user.username,
            role=_kind_value(user.role.kind) if user.role else None,
            organization_id=user.organization_id,
        )
        return user, token

    async def get_user_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        """Get a live user by ID, with role, role permissions and organization loaded."""
        query = _user_query().where(User.id == user_id, User.deleted_at.is_(None))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """Get a live user by email."""
        query = _user_query().where(User.email == email.lower().strip(), User.deleted_at.is_(None))
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def list_organization_users(self, organization_id: uuid.UUID) -> List[User]:
        """Live users of one organization, oldest first."""
        query = (
            _user_query()
            .where(User.organization_id == organization_id, User.deleted_at.is_(None))
            .order_by(User.created_at.asc())
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def change_role(
        self,
        actor: User,
        user_id: uuid.UUID,
        role_id: uuid.UUID,
        engine: AccessDecisionEngine,
        context: Optional[AccessContext] = None,
    ) -> User:
        """
        Move a user to another role of the same organization.

        The actor must hold ``role:assign``, outrank the target user and
        outrank the new role.

        Raises:
            LookupError: Target user or role not found in the actor's organization
            PermissionError: The actor may not make this change
        """
        principal = Principal.from_user(actor)
        if not engine.has_permission(principal, PermissionKind.ROLE_ASSIGN, context=context):
            raise PermissionError(f"User lacks permission '{PermissionKind.ROLE_ASSIGN.value}'")

        target = await self.get_user_by_id(user_id)
        if target is None or target.organization_id != actor.organization_id:
            raise LookupError("User not found")

        result = await self.session.execute(
            select(Role)
            .options(selectinload(Role.permissions))
            .where(
                Role.id == role_id,
                Role.organization_id == actor.organization_id,
                Role.deleted_at.is_(None),
                Role.is_active.is_(True),
            )
        )
        new_role = result.scalar_one_or_none()
        if new_role is None:
            raise LookupError("Role not found")

        reason = None
        if not actor.can_manage(target):
            reason = "Cannot manage a user with an equal or higher role"
        elif actor.role is None or not actor.role.is_higher_than(new_role):
            reason = "Cannot assign a role equal to or higher than your own"

        engine.record_decision(
            principal, PermissionKind.ROLE_ASSIGN.value, "user", reason is None, reason,
            resource_id=target.id, context=context,
        )
        if reason is not None:
            raise PermissionError(reason)

        previous = _kind_value(target.role.kind) if target.role else None
        target.role_id = new_role.id
        target.role = new_role
        await self.session.flush()

        logger.info(
            "User role changed",
            extra={
                "user_id": str(target.id),
                "changed_by": str(actor.id),
                "old_role": previous,
                "new_role": _kind_value(new_role.kind),
            },
        )
        return target

    async def _resolve_organization(self, organization_id: Optional[uuid.UUID]) -> Optional[Organization]:
        if organization_id is not None:
            query = select(Organization).where(Organization.id == organization_id)
        else:
            query = select(Organization).where(Organization.name == get_settings().default_organization_name)
        result = await self.session.execute(
            query.where(Organization.deleted_at.is_(None), Organization.is_active.is_(True))
        )
        organization = result.scalars().first()
        if organization is None and organization_id is None:
            organization = Organization(name=get_settings().default_organization_name)
            self.session.add(organization)
            await self.session.flush()
        return organization
