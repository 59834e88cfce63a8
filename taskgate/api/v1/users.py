"""
User endpoints: organization members, effective permissions, role changes.
"""

import uuid
from typing import Annotated, List

from fastapi import APIRouter, HTTPException, status

from taskgate.api.deps import AccessEngine, CurrentPrincipal, CurrentUser, DbSession, RequestContext
from taskgate.api.middleware.access_control import require_access
from taskgate.kernel.identity.identity_service import IdentityService
from taskgate.kernel.rbac import PermissionKind, Principal, require_permissions
from taskgate.kernel.rbac.checks import role_label
from taskgate.schemas.auth import EffectivePermissionsResponse, RoleChangeRequest, UserResponse

router = APIRouter()


@router.get("/me/permissions", response_model=EffectivePermissionsResponse)
async def get_my_permissions(
    principal: CurrentPrincipal,
    engine: AccessEngine,
    context: RequestContext,
):
    """Effective permissions of the current user: role defaults plus explicit grants."""
    permissions = engine.effective_permissions(principal, context=context)
    return EffectivePermissionsResponse(
        user_id=principal.id,
        organization_id=principal.organization_id,
        role=role_label(principal) if principal.active_role else None,
        permissions=sorted(p.value for p in permissions),
    )


@router.get("", response_model=List[UserResponse])
async def list_users(
    principal: Annotated[Principal, require_access(require_permissions(PermissionKind.USER_READ))],
    db: DbSession,
):
    """Users of the caller's organization."""
    users = await IdentityService(db).list_organization_users(uuid.UUID(principal.organization_id))
    return [UserResponse.model_validate(u) for u in users]


@router.put("/{user_id}/role", response_model=UserResponse)
async def change_user_role(
    user_id: uuid.UUID,
    data: RoleChangeRequest,
    user: CurrentUser,
    db: DbSession,
    engine: AccessEngine,
    context: RequestContext,
):
    """
    Move a user to another role of the same organization.

    Requires ``role:assign`` and a strictly higher role than both the
    target user and the new role.
    """
    try:
        updated = await IdentityService(db).change_role(
            actor=user,
            user_id=user_id,
            role_id=data.role_id,
            engine=engine,
            context=context,
        )
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))

    return UserResponse.model_validate(updated)
