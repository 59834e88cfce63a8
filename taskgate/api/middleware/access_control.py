"""
Access control enforcement - one dependency per protected route.
"""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from taskgate.api.deps import AccessEngine, OptionalUser, get_client_ip, get_request_id, get_user_agent
from taskgate.kernel.rbac import AccessContext, AccessRequirement, Principal


def _param(request: Request, name: str) -> Optional[str]:
    value = request.path_params.get(name)
    if value is None:
        value = request.query_params.get(name)
    return value


def build_access_context(request: Request, requirement: AccessRequirement) -> AccessContext:
    """
    Collect the request values a requirement refers to.

    Ownership and organization ids are read from the path first, then the
    query string. The first path parameter is taken as the resource id.
    """
    path_values = list(request.path_params.values())
    return AccessContext(
        resource_owner_id=_param(request, requirement.owner_param) if requirement.owner_param else None,
        organization_id=(
            _param(request, requirement.organization_scope_param)
            if requirement.organization_scope_param else None
        ),
        resource_id=path_values[0] if path_values else None,
        ip_address=get_client_ip(request),
        user_agent=get_user_agent(request),
        request_id=get_request_id(request),
    )


def require_access(requirement: AccessRequirement):
    """
    Dependency that authorizes the current user against ``requirement``.

    The decision is audited even for anonymous requests. Anonymous requests
    get 401, denials get 403 with the decision's reason. Resolves to the
    authorized ``Principal``.

    Usage:
        @router.post("")
        async def create_task(
            principal: Annotated[Principal, require_access(require_permissions(PermissionKind.TASK_CREATE))],
        ):
            ...
    """

    async def _check(
        request: Request,
        user: OptionalUser,
        engine: AccessEngine,
    ) -> Principal:
        principal = Principal.from_user(user) if user is not None else None
        decision = engine.authorize(principal, requirement, build_access_context(request, requirement))

        if principal is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Not authenticated",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if not decision:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=decision.reason,
            )
        return principal

    return Depends(_check)
