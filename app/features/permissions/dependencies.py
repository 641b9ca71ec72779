"""
FastAPI dependencies for permission resolution.

Routes receive collaborators explicitly through these dependencies; the
actual policy decisions stay visible at the call site via
app.features.permissions.engine.
"""
from typing import Annotated
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.principal import LayeredPermissionResolver, Principal
from app.features.users.dependencies import get_current_principal


async def get_permission_resolver(
    db: Annotated[AsyncSession, Depends(get_db)],
) -> LayeredPermissionResolver:
    return LayeredPermissionResolver.for_session(db)


async def get_effective_principal(
    principal: Annotated[Principal, Depends(get_current_principal)],
    resolver: Annotated[LayeredPermissionResolver, Depends(get_permission_resolver)],
) -> Principal:
    """
    The request principal with roles and permissions resolved.

    Usage:
        @router.get("/audit-logs/users/{user_id}")
        async def history(principal: Principal = Depends(get_effective_principal)):
            ensure_authorized(principal, org_id, Permission.VIEW_AUDIT_LOG)
    """
    return await resolver.effective_principal(principal)
