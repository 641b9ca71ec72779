"""
User feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.core.errors import AuthorizationDenied, ResourceNotFound
from app.features.permissions.dependencies import get_effective_principal
from app.features.permissions.engine import DenialReason, ensure_member, ensure_roles
from app.features.permissions.principal import Principal
from app.features.permissions.roles import Role
from app.features.users.models import User
from app.features.users.schemas import UserResponse, PrincipalProfile


router = APIRouter()


@router.get("/me", response_model=PrincipalProfile)
async def get_current_user_profile(
    principal: Annotated[Principal, Depends(get_effective_principal)],
):
    """The caller's identity with effective roles and permissions."""
    return PrincipalProfile(
        user_id=principal.user_id,
        email=principal.email,
        organization_id=principal.organization_id,
        roles=list(principal.roles),
        permissions=sorted(principal.permissions),
        expires_at=principal.expires_at,
    )


@router.get("/organization/{organization_id}", response_model=list[UserResponse])
async def list_organization_users(
    organization_id: str,
    principal: Annotated[Principal, Depends(get_effective_principal)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """List the users of an organization (OWNER or ADMIN of that organization)."""
    ensure_roles(principal, organization_id, [Role.OWNER, Role.ADMIN])

    result = await db.execute(
        select(User)
        .where(User.organization_id == organization_id)
        .order_by(User.email)
    )
    return result.scalars().all()


@router.get("/{user_id}", response_model=UserResponse)
async def get_user_by_id(
    user_id: str,
    principal: Annotated[Principal, Depends(get_effective_principal)],
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """Get a user in the caller's organization."""
    ensure_member(principal, principal.organization_id)

    user = await db.get(User, user_id)
    if user is None:
        raise ResourceNotFound("User not found")

    if user.organization_id != principal.organization_id:
        raise AuthorizationDenied(
            DenialReason.RESOURCE_NOT_IN_ORGANIZATION.value,
            "Access denied: User is not in your organization",
        )

    return user
