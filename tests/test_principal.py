"""Principal construction, role resolution and permission strategies."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.permissions.principal import (
    LayeredPermissionResolver,
    LiveLookupStrategy,
    Principal,
    PrincipalResolver,
    TokenClaimsStrategy,
)
from app.features.permissions.roles import Permission, Role
from app.features.permissions.service import assign_role, revoke_role
from app.features.users.auth import verify_jwt_token


pytestmark = pytest.mark.asyncio


ALL_PERMISSIONS = {p.value for p in Permission}


async def test_principal_from_token_claims(tenants) -> None:
    token = tenants.viewer.token(permissions=["READ_TASK", "CREATE_TASK"])

    principal = Principal.from_claims(verify_jwt_token(token))

    assert principal.user_id == tenants.viewer.id
    assert principal.organization_id == tenants.org_a
    assert principal.roles == ("VIEWER",)
    assert principal.permissions == {"READ_TASK", "CREATE_TASK"}
    assert principal.email == "viewer@techcorp.com"
    assert principal.expires_at is not None


async def test_resolver_is_scoped_to_organization(db: AsyncSession, tenants) -> None:
    resolver = PrincipalResolver(db)

    assert await resolver.resolve_roles(tenants.owner.id, tenants.org_a) == ("OWNER",)
    assert await resolver.resolve_permissions(tenants.owner.id, tenants.org_a) == ALL_PERMISSIONS
    # Roles in org A say nothing about org B
    assert await resolver.resolve_roles(tenants.owner.id, tenants.org_b) == ()
    assert await resolver.resolve_permissions(tenants.owner.id, tenants.org_b) == frozenset()


async def test_resolver_unknown_user_gets_empty_results(db: AsyncSession, tenants) -> None:
    resolver = PrincipalResolver(db)

    assert await resolver.resolve_roles("no-such-user", tenants.org_a) == ()
    assert await resolver.resolve_permissions("no-such-user", tenants.org_a) == frozenset()


async def test_resolver_unions_multiple_roles(db: AsyncSession, tenants) -> None:
    await assign_role(db, tenants.viewer.id, Role.ADMIN, tenants.org_a)
    await db.commit()

    resolver = PrincipalResolver(db)

    assert await resolver.resolve_roles(tenants.viewer.id, tenants.org_a) == ("VIEWER", "ADMIN")
    assert await resolver.resolve_permissions(tenants.viewer.id, tenants.org_a) == ALL_PERMISSIONS


async def test_assign_role_rejects_duplicates_and_unknown_roles(db: AsyncSession, tenants) -> None:
    with pytest.raises(ValueError):
        await assign_role(db, tenants.viewer.id, Role.VIEWER, tenants.org_a)
    with pytest.raises(ValueError):
        await assign_role(db, tenants.viewer.id, "SUPERUSER", tenants.org_a)


async def test_revoked_role_disappears_from_live_lookup(db: AsyncSession, tenants) -> None:
    assert await revoke_role(db, tenants.admin.id, Role.ADMIN, tenants.org_a)
    await db.commit()

    resolver = PrincipalResolver(db)
    assert await resolver.resolve_permissions(tenants.admin.id, tenants.org_a) == frozenset()
    assert not await revoke_role(db, tenants.admin.id, Role.ADMIN, tenants.org_a)


async def test_token_claims_preferred_when_present(db: AsyncSession, tenants) -> None:
    resolver = LayeredPermissionResolver.for_session(db, always_live=False)
    principal = Principal(
        user_id=tenants.viewer.id,
        organization_id=tenants.org_a,
        roles=("VIEWER",),
        permissions={"READ_TASK", "CREATE_TASK"},
    )

    grants = await resolver.resolve(principal)

    assert grants.source == TokenClaimsStrategy.name
    assert grants.permissions == {"READ_TASK", "CREATE_TASK"}


async def test_live_lookup_when_token_carries_no_permissions(db: AsyncSession, tenants) -> None:
    resolver = LayeredPermissionResolver.for_session(db, always_live=False)
    principal = Principal(user_id=tenants.admin.id, organization_id=tenants.org_a)

    effective = await resolver.effective_principal(principal)

    assert effective.roles == ("ADMIN",)
    assert effective.permissions == ALL_PERMISSIONS
    # The input principal is left untouched
    assert principal.permissions == frozenset()


async def test_fresh_and_always_live_bypass_token_claims(db: AsyncSession, tenants) -> None:
    # The token still claims ADMIN permissions after the role was revoked
    principal = Principal(
        user_id=tenants.admin.id,
        organization_id=tenants.org_a,
        roles=("ADMIN",),
        permissions=ALL_PERMISSIONS,
    )
    await revoke_role(db, tenants.admin.id, Role.ADMIN, tenants.org_a)
    await db.commit()

    layered = LayeredPermissionResolver.for_session(db, always_live=False)
    assert (await layered.resolve(principal)).permissions == ALL_PERMISSIONS

    fresh = await layered.resolve(principal, fresh=True)
    assert fresh.source == LiveLookupStrategy.name
    assert fresh.permissions == frozenset()

    always_live = LayeredPermissionResolver.for_session(db, always_live=True)
    assert (await always_live.resolve(principal)).permissions == frozenset()
