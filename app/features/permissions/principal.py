"""
Request principals and permission resolution.

A Principal is built once per request from verified token claims. Its
permissions can come from two places:

- the token itself (a point-in-time snapshot taken at issuance), or
- a live lookup of the user's role assignments.

LayeredPermissionResolver picks between them: token claims when they carry a
non-empty permission set and freshness was not requested, live lookup
otherwise. Token claims can go stale if a role is revoked mid-session; that
window is accepted and tokens are not revoked.
"""
import dataclasses
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import config
from app.features.permissions.models import Role as RoleModel, UserRoleAssignment
from app.features.permissions.roles import permissions_for_roles
from app.utils import get_logger


log = get_logger(__name__)


def _ordered_unique(values: Iterable[Any]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(str(getattr(v, "value", v)) for v in values))


def _timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


@dataclass(frozen=True)
class Principal:
    """Authenticated identity for a single request. Never persisted."""

    user_id: str
    organization_id: str
    roles: Tuple[str, ...] = ()
    permissions: FrozenSet[str] = frozenset()
    email: Optional[str] = None
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "roles", _ordered_unique(self.roles))
        object.__setattr__(
            self, "permissions", frozenset(str(getattr(p, "value", p)) for p in self.permissions)
        )

    @classmethod
    def from_claims(cls, claims: Dict[str, Any]) -> "Principal":
        """Build a principal from a decoded token payload."""
        return cls(
            user_id=claims.get("sub") or claims.get("userId"),
            organization_id=claims.get("organizationId"),
            roles=claims.get("roles") or (),
            permissions=claims.get("permissions") or (),
            email=claims.get("email"),
            issued_at=_timestamp(claims.get("iat")),
            expires_at=_timestamp(claims.get("exp")),
        )

    def has_role(self, role: str) -> bool:
        return str(getattr(role, "value", role)) in self.roles

    def has_any_role(self, roles: Iterable[str]) -> bool:
        return any(self.has_role(role) for role in roles)

    def has_permission(self, permission: str) -> bool:
        return str(getattr(permission, "value", permission)) in self.permissions


class PrincipalResolver:
    """
    Looks up a user's roles and permissions within one organization.

    Assignments in other organizations are invisible. A user with no
    assignments gets empty results, not an error; deciding whether that is
    a denial is the authorization engine's job.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve_roles(self, user_id: str, organization_id: str) -> Tuple[str, ...]:
        stmt = (
            select(RoleModel.name)
            .join(UserRoleAssignment, UserRoleAssignment.role_id == RoleModel.id)
            .where(
                UserRoleAssignment.user_id == user_id,
                UserRoleAssignment.organization_id == organization_id,
            )
            .order_by(UserRoleAssignment.assigned_at, RoleModel.name)
        )
        result = await self.db.execute(stmt)
        return _ordered_unique(result.scalars().all())

    async def resolve_permissions(self, user_id: str, organization_id: str) -> FrozenSet[str]:
        roles = await self.resolve_roles(user_id, organization_id)
        return permissions_for_roles(roles)


@dataclass(frozen=True)
class ResolvedGrants:
    roles: Tuple[str, ...]
    permissions: FrozenSet[str]
    source: str


class PermissionStrategy:
    """Resolves the roles and permissions a principal holds in its organization."""

    name = "base"

    async def resolve(self, principal: Principal) -> ResolvedGrants:
        raise NotImplementedError


class TokenClaimsStrategy(PermissionStrategy):
    """Use the roles and permissions embedded in the principal's token."""

    name = "token"

    async def resolve(self, principal: Principal) -> ResolvedGrants:
        return ResolvedGrants(principal.roles, principal.permissions, self.name)


class LiveLookupStrategy(PermissionStrategy):
    """Re-resolve roles and permissions from the assignment store."""

    name = "live"

    def __init__(self, resolver: PrincipalResolver):
        self.resolver = resolver

    async def resolve(self, principal: Principal) -> ResolvedGrants:
        roles = await self.resolver.resolve_roles(principal.user_id, principal.organization_id)
        return ResolvedGrants(roles, permissions_for_roles(roles), self.name)


class LayeredPermissionResolver:
    """
    Token claims first, live lookup as the fallback.

    The live path is used when the token carries no permissions, when the
    caller passes ``fresh=True``, or when ``always_live`` is set
    (AUTHZ_ALWAYS_LIVE).
    """

    def __init__(
        self,
        token: PermissionStrategy,
        live: PermissionStrategy,
        always_live: bool = False,
    ):
        self.token = token
        self.live = live
        self.always_live = always_live

    @classmethod
    def for_session(cls, db: AsyncSession, always_live: Optional[bool] = None) -> "LayeredPermissionResolver":
        if always_live is None:
            always_live = config.AUTHZ_ALWAYS_LIVE
        return cls(TokenClaimsStrategy(), LiveLookupStrategy(PrincipalResolver(db)), always_live)

    async def resolve(self, principal: Principal, fresh: bool = False) -> ResolvedGrants:
        if not (fresh or self.always_live):
            grants = await self.token.resolve(principal)
            if grants.permissions:
                return grants

        grants = await self.live.resolve(principal)
        log.debug(
            "Resolved %d permissions for user %s in org %s via %s",
            len(grants.permissions), principal.user_id, principal.organization_id, grants.source,
        )
        return grants

    async def effective_principal(self, principal: Principal, fresh: bool = False) -> Principal:
        """Return a copy of ``principal`` carrying the resolved roles and permissions."""
        grants = await self.resolve(principal, fresh=fresh)
        return dataclasses.replace(principal, roles=grants.roles, permissions=grants.permissions)
