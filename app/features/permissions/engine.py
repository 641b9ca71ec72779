"""
Authorization engine.

Decides whether a principal may exercise a permission, optionally against a
concrete resource. Checks run in a fixed order and stop at the first
failure, each failure carrying its own reason:

1. organization membership  - principal's organization == claimed organization
2. permission               - required permission in the principal's set
3. resource organization    - resource's organization == claimed organization
4. ownership override       - UPDATE/DELETE only: creator, or a privileged role

Checks 1-3 are tenant isolation and apply to every protected operation.
Check 4 is a per-operation business rule on top of them.

The engine is pure: it does no I/O and expects an already-resolved
principal (see principal.LayeredPermissionResolver).
"""
import enum
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Optional, Protocol

from app.core.errors import AuthorizationDenied
from app.features.permissions.principal import Principal
from app.features.permissions.roles import Role
from app.utils import get_logger


log = get_logger(__name__)


class Operation(str, enum.Enum):
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class DenialReason(str, enum.Enum):
    NOT_ORGANIZATION_MEMBER = "not member of organization"
    MISSING_PERMISSION = "missing permission"
    RESOURCE_NOT_IN_ORGANIZATION = "resource not in organization"
    INSUFFICIENT_OWNERSHIP = "insufficient ownership/role for operation"
    MISSING_ROLE = "missing role"


DENIAL_MESSAGES: Dict[DenialReason, str] = {
    DenialReason.NOT_ORGANIZATION_MEMBER: "User does not belong to the specified organization",
    DenialReason.MISSING_PERMISSION: "User does not have the required permission",
    DenialReason.RESOURCE_NOT_IN_ORGANIZATION: "Resource does not belong to your organization",
    DenialReason.INSUFFICIENT_OWNERSHIP: "Only the creator or a privileged role may perform this operation",
    DenialReason.MISSING_ROLE: "User does not have a role allowed to perform this operation",
}

# Roles that may act on a resource they did not create
OVERRIDE_ROLES: Dict[Operation, FrozenSet[str]] = {
    Operation.UPDATE: frozenset({Role.ADMIN.value, Role.OWNER.value}),
    Operation.DELETE: frozenset({Role.OWNER.value}),
}


class ResourceRef(Protocol):
    """Anything with an owning organization and a creator."""

    organization_id: str
    created_by: str


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    reason: Optional[DenialReason] = None

    @classmethod
    def allow(cls) -> "AuthorizationDecision":
        return cls(True)

    @classmethod
    def deny(cls, reason: DenialReason) -> "AuthorizationDecision":
        return cls(False, reason)

    def __bool__(self) -> bool:
        return self.allowed


def _permission_name(permission) -> str:
    return str(getattr(permission, "value", permission))


def _deny(principal: Principal, reason: DenialReason, subject: str) -> AuthorizationDecision:
    log.info("Denied user=%s org=%s %s: %s", principal.user_id, principal.organization_id, subject, reason.value)
    return AuthorizationDecision.deny(reason)


def authorize(
    principal: Principal,
    claimed_organization_id: str,
    required_permission,
    resource: Optional[ResourceRef] = None,
    operation: Optional[Operation] = None,
) -> AuthorizationDecision:
    """
    Decide whether ``principal`` may exercise ``required_permission``.

    Args:
        principal: Resolved principal for the request
        claimed_organization_id: Organization the request claims to act in
        required_permission: Permission name (str or Permission)
        resource: Already-fetched target resource, if any
        operation: Operation being performed on ``resource``; only UPDATE and
            DELETE trigger the ownership check

    Returns:
        AuthorizationDecision; falsy on denial, with ``reason`` set
    """
    permission = _permission_name(required_permission)

    if principal.organization_id != claimed_organization_id:
        return _deny(principal, DenialReason.NOT_ORGANIZATION_MEMBER, permission)

    if permission not in principal.permissions:
        return _deny(principal, DenialReason.MISSING_PERMISSION, permission)

    if resource is None:
        return AuthorizationDecision.allow()

    if resource.organization_id != claimed_organization_id:
        return _deny(principal, DenialReason.RESOURCE_NOT_IN_ORGANIZATION, permission)

    if operation is not None:
        override_roles = OVERRIDE_ROLES.get(Operation(operation))
        if override_roles is not None:
            is_creator = resource.created_by == principal.user_id
            if not is_creator and not principal.has_any_role(override_roles):
                return _deny(principal, DenialReason.INSUFFICIENT_OWNERSHIP, f"{permission} ({Operation(operation).value})")

    return AuthorizationDecision.allow()


def authorize_roles(
    principal: Principal,
    claimed_organization_id: str,
    allowed_roles: Iterable[str],
) -> AuthorizationDecision:
    """Require membership in the claimed organization and any of ``allowed_roles``."""
    allowed = [str(getattr(role, "value", role)) for role in allowed_roles]

    if principal.organization_id != claimed_organization_id:
        return _deny(principal, DenialReason.NOT_ORGANIZATION_MEMBER, f"roles {allowed}")

    if not principal.has_any_role(allowed):
        return _deny(principal, DenialReason.MISSING_ROLE, f"roles {allowed}")

    return AuthorizationDecision.allow()


def authorize_membership(principal: Principal, claimed_organization_id: str) -> AuthorizationDecision:
    """Only the organization membership check, for reads scoped to the caller's own organization."""
    if principal.organization_id != claimed_organization_id:
        return _deny(principal, DenialReason.NOT_ORGANIZATION_MEMBER, "membership")
    return AuthorizationDecision.allow()


def _raise_for(decision: AuthorizationDecision) -> None:
    if not decision.allowed:
        raise AuthorizationDenied(decision.reason.value, DENIAL_MESSAGES[decision.reason])


def ensure_authorized(
    principal: Principal,
    claimed_organization_id: str,
    required_permission,
    resource: Optional[ResourceRef] = None,
    operation: Optional[Operation] = None,
) -> None:
    """Like authorize(), but raises AuthorizationDenied on denial."""
    _raise_for(authorize(principal, claimed_organization_id, required_permission, resource, operation))


def ensure_roles(principal: Principal, claimed_organization_id: str, allowed_roles: Iterable[str]) -> None:
    """Like authorize_roles(), but raises AuthorizationDenied on denial."""
    _raise_for(authorize_roles(principal, claimed_organization_id, allowed_roles))


def ensure_member(principal: Principal, claimed_organization_id: str) -> None:
    _raise_for(authorize_membership(principal, claimed_organization_id))
