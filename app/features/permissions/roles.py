"""
Static role-to-permission table.

Roles are a fixed set known at startup. Role *assignment* is per
organization (see models.UserRoleAssignment), but what a role grants is the
same everywhere.
"""
import enum
from typing import Dict, FrozenSet, Iterable

from app.utils import get_logger


log = get_logger(__name__)


class Role(str, enum.Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    VIEWER = "VIEWER"


class Permission(str, enum.Enum):
    CREATE_TASK = "CREATE_TASK"
    READ_TASK = "READ_TASK"
    UPDATE_TASK = "UPDATE_TASK"
    DELETE_TASK = "DELETE_TASK"
    VIEW_AUDIT_LOG = "VIEW_AUDIT_LOG"


ROLE_PERMISSIONS: Dict[Role, FrozenSet[str]] = {
    Role.OWNER: frozenset({
        Permission.CREATE_TASK.value,
        Permission.READ_TASK.value,
        Permission.UPDATE_TASK.value,
        Permission.DELETE_TASK.value,
        Permission.VIEW_AUDIT_LOG.value,
    }),
    Role.ADMIN: frozenset({
        Permission.CREATE_TASK.value,
        Permission.READ_TASK.value,
        Permission.UPDATE_TASK.value,
        Permission.DELETE_TASK.value,
        Permission.VIEW_AUDIT_LOG.value,
    }),
    Role.VIEWER: frozenset({
        Permission.READ_TASK.value,
    }),
}

_BY_NAME: Dict[str, FrozenSet[str]] = {role.value: perms for role, perms in ROLE_PERMISSIONS.items()}


def permissions_for_role(role: str) -> FrozenSet[str]:
    """
    Get the permissions a role grants.

    An unknown role grants nothing. A revoked or mistyped role name must
    never crash the caller, it just fails closed.
    """
    if isinstance(role, Role):
        role = role.value

    perms = _BY_NAME.get(role)
    if perms is None:
        log.debug("Unknown role %r grants no permissions", role)
        return frozenset()
    return perms


def permissions_for_roles(roles: Iterable[str]) -> FrozenSet[str]:
    """Union of the permissions granted by each role."""
    granted: set[str] = set()
    for role in roles:
        granted |= permissions_for_role(role)
    return frozenset(granted)


def role_has_permission(role: str, permission: str) -> bool:
    if isinstance(permission, Permission):
        permission = permission.value
    return permission in permissions_for_role(role)
