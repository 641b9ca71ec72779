"""
Role provisioning: role rows and per-organization role assignments.
"""
from typing import Dict

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.permissions.models import Role as RoleModel, UserRoleAssignment
from app.features.permissions.roles import Role
from app.utils import get_logger


log = get_logger(__name__)


async def ensure_default_roles(db: AsyncSession) -> Dict[str, RoleModel]:
    """
    Create a row for every built-in role that does not exist yet.

    Returns:
        Mapping of role name to Role row
    """
    result = await db.execute(select(RoleModel))
    roles = {role.name: role for role in result.scalars().all()}

    for role in Role:
        if role.value not in roles:
            roles[role.value] = RoleModel(name=role.value)
            db.add(roles[role.value])
            log.info("Created role %s", role.value)

    await db.flush()
    return roles


async def get_role_by_name(db: AsyncSession, name: str) -> RoleModel | None:
    result = await db.execute(select(RoleModel).where(RoleModel.name == name))
    return result.scalar_one_or_none()


async def assign_role(
    db: AsyncSession,
    user_id: str,
    role: str,
    organization_id: str,
) -> UserRoleAssignment:
    """
    Grant ``role`` to a user within an organization.

    Raises:
        ValueError: If the role does not exist or is already assigned
    """
    role_name = getattr(role, "value", role)
    role_row = await get_role_by_name(db, role_name)
    if role_row is None:
        raise ValueError(f"Unknown role: {role_name}")

    existing = await db.execute(
        select(UserRoleAssignment.id).where(
            UserRoleAssignment.user_id == user_id,
            UserRoleAssignment.role_id == role_row.id,
            UserRoleAssignment.organization_id == organization_id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        raise ValueError(f"User {user_id} already holds {role_name} in organization {organization_id}")

    assignment = UserRoleAssignment(
        user_id=user_id,
        role_id=role_row.id,
        organization_id=organization_id,
    )
    db.add(assignment)
    await db.flush()

    log.info("Assigned role %s to user %s in org %s", role_name, user_id, organization_id)
    return assignment


async def revoke_role(
    db: AsyncSession,
    user_id: str,
    role: str,
    organization_id: str,
) -> bool:
    """
    Remove a role assignment.

    Returns:
        True if an assignment was deleted
    """
    role_name = getattr(role, "value", role)
    role_row = await get_role_by_name(db, role_name)
    if role_row is None:
        return False

    result = await db.execute(
        delete(UserRoleAssignment).where(
            UserRoleAssignment.user_id == user_id,
            UserRoleAssignment.role_id == role_row.id,
            UserRoleAssignment.organization_id == organization_id,
        )
    )
    revoked = result.rowcount > 0
    if revoked:
        log.info("Revoked role %s from user %s in org %s", role_name, user_id, organization_id)
    return revoked
