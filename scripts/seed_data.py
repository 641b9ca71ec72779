"""
Seed script to populate roles, two demo organizations, users and tasks.

Creates:
- The OWNER, ADMIN and VIEWER role rows
- TechCorp and DesignStudio with an owner, an admin and a viewer each
- A sample task per organization (recorded in the audit log)

Prints a bearer token for every seeded user.

Usage:
    uv run python -m scripts.seed_data
    uv run python -m scripts.seed_data --reset
"""
import argparse
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import AsyncSessionLocal, drop_db, init_db
from app.features.audit.models import AuditAction, AuditResource
from app.features.audit.service import AuditRecorder, snapshot
from app.features.organizations.models import Organization
from app.features.permissions.roles import Role, permissions_for_role
from app.features.permissions.service import assign_role, ensure_default_roles
from app.features.tasks.models import Task, AUDITED_FIELDS
from app.features.users.auth import create_access_token
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


DEMO_ORGANIZATIONS = {
    "TechCorp": {
        "description": "Software company",
        "users": [
            ("owner@techcorp.com", "Olivia", "Owner", Role.OWNER),
            ("admin@techcorp.com", "Adam", "Admin", Role.ADMIN),
            ("viewer@techcorp.com", "Vera", "Viewer", Role.VIEWER),
        ],
        "task": ("Set up CI pipeline", "Configure the build and test pipeline", "Work"),
    },
    "DesignStudio": {
        "description": "Design agency",
        "users": [
            ("owner@designstudio.com", "Diego", "Owner", Role.OWNER),
            ("admin@designstudio.com", "Dana", "Admin", Role.ADMIN),
            ("viewer@designstudio.com", "Vik", "Viewer", Role.VIEWER),
        ],
        "task": ("Refresh brand guide", "Update colours and typography", "Personal"),
    },
}


async def seed_organization(db: AsyncSession, name: str, org_config: dict) -> list[tuple[User, Role]]:
    """
    Create one organization with its users, role assignments and sample task.

    Returns:
        (user, role) pairs for the organization's users
    """
    result = await db.execute(select(Organization).where(Organization.name == name))
    if result.scalars().first() is not None:
        log.info("Organization '%s' already exists, skipping", name)
        return []

    organization = Organization(name=name, description=org_config["description"])
    db.add(organization)
    await db.flush()

    seeded = []
    for email, first_name, last_name, role in org_config["users"]:
        user = User(
            email=email,
            first_name=first_name,
            last_name=last_name,
            organization_id=organization.id,
        )
        db.add(user)
        await db.flush()
        await assign_role(db, user.id, role, organization.id)
        if role == Role.OWNER:
            organization.owner_id = user.id
        seeded.append((user, role))

    owner = seeded[0][0]
    title, description, category = org_config["task"]
    task = Task(
        title=title,
        description=description,
        category=category,
        organization_id=organization.id,
        created_by=owner.id,
    )
    db.add(task)
    await db.flush()
    await AuditRecorder(db).record(
        AuditAction.CREATE,
        owner.id,
        organization.id,
        AuditResource.TASK,
        task.id,
        snapshot(task, AUDITED_FIELDS),
    )

    log.info("Created organization '%s' with %d users", name, len(seeded))
    return seeded


async def main(reset: bool = False):
    """Main function to seed demo data."""
    if reset:
        log.warning("Dropping all tables...")
        await drop_db()

    log.info("Initializing database tables...")
    await init_db()

    async with AsyncSessionLocal() as db:
        try:
            await ensure_default_roles(db)

            seeded = []
            for name, org_config in DEMO_ORGANIZATIONS.items():
                seeded.extend(await seed_organization(db, name, org_config))

            await db.commit()
        except Exception as e:
            log.error(f"Error seeding data: {e}", exc_info=True)
            await db.rollback()
            raise

    log.info("Seeding completed successfully!")
    if not seeded:
        return

    log.info("")
    log.info("Bearer tokens:")
    for user, role in seeded:
        token = create_access_token(
            user.id,
            user.organization_id,
            roles=[role.value],
            permissions=[p.value for p in permissions_for_role(role)],
            email=user.email,
        )
        log.info("  %s (%s): %s", user.email, role.value, token)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed demo organizations, users and tasks")
    parser.add_argument("--reset", action="store_true", help="drop all tables before seeding")
    args = parser.parse_args()
    asyncio.run(main(reset=args.reset))
