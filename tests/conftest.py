import os
import tempfile
from dataclasses import dataclass
from typing import AsyncIterator, Iterable, Optional

# Settings are read at import time, so the test database and secret must be
# in the environment before anything under app/ is imported.
_TEST_DIR = tempfile.mkdtemp(prefix="taskboard-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_DIR}/test.db"
os.environ["JWT_SECRET"] = "test-secret-key-for-tests-please-change"
os.environ.pop("AUTHZ_ALWAYS_LIVE", None)

import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from app.core.database.engine import AsyncSessionLocal, drop_db, init_db  # noqa: E402
from app.features.organizations.models import Organization  # noqa: E402
from app.features.permissions.roles import Role, permissions_for_roles  # noqa: E402
from app.features.permissions.service import assign_role, ensure_default_roles  # noqa: E402
from app.features.users.auth import create_access_token  # noqa: E402
from app.features.users.models import User  # noqa: E402
from app.main import app  # noqa: E402


@dataclass(frozen=True)
class SeededUser:
    id: str
    email: str
    organization_id: str
    roles: tuple

    def token(
        self,
        roles: Optional[Iterable[str]] = None,
        permissions: Optional[Iterable[str]] = None,
        organization_id: Optional[str] = None,
    ) -> str:
        """
        Issue a token for this user. By default the token carries the user's
        seeded roles and the permissions they grant.
        """
        roles = self.roles if roles is None else tuple(roles)
        if permissions is None:
            permissions = permissions_for_roles(roles)
        return create_access_token(
            self.id,
            organization_id or self.organization_id,
            roles=roles,
            permissions=sorted(permissions),
            email=self.email,
        )

    def headers(self, **kwargs) -> dict:
        return {"Authorization": f"Bearer {self.token(**kwargs)}"}


@dataclass(frozen=True)
class SeededTenants:
    org_a: str
    org_b: str
    owner: SeededUser
    admin: SeededUser
    viewer: SeededUser
    other_owner: SeededUser


async def _create_user(
    db: AsyncSession,
    email: str,
    organization_id: str,
    role: Optional[Role],
) -> SeededUser:
    user = User(email=email, first_name=email.split("@")[0].title(), organization_id=organization_id)
    db.add(user)
    await db.flush()
    roles: tuple = ()
    if role is not None:
        await assign_role(db, user.id, role, organization_id)
        roles = (role.value,)
    return SeededUser(user.id, email, organization_id, roles)


@pytest_asyncio.fixture
async def db() -> AsyncIterator[AsyncSession]:
    """A session on a freshly created schema."""
    await drop_db()
    await init_db()
    async with AsyncSessionLocal() as session:
        yield session


@pytest_asyncio.fixture
async def tenants(db: AsyncSession) -> SeededTenants:
    """
    Two organizations. Org A has an owner, an admin and a viewer; org B has
    only an owner.
    """
    await ensure_default_roles(db)

    org_a = Organization(name="TechCorp")
    org_b = Organization(name="DesignStudio")
    db.add_all([org_a, org_b])
    await db.flush()

    owner = await _create_user(db, "owner@techcorp.com", org_a.id, Role.OWNER)
    admin = await _create_user(db, "admin@techcorp.com", org_a.id, Role.ADMIN)
    viewer = await _create_user(db, "viewer@techcorp.com", org_a.id, Role.VIEWER)
    other_owner = await _create_user(db, "owner@designstudio.com", org_b.id, Role.OWNER)

    await db.commit()
    return SeededTenants(org_a.id, org_b.id, owner, admin, viewer, other_owner)


@pytest_asyncio.fixture
async def async_client(db: AsyncSession) -> AsyncIterator[AsyncClient]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
