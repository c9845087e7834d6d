"""Shared pytest fixtures for backend tests."""

import os
import tempfile
from collections.abc import AsyncIterator, Awaitable, Callable

# Settings are read at import time, so point them at a throwaway database first
_db_dir = tempfile.mkdtemp(prefix="hotel-backend-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_db_dir}/test.db"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["RATE_LIMIT"] = "10000/minute"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession  # noqa: E402

from app.core.database.base import Base, generate_ulid  # noqa: E402
from app.core.database.engine import AsyncSessionLocal, engine, init_db  # noqa: E402
from app.features.permissions.catalog import AccessScope, CapabilityLevel, Module  # noqa: E402
from app.features.permissions.engine import ModulePermission  # noqa: E402
from app.features.permissions.models import ResourceGrant, Role  # noqa: E402
from app.features.users.auth import create_access_token  # noqa: E402
from app.features.users.models import User  # noqa: E402
from app.main import app  # noqa: E402


PermissionPairs = dict[Module, tuple[str, str]]


def role_permissions(pairs: PermissionPairs | None = None) -> dict[Module, ModulePermission]:
    """Every module at (view, none) unless overridden."""
    pairs = pairs or {}
    permissions = {}
    for module in Module:
        capability, scope = pairs.get(module, ("view", "none"))
        permissions[module] = ModulePermission(CapabilityLevel(capability), AccessScope(scope))
    return permissions


@pytest_asyncio.fixture()
async def database() -> AsyncIterator[None]:
    """Fresh schema per test."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await init_db()
    yield


@pytest_asyncio.fixture()
async def db_session(database: None) -> AsyncIterator[AsyncSession]:
    async with AsyncSessionLocal() as session:
        yield session


@pytest_asyncio.fixture()
async def async_client(database: None) -> AsyncIterator[AsyncClient]:
    """Provide an HTTPX async client bound to the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest_asyncio.fixture()
async def make_role(db_session: AsyncSession) -> Callable[..., Awaitable[Role]]:
    async def _make(pairs: PermissionPairs | None = None, *, is_external: bool = False, name: str | None = None) -> Role:
        role = Role(name=name or f"role-{generate_ulid()}", is_external=is_external, permissions=[])
        role.set_permissions(role_permissions(pairs))
        db_session.add(role)
        await db_session.commit()
        return role

    return _make


@pytest_asyncio.fixture()
async def make_user(
    db_session: AsyncSession, make_role: Callable[..., Awaitable[Role]]
) -> Callable[..., Awaitable[User]]:
    """
    Create a user holding a fresh role.

    Usage:
        user = await make_user({Module.PORTFOLIO: ("all", "partial")}, grants={Module.PORTFOLIO: ["p1"]})
    """
    async def _make(
        pairs: PermissionPairs | None = None,
        *,
        is_external: bool = False,
        grants: dict[Module, list[str]] | None = None,
        role: Role | None = None,
    ) -> User:
        role = role or await make_role(pairs, is_external=is_external)
        user = User(email=f"{generate_ulid().lower()}@example.com", name="Test User", role_id=role.id)
        db_session.add(user)
        await db_session.flush()
        if grants is not None:
            db_session.add(ResourceGrant(
                user_id=user.id,
                resource_ids={module.value: ids for module, ids in grants.items()},
            ))
        await db_session.commit()
        return user

    return _make


@pytest_asyncio.fixture()
async def admin(make_user: Callable[..., Awaitable[User]]) -> User:
    """User whose role is (all, all) on every module."""
    return await make_user({module: ("all", "all") for module in Module})


@pytest.fixture()
def auth_headers() -> Callable[[User], dict[str, str]]:
    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers
