import os

# налаштування мають бути в оточенні до імпорту servicedesk.*
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["NOTIFICATIONS_ENABLED"] = "false"
os.environ["JWT_SECRET"] = "test-secret"
os.environ.pop("CACHE_URL", None)

from typing import AsyncIterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from servicedesk.db.base import Base
from servicedesk.db.models import Asset, RoleEnum, User
from servicedesk.services import cache as cache_module
from servicedesk.services.cache import MemoryViewCache
from servicedesk.services.session import DeskSession

from tests.factories import desk, make_user

GRANTS = {
    "admin": [RoleEnum.admin],
    "manager": [RoleEnum.manager],
    "agent": [RoleEnum.agent],
}


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine) -> AsyncIterator[AsyncSession]:
    maker = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    async with maker() as session:
        yield session


@pytest.fixture(autouse=True)
def view_cache(monkeypatch) -> MemoryViewCache:
    cache = MemoryViewCache()
    monkeypatch.setattr(cache_module, "_cache", cache)
    return cache


@pytest_asyncio.fixture
async def users(db) -> dict[str, User]:
    return {
        "admin": await make_user(db, "admin@example.com", RoleEnum.admin, full_name="Admin"),
        "manager": await make_user(db, "manager@example.com", RoleEnum.manager, full_name="Manager"),
        "agent": await make_user(db, "agent@example.com", RoleEnum.agent, full_name="Agent"),
        "alice": await make_user(db, "alice@example.com", full_name="Alice"),
        "bob": await make_user(db, "bob@example.com", full_name="Bob"),
        "ghost": await make_user(db, "ghost@example.com", active=False, full_name="Ghost"),
    }


@pytest.fixture
def sessions(users) -> dict[str, DeskSession]:
    return {name: desk(u, GRANTS.get(name, [])) for name, u in users.items()}


@pytest_asyncio.fixture
async def laptop(db) -> Asset:
    asset = Asset(asset_tag="LT-001", name="ThinkPad T14")
    db.add(asset)
    await db.commit()
    return asset


@pytest_asyncio.fixture
async def client(db) -> AsyncIterator[AsyncClient]:
    from servicedesk.db.session import get_session
    from servicedesk.main import app

    async def _override_session():
        yield db

    app.dependency_overrides[get_session] = _override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
