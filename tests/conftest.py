"""Shared fixtures: an in-memory database, the app and seeded tenants."""

import os

# Settings are read at import time, so configure them before importing app
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ["RATE_LIMIT_ENABLED"] = "false"

from collections.abc import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
from fastapi import FastAPI  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.core.database import Base, get_db, load_models  # noqa: E402
from app.main import create_app  # noqa: E402
from app.modules.subscriptions.models import Subscription  # noqa: E402
from app.modules.subscriptions.services import SubscriptionService  # noqa: E402
from app.modules.tenants.models import Tenant  # noqa: E402
from app.modules.users.models import User, UserRole  # noqa: E402
from tests.factories import make_tenant, make_user  # noqa: E402


@pytest.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """A fresh in-memory database per test.

    StaticPool keeps the single SQLite connection alive so every session
    sees the same schema.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    load_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db(engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        yield session


@pytest.fixture
def app(db: AsyncSession) -> FastAPI:
    """Application wired to the test session.

    The override commits and rolls back like ``get_db`` so request
    outcomes match production.
    """
    application = create_app()

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        try:
            yield db
            await db.commit()
        except Exception:
            await db.rollback()
            raise

    application.dependency_overrides[get_db] = override_get_db
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
async def plans(db: AsyncSession) -> None:
    await SubscriptionService(db).seed_default_plans()
    await db.commit()


@pytest.fixture
async def tenant_a(db: AsyncSession, plans: None) -> Tenant:
    return await make_tenant(db, "Maple Leaf Immigration", "maple.example.com")


@pytest.fixture
async def tenant_b(db: AsyncSession, plans: None) -> Tenant:
    return await make_tenant(db, "Northern Visa Partners", "northern.example.com")


@pytest.fixture
async def admin_a(db: AsyncSession, tenant_a: Tenant) -> User:
    return await make_user(db, tenant_a, "admin@maple.example.com", UserRole.ADMIN)


@pytest.fixture
async def user_a(db: AsyncSession, tenant_a: Tenant) -> User:
    return await make_user(db, tenant_a, "client@maple.example.com")


@pytest.fixture
async def admin_b(db: AsyncSession, tenant_b: Tenant) -> User:
    return await make_user(db, tenant_b, "admin@northern.example.com", UserRole.ADMIN)


@pytest.fixture
async def user_b(db: AsyncSession, tenant_b: Tenant) -> User:
    return await make_user(db, tenant_b, "client@northern.example.com")


@pytest.fixture
async def super_admin(db: AsyncSession, plans: None) -> User:
    return await make_user(db, None, "root@portal.example.com")


@pytest.fixture
async def subscription_a(db: AsyncSession, tenant_a: Tenant) -> Subscription:
    subscription = await SubscriptionService(db).get_for_tenant(tenant_a.id)
    assert subscription is not None
    return subscription
