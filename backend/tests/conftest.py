"""Pytest configuration and fixtures."""
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker

from storefront.database import Base, get_db
from storefront.models.user import User
from storefront.models.plan import Plan
from main import app

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_db():
    """Create test database."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    AsyncSessionLocal = sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with AsyncSessionLocal() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def client(test_db):
    """Create test client bound to the test database."""
    async def override_get_db():
        yield test_db

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
async def test_user(test_db):
    """Create a test user."""
    user = User(
        uuid="user-1",
        name="Test User",
        email="test@example.com",
    )
    test_db.add(user)
    await test_db.commit()
    await test_db.refresh(user)
    return user


@pytest.fixture
async def pro_bundle(test_db):
    """Two-bot bundle plan."""
    plan = Plan(
        name="Pro Bundle",
        category="Bundles",
        tier="Pro",
        price_monthly=79.0,
        price_yearly=790.0,
        features=["Automated Trading"],
        included_bots=["TimerDCA-Pro", "MVRV-Pro"],
        is_active=True,
    )
    test_db.add(plan)
    await test_db.commit()
    await test_db.refresh(plan)
    return plan


@pytest.fixture
async def single_bot_plan(test_db):
    """Plan that provisions one bot named after itself."""
    plan = Plan(
        name="Bollinger Band DCA - Starter",
        category="Bollinger Band DCA",
        tier="Starter",
        price_monthly=29.0,
        price_yearly=290.0,
        features=["Automated Trading"],
        included_bots=[],
        is_active=True,
    )
    test_db.add(plan)
    await test_db.commit()
    await test_db.refresh(plan)
    return plan
