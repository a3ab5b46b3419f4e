"""
Pytest fixtures for testing.

Provides:
- Async SQLite database session
- Test client with auth helpers
- Factory fixtures for users and flags
- A feature backend that fails on every call
"""

import os

# Configure before the app (and its engine) is imported
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("FEATURE_BACKEND", "database")

from typing import AsyncGenerator
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from estate_api.main import app
from estate_api.models.base import Base
from estate_api.models.user import User
from estate_api.core.features import models as feature_models  # noqa: F401
from estate_api.core.features.interfaces import FeatureBackend
from estate_api.api.dependencies.database import get_db
from estate_api.services.auth import AuthService


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    """Create test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Database session, rolled back after the test."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client with database session override.
    """

    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ============ Factory Fixtures ============


class UserFactory:
    """Factory for creating test users."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        email: str | None = None,
        password: str = "testpassword123",
        name: str = "Test User",
        role: str = "user",
    ) -> User:
        """Create a user in the database."""
        email = email or f"test-{uuid4().hex[:8]}@example.com"

        user = User(
            email=email,
            password_hash=AuthService().hash_password(password),
            name=name,
            role=role,
        )
        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)
        return user


@pytest_asyncio.fixture
async def user_factory(db: AsyncSession) -> UserFactory:
    """Fixture that provides UserFactory."""
    return UserFactory(db)


@pytest_asyncio.fixture
async def test_user(user_factory: UserFactory) -> User:
    """Create a standard test user."""
    return await user_factory.create()


@pytest_asyncio.fixture
async def admin_user(user_factory: UserFactory) -> User:
    """Create an admin test user."""
    return await user_factory.create(email="admin@example.com", role="admin")


# ============ Auth Helpers ============


def get_auth_headers(user: User) -> dict[str, str]:
    """Helper to get auth headers for any user."""
    token = AuthService().create_access_token(user.id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers(test_user: User) -> dict[str, str]:
    """Get auth headers for test user."""
    return get_auth_headers(test_user)


@pytest.fixture
def admin_auth_headers(admin_user: User) -> dict[str, str]:
    """Get auth headers for admin user."""
    return get_auth_headers(admin_user)


@pytest.fixture
def headers_for():
    """Auth headers for users made inside a test."""
    return get_auth_headers


# ============ Mock Implementations ============


class BrokenFeatureBackend(FeatureBackend):
    """Feature backend whose store is unreachable."""

    def __init__(self):
        self.calls = 0

    async def _fail(self, *args, **kwargs):
        self.calls += 1
        raise ConnectionError("flag store unavailable")

    get_flag = _fail
    list_flags = _fail
    create_flag = _fail
    save_flag = _fail
    delete_flag = _fail
    clear = _fail


@pytest.fixture
def broken_backend() -> BrokenFeatureBackend:
    return BrokenFeatureBackend()
