"""Shared test fixtures for async database, sessions, seeded RBAC, users, mail, and HTTP client."""

import uuid
from collections.abc import AsyncGenerator, Generator
from dataclasses import dataclass, field
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from auth_api.core.background import InProcessTaskRunner
from auth_api.core.config import Settings, get_settings
from auth_api.core.database import enable_sqlite_foreign_keys
from auth_api.core.dependencies import get_async_session, get_mail_dispatcher
from auth_api.models.base import Base
from auth_api.models.user import User
from auth_api.services.rbac_service import seed_rbac
from auth_api.services.user_service import create_account

TEST_PASSWORD = "correct-horse-battery"


@dataclass
class FakeMailer:
    """Mail dispatcher that records messages instead of sending them."""

    verification: list[tuple[str, str]] = field(default_factory=list)
    reset: list[tuple[str, str]] = field(default_factory=list)
    locked: list[dict] = field(default_factory=list)
    fail: bool = False

    async def send_verification_email(self, email: str, token: str) -> None:
        if self.fail:
            raise RuntimeError("smtp down")
        self.verification.append((email, token))

    async def send_password_reset_email(self, email: str, token: str) -> None:
        if self.fail:
            raise RuntimeError("smtp down")
        self.reset.append((email, token))

    async def send_account_locked_email(
        self,
        email: str,
        username: str,
        duration_minutes: int,
        ip_address: str,
    ) -> None:
        if self.fail:
            raise RuntimeError("smtp down")
        self.locked.append(
            {"email": email, "username": username, "duration_minutes": duration_minutes, "ip_address": ip_address}
        )

    def last_verification_token(self) -> str:
        return self.verification[-1][1]

    def last_reset_token(self) -> str:
        return self.reset[-1][1]


@pytest.fixture
def settings() -> Settings:
    """Test application settings."""
    return Settings(
        _env_file=None,
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_access_secret="test-access-secret-not-for-production-000",
        jwt_refresh_secret="test-refresh-secret-not-for-production-00",
        jwt_access_expiration="15m",
        jwt_refresh_expiration="7d",
        bcrypt_rounds=4,
        max_login_attempts=3,
        lockout_duration_minutes=30,
        frontend_url="http://frontend.test",
        app_api_url="http://api.test/api/v1",
    )


@pytest.fixture(autouse=True)
def background_runner() -> Generator[InProcessTaskRunner]:
    """Run queued mail eagerly so fakes record a send as soon as it is queued."""
    runner = InProcessTaskRunner(eager=True)
    with patch("auth_api.services.notification_service.task_runner", runner):
        yield runner


@pytest.fixture
def mailer() -> FakeMailer:
    """Recording mail dispatcher."""
    return FakeMailer()


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """Create an in-memory async SQLite engine shared by every session of a test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession]:
    """Create a per-test async session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
async def seeded_session(async_session: AsyncSession) -> AsyncSession:
    """Session over a database with the predefined roles and permissions."""
    await seed_rbac(async_session)
    return async_session


async def make_user(
    session: AsyncSession,
    settings: Settings,
    username: str,
    roles: tuple[str, ...] = ("USER",),
    *,
    verified: bool = True,
    password: str = TEST_PASSWORD,
) -> User:
    return await create_account(
        session,
        username=username,
        email=f"{username}@example.com",
        password=password,
        settings=settings,
        role_names=roles,
        is_email_verified=verified,
    )


async def reload_user(session: AsyncSession, user_id: uuid.UUID) -> User:
    """Fetch a user from the database, overwriting any stale identity-map state."""
    result = await session.execute(
        select(User).where(User.id == user_id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


@pytest.fixture
def user_factory(seeded_session: AsyncSession, settings: Settings):  # type: ignore[no-untyped-def]
    """Async factory creating verified users with the given roles."""

    async def _make(username: str, *roles: str, verified: bool = True, password: str = TEST_PASSWORD) -> User:
        return await make_user(
            seeded_session,
            settings,
            username,
            roles or ("USER",),
            verified=verified,
            password=password,
        )

    return _make


@pytest.fixture
def user_reloader(seeded_session: AsyncSession):  # type: ignore[no-untyped-def]
    """Async helper returning a freshly loaded user by id."""

    async def _reload(user_id: uuid.UUID) -> User:
        return await reload_user(seeded_session, user_id)

    return _reload


@pytest.fixture
async def admin_user(user_factory) -> User:  # type: ignore[no-untyped-def]
    return await user_factory("admin", "ADMIN")


@pytest.fixture
async def manager_user(user_factory) -> User:  # type: ignore[no-untyped-def]
    return await user_factory("manager", "MANAGER")


@pytest.fixture
async def regular_user(user_factory) -> User:  # type: ignore[no-untyped-def]
    return await user_factory("regular", "USER")


@pytest.fixture
def app(
    settings: Settings,
    mailer: FakeMailer,
    session_factory: async_sessionmaker[AsyncSession],
    seeded_session: AsyncSession,
) -> FastAPI:
    """Full application wired to the test database, settings, and recording mailer."""
    from auth_api.main import create_app

    with patch("auth_api.main.get_settings", return_value=settings):
        application = create_app()

    async def _session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_async_session] = _session
    application.dependency_overrides[get_settings] = lambda: settings
    application.dependency_overrides[get_mail_dispatcher] = lambda: mailer
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """HTTP client for the application."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def login_as(client: AsyncClient):  # type: ignore[no-untyped-def]
    """Log a user in through the API and return bearer headers."""

    async def _login(user: User, password: str = TEST_PASSWORD) -> dict[str, str]:
        response = await client.post("/api/v1/auth/login", json={"email": user.email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}

    return _login
