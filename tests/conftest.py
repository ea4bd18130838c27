"""Shared test fixtures.

Every test gets its own SQLite file so concurrent sessions see real locking,
and a frozen clock it can move forward.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from glitch.config import Settings
from glitch.database import Database
from glitch.db.models import User
from glitch.main import create_app
from glitch.users.service import create_user

TEST_JWT_SECRET = "test-secret-key-that-is-long-enough-for-hs256"

# Fixed reference instant; tests advance from here.
T0 = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'glitch.db'}",
        redis_url="",
        jwt_secret=TEST_JWT_SECRET,
        scheduler_enabled=False,
        log_format="console",
    )


@pytest_asyncio.fixture
async def database(settings: Settings) -> AsyncGenerator[Database, None]:
    db = Database(settings.database_url)
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """A direct database session for service calls and assertions."""
    async with database.session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def make_user(database: Database) -> Callable[..., Awaitable[User]]:
    """Factory that commits a user in its own session."""
    counter = 0

    async def _make(username: str | None = None, *, is_premium: bool = False) -> User:
        nonlocal counter
        counter += 1
        async with database.session_factory() as session:
            user = await create_user(session, username or f"user{counter}", is_premium=is_premium)
            await session.commit()
            return user

    return _make


def make_token(user_id: str, *, secret: str = TEST_JWT_SECRET, expires_in: timedelta = timedelta(hours=1)) -> str:
    return jwt.encode(
        {"sub": user_id, "exp": datetime.now(timezone.utc) + expires_in},
        secret,
        algorithm="HS256",
    )


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Bearer headers for a user."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(user.id)}"}

    return _headers


@pytest_asyncio.fixture
async def client(
    settings: Settings,
    database: Database,
    clock: FrozenClock,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against an app wired to the test database and clock."""
    app = create_app(settings, database=database, clock=clock)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
