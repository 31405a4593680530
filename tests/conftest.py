"""
Shared fixtures: an in-memory SQLite store, a team of users and an API client.

Settings are read once at import time, so the environment is prepared
before anything from ``apsar_api`` is imported.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("NODE_ENV", "test")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("PUSH_ENABLED", "false")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from apsar_api.core import build_engine, build_session_factory, create_access_token, hash_password, init_db
from apsar_api.models import User, UserRole
from apsar_api.services import LoggingChannel, NotificationDispatcher

PASSWORD = "correct-horse"


# =============================================================================
# DELIVERY
# =============================================================================


class RecordingDispatcher(NotificationDispatcher):
    """Keeps scheduled notifications instead of delivering them."""

    def __init__(self):
        super().__init__(LoggingChannel())
        self.scheduled = []

    def schedule(self, items):
        self.scheduled.extend(items)


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


# =============================================================================
# DATABASE
# =============================================================================


@pytest.fixture
async def engine():
    engine = build_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory) -> AsyncSession:
    async with session_factory() as session:
        yield session


# =============================================================================
# USERS
# =============================================================================


def make_user(name: str, role: UserRole, unit: str | None = None, **extra) -> User:
    slug = name.lower().replace(" ", ".")
    return User(
        name=name,
        email=f"{slug}@apsar.test",
        role=role,
        unit=unit,
        is_active=True,
        password_hash=hash_password(PASSWORD),
        **extra,
    )


@pytest.fixture
async def team(session: AsyncSession) -> dict[str, User]:
    """Two members of Team A, one of Team B, an officer and an admin (committed)."""
    users = {
        "member_a": make_user("Alex Alpine", UserRole.MEMBER, unit="Team A", push_token="ExponentPushToken[a]"),
        "member_b": make_user("Blair Boulder", UserRole.MEMBER, unit="Team A"),
        "member_c": make_user("Casey Col", UserRole.MEMBER, unit="Team B"),
        "officer": make_user("Olivia Officer", UserRole.OFFICER, unit="Team A", push_token="ExponentPushToken[o]"),
        "admin": make_user("Avery Admin", UserRole.ADMIN, unit="HQ"),
    }
    session.add_all(users.values())
    await session.commit()
    return users


@pytest.fixture
def member_a(team) -> User:
    return team["member_a"]


@pytest.fixture
def member_b(team) -> User:
    return team["member_b"]


@pytest.fixture
def member_c(team) -> User:
    return team["member_c"]


@pytest.fixture
def officer(team) -> User:
    return team["officer"]


@pytest.fixture
def admin(team) -> User:
    return team["admin"]


# =============================================================================
# API CLIENT
# =============================================================================


def auth_headers(user: User) -> dict[str, str]:
    token, _ = create_access_token(user.id, UserRole(user.role).value)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def client(session_factory, dispatcher):
    """ASGI client bound to the test store. The app lifespan is not run."""
    from apsar_api.main import app

    previous = (app.state.session_factory, app.state.dispatcher)
    app.state.session_factory = session_factory
    app.state.dispatcher = dispatcher
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client
    finally:
        app.state.session_factory, app.state.dispatcher = previous
