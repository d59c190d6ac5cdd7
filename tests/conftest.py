"""Shared test fixtures for the petwatch test suite.

Services run against an in-memory SQLite database (aiosqlite) so the real
queries, constraints and cascades are exercised without Docker
infrastructure. Redis is mocked.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from portal.auth import issue_token
from portal.services.hunger import HungerService
from portal.services.live_updates import LiveUpdateHub
from portal.services.locations import LocationService
from portal.services.messages import MessageService
from portal.services.notifier import Notifier
from portal.services.stats import UserStatsService
from portal.services.webhook import WebhookService
from shared.config import Settings
from shared.database import create_session_factory, init_models
from shared.models.place import Place, SubPlace
from shared.models.subject import TrackedSubject
from shared.models.user import User

JWT_SECRET = "test-jwt-secret-with-enough-length-for-hs256"
WEBHOOK_SECRET = "test-webhook-secret"

# Fixed reference time so timelines are deterministic
T0 = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def at(minutes: float) -> datetime:
    """Timestamp ``minutes`` after T0."""
    return T0 + timedelta(minutes=minutes)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture
def settings():
    return Settings(
        database_url="sqlite+aiosqlite://",
        jwt_secret=JWT_SECRET,
        cookie_secure=False,
        webhook_secret=WEBHOOK_SECRET,
        timezone="UTC",
        sse_keepalive_seconds=0.05,
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture
async def db_engine():
    """In-memory SQLite engine with every table created."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


# ---------------------------------------------------------------------------
# Redis mock
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_redis():
    """Mock async Redis client with common operations."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    redis.publish = AsyncMock(return_value=1)
    return redis


@pytest.fixture
def redis_getter(mock_redis):
    return AsyncMock(return_value=mock_redis)


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def location_hub():
    return LiveUpdateHub("locations")


@pytest.fixture
def message_hub():
    return LiveUpdateHub("messages")


@pytest.fixture
def notifier(session_factory, redis_getter):
    return Notifier(session_factory, channel="notifications:push", redis_getter=redis_getter)


@pytest.fixture
def location_service(session_factory, location_hub):
    return LocationService(session_factory, location_hub)


@pytest.fixture
def message_service(session_factory, message_hub, notifier):
    return MessageService(session_factory, message_hub, notifier)


@pytest.fixture
def webhook_service(session_factory, location_service, message_service, notifier, settings):
    return WebhookService(session_factory, location_service, message_service, notifier, settings)


@pytest.fixture
def hunger_service(session_factory):
    return HungerService(session_factory, decay_rate_per_hour=10.0)


@pytest.fixture
def stats_service(session_factory):
    return UserStatsService(session_factory)


# ---------------------------------------------------------------------------
# Model factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(session_factory):
    """Factory for persisted User rows."""

    async def _make(
        email: str | None = None,
        name: str | None = "Resident",
        role: str = "user",
        password_hash: str = "not-a-real-hash",
    ) -> User:
        user = User(
            id=uuid.uuid4(),
            email=email or f"{uuid.uuid4().hex[:8]}@example.com",
            name=name,
            role=role,
            password_hash=password_hash,
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _make


@pytest.fixture
def make_place(session_factory):
    """Factory for persisted Place rows."""

    async def _make(
        name: str = "Courtyard",
        place_type: str = "outdoor",
        external_id: str | None = None,
        display_order: int = 0,
        is_active: bool = True,
    ) -> Place:
        place = Place(
            id=uuid.uuid4(),
            name=name,
            place_type=place_type,
            external_id=external_id,
            display_order=display_order,
            is_active=is_active,
        )
        async with session_factory() as session:
            session.add(place)
            await session.commit()
        return place

    return _make


@pytest.fixture
def make_sub_place(session_factory):
    """Factory for persisted SubPlace rows."""

    async def _make(
        place: Place,
        name: str = "Balcony",
        owner_id: uuid.UUID | None = None,
        display_order: int = 0,
    ) -> SubPlace:
        sub_place = SubPlace(
            id=uuid.uuid4(),
            place_id=place.id,
            name=name,
            owner_id=owner_id,
            display_order=display_order,
        )
        async with session_factory() as session:
            session.add(sub_place)
            await session.commit()
        return sub_place

    return _make


@pytest.fixture
def make_subject(session_factory):
    """Factory for persisted TrackedSubject rows."""

    async def _make(
        subject_id: str = "rocky",
        name: str = "Rocky",
        hunger_level: float = 0.0,
        last_hunger_update: datetime = T0,
    ) -> TrackedSubject:
        subject = TrackedSubject(
            id=subject_id,
            name=name,
            hunger_level=hunger_level,
            last_hunger_update=last_hunger_update,
        )
        async with session_factory() as session:
            session.add(subject)
            await session.commit()
        return subject

    return _make


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture
def app(settings, session_factory, redis_getter):
    from portal.main import create_app

    return create_app(settings=settings, session_factory=session_factory, redis_getter=redis_getter)


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def auth_headers(settings):
    """Build an Authorization header for a user."""

    def _headers(user: User) -> dict[str, str]:
        token = issue_token(user.id, user.email, user.name, user.role, settings)
        return {"Authorization": f"Bearer {token}"}

    return _headers
