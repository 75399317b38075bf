"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Firebase.  The production models are used as-is:
``StringSet`` columns fall back to JSON and ``FOR UPDATE`` is a no-op on
SQLite.  Push delivery goes through ``FakePushClient``, which records
every send and fails for chosen tokens.
"""

from datetime import datetime, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from ride_service.domain.errors import NotificationError
from ride_service.infrastructure.database import Base
from ride_service.infrastructure.models import CustomerModel, DeviceModel, DriverModel
from ride_service.services.container import Services
from ride_service.services.lifecycle import RideLifecycle
from ride_service.services.notifications import NotificationFanOut
from ride_service.services.push import PushMessage
from ride_service.services.routing import FareEstimator, HaversineRouter


# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

# One shared connection, so every session sees the same in-memory database
test_engine = create_async_engine(
    TEST_DB_URL,
    echo=False,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)
TestSessionFactory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


# ── Fakes ─────────────────────────────────────────────────────────────


class FakePushClient:
    """Records deliveries; tokens in ``failing`` raise ``NotificationError``."""

    def __init__(self, failing=()):
        self.failing = set(failing)
        self.sent: list[tuple[str, PushMessage]] = []
        self.closed = False

    async def send(self, token: str, message: PushMessage) -> str:
        if token in self.failing:
            raise NotificationError(f"token {token} is unregistered")
        self.sent.append((token, message))
        return f"projects/test/messages/{len(self.sent)}"

    async def close(self) -> None:
        self.closed = True

    def tokens(self) -> list[str]:
        return [token for token, _ in self.sent]

    def titles(self) -> list[str]:
        return [message.title for _, message in self.sent]


def token_for(owner_id: str) -> str:
    return f"token-{owner_id}"


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker, None]:
    """Create tables, yield the session factory, then drop everything."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield TestSessionFactory

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def push_client() -> FakePushClient:
    return FakePushClient()


@pytest.fixture
def fan_out(session_factory, push_client) -> NotificationFanOut:
    return NotificationFanOut(session_factory, push_client, timeout_seconds=1.0)


@pytest.fixture
def estimator() -> FareEstimator:
    return FareEstimator(HaversineRouter(average_speed_kmh=30.0))


@pytest.fixture
def lifecycle(session_factory, fan_out, estimator) -> RideLifecycle:
    return RideLifecycle(session_factory, fan_out, estimator)


@pytest.fixture
def add_drivers(session_factory):
    """``await add_drivers("d1", "d2")`` inserts drivers into the roster."""

    async def _add(*driver_ids: str) -> None:
        async with session_factory() as session:
            session.add_all(DriverModel(id=d, name=d.upper()) for d in driver_ids)
            await session.commit()

    return _add


@pytest.fixture
def add_customers(session_factory):
    """``await add_customers(CustomerModel(...), ...)`` stores rider profiles."""

    async def _add(*customers: CustomerModel) -> None:
        async with session_factory() as session:
            session.add_all(customers)
            await session.commit()

    return _add


@pytest.fixture
def register_devices(session_factory):
    """``await register_devices("d1", "c1")`` gives each owner a device token."""

    async def _register(*owner_ids: str, active: bool = True) -> None:
        now = datetime.now(timezone.utc)
        async with session_factory() as session:
            session.add_all(
                DeviceModel(
                    id=owner,
                    fcm_token=token_for(owner),
                    device_type="android",
                    active=active,
                    last_updated=now,
                )
                for owner in owner_ids
            )
            await session.commit()

    return _register


@pytest_asyncio.fixture
async def client(
    session_factory, push_client, fan_out, estimator, lifecycle
) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient wired to SQLite and the fake push provider."""
    from ride_service.api.app import create_app
    from ride_service.api.dependencies import get_db
    from ride_service.api.middleware import limiter

    async def _test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    services = Services(
        lifecycle=lifecycle,
        fan_out=fan_out,
        estimator=estimator,
        push_client=push_client,
        router=estimator.router,
    )
    app = create_app(services)
    app.dependency_overrides[get_db] = _test_db
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
