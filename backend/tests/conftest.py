"""
conftest.py: shared fixtures for the test suite.

Strategy:
- Every test gets a fresh in-memory SQLite database (aiosqlite) with the full
  schema; nothing outside the process is needed.
- The app's collaborators (DB session, document store, auth events, duty
  registry) are swapped through ``app.dependency_overrides``.
- User fixtures insert rows directly and mint access tokens without going
  through the login endpoint; the login flow has its own tests.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dutytrack.core.dependencies import get_auth_events, get_duty_registry, get_store
from dutytrack.core.roles import normalize_company_key, subject_from_user
from dutytrack.core.security import create_access_token, hash_password
from dutytrack.db.models import Base, User
from dutytrack.db.session import get_db
from dutytrack.identity import AuthEvents
from dutytrack.location import WatchOptions
from dutytrack.main import app
from dutytrack.services.duty import DutySessionRegistry
from dutytrack.store.memory import InMemoryDocumentStore
from dutytrack.store.sql import SqlDocumentStore

COMPANY = "Acme Corp"
PASSWORD = "Secret123!"


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Callable returning a controllable UTC "now"."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    # Thursday 2024-02-15 09:00 UTC
    return FakeClock(datetime(2024, 2, 15, 9, 0, tzinfo=timezone.utc))


# ---------------------------------------------------------------------------
# Database and store
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def sessionmaker():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(sessionmaker) -> AsyncSession:
    """Raw DB session for direct queries in tests."""
    async with sessionmaker() as session:
        yield session


@pytest.fixture
def store(sessionmaker) -> SqlDocumentStore:
    return SqlDocumentStore(sessionmaker)


@pytest.fixture
def memory_store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def auth_events() -> AuthEvents:
    return AuthEvents()


@pytest.fixture
def registry(store, auth_events) -> DutySessionRegistry:
    registry = DutySessionRegistry(
        store, watch_options=WatchOptions(time_interval_sec=0, distance_interval_m=0)
    )
    auth_events.subscribe(registry.on_auth_state_change)
    return registry


# ---------------------------------------------------------------------------
# HTTP client fixture
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(sessionmaker, store, auth_events, registry) -> AsyncClient:
    """HTTPX async client wired to the per-test database and store."""

    async def _get_db():
        async with sessionmaker() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_auth_events] = lambda: auth_events
    app.dependency_overrides[get_duty_registry] = lambda: registry

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


async def create_user(
    sessionmaker,
    *,
    role: str,
    company_name: str | None = COMPANY,
    full_name: str | None = None,
    department: str | None = None,
    is_active: bool = True,
) -> User:
    uid_short = uuid.uuid4().hex[:8]
    async with sessionmaker() as session:
        user = User(
            email=f"{role}_{uid_short}@example.com",
            password_hash=hash_password(PASSWORD),
            role=role,
            full_name=full_name if full_name is not None else f"Test {role.title()} {uid_short}",
            company_name=company_name,
            company_key=normalize_company_key(company_name),
            department=department,
            is_active=is_active,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def admin_user(sessionmaker) -> User:
    return await create_user(sessionmaker, role="admin", full_name="Ada Admin")


@pytest_asyncio.fixture
async def employee_user(sessionmaker) -> User:
    return await create_user(sessionmaker, role="employee", full_name="Eve Employee", department="Field")


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return auth_headers(admin_user)


@pytest.fixture
def employee_headers(employee_user: User) -> dict:
    return auth_headers(employee_user)


@pytest.fixture
def admin_subject(admin_user: User):
    return subject_from_user(admin_user)


@pytest.fixture
def employee_subject(employee_user: User):
    return subject_from_user(employee_user)
