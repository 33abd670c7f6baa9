"""
Pytest configuration and fixtures for testing.

Provides:
- Database fixtures (file-backed SQLite per test via aiosqlite)
- An httpx client bound to the ASGI app with store dependencies overridden
- Signed identity/role cookie helpers
- Stub snapshot provider for the realtime channel

Usage:
    pytest src/backend/tests -v
"""

import os

# Settings are read at import time; configure the environment first.
os.environ.setdefault("SECURITY_SECRET_KEY", "test-secret-key-for-complaint-portal")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("AUTH_IDENTITY_PROVIDER", "fixed")
os.environ.setdefault(
    "AUTH_FIXED_CREDENTIALS",
    '{"warden": {"password": "secret", "role": "H1"},'
    ' "chief": {"password": "chief-pass", "role": "admin"}}',
)
os.environ.setdefault("RATE_LIMIT_LOGIN", "1000/minute")
os.environ.setdefault("LOG_ENABLE_FILE_LOGGING", "false")
os.environ.setdefault("WS_UPDATE_INTERVAL", "30")

from typing import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import db.models  # noqa: E402,F401  (registers the complaint tables)
from api.schemas.complaint import AggregateStats  # noqa: E402
from app import create_app  # noqa: E402
from core.config import settings  # noqa: E402
from core.database import get_session, get_session_factory  # noqa: E402
from services.dashboard_service import DashboardService  # noqa: E402
from services.identity_service import build_identity_provider  # noqa: E402
from tests.factories import auth_cookies  # noqa: E402


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a file-backed SQLite engine with every complaint table.

    NullPool gives each session its own connection, like the pooled
    PostgreSQL engine in production.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'complaints.db'}",
        poolclass=NullPool,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    session = session_factory()
    try:
        yield session
    finally:
        await session.close()


# ============================================================================
# Application Fixtures
# ============================================================================

@pytest.fixture
def app(session_factory):
    """FastAPI app with the store pointed at the per-test database.

    ASGITransport does not run the lifespan, so the identity provider is
    attached here the way startup would.
    """
    application = create_app()

    async def _get_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                if session.in_transaction():
                    await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_session] = _get_session
    application.dependency_overrides[get_session_factory] = lambda: session_factory
    application.state.identity_provider = build_identity_provider(settings)
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ============================================================================
# Auth Helpers
# ============================================================================

@pytest.fixture
def login_as(client):
    """Attach the cookie pair for ``role`` to the test client."""
    def _login(role: str, username: str = "test.admin") -> AsyncClient:
        client.cookies.clear()
        for name, value in auth_cookies(role, username).items():
            client.cookies.set(name, value)
        return client

    return _login


# ============================================================================
# Realtime Channel Fixtures
# ============================================================================

class StubDashboardService(DashboardService):
    """Snapshot provider with canned counters and no store access."""

    def __init__(self, stats: AggregateStats = None):
        super().__init__(session_factory=None)
        self.stats = stats or AggregateStats(
            total_complaints=4,
            resolved_complaints=1,
            unresolved_complaints=3,
            viewed_complaints=2,
            not_viewed_complaints=2,
        )
        self.category_requests = []

    async def category_stats(self, category, scope):
        self.category_requests.append((category, scope))
        return self.stats

    async def _scope_key_breakdown(self, category, scope):
        return {}


@pytest.fixture
def stub_provider() -> StubDashboardService:
    return StubDashboardService()
