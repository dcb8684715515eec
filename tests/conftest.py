from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from leaveflow.config import reset_settings
from leaveflow.db import get_session
from leaveflow.main import app
from leaveflow.models import SQLModel
from leaveflow.services.audit import InMemoryAuditSink, LoggingAuditSink, set_audit_sink
from leaveflow.services.calendar import WeekdayCalendar, set_calendar
from leaveflow.services.employee import InMemoryEmployeeDirectory, set_employee_directory

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from sqlalchemy.ext.asyncio import AsyncEngine

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """Fresh in-memory database per test; StaticPool keeps the single connection alive."""
    _engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    """Yield a database session; services commit through it as they do in production."""
    session = AsyncSession(bind=engine, expire_on_commit=False)
    yield session
    await session.close()


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def directory() -> InMemoryEmployeeDirectory:
    """Empty employee directory installed for the test."""
    _directory = InMemoryEmployeeDirectory()
    set_employee_directory(_directory)
    return _directory


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    """Capture delivered audit entries."""
    sink = InMemoryAuditSink()
    set_audit_sink(sink)
    return sink


@pytest.fixture(autouse=True)
def _reset_collaborators() -> Iterator[None]:
    """Restore default collaborators and settings after every test."""
    yield
    set_employee_directory(InMemoryEmployeeDirectory())
    set_calendar(WeekdayCalendar())
    set_audit_sink(LoggingAuditSink())
    reset_settings()
