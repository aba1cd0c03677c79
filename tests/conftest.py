"""
Pytest configuration and fixtures for job queue tests.
"""
import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from venue_jobs.core.database import DatabaseManager, create_session_factory
from venue_jobs.core.queue_policies import RetryPolicy
from venue_jobs.handlers.registry import HandlerRegistry
from venue_jobs.models.job import Job, JobStatus
from venue_jobs.repositories.job_repository import JobRepository
from venue_jobs.services.job_queue import JobQueue
import venue_jobs.models  # noqa: F401


class FakeSessionFactory:
    """Stands in for async_sessionmaker; every call yields the same mock session."""

    def __init__(self, session):
        self.session = session

    def __call__(self):
        return self

    async def __aenter__(self):
        return self.session

    async def __aexit__(self, *exc_info):
        return False


class Clock:
    """Controllable time source for the queue."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return Clock(datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def retry_policy():
    return RetryPolicy(base_delay_seconds=60, backoff_multiplier=2.0)


@pytest_asyncio.fixture
async def mock_session():
    """Mock database session."""
    session = AsyncMock(spec=AsyncSession)
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    return session


@pytest.fixture
def mock_job_repo():
    """Mock job repository."""
    return AsyncMock(spec=JobRepository)


@pytest.fixture
def registry():
    return HandlerRegistry()


@pytest.fixture
def mocked_queue(mock_session, mock_job_repo, registry, clock, retry_policy):
    """JobQueue wired to a mock session and repository."""
    return JobQueue(
        FakeSessionFactory(mock_session),
        registry,
        retry_policy=retry_policy,
        clock=clock,
        repository_factory=lambda session: mock_job_repo,
    )


@pytest.fixture
def make_job(clock):
    """Build a fully populated Job without touching a database."""

    def _make(**overrides) -> Job:
        now = clock()
        fields = dict(
            id=uuid4(),
            type="send_sms",
            payload={"to": "+447700900000", "message": "hi"},
            status=JobStatus.PENDING.value,
            priority=0,
            attempts=0,
            max_attempts=3,
            scheduled_for=now,
            created_at=now,
            updated_at=now,
        )
        fields.update(overrides)
        return Job(**fields)

    return _make


# SQLite-backed fixtures for repository and end-to-end queue tests

@pytest_asyncio.fixture
async def engine(tmp_path):
    """Fresh SQLite database file per test."""
    # One pooled connection: SQLite allows a single writer at a time
    test_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}",
        poolclass=AsyncAdaptedQueuePool,
        pool_size=1,
        max_overflow=0,
    )
    await DatabaseManager(test_engine).create_tables()
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def concurrent_session_factory(tmp_path):
    """Sessions on separate connections so concurrent writers really interleave."""
    concurrent_engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'concurrent.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    await DatabaseManager(concurrent_engine).create_tables()
    yield create_session_factory(concurrent_engine)
    await concurrent_engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def sqlite_queue(session_factory, registry, clock, retry_policy):
    """JobQueue on a real SQLite database with an empty handler registry."""
    return JobQueue(session_factory, registry, retry_policy=retry_policy, clock=clock)


@pytest.fixture
def mock_sms_client():
    client = MagicMock()
    client.is_configured = True
    client.from_number = "+441234567890"
    client.send_sms = AsyncMock()
    return client
