import asyncio
import os
from datetime import UTC, datetime, timedelta

import pytest

from jobqueue.config.settings import Settings
from jobqueue.infra.database import Base, Database
from jobqueue.jobs.backoff import RetryPolicy
from jobqueue.jobs.service import JobService
from jobqueue.queue import JobQueue


class FakeClock:
    """Manually advanced clock for scheduling tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def database_url(tmp_path) -> str:
    """PostgreSQL when TEST_DATABASE_URL is set, otherwise a throwaway SQLite file."""
    return os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}"


@pytest.fixture
def settings(database_url) -> Settings:
    """Settings tuned for fast worker tests: zero backoff, short polls."""
    return Settings(
        database_url=database_url,
        job_poll_interval_ms=10,
        job_backoff_base_ms=0,
        job_max_backoff_s=0,
        job_error_backoff_s=0.01,
    )


@pytest.fixture
async def database(settings):
    """A database with a fresh jobs table."""
    db = Database(settings)
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await db.create_schema()
    yield db
    await db.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(database, settings, clock) -> JobService:
    """Job service on a fake clock with a 1s base / 60s max backoff."""
    policy = RetryPolicy(timedelta(seconds=1), timedelta(seconds=60))
    return JobService(database, settings, policy=policy, clock=clock)


@pytest.fixture
async def queue(database, settings):
    """Job queue on the real clock; its worker is stopped after the test."""
    job_queue = JobQueue(settings, database=database)
    yield job_queue
    await job_queue.stop(timeout=1)


async def wait_for(predicate, timeout: float = 5.0, interval: float = 0.01):
    """Poll an async predicate until it returns a truthy value."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        result = await predicate()
        if result:
            return result
        if loop.time() > deadline:
            raise AssertionError(f"Condition not met within {timeout}s")
        await asyncio.sleep(interval)
