"""
JobQueue: the object an application builds once and passes around.

It owns the settings, the database handle, the handler registry, the job
service and (while running) the worker, so several independent queues can
live in one process.
"""

from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any

from jobqueue.config.settings import Settings, get_settings
from jobqueue.core.registries import JobHandler, JobRegistry
from jobqueue.infra.database import Database, utcnow
from jobqueue.jobs.backoff import RetryPolicy
from jobqueue.jobs.service import JobService
from jobqueue.jobs.worker import JobWorker


class JobQueue:
    """Producer and consumer entry points for one job store."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        registry: JobRegistry | None = None,
        database: Database | None = None,
        policy: RetryPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings or get_settings()
        self.registry = registry or JobRegistry()
        self.database = database or Database(self.settings)
        self.service = JobService(
            self.database, self.settings, policy=policy, clock=clock
        )
        self.worker: JobWorker | None = None

    # Handler registration

    def register(
        self, name: str, handler: JobHandler | Callable[[dict[str, Any]], Any]
    ) -> None:
        self.registry.register(name, handler)

    def job(self, name: str):
        """Decorator registering a function as the handler for `name`."""
        return self.registry.job(name)

    # Producer side

    async def enqueue(
        self,
        name: str,
        args: dict[str, Any] | None = None,
        *,
        start_after: datetime | None = None,
        retries: int | None = None,
    ) -> int:
        return await self.service.enqueue(
            name, args, start_after=start_after, retries=retries
        )

    # Worker lifecycle

    def create_worker(
        self,
        *,
        concurrency: int | None = None,
        poll_interval: float | None = None,
        names: Sequence[str] | None = None,
    ) -> JobWorker:
        return JobWorker(
            self.service,
            self.registry,
            concurrency=concurrency,
            poll_interval=poll_interval,
            names=names,
        )

    async def start(
        self,
        concurrency: int | None = None,
        poll_interval: float | None = None,
        *,
        names: Sequence[str] | None = None,
    ) -> JobWorker:
        """Start a worker in the background and return it."""
        if self.worker is not None:
            raise RuntimeError("Worker is already running")
        self.worker = self.create_worker(
            concurrency=concurrency, poll_interval=poll_interval, names=names
        )
        await self.worker.start()
        return self.worker

    async def stop(self, timeout: float | None = None) -> None:
        """Stop the worker after in-flight jobs finish."""
        if self.worker is None:
            return
        await self.worker.stop(timeout=timeout)
        self.worker = None

    async def close(self) -> None:
        await self.stop()
        await self.database.close()
