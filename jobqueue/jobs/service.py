"""
Job service: enqueue, claim, finalize and operational queries.

Every state transition is a single UPDATE statement so that concurrent
workers never act on a partial view of a row.
"""

from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.orm import aliased

from jobqueue.config.logging import get_logger
from jobqueue.config.settings import Settings
from jobqueue.core.exceptions import JobNotFoundError, StoreUnavailable
from jobqueue.infra.database import Database, utcnow
from jobqueue.jobs.backoff import RetryPolicy
from jobqueue.jobs.models import Job, JobState
from jobqueue.jobs.schemas import (
    JobCreate,
    JobListResponse,
    JobResponse,
    JobStatsResponse,
)

logger = get_logger(__name__)

STORE_ERRORS = (OperationalError, InterfaceError, DBAPIError)


class JobService:
    """Service for persisting and transitioning jobs."""

    def __init__(
        self,
        database: Database,
        settings: Settings,
        *,
        policy: RetryPolicy | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.database = database
        self.settings = settings
        self.policy = policy or RetryPolicy.from_settings(settings)
        self.clock = clock

    # Producer side

    async def enqueue(
        self,
        name: str,
        args: dict[str, Any] | None = None,
        *,
        start_after: datetime | None = None,
        retries: int | None = None,
    ) -> int:
        """
        Insert a new pending job and return its id.

        Args:
            name: Handler name
            args: Payload passed to the handler
            start_after: Earliest claim time, defaults to now
            retries: Maximum attempts, defaults to JOB_DEFAULT_RETRIES

        Raises:
            pydantic.ValidationError: invalid input
            StoreUnavailable: the store could not accept the write
        """
        job_create = JobCreate(
            name=name, args=args or {}, start_after=start_after, retries=retries
        )
        now = self.clock()

        job = Job(
            name=job_create.name,
            args=job_create.args,
            created_at=now,
            start_after=job_create.start_after or now,
            attempts=0,
            retries=job_create.retries or self.settings.job_default_retries,
        )

        try:
            async with self.database.session() as session:
                session.add(job)
                await session.commit()
        except STORE_ERRORS as e:
            logger.error("enqueue_failed", job_name=name, error=str(e))
            raise StoreUnavailable(
                f"Could not enqueue job '{name}'", {"error": str(e)}
            ) from e

        logger.info(
            "job_enqueued",
            job_id=job.id,
            job_name=job.name,
            start_after=job.start_after.isoformat(),
            retries=job.retries,
        )
        return job.id

    # Consumer side

    async def claim(self, names: Sequence[str] | None = None) -> Job | None:
        """
        Atomically move the oldest due pending job to running.

        The candidate lookup and the update are one statement; on PostgreSQL
        the lookup locks its row with SKIP LOCKED, so concurrent claimers
        never wait on or win the same row. Returns None when nothing is due.
        """
        now = self.clock()
        candidate = aliased(Job)

        pick = select(candidate.id).where(
            candidate.completed_at.is_(None),
            candidate.started_at.is_(None),
            candidate.attempts < candidate.retries,
            candidate.start_after <= now,
        )
        if names:
            pick = pick.where(candidate.name.in_(list(names)))
        pick = (
            pick.order_by(candidate.start_after, candidate.created_at, candidate.id)
            .limit(1)
            .with_for_update(skip_locked=True)
            .scalar_subquery()
        )

        stmt = (
            update(Job)
            .where(Job.id == pick, Job.pending_clause())
            .values(started_at=now, attempts=Job.attempts + 1)
            .returning(Job)
            .execution_options(synchronize_session=False)
        )

        async with self.database.session() as session:
            result = await session.execute(stmt)
            job = result.scalars().first()
            await session.commit()

        if job is not None:
            logger.debug(
                "job_claimed",
                job_id=job.id,
                job_name=job.name,
                attempt=job.attempts,
                retries=job.retries,
            )
        return job

    async def _write_outcome(self, job: Job, values: dict[str, Any]) -> bool:
        """
        Apply a finalize UPDATE if `job` still holds its claim.

        Every claim increments attempts, so a matching count means no other
        worker has re-claimed the row since. Returns False for a lost claim.
        """
        async with self.database.session() as session:
            result = await session.execute(
                update(Job)
                .where(
                    Job.id == job.id,
                    Job.attempts == job.attempts,
                    Job.completed_at.is_(None),
                )
                .values(**values)
            )
            await session.commit()

        if not result.rowcount:
            logger.warning(
                "job_claim_lost", job_id=job.id, job_name=job.name, attempt=job.attempts
            )
            return False
        return True

    async def complete(self, job: Job) -> JobState | None:
        """Mark a claimed job as completed; None if the claim was lost."""
        now = self.clock()
        if not await self._write_outcome(job, {"completed_at": now}):
            return None
        job.completed_at = now
        return JobState.COMPLETED

    async def fail(self, job: Job, error: str) -> JobState | None:
        """
        Record a failed attempt and hand the job to the retry policy.

        Returns the job's resulting state: PENDING when rescheduled, DEAD when
        the attempt was its last (started_at is left as-is; the attempt count
        alone excludes it from future claims), None if the claim was lost.
        """
        next_start = self.policy.next_start_after(
            job.attempts, job.retries, self.clock()
        )

        values: dict[str, Any] = {"error": error}
        if next_start is not None:
            values.update(started_at=None, start_after=next_start)

        if not await self._write_outcome(job, values):
            return None

        job.error = error
        if next_start is not None:
            job.started_at = None
            job.start_after = next_start
            return JobState.PENDING
        return JobState.DEAD

    async def abandon(self, job: Job, error: str) -> JobState | None:
        """Exhaust a job's attempts immediately; used for unknown job names."""
        # a claimed job always has attempts <= retries
        if not await self._write_outcome(job, {"attempts": Job.retries, "error": error}):
            return None
        job.attempts = job.retries
        job.error = error
        return JobState.DEAD

    async def recover_stale(self, older_than: timedelta) -> int:
        """
        Return running jobs whose claim is older than `older_than` to pending.

        Their attempts stay consumed. Jobs that were on their final attempt
        are already dead by predicate and are left alone.
        """
        now = self.clock()
        cutoff = now - older_than
        seconds = int(older_than.total_seconds())

        async with self.database.session() as session:
            result = await session.execute(
                update(Job)
                .where(Job.running_clause(), Job.started_at < cutoff)
                .values(
                    started_at=None,
                    start_after=now,
                    error=f"Recovered stale job after {seconds}s",
                )
            )
            await session.commit()

        recovered = result.rowcount or 0
        if recovered:
            logger.warning(
                "stale_jobs_recovered", count=recovered, older_than_s=seconds
            )
        return recovered

    # Operational queries

    async def get_job(self, job_id: int) -> Job:
        async with self.database.session() as session:
            job = await session.get(Job, job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def list_jobs(
        self,
        *,
        state: JobState | None = None,
        name: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> JobListResponse:
        """List jobs, newest first, optionally filtered by state and name."""
        query = select(Job)
        if state is not None:
            query = query.where(Job.state_clause(state))
        if name:
            query = query.where(Job.name == name)

        async with self.database.session() as session:
            total = (
                await session.execute(
                    select(func.count()).select_from(query.subquery())
                )
            ).scalar() or 0
            jobs = (
                await session.execute(
                    query.order_by(Job.id.desc()).offset(offset).limit(limit)
                )
            ).scalars().all()

        return JobListResponse(
            jobs=[JobResponse.model_validate(job) for job in jobs],
            total=total,
            limit=limit,
            offset=offset,
        )

    async def list_dead_jobs(self, limit: int = 50) -> list[Job]:
        """Jobs that exhausted their attempts without completing."""
        async with self.database.session() as session:
            result = await session.execute(
                select(Job).where(Job.dead_clause()).order_by(Job.id.desc()).limit(limit)
            )
            return list(result.scalars().all())

    async def get_job_stats(self) -> JobStatsResponse:
        """Counts per derived state, overall and per job name."""
        now = self.clock()
        by_state: dict[str, int] = {}
        by_name: dict[str, dict[str, int]] = {}

        async with self.database.session() as session:
            for state in JobState:
                rows = await session.execute(
                    select(Job.name, func.count(Job.id))
                    .where(Job.state_clause(state))
                    .group_by(Job.name)
                )
                total = 0
                for name, count in rows.all():
                    by_name.setdefault(name, {s.value: 0 for s in JobState})
                    by_name[name][state.value] = count
                    total += count
                by_state[state.value] = total

            due_now = (
                await session.execute(
                    select(func.count(Job.id)).where(Job.pending_clause(now))
                )
            ).scalar() or 0

        return JobStatsResponse(
            total_jobs=sum(by_state.values()),
            by_state=by_state,
            by_name=by_name,
            due_now=due_now,
        )

    async def purge_completed(self, older_than: timedelta) -> int:
        """Delete completed jobs finished before now - older_than."""
        cutoff = self.clock() - older_than
        async with self.database.session() as session:
            result = await session.execute(
                delete(Job).where(Job.completed_clause(), Job.completed_at < cutoff)
            )
            await session.commit()

        deleted = result.rowcount or 0
        if deleted:
            logger.info(
                "completed_jobs_purged",
                count=deleted,
                retention_days=older_than.days,
            )
        return deleted
