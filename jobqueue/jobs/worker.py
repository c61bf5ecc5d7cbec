"""
Database-backed job worker.

Each worker process runs `concurrency` slots. A slot claims one job at a
time, executes it, writes the outcome back and goes idle when nothing is
due. Slots share nothing but the store: exclusivity comes from the claim
statement, not from in-process locks, so any number of workers may run
against the same table.
"""

import asyncio
import os
import socket
from collections.abc import Sequence
from datetime import timedelta
from enum import Enum

from jobqueue.config.logging import bind_worker_context, get_logger
from jobqueue.core.exceptions import JobFailed, UnknownJobError
from jobqueue.core.registries import JobRegistry
from jobqueue.jobs.models import Job, JobState
from jobqueue.jobs.service import JobService

logger = get_logger(__name__)


class SlotState(str, Enum):
    """What one execution slot is doing."""

    IDLE = "idle"
    CLAIMING = "claiming"
    EXECUTING = "executing"
    FINALIZING = "finalizing"


def describe_failure(exc: BaseException) -> str:
    """Turn a handler exception into the message stored on the job."""
    if isinstance(exc, JobFailed):
        return exc.reason
    message = str(exc)
    name = exc.__class__.__name__
    if not isinstance(exc, Exception):
        # SystemExit(3) alone would read as "3"
        return f"{name}: {message}" if message else name
    return message if message else name


class JobWorker:
    """
    Polling worker with bounded concurrency and graceful drain.

    Features:
    - one claim per slot via the atomic claim statement
    - optional per-job timeout
    - storage errors back off and retry without failing jobs
    - optional stale-claim sweep
    - stop() lets in-flight jobs finish
    """

    def __init__(
        self,
        service: JobService,
        registry: JobRegistry,
        *,
        concurrency: int | None = None,
        poll_interval: float | None = None,
        job_timeout: float | None = None,
        names: Sequence[str] | None = None,
        worker_id: str | None = None,
    ):
        settings = service.settings
        self.service = service
        self.registry = registry
        self.concurrency = (
            concurrency if concurrency is not None else settings.job_concurrency
        )
        self.poll_interval = (
            poll_interval
            if poll_interval is not None
            else settings.job_poll_interval_ms / 1000
        )
        self.job_timeout = job_timeout if job_timeout is not None else settings.job_timeout_s
        self.error_backoff = settings.job_error_backoff_s
        self.stale_after = settings.job_stale_after_s
        self.stale_sweep_interval = settings.job_stale_sweep_interval_s
        self.names = list(names) if names else None
        self.worker_id = worker_id or f"{socket.gethostname()}-{os.getpid()}-{id(self)}"

        if self.concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")

        self.slot_states: dict[int, SlotState] = {}
        self.active_jobs: set[int] = set()
        self._stopping = asyncio.Event()
        self._slots: list[asyncio.Task] = []
        self._sweeper: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return bool(self._slots) and not self._stopping.is_set()

    async def start(self) -> None:
        """Start the slots and return; use run() to block until stopped."""
        if self._slots:
            raise RuntimeError("Worker is already running")

        # handlers are fixed for the lifetime of the worker
        self.registry.freeze()
        self._stopping.clear()
        bind_worker_context(self.worker_id)

        logger.info(
            "worker_starting",
            concurrency=self.concurrency,
            poll_interval_s=self.poll_interval,
            job_names=self.names,
            handlers=self.registry.list(),
        )

        for slot in range(self.concurrency):
            self.slot_states[slot] = SlotState.IDLE
            self._slots.append(
                asyncio.create_task(self._slot_loop(slot), name=f"job-slot-{slot}")
            )

        if self.stale_after:
            self._sweeper = asyncio.create_task(
                self._stale_job_recovery_loop(), name="job-stale-sweeper"
            )

    async def run(self) -> None:
        """Start and wait until stop() has drained every slot."""
        await self.start()
        await asyncio.gather(*self._slots, return_exceptions=True)

    async def stop(self, timeout: float | None = None) -> None:
        """
        Stop claiming and wait for in-flight jobs to finish.

        With a timeout, slots still executing when it expires are cancelled;
        their jobs stay running in the store until recovered.
        """
        if not self._slots:
            return

        logger.info("worker_stopping", active_jobs=len(self.active_jobs))
        self._stopping.set()

        if self._sweeper is not None:
            self._sweeper.cancel()
            await asyncio.gather(self._sweeper, return_exceptions=True)
            self._sweeper = None

        timeout = timeout if timeout is not None else self.service.settings.job_drain_timeout_s
        done, pending = await asyncio.wait(self._slots, timeout=timeout)

        if pending:
            logger.warning(
                "worker_stopped_with_active_jobs",
                active_jobs=sorted(self.active_jobs),
            )
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        self._slots = []
        logger.info("worker_stopped")

    async def _idle(self, seconds: float) -> None:
        """Sleep, waking early if the worker is asked to stop."""
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except TimeoutError:
            pass

    async def _slot_loop(self, slot: int) -> None:
        """Claim and process jobs until stopped."""
        while not self._stopping.is_set():
            self.slot_states[slot] = SlotState.CLAIMING
            try:
                job = await self.service.claim(self.names)
            except Exception:
                logger.exception("claim_failed", slot=slot)
                self.slot_states[slot] = SlotState.IDLE
                await self._idle(self.error_backoff)
                continue

            if job is None:
                self.slot_states[slot] = SlotState.IDLE
                await self._idle(self.poll_interval)
                continue

            self.active_jobs.add(job.id)
            try:
                await self._process_job(slot, job)
            finally:
                self.active_jobs.discard(job.id)
                self.slot_states[slot] = SlotState.IDLE

    async def _process_job(self, slot: int, job: Job) -> None:
        """Execute one claimed job and record its outcome."""
        job_logger = logger.bind(job_id=job.id, job_name=job.name, attempt=job.attempts)

        try:
            handler = self.registry.get(job.name)
        except UnknownJobError as e:
            # deployment mismatch, retrying cannot help
            job_logger.error("unknown_job", registered=self.registry.list())
            self.slot_states[slot] = SlotState.FINALIZING
            await self._finalize(job_logger, lambda: self.service.abandon(job, str(e)))
            return

        self.slot_states[slot] = SlotState.EXECUTING
        job_logger.info("job_started")
        error: str | None = None

        try:
            await self._execute(handler, job)
        except asyncio.CancelledError as e:
            # the slot itself is being cancelled, not just the handler's work
            if asyncio.current_task().cancelling():
                raise
            error = describe_failure(e)
            job_logger.warning("job_failed", error=error, exc_info=True)
        except BaseException as e:
            # SystemExit or KeyboardInterrupt from handler code fails the job only
            error = describe_failure(e)
            job_logger.warning("job_failed", error=error, exc_info=True)

        self.slot_states[slot] = SlotState.FINALIZING

        if error is None:
            state = await self._finalize(job_logger, lambda: self.service.complete(job))
        else:
            state = await self._finalize(job_logger, lambda: self.service.fail(job, error))

        if state == JobState.COMPLETED:
            job_logger.info("job_completed")
        elif state == JobState.DEAD:
            job_logger.error("job_dead", retries=job.retries, error=error)
        elif state == JobState.PENDING:
            job_logger.info(
                "job_retry_scheduled", start_after=job.start_after.isoformat()
            )

    async def _execute(self, handler, job: Job) -> None:
        if not self.job_timeout:
            await handler.handle(job.args)
            return
        try:
            await asyncio.wait_for(handler.handle(job.args), timeout=self.job_timeout)
        except TimeoutError as e:
            raise JobFailed(f"Job timed out after {self.job_timeout:g}s") from e

    async def _finalize(self, job_logger, update) -> JobState | None:
        """
        Write a job's outcome, retrying store errors until it lands.

        Returns None when the worker stops before the write succeeds, or when
        the claim was lost to another worker; either way the row is left to
        its current owner or to stale recovery.
        """
        while True:
            try:
                return await update()
            except Exception:
                job_logger.exception("job_finalize_failed")
                if self._stopping.is_set():
                    return None
                await self._idle(self.error_backoff)

    async def _stale_job_recovery_loop(self) -> None:
        """Requeue jobs whose worker disappeared mid-execution."""
        older_than = timedelta(seconds=self.stale_after)
        while not self._stopping.is_set():
            try:
                await self.service.recover_stale(older_than)
            except Exception:
                logger.exception("stale_job_recovery_failed")
            await self._idle(self.stale_sweep_interval)
