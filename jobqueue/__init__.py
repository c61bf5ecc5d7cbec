"""Durable, database-backed background job queue."""

__version__ = "0.1.0"

from jobqueue.core.exceptions import (  # noqa: E402
    DuplicateHandlerError,
    JobFailed,
    JobQueueError,
    StoreUnavailable,
    UnknownJobError,
)
from jobqueue.core.registries import JobHandler, JobRegistry  # noqa: E402
from jobqueue.jobs.models import Job, JobState  # noqa: E402
from jobqueue.queue import JobQueue  # noqa: E402

__all__ = [
    "DuplicateHandlerError",
    "Job",
    "JobFailed",
    "JobHandler",
    "JobQueue",
    "JobQueueError",
    "JobRegistry",
    "JobState",
    "StoreUnavailable",
    "UnknownJobError",
    "__version__",
]
