from typing import Any


class JobQueueError(Exception):
    """Base exception for the job queue."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class StoreUnavailable(JobQueueError):
    """Raised when the job store cannot accept or serve a request."""


class ConfigurationError(JobQueueError):
    """Raised for deployment mistakes detected at startup."""


class DuplicateHandlerError(ConfigurationError):
    """Raised when two handlers are registered under the same job name."""

    def __init__(self, name: str):
        super().__init__(
            f"A handler is already registered for job '{name}'", {"name": name}
        )


class RegistryFrozenError(ConfigurationError):
    """Raised when registering into a registry that a worker already uses."""


class UnknownJobError(JobQueueError, KeyError):
    """Raised when no handler is registered for a job name."""

    def __init__(self, name: str):
        JobQueueError.__init__(self, f"Unknown job: {name}", {"name": name})

    def __str__(self) -> str:
        return self.message


class JobNotFoundError(JobQueueError):
    """Raised when a job id does not exist."""

    def __init__(self, job_id: int):
        super().__init__(f"Job {job_id} not found", {"job_id": job_id})


class JobFailed(Exception):
    """Raised by a handler to fail the current attempt with a reason."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)
