from datetime import datetime, timedelta

from jobqueue.config.settings import Settings


class RetryPolicy:
    """Exponential backoff between attempts of a failing job.

    The delay depends only on the attempt count, so two workers failing the
    same job agree on its next start_after.
    """

    def __init__(self, base_delay: timedelta, max_delay: timedelta):
        if base_delay < timedelta(0) or max_delay < base_delay:
            raise ValueError("Require 0 <= base_delay <= max_delay")
        self.base_delay = base_delay
        self.max_delay = max_delay

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            base_delay=timedelta(milliseconds=settings.job_backoff_base_ms),
            max_delay=timedelta(seconds=settings.job_max_backoff_s),
        )

    def delay_for(self, attempts: int) -> timedelta:
        """Delay after the given attempt failed: base * 2^(attempts-1), capped."""
        if attempts < 1:
            return self.base_delay
        # cap the exponent before it overflows timedelta
        exponent = min(attempts - 1, 62)
        try:
            delay = self.base_delay * (2**exponent)
        except OverflowError:
            return self.max_delay
        return min(self.max_delay, delay)

    def next_start_after(
        self, attempts: int, retries: int, now: datetime
    ) -> datetime | None:
        """When to run the job next, or None if it has no attempts left."""
        if attempts >= retries:
            return None
        return now + self.delay_for(attempts)
