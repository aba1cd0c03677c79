from dataclasses import dataclass
from datetime import datetime, timedelta
from venue_jobs.core.config import settings


@dataclass
class RetryPolicy:
    base_delay_seconds: int
    backoff_multiplier: float

    def delay_for(self, attempts: int) -> timedelta:
        """Backoff before the next attempt, keyed to attempts made so far."""
        seconds = self.base_delay_seconds * (self.backoff_multiplier ** max(0, attempts))
        return timedelta(seconds=seconds)

    def next_run_at(self, now: datetime, attempts: int) -> datetime:
        return now + self.delay_for(attempts)


# 60s * 2 ** attempts: 2, 4, 8... minutes after the 1st, 2nd, 3rd failure
DEFAULT_POLICY = RetryPolicy(
    base_delay_seconds=settings.JOB_RETRY_BASE_DELAY_SECONDS,
    backoff_multiplier=settings.JOB_RETRY_BACKOFF_MULTIPLIER,
)
