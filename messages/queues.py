"""Named queues and their job policies."""

import os
from dataclasses import dataclass
from typing import Dict

from services.errors import ConfigurationError


class QueueName:
    INGEST = "ingest"
    ENRICH = "enrich"
    SYNC = "sync"
    NOTIFY = "notify"

    ALL = (INGEST, ENRICH, SYNC, NOTIFY)


@dataclass(frozen=True)
class JobPolicy:
    """Worker concurrency, attempts and backoff (seconds) for one queue."""

    concurrency: int = 1
    max_attempts: int = 3
    backoff_base: float = 1.0
    backoff_max: float = 60.0
    keep_failed: bool = True

    def backoff_for(self, attempt: int) -> float:
        """Delay before retrying after the given (1-based) failed attempt."""
        return min(self.backoff_base * (2 ** (attempt - 1)), self.backoff_max)


QUEUE_POLICIES: Dict[str, JobPolicy] = {
    # ingest=1 keeps the pagination cursor ordered
    QueueName.INGEST: JobPolicy(concurrency=1),
    QueueName.ENRICH: JobPolicy(concurrency=3),
    QueueName.SYNC: JobPolicy(concurrency=2),
    QueueName.NOTIFY: JobPolicy(concurrency=1),
}


def get_policy(queue_name: str) -> JobPolicy:
    return QUEUE_POLICIES.get(queue_name, JobPolicy())


def get_queue_url(queue_name: str, failed: bool = False) -> str:
    """SQS queue URL from the environment.

    SQS_ENRICH_QUEUE_URL for 'enrich', SQS_ENRICH_FAILED_QUEUE_URL for its
    failed-job queue, and so on.
    """
    suffix = "FAILED_QUEUE_URL" if failed else "QUEUE_URL"
    env_var = f"SQS_{queue_name.upper().replace('-', '_')}_{suffix}"
    url = os.getenv(env_var)
    if not url:
        raise ConfigurationError(f"Queue URL not configured. Set {env_var} environment variable.")
    return url
