"""Messages module - typed jobs on named queues.

1. Jobs are dataclasses extending Message (messages/jobs.py)
2. Handlers are registered with @handler (messages/pipeline.py)
3. JobQueue sends, consume() runs workers per queue policy

Quick Start:
    from messages import EnrichContact, JobQueue, SQSTransport

    queue = JobQueue(SQSTransport())
    await queue.enqueue(EnrichContact(enrichment_id=42))

    # In a worker process
    import messages.pipeline  # registers handlers
    from messages import consume
    await consume("enrich", SQSTransport())

Queues:
    - ingest (concurrency 1): RunIngestion
    - enrich (concurrency 3): EnrichContact
    - sync (concurrency 2): SyncEnrichment
    - notify (concurrency 1): NotifyApprovalReady, NotifyDigest

messages.pipeline is not imported here: it depends on the service layer,
which itself imports the job types from this package.
"""

from messages.base import Message, handler, HandlerRegistry
from messages.queues import QueueName, JobPolicy, QUEUE_POLICIES, get_policy, get_queue_url
from messages.transport import ITransport, MemoryTransport, ReceivedJob, SQSTransport
from messages.handlers import JobQueue, MockJobQueue, dispatch, consume, process_job
from messages.jobs import (
    RunIngestion,
    EnrichContact,
    SyncEnrichment,
    NotifyApprovalReady,
    NotifyDigest,
)

__all__ = [
    "Message",
    "handler",
    "HandlerRegistry",
    "QueueName",
    "JobPolicy",
    "QUEUE_POLICIES",
    "get_policy",
    "get_queue_url",
    "ITransport",
    "MemoryTransport",
    "ReceivedJob",
    "SQSTransport",
    "JobQueue",
    "MockJobQueue",
    "dispatch",
    "consume",
    "process_job",
    "RunIngestion",
    "EnrichContact",
    "SyncEnrichment",
    "NotifyApprovalReady",
    "NotifyDigest",
]
