"""Queue transports.

SQSTransport talks to AWS through infra.sqs (boto3 in a worker thread).
MemoryTransport keeps everything in process for tests and --local runs,
with the same delivery semantics: received jobs stay invisible until they
are acked, retried later, or moved to the failed queue.
"""

import asyncio
import itertools
import time
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Protocol, runtime_checkable

from loguru import logger

from infra import sqs
from messages.queues import get_queue_url


@dataclass
class ReceivedJob:
    """One delivery of a job."""

    queue: str
    body: Dict[str, Any]
    receipt: str
    message_id: str
    attempt: int = 1


@dataclass
class QueueDepth:
    pending: int = 0
    in_flight: int = 0
    failed: int = 0


@runtime_checkable
class ITransport(Protocol):
    async def send(self, queue: str, body: Dict[str, Any], delay_seconds: int = 0) -> str:
        ...

    async def receive(self, queue: str, max_messages: int = 1, wait_seconds: int = 20) -> List[ReceivedJob]:
        ...

    async def ack(self, job: ReceivedJob) -> None:
        """Completed: discard the job."""
        ...

    async def retry_later(self, job: ReceivedJob, delay_seconds: float) -> None:
        ...

    async def fail(self, job: ReceivedJob, error: str) -> None:
        """Out of attempts: keep the job on the failed queue."""
        ...

    async def depth(self, queue: str) -> QueueDepth:
        ...


class SQSTransport:
    """One SQS queue (plus its failed queue) per named queue."""

    def __init__(self, visibility_timeout: Optional[int] = None):
        self.visibility_timeout = visibility_timeout

    def _visibility(self) -> int:
        # Long enough for one attempt of the slowest job
        return self.visibility_timeout or 900

    async def send(self, queue: str, body: Dict[str, Any], delay_seconds: int = 0) -> str:
        url = get_queue_url(queue)
        return await asyncio.to_thread(sqs.send_message, url, body, int(delay_seconds))

    async def receive(self, queue: str, max_messages: int = 1, wait_seconds: int = 20) -> List[ReceivedJob]:
        url = get_queue_url(queue)
        messages = await asyncio.to_thread(
            sqs.receive_messages, url,
            max_messages=max_messages,
            wait_time_seconds=wait_seconds,
            visibility_timeout=self._visibility(),
        )
        return [
            ReceivedJob(
                queue=queue,
                body=m["body"],
                receipt=m["receipt_handle"],
                message_id=m["message_id"],
                attempt=m.get("receive_count", 1),
            )
            for m in messages
        ]

    async def ack(self, job: ReceivedJob) -> None:
        await asyncio.to_thread(sqs.delete_message, get_queue_url(job.queue), job.receipt)

    async def retry_later(self, job: ReceivedJob, delay_seconds: float) -> None:
        # The message reappears when its visibility timeout runs out
        await asyncio.to_thread(
            sqs.change_visibility, get_queue_url(job.queue), job.receipt, int(delay_seconds)
        )

    async def fail(self, job: ReceivedJob, error: str) -> None:
        failed_url = get_queue_url(job.queue, failed=True)
        body = {**job.body, "_error": error, "_attempts": job.attempt}
        await asyncio.to_thread(sqs.send_message, failed_url, body)
        await self.ack(job)

    async def depth(self, queue: str) -> QueueDepth:
        attrs = await asyncio.to_thread(sqs.get_queue_attributes, get_queue_url(queue))
        try:
            failed_attrs = await asyncio.to_thread(sqs.get_queue_attributes, get_queue_url(queue, failed=True))
        except ValueError:
            failed_attrs = {}
        return QueueDepth(
            pending=int(attrs.get("ApproximateNumberOfMessages", 0)),
            in_flight=int(attrs.get("ApproximateNumberOfMessagesNotVisible", 0)),
            failed=int(failed_attrs.get("ApproximateNumberOfMessages", 0)),
        )


@dataclass
class _Stored:
    body: Dict[str, Any]
    message_id: str
    available_at: float
    attempt: int = 0


@dataclass
class MemoryTransport:
    """In-process transport. `clock` is injectable for tests."""

    clock: Any = time.monotonic
    queues: Dict[str, Deque[_Stored]] = field(default_factory=lambda: defaultdict(deque))
    in_flight: Dict[str, _Stored] = field(default_factory=dict)
    failed: Dict[str, List[Dict[str, Any]]] = field(default_factory=lambda: defaultdict(list))
    completed: Dict[str, int] = field(default_factory=lambda: defaultdict(int))

    def __post_init__(self):
        self._ids = itertools.count(1)

    async def send(self, queue: str, body: Dict[str, Any], delay_seconds: int = 0) -> str:
        message_id = f"mem-{next(self._ids)}"
        self.queues[queue].append(_Stored(body=dict(body), message_id=message_id, available_at=self.clock() + delay_seconds))
        return message_id

    async def receive(self, queue: str, max_messages: int = 1, wait_seconds: int = 0) -> List[ReceivedJob]:
        now = self.clock()
        jobs = []
        ready = [m for m in self.queues[queue] if m.available_at <= now][:max_messages]
        for stored in ready:
            self.queues[queue].remove(stored)
            stored.attempt += 1
            receipt = f"{queue}:{stored.message_id}:{stored.attempt}"
            self.in_flight[receipt] = stored
            jobs.append(ReceivedJob(
                queue=queue,
                body=dict(stored.body),
                receipt=receipt,
                message_id=stored.message_id,
                attempt=stored.attempt,
            ))
        return jobs

    async def ack(self, job: ReceivedJob) -> None:
        if self.in_flight.pop(job.receipt, None) is not None:
            self.completed[job.queue] += 1

    async def retry_later(self, job: ReceivedJob, delay_seconds: float) -> None:
        stored = self.in_flight.pop(job.receipt, None)
        if stored is None:
            logger.warning(f"Unknown receipt {job.receipt}")
            return
        stored.available_at = self.clock() + delay_seconds
        self.queues[job.queue].append(stored)

    async def fail(self, job: ReceivedJob, error: str) -> None:
        stored = self.in_flight.pop(job.receipt, None)
        body = stored.body if stored else job.body
        self.failed[job.queue].append({**body, "_error": error, "_attempts": job.attempt})

    async def depth(self, queue: str) -> QueueDepth:
        in_flight = sum(1 for receipt in self.in_flight if receipt.startswith(f"{queue}:"))
        return QueueDepth(
            pending=len(self.queues[queue]),
            in_flight=in_flight,
            failed=len(self.failed[queue]),
        )

    def next_ready_in(self, queue: str) -> Optional[float]:
        """Seconds until the next pending job on the queue becomes visible."""
        pending = self.queues[queue]
        if not pending:
            return None
        return max(0.0, min(m.available_at for m in pending) - self.clock())
