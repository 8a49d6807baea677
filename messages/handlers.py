"""Message dispatcher and worker loop.

- JobQueue: put typed messages on their named queue
- dispatch: route a message dict to its registered handler
- consume: run a queue's workers with its concurrency and retry policy

Example usage:

    transport = SQSTransport()
    queue = JobQueue(transport)
    await queue.enqueue(EnrichContact(enrichment_id=42))

    await consume(QueueName.ENRICH, transport)
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Type

from loguru import logger

from messages.base import Message, HandlerRegistry
from messages.queues import JobPolicy, get_policy
from messages.transport import ITransport, ReceivedJob
from services.errors import ConfigurationError, ConflictError, NotFoundError, PermissionDeniedError

# Retrying these cannot succeed
NON_RETRIABLE = (ConfigurationError, ConflictError, NotFoundError, PermissionDeniedError)


class JobQueue:
    """Sends messages through a transport."""

    def __init__(self, transport: ITransport):
        self.transport = transport

    async def enqueue(self, message: Message, delay_seconds: int = 0) -> str:
        message_id = await self.transport.send(message.queue, message.to_dict(), delay_seconds)
        logger.info(f"Queued {message.__class__.__name__} on {message.queue}: {message_id}")
        return message_id


class MockJobQueue:
    """Records enqueued messages instead of sending them."""

    def __init__(self):
        self.messages: List[Message] = []

    async def enqueue(self, message: Message, delay_seconds: int = 0) -> str:
        self.messages.append(message)
        return f"mock-{len(self.messages)}"

    def of_type(self, message_cls: Type[Message]) -> List[Message]:
        return [m for m in self.messages if isinstance(m, message_cls)]


async def dispatch(data: dict) -> Any:
    """Dispatch a message dict to its registered handler.

    Raises:
        ValueError: If message type is unknown
    """
    type_name = data.get("_type")
    if not type_name:
        raise ValueError("Message missing '_type' field")

    handler_info = HandlerRegistry.get_handler(type_name)
    if not handler_info:
        raise ValueError(f"No handler registered for message type: {type_name}")

    message_cls, handler_func = handler_info
    msg = message_cls.from_dict(data)

    logger.debug(f"Dispatching {type_name} to handler")
    result = await handler_func(msg)
    logger.debug(f"Handler {type_name} completed")

    return result


async def process_job(transport: ITransport, job: ReceivedJob, policy: JobPolicy) -> bool:
    """Run one delivery. Returns True when the job completed.

    Failures are retried with exponential backoff until the policy's
    attempts run out, then the job moves to the failed queue.
    """
    type_name = job.body.get("_type", "?")
    try:
        await dispatch(job.body)
    except Exception as e:
        error = f"{e.__class__.__name__}: {e}"
        if isinstance(e, NON_RETRIABLE) or job.attempt >= policy.max_attempts:
            logger.error(f"{type_name} {job.message_id} failed on attempt {job.attempt}, giving up: {error}")
            if policy.keep_failed:
                await transport.fail(job, error)
            else:
                await transport.ack(job)
        else:
            delay = policy.backoff_for(job.attempt)
            logger.warning(f"{type_name} {job.message_id} failed on attempt {job.attempt}, retrying in {delay:.0f}s: {error}")
            await transport.retry_later(job, delay)
        return False

    await transport.ack(job)
    logger.info(f"Processed {type_name} {job.message_id}")
    return True


@dataclass
class ConsumeStats:
    processed: int = 0
    errors: int = 0


async def consume(
    queue_name: str,
    transport: ITransport,
    policy: Optional[JobPolicy] = None,
    max_messages: int = 0,
    wait_time_seconds: int = 20,
    stop_when_empty: bool = False,
    idle_sleep: float = 1.0,
    should_stop: Optional[Callable[[], bool]] = None,
) -> ConsumeStats:
    """Consume a queue with `policy.concurrency` concurrent workers.

    Args:
        max_messages: Stop after this many deliveries (0 = unlimited)
        stop_when_empty: Exit once nothing is pending or in flight
        should_stop: Polled between deliveries (signal handling)
    """
    policy = policy or get_policy(queue_name)
    stats = ConsumeStats()
    logger.info(f"Starting consumer for {queue_name} (concurrency={policy.concurrency})")

    def done() -> bool:
        if should_stop and should_stop():
            return True
        return max_messages > 0 and stats.processed + stats.errors >= max_messages

    async def worker() -> None:
        while not done():
            jobs = await transport.receive(queue_name, max_messages=1, wait_seconds=wait_time_seconds)
            if not jobs:
                if stop_when_empty:
                    depth = await transport.depth(queue_name)
                    if depth.pending == 0 and depth.in_flight == 0:
                        return
                await asyncio.sleep(idle_sleep)
                continue

            if await process_job(transport, jobs[0], policy):
                stats.processed += 1
            else:
                stats.errors += 1

    await asyncio.gather(*(worker() for _ in range(policy.concurrency)))
    logger.info(f"Consumer for {queue_name} stopped: processed={stats.processed} errors={stats.errors}")
    return stats
