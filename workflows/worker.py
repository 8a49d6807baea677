"""
Workflow: Pipeline Worker
=========================
Runs the queue consumers: ingest (1 worker), enrich (3), sync (2) and
notify (1). Each failed job is retried with exponential backoff and moved to
the queue's failed queue after its last attempt. Exits cleanly on
SIGINT/SIGTERM once in-flight jobs finish.

USAGE:
    # All consumers against SQS (production)
    uv run python -m workflows.worker

    # Only some queues
    uv run python -m workflows.worker --queues enrich sync

    # Local run: in-memory queues, one ingestion, stop when everything drained
    uv run python -m workflows.worker --local --quota 5
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse
import asyncio
import signal
from typing import List, Optional

from loguru import logger

from db.client import close_db, init_db, is_configured
from messages import HandlerRegistry, JobQueue, MemoryTransport, QueueName, RunIngestion, SQSTransport, consume
import messages.pipeline as pipeline
from services.store import MockRepo, Repo

shutdown_requested = False


def handle_shutdown(signum, frame):
    global shutdown_requested
    logger.info("Shutdown requested, finishing in-flight jobs...")
    shutdown_requested = True


async def run_workers(queues: List[str], local: bool = False, quota: Optional[int] = None) -> None:
    if is_configured():
        await init_db()
        repo = Repo()
    elif local:
        logger.warning("No database configured, using the in-memory store")
        repo = MockRepo()
    else:
        logger.error("Database not configured. Set DATABASE_URL or OUTREACH_DB_HOST.")
        return

    transport = MemoryTransport() if local else SQSTransport()
    pipeline.configure(pipeline.build_pipeline(repo=repo, transport=transport))

    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    try:
        if local:
            await JobQueue(transport).enqueue(RunIngestion(quota=quota))
            # Stages feed each other, so drain in pipeline order
            for name in QueueName.ALL:
                if name in queues and not shutdown_requested:
                    await consume(
                        name, transport,
                        stop_when_empty=True,
                        idle_sleep=0.1,
                        should_stop=lambda: shutdown_requested,
                    )
        else:
            jobs = HandlerRegistry.queues()
            for name in queues:
                logger.info(f"Starting consumer {name}: {', '.join(jobs.get(name, []))}")
            await asyncio.gather(*(
                consume(name, transport, should_stop=lambda: shutdown_requested)
                for name in queues
            ))
    finally:
        pipeline.configure(None)
        await close_db()

    logger.info("Workers stopped")


def main():
    parser = argparse.ArgumentParser(description="Outreach pipeline queue workers")
    parser.add_argument(
        "--queues", nargs="+", choices=QueueName.ALL, default=list(QueueName.ALL),
        help="Queues to consume (default: all)",
    )
    parser.add_argument("--local", action="store_true", help="Use in-memory queues and stop when drained")
    parser.add_argument("--quota", type=int, default=None, help="Ingestion quota for --local runs")

    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="INFO", format="<level>{level: <8}</level> | {message}")

    asyncio.run(run_workers(args.queues, local=args.local, quota=args.quota))


if __name__ == "__main__":
    main()
