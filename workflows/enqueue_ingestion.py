"""
Workflow: Enqueue Ingestion
===========================
Cron entry point. Puts one RunIngestion job on the ingest queue; the worker
pulls the batch from the discovery source.

USAGE:
    # Queue today's batch (quota from settings / DAILY_QUOTA)
    uv run python -m workflows.enqueue_ingestion

    # Smaller batch with extra search filters
    uv run python -m workflows.enqueue_ingestion --quota 10 --filters '{"person_titles": ["Head of CRM"]}'

    # Run the batch in this process instead of queueing it
    uv run python -m workflows.enqueue_ingestion --now
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse
import asyncio
import json
from typing import Optional

from loguru import logger

from db.client import close_db, init_db
from messages import JobQueue, RunIngestion, SQSTransport
from services.errors import PipelineError


async def run(quota: Optional[int], filters: dict, now: bool) -> None:
    job = RunIngestion(quota=quota, filters=filters)

    if not now:
        message_id = await JobQueue(SQSTransport()).enqueue(job)
        logger.info(f"Queued ingestion (message ID: {message_id})")
        return

    import messages.pipeline as pipeline

    await init_db()
    try:
        result = await pipeline.handle_run_ingestion(job)
        logger.info(
            f"Ingestion finished: staged={result.staged} skipped={result.skipped} "
            f"deduped={result.deduped} failed={result.failed}"
        )
    finally:
        await close_db()


def main():
    parser = argparse.ArgumentParser(description="Queue a discovery/ingestion batch")
    parser.add_argument("--quota", type=int, default=None, help="Candidates to pull (capped at the daily quota)")
    parser.add_argument("--filters", type=str, default="{}", help="JSON search filters merged over the segment filters")
    parser.add_argument("--now", action="store_true", help="Run ingestion in this process")

    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="INFO", format="<level>{level: <8}</level> | {message}")

    try:
        filters = json.loads(args.filters)
    except json.JSONDecodeError as e:
        parser.error(f"--filters is not valid JSON: {e}")

    try:
        asyncio.run(run(args.quota, filters, args.now))
    except PipelineError as e:
        logger.error(f"Ingestion not started: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
