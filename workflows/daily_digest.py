"""
Workflow: Daily Digest
======================
Cron entry point. Queues a NotifyDigest job covering the last N hours; the
notify worker posts the counts to Slack.

USAGE:
    uv run python -m workflows.daily_digest
    uv run python -m workflows.daily_digest --hours 72
    uv run python -m workflows.daily_digest --now   # post from this process
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse
import asyncio
from datetime import datetime, timedelta, timezone

from loguru import logger

from db.client import close_db, init_db
from messages import JobQueue, NotifyDigest, SQSTransport


async def run(hours: int, now: bool) -> None:
    since = datetime.now(timezone.utc) - timedelta(hours=hours)
    job = NotifyDigest(since=since.isoformat())

    if not now:
        message_id = await JobQueue(SQSTransport()).enqueue(job)
        logger.info(f"Queued digest since {since:%Y-%m-%d %H:%M} (message ID: {message_id})")
        return

    import messages.pipeline as pipeline

    await init_db()
    try:
        sent = await pipeline.handle_notify_digest(job)
        logger.info("Digest posted" if sent else "Digest not posted")
    finally:
        await close_db()


def main():
    parser = argparse.ArgumentParser(description="Post the pipeline digest")
    parser.add_argument("--hours", type=int, default=24, help="Window to count events over")
    parser.add_argument("--now", action="store_true", help="Post from this process instead of queueing")

    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="INFO", format="<level>{level: <8}</level> | {message}")

    asyncio.run(run(args.hours, args.now))


if __name__ == "__main__":
    main()
