#!/usr/bin/env python3
"""
Pipeline Status - enrichments per status, recent activity and queue depth.

Usage:
    uv run python -m workflows.status
    uv run python -m workflows.status --hours 72
    uv run python -m workflows.status --no-queues     # skip SQS lookups
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List

from loguru import logger

from db.client import close_db, init_db
from db.models import EnrichmentStatus
from messages import HandlerRegistry, QueueName, SQSTransport
import messages.pipeline  # registers job handlers
from messages.transport import QueueDepth
from services.errors import ConfigurationError
from services.notify import DIGEST_LINES
from services.store import Repo


def progress_bar(value: int, total: int, width: int = 30) -> str:
    if total == 0:
        return "░" * width
    filled = int(width * value / total)
    return "█" * filled + "░" * (width - filled)


def print_enrichments(counts: Dict[str, int]) -> None:
    total = sum(counts.values())
    print("\n" + "=" * 60)
    print("ENRICHMENTS")
    print("=" * 60)
    print(f"\nTotal: {total:,}\n")
    for status in EnrichmentStatus:
        count = counts.get(status.value, 0)
        pct = 100 * count / total if total > 0 else 0
        print(f"  {status.value:<20} {progress_bar(count, total, 20)} {count:>6,} ({pct:.1f}%)")


def print_activity(counts: Dict[str, int], hours: int) -> None:
    print(f"\nActivity (last {hours}h):")
    for label, event_type in DIGEST_LINES:
        print(f"  {label:<20} {counts.get(event_type.value, 0):>6,}")


def print_queues(depths: Dict[str, QueueDepth], jobs: Dict[str, List[str]]) -> None:
    print(f"\n{'Queue':<10} {'Pending':>10} {'In flight':>10} {'Failed':>10}  Jobs")
    print("-" * 70)
    for name, depth in depths.items():
        job_types = ", ".join(jobs.get(name, []))
        print(f"{name:<10} {depth.pending:>10,} {depth.in_flight:>10,} {depth.failed:>10,}  {job_types}")


async def get_queue_depths() -> Dict[str, QueueDepth]:
    transport = SQSTransport()
    depths = {}
    for name in QueueName.ALL:
        try:
            depths[name] = await transport.depth(name)
        except ConfigurationError as e:
            logger.warning(f"Skipping {name}: {e}")
    return depths


async def run():
    parser = argparse.ArgumentParser(description="View pipeline status")
    parser.add_argument("--hours", type=int, default=24, help="Activity window")
    parser.add_argument("--no-queues", action="store_true", help="Do not query queue depth")

    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="WARNING")
    await init_db()

    try:
        repo = Repo()
        print_enrichments(await repo.count_enrichments_by_status())
        since = datetime.now(timezone.utc) - timedelta(hours=args.hours)
        print_activity(await repo.count_events_since(since), args.hours)
        if not args.no_queues:
            print_queues(await get_queue_depths(), HandlerRegistry.queues())
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(run())
