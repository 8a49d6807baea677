"""
Workflow: Review
================
Command-line front for the approval gate. The caller's identity is passed
explicitly; viewers can list and show but not decide.

USAGE:
    uv run python -m workflows.review --user ops@example.com --role viewer list
    uv run python -m workflows.review --user ops@example.com --role viewer show 42
    uv run python -m workflows.review --user ops@example.com --role operator approve 17
    uv run python -m workflows.review --user ops@example.com --role operator reject 17 --reason "Not a fit"
    uv run python -m workflows.review --user ops@example.com --role admin re-enrich 42
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse
import asyncio

from loguru import logger

from db.client import close_db, init_db
from services.approval import Actor, Role
from services.errors import PipelineError


async def run(args) -> int:
    import messages.pipeline as pipeline

    actor = Actor(user=args.user, role=args.role)
    await init_db()
    try:
        gate = pipeline.get_pipeline().approval

        if args.command == "list":
            items = await gate.list_awaiting(actor, limit=args.limit)
            print(f"\n{len(items)} awaiting approval\n")
            for item in items:
                print(f"[{item.enrichment.id}] contact {item.contact.id}")
                print(item.enrichment.approval_block)
                print("-" * 60)

        elif args.command == "show":
            detail = await gate.get_contact_detail(args.id, actor)
            contact = detail.contact
            print(f"\n{contact.display_name} <{contact.email}> at {contact.company_name or 'Unknown'}")
            print(f"CRM id: {contact.crm_id or '-'}\n")
            for e in detail.enrichments:
                print(f"  enrichment {e.id}: {e.status.value} {e.error or ''}")
            print("\nHistory:")
            for event in detail.events:
                print(f"  {event.created_at:%Y-%m-%d %H:%M} {event.type.value:<22} {event.payload or ''}")

        elif args.command == "approve":
            result = await gate.approve(args.id, actor)
            if result.sync and result.sync.ok:
                logger.info(f"Approved and synced to CRM record {result.sync.external_id}")
            else:
                logger.warning(f"Approved, CRM sync failed and was queued for retry: {result.sync.reason}")

        elif args.command == "reject":
            await gate.reject(args.id, actor, reason=args.reason)
            logger.info(f"Rejected enrichment {args.id}")

        elif args.command == "re-enrich":
            enrichment = await gate.request_re_enrichment(args.id, actor)
            logger.info(f"Queued re-enrichment {enrichment.id} for contact {args.id}")

    except PipelineError as e:
        logger.error(f"{e.code}: {e}")
        return 1
    finally:
        await close_db()
    return 0


def main():
    parser = argparse.ArgumentParser(description="Approve, reject or re-enrich contacts")
    parser.add_argument("--user", required=True, help="Who is acting")
    parser.add_argument("--role", choices=[r.value for r in Role], default=Role.VIEWER.value)
    sub = parser.add_subparsers(dest="command", required=True)

    list_cmd = sub.add_parser("list", help="Enrichments awaiting approval")
    list_cmd.add_argument("--limit", type=int, default=50)

    sub.add_parser("show", help="Contact with enrichments and history").add_argument("id", type=int, help="Contact id")
    sub.add_parser("approve", help="Approve and sync").add_argument("id", type=int, help="Enrichment id")
    reject = sub.add_parser("reject", help="Reject")
    reject.add_argument("id", type=int, help="Enrichment id")
    reject.add_argument("--reason", type=str, default=None)
    sub.add_parser("re-enrich", help="Research a contact again").add_argument("id", type=int, help="Contact id")

    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level="INFO", format="<level>{level: <8}</level> | {message}")

    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
