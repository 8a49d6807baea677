"""Notification messages: approval-ready alerts and the daily digest.

Sends through the injected notification sink. Sinks are best-effort, so a
failed post is logged and never fails the job.
"""

import os
from datetime import datetime
from typing import Dict, Optional

from loguru import logger

from db.models import Contact, Enrichment, EnrichmentStatus, EventType
from services.errors import NotFoundError
from services.ports import INotificationSink
from services.store.repo import IRepo

DEFAULT_APP_BASE_URL = "http://localhost:3000"

# (label, event type) in display order
DIGEST_LINES = (
    ("New staged", EventType.PULLED_FROM_SOURCE),
    ("Enriched", EventType.ENRICHED),
    ("Approved", EventType.APPROVED),
    ("Synced", EventType.SYNCED),
    ("Skipped", EventType.SKIPPED),
    ("Failed", EventType.FAILED),
)


def get_app_base_url() -> str:
    return (os.getenv("APP_BASE_URL") or DEFAULT_APP_BASE_URL).rstrip("/")


def approval_ready_message(enrichment: Enrichment, contact: Contact, base_url: str) -> str:
    block = enrichment.approval_block or "Approval block unavailable"
    url = f"{base_url}/contacts/{contact.id}"
    return "\n".join([
        "*Approval required*",
        "```",
        block,
        "```",
        f"<{url}|Review {contact.display_name}>",
    ])


def digest_message(counts: Dict[str, int], since: datetime) -> str:
    lines = [f"*Daily Outreach Digest* (since {since:%Y-%m-%d %H:%M} UTC)"]
    for label, event_type in DIGEST_LINES:
        lines.append(f"{label}: {counts.get(event_type.value, 0)}")
    return "\n".join(lines)


class NotifyService:
    def __init__(self, repo: IRepo, sink: INotificationSink, base_url: Optional[str] = None):
        self.repo = repo
        self.sink = sink
        self.base_url = (base_url or get_app_base_url()).rstrip("/")

    async def _send(self, text: str) -> bool:
        try:
            return await self.sink.send(text)
        except Exception as e:
            logger.warning(f"Notification sink failed: {e}")
            return False

    async def notify_approval_ready(self, enrichment_id: int) -> bool:
        """Post the approval block. Returns False when nothing was sent."""
        enrichment = await self.repo.get_enrichment(enrichment_id)
        if enrichment is None:
            raise NotFoundError(f"Enrichment {enrichment_id} not found")
        if enrichment.status != EnrichmentStatus.AWAITING_APPROVAL:
            logger.info(f"Enrichment {enrichment_id} is {enrichment.status.value}, skipping approval alert")
            return False
        contact = await self.repo.get_contact(enrichment.contact_id)
        if contact is None:
            raise NotFoundError(f"Contact {enrichment.contact_id} for enrichment {enrichment_id} not found")
        return await self._send(approval_ready_message(enrichment, contact, self.base_url))

    async def send_digest(self, since: datetime) -> bool:
        counts = await self.repo.count_events_since(since)
        logger.info(f"Digest since {since.isoformat()}: {counts}")
        return await self._send(digest_message(counts, since))
