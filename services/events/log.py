"""Event Log.

Every stage records its transitions here. Payloads are redacted before
they are serialized, so raw emails, addresses, postcodes, phone numbers
and personalized notes never reach the events table.
"""

import json
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from loguru import logger

from db.models import Event, EventType
from services.store.repo import IRepo

REDACTED = "[redacted]"

SENSITIVE_KEYS = frozenset({
    "email",
    "address",
    "address_line1",
    "address_line2",
    "postcode",
    "zip",
    "phone",
    "note",
})

EMAIL_PATTERN = re.compile(r"[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}")
UK_POSTCODE_PATTERN = re.compile(r"\b[A-Z]{1,2}\d[A-Z\d]?\s*\d[A-Z]{2}\b", re.IGNORECASE)
US_ZIP_PATTERN = re.compile(r"\b\d{5}(?:-\d{4})?\b")


def _redact_text(value: str) -> str:
    value = EMAIL_PATTERN.sub(REDACTED, value)
    value = UK_POSTCODE_PATTERN.sub(REDACTED, value)
    return US_ZIP_PATTERN.sub(REDACTED, value)


def redact(value: Any, key: Optional[str] = None) -> Any:
    """Return a copy of value with sensitive data replaced by [redacted]."""
    if key is not None and key.lower() in SENSITIVE_KEYS and value is not None:
        return REDACTED
    if isinstance(value, dict):
        return {k: redact(v, str(k)) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    if isinstance(value, str):
        return _redact_text(value)
    return value


class EventLog:
    """Appends redacted events through the store."""

    def __init__(self, repo: IRepo):
        self.repo = repo

    async def record(
        self,
        type: EventType,
        contact_id: Optional[int] = None,
        enrichment_id: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Event:
        body = json.dumps(redact(payload), default=str) if payload is not None else None
        event = await self.repo.insert_event(
            type=type,
            contact_id=contact_id,
            enrichment_id=enrichment_id,
            payload=body,
        )
        logger.debug(f"Event {event.type.value} contact={contact_id} enrichment={enrichment_id}")
        return event

    async def history(self, contact_id: int) -> List[Event]:
        """Events for one contact, newest first."""
        return await self.repo.list_events_for_contact(contact_id)

    async def activity(
        self,
        types: Optional[List[EventType]] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[Event]:
        """Activity feed, newest first."""
        return await self.repo.list_events(types=types, since=since, until=until, limit=limit)

    async def counts_since(self, since: datetime) -> Dict[str, int]:
        return await self.repo.count_events_since(since)
