"""In-memory store with the same guard semantics as Repo.

Used by stage tests and local dry runs.
"""

import copy
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from db.models import (
    Contact,
    Enrichment,
    EnrichmentStatus,
    Event,
    EventType,
    INSIGHT_FIELDS,
)
from services.store.repo import IRepo

UNDECIDED = (EnrichmentStatus.AWAITING_APPROVAL, EnrichmentStatus.ERROR)
SYNCABLE = (EnrichmentStatus.APPROVED, EnrichmentStatus.SYNCED, EnrichmentStatus.ERROR)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class MockRepo(IRepo):
    """Dict-backed repository."""

    def __init__(self, settings: Optional[Dict[str, Any]] = None):
        self.contacts: Dict[int, Contact] = {}
        self.enrichments: Dict[int, Enrichment] = {}
        self.events: List[Event] = []
        self.settings: Dict[str, Any] = dict(settings or {})
        self._ids = {"contact": 0, "enrichment": 0, "event": 0}

    def _next_id(self, kind: str) -> int:
        self._ids[kind] += 1
        return self._ids[kind]

    def events_of(self, type: EventType) -> List[Event]:
        """Test helper: events of one type, oldest first."""
        return [e for e in self.events if e.type == type]

    # Contacts

    async def get_contact(self, contact_id: int) -> Optional[Contact]:
        return self.contacts.get(contact_id)

    async def get_contact_by_email(self, email: str) -> Optional[Contact]:
        email = email.strip().lower()
        return next((c for c in self.contacts.values() if c.email == email), None)

    async def find_recent_contact_by_name(
        self,
        company_domain: str,
        first_name: str,
        last_name: str,
        exclude_email: str,
        cooldown_days: int,
    ) -> Optional[Contact]:
        cutoff = _now() - timedelta(days=cooldown_days)
        matches = [
            c for c in self.contacts.values()
            if c.company_domain == company_domain
            and (c.first_name or "").lower() == (first_name or "").lower()
            and (c.last_name or "").lower() == (last_name or "").lower()
            and c.email != exclude_email
            and c.created_at >= cutoff
        ]
        return max(matches, key=lambda c: c.created_at, default=None)

    async def upsert_contact(
        self,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        company_name: Optional[str] = None,
        company_domain: Optional[str] = None,
        discovery_id: Optional[str] = None,
    ) -> Contact:
        fields = {
            "first_name": first_name,
            "last_name": last_name,
            "company_name": company_name,
            "company_domain": company_domain,
            "discovery_id": discovery_id,
        }
        existing = await self.get_contact_by_email(email)
        if existing:
            update = {k: v for k, v in fields.items() if v is not None}
            update["updated_at"] = _now()
            contact = existing.model_copy(update=update)
        else:
            now = _now()
            contact = Contact(id=self._next_id("contact"), email=email, created_at=now, updated_at=now, **fields)
        self.contacts[contact.id] = contact
        return contact

    async def set_contact_crm_id(self, contact_id: int, crm_id: str) -> Optional[Contact]:
        contact = self.contacts.get(contact_id)
        if contact is None or contact.crm_id not in (None, crm_id):
            return None
        contact = contact.model_copy(update={"crm_id": crm_id, "updated_at": _now()})
        self.contacts[contact_id] = contact
        return contact

    # Enrichments

    def _put(self, enrichment: Enrichment, **update) -> Enrichment:
        update["updated_at"] = _now()
        enrichment = enrichment.model_copy(update=update)
        self.enrichments[enrichment.id] = enrichment
        return enrichment

    async def get_enrichment(self, enrichment_id: int) -> Optional[Enrichment]:
        return self.enrichments.get(enrichment_id)

    async def get_pending_enrichment(self, contact_id: int) -> Optional[Enrichment]:
        return next(
            (e for e in self.enrichments.values()
             if e.contact_id == contact_id and e.status == EnrichmentStatus.AWAITING_APPROVAL),
            None,
        )

    async def get_latest_enrichment(self, contact_id: int) -> Optional[Enrichment]:
        enrichments = await self.list_enrichments_for_contact(contact_id)
        return enrichments[0] if enrichments else None

    async def list_enrichments_for_contact(self, contact_id: int) -> List[Enrichment]:
        rows = [e for e in self.enrichments.values() if e.contact_id == contact_id]
        return sorted(rows, key=lambda e: e.id, reverse=True)

    async def list_enrichments_by_status(self, status: EnrichmentStatus, limit: int = 100) -> List[Enrichment]:
        rows = [e for e in self.enrichments.values() if e.status == status]
        return sorted(rows, key=lambda e: e.id, reverse=True)[:limit]

    async def create_pending_enrichment(self, contact_id: int) -> Optional[Enrichment]:
        if await self.get_pending_enrichment(contact_id):
            return None
        now = _now()
        enrichment = Enrichment(id=self._next_id("enrichment"), contact_id=contact_id, created_at=now, updated_at=now)
        self.enrichments[enrichment.id] = enrichment
        return enrichment

    async def save_insights(self, enrichment_id: int, insights: Dict[str, Any]) -> Optional[Enrichment]:
        enrichment = self.enrichments.get(enrichment_id)
        if enrichment is None or enrichment.status not in UNDECIDED or enrichment.is_decided:
            return None
        fields = {name: insights.get(name) for name in INSIGHT_FIELDS}
        return self._put(enrichment, status=EnrichmentStatus.AWAITING_APPROVAL, error=None, **fields)

    async def mark_enrichment_failed(self, enrichment_id: int, error: str) -> Optional[Enrichment]:
        enrichment = self.enrichments.get(enrichment_id)
        if enrichment is None or enrichment.status not in UNDECIDED or enrichment.is_decided:
            return None
        return self._put(enrichment, status=EnrichmentStatus.ERROR, error=error)

    async def decide(
        self,
        enrichment_id: int,
        status: EnrichmentStatus,
        decided_by: str,
        error: Optional[str] = None,
    ) -> Optional[Enrichment]:
        enrichment = self.enrichments.get(enrichment_id)
        if enrichment is None or enrichment.status != EnrichmentStatus.AWAITING_APPROVAL:
            return None
        return self._put(
            enrichment,
            status=EnrichmentStatus(status),
            error=error,
            decided_by=decided_by,
            decided_at=_now(),
        )

    async def record_sync_result(
        self,
        enrichment_id: int,
        status: EnrichmentStatus,
        error: Optional[str] = None,
    ) -> Optional[Enrichment]:
        enrichment = self.enrichments.get(enrichment_id)
        if enrichment is None or enrichment.status not in SYNCABLE or not enrichment.is_decided:
            return None
        return self._put(enrichment, status=EnrichmentStatus(status), error=error)

    async def count_enrichments_by_status(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for e in self.enrichments.values():
            counts[e.status.value] = counts.get(e.status.value, 0) + 1
        return counts

    # Events

    async def insert_event(
        self,
        type: EventType,
        contact_id: Optional[int] = None,
        enrichment_id: Optional[int] = None,
        payload: Optional[str] = None,
    ) -> Event:
        event = Event(
            id=self._next_id("event"),
            type=EventType(type),
            contact_id=contact_id,
            enrichment_id=enrichment_id,
            payload=payload,
            created_at=_now(),
        )
        self.events.append(event)
        return event

    async def list_events_for_contact(self, contact_id: int) -> List[Event]:
        return [e for e in reversed(self.events) if e.contact_id == contact_id]

    async def list_events(
        self,
        types: Optional[List[EventType]] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[Event]:
        wanted = {EventType(t) for t in types} if types else None
        rows = [
            e for e in reversed(self.events)
            if (wanted is None or e.type in wanted)
            and (since is None or e.created_at >= since)
            and (until is None or e.created_at <= until)
        ]
        return rows[:limit]

    async def count_events_since(self, since: datetime) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for e in self.events:
            if e.created_at >= since:
                counts[e.type.value] = counts.get(e.type.value, 0) + 1
        return counts

    # Settings

    async def get_settings(self) -> Dict[str, Any]:
        return copy.deepcopy(self.settings)

    async def set_setting(self, key: str, value: Any) -> None:
        self.settings[key] = copy.deepcopy(value)
