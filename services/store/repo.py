"""Store - narrow named operations over contacts, enrichments, events, settings.

Every state change is a single conditional statement; a method returns None
when its guard did not match, and the caller decides whether that is a
conflict.
"""

import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from db.client import get_conn, queries
from db.models import Contact, Enrichment, EnrichmentStatus, Event, EventType, INSIGHT_FIELDS


class IRepo(ABC):
    """Persistence port used by every stage."""

    # Contacts

    @abstractmethod
    async def get_contact(self, contact_id: int) -> Optional[Contact]:
        pass

    @abstractmethod
    async def get_contact_by_email(self, email: str) -> Optional[Contact]:
        pass

    @abstractmethod
    async def find_recent_contact_by_name(
        self,
        company_domain: str,
        first_name: str,
        last_name: str,
        exclude_email: str,
        cooldown_days: int,
    ) -> Optional[Contact]:
        """Another contact with the same domain and full name inside the cool-down window."""
        pass

    @abstractmethod
    async def upsert_contact(
        self,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        company_name: Optional[str] = None,
        company_domain: Optional[str] = None,
        discovery_id: Optional[str] = None,
    ) -> Contact:
        """Insert by email, or refresh the identity fields of the existing row."""
        pass

    @abstractmethod
    async def set_contact_crm_id(self, contact_id: int, crm_id: str) -> Optional[Contact]:
        """Write the CRM id once. None if a different id is already stored."""
        pass

    # Enrichments

    @abstractmethod
    async def get_enrichment(self, enrichment_id: int) -> Optional[Enrichment]:
        pass

    @abstractmethod
    async def get_pending_enrichment(self, contact_id: int) -> Optional[Enrichment]:
        pass

    @abstractmethod
    async def get_latest_enrichment(self, contact_id: int) -> Optional[Enrichment]:
        pass

    @abstractmethod
    async def list_enrichments_for_contact(self, contact_id: int) -> List[Enrichment]:
        """Newest first."""
        pass

    @abstractmethod
    async def list_enrichments_by_status(self, status: EnrichmentStatus, limit: int = 100) -> List[Enrichment]:
        """Newest first."""
        pass

    @abstractmethod
    async def create_pending_enrichment(self, contact_id: int) -> Optional[Enrichment]:
        """New awaiting_approval enrichment. None if the contact already has one."""
        pass

    @abstractmethod
    async def save_insights(self, enrichment_id: int, insights: Dict[str, Any]) -> Optional[Enrichment]:
        """Write research results to an undecided enrichment (status -> awaiting_approval)."""
        pass

    @abstractmethod
    async def mark_enrichment_failed(self, enrichment_id: int, error: str) -> Optional[Enrichment]:
        """Undecided enrichment -> error."""
        pass

    @abstractmethod
    async def decide(
        self,
        enrichment_id: int,
        status: EnrichmentStatus,
        decided_by: str,
        error: Optional[str] = None,
    ) -> Optional[Enrichment]:
        """awaiting_approval -> approved/rejected, stamping decided_by/decided_at."""
        pass

    @abstractmethod
    async def record_sync_result(
        self,
        enrichment_id: int,
        status: EnrichmentStatus,
        error: Optional[str] = None,
    ) -> Optional[Enrichment]:
        """Approved (or previously synced/failed-sync) enrichment -> synced/error."""
        pass

    @abstractmethod
    async def count_enrichments_by_status(self) -> Dict[str, int]:
        pass

    # Events

    @abstractmethod
    async def insert_event(
        self,
        type: EventType,
        contact_id: Optional[int] = None,
        enrichment_id: Optional[int] = None,
        payload: Optional[str] = None,
    ) -> Event:
        pass

    @abstractmethod
    async def list_events_for_contact(self, contact_id: int) -> List[Event]:
        """Newest first."""
        pass

    @abstractmethod
    async def list_events(
        self,
        types: Optional[List[EventType]] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[Event]:
        """Activity feed, newest first."""
        pass

    @abstractmethod
    async def count_events_since(self, since: datetime) -> Dict[str, int]:
        pass

    # Settings

    @abstractmethod
    async def get_settings(self) -> Dict[str, Any]:
        """All settings as key -> decoded JSON value."""
        pass

    @abstractmethod
    async def set_setting(self, key: str, value: Any) -> None:
        pass


def _contact(row) -> Optional[Contact]:
    return Contact.model_validate(dict(row)) if row else None


def _enrichment(row) -> Optional[Enrichment]:
    return Enrichment.model_validate(dict(row)) if row else None


def _event(row) -> Optional[Event]:
    return Event.model_validate(dict(row)) if row else None


class Repo(IRepo):
    """Postgres implementation (asyncpg + aiosql)."""

    async def get_contact(self, contact_id: int) -> Optional[Contact]:
        async with get_conn() as conn:
            return _contact(await queries.get_contact_by_id(conn, contact_id=contact_id))

    async def get_contact_by_email(self, email: str) -> Optional[Contact]:
        async with get_conn() as conn:
            return _contact(await queries.get_contact_by_email(conn, email=email.strip().lower()))

    async def find_recent_contact_by_name(
        self,
        company_domain: str,
        first_name: str,
        last_name: str,
        exclude_email: str,
        cooldown_days: int,
    ) -> Optional[Contact]:
        async with get_conn() as conn:
            row = await queries.find_recent_contact_by_domain_and_name(
                conn,
                company_domain=company_domain,
                first_name=first_name or "",
                last_name=last_name or "",
                email=exclude_email,
                cooldown_days=cooldown_days,
            )
            return _contact(row)

    async def upsert_contact(
        self,
        email: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        company_name: Optional[str] = None,
        company_domain: Optional[str] = None,
        discovery_id: Optional[str] = None,
    ) -> Contact:
        async with get_conn() as conn:
            row = await queries.upsert_contact(
                conn,
                email=email.strip().lower(),
                first_name=first_name,
                last_name=last_name,
                company_name=company_name,
                company_domain=company_domain,
                discovery_id=discovery_id,
            )
            return _contact(row)

    async def set_contact_crm_id(self, contact_id: int, crm_id: str) -> Optional[Contact]:
        async with get_conn() as conn:
            return _contact(await queries.set_contact_crm_id(conn, contact_id=contact_id, crm_id=crm_id))

    async def get_enrichment(self, enrichment_id: int) -> Optional[Enrichment]:
        async with get_conn() as conn:
            return _enrichment(await queries.get_enrichment_by_id(conn, enrichment_id=enrichment_id))

    async def get_pending_enrichment(self, contact_id: int) -> Optional[Enrichment]:
        async with get_conn() as conn:
            return _enrichment(await queries.get_pending_enrichment(conn, contact_id=contact_id))

    async def get_latest_enrichment(self, contact_id: int) -> Optional[Enrichment]:
        async with get_conn() as conn:
            return _enrichment(await queries.get_latest_enrichment(conn, contact_id=contact_id))

    async def list_enrichments_for_contact(self, contact_id: int) -> List[Enrichment]:
        async with get_conn() as conn:
            rows = await queries.list_enrichments_for_contact(conn, contact_id=contact_id)
            return [_enrichment(r) for r in rows]

    async def list_enrichments_by_status(self, status: EnrichmentStatus, limit: int = 100) -> List[Enrichment]:
        async with get_conn() as conn:
            rows = await queries.list_enrichments_by_status(conn, status=EnrichmentStatus(status).value, limit=limit)
            return [_enrichment(r) for r in rows]

    async def create_pending_enrichment(self, contact_id: int) -> Optional[Enrichment]:
        async with get_conn() as conn:
            return _enrichment(await queries.insert_pending_enrichment(conn, contact_id=contact_id))

    async def save_insights(self, enrichment_id: int, insights: Dict[str, Any]) -> Optional[Enrichment]:
        fields = {name: insights.get(name) for name in INSIGHT_FIELDS}
        async with get_conn() as conn:
            row = await queries.save_enrichment_insights(conn, enrichment_id=enrichment_id, **fields)
            return _enrichment(row)

    async def mark_enrichment_failed(self, enrichment_id: int, error: str) -> Optional[Enrichment]:
        async with get_conn() as conn:
            return _enrichment(await queries.mark_enrichment_failed(conn, enrichment_id=enrichment_id, error=error))

    async def decide(
        self,
        enrichment_id: int,
        status: EnrichmentStatus,
        decided_by: str,
        error: Optional[str] = None,
    ) -> Optional[Enrichment]:
        async with get_conn() as conn:
            row = await queries.transition_decision(
                conn,
                enrichment_id=enrichment_id,
                status=EnrichmentStatus(status).value,
                decided_by=decided_by,
                error=error,
            )
            return _enrichment(row)

    async def record_sync_result(
        self,
        enrichment_id: int,
        status: EnrichmentStatus,
        error: Optional[str] = None,
    ) -> Optional[Enrichment]:
        async with get_conn() as conn:
            row = await queries.transition_sync_result(
                conn,
                enrichment_id=enrichment_id,
                status=EnrichmentStatus(status).value,
                error=error,
            )
            return _enrichment(row)

    async def count_enrichments_by_status(self) -> Dict[str, int]:
        async with get_conn() as conn:
            rows = await queries.count_enrichments_by_status(conn)
            return {r["status"]: r["count"] for r in rows}

    async def insert_event(
        self,
        type: EventType,
        contact_id: Optional[int] = None,
        enrichment_id: Optional[int] = None,
        payload: Optional[str] = None,
    ) -> Event:
        async with get_conn() as conn:
            row = await queries.insert_event(
                conn,
                type=EventType(type).value,
                contact_id=contact_id,
                enrichment_id=enrichment_id,
                payload=payload,
            )
            return _event(row)

    async def list_events_for_contact(self, contact_id: int) -> List[Event]:
        async with get_conn() as conn:
            rows = await queries.list_events_for_contact(conn, contact_id=contact_id)
            return [_event(r) for r in rows]

    async def list_events(
        self,
        types: Optional[List[EventType]] = None,
        since: Optional[datetime] = None,
        until: Optional[datetime] = None,
        limit: int = 100,
    ) -> List[Event]:
        async with get_conn() as conn:
            rows = await queries.list_events(
                conn,
                types=[EventType(t).value for t in types] if types else None,
                since=since,
                until=until,
                limit=limit,
            )
            return [_event(r) for r in rows]

    async def count_events_since(self, since: datetime) -> Dict[str, int]:
        async with get_conn() as conn:
            rows = await queries.count_events_since(conn, since=since)
            return {r["type"]: r["count"] for r in rows}

    async def get_settings(self) -> Dict[str, Any]:
        async with get_conn() as conn:
            rows = await queries.get_all_settings(conn)
            return {r["key"]: json.loads(r["value"]) for r in rows}

    async def set_setting(self, key: str, value: Any) -> None:
        async with get_conn() as conn:
            await queries.upsert_setting(conn, key=key, value=json.dumps(value))
