"""Approval Gate.

Human decisions on awaiting enrichments. Approve and reject are single
conditional transitions out of awaiting_approval; a second call on the same
enrichment gets a ConflictError. Approving syncs to the CRM straight away;
a failed sync is recorded on the enrichment and queued for retry.
"""

from enum import Enum
from typing import List, Optional

from loguru import logger
from pydantic import BaseModel

from db.models import Contact, Enrichment, EnrichmentStatus, Event, EventType
from messages.jobs import EnrichContact, SyncEnrichment
from services.errors import ConflictError, NotFoundError, PermissionDeniedError
from services.events import EventLog
from services.ports import IJobQueue
from services.store.repo import IRepo
from services.sync.service import SyncResult, SyncService

MAX_REASON_LENGTH = 500


class Role(str, Enum):
    ADMIN = "admin"
    OPERATOR = "operator"
    VIEWER = "viewer"


APPROVER_ROLES = frozenset({Role.ADMIN, Role.OPERATOR})


class Actor(BaseModel):
    """Authenticated caller, resolved by whatever fronts the gate."""

    user: str
    role: Role

    @property
    def can_approve(self) -> bool:
        return self.role in APPROVER_ROLES


class ApprovalResult(BaseModel):
    enrichment: Enrichment
    sync: Optional[SyncResult] = None


class ApprovalItem(BaseModel):
    enrichment: Enrichment
    contact: Contact


class ContactDetail(BaseModel):
    contact: Contact
    enrichments: List[Enrichment]
    events: List[Event]


class ApprovalService:
    """Approval gate. Collaborators are injected."""

    def __init__(
        self,
        repo: IRepo,
        sync: SyncService,
        queue: IJobQueue,
        events: Optional[EventLog] = None,
    ):
        self.repo = repo
        self.sync = sync
        self.queue = queue
        self.events = events or EventLog(repo)

    def _require_approver(self, actor: Actor, action: str) -> None:
        if not actor.can_approve:
            raise PermissionDeniedError(f"{actor.user} ({actor.role.value}) may not {action}")

    async def _decide(
        self,
        enrichment_id: int,
        status: EnrichmentStatus,
        actor: Actor,
        error: Optional[str] = None,
    ) -> Enrichment:
        decided = await self.repo.decide(enrichment_id, status, decided_by=actor.user, error=error)
        if decided is not None:
            return decided

        current = await self.repo.get_enrichment(enrichment_id)
        if current is None:
            raise NotFoundError(f"Enrichment {enrichment_id} not found")
        raise ConflictError(f"Enrichment {enrichment_id} is {current.status.value}, not awaiting approval")

    async def approve(self, enrichment_id: int, actor: Actor) -> ApprovalResult:
        """Approve and sync to the CRM.

        Raises:
            PermissionDeniedError: actor is not an admin or operator.
            NotFoundError: unknown enrichment.
            ConflictError: enrichment is not awaiting approval.
        """
        self._require_approver(actor, "approve")
        enrichment = await self._decide(enrichment_id, EnrichmentStatus.APPROVED, actor)
        logger.info(f"Enrichment {enrichment_id} approved by {actor.user}")
        await self.events.record(
            EventType.APPROVED,
            contact_id=enrichment.contact_id,
            enrichment_id=enrichment.id,
            payload={"decided_by": actor.user},
        )

        contact = await self.repo.get_contact(enrichment.contact_id)
        if contact is None:
            raise NotFoundError(f"Contact {enrichment.contact_id} for enrichment {enrichment_id} not found")
        result = await self.sync.sync(enrichment, contact)
        if not result.ok:
            await self.queue.enqueue(SyncEnrichment(enrichment_id=enrichment.id))

        enrichment = await self.repo.get_enrichment(enrichment_id) or enrichment
        return ApprovalResult(enrichment=enrichment, sync=result)

    async def reject(self, enrichment_id: int, actor: Actor, reason: Optional[str] = None) -> ApprovalResult:
        """Reject. Nothing is sent to the CRM."""
        self._require_approver(actor, "reject")
        reason = (reason or "").strip()[:MAX_REASON_LENGTH] or None
        enrichment = await self._decide(enrichment_id, EnrichmentStatus.REJECTED, actor, error=reason)
        logger.info(f"Enrichment {enrichment_id} rejected by {actor.user}")
        await self.events.record(
            EventType.REJECTED,
            contact_id=enrichment.contact_id,
            enrichment_id=enrichment.id,
            payload={"decided_by": actor.user, "reason": reason},
        )
        return ApprovalResult(enrichment=enrichment)

    async def request_re_enrichment(self, contact_id: int, actor: Actor) -> Enrichment:
        """Open a fresh pending enrichment for a contact and queue its research.

        Raises:
            ConflictError: the contact already has a pending enrichment.
        """
        self._require_approver(actor, "request re-enrichment")
        contact = await self.repo.get_contact(contact_id)
        if contact is None:
            raise NotFoundError(f"Contact {contact_id} not found")

        enrichment = await self.repo.create_pending_enrichment(contact_id)
        if enrichment is None:
            raise ConflictError(f"Contact {contact_id} already has a pending enrichment")

        await self.events.record(
            EventType.RE_ENRICH_REQUESTED,
            contact_id=contact_id,
            enrichment_id=enrichment.id,
            payload={"requested_by": actor.user},
        )
        await self.queue.enqueue(EnrichContact(enrichment_id=enrichment.id))
        return enrichment

    async def list_awaiting(self, actor: Actor, limit: int = 100) -> List[ApprovalItem]:
        """Researched enrichments waiting for a decision, oldest first."""
        enrichments = await self.repo.list_enrichments_by_status(EnrichmentStatus.AWAITING_APPROVAL, limit=limit)
        items = []
        for enrichment in sorted(enrichments, key=lambda e: e.id):
            # Pending rows without a block are still being researched
            if not enrichment.approval_block:
                continue
            contact = await self.repo.get_contact(enrichment.contact_id)
            if contact is not None:
                items.append(ApprovalItem(enrichment=enrichment, contact=contact))
        return items

    async def get_contact_detail(self, contact_id: int, actor: Actor) -> ContactDetail:
        contact = await self.repo.get_contact(contact_id)
        if contact is None:
            raise NotFoundError(f"Contact {contact_id} not found")
        return ContactDetail(
            contact=contact,
            enrichments=await self.repo.list_enrichments_for_contact(contact_id),
            events=await self.events.history(contact_id),
        )
