"""Sync Stage.

Pushes an approved enrichment into the CRM: adopts an existing CRM record
by email, creates one otherwise, and updates by id once the id is known.
"""

from typing import Any, Dict, Optional

from loguru import logger
from pydantic import BaseModel

from db.models import Contact, Enrichment, EnrichmentStatus, EventType
from services.errors import ConflictError, NotFoundError
from services.events import EventLog
from services.ports import ICrmTarget
from services.store.repo import IRepo

# HubSpot internal value for the "Enriched Prospect" lifecycle stage
LIFECYCLE_STAGE = "1101494863"
OUTBOUND_STAGE = "3. Address Procured"

SYNCED = EnrichmentStatus.SYNCED.value
SYNC_ERROR = EnrichmentStatus.ERROR.value


class SyncResult(BaseModel):
    status: str
    external_id: Optional[str] = None
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == SYNCED


def map_enrichment_to_crm(contact: Contact, enrichment: Enrichment) -> Dict[str, Any]:
    """CRM properties for an enrichment.

    The company name goes in the first address line, the researched street
    lines in lines 2 and 3.
    """
    return {
        "address": contact.company_name or "",
        "street_address_line_2": enrichment.address_line1 or "",
        "street_address_line_3": enrichment.address_line2 or "",
        "city": enrichment.city or "",
        "state": "",
        "zip": enrichment.postcode or "",
        "country": enrichment.country or "",
        "company_type": enrichment.classification or "",
        "lifecyclestage": LIFECYCLE_STAGE,
        "outbound_cauldron_stage": OUTBOUND_STAGE,
        "custom_p_s__line": enrichment.note or "",
    }


def identity_properties(contact: Contact) -> Dict[str, Any]:
    """Properties only sent when the CRM record is created."""
    properties = {
        "email": contact.email,
        "firstname": contact.first_name,
        "lastname": contact.last_name,
        "company": contact.company_name,
    }
    return {k: v for k, v in properties.items() if v}


class SyncService:
    """Sync stage. Collaborators are injected."""

    def __init__(self, repo: IRepo, crm: ICrmTarget, events: Optional[EventLog] = None):
        self.repo = repo
        self.crm = crm
        self.events = events or EventLog(repo)

    async def _push(self, contact: Contact, properties: Dict[str, Any]) -> str:
        """Create or update the CRM record. Returns its id."""
        crm_id = contact.crm_id
        if crm_id:
            await self.crm.update(crm_id, properties)
            return crm_id

        existing = await self.crm.find_by_email(contact.email)
        if existing is not None:
            crm_id = existing.id
            logger.info(f"Contact {contact.id} matched CRM record {crm_id} by email")
            await self.crm.update(crm_id, properties)
        else:
            crm_id = await self.crm.create({**identity_properties(contact), **properties})
            logger.info(f"Created CRM record {crm_id} for contact {contact.id}")

        if await self.repo.set_contact_crm_id(contact.id, crm_id) is None:
            logger.warning(f"Contact {contact.id} already linked to another CRM record, keeping it")
        return crm_id

    async def sync(self, enrichment: Enrichment, contact: Contact) -> SyncResult:
        """Push one approved enrichment to the CRM.

        CRM failures are recorded on the enrichment (status error) and
        returned, not raised.

        Raises:
            ConflictError: enrichment was never approved.
        """
        if not enrichment.was_approved:
            raise ConflictError(f"Enrichment {enrichment.id} is {enrichment.status.value}, only approved enrichments sync")

        try:
            crm_id = await self._push(contact, map_enrichment_to_crm(contact, enrichment))
        except Exception as e:
            reason = str(e) or e.__class__.__name__
            logger.error(f"CRM sync failed for enrichment {enrichment.id}: {reason}")
            await self.repo.record_sync_result(enrichment.id, EnrichmentStatus.ERROR, error=reason)
            await self.events.record(
                EventType.FAILED,
                contact_id=contact.id,
                enrichment_id=enrichment.id,
                payload={"stage": "crm_sync", "error": reason},
            )
            return SyncResult(status=SYNC_ERROR, reason=reason)

        await self.repo.record_sync_result(enrichment.id, EnrichmentStatus.SYNCED)
        await self.events.record(
            EventType.SYNCED,
            contact_id=contact.id,
            enrichment_id=enrichment.id,
            payload={"external_id": crm_id},
        )
        logger.info(f"Synced enrichment {enrichment.id} to CRM record {crm_id}")
        return SyncResult(status=SYNCED, external_id=crm_id)

    async def sync_enrichment(self, enrichment_id: int) -> SyncResult:
        """Load an enrichment and its contact, then sync (queue retry path)."""
        enrichment = await self.repo.get_enrichment(enrichment_id)
        if enrichment is None:
            raise NotFoundError(f"Enrichment {enrichment_id} not found")
        contact = await self.repo.get_contact(enrichment.contact_id)
        if contact is None:
            raise NotFoundError(f"Contact {enrichment.contact_id} for enrichment {enrichment_id} not found")
        return await self.sync(enrichment, contact)
