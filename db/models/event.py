from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class EventType(str, Enum):
    PULLED_FROM_SOURCE = "pulled_from_source"
    DEDUPED = "deduped"
    ENRICHED = "enriched"
    APPROVAL_REQUESTED = "approval_requested"
    APPROVED = "approved"
    REJECTED = "rejected"
    SYNCED = "synced"
    FAILED = "failed"
    RE_ENRICH_REQUESTED = "re_enrich_requested"
    SKIPPED = "skipped"


class Event(BaseModel):
    """Audit event. Payload is redacted JSON text."""

    id: int
    type: EventType
    contact_id: Optional[int] = None
    enrichment_id: Optional[int] = None
    payload: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)
