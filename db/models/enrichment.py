from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class EnrichmentStatus(str, Enum):
    AWAITING_APPROVAL = "awaiting_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    SYNCED = "synced"
    ERROR = "error"


# Fields written by the enrichment stage
INSIGHT_FIELDS = (
    "address_line1",
    "address_line2",
    "city",
    "postcode",
    "country",
    "address_source_url",
    "classification",
    "note",
    "note_source_url",
    "approval_block",
)

# Statuses an ingestion treats as "already being worked"
ACTIVE_STATUSES = frozenset({
    EnrichmentStatus.AWAITING_APPROVAL,
    EnrichmentStatus.APPROVED,
    EnrichmentStatus.SYNCED,
})


class Enrichment(BaseModel):
    """Enrichment attempt model matching the database schema."""

    id: int
    contact_id: int
    status: EnrichmentStatus = EnrichmentStatus.AWAITING_APPROVAL

    # Researched address
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    postcode: Optional[str] = None
    country: Optional[str] = None
    address_source_url: Optional[str] = None

    # Classification and personalized note
    classification: Optional[str] = None
    note: Optional[str] = None
    note_source_url: Optional[str] = None

    approval_block: Optional[str] = None
    error: Optional[str] = None

    # Decision
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=False)

    @property
    def is_decided(self) -> bool:
        return self.decided_at is not None

    @property
    def was_approved(self) -> bool:
        """Approved at some point, whatever the sync outcome."""
        return self.is_decided and self.status != EnrichmentStatus.REJECTED

    @property
    def has_address(self) -> bool:
        return bool(self.address_line1 or self.city or self.postcode)
