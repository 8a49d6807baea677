"""CRM Sync Target contract types and the HubSpot response boundary."""

from typing import Any, Dict, Optional

from pydantic import BaseModel

# Lifecycle stages that mean "do not prospect again"
CLOSED_LIFECYCLE_STAGES = frozenset({
    "customer",
    "evangelist",
    "closed lost",
    "closedlost",
    "closedwon",
    "dnc",
    "do not contact",
})

# "address" holds the company name once synced, so any earlier sync counts as an address on file
ADDRESS_PROPERTIES = ("address", "street_address_line_2", "street_address_line_3", "zip")


class CrmContact(BaseModel):
    """What the pipeline needs to know about an existing CRM contact."""

    id: str
    lifecycle_stage: Optional[str] = None
    has_address: bool = False

    @property
    def is_closed(self) -> bool:
        return (self.lifecycle_stage or "").strip().lower() in CLOSED_LIFECYCLE_STAGES

    @property
    def blocks_outreach(self) -> bool:
        """Closed/customer/do-not-contact, or an address is already on file."""
        return self.is_closed or self.has_address


def parse_contact(record: Dict[str, Any]) -> CrmContact:
    """Convert a HubSpot contact object into a CrmContact."""
    properties = record.get("properties") or {}
    return CrmContact(
        id=str(record["id"]),
        lifecycle_stage=properties.get("lifecyclestage"),
        has_address=any(bool((properties.get(p) or "").strip()) for p in ADDRESS_PROPERTIES),
    )
