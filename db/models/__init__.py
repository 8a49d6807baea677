from db.models.contact import Contact
from db.models.enrichment import Enrichment, EnrichmentStatus, ACTIVE_STATUSES, INSIGHT_FIELDS
from db.models.event import Event, EventType
from db.models.setting import SETTING_KEYS

__all__ = [
    "Contact",
    "Enrichment",
    "EnrichmentStatus",
    "ACTIVE_STATUSES",
    "INSIGHT_FIELDS",
    "Event",
    "EventType",
    "SETTING_KEYS",
]
