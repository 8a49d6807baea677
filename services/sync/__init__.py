from services.sync.service import (
    SyncResult,
    SyncService,
    map_enrichment_to_crm,
    LIFECYCLE_STAGE,
    OUTBOUND_STAGE,
)

__all__ = [
    "SyncResult",
    "SyncService",
    "map_enrichment_to_crm",
    "LIFECYCLE_STAGE",
    "OUTBOUND_STAGE",
]
