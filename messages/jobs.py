"""Pipeline job messages.

One dataclass per job type. Each names the queue it travels on; handlers
are registered in messages.pipeline.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional

from messages.base import Message
from messages.queues import QueueName


@dataclass
class RunIngestion(Message):
    """Pull one batch of candidates from the discovery source."""

    queue: ClassVar[str] = QueueName.INGEST
    quota: Optional[int] = None
    filters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class EnrichContact(Message):
    """Research one pending enrichment."""

    queue: ClassVar[str] = QueueName.ENRICH
    enrichment_id: int = 0


@dataclass
class SyncEnrichment(Message):
    """Push an approved enrichment to the CRM (retry path)."""

    queue: ClassVar[str] = QueueName.SYNC
    enrichment_id: int = 0


@dataclass
class NotifyApprovalReady(Message):
    queue: ClassVar[str] = QueueName.NOTIFY
    enrichment_id: int = 0


@dataclass
class NotifyDigest(Message):
    """Post counts of events recorded since an ISO timestamp."""

    queue: ClassVar[str] = QueueName.NOTIFY
    since: str = ""
