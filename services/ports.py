"""Collaborator ports consumed by the pipeline stages.

Concrete clients live under lib/ (Apollo, HubSpot, Firecrawl, insights),
infra/slack.py and messages/handlers.py; tests substitute fakes.
"""

from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from lib.apollo.models import Candidate
from lib.firecrawl.client import ResearchPage
from lib.hubspot.models import CrmContact
from lib.insights.models import Insight, InsightRequest


@runtime_checkable
class IDiscoverySource(Protocol):
    async def search(self, criteria: Dict[str, Any], page: int, per_page: int) -> List[Candidate]:
        """Candidates in source order."""
        ...


@runtime_checkable
class ICrmTarget(Protocol):
    async def find_by_email(self, email: str) -> Optional[CrmContact]:
        ...

    async def create(self, properties: Dict[str, Any]) -> str:
        """Create a record, return its id."""
        ...

    async def update(self, contact_id: str, properties: Dict[str, Any]) -> None:
        ...


@runtime_checkable
class IResearchSource(Protocol):
    async def fetch(self, url: str) -> ResearchPage:
        """Fetch one URL. Raises on failure."""
        ...


@runtime_checkable
class IInsightGenerator(Protocol):
    async def generate(self, request: InsightRequest) -> Insight:
        ...


@runtime_checkable
class INotificationSink(Protocol):
    async def send(self, message: str) -> bool:
        """Best-effort. Returns False instead of raising."""
        ...


@runtime_checkable
class IJobQueue(Protocol):
    async def enqueue(self, message: Any, delay_seconds: int = 0) -> None:
        """Put a job on the queue named by message.queue."""
        ...
