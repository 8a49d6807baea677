"""Enrichment Stage.

Researches one pending enrichment: fetches the contact's candidate URLs
(bounded fan-out, per-URL isolation), asks the insight generator once,
stores the result and queues the approval-ready notification.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

from loguru import logger

from db.models import Contact, Enrichment, EventType
from lib.firecrawl.client import ResearchPage
from lib.insights.approval_block import render_approval_block
from lib.insights.models import Insight, InsightContact, InsightRequest
from messages.jobs import NotifyApprovalReady
from services.enrichment.urls import build_candidate_urls
from services.errors import NotFoundError
from services.events import EventLog
from services.ports import IInsightGenerator, IJobQueue, IResearchSource
from services.store.repo import IRepo

FETCH_CONCURRENCY = 3
FETCH_TIMEOUT = 60.0
INTER_ITEM_DELAY = 0.75


def insight_fields(contact: Contact, insight: Insight) -> Dict[str, Any]:
    """Columns to store for an insight, with the approval block rendered from them."""
    fields = {
        "address_line1": insight.address_line1,
        "address_line2": insight.address_line2,
        "city": insight.city,
        "postcode": insight.postcode,
        "country": insight.country,
        "address_source_url": insight.address_source_url,
        "classification": insight.classification,
        "note": insight.note,
        "note_source_url": insight.note_source_url,
    }
    fields["approval_block"] = render_approval_block(
        name=contact.display_name,
        company=contact.company_name,
        **fields,
    )
    return fields


class EnrichmentService:
    """Enrichment stage. Collaborators are injected."""

    def __init__(
        self,
        repo: IRepo,
        research: IResearchSource,
        generator: IInsightGenerator,
        queue: IJobQueue,
        events: Optional[EventLog] = None,
        fetch_concurrency: int = FETCH_CONCURRENCY,
        fetch_timeout: float = FETCH_TIMEOUT,
        item_delay: float = INTER_ITEM_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.repo = repo
        self.research = research
        self.generator = generator
        self.queue = queue
        self.events = events or EventLog(repo)
        self.fetch_concurrency = fetch_concurrency
        self.fetch_timeout = fetch_timeout
        self.item_delay = item_delay
        self.sleep = sleep

    async def gather_research(self, urls: List[str]) -> List[ResearchPage]:
        """Fetch every URL, at most `fetch_concurrency` at a time.

        A failed or slow URL is logged and left out; the result keeps URL order.
        """
        semaphore = asyncio.Semaphore(self.fetch_concurrency)

        async def fetch_one(url: str) -> Optional[ResearchPage]:
            async with semaphore:
                try:
                    return await asyncio.wait_for(self.research.fetch(url), timeout=self.fetch_timeout)
                except asyncio.TimeoutError:
                    logger.warning(f"Research fetch timed out after {self.fetch_timeout:.0f}s: {url}")
                except Exception as e:
                    logger.warning(f"Research fetch failed for {url}: {e}")
                return None

        results = await asyncio.gather(*(fetch_one(url) for url in urls))
        return [page for page in results if page is not None]

    async def _load(self, enrichment_id: int):
        enrichment = await self.repo.get_enrichment(enrichment_id)
        if enrichment is None:
            raise NotFoundError(f"Enrichment {enrichment_id} not found")
        contact = await self.repo.get_contact(enrichment.contact_id)
        if contact is None:
            raise NotFoundError(f"Contact {enrichment.contact_id} for enrichment {enrichment_id} not found")
        return enrichment, contact

    async def _skip_decided(self, enrichment: Enrichment) -> Enrichment:
        logger.info(f"Enrichment {enrichment.id} already {enrichment.status.value}, leaving it untouched")
        await self.events.record(
            EventType.SKIPPED,
            contact_id=enrichment.contact_id,
            enrichment_id=enrichment.id,
            payload={"reason": "already_decided", "status": enrichment.status.value},
        )
        return enrichment

    async def run_enrichment(self, enrichment_id: int) -> Enrichment:
        """Research one enrichment.

        Undecided enrichments (awaiting approval or error) are (re)researched;
        decided ones are returned unchanged.

        Raises:
            NotFoundError: unknown enrichment or contact.
            Exception: any research/generation failure, after the
                enrichment has been marked as error.
        """
        enrichment, contact = await self._load(enrichment_id)
        if enrichment.is_decided:
            return await self._skip_decided(enrichment)

        logger.info(f"Enriching contact {contact.id} ({contact.company_domain or contact.company_name})")
        try:
            urls = build_candidate_urls(contact.company_domain, contact.company_name)
            pages = await self.gather_research(urls)
            logger.info(f"Fetched {len(pages)}/{len(urls)} research pages for contact {contact.id}")

            request = InsightRequest(
                contact=InsightContact(
                    first_name=contact.first_name,
                    last_name=contact.last_name,
                    company_name=contact.company_name,
                    company_domain=contact.company_domain,
                ),
                research=pages,
            )
            insight = await self.generator.generate(request)
            updated = await self.repo.save_insights(enrichment.id, insight_fields(contact, insight))
        except Exception as e:
            error = str(e) or e.__class__.__name__
            logger.error(f"Enrichment {enrichment.id} failed: {error}")
            await self.repo.mark_enrichment_failed(enrichment.id, error)
            await self.events.record(
                EventType.FAILED,
                contact_id=contact.id,
                enrichment_id=enrichment.id,
                payload={"stage": "enrichment", "error": error},
            )
            raise

        if updated is None:
            # Decided while research was running
            current = await self.repo.get_enrichment(enrichment.id)
            return await self._skip_decided(current)

        await self.events.record(
            EventType.ENRICHED,
            contact_id=contact.id,
            enrichment_id=updated.id,
            payload={
                "classification": updated.classification,
                "domain": contact.company_domain,
                "pages": len(pages),
                "fallback_note": insight.is_fallback_note,
            },
        )
        await self.events.record(
            EventType.APPROVAL_REQUESTED,
            contact_id=contact.id,
            enrichment_id=updated.id,
            payload={"classification": updated.classification},
        )
        await self.queue.enqueue(NotifyApprovalReady(enrichment_id=updated.id))

        if self.item_delay:
            await self.sleep(self.item_delay)
        return updated
