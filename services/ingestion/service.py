"""Ingestion Stage.

Pulls a page of candidates from the discovery source and, in source order,
skips, dedupes or stages each one. Staged contacts get a pending enrichment
and an EnrichContact job.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

from loguru import logger
from pydantic import BaseModel

from db.models import ACTIVE_STATUSES, Contact, EventType
from db.models.setting import PAGINATION_CURSOR
from lib.apollo.models import Candidate
from messages.jobs import EnrichContact
from services.errors import ConfigurationError
from services.events import EventLog
from services.ingestion.config import IngestionConfig
from services.ports import ICrmTarget, IDiscoverySource, IJobQueue
from services.store.repo import IRepo

# Delay between candidates (seconds) to respect third-party rate limits
INTER_ITEM_DELAY = 0.75

STAGED = "staged"
SKIPPED = "skipped"
DEDUPED = "deduped"


class IngestResult(BaseModel):
    staged: int = 0
    skipped: int = 0
    deduped: int = 0
    failed: int = 0
    page: int = 1
    fetched: int = 0


def skip_reason(candidate: Candidate, config: IngestionConfig) -> Optional[str]:
    """Why a candidate should not be processed, or None."""
    if not candidate.email:
        return "missing_email"
    domain = candidate.company_domain
    if config.allowed_domains and domain not in config.allowed_domains:
        return "domain_not_allowed"
    rules = config.skip_rules
    if domain and domain in rules.domains:
        return "skip_rule_domain"
    if candidate.email in rules.emails:
        return "skip_rule_email"
    title = (candidate.title or "").lower()
    if title and any(keyword in title for keyword in rules.title_keywords):
        return "skip_rule_title"
    return None


class IngestionService:
    """Ingestion stage. Collaborators are injected."""

    def __init__(
        self,
        repo: IRepo,
        discovery: IDiscoverySource,
        crm: ICrmTarget,
        queue: IJobQueue,
        events: Optional[EventLog] = None,
        item_delay: float = INTER_ITEM_DELAY,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.repo = repo
        self.discovery = discovery
        self.crm = crm
        self.queue = queue
        self.events = events or EventLog(repo)
        self.item_delay = item_delay
        self.sleep = sleep

    async def load_config(self) -> IngestionConfig:
        return IngestionConfig.from_settings(await self.repo.get_settings())

    async def run_ingestion(
        self,
        quota: Optional[int] = None,
        filters: Optional[Dict[str, Any]] = None,
        config: Optional[IngestionConfig] = None,
    ) -> IngestResult:
        """Run one ingestion batch.

        Raises:
            ConfigurationError, TransientError, StageFailure: the discovery
                fetch failed; nothing was processed.
        """
        config = config or await self.load_config()
        quota = config.daily_quota if quota is None else min(quota, config.daily_quota)
        criteria = {**config.segment_filters, **(filters or {})}
        page = config.cursor.page
        result = IngestResult(page=page)

        if quota <= 0:
            logger.info("Quota is 0, nothing to ingest")
            return result

        logger.info(f"Ingestion starting: quota={quota}, page={page}")
        candidates = await self.discovery.search(criteria, page=page, per_page=quota)
        result.fetched = len(candidates)

        # Short page means the result set is exhausted; start over next run
        next_page = page + 1 if len(candidates) >= quota else 1
        await self.repo.set_setting(PAGINATION_CURSOR, {"page": next_page})

        for candidate in candidates[:quota]:
            try:
                outcome = await self.process_candidate(candidate, config)
            except ConfigurationError:
                raise
            except Exception as e:
                result.failed += 1
                logger.warning(f"Failed to process candidate {candidate.external_id}: {e}")
                await self.events.record(
                    EventType.FAILED,
                    payload={
                        "stage": "ingestion",
                        "email": candidate.email,
                        "discovery_id": candidate.external_id,
                        "error": str(e),
                    },
                )
            else:
                setattr(result, outcome, getattr(result, outcome) + 1)

            if self.item_delay:
                await self.sleep(self.item_delay)

        logger.info(
            f"Ingestion complete: staged={result.staged} skipped={result.skipped} "
            f"deduped={result.deduped} failed={result.failed}"
        )
        return result

    async def process_candidate(self, candidate: Candidate, config: IngestionConfig) -> str:
        """Skip, dedupe or stage one candidate. Returns the outcome name."""
        reason = skip_reason(candidate, config)
        if reason:
            await self.events.record(
                EventType.SKIPPED,
                payload={"reason": reason, "discovery_id": candidate.external_id, "email": candidate.email},
            )
            return SKIPPED

        duplicate = await self.find_duplicate(candidate, config)
        if duplicate:
            contact, reason = duplicate
            await self.events.record(
                EventType.DEDUPED,
                contact_id=contact.id if contact else None,
                payload={"reason": reason, "discovery_id": candidate.external_id},
            )
            return DEDUPED

        await self.stage(candidate)
        return STAGED

    async def find_duplicate(self, candidate: Candidate, config: IngestionConfig):
        """(contact, reason) when the candidate is already known, else None."""
        existing = await self.repo.get_contact_by_email(candidate.email)
        if existing:
            latest = await self.repo.get_latest_enrichment(existing.id)
            if latest and latest.status in ACTIVE_STATUSES:
                return existing, f"existing_enrichment_{latest.status.value}"

        if candidate.company_domain and candidate.full_name:
            recent = await self.repo.find_recent_contact_by_name(
                company_domain=candidate.company_domain,
                first_name=candidate.first_name or "",
                last_name=candidate.last_name or "",
                exclude_email=candidate.email,
                cooldown_days=config.cooldown_days,
            )
            if recent:
                return recent, "domain_name_cooldown"

        crm_contact = await self.crm.find_by_email(candidate.email)
        if crm_contact and crm_contact.blocks_outreach:
            reason = "crm_closed_stage" if crm_contact.is_closed else "crm_has_address"
            return existing, reason

        return None

    async def stage(self, candidate: Candidate) -> Contact:
        """Upsert the contact, reuse or create its pending enrichment, queue research."""
        contact = await self.repo.upsert_contact(
            email=candidate.email,
            first_name=candidate.first_name,
            last_name=candidate.last_name,
            company_name=candidate.company_name,
            company_domain=candidate.company_domain,
            discovery_id=candidate.external_id,
        )
        await self.events.record(
            EventType.PULLED_FROM_SOURCE,
            contact_id=contact.id,
            payload={"discovery_id": candidate.external_id},
        )

        enrichment = await self.repo.create_pending_enrichment(contact.id)
        if enrichment is None:
            enrichment = await self.repo.get_pending_enrichment(contact.id)

        await self.queue.enqueue(EnrichContact(enrichment_id=enrichment.id))
        logger.info(f"Staged contact {contact.id} (enrichment {enrichment.id})")
        return contact
