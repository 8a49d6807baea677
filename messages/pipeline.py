"""Pipeline job handlers.

Importing this module registers one handler per job type. Handlers run
against a Pipeline (the wired stages); workers use the default wiring from
the environment, tests call configure() with fakes.

    import messages.pipeline
    messages.pipeline.configure(build_pipeline(repo=MockRepo(), ...))
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from loguru import logger

from infra.slack import SlackNotifier
from lib.apollo import ApolloClient
from lib.firecrawl import FirecrawlClient
from lib.hubspot import HubSpotClient
from lib.insights import get_insight_generator
from messages.base import handler
from messages.handlers import JobQueue
from messages.jobs import EnrichContact, NotifyApprovalReady, NotifyDigest, RunIngestion, SyncEnrichment
from messages.transport import ITransport, SQSTransport
from services.approval import ApprovalService
from services.enrichment import EnrichmentService
from services.errors import StageFailure
from services.events import EventLog
from services.ingestion import IngestionService
from services.notify import NotifyService
from services.ports import (
    ICrmTarget,
    IDiscoverySource,
    IInsightGenerator,
    IJobQueue,
    INotificationSink,
    IResearchSource,
)
from services.store import IRepo, Repo
from services.sync import SyncService

DIGEST_WINDOW = timedelta(hours=24)


@dataclass
class Pipeline:
    ingestion: IngestionService
    enrichment: EnrichmentService
    sync: SyncService
    approval: ApprovalService
    notify: NotifyService


def build_pipeline(
    repo: Optional[IRepo] = None,
    queue: Optional[IJobQueue] = None,
    transport: Optional[ITransport] = None,
    discovery: Optional[IDiscoverySource] = None,
    crm: Optional[ICrmTarget] = None,
    research: Optional[IResearchSource] = None,
    generator: Optional[IInsightGenerator] = None,
    sink: Optional[INotificationSink] = None,
    item_delay: Optional[float] = None,
) -> Pipeline:
    """Wire the stages. Anything not passed is built from the environment."""
    repo = repo or Repo()
    queue = queue or JobQueue(transport or SQSTransport())
    crm = crm or HubSpotClient()
    events = EventLog(repo)
    delay = {} if item_delay is None else {"item_delay": item_delay}

    sync = SyncService(repo, crm, events=events)
    return Pipeline(
        ingestion=IngestionService(repo, discovery or ApolloClient(), crm, queue, events=events, **delay),
        enrichment=EnrichmentService(
            repo,
            research or FirecrawlClient(),
            generator or get_insight_generator(),
            queue,
            events=events,
            **delay,
        ),
        sync=sync,
        approval=ApprovalService(repo, sync, queue, events=events),
        notify=NotifyService(repo, sink or SlackNotifier()),
    )


_pipeline: Optional[Pipeline] = None


def configure(pipeline: Optional[Pipeline]) -> None:
    """Set (or clear, with None) the pipeline the handlers use."""
    global _pipeline
    _pipeline = pipeline


def get_pipeline() -> Pipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = build_pipeline()
    return _pipeline


@handler(RunIngestion)
async def handle_run_ingestion(msg: RunIngestion):
    return await get_pipeline().ingestion.run_ingestion(quota=msg.quota, filters=msg.filters)


@handler(EnrichContact)
async def handle_enrich_contact(msg: EnrichContact):
    return await get_pipeline().enrichment.run_enrichment(msg.enrichment_id)


@handler(SyncEnrichment)
async def handle_sync_enrichment(msg: SyncEnrichment):
    result = await get_pipeline().sync.sync_enrichment(msg.enrichment_id)
    if not result.ok:
        # Raise so the queue retries with backoff
        raise StageFailure(f"CRM sync failed for enrichment {msg.enrichment_id}: {result.reason}")
    return result


@handler(NotifyApprovalReady)
async def handle_notify_approval_ready(msg: NotifyApprovalReady):
    return await get_pipeline().notify.notify_approval_ready(msg.enrichment_id)


@handler(NotifyDigest)
async def handle_notify_digest(msg: NotifyDigest):
    if msg.since:
        since = datetime.fromisoformat(msg.since)
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
    else:
        since = datetime.now(timezone.utc) - DIGEST_WINDOW
    logger.info(f"Building digest since {since.isoformat()}")
    return await get_pipeline().notify.send_digest(since)
