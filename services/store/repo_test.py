"""Integration tests for the Postgres store.

Need a local database (OUTREACH_DB_HOST); skipped otherwise.
"""

import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest

from db.client import apply_schema
from db.models import EnrichmentStatus, EventType
from lib.apollo.models import Candidate
from messages import MockJobQueue
from services.approval import Actor, ApprovalService
from services.errors import ConflictError
from services.ingestion import IngestionConfig, IngestionService
from services.store import Repo
from services.sync import SyncService


@pytest.fixture
async def repo():
    await apply_schema()
    return Repo()


def unique_email(prefix: str = "test") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}@example.com"


async def test_upsert_contact_is_idempotent_and_keeps_known_fields(repo):
    email = unique_email()
    first = await repo.upsert_contact(email=email.upper(), first_name="Ada", company_name="Acme")
    second = await repo.upsert_contact(email=email, last_name="Lovelace")

    assert first.id == second.id
    assert second.email == email
    assert second.first_name == "Ada"
    assert second.last_name == "Lovelace"
    assert second.company_name == "Acme"


async def test_one_pending_enrichment_per_contact(repo):
    contact = await repo.upsert_contact(email=unique_email())

    pending = await repo.create_pending_enrichment(contact.id)
    duplicate = await repo.create_pending_enrichment(contact.id)

    assert pending is not None
    assert duplicate is None
    assert (await repo.get_pending_enrichment(contact.id)).id == pending.id


async def test_decision_is_a_single_transition(repo):
    contact = await repo.upsert_contact(email=unique_email())
    enrichment = await repo.create_pending_enrichment(contact.id)

    approved = await repo.decide(enrichment.id, EnrichmentStatus.APPROVED, decided_by="op")
    again = await repo.decide(enrichment.id, EnrichmentStatus.REJECTED, decided_by="op")

    assert approved.status == EnrichmentStatus.APPROVED
    assert approved.decided_at is not None
    assert again is None
    assert await repo.save_insights(enrichment.id, {"classification": "Ad Agency"}) is None
    assert await repo.mark_enrichment_failed(enrichment.id, "late failure") is None

    # A decided enrichment frees the contact for a new pending one
    assert await repo.create_pending_enrichment(contact.id) is not None


async def test_sync_result_only_after_approval(repo):
    contact = await repo.upsert_contact(email=unique_email())
    enrichment = await repo.create_pending_enrichment(contact.id)

    assert await repo.record_sync_result(enrichment.id, EnrichmentStatus.SYNCED) is None

    await repo.decide(enrichment.id, EnrichmentStatus.APPROVED, decided_by="op")
    failed = await repo.record_sync_result(enrichment.id, EnrichmentStatus.ERROR, error="503")
    synced = await repo.record_sync_result(enrichment.id, EnrichmentStatus.SYNCED)

    assert failed.error == "503"
    assert synced.status == EnrichmentStatus.SYNCED
    assert synced.error is None
    assert synced.decided_by == "op"


async def test_crm_id_is_written_once(repo):
    contact = await repo.upsert_contact(email=unique_email())

    assert (await repo.set_contact_crm_id(contact.id, "hs-1")).crm_id == "hs-1"
    assert await repo.set_contact_crm_id(contact.id, "hs-2") is None
    assert (await repo.get_contact(contact.id)).crm_id == "hs-1"


async def test_recent_contact_by_name(repo):
    domain = f"{uuid.uuid4().hex[:8]}.example.com"
    first = await repo.upsert_contact(email=unique_email(), first_name="Ada", last_name="Lovelace", company_domain=domain)

    match = await repo.find_recent_contact_by_name(domain, "ada", "LOVELACE", unique_email(), cooldown_days=90)
    own = await repo.find_recent_contact_by_name(domain, "Ada", "Lovelace", first.email, cooldown_days=90)

    assert match.id == first.id
    assert own is None


async def test_events_and_settings(repo):
    contact = await repo.upsert_contact(email=unique_email())
    since = datetime.now(timezone.utc) - timedelta(seconds=5)
    await repo.insert_event(EventType.PULLED_FROM_SOURCE, contact_id=contact.id, payload='{"reason": "x"}')
    await repo.insert_event(EventType.SKIPPED, contact_id=contact.id)

    history = await repo.list_events_for_contact(contact.id)
    skipped = await repo.list_events(types=[EventType.SKIPPED], since=since)
    counts = await repo.count_events_since(since)

    assert [e.type for e in history] == [EventType.SKIPPED, EventType.PULLED_FROM_SOURCE]
    assert all(e.type == EventType.SKIPPED for e in skipped)
    assert counts["pulled_from_source"] >= 1

    await repo.set_setting("pagination_cursor", {"page": 3})
    assert (await repo.get_settings())["pagination_cursor"] == {"page": 3}


# =============================================================================
# Concurrent writers
# =============================================================================

class OneCandidate:
    def __init__(self, email: str):
        self.candidate = Candidate(external_id=f"ap-{email}", first_name="Ada", last_name="Lovelace", email=email)

    async def search(self, criteria, page, per_page):
        return [self.candidate]


class NoCrmMatch:
    def __init__(self):
        self.created = []

    async def find_by_email(self, email):
        return None

    async def create(self, properties):
        self.created.append(properties)
        return f"hs-{len(self.created)}"

    async def update(self, contact_id, properties):
        pass


async def awaiting_count(repo, contact_id: int) -> int:
    enrichments = await repo.list_enrichments_for_contact(contact_id)
    return sum(1 for e in enrichments if e.status == EnrichmentStatus.AWAITING_APPROVAL)


def ingestion(repo, email: str) -> IngestionService:
    return IngestionService(repo=repo, discovery=OneCandidate(email), crm=NoCrmMatch(), queue=MockJobQueue(), item_delay=0)


async def test_concurrent_pending_inserts_leave_one(repo):
    contact = await repo.upsert_contact(email=unique_email())

    created = await asyncio.gather(*(repo.create_pending_enrichment(contact.id) for _ in range(5)))

    assert sum(1 for e in created if e is not None) == 1
    assert await awaiting_count(repo, contact.id) == 1


async def test_concurrent_ingestion_for_same_email(repo):
    email = unique_email()
    config = IngestionConfig(daily_quota=1)

    await asyncio.gather(
        ingestion(repo, email).run_ingestion(config=config),
        ingestion(repo, email).run_ingestion(config=config),
    )

    contact = await repo.get_contact_by_email(email)
    assert await awaiting_count(repo, contact.id) == 1


async def test_ingestion_racing_re_enrichment(repo):
    email = unique_email()
    contact = await repo.upsert_contact(email=email)
    old = await repo.create_pending_enrichment(contact.id)
    await repo.decide(old.id, EnrichmentStatus.REJECTED, decided_by="op")
    gate = ApprovalService(repo, SyncService(repo, NoCrmMatch()), MockJobQueue())

    outcomes = await asyncio.gather(
        ingestion(repo, email).run_ingestion(config=IngestionConfig(daily_quota=1)),
        gate.request_re_enrichment(contact.id, Actor(user="op", role="operator")),
        return_exceptions=True,
    )

    assert not isinstance(outcomes[0], Exception)
    assert not isinstance(outcomes[1], Exception) or isinstance(outcomes[1], ConflictError)
    assert await awaiting_count(repo, contact.id) == 1


async def test_concurrent_approvals_apply_once(repo):
    contact = await repo.upsert_contact(email=unique_email(), first_name="Ada")
    enrichment = await repo.create_pending_enrichment(contact.id)
    await repo.save_insights(enrichment.id, {"classification": "Ad Agency", "approval_block": "CONTACT: Ada"})
    crm = NoCrmMatch()
    gate = ApprovalService(repo, SyncService(repo, crm), MockJobQueue())

    outcomes = await asyncio.gather(
        gate.approve(enrichment.id, Actor(user="op", role="operator")),
        gate.approve(enrichment.id, Actor(user="admin", role="admin")),
        return_exceptions=True,
    )

    assert sum(1 for o in outcomes if isinstance(o, ConflictError)) == 1
    assert len(crm.created) == 1
    stored = await repo.get_enrichment(enrichment.id)
    assert stored.status == EnrichmentStatus.SYNCED
    assert (await repo.get_contact(contact.id)).crm_id == "hs-1"
