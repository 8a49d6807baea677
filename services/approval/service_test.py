"""Unit tests for the Approval Gate."""

import asyncio
import json

import pytest

from db.models import EnrichmentStatus, EventType
from messages import EnrichContact, MockJobQueue, SyncEnrichment
from services.approval import Actor, ApprovalService, MAX_REASON_LENGTH
from services.errors import ConflictError, NotFoundError, PermissionDeniedError, TransientError
from services.store import MockRepo
from services.sync import SyncService

OPERATOR = Actor(user="op@example.com", role="operator")
ADMIN = Actor(user="admin@example.com", role="admin")
VIEWER = Actor(user="viewer@example.com", role="viewer")


class FakeCrm:
    def __init__(self, fail_with=None):
        self.fail_with = fail_with
        self.created = []

    async def find_by_email(self, email):
        return None

    async def create(self, properties):
        if self.fail_with:
            raise self.fail_with
        self.created.append(properties)
        return "hs-1"

    async def update(self, contact_id, properties):
        pass


async def awaiting(repo):
    contact = await repo.upsert_contact(email="ada@acme.com", first_name="Ada", company_name="Acme")
    enrichment = await repo.create_pending_enrichment(contact.id)
    enrichment = await repo.save_insights(enrichment.id, {
        "classification": "Ad Agency",
        "note": "Nice rebrand!",
        "approval_block": "CONTACT: Ada at Acme",
    })
    return contact, enrichment


def make_gate(repo, crm=None):
    queue = MockJobQueue()
    gate = ApprovalService(repo, SyncService(repo, crm or FakeCrm()), queue)
    return gate, queue


@pytest.mark.no_db
async def test_approve_decides_and_syncs():
    repo = MockRepo()
    contact, enrichment = await awaiting(repo)
    gate, _ = make_gate(repo)

    result = await gate.approve(enrichment.id, OPERATOR)

    assert result.sync.ok
    assert result.enrichment.status == EnrichmentStatus.SYNCED
    assert result.enrichment.decided_by == "op@example.com"
    assert [e.type for e in repo.events] == [EventType.APPROVED, EventType.SYNCED]
    assert repo.contacts[contact.id].crm_id == "hs-1"


@pytest.mark.no_db
async def test_approve_with_failed_sync_keeps_decision():
    repo = MockRepo()
    contact, enrichment = await awaiting(repo)
    gate, queue = make_gate(repo, FakeCrm(fail_with=TransientError("HubSpot down")))

    result = await gate.approve(enrichment.id, ADMIN)

    assert not result.sync.ok
    assert result.enrichment.status == EnrichmentStatus.ERROR
    assert result.enrichment.decided_at is not None
    assert queue.messages == [SyncEnrichment(enrichment_id=enrichment.id)]


@pytest.mark.no_db
async def test_approve_rejected_enrichment_conflicts():
    repo = MockRepo()
    contact, enrichment = await awaiting(repo)
    gate, _ = make_gate(repo)
    await gate.reject(enrichment.id, OPERATOR, reason="wrong company")

    with pytest.raises(ConflictError):
        await gate.approve(enrichment.id, OPERATOR)

    assert repo.enrichments[enrichment.id].status == EnrichmentStatus.REJECTED


@pytest.mark.no_db
async def test_second_approve_conflicts_and_syncs_once():
    repo = MockRepo()
    contact, enrichment = await awaiting(repo)
    crm = FakeCrm()
    gate, _ = make_gate(repo, crm)

    await gate.approve(enrichment.id, OPERATOR)
    with pytest.raises(ConflictError):
        await gate.approve(enrichment.id, ADMIN)

    assert len(crm.created) == 1
    assert len(repo.events_of(EventType.APPROVED)) == 1


@pytest.mark.no_db
async def test_concurrent_approvals_apply_once():
    repo = MockRepo()
    contact, enrichment = await awaiting(repo)
    crm = FakeCrm()
    gate, _ = make_gate(repo, crm)

    outcomes = await asyncio.gather(
        gate.approve(enrichment.id, OPERATOR),
        gate.approve(enrichment.id, ADMIN),
        return_exceptions=True,
    )

    conflicts = [o for o in outcomes if isinstance(o, ConflictError)]
    results = [o for o in outcomes if not isinstance(o, Exception)]
    assert len(conflicts) == 1
    assert len(results) == 1
    assert results[0].sync.ok
    assert len(crm.created) == 1
    assert len(repo.events_of(EventType.APPROVED)) == 1
    assert repo.enrichments[enrichment.id].decided_by == results[0].enrichment.decided_by


@pytest.mark.no_db
async def test_reject_truncates_reason_and_skips_crm():
    repo = MockRepo()
    contact, enrichment = await awaiting(repo)
    crm = FakeCrm()
    gate, _ = make_gate(repo, crm)

    result = await gate.reject(enrichment.id, OPERATOR, reason="x" * 900)

    assert result.sync is None
    assert result.enrichment.status == EnrichmentStatus.REJECTED
    assert len(result.enrichment.error) == MAX_REASON_LENGTH
    assert crm.created == []
    assert [e.type for e in repo.events] == [EventType.REJECTED]


@pytest.mark.no_db
async def test_unknown_enrichment():
    gate, _ = make_gate(MockRepo())
    with pytest.raises(NotFoundError):
        await gate.approve(404, OPERATOR)


@pytest.mark.no_db
@pytest.mark.parametrize("call", ["approve", "reject"])
async def test_viewer_cannot_decide(call):
    repo = MockRepo()
    contact, enrichment = await awaiting(repo)
    gate, _ = make_gate(repo)

    with pytest.raises(PermissionDeniedError):
        await getattr(gate, call)(enrichment.id, VIEWER)

    assert repo.enrichments[enrichment.id].status == EnrichmentStatus.AWAITING_APPROVAL
    assert repo.events == []


@pytest.mark.no_db
async def test_viewer_can_read():
    repo = MockRepo()
    contact, enrichment = await awaiting(repo)
    gate, _ = make_gate(repo)

    items = await gate.list_awaiting(VIEWER)
    detail = await gate.get_contact_detail(contact.id, VIEWER)

    assert [i.enrichment.id for i in items] == [enrichment.id]
    assert detail.contact.email == "ada@acme.com"
    assert [e.id for e in detail.enrichments] == [enrichment.id]


@pytest.mark.no_db
async def test_list_awaiting_hides_unresearched_rows():
    repo = MockRepo()
    contact, enrichment = await awaiting(repo)
    other = await repo.upsert_contact(email="bob@beta.com")
    await repo.create_pending_enrichment(other.id)
    gate, _ = make_gate(repo)

    items = await gate.list_awaiting(OPERATOR)

    assert [i.contact.id for i in items] == [contact.id]


@pytest.mark.no_db
async def test_re_enrichment_after_rejection():
    repo = MockRepo()
    contact, enrichment = await awaiting(repo)
    gate, queue = make_gate(repo)
    await gate.reject(enrichment.id, OPERATOR)

    fresh = await gate.request_re_enrichment(contact.id, OPERATOR)

    assert fresh.id != enrichment.id
    assert fresh.status == EnrichmentStatus.AWAITING_APPROVAL
    assert queue.messages == [EnrichContact(enrichment_id=fresh.id)]
    event = repo.events_of(EventType.RE_ENRICH_REQUESTED)[0]
    assert json.loads(event.payload) == {"requested_by": "[redacted]"}


@pytest.mark.no_db
async def test_re_enrichment_while_pending_conflicts():
    repo = MockRepo()
    contact, enrichment = await awaiting(repo)
    gate, queue = make_gate(repo)

    with pytest.raises(ConflictError):
        await gate.request_re_enrichment(contact.id, OPERATOR)

    assert queue.messages == []


@pytest.mark.no_db
async def test_viewer_cannot_request_re_enrichment():
    repo = MockRepo()
    contact = await repo.upsert_contact(email="ada@acme.com")
    gate, _ = make_gate(repo)

    with pytest.raises(PermissionDeniedError):
        await gate.request_re_enrichment(contact.id, VIEWER)
