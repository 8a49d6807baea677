"""Unit tests for notification messages."""

from datetime import datetime, timedelta, timezone

import pytest

from db.models import EnrichmentStatus, EventType
from services.errors import NotFoundError
from services.notify import NotifyService, approval_ready_message, digest_message
from services.store import MockRepo


class FakeSink:
    def __init__(self, result=True, error=None):
        self.result = result
        self.error = error
        self.sent = []

    async def send(self, message):
        if self.error:
            raise self.error
        self.sent.append(message)
        return self.result


async def researched(repo):
    contact = await repo.upsert_contact(email="ada@acme.com", first_name="Ada", last_name="Lovelace")
    enrichment = await repo.create_pending_enrichment(contact.id)
    enrichment = await repo.save_insights(enrichment.id, {"approval_block": "CONTACT: Ada Lovelace at Acme"})
    return contact, enrichment


@pytest.mark.no_db
async def test_approval_ready_message():
    repo = MockRepo()
    contact, enrichment = await researched(repo)

    text = approval_ready_message(enrichment, contact, "https://outreach.example.com")

    assert text.splitlines() == [
        "*Approval required*",
        "```",
        "CONTACT: Ada Lovelace at Acme",
        "```",
        f"<https://outreach.example.com/contacts/{contact.id}|Review Ada Lovelace>",
    ]


@pytest.mark.no_db
async def test_notify_approval_ready_sends_once_per_awaiting():
    repo = MockRepo()
    contact, enrichment = await researched(repo)
    sink = FakeSink()
    service = NotifyService(repo, sink, base_url="https://outreach.example.com/")

    assert await service.notify_approval_ready(enrichment.id) is True
    assert f"https://outreach.example.com/contacts/{contact.id}|" in sink.sent[0]

    await repo.decide(enrichment.id, EnrichmentStatus.APPROVED, decided_by="op")
    assert await service.notify_approval_ready(enrichment.id) is False
    assert len(sink.sent) == 1


@pytest.mark.no_db
async def test_sink_errors_are_swallowed():
    repo = MockRepo()
    contact, enrichment = await researched(repo)
    service = NotifyService(repo, FakeSink(error=RuntimeError("webhook 500")), base_url="http://x")

    assert await service.notify_approval_ready(enrichment.id) is False


@pytest.mark.no_db
async def test_unknown_enrichment():
    with pytest.raises(NotFoundError):
        await NotifyService(MockRepo(), FakeSink(), base_url="http://x").notify_approval_ready(1)


@pytest.mark.no_db
def test_digest_message_defaults_missing_counts_to_zero():
    since = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    text = digest_message({"pulled_from_source": 12, "failed": 2}, since)

    assert text.splitlines() == [
        "*Daily Outreach Digest* (since 2026-03-01 09:00 UTC)",
        "New staged: 12",
        "Enriched: 0",
        "Approved: 0",
        "Synced: 0",
        "Skipped: 0",
        "Failed: 2",
    ]


@pytest.mark.no_db
async def test_send_digest_counts_events_since():
    repo = MockRepo()
    await repo.insert_event(EventType.PULLED_FROM_SOURCE)
    await repo.insert_event(EventType.PULLED_FROM_SOURCE)
    await repo.insert_event(EventType.SYNCED)
    sink = FakeSink()

    await NotifyService(repo, sink, base_url="http://x").send_digest(datetime.now(timezone.utc) - timedelta(days=1))

    assert "New staged: 2" in sink.sent[0]
    assert "Synced: 1" in sink.sent[0]
