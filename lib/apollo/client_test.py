"""Tests for the Apollo client using httpx.MockTransport."""

import json

import httpx
import pytest

from lib.apollo import ApolloClient, normalize_domain, parse_search_response
from lib.retry import RetryPolicy
from services.errors import ConfigurationError, StageFailure, TransientError

NO_WAIT = RetryPolicy(max_attempts=2, base_delay=0, max_delay=0)


def _client(handler) -> ApolloClient:
    return ApolloClient(
        api_key="test-key",
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        retry_policy=NO_WAIT,
    )


@pytest.mark.no_db
def test_normalize_domain():
    assert normalize_domain("https://www.Example.com/about") == "example.com"
    assert normalize_domain("acme.co.uk") == "acme.co.uk"


@pytest.mark.no_db
def test_parse_search_response_keeps_order_and_missing_emails():
    payload = {
        "people": [
            {"id": "p1", "first_name": "Ada", "email": "ADA@Acme.com ", "organization": {"name": "Acme", "primary_domain": "acme.com"}},
            {"first_name": "No id"},
            {"id": "p2", "first_name": "Bob", "email": None},
        ]
    }
    candidates = parse_search_response(payload)
    assert [c.external_id for c in candidates] == ["p1", "p2"]
    assert candidates[0].email == "ada@acme.com"
    assert candidates[0].company_domain == "acme.com"
    assert candidates[1].email is None


@pytest.mark.no_db
async def test_search_merges_criteria_and_paginates():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        seen["key"] = request.headers["X-Api-Key"]
        return httpx.Response(200, json={"contacts": [{"id": "c1", "email": "c@x.io"}]})

    async with _client(handler) as client:
        candidates = await client.search({"person_titles": ["CEO"]}, page=3, per_page=10)

    assert [c.email for c in candidates] == ["c@x.io"]
    assert seen["key"] == "test-key"
    assert seen["body"]["person_titles"] == ["CEO"]
    assert seen["body"]["page"] == 3
    assert seen["body"]["per_page"] == 10


@pytest.mark.no_db
async def test_search_retries_rate_limit_then_raises_transient():
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(429, text="slow down")

    client = _client(handler)
    with pytest.raises(TransientError):
        await client.search({}, page=1, per_page=5)
    assert len(calls) == 2
    await client.aclose()


@pytest.mark.no_db
async def test_search_bad_request_is_stage_failure():
    client = _client(lambda request: httpx.Response(422, text="invalid"))
    with pytest.raises(StageFailure):
        await client.search({}, page=1, per_page=5)
    await client.aclose()


@pytest.mark.no_db
async def test_missing_api_key(monkeypatch):
    monkeypatch.delenv("APOLLO_API_KEY", raising=False)
    client = ApolloClient(http_client=httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200))))
    with pytest.raises(ConfigurationError):
        await client.search({}, page=1, per_page=5)
    await client.aclose()
