"""Tests for the Firecrawl client."""

import httpx
import pytest

from lib.firecrawl import FirecrawlClient
from lib.firecrawl.client import extract_content
from services.errors import StageFailure


@pytest.mark.no_db
def test_extract_content_prefers_markdown():
    assert extract_content({"data": {"markdown": "# Hi", "html": "<h1>Hi</h1>"}}) == "# Hi"
    assert extract_content({"content": "legacy"}) == "legacy"
    assert extract_content({"data": {"markdown": "  "}}) == ""


@pytest.mark.no_db
async def test_fetch_returns_page():
    transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"success": True, "data": {"markdown": "About us"}}))
    async with FirecrawlClient(api_key="k", http_client=httpx.AsyncClient(transport=transport)) as client:
        page = await client.fetch("https://acme.com/about")
    assert page.url == "https://acme.com/about"
    assert page.content == "About us"


@pytest.mark.no_db
async def test_fetch_empty_page_is_stage_failure():
    transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"data": {}}))
    async with FirecrawlClient(api_key="k", http_client=httpx.AsyncClient(transport=transport)) as client:
        with pytest.raises(StageFailure):
            await client.fetch("https://acme.com")
