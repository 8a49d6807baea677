"""Firecrawl client - the pipeline's Research Source.

Environment variables:
    FIRECRAWL_API_KEY: API key for authentication

Each URL is fetched independently; callers decide what to do with failures.
"""

import os
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel

from lib.http import send
from lib.retry import RetryPolicy, call_with_retry
from services.errors import ConfigurationError, StageFailure

FIRECRAWL_BASE_URL = "https://api.firecrawl.dev"

# Research pages are optional, so one quick retry is enough
RESEARCH_RETRY = RetryPolicy(max_attempts=2, base_delay=1.0, max_delay=2.0)


class ResearchPage(BaseModel):
    """Content fetched for one candidate URL."""

    url: str
    content: str


def get_api_key() -> str:
    """Get Firecrawl API key from environment."""
    key = os.getenv("FIRECRAWL_API_KEY", "")
    if not key:
        raise ConfigurationError("FIRECRAWL_API_KEY environment variable not set")
    return key


def extract_content(payload: Dict[str, Any]) -> str:
    """Pull page text out of a scrape response (v1 and legacy shapes)."""
    data = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    for field in ("markdown", "content", "html"):
        value = data.get(field)
        if isinstance(value, str) and value.strip():
            return value
    return ""


class FirecrawlClient:
    """Async client for the Firecrawl scrape endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 45.0,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_policy: RetryPolicy = RESEARCH_RETRY,
    ):
        self._api_key = api_key
        self.timeout = timeout
        self.retry_policy = retry_policy
        self._client = http_client

    @property
    def api_key(self) -> str:
        if not self._api_key:
            self._api_key = get_api_key()
        return self._api_key

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def fetch(self, url: str) -> ResearchPage:
        """Scrape one URL.

        Raises:
            StageFailure: the page could not be scraped or came back empty.
        """
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        body = {"url": url, "formats": ["markdown"], "onlyMainContent": False}
        client = self._http()

        response = await call_with_retry(
            lambda: send(client, "POST", f"{FIRECRAWL_BASE_URL}/v1/scrape", service="Firecrawl", json=body, headers=headers),
            policy=self.retry_policy,
        )
        content = extract_content(response.json())
        if not content:
            raise StageFailure(f"Firecrawl returned no content for {url}")
        return ResearchPage(url=url, content=content)
