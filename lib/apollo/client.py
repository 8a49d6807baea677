"""Apollo API client - the pipeline's Discovery Source.

Environment variables:
    APOLLO_API_KEY: API key for authentication

Usage:
    async with ApolloClient() as client:
        candidates = await client.search({"person_titles": ["CMO"]}, page=1, per_page=40)
"""

import os
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from lib.apollo.models import Candidate, parse_search_response
from lib.http import send
from lib.retry import HTTP_RETRY, RetryPolicy, call_with_retry
from services.errors import ConfigurationError

APOLLO_BASE_URL = "https://api.apollo.io/v1"

# Default segment when settings carry no filters
DEFAULT_CRITERIA: Dict[str, Any] = {
    "person_titles": [
        "Head of Retention",
        "Head of CRM",
        "Director of Marketing",
        "Marketing Lead",
        "CMO",
    ],
    "person_locations": ["United Kingdom"],
    "organization_locations": ["United Kingdom"],
    "person_seniorities": ["director", "vp", "c_suite"],
}


def get_api_key() -> str:
    """Get Apollo API key from environment."""
    key = os.getenv("APOLLO_API_KEY", "")
    if not key:
        raise ConfigurationError("APOLLO_API_KEY environment variable not set")
    return key


class ApolloClient:
    """Async client for Apollo people search."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_policy: RetryPolicy = HTTP_RETRY,
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

    async def search(self, criteria: Dict[str, Any], page: int, per_page: int) -> List[Candidate]:
        """Search prospects. Returns candidates in Apollo's order.

        Raises:
            ConfigurationError: no API key.
            TransientError: retries exhausted.
            StageFailure: Apollo rejected the request.
        """
        body = {
            **DEFAULT_CRITERIA,
            **(criteria or {}),
            "page": page,
            "per_page": per_page,
        }
        headers = {
            "Content-Type": "application/json",
            "X-Api-Key": self.api_key,
        }
        client = self._http()

        response = await call_with_retry(
            lambda: send(
                client, "POST", f"{APOLLO_BASE_URL}/mixed_people/search",
                service="Apollo", json=body, headers=headers,
            ),
            policy=self.retry_policy,
        )
        candidates = parse_search_response(response.json())
        logger.info(f"Apollo returned {len(candidates)} candidates (page={page}, per_page={per_page})")
        return candidates
