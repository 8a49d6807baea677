"""HubSpot CRM client - the pipeline's CRM Sync Target.

Environment variables:
    HUBSPOT_PRIVATE_APP_TOKEN: private app access token
"""

import os
from typing import Any, Dict, Optional

import httpx
from loguru import logger

from lib.http import UpstreamRejected, send
from lib.hubspot.models import ADDRESS_PROPERTIES, CrmContact, parse_contact
from lib.retry import HTTP_RETRY, RetryPolicy, call_with_retry
from services.errors import ConfigurationError

HUBSPOT_BASE_URL = "https://api.hubapi.com"
CONTACTS_PATH = "/crm/v3/objects/contacts"


def get_access_token() -> str:
    """Get HubSpot private app token from environment."""
    token = os.getenv("HUBSPOT_PRIVATE_APP_TOKEN", "")
    if not token:
        raise ConfigurationError("HUBSPOT_PRIVATE_APP_TOKEN environment variable not set")
    return token


class HubSpotClient:
    """Async client for the HubSpot contacts API."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_policy: RetryPolicy = HTTP_RETRY,
    ):
        self._token = access_token
        self.timeout = timeout
        self.retry_policy = retry_policy
        self._client = http_client

    @property
    def access_token(self) -> str:
        if not self._token:
            self._token = get_access_token()
        return self._token

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

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }
        client = self._http()
        return await call_with_retry(
            lambda: send(client, method, f"{HUBSPOT_BASE_URL}{path}", service="HubSpot", headers=headers, **kwargs),
            policy=self.retry_policy,
        )

    async def find_by_email(self, email: str) -> Optional[CrmContact]:
        """Look up a contact by email. None when HubSpot has no match."""
        body = {
            "filterGroups": [
                {"filters": [{"propertyName": "email", "operator": "EQ", "value": email}]}
            ],
            "properties": ["email", "lifecyclestage", *ADDRESS_PROPERTIES],
            "limit": 1,
        }
        response = await self._request("POST", f"{CONTACTS_PATH}/search", json=body)
        results = response.json().get("results") or []
        if not results:
            return None
        return parse_contact(results[0])

    async def create(self, properties: Dict[str, Any]) -> str:
        """Create a contact. Returns the HubSpot id.

        A 409 (contact already exists) resolves to the existing id.
        """
        try:
            response = await self._request("POST", CONTACTS_PATH, json={"properties": properties})
        except UpstreamRejected as e:
            email = properties.get("email")
            if e.status_code != 409 or not email:
                raise
            existing = await self.find_by_email(email)
            if existing is None:
                raise
            logger.info(f"HubSpot contact already existed, adopting id {existing.id}")
            return existing.id
        return str(response.json()["id"])

    async def update(self, contact_id: str, properties: Dict[str, Any]) -> None:
        """Patch an existing contact."""
        await self._request("PATCH", f"{CONTACTS_PATH}/{contact_id}", json={"properties": properties})
