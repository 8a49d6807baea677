"""LLM-backed Insight Generator (Anthropic Messages API over httpx).

Environment variables:
    ANTHROPIC_API_KEY: API key for authentication
    ANTHROPIC_MODEL: model id (optional)
"""

import json
import os
from typing import Any, Dict, Optional

import httpx
from loguru import logger
from pydantic import ValidationError

from lib.http import send
from lib.insights.classification import classify, normalize_label
from lib.insights.models import FALLBACK_NOTE, Insight, InsightRequest
from lib.retry import HTTP_RETRY, RetryPolicy, call_with_retry
from services.errors import ConfigurationError, InsightValidationError

ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MODEL = "claude-sonnet-4-20250514"

# Per-page content cap in the prompt
MAX_PAGE_CHARS = 6000

SYSTEM_PROMPT = f"""
You are an outreach research assistant that creates structured JSON responses. Always respond with valid JSON.

Classification rules:
- If the company sells products direct to consumers online -> "Online Retailer"
- If the company core service is direct mail -> "Direct Mail Agency"
- If the company buys or plans multi-channel paid media -> "Ad Agency"
- If the company specialises in ecommerce brands or platforms -> "eComm Agency"
- Otherwise -> "Marketing Agency"
Apply the rules in that order; the first one that fits wins.

Approval block format:
CONTACT: [Name] at [Company]
ADDRESS FOUND: [Full address]
SOURCE: [URL]
CLASSIFICATION: [Company Type]
P.S. LINE: [Personalized line]
P.S. SOURCE: [URL]

The postal address should be specific enough to mail handwritten letters. If no address is available, leave address fields empty and explain in the approval block.

P.S. line should reference a verifiable update, win, or news item in the last 3-6 months. Must be 20 words or fewer and include a source URL separate from the address source. If nothing is found, use the fallback: "{FALLBACK_NOTE}" with an empty source URL.

Output schema:
{{
  "classification": string,
  "addressLine1": string | null,
  "addressLine2": string | null,
  "city": string | null,
  "postcode": string | null,
  "country": string | null,
  "psLine": string,
  "psSourceUrl": string | null,
  "addressSourceUrl": string | null,
  "approvalBlock": string
}}
""".strip()


def get_api_key() -> str:
    """Get Anthropic API key from environment."""
    key = os.getenv("ANTHROPIC_API_KEY", "")
    if not key:
        raise ConfigurationError("ANTHROPIC_API_KEY environment variable not set")
    return key


def build_user_prompt(request: InsightRequest) -> str:
    contact = request.contact
    pages = "\n\n---\n\n".join(
        f"URL: {page.url}\nCONTENT:\n{page.content[:MAX_PAGE_CHARS]}"
        for page in request.research
    )
    return (
        "Contact:\n"
        f"- Name: {contact.full_name}\n"
        f"- Company: {contact.company_name or ''}\n"
        f"- Domain: {contact.company_domain or ''}\n\n"
        f"Scraped pages:\n{pages or '(none)'}"
    )


def extract_json(text: str) -> Dict[str, Any]:
    """Parse a JSON object out of model text, tolerating markdown fences.

    Raises:
        InsightValidationError: no JSON object could be parsed.
    """
    cleaned = (text or "").strip()
    if "```" in cleaned:
        start = cleaned.find("```")
        start = cleaned.find("\n", start) + 1 if cleaned.startswith("```json", start) else start + 3
        end = cleaned.find("```", start)
        cleaned = cleaned[start:end if end != -1 else None].strip()
    try:
        parsed = json.loads(cleaned)
    except (json.JSONDecodeError, ValueError) as e:
        raise InsightValidationError(f"Failed to parse insight response: {e}") from e
    if not isinstance(parsed, dict):
        raise InsightValidationError("Insight response is not a JSON object")
    return parsed


def parse_insight(payload: Dict[str, Any], request: InsightRequest) -> Insight:
    """Validate raw generator output into an Insight.

    Labels outside the fixed set are resolved by the rule-based classifier
    over the research content.
    """
    payload = dict(payload)
    if normalize_label(payload.get("classification")) is None:
        payload["classification"] = classify(
            [request.contact.company_name, request.contact.company_domain]
            + [page.content for page in request.research]
        )
    try:
        return Insight.model_validate(payload)
    except ValidationError as e:
        raise InsightValidationError(f"Insight response failed validation: {e.errors()[0]['msg']}") from e


class AnthropicInsightGenerator:
    """Generates insights by prompting Claude with the research pages."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 60.0,
        http_client: Optional[httpx.AsyncClient] = None,
        retry_policy: RetryPolicy = HTTP_RETRY,
    ):
        self._api_key = api_key
        self.model = model or os.getenv("ANTHROPIC_MODEL", DEFAULT_MODEL)
        self.timeout = timeout
        self.retry_policy = retry_policy
        self._client = http_client

    @property
    def api_key(self) -> str:
        if not self._api_key:
            self._api_key = get_api_key()
        return self._api_key

    async def aclose(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def generate(self, request: InsightRequest) -> Insight:
        """Generate an insight for one contact.

        Raises:
            ConfigurationError: no API key.
            TransientError: retries exhausted on a network blip.
            InsightValidationError: the response could not be parsed.
        """
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }
        body = {
            "model": self.model,
            "max_tokens": 800,
            "temperature": 0.2,
            "system": SYSTEM_PROMPT,
            "messages": [{"role": "user", "content": build_user_prompt(request)}],
        }
        client = self._http()
        response = await call_with_retry(
            lambda: send(client, "POST", ANTHROPIC_URL, service="Anthropic", json=body, headers=headers),
            policy=self.retry_policy,
        )
        data = response.json()
        text = "\n".join(
            block.get("text", "") for block in data.get("content", []) if block.get("type") == "text"
        )
        logger.debug(f"Insight response for {request.contact.company_domain}: {len(text)} chars")
        return parse_insight(extract_json(text), request)
