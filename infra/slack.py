"""Slack webhook client - the pipeline's notification sink."""

import os
from typing import Optional

import httpx
from loguru import logger


def get_webhook_url() -> Optional[str]:
    """Get Slack webhook URL from environment, or None if not configured."""
    return os.getenv("SLACK_WEBHOOK_URL") or None


async def send_message(
    text: str,
    webhook_url: Optional[str] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> bool:
    """Send a message to Slack.

    Best-effort: failures are logged and reported as False, never raised.
    """
    url = webhook_url or get_webhook_url()

    if not url:
        logger.warning("Slack webhook URL not configured, dropping notification")
        return False

    try:
        if http_client is not None:
            response = await http_client.post(url, json={"text": text}, timeout=10.0)
        else:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.post(url, json={"text": text})

        if response.status_code == 200:
            logger.info("Sent Slack message")
            return True
        else:
            logger.error(f"Slack API error: {response.status_code} - {response.text}")
            return False

    except Exception as e:
        logger.error(f"Failed to send Slack message: {e}")
        return False


class SlackNotifier:
    """Notification sink posting to one webhook."""

    def __init__(self, webhook_url: Optional[str] = None, http_client: Optional[httpx.AsyncClient] = None):
        self.webhook_url = webhook_url
        self.http_client = http_client

    async def send(self, message: str) -> bool:
        return await send_message(message, webhook_url=self.webhook_url, http_client=self.http_client)
