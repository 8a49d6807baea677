"""Tests for the Slack notification sink."""

import httpx
import pytest

from infra.slack import SlackNotifier, send_message


@pytest.mark.no_db
async def test_send_message_posts_text():
    seen = {}

    def handler(request):
        seen["body"] = request.content
        return httpx.Response(200, text="ok")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    assert await send_message("hello", webhook_url="https://hooks.slack.test/x", http_client=client)
    assert b'"text"' in seen["body"] and b"hello" in seen["body"]
    await client.aclose()


@pytest.mark.no_db
async def test_send_message_without_webhook_is_noop(monkeypatch):
    monkeypatch.delenv("SLACK_WEBHOOK_URL", raising=False)
    assert await send_message("hello") is False


@pytest.mark.no_db
async def test_errors_are_swallowed():
    def handler(request):
        raise httpx.ConnectError("down")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    notifier = SlackNotifier(webhook_url="https://hooks.slack.test/x", http_client=client)
    assert await notifier.send("hello") is False

    failing = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500, text="err")))
    assert await SlackNotifier("https://hooks.slack.test/x", failing).send("hello") is False
    await client.aclose()
    await failing.aclose()
