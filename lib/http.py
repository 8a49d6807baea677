"""Shared httpx helpers for collaborator clients.

Converts transport failures and retryable status codes into TransientError
so lib.retry can tell a blip from a real rejection.
"""

from typing import Any

import httpx

from services.errors import StageFailure, TransientError

RETRYABLE_STATUS = {408, 425, 429, 500, 502, 503, 504}


class UpstreamRejected(StageFailure):
    """Non-retriable error response from a collaborator."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    service: str,
    **kwargs: Any,
) -> httpx.Response:
    """Send one request and classify failures.

    Raises:
        TransientError: connection problems, timeouts, 429 and 5xx responses.
        UpstreamRejected: any other non-2xx response.
    """
    try:
        response = await client.request(method, url, **kwargs)
    except (httpx.TimeoutException, httpx.TransportError) as e:
        raise TransientError(f"{service} request failed: {e.__class__.__name__}: {e}") from e

    if response.status_code in RETRYABLE_STATUS:
        raise TransientError(f"{service} request failed ({response.status_code}): {response.text[:300]}")
    if response.status_code >= 400:
        raise UpstreamRejected(
            f"{service} request failed ({response.status_code}): {response.text[:300]}",
            status_code=response.status_code,
        )
    return response
