"""Tests for the bounded retry combinator."""

import pytest

from lib.retry import HTTP_RETRY, RetryPolicy, call_with_retry
from services.errors import StageFailure, TransientError


async def _no_sleep(_seconds: float) -> None:
    return None


@pytest.mark.no_db
def test_http_retry_backoff_schedule():
    """2s doubling, capped at 15s."""
    assert HTTP_RETRY.max_attempts == 5
    assert [HTTP_RETRY.delay_for(n) for n in range(1, 6)] == [2.0, 4.0, 8.0, 15.0, 15.0]


@pytest.mark.no_db
async def test_transient_errors_are_retried_until_success():
    calls = []

    async def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise TransientError("blip")
        return "ok"

    assert await call_with_retry(flaky, sleep=_no_sleep) == "ok"
    assert len(calls) == 3


@pytest.mark.no_db
async def test_last_transient_error_surfaces_after_max_attempts():
    calls = []

    async def down():
        calls.append(1)
        raise TransientError(f"blip {len(calls)}")

    with pytest.raises(TransientError, match="blip 3"):
        await call_with_retry(down, policy=RetryPolicy(max_attempts=3), sleep=_no_sleep)
    assert len(calls) == 3


@pytest.mark.no_db
async def test_non_transient_errors_are_not_retried():
    calls = []

    async def rejected():
        calls.append(1)
        raise StageFailure("bad request")

    with pytest.raises(StageFailure):
        await call_with_retry(rejected, sleep=_no_sleep)
    assert len(calls) == 1
