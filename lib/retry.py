"""Bounded retry combinator for raw outbound calls.

Wraps any coroutine factory with tenacity. Only TransientError is retried;
everything else surfaces on the first attempt. This sits inside the queue
level retry (messages.queues.JobPolicy), so a network blip costs a few
seconds instead of a whole job attempt.

Usage:
    response = await call_with_retry(lambda: client.post(url, json=body))
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from services.errors import TransientError

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempts and exponential backoff (seconds) for one call."""

    max_attempts: int = 5
    base_delay: float = 2.0
    max_delay: float = 15.0
    retry_on: Tuple[Type[BaseException], ...] = (TransientError,)

    def delay_for(self, attempt: int) -> float:
        """Delay slept after the given (1-based) failed attempt."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


HTTP_RETRY = RetryPolicy()


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    delay = state.next_action.sleep if state.next_action else 0
    logger.warning(f"Attempt {state.attempt_number} failed ({exc}), retrying in {delay:.1f}s")


async def call_with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy = HTTP_RETRY,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> T:
    """Run fn() until it succeeds, raises a non-retriable error, or attempts run out.

    The last exception is re-raised unchanged once attempts are exhausted.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(multiplier=policy.base_delay, max=policy.max_delay),
        retry=retry_if_exception_type(policy.retry_on),
        before_sleep=_log_retry,
        reraise=True,
        sleep=sleep or asyncio.sleep,
    )
    async for attempt in retrying:
        with attempt:
            return await fn()
