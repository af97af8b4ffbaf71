"""Generic retry wrapper for calls to an unreliable external service."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from privacyguard.pipeline.exceptions import RateLimitError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_RATE_LIMIT_CODES = frozenset({429, "429", "rate_limit_exceeded", "RESOURCE_EXHAUSTED"})
_RATE_LIMIT_MARKERS = ("rate_limit_exceeded", "RESOURCE_EXHAUSTED", "Too Many Requests")


@dataclass(frozen=True)
class RetryPolicy:
    """max_retries counts retries after the first attempt."""

    max_retries: int = 5
    initial_delay_seconds: float = 5.0


def is_rate_limited(exc: BaseException) -> bool:
    """True for HTTP 429 and provider-specific rate-limit error codes."""
    if isinstance(exc, RateLimitError):
        return True
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, (int, str)) and value in _RATE_LIMIT_CODES:
            return True
    body = getattr(exc, "error", None)
    if isinstance(body, dict) and body.get("code") in _RATE_LIMIT_CODES:
        return True
    message = str(exc)
    return any(marker in message for marker in _RATE_LIMIT_MARKERS)


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    label: str = "",
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """
    Await operation(), retrying on failure.

    Rate-limit errors back off exponentially from the initial delay, doubling each
    time; any other error waits the initial delay. The last error is re-raised once
    max_retries is exhausted.
    """
    attempt = 0
    backoff = policy.initial_delay_seconds
    total = policy.max_retries + 1
    while True:
        attempt += 1
        logger.info("Call attempt %d/%d for %s", attempt, total, label or "request")
        try:
            return await operation()
        except Exception as e:
            if attempt > policy.max_retries:
                logger.warning("All %d attempts failed for %s: %s", total, label or "request", e)
                raise
            if is_rate_limited(e):
                delay = backoff
                backoff *= 2
                logger.info("Rate limit hit for %s, retrying in %.1fs", label or "request", delay)
            else:
                delay = policy.initial_delay_seconds
                logger.info(
                    "Error for %s: %s, retrying in %.1fs", label or "request", e, delay
                )
            await sleep(delay)
