"""HTTP helpers with retry/backoff for provider integrations."""

from __future__ import annotations

import asyncio
import logging
import random
from typing import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

DEFAULT_RETRY_STATUSES = {429, 500, 502, 503, 504}


def backoff_delay(
    attempt: int,
    *,
    base_delay: float,
    max_delay: float,
    jitter: bool = True,
) -> float:
    """
    Exponential delay for a zero-based attempt number.

    base_delay * 2**attempt, capped at max_delay; with jitter up to half the
    delay is added on top (still never above max_delay).
    """
    delay = min(max_delay, base_delay * (2**attempt))
    if delay and jitter:
        delay = min(max_delay, delay + random.uniform(0, delay / 2))
    return delay


async def request_with_retries(
    request_fn: Callable[[], Awaitable[httpx.Response]],
    *,
    max_attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 4.0,
    retry_statuses: set[int] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> httpx.Response:
    """
    Execute an HTTP request with exponential backoff retries.

    Transport errors and retryable statuses are retried until max_attempts;
    the last response (or transport error) is returned (or raised) as-is.
    """
    statuses = retry_statuses or DEFAULT_RETRY_STATUSES

    for attempt in range(max_attempts):
        try:
            response = await request_fn()
        except httpx.RequestError as exc:
            if attempt >= max_attempts - 1:
                raise
            logger.warning(
                "HTTP request failed (%s), retrying", exc.__class__.__name__
            )
            await sleep(backoff_delay(attempt, base_delay=base_delay, max_delay=max_delay))
            continue

        if response.status_code in statuses and attempt < max_attempts - 1:
            logger.warning(
                "HTTP request returned %s, retrying", response.status_code
            )
            await sleep(backoff_delay(attempt, base_delay=base_delay, max_delay=max_delay))
            continue

        return response

    return response
