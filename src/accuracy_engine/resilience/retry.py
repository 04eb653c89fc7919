"""Bounded retries with exponential backoff around external I/O.

Only the shadow and tuning paths use this; the production path and the pure
scoring/ruling stages never retry.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

from accuracy_engine.exceptions import UpstreamUnavailable
from accuracy_engine.observability.logger import get_logger

logger = get_logger("retry")

T = TypeVar("T")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    name: str,
    attempts: int = 3,
    base_delay_s: float = 0.1,
    backoff_base: float = 2.0,
    retry_on: tuple[type[BaseException], ...] = (UpstreamUnavailable,),
) -> T:
    """Run ``operation`` up to ``attempts`` times, sleeping
    ``base_delay_s * backoff_base ** attempt`` between failures.

    The last error is re-raised once attempts are exhausted.
    """
    attempts = max(1, attempts)
    for attempt in range(attempts):
        try:
            return await operation()
        except retry_on as exc:
            if attempt + 1 >= attempts:
                logger.warning("retry_exhausted", operation=name, attempts=attempts, error=str(exc))
                raise
            delay = base_delay_s * backoff_base**attempt
            logger.info(
                "retry_scheduled",
                operation=name,
                attempt=attempt + 1,
                delay_s=round(delay, 3),
                error=str(exc),
            )
            await asyncio.sleep(delay)
    raise AssertionError("unreachable")
