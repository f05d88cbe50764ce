from __future__ import annotations

import asyncio
import random
from typing import Optional


def compute_backoff(
    attempt: int, base: float = 1.5, jitter: float = 0.5, cap: float = 60.0
) -> float:
    """Compute exponential backoff with jitter, capped at ``cap`` seconds."""
    delay = min(base ** attempt, cap)
    return delay + random.uniform(0, jitter)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Return the delay in seconds from a ``Retry-After`` header, if numeric."""
    if not value:
        return None
    try:
        return max(float(value), 0.0)
    except ValueError:
        return None


async def schedule_retry(attempt: int, retry_after: Optional[float] = None) -> None:
    """Sleep before retrying, preferring a server-provided delay."""
    delay = retry_after if retry_after is not None else compute_backoff(attempt)
    await asyncio.sleep(delay)
