"""Bounded, order-preserving concurrent map."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")

log = logging.getLogger("music-resolver.pool")

DEFAULT_CONCURRENCY = 4
MAX_CONCURRENCY = 8


def clamp_concurrency(limit: Any) -> int:
    """Clamp a requested worker count to [1, 8]; unusable values mean 4."""
    try:
        requested = int(limit)
    except (TypeError, ValueError, OverflowError):
        requested = 0
    if not requested:
        requested = DEFAULT_CONCURRENCY
    return max(1, min(MAX_CONCURRENCY, requested))


async def map_with_concurrency(
    items: Sequence[T],
    limit: Any,
    worker: Callable[[T, int], Awaitable[R]],
) -> list[Optional[R]]:
    """
    Run `worker(item, index)` over `items` with at most `limit` in flight.

    output[i] always corresponds to items[i], whatever order the calls
    finish in. A worker that raises leaves None in its slot; siblings keep
    running.
    """
    output: list[Optional[R]] = [None] * len(items)
    cursor = 0

    async def _run_one() -> None:
        nonlocal cursor
        while cursor < len(items):
            index = cursor
            cursor += 1
            try:
                output[index] = await worker(items[index], index)
            except Exception as e:
                log.warning(f"Worker failed for item {index}: {e}")

    await asyncio.gather(*[_run_one() for _ in range(clamp_concurrency(limit))])
    return output
