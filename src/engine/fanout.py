# src/engine/fanout.py — v1
"""Bounded-concurrency fan-out over a collection of items."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def run_bounded(
    items: Iterable[T],
    limit: int,
    worker: Callable[[T], Awaitable[None]],
    describe: Callable[[T], str] = str,
) -> int:
    """Run ``worker`` on every item with at most ``limit`` in flight.

    A failing item is logged and does not affect its siblings.

    Args:
        items: Work items.
        limit: Maximum number of concurrently running workers.
        worker: Coroutine function called once per item.
        describe: Item label used in failure logs.

    Returns:
        Number of items whose worker raised.
    """
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")

    semaphore = asyncio.Semaphore(limit)

    async def _run(item: T) -> bool:
        async with semaphore:
            try:
                await worker(item)
            except Exception:
                logger.exception("Failed to process %s", describe(item))
                return False
            return True

    results = await asyncio.gather(*(_run(item) for item in items))
    return results.count(False)
