"""
Async Utilities for Provider Fan-Out.

Provides:
- Settled gathering (every awaitable runs to completion, failures returned
  as values instead of cancelling siblings)
- Sequential batches with bounded concurrency inside each batch
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


# =============================================================================
# Parallel Execution
# =============================================================================


async def gather_settled(*coros: Awaitable[T]) -> list[T | BaseException]:
    """
    Run awaitables concurrently and wait for all of them to settle.

    Unlike a fail-fast TaskGroup, one failing awaitable never cancels the
    others. Results keep input order; failures are returned in place as
    the raised exception.

    Example:
        results = await gather_settled(
            client_a.search_by_title("x"),
            client_b.search_by_title("x"),
        )
    """
    if not coros:
        return []
    return list(await asyncio.gather(*coros, return_exceptions=True))


async def batch_process(
    items: Sequence[T],
    processor: Callable[[T], Awaitable[R]],
    batch_size: int = 5,
) -> list[R | BaseException]:
    """
    Process items in sequential batches.

    Members of one batch run concurrently; the next batch starts only after
    every member of the current batch has settled.

    Args:
        items: Items to process
        processor: Async function applied to each item
        batch_size: Concurrency cap (values below 1 are treated as 1)

    Returns:
        Results in input order (exceptions for failed items)
    """
    size = max(1, batch_size)
    all_results: list[R | BaseException] = []

    for i in range(0, len(items), size):
        batch = items[i : i + size]
        logger.debug(f"Processing batch {i // size + 1} ({len(batch)} items)")
        all_results.extend(await gather_settled(*[processor(item) for item in batch]))

    return all_results
