"""Bounded concurrent fan-out."""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def gather_bounded(
    items: Iterable[T],
    fn: Callable[[T], Awaitable[R]],
    limit: int = 10,
) -> list[R]:
    """Run ``fn`` over ``items`` with at most ``limit`` calls in flight.

    Results are returned in input order. The first exception raised by
    ``fn`` propagates to the caller.

    Args:
        items: Inputs to process
        fn: Coroutine function applied to each input
        limit: Maximum number of concurrent calls

    Returns:
        List of results, one per input
    """
    semaphore = asyncio.Semaphore(max(1, limit))

    async def run(item: T) -> R:
        async with semaphore:
            return await fn(item)

    return list(await asyncio.gather(*(run(item) for item in items)))
