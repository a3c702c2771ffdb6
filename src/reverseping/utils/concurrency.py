"""
Bounded fan-out helpers.
"""
import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import List, TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def gather_bounded(func: Callable[[T], Awaitable[R]], items: Iterable[T], limit: int) -> List[R]:
    """Run ``func`` for every item with at most ``limit`` calls in flight.

    Results come back in input order. ``func`` is expected to handle its own
    per-item failures; anything it raises propagates as with ``asyncio.gather``.
    """
    if limit < 1:
        raise ValueError("Concurrency limit must be at least 1.")
    semaphore = asyncio.Semaphore(limit)

    async def run(item: T) -> R:
        async with semaphore:
            return await func(item)

    return await asyncio.gather(*(run(item) for item in items))
