"""
Bounded-concurrency worker pool over async calls.

min(limit, len(items)) lanes pull the next unclaimed index from a shared
counter until the list is exhausted, so a slow item only holds up its own
lane. Each index is claimed exactly once and its result is written to the
same position in the output list.
"""

import asyncio
import itertools
from typing import Awaitable, Callable, List, Optional, Sequence, TypeVar

T = TypeVar('T')
R = TypeVar('R')


async def run_with_concurrency_limit(
    items: Sequence[T],
    concurrency_limit: int,
    worker: Callable[[T], Awaitable[R]],
) -> List[R]:
    """
    Run `worker` over `items` with at most `concurrency_limit` in flight.

    Args:
        items: Work items
        concurrency_limit: Maximum concurrent calls (values below 1 mean 1)
        worker: Async function applied to each item

    Returns:
        Results in the same order as `items`, regardless of completion order

    Raises:
        Exception: The first exception raised by `worker`, after every lane
            has finished
    """
    limit = max(1, concurrency_limit)
    results: List[Optional[R]] = [None] * len(items)
    cursor = itertools.count()

    async def lane() -> None:
        while True:
            index = next(cursor)
            if index >= len(items):
                return
            results[index] = await worker(items[index])

    outcomes = await asyncio.gather(
        *(lane() for _ in range(min(limit, len(items)))),
        return_exceptions=True,
    )
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome

    return results
