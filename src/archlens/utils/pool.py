"""Bounded-concurrency execution of a homogeneous batch of async work.

Items are placed on a queue and drained by a fixed number of workers, so at
most ``limit`` invocations of ``work`` are in flight at any instant. A unit
that raises is reported as a ChunkTaskFailure and yields ``None``; the rest
of the batch keeps running.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from archlens.errors import ChunkTaskFailure
from archlens.utils.best_effort import best_effort

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

FailureCallback = Callable[[ChunkTaskFailure], None]


async def run_bounded(
    limit: int,
    items: Sequence[T],
    work: Callable[[T], Awaitable[R]],
    on_progress: Callable[[int, int, T], None] | None = None,
    on_failure: FailureCallback | None = None,
    label: Callable[[T], str] = str,
) -> list[R | None]:
    """Run ``work`` over every item with at most ``limit`` running at once.

    Args:
        limit: Concurrency ceiling (>= 1)
        items: Units of work, in order
        work: Async function applied to each item
        on_progress: Called as ``(completed, total, item)`` after each unit,
            successful or not
        on_failure: Called with each ChunkTaskFailure
        label: Renders an item for log messages

    Both callbacks run through best_effort, so an exception they raise is
    logged and the batch carries on.

    Returns:
        One entry per item in input order: the result, or None if that
        unit failed

    Raises:
        ValueError: If limit is less than 1
    """
    if limit < 1:
        raise ValueError(f"Concurrency limit must be at least 1. Got: {limit}")

    total = len(items)
    results: list[R | None] = [None] * total
    if total == 0:
        return results

    queue: asyncio.Queue[int] = asyncio.Queue()
    for index in range(total):
        queue.put_nowait(index)

    completed = 0

    async def worker() -> None:
        nonlocal completed
        while True:
            try:
                index = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            item = items[index]
            try:
                results[index] = await work(item)
            except Exception as e:
                failure = ChunkTaskFailure(index, label(item), e)
                logger.warning(str(failure))
                if on_failure is not None:
                    best_effort("pool failure callback", on_failure, failure)
            finally:
                completed += 1
                queue.task_done()
            if on_progress is not None:
                best_effort("pool progress callback", on_progress, completed, total, item)

    workers = min(limit, total)
    logger.debug(f"Running {total} units with {workers} workers")
    await asyncio.gather(*(worker() for _ in range(workers)))
    return results
