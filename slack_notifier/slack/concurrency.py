"""Bounded fan-out for independent Slack calls."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar


logger = logging.getLogger(__name__)

T = TypeVar('T')


async def gather_bounded(
    tasks: Sequence[Callable[[], Awaitable[T]]],
    limit: int,
    fallback: T,
    label: str = 'task',
) -> list[T]:
    """Run ``tasks`` with at most ``limit`` in flight.

    A fixed pool of workers pulls task indexes from a shared queue. The
    result list has one slot per task, in the original order. A task that
    raises gets ``fallback`` in its slot; the error is logged and siblings
    keep running.
    """
    results: list[T] = [fallback] * len(tasks)
    if not tasks:
        return results

    queue: asyncio.Queue[int] = asyncio.Queue()
    for index in range(len(tasks)):
        queue.put_nowait(index)

    async def worker() -> None:
        while True:
            try:
                index = queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            try:
                results[index] = await tasks[index]()
            except Exception as e:
                logger.warning(f'{label} #{index} failed, using fallback: {e}')

    workers = max(1, min(limit, len(tasks)))
    await asyncio.gather(*(worker() for _ in range(workers)))
    return results
