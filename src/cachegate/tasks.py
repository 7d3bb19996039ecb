"""Background work and best-effort bulk operations.

Two primitives keep the asyncio concurrency in the caching core explicit:

* :class:`Lifetime` -- the "extend lifetime until settled" registration.
  Work that must outlive the request that started it (a cache write after the
  response has already been returned, a stale-while-revalidate refresh) is
  handed to :meth:`Lifetime.extend`. The host awaits :meth:`Lifetime.settle`
  before shutting down so nothing is cut off mid-write.
* :func:`settle_all` -- runs a batch of awaitables concurrently, waits for
  *all* of them, and partitions the outcomes into successes and failures
  instead of stopping at the first error.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Generic, Iterable, TypeVar

T = TypeVar("T")


@dataclass
class Settled(Generic[T]):
    """Outcome of :func:`settle_all`, in input order within each list.

    Attributes:
        successes: ``(index, result)`` pairs of awaitables that returned.
        failures: ``(index, exception)`` pairs of awaitables that raised.
    """

    successes: list[tuple[int, T]] = field(default_factory=list)
    failures: list[tuple[int, BaseException]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


async def settle_all(aws: Iterable[Awaitable[T]]) -> Settled[T]:
    """Run *aws* concurrently and collect every outcome.

    ``Exception`` subclasses are collected; cancellation and other
    ``BaseException`` subclasses still propagate.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    settled: Settled[T] = Settled()
    for index, result in enumerate(results):
        if isinstance(result, Exception):
            settled.failures.append((index, result))
        elif isinstance(result, BaseException):
            raise result
        else:
            settled.successes.append((index, result))
    return settled


class Lifetime:
    """Keeps background tasks alive until they settle.

    Tasks are tracked by strong reference (the event loop only keeps weak
    ones) and dropped once done. Exceptions raised by a task are retrieved
    and discarded; callers log inside the coroutine they schedule.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def pending(self) -> int:
        """Number of registered tasks that have not finished yet."""
        return sum(1 for task in self._tasks if not task.done())

    def extend(self, aw: Awaitable[T]) -> asyncio.Task[T]:
        """Schedule *aw* as a background task and track it until it settles."""
        task: asyncio.Task[T] = asyncio.ensure_future(aw)
        self._tasks.add(task)
        task.add_done_callback(self._forget)
        return task

    async def settle(self) -> None:
        """Wait until every registered task (including ones added meanwhile) is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _forget(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled():
            task.exception()
