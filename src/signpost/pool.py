"""Bounded FIFO task pool for the asyncio event loop."""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

T = TypeVar("T")

Task = Callable[[], Awaitable[T]]


class _Pending(Generic[T]):
    __slots__ = ("task", "future")

    def __init__(self, task: Task[T], future: asyncio.Future[T]) -> None:
        self.task = task
        self.future = future


class TaskPool:
    """Run submitted tasks with at most ``max_concurrency`` in flight.

    ``submit`` never blocks: it queues the task and returns a future that
    resolves with the task's result or exception. Tasks start in
    submission order as slots free up. All state is owned by the event
    loop thread, so no lock is needed.
    """

    def __init__(self, max_concurrency: int = 64) -> None:
        if int(max_concurrency) < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self.max_concurrency: int = int(max_concurrency)
        self.running: int = 0
        self.peak: int = 0
        self._queue: deque[_Pending[Any]] = deque()
        self._inflight: set[asyncio.Task[None]] = set()
        self._idle: asyncio.Event | None = None

    @property
    def pending(self) -> int:
        return len(self._queue)

    @property
    def idle(self) -> bool:
        return self.running == 0 and not self._queue

    def submit(self, task: Task[T]) -> asyncio.Future[T]:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[T] = loop.create_future()
        self._queue.append(_Pending(task, future))
        self._drain()
        return future

    async def join(self) -> None:
        """Wait until the queue is empty and nothing is running."""
        while not self.idle:
            if self._idle is None:
                self._idle = asyncio.Event()
            await self._idle.wait()

    def _drain(self) -> None:
        while self.running < self.max_concurrency and self._queue:
            item = self._queue.popleft()
            if item.future.cancelled():
                continue
            self.running += 1
            self.peak = max(self.peak, self.running)
            runner = asyncio.ensure_future(self._run(item))
            self._inflight.add(runner)
            runner.add_done_callback(self._inflight.discard)

        if self.idle and self._idle is not None:
            self._idle.set()
            self._idle = None

    async def _run(self, item: _Pending[Any]) -> None:
        try:
            result = await item.task()
        except asyncio.CancelledError:
            if not item.future.done():
                _ = item.future.cancel()
            raise
        except Exception as exc:
            if isinstance(exc, StopIteration):
                # futures refuse StopIteration; convert it the way PEP 479 does
                wrapped = RuntimeError(f"task raised StopIteration: {exc!r}")
                wrapped.__cause__ = exc
                exc = wrapped
            if not item.future.done():
                item.future.set_exception(exc)
        else:
            if not item.future.done():
                item.future.set_result(result)
        finally:
            self.running -= 1
            self._drain()
