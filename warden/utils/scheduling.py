"""Task scheduling."""

import asyncio
import typing as t
from collections import Counter
from contextlib import asynccontextmanager, suppress
from functools import partial

from loguru import logger

from warden.errors import capture


class WorkerPool:
    """A fixed number of worker tasks draining a queue of coroutines.

    Submitting returns immediately. A coroutine that raises has its exception
    captured under the component name it was submitted with; the worker keeps
    going.
    """

    def __init__(self, name: str, size: int = 4):
        if size <= 0:
            raise ValueError("A worker pool needs at least one worker.")

        self.name = name
        self.size = size
        self._queue: asyncio.Queue = asyncio.Queue()
        self._workers: list[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return bool(self._workers)

    def start(self) -> None:
        """Starts the workers. Must be called from within a running event loop."""
        if self._workers:
            return

        logger.debug(f"{self.name}: Starting {self.size} workers")
        self._workers = [
            create_task(self._work(index), name=f"{self.name}_worker_{index}") for index in range(self.size)
        ]

    def submit(self, coroutine: t.Coroutine, *, component: str) -> None:
        """Queues `coroutine` for execution by the next free worker."""
        self.start()
        self._queue.put_nowait((coroutine, component))
        logger.trace(f"{self.name}: Queued {coroutine.__qualname__} ({self._queue.qsize()} pending)")

    async def join(self) -> None:
        """Waits until every queued coroutine has finished."""
        await self._queue.join()

    async def close(self) -> None:
        """Cancels the workers. Queued coroutines that never ran are closed."""
        logger.debug(f"{self.name}: Stopping workers")

        for worker in self._workers:
            worker.cancel()
        for worker in self._workers:
            with suppress(asyncio.CancelledError):
                await worker
        self._workers = []

        while not self._queue.empty():
            coroutine, _ = self._queue.get_nowait()
            coroutine.close()
            self._queue.task_done()

    async def _work(self, index: int) -> None:
        while True:
            coroutine, component = await self._queue.get()
            try:
                await coroutine
            except Exception as error:  # pylint: disable=broad-except
                capture(error, component)
            finally:
                self._queue.task_done()
                logger.trace(f"{self.name}: Worker {index} finished a job")


class KeyedLock:
    """One asyncio lock per key, dropped again once nobody holds or waits for it."""

    def __init__(self):
        self._locks: dict[t.Hashable, asyncio.Lock] = {}
        self._users: Counter = Counter()

    def __contains__(self, key: t.Hashable) -> bool:
        return key in self._locks

    @asynccontextmanager
    async def hold(self, key: t.Hashable) -> t.AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


def create_task(
    coro: t.Awaitable,
    *,
    suppressed_exceptions: tuple[t.Type[Exception], ...] = (),
    event_loop: t.Optional[asyncio.AbstractEventLoop] = None,
    **kwargs,
) -> asyncio.Task:
    """Wrapper for creating asyncio `Task`s which logs exceptions raised in the
    task.

    If the loop kwarg is provided, the task is created from that event loop,
    otherwise the running loop is used.
    """
    if event_loop is not None:
        task = event_loop.create_task(coro, **kwargs)
    else:
        task = asyncio.create_task(coro, **kwargs)
    task.add_done_callback(partial(_log_task_exception, suppressed_exceptions=suppressed_exceptions))
    return task


def _log_task_exception(task: asyncio.Task, *, suppressed_exceptions: t.Tuple[t.Type[Exception], ...]) -> None:
    """Retrieves and logs the exception raised in `task` if one exists."""
    with suppress(asyncio.CancelledError):
        exception = task.exception()
        # Log the exception if one exists.
        if exception and not isinstance(exception, suppressed_exceptions):
            logger.opt(exception=exception).error(f"Error in task {task.get_name()} {id(task)}!")
