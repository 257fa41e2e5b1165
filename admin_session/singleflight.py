"""
Single-flight: at most one instance of an async operation runs at a time.
Callers arriving while it runs await the same task and get the same result.
"""
import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """
    Holds the in-flight task. The slot is only reusable once the task has settled,
    so a caller arriving after completion always starts fresh work.
    """

    def __init__(self) -> None:
        self._task: asyncio.Task | None = None

    @property
    def in_flight(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Start operation() unless one is already running, then await the shared result.
        Waiters are shielded: cancelling one caller leaves the shared task running.
        """
        task = self._task
        if task is None or task.done():
            task = asyncio.ensure_future(operation())
            self._task = task
            task.add_done_callback(self._release)
        else:
            logger.debug("Joining in-flight operation")
        return await asyncio.shield(task)

    def _release(self, task: asyncio.Task) -> None:
        if self._task is task:
            self._task = None

    async def cancel(self) -> None:
        """Abort the in-flight task (if any) and wait for it to unwind."""
        task = self._task
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
