"""Background work that a tick can start and later collect without waiting."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Generic, Optional, TypeVar

from dnet_tui.utils.logger import logger

T = TypeVar("T")


@dataclass
class JobOutcome(Generic[T]):
    """Either the job's return value or the exception it raised."""

    value: Optional[T] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class BackgroundJob(Generic[T]):
    """Run one coroutine as a task and report its outcome through a queue.

    ``poll()`` never blocks: it returns None until the outcome is available,
    then returns it exactly once.
    """

    def __init__(self, coro: Awaitable[T], name: str):
        self.name = name
        self._outcomes: asyncio.Queue[JobOutcome[T]] = asyncio.Queue(maxsize=1)
        self._collected = False
        self.task = asyncio.create_task(self._run(coro), name=name)

    async def _run(self, coro: Awaitable[T]) -> None:
        try:
            value = await coro
        except asyncio.CancelledError:
            logger.debug("Job %s cancelled", self.name)
            raise
        except Exception as e:
            logger.warning("Job %s failed: %s", self.name, e)
            self._outcomes.put_nowait(JobOutcome(error=e))
            return
        self._outcomes.put_nowait(JobOutcome(value=value))

    def poll(self) -> Optional[JobOutcome[T]]:
        if self._collected:
            return None
        try:
            outcome = self._outcomes.get_nowait()
        except asyncio.QueueEmpty:
            return None
        self._collected = True
        return outcome

    def cancel(self) -> None:
        if not self.task.done():
            self.task.cancel()
