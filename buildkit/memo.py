from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class OnceTask(Generic[T]):
    """Run an async job at most once per generation.

    Concurrent callers share the in-flight task. `force=True` starts a new
    generation. A generation that fails is dropped so the next call runs again.
    """

    def __init__(self, label: str) -> None:
        self.label = label
        self._task: asyncio.Task[T] | None = None
        self.generation = 0

    @property
    def done(self) -> bool:
        task = self._task
        if task is None or not task.done() or task.cancelled():
            return False
        return task.exception() is None

    def result(self) -> T | None:
        if self._task is None or not self.done:
            return None
        return self._task.result()

    def reset(self) -> None:
        self._task = None

    async def run(self, factory: Callable[[], Awaitable[T]], *, force: bool = False) -> T:
        if self._task is None or force:
            self.generation += 1
            task = asyncio.ensure_future(factory())
            self._task = task
            task.add_done_callback(self._drop_if_failed)
        # Shield so one cancelled caller does not cancel the shared job.
        return await asyncio.shield(self._task)

    def _drop_if_failed(self, task: asyncio.Task[T]) -> None:
        if task is not self._task:
            return
        if task.cancelled() or task.exception() is not None:
            self._task = None
