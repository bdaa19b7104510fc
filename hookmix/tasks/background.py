"""Detached asyncio tasks that outlive the request that started them."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[BaseException], Awaitable[None]]


class BackgroundTaskRunner:
    """Keeps strong references to fire-and-forget tasks.

    The event loop only holds weak references to tasks, so a task nobody
    references can be garbage collected mid-flight. Tasks are tracked here
    until they finish; an exception that escapes a task is logged and handed
    to its ``on_error`` callback.
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(
        self,
        coro: Coroutine[Any, Any, Any],
        *,
        name: str | None = None,
        on_error: ErrorCallback | None = None,
    ) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)

        def _on_done(finished: asyncio.Task) -> None:
            self._tasks.discard(finished)
            if finished.cancelled():
                logger.warning("Background task %s was cancelled", finished.get_name())
                return
            exc = finished.exception()
            if exc is None:
                return
            logger.error(
                "Unhandled error in background task %s",
                finished.get_name(),
                exc_info=(type(exc), exc, exc.__traceback__),
            )
            if on_error is not None:
                self.spawn(on_error(exc), name=f"{finished.get_name()}-on-error")

        task.add_done_callback(_on_done)
        return task

    async def drain(self, timeout: float | None = None) -> bool:
        """Wait for running tasks.

        Returns:
            True if every task finished within ``timeout``
        """
        deadline = None if timeout is None else asyncio.get_running_loop().time() + timeout
        while self._tasks:
            remaining = None
            if deadline is not None:
                remaining = deadline - asyncio.get_running_loop().time()
                if remaining <= 0:
                    return False
            _, still_pending = await asyncio.wait(set(self._tasks), timeout=remaining)
            if still_pending and deadline is not None and asyncio.get_running_loop().time() >= deadline:
                return False
        return True
