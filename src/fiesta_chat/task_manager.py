"""Lifecycle manager for named asyncio tasks."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from functools import partial
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


class TaskManager:
    """Track named tasks, wait for them, or cancel them together.

    A task stops being tracked as soon as it finishes.
    """

    def __init__(self) -> None:
        self._named: dict[str, asyncio.Task[Any]] = {}

    def spawn(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        """Start ``coro`` as a task registered under ``name``.

        A task already registered under the same name is replaced but *not*
        cancelled.
        """
        task = asyncio.create_task(coro, name=name)
        self._named[name] = task
        task.add_done_callback(partial(self._forget, name))
        task.add_done_callback(self._log_exception)
        return task

    def _forget(self, name: str, task: asyncio.Task[Any]) -> None:
        if self._named.get(name) is task:
            del self._named[name]

    def _log_exception(self, task: asyncio.Task[Any]) -> None:
        """Log exceptions that escaped a task so they are not silently lost."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.error(
                "tasks.unhandled_error",
                extra={
                    "event": "tasks.unhandled_error",
                    "task": task.get_name(),
                    "error_type": type(exc).__name__,
                },
                exc_info=exc,
            )

    def get(self, name: str) -> asyncio.Task[Any] | None:
        """Return the running task registered under ``name``, if any."""
        return self._named.get(name)

    async def cancel_all(self) -> None:
        """Cancel every tracked task and await them all."""
        all_tasks = list(self._named.values())
        for task in all_tasks:
            task.cancel()
        await asyncio.gather(*all_tasks, return_exceptions=True)
        self._named.clear()

    async def await_all(self) -> None:
        """Wait, without cancelling, until no tracked task is left running."""
        while True:
            pending = [task for task in self._named.values() if not task.done()]
            if not pending:
                return
            await asyncio.wait(pending)
