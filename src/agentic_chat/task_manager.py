"""Lifecycle registry for background asyncio tasks."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


class TaskManager:
    """Track keyed and anonymous background tasks.

    A key holds at most one task: registering a new task under a key cancels
    the task it replaces. Finished tasks remove themselves.
    """

    def __init__(self) -> None:
        self._named: dict[str, asyncio.Task[Any]] = {}
        self._anonymous: set[asyncio.Task[Any]] = set()

    def __len__(self) -> int:
        return len(self._named) + len(self._anonymous)

    def add(self, task: asyncio.Task[Any], name: str | None = None) -> None:
        """Register ``task``, replacing and cancelling any task under ``name``."""
        task.add_done_callback(self._log_exception)
        if name is None:
            self._anonymous.add(task)
            task.add_done_callback(self._anonymous.discard)
            return
        previous = self._named.get(name)
        if previous is not None and previous is not task and not previous.done():
            previous.cancel()
        self._named[name] = task
        task.add_done_callback(lambda done: self._forget(name, done))

    def _forget(self, name: str, task: asyncio.Task[Any]) -> None:
        if self._named.get(name) is task:
            del self._named[name]

    def _log_exception(self, task: asyncio.Task[Any]) -> None:
        """Log unhandled task exceptions so they are not silently lost."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.warning(
                "task.exception",
                extra={
                    "event": "task.exception",
                    "task": task.get_name(),
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )

    def get(self, name: str) -> asyncio.Task[Any] | None:
        """Return the live task registered under ``name``."""
        return self._named.get(name)

    async def cancel(self, name: str) -> None:
        """Cancel a named task and wait for it to finish."""
        task = self._named.pop(name, None)
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def cancel_all(self) -> None:
        """Cancel every tracked task and wait for all of them."""
        tasks = list(self._named.values()) + list(self._anonymous)
        self._named.clear()
        self._anonymous.clear()
        for task in tasks:
            if not task.done():
                task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception:
                # Already reported by _log_exception.
                continue

    async def await_all(self) -> None:
        """Wait for every tracked task without cancelling."""
        tasks = list(self._named.values()) + list(self._anonymous)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
