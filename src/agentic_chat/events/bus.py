"""Publish/subscribe bus that lets front ends follow a session.

Usage:
    bus = EventBus()

    async def on_appended(event):
        print(event.data["message"].text)

    bus.subscribe(TRANSCRIPT_APPENDED, on_appended)
    await bus.publish(TRANSCRIPT_APPENDED, {"message": message})
"""

from __future__ import annotations

import inspect
from collections.abc import Callable
from dataclasses import dataclass
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)


@dataclass
class Event:
    """Event data container."""

    name: str
    data: dict[str, Any]
    source: str | None = None


class EventBus:
    """Fan session events out to subscribers.

    Handlers may be plain functions or coroutine functions. A failing handler
    is logged and does not stop delivery to the remaining handlers.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Callable]] = {}

    def subscribe(self, event_name: str, handler: Callable) -> None:
        """Subscribe ``handler`` to ``event_name``."""
        self._subscribers.setdefault(event_name, []).append(handler)
        LOGGER.debug(
            "events.subscribed",
            extra={"event": "events.subscribed", "event_name": event_name},
        )

    def unsubscribe(self, event_name: str, handler: Callable) -> None:
        if event_name in self._subscribers:
            try:
                self._subscribers[event_name].remove(handler)
            except ValueError:
                pass

    def has_subscribers(self, event_name: str) -> bool:
        return bool(self._subscribers.get(event_name))

    async def publish(
        self, event_name: str, data: dict[str, Any], source: str | None = None
    ) -> None:
        """Deliver an event to every subscriber in subscription order."""
        event = Event(name=event_name, data=data, source=source)
        for handler in list(self._subscribers.get(event_name, [])):
            try:
                if inspect.iscoroutinefunction(handler):
                    await handler(event)
                else:
                    handler(event)
            except Exception as exc:
                LOGGER.error(
                    "events.handler.failed",
                    extra={
                        "event": "events.handler.failed",
                        "event_name": event_name,
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                )

    def clear(self, event_name: str | None = None) -> None:
        """Drop subscribers for one event, or for all events."""
        if event_name:
            self._subscribers.pop(event_name, None)
        else:
            self._subscribers.clear()
