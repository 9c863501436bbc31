"""Tests for the session event bus."""

from __future__ import annotations

import unittest

from agentic_chat.events import SESSION_ERROR, TRANSCRIPT_APPENDED, Event, EventBus


class EventBusTests(unittest.IsolatedAsyncioTestCase):
    """Delivery order, handler kinds and failure isolation."""

    async def test_sync_and_async_handlers_receive_event(self) -> None:
        bus = EventBus()
        seen: list[str] = []

        def sync_handler(event: Event) -> None:
            seen.append(f"sync:{event.data['value']}")

        async def async_handler(event: Event) -> None:
            seen.append(f"async:{event.data['value']}")

        bus.subscribe(TRANSCRIPT_APPENDED, sync_handler)
        bus.subscribe(TRANSCRIPT_APPENDED, async_handler)
        await bus.publish(TRANSCRIPT_APPENDED, {"value": 1}, source="test")

        self.assertEqual(seen, ["sync:1", "async:1"])

    async def test_failing_handler_does_not_stop_delivery(self) -> None:
        bus = EventBus()
        seen: list[Event] = []

        def broken(event: Event) -> None:
            raise RuntimeError("handler bug")

        bus.subscribe(SESSION_ERROR, broken)
        bus.subscribe(SESSION_ERROR, seen.append)
        with self.assertLogs("agentic_chat.events.bus", level="ERROR") as logs:
            await bus.publish(SESSION_ERROR, {"error": "x"})

        self.assertEqual(len(seen), 1)
        self.assertEqual(seen[0].name, SESSION_ERROR)
        record = logs.records[0]
        self.assertEqual(record.event, "events.handler.failed")
        self.assertEqual(record.event_name, SESSION_ERROR)
        self.assertEqual(record.error_type, "RuntimeError")

    async def test_subscribe_logs_event_name_at_debug(self) -> None:
        bus = EventBus()

        with self.assertLogs("agentic_chat.events.bus", level="DEBUG") as logs:
            bus.subscribe(TRANSCRIPT_APPENDED, print)

        self.assertTrue(bus.has_subscribers(TRANSCRIPT_APPENDED))
        self.assertEqual(logs.records[0].event, "events.subscribed")
        self.assertEqual(logs.records[0].event_name, TRANSCRIPT_APPENDED)

    async def test_unsubscribe_and_clear(self) -> None:
        bus = EventBus()
        seen: list[Event] = []
        bus.subscribe(SESSION_ERROR, seen.append)
        self.assertTrue(bus.has_subscribers(SESSION_ERROR))

        bus.unsubscribe(SESSION_ERROR, seen.append)
        await bus.publish(SESSION_ERROR, {"error": None})
        self.assertEqual(seen, [])

        bus.subscribe(SESSION_ERROR, seen.append)
        bus.clear()
        self.assertFalse(bus.has_subscribers(SESSION_ERROR))


if __name__ == "__main__":
    unittest.main()
