"""Tests for the backend HTTP client against an in-process mock transport."""

from __future__ import annotations

import json
from urllib.parse import parse_qs
import unittest

import httpx

from agentic_chat.backend import BackendClient
from agentic_chat.config import BackendSettings
from agentic_chat.exceptions import (
    BackendConnectionError,
    BackendError,
    BackendTimeoutError,
    MetadataFormatError,
)
from agentic_chat.models import AgentConfig, Message, MessageRole


class BackendClientTests(unittest.IsolatedAsyncioTestCase):
    """Request shapes and error mapping."""

    def setUp(self) -> None:
        self.requests: list[httpx.Request] = []
        self.responder = lambda request: httpx.Response(200, json={"ok": True})

    def _handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.responder(request)

    async def asyncSetUp(self) -> None:
        self.http = httpx.AsyncClient(transport=httpx.MockTransport(self._handler))
        self.client = BackendClient(
            BackendSettings(), profile_name="Tester", client=self.http
        )

    async def asyncTearDown(self) -> None:
        await self.client.aclose()
        await self.http.aclose()

    async def test_send_message_posts_form(self) -> None:
        config = AgentConfig(system_prompt="Be concise.")
        await self.client.send_message("hello", "web:alice", config)

        request = self.requests[0]
        self.assertEqual(request.method, "POST")
        self.assertEqual(request.url.path, "/api/v1/agent-test/respond")
        form = parse_qs(request.content.decode())
        self.assertEqual(form["Body"], ["hello"])
        self.assertEqual(form["From"], ["web:alice"])
        self.assertEqual(form["ProfileName"], ["Tester"])
        self.assertEqual(form["system_prompt"], ["Be concise."])

    async def test_send_message_error_includes_status_and_body(self) -> None:
        self.responder = lambda request: httpx.Response(500, text="boom")

        with self.assertRaises(BackendError) as ctx:
            await self.client.send_message("hello", "web:alice", AgentConfig())

        self.assertEqual(str(ctx.exception), "Backend Error: 500 - boom")
        self.assertEqual(ctx.exception.status_code, 500)

    async def test_reset_session_sends_sender(self) -> None:
        await self.client.reset_session("web:alice")

        request = self.requests[0]
        self.assertEqual(request.url.path, "/api/v1/agent-test/reset")
        self.assertEqual(json.loads(request.content), {"senderNumber": "web:alice"})

    async def test_reset_error_prefers_message_field(self) -> None:
        self.responder = lambda request: httpx.Response(
            429, json={"message": "quota exceeded"}
        )

        with self.assertRaises(BackendError) as ctx:
            await self.client.reset_session("web:alice")

        self.assertEqual(str(ctx.exception), "quota exceeded")

    async def test_reset_error_default_message(self) -> None:
        self.responder = lambda request: httpx.Response(503, text="unavailable")

        with self.assertRaises(BackendError) as ctx:
            await self.client.reset_session("web:alice")

        self.assertEqual(str(ctx.exception), "Failed to reset session.")

    async def test_load_history_body(self) -> None:
        message = Message.create("hi", MessageRole.SENT)

        await self.client.load_history("web:alice", [message], "Prompt")

        body = json.loads(self.requests[0].content)
        self.assertEqual(body["senderNumber"], "web:alice")
        self.assertEqual(body["systemPrompt"], "Prompt")
        self.assertEqual(body["messages"], [message.to_payload()])

    async def test_load_history_error(self) -> None:
        self.responder = lambda request: httpx.Response(400, json={})

        with self.assertRaises(BackendError) as ctx:
            await self.client.load_history("web:alice", [], "Prompt")

        self.assertEqual(str(ctx.exception), "Failed to load history on backend.")

    async def test_fetch_site_metadata(self) -> None:
        self.responder = lambda request: httpx.Response(
            200,
            json={
                "url": "https://example.com/",
                "title": "Example",
                "imageUrl": "https://example.com/i.png",
                "siteName": "Example Site",
            },
        )

        metadata = await self.client.fetch_site_metadata("https://example.com")

        self.assertEqual(self.requests[0].url.params["url"], "https://example.com")
        self.assertEqual(metadata.title, "Example")
        self.assertEqual(metadata.image_url, "https://example.com/i.png")
        self.assertEqual(metadata.site_name, "Example Site")

    async def test_metadata_error_message_is_surfaced(self) -> None:
        self.responder = lambda request: httpx.Response(
            422, json={"errorMessage": "Could not fetch page"}
        )

        with self.assertRaises(BackendError) as ctx:
            await self.client.fetch_site_metadata("https://example.com")

        self.assertEqual(str(ctx.exception), "Could not fetch page")

    async def test_metadata_status_without_json(self) -> None:
        self.responder = lambda request: httpx.Response(502, text="<html>")

        with self.assertRaises(BackendError) as ctx:
            await self.client.fetch_site_metadata("https://example.com")

        self.assertEqual(str(ctx.exception), "Preview service returned 502")

    async def test_metadata_unparseable_body(self) -> None:
        self.responder = lambda request: httpx.Response(200, text="not json")

        with self.assertRaises(MetadataFormatError):
            await self.client.fetch_site_metadata("https://example.com")

    async def test_metadata_non_object_body(self) -> None:
        self.responder = lambda request: httpx.Response(200, json=["a", "b"])

        with self.assertRaises(MetadataFormatError):
            await self.client.fetch_site_metadata("https://example.com")

    async def test_transport_errors_are_mapped(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        self.responder = refuse
        with self.assertRaises(BackendConnectionError):
            await self.client.reset_session("web:alice")

        def stall(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        self.responder = stall
        with self.assertRaises(BackendTimeoutError):
            await self.client.send_message("hi", "web:alice", AgentConfig())


class OwnershipTests(unittest.IsolatedAsyncioTestCase):
    async def test_injected_client_is_not_closed(self) -> None:
        http = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(200))
        )
        async with BackendClient(client=http):
            pass
        self.assertFalse(http.is_closed)
        await http.aclose()


if __name__ == "__main__":
    unittest.main()
