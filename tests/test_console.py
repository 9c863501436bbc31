"""Tests for the rich console front end."""

from __future__ import annotations

import io
from pathlib import Path
import tempfile
import unittest

from rich.console import Console

from agentic_chat.console import ChatConsole
from agentic_chat.models import AgentConfig, ConversationStarter, PreviewEntry, SiteMetadata
from agentic_chat.persistence import SnapshotPersistence
from agentic_chat.session import SessionController


class RecordingBackend:
    def __init__(self) -> None:
        self.sent: list[str] = []
        self.resets: list[str] = []
        self.loads: list[str] = []

    async def send_message(self, text, sender_identity, agent_config) -> None:
        self.sent.append(text)

    async def reset_session(self, sender_identity) -> None:
        self.resets.append(sender_identity)

    async def load_history(self, sender_identity, messages, system_prompt) -> None:
        self.loads.append(sender_identity)


class ChatConsoleTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.output = io.StringIO()
        self.backend = RecordingBackend()
        self.controller = SessionController(
            self.backend,
            sender_identity="web:alice",
            agent_config=AgentConfig(first_message_assistant="Welcome!"),
        )
        self.app = ChatConsole(
            self.controller,
            SnapshotPersistence(self.tmp.name),
            console=Console(file=self.output, width=100, color_system=None),
        )

    async def asyncTearDown(self) -> None:
        self.tmp.cleanup()

    async def test_plain_text_is_sent_and_rendered(self) -> None:
        await self.app.handle_line("hello agent")

        self.assertEqual(self.backend.sent, ["hello agent"])
        self.assertIn("You: hello agent", self.output.getvalue())

    async def test_reset_command_renders_greeting(self) -> None:
        await self.app.handle_line("/reset")

        self.assertEqual(self.backend.resets, ["web:alice"])
        self.assertIn("Agent: Welcome!", self.output.getvalue())

    async def test_sender_and_starter_commands(self) -> None:
        await self.app.handle_line("/starter user")
        self.assertIs(
            self.controller.agent_config.conversation_starter, ConversationStarter.USER
        )

        await self.app.handle_line("/sender web:bob")

        self.assertEqual(self.controller.sender_identity, "web:bob")
        self.assertEqual(self.backend.resets, ["web:bob"])
        self.assertEqual(self.backend.sent, [AgentConfig().first_message_user])

    async def test_prompt_command_updates_config(self) -> None:
        await self.app.handle_line("/prompt Answer in French.")
        self.assertEqual(self.controller.agent_config.system_prompt, "Answer in French.")

    async def test_save_then_load_commands(self) -> None:
        await self.app.handle_line("remember this")
        target = Path(self.tmp.name) / "saved.json"

        await self.app.handle_line(f"/save {target}")
        await self.app.handle_line(f"/load {target}")

        self.assertTrue(target.exists())
        self.assertEqual(self.backend.loads, ["web:alice"])
        self.assertIn("Conversation successfully loaded from file.", self.output.getvalue())

    async def test_load_missing_file_reports_error(self) -> None:
        await self.app.handle_line(f"/load {self.tmp.name}/missing.json")

        self.assertEqual(self.backend.loads, [])
        self.assertIn("missing.json", self.output.getvalue())

    async def test_load_undecodable_file_reports_error(self) -> None:
        target = Path(self.tmp.name) / "broken.json"
        target.write_bytes(b"\xff\xfe{bad")

        await self.app.handle_line(f"/load {target}")

        self.assertEqual(self.backend.loads, [])
        self.assertIn("Invalid conversation file format", self.output.getvalue())
        self.assertFalse(self.controller.pending)

    async def test_card_shows_service_note(self) -> None:
        entry = PreviewEntry.from_metadata(
            "https://example.com",
            SiteMetadata(title="Example", description="Docs", error_message="Partial page"),
        )

        self.app.render_preview(entry)

        output = self.output.getvalue()
        self.assertIn("Docs", output)
        self.assertIn("Partial page", output)

    async def test_unknown_command_hint(self) -> None:
        await self.app.handle_line("/dance")
        self.assertIn("Unknown command", self.output.getvalue())
        self.assertEqual(self.backend.sent, [])


if __name__ == "__main__":
    unittest.main()
