"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from agentic_chat.config import DEFAULT_CONFIG, Config, PreviewSettings, load_config
from agentic_chat.models import ConversationStarter


class ConfigTests(unittest.TestCase):
    """Validate config merge and fallback behavior."""

    def _load(self, text: str | None) -> Config:
        with tempfile.TemporaryDirectory() as temp_dir:
            config_path = Path(temp_dir) / "config.toml"
            if text is not None:
                config_path.write_text(text, encoding="utf-8")
            return load_config(config_path=config_path)

    def test_missing_config_uses_defaults(self) -> None:
        config = self._load(None)
        self.assertEqual(
            config.backend.respond_url, DEFAULT_CONFIG["backend"]["respond_url"]
        )
        self.assertEqual(config.session.sender_identity, "web:local-user")
        self.assertEqual(config.previews.allowed_domains, ["*"])
        self.assertFalse(config.session.announce_reset)

    def test_partial_override_is_merged(self) -> None:
        config = self._load(
            """
[session]
sender_identity = "web:alice"

[agent]
system_prompt = "Speak plainly."
conversation_starter = "user"

[previews]
allowed_domains = ["Example.com", "example.com", " docs.python.org "]
"""
        )
        self.assertEqual(config.session.sender_identity, "web:alice")
        self.assertEqual(config.session.agent_label, "Agent")
        self.assertEqual(config.agent.system_prompt, "Speak plainly.")
        self.assertIs(config.agent.conversation_starter, ConversationStarter.USER)
        self.assertEqual(config.previews.allowed_domains, ["example.com", "docs.python.org"])
        self.assertEqual(config.backend.timeout, DEFAULT_CONFIG["backend"]["timeout"])

    def test_invalid_values_fall_back_to_defaults(self) -> None:
        config = self._load('[backend]\nsocket_url = "ftp://example.com"\n')
        self.assertEqual(config.backend.socket_url, DEFAULT_CONFIG["backend"]["socket_url"])

    def test_malformed_toml_falls_back_to_defaults(self) -> None:
        config = self._load("[backend\nsocket_url = ")
        self.assertEqual(config, Config())

    def test_invalid_log_level_rejected(self) -> None:
        config = self._load('[logging]\nlevel = "LOUD"\n')
        self.assertEqual(config.logging.level, "INFO")

    def test_empty_allow_list_is_kept(self) -> None:
        self.assertEqual(PreviewSettings(allowed_domains=None).allowed_domains, [])
        self.assertEqual(PreviewSettings(allowed_domains=[]).allowed_domains, [])


if __name__ == "__main__":
    unittest.main()
