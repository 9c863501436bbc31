"""Tests for the ordered transcript store."""

from __future__ import annotations

import json
import unittest

from agentic_chat.models import Message, MessageRole
from agentic_chat.transcript import Transcript


class TranscriptTests(unittest.TestCase):
    def test_append_preserves_order(self) -> None:
        transcript = Transcript()
        first = transcript.append(Message.create("one", MessageRole.SENT))
        second = transcript.append(Message.create("two", MessageRole.RECEIVED))

        self.assertEqual(list(transcript), [first, second])
        self.assertIs(transcript.last, second)
        self.assertEqual(len(transcript), 2)

    def test_messages_returns_a_copy(self) -> None:
        transcript = Transcript([Message.create("one", MessageRole.SENT)])
        snapshot = transcript.messages
        snapshot.clear()
        self.assertEqual(len(transcript), 1)

    def test_replace_and_clear(self) -> None:
        transcript = Transcript([Message.create("old", MessageRole.SENT)])
        fresh = Message.create("new", MessageRole.SYSTEM)

        transcript.replace([fresh])
        self.assertEqual(transcript.messages, [fresh])

        transcript.clear()
        self.assertIsNone(transcript.last)

    def test_export_json(self) -> None:
        message = Message.create("hi", MessageRole.SENT)
        exported = json.loads(Transcript([message]).export_json())
        self.assertEqual(exported, [message.to_payload()])


if __name__ == "__main__":
    unittest.main()
