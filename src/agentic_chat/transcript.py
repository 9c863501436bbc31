"""Append-only ordered message storage."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
import json

from .models import Message


class Transcript:
    """Hold transcript lines in append order.

    Messages are immutable; the only mutations are appending one line and
    replacing the whole sequence (reset and load).
    """

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._messages: list[Message] = list(messages)

    @property
    def messages(self) -> list[Message]:
        """Return a shallow copy of the stored messages."""
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(list(self._messages))

    @property
    def last(self) -> Message | None:
        return self._messages[-1] if self._messages else None

    def append(self, message: Message) -> Message:
        self._messages.append(message)
        return message

    def replace(self, messages: Iterable[Message]) -> None:
        self._messages = list(messages)

    def clear(self) -> None:
        self._messages = []

    def export_json(self) -> str:
        """Export the transcript using stable field ordering."""
        return json.dumps(
            [message.to_payload() for message in self._messages],
            ensure_ascii=False,
            separators=(",", ":"),
        )
