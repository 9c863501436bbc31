"""Realtime push channel for agent-originated messages.

One socket.io connection is opened per attached sender identity. The client
announces the identity with a ``join`` event on every (re)connect so the
backend keeps routing the identity's room to it; ``agent_message`` events are
turned into ``received`` transcript messages. Reconnection is left to the
socket.io transport.
"""

from __future__ import annotations

from collections.abc import Callable
import inspect
import logging
from typing import Any, Protocol

import socketio

from .backend import SENDER_FIELD
from .exceptions import ChannelError
from .models import Message, MessageRole

LOGGER = logging.getLogger(__name__)

JOIN_EVENT = "join"
AGENT_MESSAGE_EVENT = "agent_message"

MessageCallback = Callable[[Message], Any]


class SocketClient(Protocol):
    """The subset of ``socketio.AsyncClient`` the adapter relies on."""

    def on(self, event: str, handler: Callable[..., Any]) -> Any: ...

    async def connect(self, url: str, **kwargs: Any) -> None: ...

    async def emit(self, event: str, data: Any = None, **kwargs: Any) -> None: ...

    async def disconnect(self) -> None: ...


def _default_client_factory() -> SocketClient:
    return socketio.AsyncClient(reconnection=True)


class ChannelHandle:
    """A live subscription for one sender identity.

    After ``detach`` every handler registered for this subscription drops
    its events, so nothing is delivered on behalf of a stale identity.
    """

    def __init__(
        self,
        client: SocketClient,
        sender_identity: str,
        on_message: MessageCallback,
        agent_label: str = "Agent",
    ) -> None:
        self.sender_identity = sender_identity
        self.agent_label = agent_label
        self.connected = False
        self._client = client
        self._on_message = on_message
        self._attached = True

    @property
    def attached(self) -> bool:
        return self._attached

    async def detach(self) -> None:
        """Stop delivering events and close the connection."""
        if not self._attached:
            return
        self._attached = False
        self.connected = False
        await self._client.disconnect()
        LOGGER.info(
            "channel.detached",
            extra={"event": "channel.detached", "sender": self.sender_identity},
        )

    async def _announce(self, *_: Any) -> None:
        if not self._attached:
            return
        self.connected = True
        await self._client.emit(JOIN_EVENT, {SENDER_FIELD: self.sender_identity})
        LOGGER.info(
            "channel.join",
            extra={"event": "channel.join", "sender": self.sender_identity},
        )

    async def _on_disconnect(self, *_: Any) -> None:
        self.connected = False
        if self._attached:
            LOGGER.warning(
                "channel.disconnected",
                extra={"event": "channel.disconnected", "sender": self.sender_identity},
            )

    async def _receive(self, payload: Any) -> None:
        if not self._attached:
            LOGGER.debug(
                "channel.message.dropped",
                extra={"event": "channel.message.dropped", "sender": self.sender_identity},
            )
            return
        message = self._to_message(payload)
        if message is None:
            return
        result = self._on_message(message)
        if inspect.isawaitable(result):
            await result

    def _to_message(self, payload: Any) -> Message | None:
        text = payload.get("text") if isinstance(payload, dict) else None
        if not isinstance(text, str):
            LOGGER.warning(
                "channel.message.malformed",
                extra={
                    "event": "channel.message.malformed",
                    "payload_type": type(payload).__name__,
                },
            )
            return None
        message_id = payload.get("sid") or payload.get("id")
        return Message.create(
            text,
            MessageRole.RECEIVED,
            sender_label=self.agent_label,
            message_id=message_id if isinstance(message_id, str) else None,
        )


class RealtimeChannel:
    """Open push subscriptions against the backend's realtime endpoint."""

    def __init__(
        self,
        socket_url: str,
        agent_label: str = "Agent",
        client_factory: Callable[[], SocketClient] | None = None,
    ) -> None:
        self.socket_url = socket_url
        self.agent_label = agent_label
        self._client_factory = client_factory or _default_client_factory

    async def attach(
        self, sender_identity: str, on_message: MessageCallback
    ) -> ChannelHandle:
        """Connect, join ``sender_identity``'s room and forward agent messages."""
        client = self._client_factory()
        handle = ChannelHandle(client, sender_identity, on_message, self.agent_label)
        client.on("connect", handle._announce)
        client.on("disconnect", handle._on_disconnect)
        client.on(AGENT_MESSAGE_EVENT, handle._receive)
        try:
            await client.connect(self.socket_url)
        except Exception as exc:
            LOGGER.warning(
                "channel.connect.failed",
                extra={
                    "event": "channel.connect.failed",
                    "url": self.socket_url,
                    "sender": sender_identity,
                    "error": str(exc),
                },
            )
            raise ChannelError(
                f"Unable to open realtime channel at {self.socket_url}: {exc}"
            ) from exc
        LOGGER.info(
            "channel.attached",
            extra={"event": "channel.attached", "sender": sender_identity},
        )
        return handle
