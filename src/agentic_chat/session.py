"""Session controller: the single owner of conversation state.

Sending is optimistic. The user's message is appended before the backend call
is issued, and a failed call only records ``last_error``; the agent's reply, if
any, arrives independently over the realtime channel. Send, reset and load
are mutually exclusive, and a request made while one of them is active is
rejected rather than queued.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
import functools
import logging
from typing import Any, Protocol

from pydantic import ValidationError

from .backend import BackendClient
from .channel import RealtimeChannel
from .config import Config
from .events import (
    PREVIEW_UPDATED,
    SESSION_ERROR,
    SESSION_IDENTITY,
    SESSION_PHASE,
    TRANSCRIPT_APPENDED,
    TRANSCRIPT_REPLACED,
    EventBus,
)
from .exceptions import ChannelError, ConfigValidationError, SnapshotValidationError
from .models import (
    AgentConfig,
    ConversationStarter,
    Message,
    MessageRole,
    PreviewEntry,
    SessionSnapshot,
)
from .persistence import SnapshotSource, dump_snapshot, parse_snapshot
from .previews import LinkPreviewResolver
from .state import SessionPhase, SessionState, StateManager
from .transcript import Transcript

LOGGER = logging.getLogger(__name__)

LOAD_CONFIRMATION = "Conversation successfully loaded from file."


class SessionBackend(Protocol):
    """Outbound calls the controller issues."""

    async def send_message(
        self, text: str, sender_identity: str, agent_config: AgentConfig
    ) -> None: ...

    async def reset_session(self, sender_identity: str) -> None: ...

    async def load_history(
        self, sender_identity: str, messages: Sequence[Message], system_prompt: str
    ) -> None: ...


class SessionChannel(Protocol):
    async def attach(self, sender_identity: str, on_message: Any) -> Any: ...


def _describe(exc: BaseException, fallback: str) -> str:
    return str(exc).strip() or fallback


class SessionController:
    """Orchestrate send, reset, identity change, load and save for one session."""

    def __init__(
        self,
        backend: SessionBackend,
        channel: SessionChannel | None = None,
        resolver: LinkPreviewResolver | None = None,
        *,
        sender_identity: str,
        agent_config: AgentConfig | None = None,
        initial_messages: Iterable[Message] = (),
        events: EventBus | None = None,
        agent_label: str = "Agent",
        announce_reset: bool = False,
    ) -> None:
        self.backend = backend
        self.channel = channel
        self.resolver = resolver
        self.events = events or EventBus()
        self.agent_label = agent_label
        self.announce_reset = announce_reset
        self.state = SessionState(
            sender_identity=sender_identity,
            agent_config=agent_config or AgentConfig(),
            transcript=Transcript(initial_messages),
        )
        self._phases = StateManager(self.state)
        self._handle: Any | None = None
        self._owned_backend: BackendClient | None = None
        if self.resolver is not None:
            self.resolver.on_update = self._on_preview_update

    @classmethod
    def from_config(
        cls,
        config: Config,
        *,
        sender_identity: str | None = None,
        events: EventBus | None = None,
    ) -> SessionController:
        """Wire a controller with a live backend, channel and preview resolver."""
        backend = BackendClient(
            config.backend,
            profile_name=config.session.profile_name,
            preview_timeout=config.previews.timeout_seconds,
        )
        channel = RealtimeChannel(
            config.backend.socket_url, agent_label=config.session.agent_label
        )
        resolver = None
        if config.previews.enabled:
            resolver = LinkPreviewResolver(
                backend.fetch_site_metadata,
                allowed_domains=config.previews.allowed_domains,
                timeout=config.previews.timeout_seconds,
            )
        controller = cls(
            backend,
            channel,
            resolver,
            sender_identity=sender_identity or config.session.sender_identity,
            agent_config=config.agent,
            events=events,
            agent_label=config.session.agent_label,
            announce_reset=config.session.announce_reset,
        )
        controller._owned_backend = backend
        return controller

    @property
    def sender_identity(self) -> str:
        return self.state.sender_identity

    @property
    def agent_config(self) -> AgentConfig:
        return self.state.agent_config

    @property
    def messages(self) -> list[Message]:
        return self.state.transcript.messages

    @property
    def phase(self) -> SessionPhase:
        return self.state.phase

    @property
    def pending(self) -> bool:
        return self.state.pending

    @property
    def last_error(self) -> str | None:
        return self.state.last_error

    @property
    def previews(self) -> dict[str, PreviewEntry]:
        return self.resolver.entries if self.resolver is not None else {}

    @property
    def channel_attached(self) -> bool:
        return self._handle is not None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Open the realtime channel and resolve previews for seeded messages."""
        if self._handle is None:
            await self._attach()
        if self.resolver is not None:
            self.resolver.track_all(self.state.transcript)

    async def close(self) -> None:
        await self._detach()
        if self.resolver is not None:
            await self.resolver.aclose()
        if self._owned_backend is not None:
            await self._owned_backend.aclose()

    async def __aenter__(self) -> SessionController:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Intents
    # ------------------------------------------------------------------

    async def send(self, text: str) -> bool:
        """Send a user message; returns False when blank, rejected or failed."""
        if not text.strip():
            return False
        if not await self._begin(SessionPhase.SENDING):
            return False
        try:
            await self._set_error(None)
            return await self._send(text)
        finally:
            await self._finish()

    async def reset(self, apply_config: bool = True) -> bool:
        """Start a fresh conversation.

        With ``apply_config`` the backend session is reset first; either way
        the transcript is cleared and the conversation starter runs.
        """
        if not await self._begin(SessionPhase.RESETTING):
            return False
        try:
            return await self._reset(apply_config)
        finally:
            await self._finish()

    async def change_sender_identity(self, new_identity: str) -> bool:
        """Switch identity, move the channel to it and reset the backend session."""
        normalized = new_identity.strip()
        if not normalized:
            await self._set_error("Sender identity must not be empty.")
            return False
        if not await self._begin(SessionPhase.RESETTING):
            return False
        try:
            previous = self.state.sender_identity
            self.state.sender_identity = normalized
            LOGGER.info(
                "session.identity.changed",
                extra={
                    "event": "session.identity.changed",
                    "old_sender": previous,
                    "new_sender": normalized,
                },
            )
            await self.events.publish(SESSION_IDENTITY, {"sender_identity": normalized})
            await self._reattach()
            return await self._reset(apply_config=True)
        finally:
            await self._finish()

    async def load(self, data: SnapshotSource) -> bool:
        """Replace the session with a saved snapshot after replicating it server-side."""
        if not await self._begin(SessionPhase.LOADING):
            return False
        try:
            await self._set_error(None)
            try:
                snapshot = parse_snapshot(data)
            except SnapshotValidationError as exc:
                LOGGER.warning(
                    "session.load.invalid",
                    extra={"event": "session.load.invalid", "error": str(exc)},
                )
                await self._set_error(str(exc))
                return False

            try:
                await self.backend.load_history(
                    snapshot.sender_identity,
                    snapshot.messages,
                    snapshot.agent_config.system_prompt,
                )
            except Exception as exc:
                LOGGER.warning(
                    "session.load.failed",
                    extra={
                        "event": "session.load.failed",
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                )
                await self._set_error(_describe(exc, "Failed to load conversation."))
                return False

            identity_changed = snapshot.sender_identity != self.state.sender_identity
            self.state.sender_identity = snapshot.sender_identity
            self.state.agent_config = snapshot.agent_config
            await self._replace(snapshot.messages)
            await self._append(Message.create(LOAD_CONFIRMATION, MessageRole.SYSTEM))
            if identity_changed:
                await self.events.publish(
                    SESSION_IDENTITY, {"sender_identity": snapshot.sender_identity}
                )
                await self._reattach()
            LOGGER.info(
                "session.load.ok",
                extra={
                    "event": "session.load.ok",
                    "sender": snapshot.sender_identity,
                    "message_count": len(snapshot.messages),
                },
            )
            return True
        finally:
            await self._finish()

    def save(self) -> SessionSnapshot:
        """Capture identity, agent config and transcript as a snapshot."""
        return SessionSnapshot(
            sender_identity=self.state.sender_identity,
            agent_config=self.state.agent_config,
            messages=self.state.transcript.messages,
            saved_at=datetime.now(UTC).isoformat(),
        )

    def save_json(self) -> str:
        return dump_snapshot(self.save())

    def update_agent_config(self, **changes: Any) -> AgentConfig:
        """Change agent settings; they apply from the next reset onwards."""
        merged = {**self.state.agent_config.model_dump(), **changes}
        try:
            config = AgentConfig.model_validate(merged)
        except ValidationError as exc:
            raise ConfigValidationError(f"Invalid agent configuration: {exc}") from exc
        self.state.agent_config = config
        return config

    def set_allowed_domains(self, allowed_domains: Iterable[str]) -> None:
        """Change the preview allow-list and re-evaluate the transcript."""
        if self.resolver is not None:
            self.resolver.set_allowed_domains(allowed_domains, self.state.transcript)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _send(self, text: str) -> bool:
        await self._append(Message.create(text, MessageRole.SENT))
        try:
            await self.backend.send_message(
                text, self.state.sender_identity, self.state.agent_config
            )
        except Exception as exc:
            LOGGER.warning(
                "session.send.failed",
                extra={
                    "event": "session.send.failed",
                    "sender": self.state.sender_identity,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )
            await self._set_error(_describe(exc, "Failed to send message."))
            return False
        return True

    async def _reset(self, apply_config: bool) -> bool:
        await self._set_error(None)
        if apply_config:
            try:
                await self.backend.reset_session(self.state.sender_identity)
            except Exception as exc:
                message = _describe(exc, "Backend reset failed.")
                LOGGER.warning(
                    "session.reset.failed",
                    extra={
                        "event": "session.reset.failed",
                        "sender": self.state.sender_identity,
                        "error": message,
                    },
                )
                await self._set_error(message)
                await self._replace(
                    [
                        Message.create(
                            f"Error: {message}", MessageRole.SYSTEM, role_initial="E"
                        )
                    ]
                )
                return False

        config = self.state.agent_config
        seed: list[Message] = []
        if apply_config and self.announce_reset:
            starter = (
                "User"
                if config.conversation_starter is ConversationStarter.USER
                else "Assistant"
            )
            seed.append(
                Message.create(
                    f"Conversation reset. {starter} will start.", MessageRole.SYSTEM
                )
            )
        await self._replace(seed)

        if (
            config.conversation_starter is ConversationStarter.ASSISTANT
            and config.first_message_assistant.strip()
        ):
            await self._append(
                Message.create(
                    config.first_message_assistant,
                    MessageRole.RECEIVED,
                    sender_label=self.agent_label,
                )
            )
            return True
        if (
            config.conversation_starter is ConversationStarter.USER
            and config.first_message_user.strip()
        ):
            await self._phases.transition_to(SessionPhase.SENDING)
            await self._publish_phase()
            return await self._send(config.first_message_user)
        return True

    async def _begin(self, phase: SessionPhase) -> bool:
        if not await self._phases.begin(phase):
            return False
        await self._publish_phase()
        return True

    async def _finish(self) -> None:
        await self._phases.transition_to(SessionPhase.IDLE)
        await self._publish_phase()

    async def _publish_phase(self) -> None:
        await self.events.publish(SESSION_PHASE, {"phase": self.state.phase})

    async def _set_error(self, message: str | None) -> None:
        if message == self.state.last_error:
            return
        self.state.last_error = message
        await self.events.publish(SESSION_ERROR, {"error": message})

    async def _append(self, message: Message) -> Message:
        self.state.transcript.append(message)
        if self.resolver is not None:
            self.resolver.track(message)
        await self.events.publish(TRANSCRIPT_APPENDED, {"message": message})
        return message

    async def _replace(self, messages: Iterable[Message]) -> None:
        if self.resolver is not None:
            await self.resolver.reset()
        self.state.transcript.replace(messages)
        if self.resolver is not None:
            self.resolver.track_all(self.state.transcript)
        await self.events.publish(
            TRANSCRIPT_REPLACED, {"messages": self.state.transcript.messages}
        )

    async def _attach(self) -> None:
        if self.channel is None:
            return
        identity = self.state.sender_identity
        try:
            self._handle = await self.channel.attach(
                identity, functools.partial(self._on_channel_message, identity)
            )
        except ChannelError:
            # Push delivery is unavailable; calls still work.
            self._handle = None

    async def _detach(self) -> None:
        handle, self._handle = self._handle, None
        if handle is None:
            return
        try:
            await handle.detach()
        except Exception as exc:
            LOGGER.warning(
                "session.channel.detach_failed",
                extra={"event": "session.channel.detach_failed", "error": str(exc)},
            )

    async def _reattach(self) -> None:
        await self._detach()
        await self._attach()

    async def _on_channel_message(self, identity: str, message: Message) -> None:
        if identity != self.state.sender_identity:
            LOGGER.debug(
                "session.channel.stale_message",
                extra={
                    "event": "session.channel.stale_message",
                    "sender": identity,
                    "message_id": message.id,
                },
            )
            return
        await self._append(message)

    async def _on_preview_update(self, message_id: str, entry: PreviewEntry) -> None:
        await self.events.publish(
            PREVIEW_UPDATED, {"message_id": message_id, "entry": entry}
        )
