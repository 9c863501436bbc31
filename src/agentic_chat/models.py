"""Typed records shared by the session controller, resolver and channel."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .sid import generate_message_id

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."
DEFAULT_FIRST_MESSAGE_USER = "Hi, let's start a test conversation."
DEFAULT_FIRST_MESSAGE_ASSISTANT = "Hello! How can I help you today?"


class MessageRole(str, Enum):
    """Who produced a transcript line."""

    SENT = "sent"
    RECEIVED = "received"
    SYSTEM = "system"


class ConversationStarter(str, Enum):
    """Which side speaks first after a reset."""

    USER = "user"
    ASSISTANT = "assistant"


# role -> (id prefix, role initial)
ROLE_ID_PARTS: dict[MessageRole, tuple[str, str]] = {
    MessageRole.SENT: ("UI", "U"),
    MessageRole.RECEIVED: ("BR", "B"),
    MessageRole.SYSTEM: ("SY", "S"),
}


def _timestamp() -> str:
    return datetime.now(UTC).isoformat(timespec="seconds")


class Message(BaseModel):
    """A single immutable transcript line.

    Older snapshots written by the browser widget used ``sid``, ``type`` and
    ``senderName``; those names are accepted on input.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(min_length=1, validation_alias=AliasChoices("id", "sid"))
    text: str
    role: MessageRole = Field(validation_alias=AliasChoices("role", "type"))
    timestamp: str = Field(default_factory=_timestamp)
    sender_label: str | None = Field(
        default=None,
        validation_alias=AliasChoices("senderLabel", "sender_label", "senderName"),
        serialization_alias="senderLabel",
    )

    @classmethod
    def create(
        cls,
        text: str,
        role: MessageRole,
        *,
        sender_label: str | None = None,
        message_id: str | None = None,
        role_initial: str | None = None,
    ) -> Message:
        """Build a message, generating an identifier unless one is supplied."""
        prefix, initial = ROLE_ID_PARTS[role]
        return cls(
            id=message_id or generate_message_id(text, role_initial or initial, prefix),
            text=text,
            role=role,
            sender_label=sender_label,
        )

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class AgentConfig(BaseModel):
    """Agent behaviour applied on the next reset."""

    model_config = ConfigDict(
        frozen=True, populate_by_name=True, alias_generator=to_camel
    )

    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    conversation_starter: ConversationStarter = ConversationStarter.ASSISTANT
    first_message_user: str = DEFAULT_FIRST_MESSAGE_USER
    first_message_assistant: str = DEFAULT_FIRST_MESSAGE_ASSISTANT

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class SessionSnapshot(BaseModel):
    """Transportable copy of a session, as written to and read from disk."""

    model_config = ConfigDict(populate_by_name=True)

    sender_identity: str = Field(
        validation_alias=AliasChoices("senderIdentity", "sender_identity", "senderId"),
        serialization_alias="senderIdentity",
    )
    agent_config: AgentConfig = Field(
        validation_alias=AliasChoices("agentConfig", "agent_config", "config"),
        serialization_alias="agentConfig",
    )
    messages: list[Message]
    saved_at: str | None = Field(
        default=None,
        validation_alias=AliasChoices("savedAt", "saved_at"),
        serialization_alias="savedAt",
    )

    @field_validator("sender_identity", mode="before")
    @classmethod
    def _validate_sender_identity(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("senderIdentity must be a string.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("senderIdentity must not be empty.")
        return normalized

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SiteMetadata(BaseModel):
    """Response body of the URL metadata service."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    url: str | None = None
    title: str | None = None
    description: str | None = None
    image_url: str | None = None
    site_name: str | None = None
    error_message: str | None = None


class PreviewStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"


class PreviewDisplay(str, Enum):
    """How a front end should present a preview entry."""

    HIDDEN = "hidden"
    LOADING = "loading"
    NOTICE = "notice"
    CARD = "card"


class PreviewEntry(BaseModel):
    """Link preview state for one message."""

    model_config = ConfigDict(
        frozen=True, populate_by_name=True, alias_generator=to_camel
    )

    source_url: str = ""
    status: PreviewStatus = PreviewStatus.NONE
    title: str | None = None
    description: str | None = None
    image_url: str | None = None
    site_name: str | None = None
    is_error: bool = False
    error_message: str | None = None

    @classmethod
    def none(cls, url: str | None = None) -> PreviewEntry:
        return cls(source_url=url or "", status=PreviewStatus.NONE)

    @classmethod
    def pending(cls, url: str) -> PreviewEntry:
        return cls(source_url=url, status=PreviewStatus.PENDING)

    @classmethod
    def failure(cls, url: str, message: str) -> PreviewEntry:
        return cls(
            source_url=url,
            status=PreviewStatus.FAILED,
            title=url,
            is_error=True,
            error_message=message,
        )

    @classmethod
    def from_metadata(cls, requested_url: str, metadata: SiteMetadata) -> PreviewEntry:
        """Normalize a service response: default the URL and derive a title.

        An ``errorMessage`` in a successful body is kept as an annotation; the
        entry still counts as resolved.
        """
        url = metadata.url or requested_url
        title = metadata.title or metadata.site_name or requested_url
        return cls(
            source_url=url,
            status=PreviewStatus.RESOLVED,
            title=title,
            description=metadata.description,
            image_url=metadata.image_url,
            site_name=metadata.site_name,
            error_message=metadata.error_message,
        )

    @property
    def has_detail(self) -> bool:
        """True when the entry carries anything beyond the bare URL."""
        return bool(
            (self.title and self.title != self.source_url)
            or self.description
            or self.image_url
            or self.site_name
        )

    @property
    def display(self) -> PreviewDisplay:
        if self.status is PreviewStatus.NONE:
            return PreviewDisplay.HIDDEN
        if self.status is PreviewStatus.PENDING:
            return PreviewDisplay.LOADING
        if self.has_detail:
            return PreviewDisplay.CARD
        return PreviewDisplay.NOTICE if self.is_error else PreviewDisplay.HIDDEN
