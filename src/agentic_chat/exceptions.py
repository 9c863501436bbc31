"""Domain exception hierarchy for the agentic chat session engine."""

from __future__ import annotations


class AgenticChatError(RuntimeError):
    """Base class for all domain-level session errors."""


class SnapshotValidationError(AgenticChatError):
    """Raised when a conversation snapshot is malformed."""


class BackendError(AgenticChatError):
    """Raised when the backend answers a call with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BackendConnectionError(AgenticChatError):
    """Raised when the backend cannot be reached."""


class BackendTimeoutError(BackendConnectionError):
    """Raised when a backend call exceeds its deadline."""


class MetadataFormatError(AgenticChatError):
    """Raised when the metadata service returns an unparseable payload."""


class ChannelError(AgenticChatError):
    """Raised when the realtime channel cannot be opened."""


class ConfigValidationError(AgenticChatError):
    """Raised when configuration cannot be validated safely."""


class PersistenceError(AgenticChatError):
    """Raised when a snapshot cannot be written or read."""
