"""Top-level package for the agentic chat session engine."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .backend import BackendClient
    from .channel import RealtimeChannel
    from .config import Config, ensure_config_dir, load_config
    from .exceptions import (
        AgenticChatError,
        BackendConnectionError,
        BackendError,
        BackendTimeoutError,
        ChannelError,
        ConfigValidationError,
        MetadataFormatError,
        PersistenceError,
        SnapshotValidationError,
    )
    from .models import (
        AgentConfig,
        ConversationStarter,
        Message,
        MessageRole,
        PreviewEntry,
        PreviewStatus,
        SessionSnapshot,
    )
    from .persistence import SnapshotPersistence
    from .previews import LinkPreviewResolver
    from .session import SessionController

__all__ = [
    "AgentConfig",
    "AgenticChatError",
    "BackendClient",
    "BackendConnectionError",
    "BackendError",
    "BackendTimeoutError",
    "ChannelError",
    "Config",
    "ConfigValidationError",
    "ConversationStarter",
    "LinkPreviewResolver",
    "Message",
    "MessageRole",
    "MetadataFormatError",
    "PersistenceError",
    "PreviewEntry",
    "PreviewStatus",
    "RealtimeChannel",
    "SessionController",
    "SessionSnapshot",
    "SnapshotPersistence",
    "SnapshotValidationError",
    "ensure_config_dir",
    "load_config",
]

_EXCEPTIONS = {
    "AgenticChatError",
    "BackendConnectionError",
    "BackendError",
    "BackendTimeoutError",
    "ChannelError",
    "ConfigValidationError",
    "MetadataFormatError",
    "PersistenceError",
    "SnapshotValidationError",
}
_MODELS = {
    "AgentConfig",
    "ConversationStarter",
    "Message",
    "MessageRole",
    "PreviewEntry",
    "PreviewStatus",
    "SessionSnapshot",
}


def __getattr__(name: str) -> Any:
    """Lazily import symbols so the socket.io stack loads only when used."""
    if name in _EXCEPTIONS:
        from . import exceptions

        return getattr(exceptions, name)
    if name in _MODELS:
        from . import models

        return getattr(models, name)
    if name in {"Config", "ensure_config_dir", "load_config"}:
        from . import config

        return getattr(config, name)
    if name == "BackendClient":
        from .backend import BackendClient

        return BackendClient
    if name == "RealtimeChannel":
        from .channel import RealtimeChannel

        return RealtimeChannel
    if name == "LinkPreviewResolver":
        from .previews import LinkPreviewResolver

        return LinkPreviewResolver
    if name == "SnapshotPersistence":
        from .persistence import SnapshotPersistence

        return SnapshotPersistence
    if name == "SessionController":
        from .session import SessionController

        return SessionController
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
