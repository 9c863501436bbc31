"""Event bus and event names published by the session controller."""

from .bus import Event, EventBus
from .domain import (
    PREVIEW_UPDATED,
    SESSION_ERROR,
    SESSION_IDENTITY,
    SESSION_PHASE,
    TRANSCRIPT_APPENDED,
    TRANSCRIPT_REPLACED,
)

__all__ = [
    "Event",
    "EventBus",
    "PREVIEW_UPDATED",
    "SESSION_ERROR",
    "SESSION_IDENTITY",
    "SESSION_PHASE",
    "TRANSCRIPT_APPENDED",
    "TRANSCRIPT_REPLACED",
]
