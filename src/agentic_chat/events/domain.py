"""Names of the events a session controller publishes.

Payloads:
    transcript.appended  {"message": Message}
    transcript.replaced  {"messages": list[Message]}
    preview.updated      {"message_id": str, "entry": PreviewEntry}
    session.phase        {"phase": SessionPhase}
    session.error        {"error": str | None}
    session.identity     {"sender_identity": str}
"""

from __future__ import annotations

TRANSCRIPT_APPENDED = "transcript.appended"
TRANSCRIPT_REPLACED = "transcript.replaced"
PREVIEW_UPDATED = "preview.updated"
SESSION_PHASE = "session.phase"
SESSION_ERROR = "session.error"
SESSION_IDENTITY = "session.identity"
