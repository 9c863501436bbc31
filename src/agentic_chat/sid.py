"""Message identifier generation."""

from __future__ import annotations

from datetime import UTC, datetime
import hashlib
import random


def generate_message_id(text: str, role_initial: str, prefix: str = "WS") -> str:
    """Return ``prefix + md5 hex digest + role initial`` for a message.

    The digest input mixes a microsecond timestamp and a random float with the
    text, so identical texts produced in the same instant still get distinct
    identifiers.
    """
    seed = f"{datetime.now(UTC).isoformat()}{text}{random.random()}"
    digest = hashlib.md5(seed.encode("utf-8"), usedforsecurity=False).hexdigest()
    return f"{prefix}{digest}{role_initial.upper()}"
