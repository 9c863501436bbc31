"""Snapshot file read/write and transcript export."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
import json
import os
from pathlib import Path
import re
from typing import Any

from pydantic import ValidationError

from .exceptions import PersistenceError, SnapshotValidationError
from .models import MessageRole, SessionSnapshot

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")

SnapshotSource = SessionSnapshot | Mapping[str, Any] | str | bytes


def parse_snapshot(raw: SnapshotSource) -> SessionSnapshot:
    """Validate a snapshot given as a model, a mapping or JSON text.

    Raises ``SnapshotValidationError`` when sender identity, agent config or
    the message list is missing or malformed.
    """
    if isinstance(raw, SessionSnapshot):
        return raw
    payload: Any = raw
    if isinstance(raw, (str, bytes)):
        try:
            payload = json.loads(raw)
        except ValueError as exc:
            raise SnapshotValidationError(
                "Invalid conversation file format: not valid JSON."
            ) from exc
    if not isinstance(payload, Mapping):
        raise SnapshotValidationError(
            "Invalid conversation file format: expected a JSON object."
        )
    try:
        return SessionSnapshot.model_validate(dict(payload))
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'snapshot'}: {error['msg']}"
            for error in exc.errors()
        )
        raise SnapshotValidationError(
            f"Invalid conversation file format: {problems}"
        ) from exc


def dump_snapshot(snapshot: SessionSnapshot) -> str:
    return json.dumps(snapshot.to_payload(), ensure_ascii=False, indent=2)


class SnapshotPersistence:
    """Write conversation snapshots to, and read them from, a directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory).expanduser()

    def _enforce_permissions(self, path: Path, mode: int = 0o600) -> None:
        """Set POSIX permissions on a file or directory; silently ignores failures."""
        if os.name != "posix":
            return
        try:
            path.chmod(mode)
        except OSError:
            pass

    def _ensure_directory(self) -> None:
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(
                f"Unable to create snapshot directory {self.directory}: {exc}"
            ) from exc
        self._enforce_permissions(self.directory, 0o700)

    @staticmethod
    def suggested_filename(snapshot: SessionSnapshot) -> str:
        """``conversation-<sender>-<savedAt>.json`` with unsafe characters replaced."""
        sender = _UNSAFE_FILENAME_CHARS.sub("_", snapshot.sender_identity)
        stamp = snapshot.saved_at or datetime.now(UTC).isoformat()
        return f"conversation-{sender}-{re.sub(r'[:.+]', '-', stamp)}.json"

    def save(self, snapshot: SessionSnapshot, path: Path | None = None) -> Path:
        """Write ``snapshot`` as JSON and return the file path."""
        if path is None:
            self._ensure_directory()
            path = self.directory / self.suggested_filename(snapshot)
        target = Path(path).expanduser()
        try:
            target.write_text(dump_snapshot(snapshot), encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"Unable to write snapshot {target}: {exc}") from exc
        self._enforce_permissions(target)
        return target

    def load(self, path: Path) -> SessionSnapshot:
        """Read and validate a snapshot file."""
        target = Path(path).expanduser()
        try:
            raw = target.read_text(encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"Unable to read snapshot {target}: {exc}") from exc
        return parse_snapshot(raw)

    def list_snapshots(self) -> list[Path]:
        """Snapshot files in the directory, newest first."""
        if not self.directory.is_dir():
            return []
        files = [p for p in self.directory.glob("conversation-*.json") if p.is_file()]
        return sorted(files, key=lambda p: p.stat().st_mtime, reverse=True)

    def export_markdown(self, snapshot: SessionSnapshot, path: Path | None = None) -> Path:
        """Export the transcript of ``snapshot`` to markdown."""
        if path is None:
            self._ensure_directory()
            path = self.directory / self.suggested_filename(snapshot).replace(
                ".json", ".md"
            )
        lines = [f"# Conversation Export ({snapshot.sender_identity})", ""]
        for message in snapshot.messages:
            if message.role is MessageRole.SENT:
                heading = "User"
            elif message.role is MessageRole.RECEIVED:
                heading = message.sender_label or "Agent"
            else:
                heading = "System"
            lines.append(f"## {heading}")
            lines.append("")
            lines.append(message.text.strip())
            lines.append("")
        target = Path(path).expanduser()
        try:
            target.write_text("\n".join(lines).strip() + "\n", encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"Unable to write export {target}: {exc}") from exc
        self._enforce_permissions(target)
        return target
