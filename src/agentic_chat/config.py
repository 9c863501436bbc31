"""Configuration loading and validation for the agentic chat session engine."""

from __future__ import annotations

from copy import deepcopy
import logging
import os
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
)

from .exceptions import ConfigValidationError
from .models import AgentConfig

import tomllib

LOGGER = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "agentic-chat"
CONFIG_PATH = CONFIG_DIR / "config.toml"

VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}
DEFAULT_BACKEND = "http://localhost:5000"


def _require_http_url(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("Expected a URL string.")
    normalized = value.strip()
    parsed = urlparse(normalized)
    if parsed.scheme.lower() not in {"http", "https"}:
        raise ValueError(f"{normalized!r} must use http or https scheme.")
    if not parsed.hostname:
        raise ValueError(f"{normalized!r} must include a hostname.")
    return normalized


class BackendSettings(BaseModel):
    """Realtime endpoint and HTTP call targets."""

    socket_url: str = DEFAULT_BACKEND
    respond_url: str = f"{DEFAULT_BACKEND}/api/v1/agent-test/respond"
    reset_url: str = f"{DEFAULT_BACKEND}/api/v1/agent-test/reset"
    load_history_url: str = f"{DEFAULT_BACKEND}/api/v1/agent-test/load_history"
    url_metadata_url: str = f"{DEFAULT_BACKEND}/api/v1/utils/url-metadata"
    timeout: int = Field(default=30, ge=1, le=600)

    @field_validator(
        "socket_url",
        "respond_url",
        "reset_url",
        "load_history_url",
        "url_metadata_url",
        mode="before",
    )
    @classmethod
    def _validate_url(cls, value: Any) -> str:
        return _require_http_url(value)


class SessionSettings(BaseModel):
    """Identity and labelling of the local participant."""

    sender_identity: str = "web:local-user"
    profile_name: str = "Agentic Chat"
    agent_label: str = "Agent"
    announce_reset: bool = False

    @field_validator("sender_identity", "profile_name", "agent_label", mode="before")
    @classmethod
    def _validate_non_empty_string(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("String value must not be empty.")
        return normalized


class PreviewSettings(BaseModel):
    """Link preview policy."""

    enabled: bool = True
    allowed_domains: list[str] = Field(default_factory=lambda: ["*"])
    timeout_seconds: float = Field(default=15.0, gt=0, le=120)

    @field_validator("allowed_domains", mode="before")
    @classmethod
    def _validate_allowed_domains(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if not isinstance(value, list):
            raise ValueError("allowed_domains must be a list.")
        normalized: list[str] = []
        for item in value:
            if not isinstance(item, str):
                raise ValueError("allowed_domains entries must be strings.")
            candidate = item.strip().lower()
            if candidate and candidate not in normalized:
                normalized.append(candidate)
        return normalized


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = "~/.local/state/agentic-chat/app.log"

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _validate_log_file_path(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("log_file_path must be a string.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("log_file_path must not be empty.")
        return normalized


class PersistenceConfig(BaseModel):
    """Where exported conversation snapshots are written."""

    directory: str = "~/.local/state/agentic-chat/conversations"

    @field_validator("directory", mode="before")
    @classmethod
    def _validate_path_string(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Path value must be a string.")
        normalized = value.strip()
        if not normalized:
            raise ValueError("Path value must not be empty.")
        return normalized


class Config(BaseModel):
    """Root configuration model for all sections."""

    model_config = ConfigDict(populate_by_name=True)
    backend: BackendSettings = BackendSettings()
    session: SessionSettings = SessionSettings()
    agent: AgentConfig = AgentConfig()
    previews: PreviewSettings = PreviewSettings()
    logging: LoggingConfig = LoggingConfig()
    persistence: PersistenceConfig = PersistenceConfig()


DEFAULT_CONFIG: dict[str, dict[str, Any]] = Config().model_dump(mode="json")


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Ensure that the config directory exists and return its path."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create config directory %s: %s", directory, exc)
    return directory


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override values onto base values."""
    merged: dict[str, Any] = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _enforce_private_permissions(path: Path) -> None:
    """Best-effort enforcement of private file permissions on POSIX systems."""
    if os.name != "posix" or not path.exists():
        return
    try:
        path.chmod(0o600)
    except OSError as exc:
        LOGGER.warning("Unable to enforce 0600 permissions for %s: %s", path, exc)


def _validate_config(raw: dict[str, Any]) -> Config:
    """Validate merged config and fall back to safe defaults when possible."""
    try:
        return Config.model_validate(raw)
    except ValidationError as exc:
        LOGGER.warning("Configuration validation failed, using safe defaults: %s", exc)
        return Config()
    except Exception as exc:  # noqa: BLE001 - unexpected model construction failure.
        raise ConfigValidationError(f"Unable to validate configuration: {exc}") from exc


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from TOML, merge it over defaults and validate.

    The optional ``config_path`` argument is intended for tests and tooling.
    """
    target_path = config_path or CONFIG_PATH
    ensure_config_dir(target_path.parent)

    raw_data: dict[str, Any] = {}
    if target_path.exists():
        _enforce_private_permissions(target_path)
        try:
            raw_data = tomllib.loads(target_path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            LOGGER.warning("Failed to parse config at %s: %s", target_path, exc)
            raw_data = {}

    return _validate_config(_deep_merge(DEFAULT_CONFIG, raw_data))
