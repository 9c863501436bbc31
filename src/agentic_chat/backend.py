"""HTTP client for the agent backend's request/response calls."""

from __future__ import annotations

from collections.abc import Sequence
import logging
from typing import Any

import httpx
from pydantic import ValidationError

from .config import BackendSettings
from .exceptions import (
    BackendConnectionError,
    BackendError,
    BackendTimeoutError,
    MetadataFormatError,
)
from .models import AgentConfig, Message, SiteMetadata

LOGGER = logging.getLogger(__name__)

# Wire name of the sender identity in JSON bodies and the channel join.
SENDER_FIELD = "senderNumber"
DEFAULT_PREVIEW_TIMEOUT = 15.0


class BackendClient:
    """Issue send, reset, load-history and metadata calls.

    Non-success responses raise ``BackendError``; connectivity problems raise
    ``BackendConnectionError`` or ``BackendTimeoutError``. Nothing is retried.
    """

    def __init__(
        self,
        endpoints: BackendSettings | None = None,
        profile_name: str = "Agentic Chat",
        client: httpx.AsyncClient | None = None,
        preview_timeout: float = DEFAULT_PREVIEW_TIMEOUT,
    ) -> None:
        self.endpoints = endpoints or BackendSettings()
        self.profile_name = profile_name
        self.preview_timeout = preview_timeout
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.endpoints.timeout)

    async def __aenter__(self) -> BackendClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def send_message(
        self, text: str, sender_identity: str, agent_config: AgentConfig
    ) -> None:
        """Post a user message; the agent's reply arrives over the channel."""
        form = {
            "Body": text,
            "From": sender_identity,
            "ProfileName": self.profile_name,
            "system_prompt": agent_config.system_prompt,
        }
        response = await self._request("POST", self.endpoints.respond_url, data=form)
        if not response.is_success:
            raise BackendError(
                f"Backend Error: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )
        LOGGER.info(
            "backend.send.ok",
            extra={"event": "backend.send.ok", "sender": sender_identity},
        )

    async def reset_session(self, sender_identity: str) -> None:
        response = await self._request(
            "POST", self.endpoints.reset_url, json={SENDER_FIELD: sender_identity}
        )
        if not response.is_success:
            raise BackendError(
                self._error_message(response, "Failed to reset session."),
                status_code=response.status_code,
            )
        LOGGER.info(
            "backend.reset.ok",
            extra={"event": "backend.reset.ok", "sender": sender_identity},
        )

    async def load_history(
        self,
        sender_identity: str,
        messages: Sequence[Message],
        system_prompt: str,
    ) -> None:
        """Replicate a saved history on the backend for ``sender_identity``."""
        body = {
            SENDER_FIELD: sender_identity,
            "messages": [message.to_payload() for message in messages],
            "systemPrompt": system_prompt,
        }
        response = await self._request(
            "POST", self.endpoints.load_history_url, json=body
        )
        if not response.is_success:
            raise BackendError(
                self._error_message(response, "Failed to load history on backend."),
                status_code=response.status_code,
            )
        LOGGER.info(
            "backend.load_history.ok",
            extra={
                "event": "backend.load_history.ok",
                "sender": sender_identity,
                "message_count": len(messages),
            },
        )

    async def fetch_site_metadata(
        self, url: str, timeout: float | None = None
    ) -> SiteMetadata:
        """Fetch preview metadata for ``url`` from the metadata service."""
        response = await self._request(
            "GET",
            self.endpoints.url_metadata_url,
            params={"url": url},
            timeout=timeout or self.preview_timeout,
        )
        try:
            payload: Any = response.json()
        except ValueError as exc:
            if not response.is_success:
                raise BackendError(
                    f"Preview service returned {response.status_code}",
                    status_code=response.status_code,
                ) from exc
            raise MetadataFormatError("Metadata response is not valid JSON.") from exc

        if not response.is_success:
            message = payload.get("errorMessage") if isinstance(payload, dict) else None
            raise BackendError(
                message
                if isinstance(message, str) and message
                else f"Preview service returned {response.status_code}",
                status_code=response.status_code,
            )
        if not isinstance(payload, dict):
            raise MetadataFormatError("Metadata response is not a JSON object.")
        try:
            return SiteMetadata.model_validate(payload)
        except ValidationError as exc:
            raise MetadataFormatError(f"Metadata response is malformed: {exc}") from exc

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise BackendTimeoutError(f"Request to {url} timed out.") from exc
        except httpx.TransportError as exc:
            raise BackendConnectionError(f"Unable to reach {url}: {exc}") from exc

    @staticmethod
    def _error_message(response: httpx.Response, default: str) -> str:
        """Prefer the ``message`` field of a JSON error body."""
        try:
            payload = response.json()
        except ValueError:
            return default
        if isinstance(payload, dict):
            message = payload.get("message")
            if isinstance(message, str) and message.strip():
                return message.strip()
        return default
