"""Link preview resolution for URLs found in message text.

Each message gets at most one preview, built from the first URL in its text
when that URL's host is on the allow-list. Results live in a side table keyed
by message id. Every fetch is issued for a specific target URL, and its result
is applied only if that URL is still the message's tracked target when the
fetch completes; a newer target cancels the older fetch.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Sequence
import inspect
import logging
import re
from typing import Any
from urllib.parse import urlparse

from .exceptions import (
    BackendConnectionError,
    BackendError,
    BackendTimeoutError,
    MetadataFormatError,
)
from .models import Message, PreviewEntry, PreviewStatus, SiteMetadata
from .task_manager import TaskManager

LOGGER = logging.getLogger(__name__)

URL_PATTERN = re.compile(
    r"https?://[^\s<>\"'`]+[^\s<>\"'`.,;:?!]*[^\s<>\"'`.,;:?!]"
)
WILDCARD = "*"
DEFAULT_TIMEOUT_SECONDS = 15.0

MetadataFetcher = Callable[[str], Awaitable[SiteMetadata]]
PreviewCallback = Callable[[str, PreviewEntry], Any]


def extract_first_url(text: str) -> str | None:
    """Return the first URL-shaped token in ``text``."""
    match = URL_PATTERN.search(text or "")
    return match.group(0) if match else None


def is_domain_allowed(url: str | None, allowed_domains: Sequence[str]) -> bool:
    """Check ``url``'s host against an allow-list of domains.

    A host matches an entry when it equals it or is one of its subdomains.
    ``"*"`` allows every host and an empty list allows none.
    """
    if not url or not allowed_domains:
        return False
    if WILDCARD in allowed_domains:
        return True
    try:
        hostname = (urlparse(url).hostname or "").lower()
    except ValueError:
        LOGGER.debug(
            "preview.url.unparseable", extra={"event": "preview.url.unparseable", "url": url}
        )
        return False
    if not hostname:
        return False
    for domain in allowed_domains:
        candidate = domain.strip().lower()
        if candidate and (hostname == candidate or hostname.endswith("." + candidate)):
            return True
    return False


def describe_failure(exc: BaseException) -> str:
    """Short human-readable reason for a failed metadata fetch."""
    if isinstance(exc, (TimeoutError, BackendTimeoutError)):
        return "Preview request timed out."
    if isinstance(exc, BackendConnectionError):
        return "Network error: Could not reach preview service."
    if isinstance(exc, MetadataFormatError):
        return "Error parsing response from preview service."
    if isinstance(exc, BackendError):
        return str(exc) or "Preview service returned an error."
    return str(exc)[:100] or "Preview request failed"


class LinkPreviewResolver:
    """Resolve and cache link previews per message."""

    def __init__(
        self,
        fetcher: MetadataFetcher,
        allowed_domains: Iterable[str] = (WILDCARD,),
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        on_update: PreviewCallback | None = None,
    ) -> None:
        self._fetcher = fetcher
        self.allowed_domains: list[str] = list(allowed_domains)
        self.timeout = timeout
        self.on_update = on_update
        self._targets: dict[str, str] = {}
        self._entries: dict[str, PreviewEntry] = {}
        self._fetches = TaskManager()
        self._consumers = TaskManager()

    @property
    def entries(self) -> dict[str, PreviewEntry]:
        """Snapshot of the side table, keyed by message id."""
        return dict(self._entries)

    def entry_for(self, message_id: str) -> PreviewEntry | None:
        return self._entries.get(message_id)

    def target_for(self, message_id: str) -> str | None:
        """URL the message's preview is currently being resolved for."""
        return self._targets.get(message_id)

    def eligible_url(
        self, text: str, allowed_domains: Sequence[str] | None = None
    ) -> str | None:
        domains = self.allowed_domains if allowed_domains is None else allowed_domains
        url = extract_first_url(text)
        return url if is_domain_allowed(url, domains) else None

    async def resolve(
        self, message: Message, allowed_domains: Sequence[str] | None = None
    ) -> AsyncIterator[PreviewEntry]:
        """Yield preview states for ``message``: pending, then resolved or failed.

        Messages without an eligible URL yield a single ``none`` entry. A
        resolution superseded by a newer target ends without yielding a result.
        """
        message_id = message.id
        target = self.eligible_url(message.text, allowed_domains)
        if target is None:
            self._invalidate(message_id)
            entry = PreviewEntry.none(extract_first_url(message.text))
            self._entries[message_id] = entry
            yield entry
            return

        cached = self._entries.get(message_id)
        if (
            self._targets.get(message_id) == target
            and cached is not None
            and cached.status in (PreviewStatus.RESOLVED, PreviewStatus.FAILED)
        ):
            yield cached
            return

        task = self._fetches.get(message_id)
        if task is None or self._targets.get(message_id) != target:
            self._targets[message_id] = target
            self._entries[message_id] = PreviewEntry.pending(target)
            task = asyncio.create_task(
                self._fetch(message_id, target), name=f"preview:{message_id}"
            )
            self._fetches.add(task, name=message_id)
            LOGGER.debug(
                "preview.fetch.start",
                extra={
                    "event": "preview.fetch.start",
                    "message_id": message_id,
                    "url": target,
                },
            )
        yield self._entries[message_id]

        try:
            entry = await asyncio.shield(task)
        except asyncio.CancelledError:
            current = asyncio.current_task()
            if task.cancelled() and (current is None or not current.cancelling()):
                return
            raise
        if entry is not None and self._targets.get(message_id) == target:
            yield entry

    def track(
        self, message: Message, allowed_domains: Sequence[str] | None = None
    ) -> asyncio.Task[None]:
        """Resolve ``message`` in the background, reporting through ``on_update``."""
        task = asyncio.create_task(
            self._consume(message, allowed_domains), name=f"preview-track:{message.id}"
        )
        self._consumers.add(task, name=message.id)
        return task

    def track_all(
        self, messages: Iterable[Message], allowed_domains: Sequence[str] | None = None
    ) -> None:
        for message in messages:
            self.track(message, allowed_domains)

    def set_allowed_domains(
        self, allowed_domains: Iterable[str], messages: Iterable[Message] = ()
    ) -> None:
        """Change the allow-list and re-evaluate ``messages`` against it."""
        self.allowed_domains = list(allowed_domains)
        self.track_all(messages)

    async def reset(self) -> None:
        """Discard every entry and cancel all fetches (transcript replaced)."""
        self._targets.clear()
        self._entries.clear()
        await self._consumers.cancel_all()
        await self._fetches.cancel_all()

    async def drain(self) -> None:
        """Wait until every in-flight resolution has settled."""
        await self._consumers.await_all()
        await self._fetches.await_all()

    async def aclose(self) -> None:
        await self.reset()

    def _invalidate(self, message_id: str) -> None:
        self._targets.pop(message_id, None)
        task = self._fetches.get(message_id)
        if task is not None and not task.done():
            task.cancel()
            LOGGER.debug(
                "preview.fetch.invalidated",
                extra={"event": "preview.fetch.invalidated", "message_id": message_id},
            )

    async def _fetch(self, message_id: str, url: str) -> PreviewEntry | None:
        try:
            async with asyncio.timeout(self.timeout):
                metadata = await self._fetcher(url)
            entry = PreviewEntry.from_metadata(url, metadata)
        except Exception as exc:
            entry = PreviewEntry.failure(url, describe_failure(exc))
            LOGGER.info(
                "preview.fetch.failed",
                extra={
                    "event": "preview.fetch.failed",
                    "message_id": message_id,
                    "url": url,
                    "error_type": type(exc).__name__,
                    "error": str(exc),
                },
            )

        if self._targets.get(message_id) != url:
            LOGGER.debug(
                "preview.fetch.stale",
                extra={"event": "preview.fetch.stale", "message_id": message_id, "url": url},
            )
            return None
        self._entries[message_id] = entry
        return entry

    async def _consume(
        self, message: Message, allowed_domains: Sequence[str] | None
    ) -> None:
        async for entry in self.resolve(message, allowed_domains):
            if self.on_update is None:
                continue
            result = self.on_update(message.id, entry)
            if inspect.isawaitable(result):
                await result
