"""Slash command registration and dispatch for the console front end."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
import logging

LOGGER = logging.getLogger(__name__)

CommandHandler = Callable[[str], Awaitable[None]]


class CommandManager:
    """Map ``/name args`` lines to async handlers."""

    def __init__(self) -> None:
        self._commands: dict[str, CommandHandler] = {}
        self._command_help: dict[str, str] = {}

    def register(self, name: str, handler: CommandHandler, help_text: str = "") -> None:
        normalized_name = name.lstrip("/")
        self._commands[normalized_name] = handler
        self._command_help[normalized_name] = help_text or f"Execute /{normalized_name}"
        LOGGER.debug(
            "command.registered",
            extra={"event": "command.registered", "command": normalized_name},
        )

    async def execute(self, command_line: str) -> bool:
        """Run the handler for ``command_line``.

        Returns False when the line is not a registered command. Handler
        errors are logged and re-raised.
        """
        if not command_line.startswith("/"):
            return False

        parts = command_line.split(maxsplit=1)
        command_name = parts[0][1:]
        args = parts[1].strip() if len(parts) > 1 else ""

        handler = self._commands.get(command_name)
        if handler is None:
            LOGGER.warning(
                "command.unknown",
                extra={"event": "command.unknown", "command": command_name},
            )
            return False

        try:
            await handler(args)
        except Exception as exc:
            LOGGER.error(
                "command.failed",
                extra={"event": "command.failed", "command": command_name, "error": str(exc)},
            )
            raise
        return True

    def get_commands(self) -> list[tuple[str, str]]:
        return [(f"/{name}", text) for name, text in self._command_help.items()]

    def is_command(self, text: str) -> bool:
        if not text.startswith("/"):
            return False
        words = text.split()
        return bool(words) and words[0][1:] in self._commands
