"""Interactive terminal front end over a ``SessionController``."""

from __future__ import annotations

import asyncio
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from .commands import CommandManager
from .events import (
    PREVIEW_UPDATED,
    SESSION_ERROR,
    SESSION_IDENTITY,
    TRANSCRIPT_APPENDED,
    TRANSCRIPT_REPLACED,
    Event,
)
from .exceptions import AgenticChatError
from .models import ConversationStarter, Message, MessageRole, PreviewDisplay, PreviewEntry
from .persistence import SnapshotPersistence
from .session import SessionController

ROLE_STYLES = {
    MessageRole.SENT: "bold cyan",
    MessageRole.RECEIVED: "bold green",
    MessageRole.SYSTEM: "italic yellow",
}


class ChatConsole:
    """Read lines from the terminal and render session events with rich."""

    def __init__(
        self,
        controller: SessionController,
        persistence: SnapshotPersistence,
        console: Console | None = None,
    ) -> None:
        self.controller = controller
        self.persistence = persistence
        self.console = console or Console()
        self.commands = CommandManager()
        self._running = False
        self._register_commands()
        self._subscribe()

    def _register_commands(self) -> None:
        self.commands.register("reset", self._cmd_reset, "Reset the conversation")
        self.commands.register(
            "sender", self._cmd_sender, "Switch sender identity: /sender <id>"
        )
        self.commands.register(
            "prompt", self._cmd_prompt, "Set the system prompt: /prompt <text>"
        )
        self.commands.register(
            "starter", self._cmd_starter, "Who starts: /starter <user|assistant>"
        )
        self.commands.register("save", self._cmd_save, "Save the conversation to disk")
        self.commands.register("load", self._cmd_load, "Load a saved conversation: /load <path>")
        self.commands.register("help", self._cmd_help, "Show available commands")
        self.commands.register("quit", self._cmd_quit, "Exit")

    def _subscribe(self) -> None:
        events = self.controller.events
        events.subscribe(TRANSCRIPT_APPENDED, self._on_appended)
        events.subscribe(TRANSCRIPT_REPLACED, self._on_replaced)
        events.subscribe(PREVIEW_UPDATED, self._on_preview)
        events.subscribe(SESSION_ERROR, self._on_error)
        events.subscribe(SESSION_IDENTITY, self._on_identity)

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def render_message(self, message: Message) -> None:
        if message.role is MessageRole.SENT:
            label = "You"
        elif message.role is MessageRole.RECEIVED:
            label = message.sender_label or self.controller.agent_label
        else:
            label = "System"
        line = Text()
        line.append(f"{label}: ", style=ROLE_STYLES[message.role])
        line.append(message.text)
        self.console.print(line)

    def render_preview(self, entry: PreviewEntry) -> None:
        display = entry.display
        if display is PreviewDisplay.CARD:
            body = Text(entry.description or "")
            if entry.error_message:
                prefix = "\n" if entry.description else ""
                body.append(prefix + entry.error_message, style="red")
            self.console.print(
                Panel(
                    body,
                    title=entry.title or entry.source_url,
                    subtitle=entry.site_name or entry.source_url,
                    expand=False,
                )
            )
        elif display is PreviewDisplay.NOTICE:
            notice = Text("Preview not available", style="bold red")
            notice.append(f" {entry.source_url}", style="dim")
            if entry.error_message:
                notice.append(f" ({entry.error_message})", style="red")
            self.console.print(notice)

    async def _on_appended(self, event: Event) -> None:
        self.render_message(event.data["message"])

    async def _on_replaced(self, event: Event) -> None:
        self.console.rule("conversation")
        for message in event.data["messages"]:
            self.render_message(message)

    async def _on_preview(self, event: Event) -> None:
        entry: PreviewEntry = event.data["entry"]
        if entry.display in (PreviewDisplay.CARD, PreviewDisplay.NOTICE):
            self.render_preview(entry)

    async def _on_error(self, event: Event) -> None:
        error = event.data["error"]
        if error:
            self.console.print(Text(f"Error: {error}", style="bold red"))

    async def _on_identity(self, event: Event) -> None:
        self.console.print(
            Text(f"Sender identity: {event.data['sender_identity']}", style="dim")
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def _cmd_reset(self, _: str) -> None:
        await self.controller.reset()

    async def _cmd_sender(self, args: str) -> None:
        await self.controller.change_sender_identity(args)

    async def _cmd_prompt(self, args: str) -> None:
        if not args:
            self.console.print(self.controller.agent_config.system_prompt)
            return
        self.controller.update_agent_config(system_prompt=args)
        self.console.print(Text("System prompt updated; /reset to apply.", style="dim"))

    async def _cmd_starter(self, args: str) -> None:
        try:
            starter = ConversationStarter(args.lower())
        except ValueError:
            self.console.print(Text("Usage: /starter <user|assistant>", style="red"))
            return
        self.controller.update_agent_config(conversation_starter=starter)
        self.console.print(Text(f"{starter.value} starts after /reset.", style="dim"))

    async def _cmd_save(self, args: str) -> None:
        snapshot = self.controller.save()
        target = self.persistence.save(snapshot, Path(args) if args else None)
        self.console.print(Text(f"Saved to {target}", style="dim"))

    async def _cmd_load(self, args: str) -> None:
        if not args:
            self.console.print(Text("Usage: /load <path>", style="red"))
            return
        raw = await asyncio.to_thread(Path(args).expanduser().read_bytes)
        await self.controller.load(raw)

    async def _cmd_help(self, _: str) -> None:
        for name, help_text in self.commands.get_commands():
            self.console.print(f"[bold]{name}[/bold]  {help_text}")

    async def _cmd_quit(self, _: str) -> None:
        self._running = False

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def handle_line(self, line: str) -> None:
        """Dispatch one line of input to a command or the send path."""
        text = line.strip()
        if not text:
            return
        if self.commands.is_command(text):
            try:
                await self.commands.execute(text)
            except (AgenticChatError, OSError) as exc:
                self.console.print(Text(str(exc), style="bold red"))
            return
        if text.startswith("/"):
            self.console.print(Text("Unknown command, try /help", style="red"))
            return
        if not await self.controller.send(text) and self.controller.pending:
            self.console.print(Text("Busy, message not sent.", style="yellow"))

    async def run(self, *, reset: bool = True) -> None:
        """Start the session and process input until /quit or EOF."""
        self._running = True
        await self.controller.start()
        if reset:
            await self.controller.reset()
        try:
            while self._running:
                try:
                    line = await asyncio.to_thread(input, "> ")
                except EOFError:
                    break
                await self.handle_line(line)
        finally:
            await self.controller.close()
