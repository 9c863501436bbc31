"""CLI entrypoint for the agentic chat console."""

from __future__ import annotations

import argparse
import asyncio
from collections.abc import Sequence
from importlib import metadata
from pathlib import Path

from .config import ensure_config_dir, load_config

DISTRIBUTION = "agentic-chat-session"


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agentic-chat",
        description="Agentic Chat - terminal test client for a messaging agent backend",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a config.toml (default: ~/.config/agentic-chat/config.toml)",
    )
    parser.add_argument(
        "--sender",
        default=None,
        help="Sender identity to start the session with",
    )
    parser.add_argument(
        "--load",
        type=Path,
        default=None,
        help="Saved conversation to load on startup",
    )
    return parser


async def _run(config_path: Path | None, sender: str | None, load: Path | None) -> None:
    from .console import ChatConsole
    from .persistence import SnapshotPersistence
    from .session import SessionController

    config = load_config(config_path)
    controller = SessionController.from_config(config, sender_identity=sender)
    app = ChatConsole(controller, SnapshotPersistence(config.persistence.directory))
    if load is not None:
        raw = load.expanduser().read_bytes()
        await controller.load(raw)
    await app.run(reset=load is None)


def main(argv: Sequence[str] | None = None) -> None:
    """Handle CLI flags, configure logging and run the console."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version(DISTRIBUTION)
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"agentic-chat {version}")
        return

    from .logging_utils import configure_logging

    ensure_config_dir()
    configure_logging(load_config(args.config).logging)
    try:
        asyncio.run(_run(args.config, args.sender, args.load))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
