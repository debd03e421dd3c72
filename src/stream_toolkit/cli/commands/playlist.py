"""Playlist CLI commands."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from tqdm import tqdm

from ...core import PlaylistExpander, QueueStatus, StreamError, queue_entries
from ..failure_table import print_failure_table

if TYPE_CHECKING:
    import argparse

    from ...core import ConfigManager, QueueResult

LOG = logging.getLogger(__name__)


class PlaylistCommands:
    """Playlist command handlers."""

    def __init__(self, config_manager: ConfigManager) -> None:
        """Initialize playlist commands handler."""
        self.config_manager = config_manager

    def add_subcommands(self, parser: argparse.ArgumentParser) -> None:
        """Add playlist subcommands to parser."""
        subparsers = parser.add_subparsers(dest="playlist_command", help="Playlist commands")

        expand_parser = subparsers.add_parser("expand", help="List the entries of a playlist")
        expand_parser.add_argument("locator", help="Playlist URL")

        queue_parser = subparsers.add_parser("queue", help="Create a source for every playlist entry")
        queue_parser.add_argument("locator", help="Playlist URL")
        queue_parser.add_argument(
            "--eager",
            action="store_true",
            help="Start every pipeline immediately instead of fetching metadata only",
        )

    def handle_command(self, args: argparse.Namespace) -> int:
        """Handle playlist command execution."""
        if not hasattr(args, "playlist_command") or args.playlist_command is None:
            LOG.error("No playlist command specified")
            return 1

        if args.playlist_command == "expand":
            return self._handle_expand(args)
        if args.playlist_command == "queue":
            return self._handle_queue(args)
        LOG.error("Unknown playlist command: %s", args.playlist_command)
        return 1

    def _expander(self) -> PlaylistExpander:
        return PlaylistExpander(self.config_manager.build_spawner().resolver)

    def _handle_expand(self, args: argparse.Namespace) -> int:
        """Handle playlist listing."""
        try:
            urls = asyncio.run(self._expander().expand(args.locator))
        except (StreamError, ValueError) as e:
            print(f"Could not expand playlist {args.locator}: {e}", file=sys.stderr)
            return 1

        for url in urls:
            print(url or "-")
        return 0

    def _handle_queue(self, args: argparse.Namespace) -> int:
        """Handle playlist queueing."""
        try:
            results = asyncio.run(self._queue(args))
        except (StreamError, ValueError) as e:
            print(f"Could not expand playlist {args.locator}: {e}", file=sys.stderr)
            return 1

        queued = [r for r in results if r.status is QueueStatus.SUCCESS]
        not_queued = [r for r in results if r.status is not QueueStatus.SUCCESS]
        print(f"Queued {len(queued)}/{len(results)} songs")
        print_failure_table(not_queued)
        return 0 if queued or not results else 1

    async def _queue(self, args: argparse.Namespace) -> list[QueueResult]:
        gate = self.config_manager.build_gate()
        spawner = self.config_manager.build_spawner()
        urls = await PlaylistExpander(spawner.resolver).expand(args.locator)

        with tqdm(total=len(urls), desc="Queueing", unit="song", file=sys.stderr) as progress:

            def advance(result: QueueResult) -> None:
                progress.set_postfix_str(result.status.value)
                progress.update(1)

            results = await queue_entries(gate, urls, lazy=not args.eager, spawner=spawner, on_result=advance)

        # Nothing plays them from the CLI; release any pipelines that were started
        for result in results:
            if result.source is not None:
                await result.source.aclose()
        return results
