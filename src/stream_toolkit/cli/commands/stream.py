"""Single-track CLI commands."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import IO, TYPE_CHECKING

from ...core import SourceState, StreamError, open_source

if TYPE_CHECKING:
    import argparse

    from ...core import ConfigManager, Metadata, RestartableSource

LOG = logging.getLogger(__name__)


def format_duration(seconds: float | None) -> str:
    if seconds is None:
        return "live"
    minutes, secs = divmod(int(seconds), 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours}:{minutes:02d}:{secs:02d}" if hours else f"{minutes}:{secs:02d}"


def print_metadata(metadata: Metadata, out: IO[str] | None = None) -> None:
    out = out or sys.stdout
    print(f"{'title':<12}: {metadata.title or '-'}", file=out)
    print(f"{'artist':<12}: {metadata.artist or '-'}", file=out)
    print(f"{'duration':<12}: {format_duration(metadata.duration)}", file=out)
    print(f"{'source url':<12}: {metadata.source_url or '-'}", file=out)


class StreamCommands:
    """Single-track command handlers."""

    def __init__(self, config_manager: ConfigManager) -> None:
        """Initialize stream commands handler."""
        self.config_manager = config_manager

    def add_subcommands(self, parser: argparse.ArgumentParser) -> None:
        """Add stream subcommands to parser."""
        subparsers = parser.add_subparsers(dest="stream_command", help="Stream commands")

        probe_parser = subparsers.add_parser("probe", help="Fetch metadata without streaming")
        probe_parser.add_argument("locator", help="Media URL")

        play_parser = subparsers.add_parser("play", help="Stream normalized raw PCM (f32le, stereo, 48 kHz)")
        play_parser.add_argument("locator", help="Media URL")
        play_parser.add_argument("--seek", "-s", type=float, help="Start this many seconds into the track")
        play_parser.add_argument("--output", "-o", type=Path, help="Write PCM to file instead of stdout")
        play_parser.add_argument(
            "--lazy",
            action="store_true",
            help="Fetch metadata first and start the pipeline separately",
        )

    def handle_command(self, args: argparse.Namespace) -> int:
        """Handle stream command execution."""
        if not hasattr(args, "stream_command") or args.stream_command is None:
            LOG.error("No stream command specified")
            return 1

        if args.stream_command == "probe":
            return self._handle_probe(args)
        if args.stream_command == "play":
            return self._handle_play(args)
        LOG.error("Unknown stream command: %s", args.stream_command)
        return 1

    def _handle_probe(self, args: argparse.Namespace) -> int:
        """Handle metadata lookup."""
        spawner = self.config_manager.build_spawner()
        try:
            metadata = asyncio.run(spawner.fetch_metadata(args.locator))
        except (StreamError, ValueError) as e:
            print(f"Could not find {args.locator}: {e}", file=sys.stderr)
            return 1

        print_metadata(metadata)
        return 0

    def _handle_play(self, args: argparse.Namespace) -> int:
        """Handle streaming to a file or stdout."""
        try:
            written = asyncio.run(self._play(args))
        except (StreamError, ValueError) as e:
            print(f"Could not queue song: {e}", file=sys.stderr)
            return 1
        except OSError:
            LOG.exception("Writing audio failed")
            return 1

        LOG.info("Wrote %d bytes of audio", written)
        return 0

    async def _play(self, args: argparse.Namespace) -> int:
        gate = self.config_manager.build_gate()
        spawner = self.config_manager.build_spawner()
        chunk_size = self.config_manager.config.pipeline.chunk_size

        # A seek restarts anyway, so skip the unseeked first spawn
        lazy = args.lazy or args.seek is not None
        source = await open_source(gate, args.locator, lazy=lazy, spawner=spawner)
        try:
            if args.seek is not None:
                await source.seek(args.seek)
            elif source.state is SourceState.METADATA_ONLY:
                await source.start()

            playing = source.into_input()
            LOG.info("Now playing: %s", playing.source_url or args.locator)

            loop = asyncio.get_running_loop()
            if args.output:
                with args.output.open("wb") as out:
                    return await loop.run_in_executor(None, self._copy, source, out, chunk_size)
            return await loop.run_in_executor(None, self._copy, source, sys.stdout.buffer, chunk_size)
        finally:
            await source.aclose()

    @staticmethod
    def _copy(source: RestartableSource, out: IO[bytes], chunk_size: int) -> int:
        written = 0
        for chunk in source.chunks(chunk_size):
            out.write(chunk)
            written += len(chunk)
        out.flush()
        return written
