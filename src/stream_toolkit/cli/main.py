"""Main CLI interface for the stream toolkit."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from ..config.constants import VERBOSE_LOGGING_THRESHOLD
from ..core import ConfigManager, StreamOptions, with_config_overrides
from .commands import PlaylistCommands, StreamCommands, UtilityCommands

LOG = logging.getLogger(__name__)


class StreamToolkitCLI:
    """Main CLI interface."""

    def __init__(self, config_path: Path | None = None) -> None:
        self.config_manager = ConfigManager(config_path)
        self.stream_commands = StreamCommands(self.config_manager)
        self.playlist_commands = PlaylistCommands(self.config_manager)
        self.utility_commands = UtilityCommands(self.config_manager)

    @staticmethod
    def setup_logging(verbosity: int, default_level: str = "WARNING") -> None:
        """Setup logging based on verbosity level, falling back to the configured level."""
        level_map = {
            0: logging.getLevelName(default_level),
            1: logging.INFO,
            2: logging.DEBUG,
        }

        level = level_map.get(verbosity, logging.DEBUG)

        log_format = (
            "%(levelname)s: %(name)s: %(message)s"
            if verbosity >= VERBOSE_LOGGING_THRESHOLD
            else "%(levelname)s: %(message)s"
        )

        logging.basicConfig(level=level, format=log_format, handlers=[logging.StreamHandler(sys.stderr)])

        # Per-process spawn/teardown chatter only at -vv
        if verbosity < VERBOSE_LOGGING_THRESHOLD:
            logging.getLogger("stream_toolkit.core.pipeline").setLevel(logging.WARNING)

    def build_parser(self) -> argparse.ArgumentParser:
        """Build the argument parser."""
        parser = argparse.ArgumentParser(
            prog="stream-toolkit",
            description="Restartable, loudness-normalized audio streams from media URLs",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Show what a URL resolves to
  stream-toolkit stream probe https://www.youtube.com/watch?v=dQw4w9WgXcQ

  # Write normalized PCM starting 90 seconds in
  stream-toolkit stream play URL --seek 90 --output track.f32

  # Queue every entry of a playlist (metadata only)
  stream-toolkit playlist queue https://www.youtube.com/playlist?list=...
            """,
        )

        parser.add_argument(
            "-v",
            "--verbose",
            action="count",
            default=0,
            help="Increase verbosity (-v for info, -vv for debug)",
        )
        parser.add_argument("--config", type=Path, help="Path to configuration file")
        parser.add_argument("--resolver", help="Resolver executable (overrides config)")
        parser.add_argument("--transcoder", help="Transcoder executable (overrides config)")

        subparsers = parser.add_subparsers(dest="command", required=True, help="Available commands")

        stream_parser = subparsers.add_parser("stream", help="Single-track commands")
        self.stream_commands.add_subcommands(stream_parser)

        playlist_parser = subparsers.add_parser("playlist", help="Playlist commands")
        self.playlist_commands.add_subcommands(playlist_parser)

        utils_parser = subparsers.add_parser("utils", help="Utility commands")
        self.utility_commands.add_subcommands(utils_parser)

        return parser

    @staticmethod
    def create_stream_options(args: argparse.Namespace) -> StreamOptions:
        """Create stream options from CLI arguments."""
        return StreamOptions(
            resolver=getattr(args, "resolver", None),
            transcoder=getattr(args, "transcoder", None),
            verbose=getattr(args, "verbose", 0) > 0,
        )

    def _use_config(self, config_path: Path) -> None:
        self.config_manager = ConfigManager(config_path)
        self.stream_commands.config_manager = self.config_manager
        self.playlist_commands.config_manager = self.config_manager
        self.utility_commands.config_manager = self.config_manager

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parser = self.build_parser()
        parsed_args = parser.parse_args(args)

        if getattr(parsed_args, "config", None):
            self._use_config(parsed_args.config)

        self.setup_logging(parsed_args.verbose, self.config_manager.config.global_.log_level)

        stream_options = self.create_stream_options(parsed_args)

        try:
            with with_config_overrides(self.config_manager) as config_mgr:
                config_mgr.apply_stream_options(stream_options)

                if parsed_args.command == "stream":
                    return self.stream_commands.handle_command(parsed_args)
                if parsed_args.command == "playlist":
                    return self.playlist_commands.handle_command(parsed_args)
                if parsed_args.command == "utils":
                    return self.utility_commands.handle_command(parsed_args)
                parser.error(f"Unknown command: {parsed_args.command}")

        except KeyboardInterrupt:
            LOG.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except Exception:
            LOG.exception("Unexpected error")
            return 1

        return 1


def main(argv: list[str] | None = None) -> int:
    """Console script entry point."""
    return StreamToolkitCLI().run(argv)


if __name__ == "__main__":
    sys.exit(main())
