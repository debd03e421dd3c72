"""Utility CLI commands."""

from __future__ import annotations

import logging
import shutil
from typing import TYPE_CHECKING

from ...core import StreamError
from ...core.resolver import check_availability

if TYPE_CHECKING:
    import argparse

    from ...core import ConfigManager

LOG = logging.getLogger(__name__)


class UtilityCommands:
    """Utility command handlers."""

    def __init__(self, config_manager: ConfigManager) -> None:
        """Initialize utility commands handler."""
        self.config_manager = config_manager

    def add_subcommands(self, parser: argparse.ArgumentParser) -> None:
        """Add utility subcommands to parser."""
        subparsers = parser.add_subparsers(dest="util_command", help="Utility commands")
        subparsers.add_parser("info", help="Show configuration and external program availability")

    def handle_command(self, args: argparse.Namespace) -> int:
        """Handle utility command execution."""
        if not hasattr(args, "util_command") or args.util_command is None:
            LOG.error("No utility command specified")
            return 1

        if args.util_command == "info":
            return self._handle_info(args)
        LOG.error("Unknown utility command: %s", args.util_command)
        return 1

    def _handle_info(self, _args: argparse.Namespace) -> int:
        """Handle info display."""
        spawner = self.config_manager.build_spawner()
        config = self.config_manager.config
        executables = {"resolver": spawner.resolver, "transcoder": spawner.transcoder.executable}

        print("=== EXECUTABLES ===")
        for role, exe in executables.items():
            path = shutil.which(exe)
            status = f"✓ {path}" if path else "✗ Not found in PATH"
            print(f"{role:<15}: {exe} ({status})")

        config_path = self.config_manager.config_path
        print("\n=== CONFIGURATION ===")
        print(f"{'config file':<15}: {config_path} ({'✓ Found' if config_path.exists() else '✗ Missing, using defaults'})")
        print(f"{'rate limit':<15}: {config.rate_limit.capacity} per {config.rate_limit.period_seconds:g}s (burst {config.rate_limit.burst})")
        print(f"{'grace period':<15}: {spawner.grace_period:g}s")
        print(f"{'chunk size':<15}: {config.pipeline.chunk_size} bytes")

        try:
            check_availability(*executables.values())
        except StreamError:
            return 1
        return 0
