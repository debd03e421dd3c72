"""CLI module for the stream toolkit."""

from .commands import PlaylistCommands, StreamCommands, UtilityCommands
from .failure_table import print_failure_table
from .main import StreamToolkitCLI

__all__ = [
    "PlaylistCommands",
    "StreamCommands",
    "StreamToolkitCLI",
    "UtilityCommands",
    "print_failure_table",
]
