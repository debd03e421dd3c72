"""CLI command modules."""

from .playlist import PlaylistCommands
from .stream import StreamCommands
from .utils import UtilityCommands

__all__ = ["PlaylistCommands", "StreamCommands", "UtilityCommands"]
