"""Configuration management for the stream toolkit."""

from __future__ import annotations

from .constants import *  # noqa: F403, F401
from .settings import StreamToolkitConfig, get_config

__all__ = [
    "StreamToolkitConfig",
    "get_config",
]
