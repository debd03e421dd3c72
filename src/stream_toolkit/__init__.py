"""Stream Toolkit - restartable, loudness-normalized audio streams from media URLs."""

from __future__ import annotations

__version__ = "0.1.0"
__description__ = "Restartable, loudness-normalized audio streams from media URLs"

# Public API exports
from .config import StreamToolkitConfig, get_config
from .core import (
    AudioInput,
    ConfigManager,
    Metadata,
    MetadataExtractor,
    MetadataParseFailure,
    PipeUnavailable,
    Pipeline,
    PipelineSpawner,
    PlaylistExpander,
    ProcessSpawnFailure,
    QueueResult,
    QueueStatus,
    RateGate,
    ResolverExitedEarly,
    RestartableSource,
    SourceNotLive,
    SourceState,
    SourceStateError,
    StreamError,
    TranscoderExited,
    UpstreamResolutionFailure,
    open_source,
    queue_playlist,
    with_config_overrides,
)

__all__ = [
    # Configuration
    "StreamToolkitConfig",
    "get_config",
    "ConfigManager",
    "with_config_overrides",
    # Core functionality
    "RateGate",
    "MetadataExtractor",
    "PipelineSpawner",
    "Pipeline",
    "RestartableSource",
    "PlaylistExpander",
    "open_source",
    "queue_playlist",
    # Data classes and enums
    "AudioInput",
    "Metadata",
    "QueueResult",
    "QueueStatus",
    "SourceState",
    # Exceptions
    "StreamError",
    "ProcessSpawnFailure",
    "ResolverExitedEarly",
    "MetadataParseFailure",
    "PipeUnavailable",
    "UpstreamResolutionFailure",
    "TranscoderExited",
    "SourceStateError",
    "SourceNotLive",
]
