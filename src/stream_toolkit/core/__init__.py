"""Core pipeline, rate limiting and source management."""

from .base import (
    MetadataParseFailure,
    PipeUnavailable,
    ProcessSpawnFailure,
    QueueResult,
    QueueStatus,
    ResolverExitedEarly,
    SourceNotLive,
    SourceState,
    SourceStateError,
    StreamError,
    TranscoderExited,
    UpstreamResolutionFailure,
)
from .config import ConfigManager, StreamOptions, with_config_overrides
from .ffmpeg import FFmpegTranscoder
from .metadata import Metadata, MetadataExtractor
from .pipeline import Pipeline, PipelineSpawner
from .playlist import PlaylistExpander, queue_entries, queue_playlist
from .ratelimit import Permit, RateGate
from .restartable import AudioInput, Codec, Container, RestartableSource, open_source

__all__ = [
    "AudioInput",
    "Codec",
    "ConfigManager",
    "Container",
    "FFmpegTranscoder",
    "Metadata",
    "MetadataExtractor",
    "MetadataParseFailure",
    "Permit",
    "PipeUnavailable",
    "Pipeline",
    "PipelineSpawner",
    "PlaylistExpander",
    "ProcessSpawnFailure",
    "QueueResult",
    "QueueStatus",
    "RateGate",
    "ResolverExitedEarly",
    "RestartableSource",
    "SourceNotLive",
    "SourceState",
    "SourceStateError",
    "StreamError",
    "StreamOptions",
    "TranscoderExited",
    "UpstreamResolutionFailure",
    "open_source",
    "queue_entries",
    "queue_playlist",
    "with_config_overrides",
]
