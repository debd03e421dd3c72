"""Configuration management for the stream toolkit."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_RATE_BURST,
    DEFAULT_RATE_CAPACITY,
    DEFAULT_RATE_PERIOD_SECONDS,
    DEFAULT_TERMINATION_GRACE_SECONDS,
)

LOG = logging.getLogger(__name__)

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


# Configuration singleton
class _ConfigSingleton:
    """Configuration singleton holder."""

    _instance: StreamToolkitConfig | None = None

    @classmethod
    def get_instance(cls) -> StreamToolkitConfig:
        """Get the configuration instance."""
        if cls._instance is None:
            config_path = Path.cwd() / "config.yaml"
            if config_path.exists():
                cls._instance = StreamToolkitConfig.load_from_file(config_path)
            else:
                cls._instance = StreamToolkitConfig()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the configuration instance."""
        cls._instance = None


_config_singleton = _ConfigSingleton()


@dataclass
class RateLimitConfig:
    """Admission control for resolver invocations."""

    capacity: int = DEFAULT_RATE_CAPACITY
    period_seconds: float = DEFAULT_RATE_PERIOD_SECONDS
    burst: int = DEFAULT_RATE_BURST


@dataclass
class ExecutablesConfig:
    """External programs driven by the pipeline."""

    resolver: str = "youtube-dl"
    transcoder: str = "ffmpeg"


@dataclass
class PipelineConfig:
    """Pipeline lifecycle settings."""

    termination_grace_seconds: float = DEFAULT_TERMINATION_GRACE_SECONDS
    chunk_size: int = DEFAULT_CHUNK_SIZE


@dataclass
class GlobalConfig:
    """Global settings."""

    log_level: str = "WARNING"


@dataclass
class StreamToolkitConfig:
    """Main configuration class."""

    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    executables: ExecutablesConfig = field(default_factory=ExecutablesConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    global_: GlobalConfig = field(default_factory=GlobalConfig)

    @classmethod
    def load_from_file(cls, config_path: Path) -> StreamToolkitConfig:
        """Load configuration from YAML file."""
        try:
            with config_path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            LOG.warning("Failed to load config from %s: %s", config_path, e)
            return cls()

        if not isinstance(data, dict):
            LOG.warning("Ignoring config %s: top level must be a mapping", config_path)
            return cls()
        return cls._from_dict(data)

    @classmethod
    def _from_dict(cls, data: dict[str, Any]) -> StreamToolkitConfig:
        """Create config from dictionary."""
        return cls(
            rate_limit=cls._parse_rate_limit_config(data.get("rate_limit") or {}),
            executables=cls._parse_executables_config(data.get("executables") or {}),
            pipeline=cls._parse_pipeline_config(data.get("pipeline") or {}),
            global_=cls._parse_global_config(data.get("global") or {}),
        )

    @classmethod
    def _parse_rate_limit_config(cls, rate_data: dict[str, Any]) -> RateLimitConfig:
        """Parse rate limit configuration."""
        capacity = rate_data.get("capacity", DEFAULT_RATE_CAPACITY)
        if not isinstance(capacity, int) or isinstance(capacity, bool) or capacity < 1:
            LOG.warning("Invalid rate_limit.capacity %r. Using %d.", capacity, DEFAULT_RATE_CAPACITY)
            capacity = DEFAULT_RATE_CAPACITY

        period = rate_data.get("period_seconds", DEFAULT_RATE_PERIOD_SECONDS)
        try:
            period = float(period)
        except (TypeError, ValueError):
            period = -1.0
        if period <= 0:
            LOG.warning(
                "Invalid rate_limit.period_seconds %r. Using %.1f.",
                rate_data.get("period_seconds"),
                DEFAULT_RATE_PERIOD_SECONDS,
            )
            period = DEFAULT_RATE_PERIOD_SECONDS

        burst = rate_data.get("burst", min(DEFAULT_RATE_BURST, capacity))
        if not isinstance(burst, int) or isinstance(burst, bool) or not 1 <= burst <= capacity:
            fallback = min(DEFAULT_RATE_BURST, capacity)
            LOG.warning("Invalid rate_limit.burst %r (must be 1..%d). Using %d.", burst, capacity, fallback)
            burst = fallback

        return RateLimitConfig(capacity=capacity, period_seconds=period, burst=burst)

    @classmethod
    def _parse_executables_config(cls, exe_data: dict[str, Any]) -> ExecutablesConfig:
        """Parse executable names."""
        defaults = ExecutablesConfig()
        resolver = exe_data.get("resolver") or defaults.resolver
        transcoder = exe_data.get("transcoder") or defaults.transcoder
        return ExecutablesConfig(resolver=str(resolver), transcoder=str(transcoder))

    @classmethod
    def _parse_pipeline_config(cls, pipeline_data: dict[str, Any]) -> PipelineConfig:
        """Parse pipeline lifecycle configuration."""
        grace = pipeline_data.get("termination_grace_seconds", DEFAULT_TERMINATION_GRACE_SECONDS)
        try:
            grace = float(grace)
        except (TypeError, ValueError):
            grace = -1.0
        if grace < 0:
            LOG.warning(
                "Invalid pipeline.termination_grace_seconds %r. Using %.1f.",
                pipeline_data.get("termination_grace_seconds"),
                DEFAULT_TERMINATION_GRACE_SECONDS,
            )
            grace = DEFAULT_TERMINATION_GRACE_SECONDS

        chunk_size = pipeline_data.get("chunk_size", DEFAULT_CHUNK_SIZE)
        if not isinstance(chunk_size, int) or isinstance(chunk_size, bool) or chunk_size < 1:
            LOG.warning("Invalid pipeline.chunk_size %r. Using %d.", chunk_size, DEFAULT_CHUNK_SIZE)
            chunk_size = DEFAULT_CHUNK_SIZE

        return PipelineConfig(termination_grace_seconds=grace, chunk_size=chunk_size)

    @classmethod
    def _parse_global_config(cls, global_data: dict[str, Any]) -> GlobalConfig:
        """Parse global configuration."""
        log_level = str(global_data.get("log_level", "WARNING")).upper()
        if log_level not in VALID_LOG_LEVELS:
            LOG.warning(
                "Invalid log level '%s'. Using 'WARNING'. Valid options: %s",
                log_level,
                ", ".join(sorted(VALID_LOG_LEVELS)),
            )
            log_level = "WARNING"

        return GlobalConfig(log_level=log_level)


def get_config() -> StreamToolkitConfig:
    """Get the global configuration instance."""
    return _config_singleton.get_instance()
