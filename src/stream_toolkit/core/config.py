"""Configuration manager with command-line overrides."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from ..config import StreamToolkitConfig
from ..config import get_config as _get_global_config
from .pipeline import PipelineSpawner
from .ratelimit import RateGate

if TYPE_CHECKING:
    from collections.abc import Iterator
    from contextlib import AbstractContextManager

LOG = logging.getLogger(__name__)

# Option attribute -> dotted config key it overrides
_OVERRIDABLE = {
    "resolver": "executables.resolver",
    "transcoder": "executables.transcoder",
    "termination_grace_seconds": "pipeline.termination_grace_seconds",
}


@dataclass
class StreamOptions:
    """Command-line options that can override configuration."""

    resolver: str | None = None
    transcoder: str | None = None
    termination_grace_seconds: float | None = None
    verbose: bool = False


class ConfigManager:
    """File configuration with scoped overrides layered on top."""

    def __init__(self, config_path: Path | None = None) -> None:
        """
        Initialize configuration manager.

        Args:
            config_path: YAML file to load; ./config.yaml (shared instance) when omitted

        """
        self._config = StreamToolkitConfig.load_from_file(config_path) if config_path else _get_global_config()
        self._config_path = config_path or Path("config.yaml")
        self._overrides: dict[str, Any] = {}

    @property
    def config(self) -> StreamToolkitConfig:
        """Configuration as loaded, without overrides."""
        return self._config

    @property
    def config_path(self) -> Path:
        return self._config_path

    def get_value(self, key_path: str, default: object = None) -> object:
        """Look up ``section.name``, preferring an active override."""
        if key_path in self._overrides:
            return self._overrides[key_path]

        section, _, name = key_path.partition(".")
        return getattr(getattr(self._config, section, None), name, default)

    def set_override(self, key_path: str, value: object) -> None:
        self._overrides[key_path] = value

    def apply_stream_options(self, options: StreamOptions) -> None:
        """Turn the options that were given on the command line into overrides."""
        for attr, key_path in _OVERRIDABLE.items():
            value = getattr(options, attr)
            if value is not None:
                LOG.debug("Overriding %s with %r", key_path, value)
                self.set_override(key_path, value)

    @contextmanager
    def scoped(self, **overrides: object) -> Iterator[ConfigManager]:
        """Overrides set inside the block are dropped when it exits."""
        saved = dict(self._overrides)
        self._overrides.update(overrides)
        try:
            yield self
        finally:
            self._overrides = saved

    def build_spawner(self) -> PipelineSpawner:
        """Pipeline spawner for the effective executables and grace period."""
        defaults = self._config
        return PipelineSpawner(
            resolver=str(self.get_value("executables.resolver", defaults.executables.resolver)),
            transcoder=str(self.get_value("executables.transcoder", defaults.executables.transcoder)),
            grace_period=float(
                self.get_value("pipeline.termination_grace_seconds", defaults.pipeline.termination_grace_seconds)
            ),
        )

    def build_gate(self) -> RateGate:
        """The rate gate for this process."""
        return RateGate.from_config(self._config.rate_limit)


def with_config_overrides(config_manager: ConfigManager, **overrides: object) -> AbstractContextManager[ConfigManager]:
    """Context in which ``overrides`` (dotted keys) apply to ``config_manager``."""
    return config_manager.scoped(**overrides)
