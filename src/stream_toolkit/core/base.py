"""Base types and the error taxonomy for the streaming pipeline."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from .restartable import RestartableSource

LOG = logging.getLogger(__name__)


class SourceState(Enum):
    """Lifecycle state of a RestartableSource."""

    UNINITIALIZED = "uninitialized"
    METADATA_ONLY = "metadata_only"
    LIVE = "live"
    FAILED = "failed"


class QueueStatus(Enum):
    """Outcome of queueing one playlist entry."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass
class QueueResult:
    """Result of turning one playlist entry into a source."""

    locator: str | None
    status: QueueStatus
    message: str = ""
    source: RestartableSource | None = None


class StreamError(Exception):
    """Base exception for streaming pipeline errors."""

    def __init__(
        self,
        message: str,
        locator: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.locator = locator
        self.cause = cause


class ProcessSpawnFailure(StreamError):
    """The resolver or transcoder could not be started."""

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str] | None = None,
        return_code: int | None = None,
        locator: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, locator=locator, cause=cause)
        self.command = list(command) if command is not None else None
        self.return_code = return_code


class ResolverExitedEarly(ProcessSpawnFailure):
    """The resolver exited without writing any diagnostic output."""


class MetadataParseFailure(StreamError):
    """The resolver's structured record was missing or malformed."""

    def __init__(
        self,
        message: str,
        *,
        raw: bytes = b"",
        locator: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, locator=locator, cause=cause)
        self.raw = raw

    @property
    def text(self) -> str:
        """Captured output decoded for display."""
        return self.raw.decode("utf-8", errors="replace")


class PipeUnavailable(StreamError):
    """An expected process stream handle was absent after spawn."""

    def __init__(self, stream_name: str, locator: str | None = None) -> None:
        super().__init__(f"Resolver {stream_name} pipe unavailable", locator=locator)
        self.stream_name = stream_name


class UpstreamResolutionFailure(StreamError):
    """The resolver reported that it cannot find or download the locator."""

    def __init__(self, message: str, *, reason: str = "", locator: str | None = None) -> None:
        super().__init__(message, locator=locator)
        self.reason = reason


class TranscoderExited(StreamError):
    """The transcoder ended the stream with a non-zero exit status."""

    def __init__(self, return_code: int, locator: str | None = None) -> None:
        super().__init__(f"Transcoder exited with status {return_code}", locator=locator)
        self.return_code = return_code


class SourceStateError(StreamError):
    """An operation was requested from a state that does not support it."""

    def __init__(self, operation: str, state: SourceState, locator: str | None = None) -> None:
        super().__init__(f"Cannot {operation} while source is {state.value}", locator=locator)
        self.operation = operation
        self.state = state


class SourceNotLive(SourceStateError):
    """Audio was read from a source whose pipeline is not running."""

    def __init__(self, state: SourceState, locator: str | None = None) -> None:
        super().__init__("read audio", state, locator=locator)


def validate_locator(locator: str) -> str:
    """Return the stripped locator, rejecting empty input."""
    if not isinstance(locator, str) or not locator.strip():
        msg = "Locator must be a non-empty string"
        raise ValueError(msg)
    return locator.strip()
