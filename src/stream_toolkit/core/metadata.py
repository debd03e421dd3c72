"""Resolver metadata records and their extraction."""

from __future__ import annotations

import asyncio
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import IO, TYPE_CHECKING, Any

from ..config.constants import OUTPUT_CHANNELS, OUTPUT_SAMPLE_RATE
from .base import MetadataParseFailure
from .resolver import build_metadata_args, raise_for_diagnostics, run_resolver

if TYPE_CHECKING:
    import subprocess
    from collections.abc import Mapping

LOG = logging.getLogger(__name__)


def _as_str(value: object) -> str | None:
    return value if isinstance(value, str) else None


@dataclass(frozen=True)
class Metadata:
    """Description of one resolved media item."""

    title: str | None = None
    duration: float | None = None
    source_url: str | None = None
    track: str | None = None
    artist: str | None = None
    date: str | None = None
    channel: str | None = None
    thumbnail: str | None = None
    channels: int = OUTPUT_CHANNELS
    sample_rate: int = OUTPUT_SAMPLE_RATE
    start_time: float | None = None
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}), repr=False, compare=False)

    @classmethod
    def from_resolver_output(cls, value: dict[str, Any], start_time: float | None = None) -> Metadata:
        """Build metadata from a resolver JSON record."""
        duration = value.get("duration")
        if isinstance(duration, bool) or not isinstance(duration, (int, float)):
            duration = None

        return cls(
            title=_as_str(value.get("title")),
            duration=float(duration) if duration is not None else None,
            source_url=_as_str(value.get("webpage_url")),
            track=_as_str(value.get("track")),
            artist=_as_str(value.get("artist")) or _as_str(value.get("uploader")),
            date=_as_str(value.get("release_date")) or _as_str(value.get("upload_date")),
            channel=_as_str(value.get("channel")),
            thumbnail=_as_str(value.get("thumbnail")),
            start_time=start_time,
            extra=MappingProxyType(dict(value)),
        )

    @property
    def is_live(self) -> bool:
        """True for streams without a known end."""
        return self.duration is None

    def at_offset(self, start_time: float | None) -> Metadata:
        """Copy of this record for a pipeline started at ``start_time``."""
        return replace(self, start_time=start_time)


def parse_record(raw: bytes, locator: str | None = None, start_time: float | None = None) -> Metadata:
    """
    Parse the first newline-terminated JSON record in ``raw``.

    Args:
        raw: Captured diagnostic output
        locator: Locator the output belongs to, for error context
        start_time: Seek offset of the pipeline the record describes

    Raises:
        MetadataParseFailure: The record is missing, not JSON or not an object.
            The exception carries ``raw`` unchanged.

    """
    end = raw.find(b"\n")
    record = raw if end == -1 else raw[:end]

    try:
        value = json.loads(record)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        msg = f"Invalid metadata record from resolver: {e}"
        raise MetadataParseFailure(msg, raw=raw, locator=locator, cause=e) from e

    if not isinstance(value, dict):
        msg = f"Metadata record must be a JSON object, got {type(value).__name__}"
        raise MetadataParseFailure(msg, raw=raw, locator=locator)

    return Metadata.from_resolver_output(value, start_time=start_time)


class MetadataExtractor:
    """Reads the resolver's metadata record, standalone or from a live pipe."""

    def __init__(self, executable: str = "youtube-dl") -> None:
        self.executable = executable

    async def fetch(self, locator: str) -> Metadata:
        """Run a short-lived metadata-only resolver and parse its output."""
        args = build_metadata_args(locator)
        return_code, raw = await run_resolver(self.executable, args, locator)
        raise_for_diagnostics(raw, return_code, [self.executable, *args], locator)
        metadata = parse_record(raw, locator)
        LOG.info("Fetched metadata for %s: %s", locator, metadata.title)
        return metadata

    async def from_stream(
        self,
        stream: IO[bytes],
        locator: str,
        *,
        process: subprocess.Popen | None = None,
        command: list[str] | None = None,
        start_time: float | None = None,
    ) -> Metadata:
        """
        Read one record line from a live resolver's diagnostic pipe.

        The blocking ``readline`` runs on a single-use worker thread so a
        stalled resolver cannot hold up the event loop.
        """
        loop = asyncio.get_running_loop()
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="metadata-reader")
        try:
            line = await loop.run_in_executor(executor, stream.readline)
        finally:
            executor.shutdown(wait=False)

        return_code = process.poll() if process is not None else None
        raise_for_diagnostics(line, return_code, command or [self.executable], locator)
        return parse_record(line, locator, start_time=start_time)
