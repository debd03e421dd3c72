"""Seekable audio source backed by a respawnable pipeline."""

from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from ..config.constants import DEFAULT_CHUNK_SIZE
from .base import SourceNotLive, SourceState, SourceStateError, StreamError, validate_locator
from .ffmpeg import format_seek
from .pipeline import PipelineSpawner

if TYPE_CHECKING:
    from collections.abc import Iterator

    from .metadata import Metadata
    from .pipeline import Pipeline
    from .ratelimit import RateGate

LOG = logging.getLogger(__name__)


class Codec(Enum):
    """Sample encoding of the audio stream."""

    FLOAT_PCM = "float_pcm"


class Container(Enum):
    """Framing of the audio stream."""

    RAW = "raw"


@dataclass
class AudioInput:
    """What the playback engine is handed for one track."""

    reader: RestartableSource
    metadata: Metadata | None = None
    codec: Codec = Codec.FLOAT_PCM
    container: Container = Container.RAW
    stereo: bool = True

    @property
    def source_url(self) -> str | None:
        """URL shown as "now playing"."""
        return self.metadata.source_url if self.metadata else None


class RestartableSource:
    """
    Caller-facing handle for one locator.

    Seeking always tears the running pipeline down and spawns a new one that
    starts at the requested offset. State only changes on an explicit call;
    if the processes exit on their own the stream simply ends.

    Calls that change state (``initialize``, ``restart``, ``seek``, ``close``)
    must not overlap for the same source.
    """

    def __init__(self, locator: str, spawner: PipelineSpawner | None = None) -> None:
        self.locator = validate_locator(locator)
        self.spawner = spawner or PipelineSpawner()
        self._state = SourceState.UNINITIALIZED
        self._pipeline: Pipeline | None = None
        self._finalizer: weakref.finalize | None = None
        self._metadata: Metadata | None = None
        self._failure: StreamError | None = None

    @classmethod
    async def create(
        cls,
        locator: str,
        *,
        lazy: bool = True,
        spawner: PipelineSpawner | None = None,
    ) -> RestartableSource:
        """
        Construct and initialize a source.

        Args:
            locator: URL of the media item
            lazy: Only fetch metadata now and defer the pipeline to ``start``
            spawner: Pipeline spawner to use (defaults to youtube-dl + ffmpeg)

        """
        source = cls(locator, spawner)
        await source.initialize(lazy=lazy)
        return source

    @property
    def state(self) -> SourceState:
        return self._state

    @property
    def failure(self) -> StreamError | None:
        """Error that moved the source to FAILED."""
        return self._failure

    @property
    def pipeline(self) -> Pipeline | None:
        return self._pipeline

    async def initialize(self, *, lazy: bool) -> None:
        """Enter METADATA_ONLY (lazy) or LIVE (eager), or FAILED."""
        if not lazy:
            await self.restart(None)
            return

        try:
            await self._release()
            metadata = await self.spawner.fetch_metadata(self.locator)
        except BaseException as e:
            self._fail_from(e, "Metadata fetch")
            raise

        self._metadata = metadata
        self._failure = None
        self._state = SourceState.METADATA_ONLY

    async def restart(self, seek: float | None = None) -> Metadata:
        """
        Replace any running pipeline with a fresh one starting at ``seek``.

        Returns:
            Metadata reported by the new pipeline

        """
        if seek is not None:
            format_seek(seek)

        LOG.info("Starting %s%s", self.locator, f" at {seek:.3f}s" if seek is not None else "")

        # Any failure from here on, cancellation during teardown included, ends in FAILED
        try:
            await self._release()
            pipeline, metadata = await self.spawner.spawn(self.locator, seek)
        except BaseException as e:
            self._fail_from(e, "Pipeline start")
            raise

        self._attach(pipeline)
        self._metadata = metadata
        self._failure = None
        self._state = SourceState.LIVE
        return metadata

    async def start(self) -> Metadata:
        """Spawn the pipeline from the beginning of the track."""
        return await self.restart(None)

    async def seek(self, seconds: float) -> Metadata:
        """Restart playback ``seconds`` into the track."""
        return await self.restart(seconds)

    def metadata(self) -> Metadata:
        """Metadata of the most recent spawn or metadata fetch."""
        if self._state not in (SourceState.METADATA_ONLY, SourceState.LIVE) or self._metadata is None:
            raise SourceStateError("read metadata", self._state, locator=self.locator)
        return self._metadata

    def read(self, size: int = -1) -> bytes:
        """Read raw PCM; b"" at end of track."""
        if self._state is not SourceState.LIVE or self._pipeline is None:
            raise SourceNotLive(self._state, locator=self.locator)
        return self._pipeline.read(size)

    def chunks(self, chunk_size: int = DEFAULT_CHUNK_SIZE) -> Iterator[bytes]:
        """Yield audio in ``chunk_size`` pieces until the track ends."""
        while True:
            data = self.read(chunk_size)
            if not data:
                return
            yield data

    def into_input(self) -> AudioInput:
        """Package this source for the playback engine."""
        return AudioInput(reader=self, metadata=self.metadata())

    def close(self) -> None:
        """Terminate any running pipeline and forget the metadata."""
        pipeline = self._detach()
        if pipeline is not None:
            pipeline.terminate()
        self._reset()

    async def aclose(self) -> None:
        """Like ``close``, without blocking the event loop."""
        await self._release()
        self._reset()

    def _attach(self, pipeline: Pipeline) -> None:
        self._pipeline = pipeline
        # A source dropped without close() still stops its processes
        self._finalizer = weakref.finalize(self, pipeline.terminate)

    def _detach(self) -> Pipeline | None:
        pipeline, self._pipeline = self._pipeline, None
        if self._finalizer is not None:
            self._finalizer.detach()
            self._finalizer = None
        return pipeline

    async def _release(self) -> None:
        pipeline = self._detach()
        if pipeline is not None:
            await pipeline.aterminate()

    def _reset(self) -> None:
        self._metadata = None
        self._failure = None
        self._state = SourceState.UNINITIALIZED

    def _fail(self, error: StreamError) -> None:
        LOG.warning("Source %s failed: %s", self.locator, error)
        self._metadata = None
        self._failure = error
        self._state = SourceState.FAILED

    def _fail_from(self, error: BaseException, operation: str) -> None:
        if isinstance(error, StreamError):
            self._fail(error)
        elif isinstance(error, asyncio.CancelledError):
            self._fail(StreamError(f"{operation} cancelled", locator=self.locator))
        else:
            cause = error if isinstance(error, Exception) else None
            self._fail(StreamError(f"{operation} failed: {error!r}", locator=self.locator, cause=cause))

    def __enter__(self) -> RestartableSource:
        return self

    def __exit__(self, _exc_type: object, _exc_val: object, _exc_tb: object) -> None:
        self.close()

    async def __aenter__(self) -> RestartableSource:
        return self

    async def __aexit__(self, _exc_type: object, _exc_val: object, _exc_tb: object) -> None:
        await self.aclose()


async def open_source(
    gate: RateGate,
    locator: str,
    *,
    lazy: bool = True,
    spawner: PipelineSpawner | None = None,
) -> RestartableSource:
    """Wait for the rate gate, then create a source for ``locator``."""
    locator = validate_locator(locator)
    permit = await gate.acquire()
    if permit.waited:
        LOG.info("Rate gate delayed %s by %.1fs", locator, permit.waited)
    return await RestartableSource.create(locator, lazy=lazy, spawner=spawner)
