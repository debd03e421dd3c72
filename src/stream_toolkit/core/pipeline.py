"""Resolver + transcoder process pair producing one raw PCM stream."""

from __future__ import annotations

import asyncio
import logging
import subprocess
import time
from typing import TYPE_CHECKING

import psutil

from ..config.constants import DEFAULT_TERMINATION_GRACE_SECONDS, KILL_WAIT_SECONDS
from .base import PipeUnavailable, ProcessSpawnFailure, TranscoderExited, validate_locator
from .ffmpeg import FFmpegTranscoder, format_seek
from .metadata import Metadata, MetadataExtractor
from .resolver import build_stream_args

if TYPE_CHECKING:
    from ..config.settings import StreamToolkitConfig

LOG = logging.getLogger(__name__)


def _descendants(proc: subprocess.Popen) -> list[psutil.Process]:
    """Helper processes spawned by ``proc`` (e.g. the resolver's own downloader)."""
    try:
        return psutil.Process(proc.pid).children(recursive=True)
    except psutil.NoSuchProcess:
        return []


def _close_stream(stream: object) -> None:
    close = getattr(stream, "close", None)
    if close is None:
        return
    try:
        close()
    except OSError as e:
        LOG.debug("Error closing pipe: %s", e)


def _discard_processes(procs: list[subprocess.Popen]) -> None:
    """Kill half-started processes immediately and close their pipes."""
    terminate_processes(procs, 0.0)
    for proc in procs:
        _close_stream(proc.stdout)
        _close_stream(proc.stderr)


def terminate_processes(procs: list[subprocess.Popen], grace_period: float) -> None:
    """
    Stop a group of processes and everything they spawned.

    SIGTERM goes out to the whole tree at once; survivors are killed after
    ``grace_period`` seconds. Every direct child is reaped.
    """
    running = [proc for proc in procs if proc.poll() is None]
    helpers: list[psutil.Process] = []
    for proc in running:
        helpers.extend(_descendants(proc))

    for proc in running:
        try:
            proc.terminate()
        except ProcessLookupError:
            pass
    for helper in helpers:
        try:
            helper.terminate()
        except psutil.NoSuchProcess:
            pass

    deadline = time.monotonic() + grace_period
    for proc in running:
        try:
            proc.wait(timeout=max(0.0, deadline - time.monotonic()))
        except subprocess.TimeoutExpired:
            LOG.warning("Process did not exit within %.1fs, killing (pid=%d)", grace_period, proc.pid)
            proc.kill()
            try:
                proc.wait(timeout=KILL_WAIT_SECONDS)
            except subprocess.TimeoutExpired:
                LOG.error("Process did not exit after SIGKILL (pid=%d)", proc.pid)

    if helpers:
        _, alive = psutil.wait_procs(helpers, timeout=max(0.0, deadline - time.monotonic()))
        for helper in alive:
            LOG.warning("Helper process did not exit, killing (pid=%d)", helper.pid)
            try:
                helper.kill()
            except psutil.NoSuchProcess:
                pass
        psutil.wait_procs(alive, timeout=KILL_WAIT_SECONDS)


class Pipeline:
    """
    Owns a resolver process feeding a transcoder process.

    The transcoder's stdout is the audio stream. Both processes live and die
    together: ``terminate`` is the only way to stop either of them.
    """

    def __init__(
        self,
        resolver: subprocess.Popen,
        transcoder: subprocess.Popen,
        locator: str,
        start_time: float | None = None,
        grace_period: float = DEFAULT_TERMINATION_GRACE_SECONDS,
    ) -> None:
        if transcoder.stdout is None:
            raise PipeUnavailable("transcoder stdout", locator=locator)
        self.resolver = resolver
        self.transcoder = transcoder
        self.locator = locator
        self.start_time = start_time
        self.grace_period = grace_period
        self._stdout = transcoder.stdout
        self._closed = False

    @property
    def closed(self) -> bool:
        """True once the pipeline has been torn down."""
        return self._closed

    @property
    def pids(self) -> tuple[int, int]:
        """Resolver and transcoder process ids."""
        return self.resolver.pid, self.transcoder.pid

    def is_running(self) -> bool:
        """True while the transcoder is still producing output."""
        return not self._closed and self.transcoder.poll() is None

    def read(self, size: int = -1) -> bytes:
        """
        Read raw PCM from the transcoder.

        Returns b"" at the end of the track.

        Raises:
            TranscoderExited: The stream ended because the transcoder failed.

        """
        if self._closed:
            return b""

        data = self._stdout.read(size)
        if not data and size != 0:
            self._check_exit()
        return data

    def _check_exit(self) -> None:
        """Decide whether end-of-stream is a clean end of track."""
        try:
            return_code = self.transcoder.wait(timeout=self.grace_period)
        except subprocess.TimeoutExpired:
            LOG.warning("Transcoder closed its output but is still running (pid=%d)", self.transcoder.pid)
            return

        if return_code != 0 and not self._closed:
            LOG.warning("Transcoder for %s exited with status %d", self.locator, return_code)
            raise TranscoderExited(return_code, locator=self.locator)
        LOG.debug("End of track for %s", self.locator)

    def terminate(self) -> None:
        """Stop both processes and close every pipe. Safe to call repeatedly."""
        if self._closed:
            return
        self._closed = True

        LOG.debug("Tearing down pipeline for %s (pids=%s)", self.locator, self.pids)
        terminate_processes([self.transcoder, self.resolver], self.grace_period)
        _close_stream(self._stdout)
        _close_stream(self.resolver.stdout)
        _close_stream(self.resolver.stderr)

    async def aterminate(self) -> None:
        """Run ``terminate`` off the event loop."""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self.terminate)

    def __enter__(self) -> Pipeline:
        return self

    def __exit__(self, _exc_type: object, _exc_val: object, _exc_tb: object) -> None:
        self.terminate()


class PipelineSpawner:
    """Spawns resolver/transcoder pipelines for a locator."""

    def __init__(
        self,
        resolver: str = "youtube-dl",
        transcoder: str = "ffmpeg",
        grace_period: float = DEFAULT_TERMINATION_GRACE_SECONDS,
    ) -> None:
        """
        Initialize the spawner.

        Args:
            resolver: Resolver executable (youtube-dl compatible)
            transcoder: Transcoder executable (ffmpeg compatible)
            grace_period: Seconds to wait for processes to exit before killing them

        """
        self.resolver = resolver
        self.grace_period = grace_period
        self.extractor = MetadataExtractor(resolver)
        self.transcoder = FFmpegTranscoder(transcoder)

    @classmethod
    def from_config(cls, config: StreamToolkitConfig) -> PipelineSpawner:
        """Create a spawner from the executables and pipeline config sections."""
        return cls(
            resolver=config.executables.resolver,
            transcoder=config.executables.transcoder,
            grace_period=config.pipeline.termination_grace_seconds,
        )

    async def fetch_metadata(self, locator: str) -> Metadata:
        """Metadata only, without starting any audio."""
        return await self.extractor.fetch(validate_locator(locator))

    async def spawn(self, locator: str, seek: float | None = None) -> tuple[Pipeline, Metadata]:
        """
        Start a pipeline for ``locator``, optionally ``seek`` seconds in.

        Raises:
            ProcessSpawnFailure: Either process could not be started, or the
                resolver exited before reporting metadata.
            UpstreamResolutionFailure: The resolver cannot resolve the locator.
            MetadataParseFailure: The resolver's metadata line is malformed.
            PipeUnavailable: The resolver's output pipe is missing.

        """
        locator = validate_locator(locator)
        if seek is not None:
            format_seek(seek)

        command = [self.resolver, *build_stream_args(locator)]
        LOG.debug("Running resolver: %s", " ".join(command))
        try:
            resolver = subprocess.Popen(  # noqa: S603
                command,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except (OSError, ValueError) as e:
            msg = f"Failed to start resolver '{self.resolver}': {e}"
            raise ProcessSpawnFailure(msg, command=command, locator=locator, cause=e) from e

        transcoder: subprocess.Popen | None = None
        try:
            if resolver.stderr is None:
                raise PipeUnavailable("stderr", locator=locator)
            metadata = await self.extractor.from_stream(
                resolver.stderr,
                locator,
                process=resolver,
                command=command,
                start_time=seek,
            )

            if resolver.stdout is None:
                raise PipeUnavailable("stdout", locator=locator)
            transcoder = self.transcoder.spawn(resolver.stdout, seek, locator)
            pipeline = Pipeline(resolver, transcoder, locator, start_time=seek, grace_period=self.grace_period)
        except BaseException:
            procs = [resolver] if transcoder is None else [transcoder, resolver]
            loop = asyncio.get_running_loop()
            # Shielded: a second cancellation must not abandon the cleanup
            await asyncio.shield(loop.run_in_executor(None, _discard_processes, procs))
            raise

        # The transcoder holds its own copy of the resolver's stdout
        resolver.stdout.close()
        resolver.stdout = None

        LOG.info("Pipeline started for %s (resolver pid=%d, transcoder pid=%d)", locator, *pipeline.pids)
        return pipeline, metadata
