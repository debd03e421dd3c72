"""FFmpeg transcoder integration."""

from __future__ import annotations

import logging
import subprocess
from typing import IO

from ..config.constants import (
    LOUDNORM_INTEGRATED,
    LOUDNORM_RANGE,
    LOUDNORM_TRUE_PEAK,
    OUTPUT_CHANNELS,
    OUTPUT_CODEC,
    OUTPUT_CONTAINER_FORMAT,
    OUTPUT_SAMPLE_RATE,
    SEEK_DECIMALS,
)
from .base import ProcessSpawnFailure

LOG = logging.getLogger(__name__)


def format_seek(seconds: float) -> str:
    """Format a seek offset as fractional seconds, e.g. ``12.345``."""
    if seconds < 0:
        msg = f"Seek offset must not be negative, got {seconds}"
        raise ValueError(msg)
    return f"{seconds:.{SEEK_DECIMALS}f}"


def loudnorm_filter() -> str:
    """Fixed EBU R128 loudness normalization filter."""
    return f"loudnorm=I={LOUDNORM_INTEGRATED:g}:LRA={LOUDNORM_RANGE:g}:TP={LOUDNORM_TRUE_PEAK:g}"


class FFmpegTranscoder:
    """Builds and spawns the transcoder that turns resolver output into raw PCM."""

    def __init__(self, executable: str = "ffmpeg") -> None:
        self.executable = executable

    def build_command(self, seek: float | None = None) -> list[str]:
        """Build the transcoder command line reading stdin and writing stdout."""
        cmd = [self.executable]

        # Input option: skip into the already-flowing input instead of re-resolving
        if seek is not None:
            cmd.extend(["-ss", format_seek(seek)])

        cmd.extend(
            [
                "-i",
                "-",
                "-f",
                OUTPUT_CONTAINER_FORMAT,
                "-ac",
                str(OUTPUT_CHANNELS),
                "-ar",
                str(OUTPUT_SAMPLE_RATE),
                "-acodec",
                OUTPUT_CODEC,
                "-af",
                loudnorm_filter(),
                "-",
            ]
        )
        return cmd

    def spawn(self, stdin: IO[bytes], seek: float | None = None, locator: str | None = None) -> subprocess.Popen:
        """
        Start the transcoder reading from ``stdin``.

        Diagnostics are discarded; the raw PCM output is available on ``stdout``.
        """
        command = self.build_command(seek)
        LOG.debug("Running transcoder: %s", " ".join(command))

        try:
            proc = subprocess.Popen(  # noqa: S603
                command,
                stdin=stdin,
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
            )
        except (OSError, ValueError) as e:
            msg = f"Failed to start transcoder '{self.executable}': {e}"
            raise ProcessSpawnFailure(msg, command=command, locator=locator, cause=e) from e

        LOG.debug("Transcoder started (pid=%d)", proc.pid)
        return proc
