"""Resolver (youtube-dl compatible) invocation helpers."""

from __future__ import annotations

import asyncio
import logging
import shutil
import subprocess

from ..config.constants import RESOLVER_ERROR_PREFIX, RESOLVER_FORMAT, RESOLVER_RETRIES
from .base import ProcessSpawnFailure, ResolverExitedEarly, UpstreamResolutionFailure

LOG = logging.getLogger(__name__)

# Identical selection for streaming and metadata-only runs so both see the same media
_SELECTION_ARGS = [
    "-f",
    RESOLVER_FORMAT,
    "-R",
    RESOLVER_RETRIES,
    "--no-playlist",
    "--ignore-config",
    "--no-warnings",
]


def build_stream_args(locator: str) -> list[str]:
    """Arguments for a run that prints one JSON line to stderr, then streams media to stdout."""
    return ["--print-json", *_SELECTION_ARGS, locator, "-o", "-"]


def build_metadata_args(locator: str) -> list[str]:
    """Arguments for a metadata-only run (no media transfer)."""
    return ["-j", *_SELECTION_ARGS, locator, "-o", "-"]


def build_playlist_args(locator: str) -> list[str]:
    """Arguments for a flat playlist listing without per-item resolution."""
    return ["-J", "--flat-playlist", locator, "-o", "-"]


def check_availability(*executables: str) -> None:
    """Check that the given executables are on PATH."""
    missing = [exe for exe in executables if not shutil.which(exe)]
    if missing:
        error_msg = f"Missing executables: {', '.join(missing)}"
        LOG.error(error_msg)
        raise ProcessSpawnFailure(error_msg, command=missing)


def find_error_line(raw: bytes) -> str | None:
    """Return the resolver's first ``ERROR:`` report, if any."""
    for line in raw.splitlines():
        stripped = line.strip()
        if stripped.startswith(RESOLVER_ERROR_PREFIX):
            return stripped.decode("utf-8", errors="replace")
    return None


def raise_for_diagnostics(
    raw: bytes,
    return_code: int | None,
    command: list[str],
    locator: str,
) -> None:
    """
    Raise if the captured diagnostic output reports a failure.

    Args:
        raw: Captured diagnostic output
        return_code: Exit status, or None while the process is still running
        command: Full command line, for error context
        locator: Locator the resolver was asked for

    """
    error_line = find_error_line(raw)
    if error_line is not None:
        msg = f"Could not find or download {locator}: {error_line}"
        raise UpstreamResolutionFailure(msg, reason=error_line, locator=locator)

    if not raw.strip():
        status = "still running" if return_code is None else f"exit status {return_code}"
        msg = f"Resolver produced no output for {locator} ({status})"
        raise ResolverExitedEarly(msg, command=command, return_code=return_code, locator=locator)


async def run_resolver(executable: str, args: list[str], locator: str) -> tuple[int, bytes]:
    """
    Run the resolver to completion and capture its diagnostic stream.

    Returns:
        Exit status and everything written to stderr

    """
    command = [executable, *args]
    LOG.debug("Running resolver: %s", " ".join(command))

    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
    except (OSError, ValueError) as e:
        msg = f"Failed to start resolver '{executable}': {e}"
        raise ProcessSpawnFailure(msg, command=command, locator=locator, cause=e) from e

    _, stderr = await proc.communicate()
    LOG.debug("Resolver exited with status %s (%d bytes of diagnostics)", proc.returncode, len(stderr))
    return proc.returncode, stderr
