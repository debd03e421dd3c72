"""Playlist expansion and per-entry queueing."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from .base import MetadataParseFailure, QueueResult, QueueStatus, StreamError, validate_locator
from .resolver import build_playlist_args, raise_for_diagnostics, run_resolver
from .restartable import open_source

if TYPE_CHECKING:
    from collections.abc import Callable

    from .pipeline import PipelineSpawner
    from .ratelimit import RateGate

LOG = logging.getLogger(__name__)


def _listing_bytes(raw: bytes) -> bytes:
    """The JSON document line, skipping any chatter printed before it."""
    for line in raw.splitlines():
        if line.lstrip().startswith(b"{"):
            return line
    return raw


def _entry_url(entry: Any) -> str | None:
    if not isinstance(entry, dict):
        return None
    url = entry.get("url")
    return url if isinstance(url, str) and url else None


def parse_listing(raw: bytes, locator: str | None = None) -> list[str | None]:
    """
    Extract entry URLs from a flat playlist listing, in order.

    Entries without a URL are kept as None so positions line up with the
    playlist. A listing with no entries gives an empty list.
    """
    try:
        value = json.loads(_listing_bytes(raw))
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        msg = f"Invalid playlist listing from resolver: {e}"
        raise MetadataParseFailure(msg, raw=raw, locator=locator, cause=e) from e

    if not isinstance(value, dict):
        msg = f"Playlist listing must be a JSON object, got {type(value).__name__}"
        raise MetadataParseFailure(msg, raw=raw, locator=locator)

    entries = value.get("entries")
    if entries is None:
        return []
    if not isinstance(entries, list):
        msg = f"Playlist 'entries' must be a list, got {type(entries).__name__}"
        raise MetadataParseFailure(msg, raw=raw, locator=locator)

    return [_entry_url(entry) for entry in entries]


class PlaylistExpander:
    """Expands a playlist locator into its entries' locators."""

    def __init__(self, executable: str = "youtube-dl") -> None:
        self.executable = executable

    async def expand(self, locator: str) -> list[str | None]:
        """Run one flat listing and return the entry URLs in playlist order."""
        locator = validate_locator(locator)
        args = build_playlist_args(locator)
        return_code, raw = await run_resolver(self.executable, args, locator)
        raise_for_diagnostics(raw, return_code, [self.executable, *args], locator)

        urls = parse_listing(raw, locator)
        LOG.info("Playlist %s has %d entries", locator, len(urls))
        return urls


async def queue_playlist(
    gate: RateGate,
    locator: str,
    *,
    lazy: bool = True,
    spawner: PipelineSpawner | None = None,
    expander: PlaylistExpander | None = None,
    on_result: Callable[[QueueResult], object] | None = None,
) -> list[QueueResult]:
    """
    Create one source per playlist entry.

    Each entry goes through the rate gate on its own. An entry that fails is
    recorded and skipped; only a failed expansion aborts the whole playlist.

    Args:
        gate: Shared rate gate
        locator: Playlist URL
        lazy: Create sources in METADATA_ONLY instead of LIVE
        spawner: Pipeline spawner passed to every source
        expander: Playlist expander (defaults to youtube-dl)
        on_result: Called with each result as soon as it is known

    """
    if expander is None:
        expander = PlaylistExpander(spawner.resolver if spawner else "youtube-dl")
    urls = await expander.expand(locator)
    return await queue_entries(gate, urls, lazy=lazy, spawner=spawner, on_result=on_result)


async def queue_entries(
    gate: RateGate,
    urls: list[str | None],
    *,
    lazy: bool = True,
    spawner: PipelineSpawner | None = None,
    on_result: Callable[[QueueResult], object] | None = None,
) -> list[QueueResult]:
    """Create one source per already-expanded entry, in order."""
    results: list[QueueResult] = []
    for position, url in enumerate(urls, 1):
        if url is None:
            LOG.warning("Skipping playlist entry %d: no URL", position)
            result = QueueResult(locator=None, status=QueueStatus.SKIPPED, message="Entry has no URL")
        else:
            try:
                source = await open_source(gate, url, lazy=lazy, spawner=spawner)
            except (StreamError, ValueError) as e:
                LOG.warning("Skipping playlist entry %d (%s): %s", position, url, e)
                result = QueueResult(locator=url, status=QueueStatus.FAILED, message=str(e))
            else:
                result = QueueResult(locator=url, status=QueueStatus.SUCCESS, source=source)

        results.append(result)
        if on_result is not None:
            on_result(result)

    return results
