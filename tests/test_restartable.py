"""Tests for the restartable source state machine."""

import asyncio
import gc
from unittest.mock import AsyncMock, Mock, call

import pytest

from stream_toolkit.core import (
    AudioInput,
    Codec,
    Container,
    Metadata,
    PipelineSpawner,
    ProcessSpawnFailure,
    RateGate,
    RestartableSource,
    SourceNotLive,
    SourceState,
    SourceStateError,
    UpstreamResolutionFailure,
    open_source,
)

URL = "https://example.com/song"


def _pipeline(data: bytes = b"") -> Mock:
    pipeline = Mock()
    pipeline.read.side_effect = [data, b""] if data else [b""]
    pipeline.aterminate = AsyncMock()
    return pipeline


def _mock_spawner(*pipelines: Mock) -> Mock:
    """Spawner whose spawn() hands out the given pipelines with matching metadata."""
    spawner = Mock(spec=PipelineSpawner)

    async def spawn(locator, seek=None):
        return next(queue), Metadata(title=f"spawn {len(spawner.spawn.await_args_list)}", start_time=seek)

    queue = iter(pipelines)
    spawner.spawn = AsyncMock(side_effect=spawn)
    spawner.fetch_metadata = AsyncMock(return_value=Metadata(title="lazy", duration=200.0))
    return spawner


def test_new_source_is_uninitialized() -> None:
    """Test that nothing can be read before initialization."""
    source = RestartableSource(URL, _mock_spawner())

    assert source.state is SourceState.UNINITIALIZED
    with pytest.raises(SourceNotLive):
        source.read(1024)
    with pytest.raises(SourceStateError):
        source.metadata()


def test_lazy_create_fetches_metadata_only() -> None:
    """Test that a lazy source knows its metadata but has no pipeline."""
    spawner = _mock_spawner()

    source = asyncio.run(RestartableSource.create(URL, lazy=True, spawner=spawner))

    assert source.state is SourceState.METADATA_ONLY
    assert source.metadata().title == "lazy"
    assert source.pipeline is None
    spawner.spawn.assert_not_awaited()
    with pytest.raises(SourceNotLive) as exc_info:
        source.read(1024)
    assert exc_info.value.state is SourceState.METADATA_ONLY


def test_eager_create_goes_live() -> None:
    """Test that an eager source spawns a pipeline straight away."""
    pipeline = _pipeline(b"pcm")
    spawner = _mock_spawner(pipeline)

    source = asyncio.run(RestartableSource.create(URL, lazy=False, spawner=spawner))

    assert source.state is SourceState.LIVE
    assert source.pipeline is pipeline
    spawner.spawn.assert_awaited_once_with(URL, None)
    spawner.fetch_metadata.assert_not_awaited()
    assert source.read(1024) == b"pcm"
    assert source.read(1024) == b""


def test_start_after_lazy_init() -> None:
    """Test that start() moves a metadata-only source to LIVE from the beginning."""
    spawner = _mock_spawner(_pipeline())

    async def run() -> RestartableSource:
        source = await RestartableSource.create(URL, spawner=spawner)
        await source.start()
        return source

    source = asyncio.run(run())

    assert source.state is SourceState.LIVE
    spawner.spawn.assert_awaited_once_with(URL, None)


def test_seek_replaces_pipeline_and_metadata() -> None:
    """Test that seeking tears down the old pipeline before spawning a new one at the offset."""
    first, second = _pipeline(), _pipeline()
    events: list[str] = []
    spawner = _mock_spawner(first, second)
    first.aterminate.side_effect = lambda: events.append("terminate first")
    original_spawn = spawner.spawn.side_effect

    async def recording_spawn(locator, seek=None):
        events.append(f"spawn {seek}")
        return await original_spawn(locator, seek)

    spawner.spawn.side_effect = recording_spawn

    async def run() -> RestartableSource:
        source = await RestartableSource.create(URL, lazy=False, spawner=spawner)
        await source.seek(90.5)
        return source

    source = asyncio.run(run())

    assert events == ["spawn None", "terminate first", "spawn 90.5"]
    assert source.pipeline is second
    assert source.metadata().start_time == 90.5
    assert source.metadata().title == "spawn 2"
    second.aterminate.assert_not_awaited()


def test_seek_rejects_negative_offset() -> None:
    """Test that a negative offset is rejected without touching the running pipeline."""
    pipeline = _pipeline()
    spawner = _mock_spawner(pipeline)

    async def run() -> RestartableSource:
        source = await RestartableSource.create(URL, lazy=False, spawner=spawner)
        with pytest.raises(ValueError):
            await source.seek(-1.0)
        return source

    source = asyncio.run(run())

    assert source.state is SourceState.LIVE
    assert source.pipeline is pipeline
    pipeline.aterminate.assert_not_awaited()


def test_failed_restart_leaves_no_pipeline() -> None:
    """Test that a failed respawn moves the source to FAILED with the old pipeline gone."""
    first = _pipeline()
    spawner = _mock_spawner(first)
    error = UpstreamResolutionFailure("gone", reason="ERROR: gone", locator=URL)

    async def run() -> RestartableSource:
        source = await RestartableSource.create(URL, lazy=False, spawner=spawner)
        spawner.spawn.side_effect = error
        with pytest.raises(UpstreamResolutionFailure):
            await source.seek(30.0)
        return source

    source = asyncio.run(run())

    assert source.state is SourceState.FAILED
    assert source.pipeline is None
    assert source.failure is error
    first.aterminate.assert_awaited_once()
    with pytest.raises(SourceNotLive):
        source.read(1024)
    with pytest.raises(SourceStateError):
        source.metadata()


def test_failed_lazy_init() -> None:
    """Test that a failed metadata fetch leaves the source FAILED."""
    spawner = _mock_spawner()
    spawner.fetch_metadata.side_effect = UpstreamResolutionFailure("gone", locator=URL)

    source = RestartableSource(URL, spawner)
    with pytest.raises(UpstreamResolutionFailure):
        asyncio.run(source.initialize(lazy=True))

    assert source.state is SourceState.FAILED


def test_failed_source_can_restart() -> None:
    """Test that an explicit restart recovers a FAILED source."""
    pipeline = _pipeline()
    spawner = _mock_spawner(pipeline)
    spawner.fetch_metadata.side_effect = UpstreamResolutionFailure("flaky", locator=URL)

    async def run() -> RestartableSource:
        source = RestartableSource(URL, spawner)
        with pytest.raises(UpstreamResolutionFailure):
            await source.initialize(lazy=True)
        await source.restart()
        return source

    source = asyncio.run(run())

    assert source.state is SourceState.LIVE
    assert source.failure is None


def test_close_resets_to_uninitialized() -> None:
    """Test that close terminates the pipeline and forgets everything."""
    pipeline = _pipeline()
    source = asyncio.run(RestartableSource.create(URL, lazy=False, spawner=_mock_spawner(pipeline)))

    source.close()

    pipeline.terminate.assert_called_once_with()
    assert source.state is SourceState.UNINITIALIZED
    assert source.pipeline is None


def test_async_context_manager_closes() -> None:
    """Test that leaving ``async with`` releases the pipeline."""
    pipeline = _pipeline()
    spawner = _mock_spawner(pipeline)

    async def run() -> RestartableSource:
        async with await RestartableSource.create(URL, lazy=False, spawner=spawner) as source:
            assert source.state is SourceState.LIVE
        return source

    source = asyncio.run(run())

    pipeline.aterminate.assert_awaited_once()
    assert source.state is SourceState.UNINITIALIZED


def test_chunks_until_end_of_track() -> None:
    """Test that chunks() stops at the end of the track."""
    pipeline = Mock()
    pipeline.read.side_effect = [b"a" * 4, b"b" * 4, b""]
    source = asyncio.run(RestartableSource.create(URL, lazy=False, spawner=_mock_spawner(pipeline)))

    assert list(source.chunks(4)) == [b"aaaa", b"bbbb"]
    assert pipeline.read.call_args_list == [call(4), call(4), call(4)]


def test_into_input() -> None:
    """Test the hand-off record given to the playback engine."""
    spawner = _mock_spawner(_pipeline())
    spawner.spawn.side_effect = None
    spawner.spawn.return_value = (_pipeline(), Metadata(title="x", source_url=URL))
    source = asyncio.run(RestartableSource.create(URL, lazy=False, spawner=spawner))

    playing = source.into_input()

    assert isinstance(playing, AudioInput)
    assert playing.reader is source
    assert playing.codec is Codec.FLOAT_PCM
    assert playing.container is Container.RAW
    assert playing.stereo
    assert playing.source_url == URL


def test_empty_locator_rejected() -> None:
    """Test that an empty locator is rejected at construction."""
    with pytest.raises(ValueError):
        RestartableSource("  ")


def test_open_source_waits_for_gate() -> None:
    """Test that open_source takes a permit before creating the source."""
    gate = Mock(spec=RateGate)
    gate.acquire = AsyncMock()
    gate.acquire.return_value.waited = 0.0
    spawner = _mock_spawner()

    source = asyncio.run(open_source(gate, URL, spawner=spawner))

    gate.acquire.assert_awaited_once()
    assert source.state is SourceState.METADATA_ONLY


def test_open_source_rejects_empty_locator_without_permit() -> None:
    """Test that an empty locator does not use up a permit."""
    gate = Mock(spec=RateGate)
    gate.acquire = AsyncMock()

    with pytest.raises(ValueError):
        asyncio.run(open_source(gate, "", spawner=_mock_spawner()))

    gate.acquire.assert_not_awaited()


def test_seek_with_real_processes(spawner: PipelineSpawner) -> None:
    """Test restart() then seek() against real processes: exactly one pipeline stays alive."""

    async def run():
        source = await RestartableSource.create(URL, lazy=False, spawner=spawner)
        first = source.pipeline
        await source.seek(12.345)
        return source, first

    source, first = asyncio.run(run())

    try:
        assert first.closed
        assert first.resolver.poll() is not None
        assert first.transcoder.poll() is not None
        assert source.pipeline is not first
        assert source.metadata().start_time == 12.345
        assert source.read(-1) == b"\x01" * 8192
        assert source.pipeline.transcoder.args[1:3] == ["-ss", "12.345"]
        assert first.transcoder.args[1] == "-i"
    finally:
        source.close()


def test_cancelled_seek_during_teardown_fails_source() -> None:
    """Test that a seek cancelled while the old pipeline shuts down leaves the source FAILED."""
    first = _pipeline()
    spawner = _mock_spawner(first)

    async def slow_shutdown() -> None:
        await asyncio.sleep(1)

    first.aterminate.side_effect = slow_shutdown

    async def run() -> RestartableSource:
        source = await RestartableSource.create(URL, lazy=False, spawner=spawner)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(source.seek(10.0), 0.05)
        return source

    source = asyncio.run(run())

    assert source.state is SourceState.FAILED
    assert source.pipeline is None
    assert "cancelled" in str(source.failure)
    assert spawner.spawn.await_count == 1
    with pytest.raises(SourceStateError):
        source.metadata()


def test_locator_with_nul_byte_fails_source(spawner: PipelineSpawner) -> None:
    """Test that a locator the OS cannot pass as an argument ends in FAILED, not UNINITIALIZED."""
    source = RestartableSource("https://example.com/a\x00b", spawner)

    with pytest.raises(ProcessSpawnFailure):
        asyncio.run(source.initialize(lazy=False))

    assert source.state is SourceState.FAILED
    assert source.pipeline is None
    assert isinstance(source.failure, ProcessSpawnFailure)


def test_dropped_source_terminates_pipeline() -> None:
    """Test that garbage-collecting a live source without close() stops its pipeline."""
    pipeline = _pipeline()
    source = asyncio.run(RestartableSource.create(URL, lazy=False, spawner=_mock_spawner(pipeline)))
    assert source.state is SourceState.LIVE

    del source
    gc.collect()

    pipeline.terminate.assert_called_once_with()


def test_closed_source_is_not_terminated_again() -> None:
    """Test that a source closed explicitly does not terminate its pipeline a second time when collected."""
    pipeline = _pipeline()
    source = asyncio.run(RestartableSource.create(URL, lazy=False, spawner=_mock_spawner(pipeline)))

    source.close()
    del source
    gc.collect()

    pipeline.terminate.assert_called_once_with()


def test_replaced_pipeline_is_not_terminated_on_collection() -> None:
    """Test that only the current pipeline is stopped when a seeked source is collected."""
    first, second = _pipeline(), _pipeline()

    async def run() -> RestartableSource:
        source = await RestartableSource.create(URL, lazy=False, spawner=_mock_spawner(first, second))
        await source.seek(5.0)
        return source

    source = asyncio.run(run())
    del source
    gc.collect()

    first.aterminate.assert_awaited_once()
    first.terminate.assert_not_called()
    second.terminate.assert_called_once_with()
