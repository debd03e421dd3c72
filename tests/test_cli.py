"""Tests for the command-line interface."""

import logging
from pathlib import Path
from unittest.mock import patch

import pytest
from conftest import read_log

from stream_toolkit.cli.commands.stream import format_duration, print_metadata
from stream_toolkit.cli.failure_table import print_failure_table
from stream_toolkit.cli.main import StreamToolkitCLI, main
from stream_toolkit.core import ConfigManager, Metadata, QueueResult, QueueStatus, RateGate

URL = "https://example.com/song"


@pytest.fixture
def exe_args(fake_resolver: Path, fake_transcoder: Path) -> list[str]:
    """Global options pointing the CLI at the fake executables."""
    return ["--resolver", str(fake_resolver), "--transcoder", str(fake_transcoder)]


def test_parser_stream_play() -> None:
    """Test parsing of the play command and its options."""
    parser = StreamToolkitCLI().build_parser()

    args = parser.parse_args(["-vv", "stream", "play", URL, "--seek", "90.5", "--lazy"])

    assert args.verbose == 2
    assert args.command == "stream"
    assert args.stream_command == "play"
    assert args.seek == 90.5
    assert args.lazy
    assert args.output is None


def test_parser_requires_command() -> None:
    """Test that running without a command is a usage error."""
    with pytest.raises(SystemExit):
        StreamToolkitCLI().build_parser().parse_args([])


def test_setup_logging_uses_configured_level() -> None:
    """Test that the configured level applies when no -v is given."""
    with patch("stream_toolkit.cli.main.logging.basicConfig") as mock_basic:
        StreamToolkitCLI.setup_logging(0, "ERROR")
        StreamToolkitCLI.setup_logging(2, "ERROR")

    assert mock_basic.call_args_list[0].kwargs["level"] == logging.ERROR
    assert mock_basic.call_args_list[1].kwargs["level"] == logging.DEBUG


@pytest.mark.parametrize(("seconds", "expected"), [(None, "live"), (5, "0:05"), (212.7, "3:32"), (3725, "1:02:05")])
def test_format_duration(seconds: float | None, expected: str) -> None:
    """Test duration display."""
    assert format_duration(seconds) == expected


def test_print_metadata(capsys: pytest.CaptureFixture[str]) -> None:
    """Test the metadata summary."""
    print_metadata(Metadata(title="Song", duration=61.0, source_url=URL))

    out = capsys.readouterr().out
    assert "Song" in out
    assert "1:01" in out
    assert URL in out
    assert "artist      : -" in out


def test_probe(exe_args: list[str], capsys: pytest.CaptureFixture[str]) -> None:
    """Test that probe prints the resolved metadata."""
    assert main([*exe_args, "stream", "probe", URL]) == 0

    out = capsys.readouterr().out
    assert "Fake song" in out
    assert "Fake Channel" in out
    assert "0:12" in out


def test_probe_missing_video(exe_args: list[str], capsys: pytest.CaptureFixture[str]) -> None:
    """Test that an unavailable video is reported and exits non-zero."""
    assert main([*exe_args, "stream", "probe", "https://example.com/missing"]) == 1

    assert "Video unavailable" in capsys.readouterr().err


@pytest.mark.parametrize("extra", [[], ["--lazy"], ["--seek", "1.5"]])
def test_play_writes_pcm(exe_args: list[str], tmp_path: Path, extra: list[str]) -> None:
    """Test that play copies the whole stream to the output file."""
    out = tmp_path / "track.f32"

    assert main([*exe_args, "stream", "play", URL, "--output", str(out), *extra]) == 0

    assert out.read_bytes() == b"\x01" * 8192


def test_play_seek_reaches_transcoder(exe_args: list[str], tmp_path: Path, transcoder_log: Path) -> None:
    """Test that a seek spawns a single pipeline starting at the offset."""
    main([*exe_args, "stream", "play", URL, "--output", str(tmp_path / "out"), "--seek", "90"])

    runs = read_log(transcoder_log)
    assert len(runs) == 1
    assert runs[0][:2] == ["-ss", "90.000"]


def test_play_failure(exe_args: list[str], capsys: pytest.CaptureFixture[str]) -> None:
    """Test that a failed spawn is reported to the user."""
    assert main([*exe_args, "stream", "play", "https://example.com/missing", "--output", "/dev/null"]) == 1

    assert "Could not queue song" in capsys.readouterr().err


def test_playlist_expand(exe_args: list[str], capsys: pytest.CaptureFixture[str]) -> None:
    """Test that expand prints one line per entry, '-' for entries without a URL."""
    assert main([*exe_args, "playlist", "expand", "https://example.com/playlist"]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines == ["https://example.com/one", "-", "https://example.com/two"]


def test_playlist_queue(exe_args: list[str], capsys: pytest.CaptureFixture[str]) -> None:
    """Test that queue summarizes queued and skipped entries."""
    with patch.object(ConfigManager, "build_gate", return_value=RateGate(10, 1.0, burst=10)):
        assert main([*exe_args, "playlist", "queue", "https://example.com/playlist"]) == 0

    out = capsys.readouterr().out
    assert "Queued 2/3 songs" in out
    assert "(no url)" in out


def test_utils_info(capsys: pytest.CaptureFixture[str]) -> None:
    """Test that info reports missing executables and exits non-zero."""
    with patch("stream_toolkit.cli.commands.utils.shutil.which", return_value=None), patch(
        "stream_toolkit.core.resolver.shutil.which", return_value=None
    ):
        assert main(["utils", "info"]) == 1

    out = capsys.readouterr().out
    assert "Not found in PATH" in out
    assert "rate limit" in out


def test_failure_table(capsys: pytest.CaptureFixture[str]) -> None:
    """Test the table of entries that could not be queued."""
    long_url = "https://www.youtube.com/watch?v=" + "x" * 40
    print_failure_table(
        [
            QueueResult(locator=None, status=QueueStatus.SKIPPED, message="Entry has no URL"),
            QueueResult(locator=long_url, status=QueueStatus.FAILED, message="ERROR: " + "private " * 10),
        ]
    )

    out = capsys.readouterr().out
    assert "Total not queued: 2 entries (1 without a URL)" in out
    assert "skipped" in out
    assert "(no url)" in out
    assert long_url not in out
    assert "..." in out


def test_failure_table_empty(capsys: pytest.CaptureFixture[str]) -> None:
    """Test that nothing is printed when every entry was queued."""
    print_failure_table([])

    assert capsys.readouterr().out == ""
