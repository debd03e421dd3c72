"""Shared fixtures: stand-in resolver and transcoder executables."""

import json
import stat
import sys
from pathlib import Path

import pytest

from stream_toolkit.config.settings import _ConfigSingleton
from stream_toolkit.core import PipelineSpawner

# Behaviour is chosen by the last path segment of the locator:
#   .../missing   -> ERROR: line, exit 1
#   .../silent    -> no output, exit 1
#   .../garbage   -> non-JSON diagnostic line
#   .../hang      -> metadata, some media, then never finishes
#   anything else -> metadata line, then MEDIA_BYTES of media
FAKE_RESOLVER = """\
import json
import os
import sys
import time

args = sys.argv[1:]
locator = args[args.index("-o") - 1]
kind = locator.rstrip("/").rsplit("/", 1)[-1]

log_path = os.environ.get("FAKE_RESOLVER_LOG")
if log_path:
    with open(log_path, "a") as log:
        log.write(json.dumps(args) + "\\n")

if kind == "missing":
    sys.stderr.write("ERROR: Video unavailable\\n")
    sys.exit(1)
if kind == "silent":
    sys.exit(1)
if kind == "garbage":
    sys.stderr.write("this is not json\\n")
    sys.stderr.flush()
    sys.exit(0)

if "-J" in args:
    listing = {
        "_type": "playlist",
        "entries": [{"url": "https://example.com/one"}, {"title": "gone"}, {"url": "https://example.com/two"}],
    }
    sys.stderr.write("[youtube] Downloading playlist\\n" + json.dumps(listing) + "\\n")
    sys.exit(0)

record = {"title": "Fake " + kind, "duration": 12.5, "webpage_url": locator, "uploader": "Fake Channel"}
sys.stderr.write(json.dumps(record) + "\\n")
sys.stderr.flush()
if "-j" in args:
    sys.exit(0)

sys.stdout.buffer.write(b"\\x01" * int(os.environ.get("FAKE_MEDIA_BYTES", "8192")))
sys.stdout.buffer.flush()
if kind == "hang":
    time.sleep(60)
"""

# Copies stdin to stdout, logging its arguments; FAKE_TRANSCODER_EXIT forces a failure status
FAKE_TRANSCODER = """\
import json
import os
import sys

log_path = os.environ.get("FAKE_TRANSCODER_LOG")
if log_path:
    with open(log_path, "a") as log:
        log.write(json.dumps(sys.argv[1:]) + "\\n")

exit_code = int(os.environ.get("FAKE_TRANSCODER_EXIT", "0"))
if exit_code:
    sys.exit(exit_code)

while True:
    data = os.read(0, 65536)
    if not data:
        break
    os.write(1, data)
"""


def _write_script(path: Path, body: str) -> Path:
    path.write_text(f"#!{sys.executable}\n{body}", encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def fake_resolver(tmp_path: Path) -> Path:
    """Executable that behaves like youtube-dl for the arguments we pass."""
    return _write_script(tmp_path / "fake-resolver", FAKE_RESOLVER)


@pytest.fixture
def fake_transcoder(tmp_path: Path) -> Path:
    """Executable that passes audio through like ffmpeg would."""
    return _write_script(tmp_path / "fake-transcoder", FAKE_TRANSCODER)


@pytest.fixture
def transcoder_log(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """File receiving one JSON argument list per transcoder run."""
    log_path = tmp_path / "transcoder.log"
    monkeypatch.setenv("FAKE_TRANSCODER_LOG", str(log_path))
    return log_path


@pytest.fixture
def resolver_log(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """File receiving one JSON argument list per resolver run."""
    log_path = tmp_path / "resolver.log"
    monkeypatch.setenv("FAKE_RESOLVER_LOG", str(log_path))
    return log_path


@pytest.fixture
def spawner(fake_resolver: Path, fake_transcoder: Path) -> PipelineSpawner:
    """Spawner wired to the fake executables with a short teardown grace."""
    return PipelineSpawner(resolver=str(fake_resolver), transcoder=str(fake_transcoder), grace_period=0.5)


@pytest.fixture(autouse=True)
def reset_config_singleton():
    """Keep a config.yaml loaded by one test from leaking into the next."""
    _ConfigSingleton.reset()
    yield
    _ConfigSingleton.reset()


def read_log(path: Path) -> list[list[str]]:
    """Argument lists recorded by a fake executable."""
    if not path.exists():
        return []
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]
