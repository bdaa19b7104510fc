"""
Pytest fixtures for hookmix tests.

Most tests replace ffmpeg with scripted fakes so they run anywhere. Tests that
need real ffmpeg/ffprobe binaries are marked @pytest.mark.requires_ffmpeg and
skipped when the binaries are not on PATH.
"""

import asyncio
import json
import shutil
from pathlib import Path

import pytest

from hookmix.config import Settings
from hookmix.exceptions import CombineFailure, ProcessFailure
from hookmix.schemas.batch import SourceFile, SourceRole


def _ffmpeg_available() -> bool:
    return shutil.which("ffmpeg") is not None and shutil.which("ffprobe") is not None


requires_ffmpeg = pytest.mark.skipif(
    not _ffmpeg_available(),
    reason="ffmpeg/ffprobe not available on PATH",
)


def pytest_collection_modifyitems(config, items):
    for item in items:
        if "requires_ffmpeg" in item.keywords:
            item.add_marker(requires_ffmpeg)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing every namespace into a temporary directory."""
    return Settings(
        _env_file=None,
        uploads_dir=tmp_path / "uploads",
        results_dir=tmp_path / "results",
        tasks_dir=tmp_path / "tasks",
        max_concurrent_jobs=2,
        shutdown_grace_s=5.0,
    )


@pytest.fixture
def make_source(tmp_path: Path):
    """Factory writing a fake uploaded clip and returning its SourceFile."""
    upload_root = tmp_path / "uploads"

    def _make(name: str, role: SourceRole = SourceRole.HOOK, task_id: str = "task") -> SourceFile:
        path = upload_root / task_id / f"{role.value}_{name}"
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"fake video " + name.encode())
        return SourceFile(path=path, original_name=name, role=role)

    return _make


def probe_json(has_video: bool = True, has_audio: bool = True, duration: float = 4.0) -> str:
    streams = []
    if has_video:
        streams.append({"codec_type": "video", "width": 1280, "height": 720, "duration": str(duration)})
    if has_audio:
        streams.append({"codec_type": "audio", "sample_rate": "48000", "channels": 2})
    return json.dumps({"streams": streams, "format": {"duration": str(duration)}})


class FakeProcessRunner:
    """Stands in for ProcessRunner: answers ffprobe, 'encodes' for ffmpeg.

    ``probes`` maps a source file name to the JSON ffprobe should print.
    ``fail_encode`` makes every ffmpeg call fail after writing partial output.
    """

    def __init__(self, probes: dict[str, str] | None = None, fail_encode: bool = False):
        self.probes = probes or {}
        self.fail_encode = fail_encode
        self.calls: list[list[str]] = []

    async def run(self, cmd: list[str], timeout: float) -> str:
        self.calls.append(cmd)
        program = Path(cmd[0]).name
        if program == "ffprobe":
            target = Path(cmd[-1]).name
            return self.probes.get(target, probe_json())

        output = Path(cmd[-1])
        output.write_bytes(b"partial")
        if self.fail_encode:
            raise ProcessFailure("exit code 1", "Invalid data found", returncode=1, command=cmd)
        output.write_bytes(b"combined video")
        return ""

    @property
    def encode_calls(self) -> list[list[str]]:
        return [c for c in self.calls if Path(c[0]).name == "ffmpeg"]


class FakeCombiner:
    """Combiner double that records concurrency and can fail selected pairs."""

    def __init__(self, fail=None, delay: float = 0.01):
        self.fail = fail or (lambda a, b: False)
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self.calls: list[tuple[Path, Path, Path]] = []

    async def combine(self, source_a: Path, source_b: Path, destination: Path) -> None:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            self.calls.append((source_a, source_b, destination))
            await asyncio.sleep(self.delay)
            if self.fail(source_a, source_b):
                raise CombineFailure("ffmpeg exit code 1", phase="encode")
            destination.write_bytes(source_a.read_bytes() + b"|" + source_b.read_bytes())
        finally:
            self.active -= 1


@pytest.fixture
def temp_output_dir(tmp_path: Path) -> Path:
    """Temporary directory for test outputs."""
    out = tmp_path / "output"
    out.mkdir()
    return out
