"""Shared test fixtures for transcodarr."""

import itertools
import shutil
import sys
import tempfile
from pathlib import Path

import pytest

from transcodarr.db.types import Codec, Job, JobStatus
from transcodarr.executor.supervisor import EncodeOutcome, ProcessHandle
from transcodarr.jobs.store import JobStore
from transcodarr.tools.capabilities import NO_HARDWARE, CapabilityInfo

# Stand-in for ffmpeg. The first line of the input file selects the
# behaviour: ok (default), fail, hwfail, hang, nooutput.
FAKE_FFMPEG_SOURCE = r'''
import sys
import time

args = sys.argv[1:]
source = args[args.index("-i") + 1]
encoder = args[args.index("-c:v") + 1]
output = args[-1]
with open(source) as f:
    mode = f.read().strip() or "ok"

err = sys.stderr
err.write("Input #0, matroska,webm, from '%s':\n" % source)
err.write("  Duration: 00:00:10.00, start: 0.000000, bitrate: 1000 kb/s\n")
err.flush()

if mode == "fail":
    err.write("Invalid data found when processing input\n")
    sys.exit(1)
if mode == "hwfail" and "nvenc" in encoder:
    err.write("[hevc_nvenc @ 0x55] OpenEncodeSessionEx failed: no capable devices found\n")
    err.write("Error initializing output stream 0:0\n")
    sys.exit(1)
if mode == "hang":
    err.write("frame=   25 fps=25 q=28.0 size=0kB time=00:00:01.00 bitrate=N/A speed=1x\r")
    err.flush()
    time.sleep(60)
    sys.exit(0)

for seconds in (2.5, 5.0, 10.0):
    err.write(
        "frame=%4d fps=25 q=28.0 size=0kB time=00:00:%05.2f bitrate=N/A speed=1x\r"
        % (int(seconds * 25), seconds)
    )
    err.flush()
err.write("\n")
if mode != "nooutput":
    with open(output, "wb") as f:
        f.write(b"\0" * 1000)
sys.exit(0)
'''


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test isolation."""
    dir_path = tempfile.mkdtemp()
    yield Path(dir_path)
    shutil.rmtree(dir_path, ignore_errors=True)


@pytest.fixture
def temp_db(temp_dir: Path) -> Path:
    """Create a temporary database path."""
    return temp_dir / "test_jobs.db"


@pytest.fixture
def media_dir(temp_dir: Path) -> Path:
    """Create a media directory with a few source files."""
    media = temp_dir / "media"
    media.mkdir()
    (media / "movie.mkv").write_text("ok")
    (media / "show_x264.mkv").write_text("ok")
    nested = media / "nested"
    nested.mkdir()
    (nested / "episode.mp4").write_text("ok")
    return media


@pytest.fixture
def store(temp_db: Path):
    """Open a job store on a fresh database."""
    job_store = JobStore.open(temp_db)
    yield job_store
    job_store.close()


@pytest.fixture
def make_job(media_dir: Path):
    """Factory for unsaved Job records pointing into ``media_dir``."""

    def _make(
        name: str = "movie.mkv",
        codec: Codec = Codec.X265,
        quality: int = 23,
        status: JobStatus = JobStatus.QUEUED,
        **kwargs,
    ) -> Job:
        input_path = media_dir / name
        if not input_path.exists():
            input_path.write_text("ok")
        output_path = input_path.with_name(
            f"{input_path.stem} [{codec.filename_token}].mkv"
        )
        return Job(
            id=None,
            filename=name,
            input_path=str(input_path),
            output_path=str(output_path),
            codec=codec,
            quality=quality,
            status=status,
            **kwargs,
        )

    return _make


@pytest.fixture
def fake_ffmpeg(temp_dir: Path) -> str:
    """Write an executable ffmpeg stand-in and return its path."""
    script = temp_dir / "fake_ffmpeg"
    script.write_text(f"#!{sys.executable}\n{FAKE_FFMPEG_SOURCE}")
    script.chmod(0o755)
    return str(script)


class FakeSupervisor:
    """In-memory supervisor. Launches are recorded; tests deliver outcomes."""

    def __init__(self) -> None:
        self.started: list[ProcessHandle] = []
        self.cancels: list[tuple[int, bool]] = []
        self._generations = itertools.count(1)
        self._callbacks: dict[int, tuple] = {}

    def start(self, spec, on_progress, on_complete) -> ProcessHandle:
        handle = ProcessHandle(spec=spec, generation=next(self._generations))
        self._callbacks[handle.generation] = (on_progress, on_complete)
        self.started.append(handle)
        return handle

    def cancel(self, handle: ProcessHandle, forceful: bool = False) -> bool:
        if handle.cancelled and (handle.forceful or not forceful):
            return False
        handle.cancelled = True
        handle.forceful = handle.forceful or forceful
        self.cancels.append((handle.job_id, forceful))
        # The process exits promptly and reports a cancelled outcome
        self.complete(handle, EncodeOutcome(success=False, cancelled=True))
        return True

    async def wait(self, handle: ProcessHandle, timeout: float | None = None) -> bool:
        return True

    def progress(self, handle: ProcessHandle, percent: float) -> None:
        self._callbacks[handle.generation][0](handle, percent)

    def complete(self, handle: ProcessHandle, outcome: EncodeOutcome) -> None:
        self._callbacks[handle.generation][1](handle, outcome)


class StaticCapabilities:
    """Capability resolver returning a fixed snapshot."""

    def __init__(self, info: CapabilityInfo = NO_HARDWARE) -> None:
        self.info = info
        self.probes = 0

    def probe(self) -> CapabilityInfo:
        self.probes += 1
        return self.info


@pytest.fixture
def supervisor() -> FakeSupervisor:
    return FakeSupervisor()


@pytest.fixture
def static_capabilities():
    """Factory for StaticCapabilities."""
    return StaticCapabilities


@pytest.fixture
def capabilities() -> StaticCapabilities:
    return StaticCapabilities()
