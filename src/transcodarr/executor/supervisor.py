"""Process supervisor: one ffmpeg process per job.

``start()`` and ``cancel()`` return immediately. Each process is driven by
its own asyncio task that feeds stderr into a ``ProgressParser``, then
finalizes or cleans up the temp output and reports an ``EncodeOutcome``.
Failures are delivered through the completion callback, never raised.
"""

from __future__ import annotations

import asyncio
import codecs
import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from transcodarr.executor.command import build_ffmpeg_command
from transcodarr.executor.output import (
    cleanup_temp_file,
    finalize_output,
    temp_output_path,
)
from transcodarr.jobs.exceptions import (
    FinalizeError,
    ProcessExitError,
    ProcessSpawnError,
    TranscodarrError,
)
from transcodarr.logging.context import set_job_context
from transcodarr.tools.encoders import EncoderSettings, detect_hw_encoder_error
from transcodarr.tools.ffmpeg_progress import ProgressParser

logger = logging.getLogger(__name__)

# Trailing stderr lines included in a failure message
ERROR_CONTEXT_LINES = 10

_READ_SIZE = 4096


@dataclass(frozen=True)
class EncodeSpec:
    """Everything needed to launch one encode."""

    job_id: int
    input_path: Path
    output_path: Path
    settings: EncoderSettings
    target_width: int | None = None

    @property
    def temp_path(self) -> Path:
        return temp_output_path(self.output_path)


@dataclass
class EncodeOutcome:
    """Result of a supervised encode."""

    success: bool
    output_size: int | None = None
    error: TranscodarrError | None = None
    last_lines: list[str] = field(default_factory=list)
    cancelled: bool = False

    @property
    def error_message(self) -> str | None:
        if self.error is None:
            return None
        return str(self.error)

    @property
    def hardware_error(self) -> bool:
        """True if the process failed in a way a software retry may fix."""
        if self.success or self.cancelled:
            return False
        if not isinstance(self.error, ProcessExitError):
            return False
        return detect_hw_encoder_error("\n".join(self.last_lines))


@dataclass(eq=False)
class ProcessHandle:
    """Live reference to one launched encode."""

    spec: EncodeSpec
    generation: int
    process: asyncio.subprocess.Process | None = None
    task: asyncio.Task | None = None
    cancelled: bool = False
    forceful: bool = False

    @property
    def job_id(self) -> int:
        return self.spec.job_id

    @property
    def pid(self) -> int | None:
        return self.process.pid if self.process is not None else None

    @property
    def done(self) -> bool:
        return self.task is not None and self.task.done()


ProgressCallback = Callable[[ProcessHandle, float], None]
CompletionCallback = Callable[[ProcessHandle, EncodeOutcome], None]


class ProcessSupervisor:
    """Launches and monitors encoder processes.

    Callbacks run on the event loop that called ``start()``. They should
    not block; the scheduler's callbacks only enqueue a message.
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg") -> None:
        self.ffmpeg_path = ffmpeg_path
        self._generations = itertools.count(1)

    def start(
        self,
        spec: EncodeSpec,
        on_progress: ProgressCallback,
        on_complete: CompletionCallback,
    ) -> ProcessHandle:
        """Launch an encode in the background.

        Args:
            spec: What to encode and where.
            on_progress: Called with each new percentage.
            on_complete: Called exactly once with the outcome.

        Returns:
            Handle identifying this launch. ``generation`` is unique per
            supervisor and increases with every call.
        """
        handle = ProcessHandle(spec=spec, generation=next(self._generations))
        loop = asyncio.get_running_loop()
        handle.task = loop.create_task(
            self._run(handle, on_progress, on_complete),
            name=f"encode-job-{spec.job_id}-g{handle.generation}",
        )
        return handle

    def cancel(self, handle: ProcessHandle, forceful: bool = False) -> bool:
        """Signal the process to stop.

        A graceful cancel sends SIGTERM and lets the normal exit path clean
        up. A forceful cancel sends SIGKILL. A forceful cancel may follow a
        graceful one; any other repeat is a no-op, as is cancelling a
        process that has already exited.

        Returns:
            True if a signal was sent or queued for a process still
            being spawned, False otherwise.
        """
        if handle.done:
            return False
        if handle.cancelled and (handle.forceful or not forceful):
            return False

        process = handle.process
        if process is not None and process.returncode is not None:
            return False

        handle.cancelled = True
        handle.forceful = handle.forceful or forceful
        if process is not None:
            self._signal(process, forceful)
        return True

    async def wait(self, handle: ProcessHandle, timeout: float | None = None) -> bool:
        """Wait for a handle's task to finish.

        Returns:
            True if it finished within ``timeout``.
        """
        if handle.task is None:
            return True
        done, _ = await asyncio.wait({handle.task}, timeout=timeout)
        return bool(done)

    @staticmethod
    def _signal(process: asyncio.subprocess.Process, forceful: bool) -> None:
        try:
            if forceful:
                process.kill()
            else:
                process.terminate()
        except ProcessLookupError:
            pass  # already exited

    async def _run(
        self,
        handle: ProcessHandle,
        on_progress: ProgressCallback,
        on_complete: CompletionCallback,
    ) -> None:
        set_job_context(handle.job_id)

        def report(percent: float) -> None:
            try:
                on_progress(handle, percent)
            except Exception:
                logger.exception("Progress callback failed")

        outcome = await self._supervise(handle, report)
        try:
            on_complete(handle, outcome)
        except Exception:
            logger.exception("Completion callback failed")

    async def _supervise(
        self, handle: ProcessHandle, report: Callable[[float], None]
    ) -> EncodeOutcome:
        spec = handle.spec
        temp_path = spec.temp_path
        cmd = build_ffmpeg_command(
            self.ffmpeg_path,
            spec.input_path,
            temp_path,
            spec.settings,
            spec.target_width,
        )
        logger.debug("Executing: %s", " ".join(cmd))

        try:
            process = await asyncio.create_subprocess_exec(  # nosec B603
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            cleanup_temp_file(temp_path)
            logger.error("Failed to start %s: %s", cmd[0], e)
            return EncodeOutcome(
                success=False,
                error=ProcessSpawnError(f"Failed to start {cmd[0]}: {e}"),
                cancelled=handle.cancelled,
            )

        handle.process = process
        logger.info(
            "Started %s (pid %d) for %s",
            spec.settings.encoder,
            process.pid,
            spec.input_path.name,
        )
        # A cancel that arrived while the process was spawning
        if handle.cancelled:
            self._signal(process, handle.forceful)

        parser = ProgressParser()
        try:
            await self._pump_stderr(process, parser, report)
            return_code = await process.wait()
        except asyncio.CancelledError:
            # Task cancelled during shutdown: don't leave an orphan encoder
            if process.returncode is None:
                self._signal(process, forceful=True)
            cleanup_temp_file(temp_path)
            raise

        for percent in parser.close():
            report(percent)
        last_lines = parser.tail(ERROR_CONTEXT_LINES)

        # A clean exit means the encode finished before the signal landed
        if handle.cancelled and return_code != 0:
            cleanup_temp_file(temp_path)
            logger.info("Encode stopped (exit code %d)", return_code)
            return EncodeOutcome(
                success=False,
                error=ProcessExitError(return_code, last_lines),
                last_lines=last_lines,
                cancelled=True,
            )

        if return_code != 0:
            cleanup_temp_file(temp_path)
            logger.error("FFmpeg exited with code %d", return_code)
            return EncodeOutcome(
                success=False,
                error=ProcessExitError(return_code, last_lines),
                last_lines=last_lines,
            )

        try:
            output_size = finalize_output(temp_path, spec.output_path)
        except FinalizeError as e:
            cleanup_temp_file(temp_path)
            logger.error("%s", e)
            return EncodeOutcome(success=False, error=e, last_lines=last_lines)

        logger.info("Encode finished: %s (%d bytes)", spec.output_path, output_size)
        return EncodeOutcome(success=True, output_size=output_size)

    @staticmethod
    async def _pump_stderr(
        process: asyncio.subprocess.Process,
        parser: ProgressParser,
        report: Callable[[float], None],
    ) -> None:
        stream = process.stderr
        if stream is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        last_percent: float | None = None
        while True:
            chunk = await stream.read(_READ_SIZE)
            if not chunk:
                break
            for percent in parser.feed(decoder.decode(chunk)):
                if percent != last_percent:
                    last_percent = percent
                    report(percent)
        tail = decoder.decode(b"", final=True)
        if tail:
            for percent in parser.feed(tail):
                report(percent)
