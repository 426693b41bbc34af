"""Concurrency-limited job scheduler.

The scheduler polls the job store, starts queued jobs while fewer than
``max_concurrent_jobs`` are running, and persists what the supervisor
reports back. Supervisor callbacks only enqueue events; the scheduler's
loop applies them, so the registry of running jobs and every job status
change are written from one place.

Every launch carries a generation number. Events whose (job id,
generation) no longer matches the registry, for example from a process
that was force-stopped and removed, are dropped.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from transcodarr.db.queries import utc_now_iso
from transcodarr.db.types import HardwareKind, Job, JobStatus
from transcodarr.executor.output import cleanup_temp_file, temp_output_path
from transcodarr.executor.supervisor import (
    EncodeOutcome,
    EncodeSpec,
    ProcessHandle,
    ProcessSupervisor,
)
from transcodarr.jobs.autodelete import auto_delete_source
from transcodarr.jobs.exceptions import (
    InvalidTransitionError,
    JobBusyError,
    JobNotFoundError,
    StoreError,
)
from transcodarr.jobs.store import JobStore
from transcodarr.logging.context import job_context
from transcodarr.tools.capabilities import CapabilityResolver
from transcodarr.tools.encoders import settings_for

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0

INTERRUPTED_MESSAGE = "Interrupted: transcodarr stopped while this job was running"

# Number of consecutive failed ticks before marking unhealthy
_UNHEALTHY_THRESHOLD = 3


@dataclass(frozen=True)
class ProgressEvent:
    job_id: int
    generation: int
    percent: float


@dataclass(frozen=True)
class CompletionEvent:
    job_id: int
    generation: int
    outcome: EncodeOutcome


_STOP = object()


@dataclass
class RunningJob:
    """Registry entry for a job with a live process."""

    job: Job
    handle: ProcessHandle
    fallback_used: bool = False

    @property
    def generation(self) -> int:
        return self.handle.generation

    @property
    def hardware(self) -> HardwareKind:
        return self.handle.spec.settings.hardware


class Scheduler:
    """Turns queued job records into supervised encoder processes.

    Usage:
        scheduler = Scheduler(store, ProcessSupervisor(), CapabilityResolver())
        task = asyncio.create_task(scheduler.run())
        ...
        await scheduler.shutdown()
    """

    def __init__(
        self,
        store: JobStore,
        supervisor: ProcessSupervisor,
        capabilities: CapabilityResolver,
        *,
        max_concurrent_jobs: int = 1,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        target_width: int | None = None,
        hardware_fallback: bool = True,
    ) -> None:
        """Initialize the scheduler.

        Args:
            store: Job store.
            supervisor: Launches encoder processes.
            capabilities: Hardware capability resolver.
            max_concurrent_jobs: Concurrency ceiling (>= 1).
            poll_interval: Seconds between ticks.
            target_width: Optional width passed to every encode.
            hardware_fallback: Retry once in software after a hardware
                encoder initialisation failure.
        """
        if max_concurrent_jobs < 1:
            raise ValueError("max_concurrent_jobs must be at least 1")
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")

        self._store = store
        self._supervisor = supervisor
        self._capabilities = capabilities
        self.max_concurrent_jobs = max_concurrent_jobs
        self.poll_interval = poll_interval
        self.target_width = target_width
        self.hardware_fallback = hardware_fallback

        self._running: dict[int, RunningJob] = {}
        self._events: asyncio.Queue[Any] = asyncio.Queue()
        self._stop_event = asyncio.Event()
        self._loop_task: asyncio.Task | None = None

        self._tick_count = 0
        self._last_tick: datetime | None = None
        self._consecutive_failures = 0
        self._is_healthy = True

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def running_job_ids(self) -> list[int]:
        """IDs of jobs with a live process, in start order."""
        return list(self._running)

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    @property
    def is_healthy(self) -> bool:
        return self._is_healthy

    def status(self) -> dict[str, Any]:
        """Scheduler state for health reporting."""
        return {
            "running": self.is_running,
            "healthy": self._is_healthy,
            "active_jobs": self.running_job_ids,
            "max_concurrent_jobs": self.max_concurrent_jobs,
            "tick_count": self._tick_count,
            "last_tick": self._last_tick.isoformat() if self._last_tick else None,
        }

    def get_handle(self, job_id: int) -> ProcessHandle | None:
        entry = self._running.get(job_id)
        return entry.handle if entry is not None else None

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    async def run(self) -> None:
        """Run until ``stop()`` is called.

        Recovers interrupted jobs, ticks immediately, then ticks every
        ``poll_interval`` seconds while applying supervisor events as they
        arrive.
        """
        if self.is_running:
            logger.warning("Scheduler already running")
            return
        self._loop_task = asyncio.current_task()
        loop = asyncio.get_running_loop()

        logger.info(
            "Scheduler started (max %d concurrent, interval %.1fs)",
            self.max_concurrent_jobs,
            self.poll_interval,
        )
        try:
            try:
                await self.recover_interrupted_jobs()
            except StoreError as e:
                logger.error("Startup recovery failed: %s", e)

            while not self._stop_event.is_set():
                await self._safe_tick()

                deadline = loop.time() + self.poll_interval
                while not self._stop_event.is_set():
                    remaining = deadline - loop.time()
                    if remaining <= 0:
                        break
                    try:
                        event = await asyncio.wait_for(
                            self._events.get(), timeout=remaining
                        )
                    except asyncio.TimeoutError:
                        break
                    if event is _STOP:
                        break
                    await self._safe_dispatch(event)
                    if isinstance(event, CompletionEvent):
                        # A slot may have freed up
                        await self._safe_tick()
                        deadline = loop.time() + self.poll_interval
        finally:
            logger.info("Scheduler stopped")

    def stop(self) -> None:
        """Stop ticking. Running processes are left alone."""
        self._stop_event.set()
        self._events.put_nowait(_STOP)

    async def shutdown(self, timeout: float = 30.0, abandon: bool = False) -> None:
        """Stop the loop and deal with in-flight jobs.

        Args:
            timeout: Seconds to wait for stopped processes to exit before
                killing them.
            abandon: Leave running jobs as they are. They are marked
                interrupted on the next start.
        """
        self.stop()
        task = self._loop_task
        if task is not None and task is not asyncio.current_task():
            await asyncio.gather(task, return_exceptions=True)

        entries = list(self._running.values())
        if not entries:
            return

        if abandon:
            logger.info("Abandoning %d running job(s)", len(entries))
            for entry in entries:
                if entry.handle.task is not None:
                    entry.handle.task.cancel()
            await asyncio.gather(
                *(e.handle.task for e in entries if e.handle.task is not None),
                return_exceptions=True,
            )
            self._running.clear()
            return

        logger.info("Stopping %d running job(s)", len(entries))
        for entry in entries:
            self._supervisor.cancel(entry.handle, forceful=False)
        for entry in entries:
            if not await self._supervisor.wait(entry.handle, timeout=timeout):
                logger.warning(
                    "Job %d did not stop within %.0fs; killing", entry.job.id, timeout
                )
                self._supervisor.cancel(entry.handle, forceful=True)
                await self._supervisor.wait(entry.handle)
        await self.process_pending_events()

    async def _safe_tick(self) -> None:
        try:
            await self.tick()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._consecutive_failures += 1
            if (
                self._consecutive_failures >= _UNHEALTHY_THRESHOLD
                and self._is_healthy
            ):
                self._is_healthy = False
                logger.error(
                    "Scheduler marked unhealthy after %d consecutive failures",
                    self._consecutive_failures,
                )
            logger.exception("Scheduler tick failed: %s", e)
        else:
            self._consecutive_failures = 0
            if not self._is_healthy:
                self._is_healthy = True
                logger.info("Scheduler recovered, marking healthy")

    async def tick(self) -> int:
        """Start queued jobs until the concurrency ceiling is reached.

        Returns:
            Number of jobs started.
        """
        self._tick_count += 1
        self._last_tick = datetime.now(timezone.utc)

        running_count = len(await self._store.get_running_jobs())
        started = 0
        while running_count < self.max_concurrent_jobs:
            job = await self._store.get_next_queued_job()
            if job is None:
                break
            if await self._start_job(job):
                started += 1
                running_count += 1
        return started

    async def _resolve_hardware(self, job: Job) -> HardwareKind:
        if not job.requested_hardware:
            return HardwareKind.NONE
        # First probe runs subprocesses; keep it off the event loop
        info = await asyncio.to_thread(self._capabilities.probe)
        return info.preferred_for(job.codec) or HardwareKind.NONE

    async def _start_job(self, job: Job) -> bool:
        assert job.id is not None
        with job_context(job.id):
            hardware = await self._resolve_hardware(job)
            fields: dict[str, Any] = {
                "started_at": utc_now_iso(),
                "progress": 0.0,
                "resolved_hardware_kind": hardware,
            }
            if job.requested_hardware and hardware is HardwareKind.NONE:
                logger.warning(
                    "Hardware encoding requested but no backend supports %s; "
                    "using software encoder",
                    job.codec.value,
                )
                fields["requested_hardware"] = False

            if not await self._store.transition(
                job.id, JobStatus.RUNNING, fields, expected=(JobStatus.QUEUED,)
            ):
                logger.info("Job is no longer queued; skipping")
                return False

            job.status = JobStatus.RUNNING
            self._launch(job, hardware)
            logger.info(
                "Started job: %s (%s, q=%d, %s)",
                job.filename,
                job.codec.value,
                job.quality,
                hardware.value,
            )
            return True

    def _launch(
        self, job: Job, hardware: HardwareKind, fallback_used: bool = False
    ) -> RunningJob:
        assert job.id is not None
        spec = EncodeSpec(
            job_id=job.id,
            input_path=Path(job.input_path),
            output_path=Path(job.output_path),
            settings=settings_for(job.codec, hardware, job.quality),
            target_width=self.target_width,
        )
        handle = self._supervisor.start(spec, self._on_progress, self._on_complete)
        entry = RunningJob(job=job, handle=handle, fallback_used=fallback_used)
        self._running[job.id] = entry
        return entry

    # ------------------------------------------------------------------
    # Supervisor events
    # ------------------------------------------------------------------

    def _on_progress(self, handle: ProcessHandle, percent: float) -> None:
        self._events.put_nowait(ProgressEvent(handle.job_id, handle.generation, percent))

    def _on_complete(self, handle: ProcessHandle, outcome: EncodeOutcome) -> None:
        self._events.put_nowait(
            CompletionEvent(handle.job_id, handle.generation, outcome)
        )

    async def process_pending_events(self) -> int:
        """Apply every queued supervisor event without waiting for more.

        Returns:
            Number of events applied.
        """
        handled = 0
        while True:
            try:
                event = self._events.get_nowait()
            except asyncio.QueueEmpty:
                return handled
            if event is _STOP:
                continue
            await self._safe_dispatch(event)
            handled += 1

    async def _safe_dispatch(self, event: ProgressEvent | CompletionEvent) -> None:
        try:
            await self._dispatch(event)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Failed to apply %s", type(event).__name__)

    async def _dispatch(self, event: ProgressEvent | CompletionEvent) -> None:
        entry = self._running.get(event.job_id)
        if entry is None or entry.generation != event.generation:
            logger.debug(
                "Dropping stale %s for job %d (generation %d)",
                type(event).__name__,
                event.job_id,
                event.generation,
            )
            return

        with job_context(event.job_id):
            if isinstance(event, ProgressEvent):
                await self._apply_progress(event)
            else:
                await self._apply_completion(entry, event.outcome)

    async def _apply_progress(self, event: ProgressEvent) -> None:
        try:
            await self._store.update_job(event.job_id, {"progress": event.percent})
        except StoreError as e:
            logger.warning("Failed to persist progress %.1f%%: %s", event.percent, e)

    async def _persist_terminal(
        self, job_id: int, status: JobStatus, fields: dict[str, Any]
    ) -> bool:
        values = {"completed_at": utc_now_iso(), **fields}
        try:
            updated = await self._store.transition(job_id, status, values)
        except StoreError as e:
            logger.error("Failed to mark job %s: %s", status.value, e)
            return False
        if not updated:
            logger.warning("Job was removed or already finished; not marking %s",
                           status.value)
        return updated

    async def _apply_completion(self, entry: RunningJob, outcome: EncodeOutcome) -> None:
        job = entry.job
        assert job.id is not None

        if outcome.success:
            del self._running[job.id]
            updated = await self._persist_terminal(
                job.id,
                JobStatus.COMPLETED,
                {
                    "progress": 100.0,
                    "output_size": outcome.output_size,
                    "error_message": None,
                },
            )
            logger.info("Job completed: %s", job.filename)
            if updated and job.auto_delete_source:
                await self._auto_delete(job.id, outcome.output_size)
            return

        if outcome.cancelled:
            del self._running[job.id]
            await self._persist_terminal(
                job.id, JobStatus.CANCELLED, {"error_message": "Cancelled by user"}
            )
            logger.info("Job cancelled: %s", job.filename)
            return

        if (
            self.hardware_fallback
            and not entry.fallback_used
            and entry.hardware is not HardwareKind.NONE
            and outcome.hardware_error
            and not self._stop_event.is_set()
        ):
            logger.warning(
                "Hardware encoder %s failed; retrying with software encoder",
                entry.hardware.value,
            )
            try:
                await self._store.update_job(
                    job.id,
                    {
                        "progress": 0.0,
                        "resolved_hardware_kind": HardwareKind.NONE,
                        "requested_hardware": False,
                    },
                )
            except StoreError as e:
                logger.warning("Failed to record software fallback: %s", e)
            job.requested_hardware = False
            self._launch(job, HardwareKind.NONE, fallback_used=True)
            return

        del self._running[job.id]
        await self._persist_terminal(
            job.id, JobStatus.FAILED, {"error_message": outcome.error_message}
        )
        logger.error("Job failed: %s", outcome.error_message)

    async def _auto_delete(self, job_id: int, output_size: int | None) -> None:
        try:
            job = await self._store.get_job(job_id)
        except StoreError as e:
            logger.warning("Skipping source deletion; cannot re-read job: %s", e)
            return
        await asyncio.to_thread(auto_delete_source, job, output_size)

    # ------------------------------------------------------------------
    # Control operations
    # ------------------------------------------------------------------

    async def stop_job(self, job_id: int) -> bool:
        """Gracefully stop a running job or cancel a queued one.

        A running job is signalled and becomes ``cancelled`` once its
        process exits. A queued job becomes ``cancelled`` immediately.

        Returns:
            True if a stop signal was sent or the job was cancelled, False
            if the job was already being stopped.

        Raises:
            JobNotFoundError: If the job does not exist.
            InvalidTransitionError: If the job is already finished.
        """
        entry = self._running.get(job_id)
        if entry is not None:
            with job_context(job_id):
                logger.info("Stopping job")
            return self._supervisor.cancel(entry.handle, forceful=False)

        job = await self._store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id, "stop")

        if job.status is JobStatus.QUEUED:
            if await self._store.transition(
                job_id,
                JobStatus.CANCELLED,
                {"completed_at": utc_now_iso(), "error_message": "Cancelled by user"},
                expected=(JobStatus.QUEUED,),
            ):
                with job_context(job_id):
                    logger.info("Cancelled queued job")
                return True
            # Started between the read and the write
            entry = self._running.get(job_id)
            if entry is not None:
                return self._supervisor.cancel(entry.handle, forceful=False)
            job = await self._store.get_job(job_id)
            if job is None:
                raise JobNotFoundError(job_id, "stop")

        if job.status is JobStatus.RUNNING:
            # Running in the store but no live process: left over from a
            # previous run
            return await self._store.transition(
                job_id,
                JobStatus.CANCELLED,
                {"completed_at": utc_now_iso(), "error_message": "Cancelled by user"},
                expected=(JobStatus.RUNNING,),
            )

        raise InvalidTransitionError(job_id, job.status.value, "cancelled")

    async def force_stop_and_remove(self, job_id: int) -> bool:
        """Kill a job's process if any and delete its record.

        Bypasses the state machine. A completion event from the killed
        process arrives later and is dropped.

        Raises:
            JobNotFoundError: If there was neither a process nor a record.
        """
        entry = self._running.pop(job_id, None)
        if entry is not None:
            with job_context(job_id):
                logger.info("Force-stopping job (pid %s)", entry.handle.pid)
            self._supervisor.cancel(entry.handle, forceful=True)

        deleted = await self._store.delete_job(job_id)
        if not deleted and entry is None:
            raise JobNotFoundError(job_id, "remove")
        logger.info("Removed job %d", job_id)
        return True

    async def delete_job(self, job_id: int) -> bool:
        """Delete a job record that is not running.

        Raises:
            JobNotFoundError: If the job does not exist.
            JobBusyError: If the job is running.
        """
        job = await self._store.get_job(job_id)
        if job is None:
            raise JobNotFoundError(job_id, "delete")
        if job_id in self._running or job.status is JobStatus.RUNNING:
            raise JobBusyError(job_id, "delete")
        return await self._store.delete_job(job_id)

    async def recover_interrupted_jobs(self) -> int:
        """Fail jobs left ``running`` by a previous process.

        Returns:
            Number of jobs marked failed.
        """
        recovered = 0
        for job in await self._store.get_running_jobs():
            assert job.id is not None
            if job.id in self._running:
                continue
            with job_context(job.id):
                cleanup_temp_file(temp_output_path(Path(job.output_path)))
                if await self._store.transition(
                    job.id,
                    JobStatus.FAILED,
                    {"completed_at": utc_now_iso(), "error_message": INTERRUPTED_MESSAGE},
                    expected=(JobStatus.RUNNING,),
                ):
                    logger.warning("Marked interrupted job as failed: %s", job.filename)
                    recovered += 1
        return recovered
