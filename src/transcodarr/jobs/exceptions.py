"""Exception types for job submission, supervision and scheduling.

Validation errors are raised to the caller and no job is created. Errors
that happen while a job is being encoded are delivered to the scheduler as
values on an ``EncodeOutcome`` and turned into a ``failed`` job record.
"""

from __future__ import annotations


class TranscodarrError(Exception):
    """Base exception for all transcodarr errors."""


class JobValidationError(TranscodarrError):
    """Raised when a submission has a bad codec, quality or path."""


class PathSecurityError(JobValidationError):
    """Raised when a submitted path escapes the allowed media roots.

    Attributes:
        path: The offending path as supplied.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Path is outside the allowed media directory: {path}")


class ProcessSpawnError(TranscodarrError):
    """Raised when the encoder binary is missing or cannot be started."""


class ProcessExitError(TranscodarrError):
    """Raised when the encoder exits with a non-zero code.

    Attributes:
        exit_code: Process return code (negative for signals).
        last_lines: Trailing diagnostic lines captured from stderr.
    """

    def __init__(self, exit_code: int, last_lines: list[str] | None = None) -> None:
        self.exit_code = exit_code
        self.last_lines = list(last_lines or [])
        message = f"FFmpeg exited with code {exit_code}"
        if self.last_lines:
            message += "\n" + "\n".join(self.last_lines)
        super().__init__(message)


class FinalizeError(TranscodarrError):
    """Raised when renaming or stat-ing the finished output fails."""


class AutoDeleteValidationError(TranscodarrError):
    """Raised when the finished output does not justify deleting the source."""


class StoreError(TranscodarrError):
    """Raised when a job store read or write fails."""


class JobNotFoundError(TranscodarrError):
    """Raised when a job doesn't exist in the database.

    Attributes:
        job_id: The ID of the job that was not found.
        operation: The operation that was attempted (e.g., "stop", "delete").
    """

    def __init__(self, job_id: int, operation: str) -> None:
        self.job_id = job_id
        self.operation = operation
        super().__init__(f"Cannot {operation} job {job_id}: not found")


class InvalidTransitionError(TranscodarrError):
    """Raised when a status change is not allowed by the job state machine."""

    def __init__(self, job_id: int | None, current: str, target: str) -> None:
        self.job_id = job_id
        self.current = current
        self.target = target
        super().__init__(f"Job {job_id}: cannot move from '{current}' to '{target}'")


class MediaProbeError(TranscodarrError):
    """Raised when ffprobe cannot read a media file."""


class JobBusyError(TranscodarrError):
    """Raised when an operation is refused because the job is running."""

    def __init__(self, job_id: int, operation: str) -> None:
        self.job_id = job_id
        self.operation = operation
        super().__init__(f"Cannot {operation} job {job_id} while it is running")
