"""Type definitions for the transcodarr job database.

This module contains the enums and the dataclass mirroring rows of the
``jobs`` table.
"""

from dataclasses import dataclass
from enum import Enum


class JobStatus(Enum):
    """Status of a job in the queue."""

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Return True for states with no outgoing transitions."""
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED}
)


class Codec(Enum):
    """Target video codec selectable for a job."""

    X264 = "x264"
    X265 = "x265"
    AV1 = "av1"

    @property
    def filename_token(self) -> str:
        """Token written into derived output filenames (e.g. ``h265``)."""
        return _FILENAME_TOKENS[self]


_FILENAME_TOKENS = {
    Codec.X264: "h264",
    Codec.X265: "h265",
    Codec.AV1: "av1",
}


class HardwareKind(Enum):
    """Hardware encoder backend. NONE means the software encoder was used."""

    NVENC = "nvenc"
    QSV = "qsv"
    VIDEOTOOLBOX = "videotoolbox"
    NONE = "none"


@dataclass
class Job:
    """Database record for jobs table."""

    id: int | None  # INTEGER PRIMARY KEY, None before insert
    filename: str
    input_path: str
    output_path: str
    codec: Codec
    quality: int  # Constant-quality value (CRF / CQ)

    requested_hardware: bool = False
    resolved_hardware_kind: HardwareKind | None = None
    auto_delete_source: bool = False

    status: JobStatus = JobStatus.QUEUED
    progress: float = 0.0  # 0.0 - 100.0

    input_size: int | None = None  # bytes
    output_size: int | None = None  # bytes
    error_message: str | None = None

    # Timing (all ISO-8601 UTC)
    created_at: str | None = None
    started_at: str | None = None
    completed_at: str | None = None

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        return {
            "id": self.id,
            "filename": self.filename,
            "input_path": self.input_path,
            "output_path": self.output_path,
            "codec": self.codec.value,
            "quality": self.quality,
            "requested_hardware": self.requested_hardware,
            "resolved_hardware_kind": (
                self.resolved_hardware_kind.value
                if self.resolved_hardware_kind is not None
                else None
            ),
            "auto_delete_source": self.auto_delete_source,
            "status": self.status.value,
            "progress": self.progress,
            "input_size": self.input_size,
            "output_size": self.output_size,
            "error_message": self.error_message,
            "created_at": self.created_at,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }
