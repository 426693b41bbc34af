"""Encoder invocation: command building, output finalization and process supervision."""

from transcodarr.executor.command import build_ffmpeg_command, scale_filter
from transcodarr.executor.output import (
    cleanup_temp_file,
    finalize_output,
    temp_output_path,
)
from transcodarr.executor.supervisor import (
    EncodeOutcome,
    EncodeSpec,
    ProcessHandle,
    ProcessSupervisor,
)

__all__ = [
    "build_ffmpeg_command",
    "scale_filter",
    "cleanup_temp_file",
    "finalize_output",
    "temp_output_path",
    "EncodeOutcome",
    "EncodeSpec",
    "ProcessHandle",
    "ProcessSupervisor",
]
