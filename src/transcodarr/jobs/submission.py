"""Encode request validation and job creation.

Turns a user request (a list of files plus encode settings) into queued
job records. Each file is validated on its own; the request only fails as
a whole when no job could be created.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from transcodarr.db.queries import utc_now_iso
from transcodarr.db.types import Codec, Job
from transcodarr.jobs.exceptions import (
    JobValidationError,
    PathSecurityError,
    StoreError,
)
from transcodarr.jobs.store import JobStore

logger = logging.getLogger(__name__)

OUTPUT_EXTENSION = ".mkv"

DEFAULT_QUALITY_MIN = 18
DEFAULT_QUALITY_MAX = 31

# Codec names that may already appear in a release filename
_CODEC_TOKEN = re.compile(
    r"(?<![A-Za-z0-9])(x264|x265|h264|h265|hevc|av1)(?![A-Za-z0-9])",
    re.IGNORECASE,
)


class EncodeRequest(BaseModel):
    """Request body for queuing one or more encodes."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    files: list[str] = Field(min_length=1)
    codec: Codec
    quality: int = Field(ge=0, le=63)
    use_hardware: bool = True
    auto_delete: bool = False

    @field_validator("files")
    @classmethod
    def validate_files(cls, v: list[str]) -> list[str]:
        """Reject blank entries."""
        if any(not f.strip() for f in v):
            raise ValueError("File paths must not be empty")
        return v


@dataclass
class SubmissionResult:
    """Outcome of a submission: created jobs and per-file rejections."""

    jobs: list[Job] = field(default_factory=list)
    rejected: dict[str, str] = field(default_factory=dict)

    @property
    def message(self) -> str:
        count = len(self.jobs)
        return f"Created {count} encoding job{'s' if count != 1 else ''}"

    def to_dict(self) -> dict:
        return {
            "success": bool(self.jobs),
            "jobs": [job.to_dict() for job in self.jobs],
            "rejected": self.rejected,
            "message": self.message,
        }


def validate_media_path(path: str | Path, media_roots: Sequence[Path]) -> Path:
    """Resolve ``path`` and ensure it lies inside an allowed root.

    Relative paths are resolved against the first root.

    Args:
        path: User-supplied path.
        media_roots: Allowed media directories.

    Returns:
        Resolved absolute path.

    Raises:
        PathSecurityError: If the path escapes every root, or no roots
            are configured.
        JobValidationError: If the path contains a NUL byte.
    """
    if not media_roots:
        raise PathSecurityError(str(path))
    if "\x00" in str(path):
        raise JobValidationError(f"Invalid path {path!r}: embedded null byte")

    candidate = Path(path).expanduser()
    if not candidate.is_absolute():
        candidate = media_roots[0] / candidate
    resolved = Path(os.path.realpath(candidate))

    for root in media_roots:
        root_resolved = Path(os.path.realpath(root))
        if resolved == root_resolved or resolved.is_relative_to(root_resolved):
            return resolved

    raise PathSecurityError(str(path))


def derive_output_path(input_path: Path, codec: Codec) -> Path:
    """Derive the output path for encoding ``input_path`` to ``codec``.

    An existing codec token in the name is replaced; otherwise a bracketed
    token is appended. The extension is always ``.mkv``.

    Examples:
        movie_x265.mkv + x264 -> movie_h264.mkv
        clip.mkv + x265 -> clip [h265].mkv
    """
    token = codec.filename_token
    stem = input_path.stem
    new_stem, replaced = _CODEC_TOKEN.subn(token, stem, count=1)
    if not replaced:
        new_stem = f"{stem} [{token}]"

    output_path = input_path.with_name(f"{new_stem}{OUTPUT_EXTENSION}")
    if output_path == input_path:
        # Already named for the target codec
        output_path = input_path.with_name(f"{stem} [{token}]{OUTPUT_EXTENSION}")
    return output_path


def validate_quality(
    quality: int,
    quality_min: int = DEFAULT_QUALITY_MIN,
    quality_max: int = DEFAULT_QUALITY_MAX,
) -> None:
    """Raise JobValidationError if quality is outside the allowed range."""
    if not quality_min <= quality <= quality_max:
        raise JobValidationError(
            f"Invalid quality value {quality}. "
            f"Must be between {quality_min} and {quality_max}"
        )


def build_job(
    file: str, request: EncodeRequest, media_roots: Sequence[Path]
) -> Job:
    """Validate one file and build its (unsaved) job record.

    Raises:
        PathSecurityError: If the file is outside the media roots.
        JobValidationError: If the file is missing or not a regular file.
    """
    input_path = validate_media_path(file, media_roots)
    try:
        stat = input_path.stat()
    except (OSError, ValueError) as e:
        raise JobValidationError(f"Cannot read {file}: {e.strerror or e}") from e
    if not input_path.is_file():
        raise JobValidationError(f"Not a file: {file}")

    return Job(
        id=None,
        filename=input_path.name,
        input_path=str(input_path),
        output_path=str(derive_output_path(input_path, request.codec)),
        codec=request.codec,
        quality=request.quality,
        requested_hardware=request.use_hardware,
        auto_delete_source=request.auto_delete,
        input_size=stat.st_size,
        created_at=utc_now_iso(),
    )


async def submit_encode_request(
    store: JobStore,
    request: EncodeRequest,
    media_roots: Sequence[Path],
    quality_range: tuple[int, int] = (DEFAULT_QUALITY_MIN, DEFAULT_QUALITY_MAX),
) -> SubmissionResult:
    """Create one queued job per acceptable file.

    Args:
        store: Job store.
        request: Validated request.
        media_roots: Allowed media directories.
        quality_range: Inclusive (min, max) quality bounds.

    Returns:
        SubmissionResult with created jobs and rejected files.

    Raises:
        JobValidationError: If the quality is out of range or no job was
            created.
    """
    validate_quality(request.quality, *quality_range)

    result = SubmissionResult()
    for file in request.files:
        try:
            job = build_job(file, request, media_roots)
            job.id = await store.create_job(job)
        except (JobValidationError, StoreError) as e:
            logger.warning("Skipping %s: %s", file, e)
            result.rejected[file] = str(e)
            continue
        logger.info(
            "Queued job %d: %s -> %s (%s, q=%d)",
            job.id,
            job.filename,
            Path(job.output_path).name,
            job.codec.value,
            job.quality,
        )
        result.jobs.append(job)

    if not result.jobs:
        raise JobValidationError("No valid jobs could be created")
    return result
