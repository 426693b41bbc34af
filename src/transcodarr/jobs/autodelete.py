"""Source deletion after a successful encode.

The source is only removed once the finished output has been checked.
Nothing here changes job status; failures are logged.
"""

from __future__ import annotations

import logging
from pathlib import Path

from transcodarr.db.types import Job, JobStatus
from transcodarr.jobs.exceptions import AutoDeleteValidationError

logger = logging.getLogger(__name__)


def validate_output(output_path: Path, reported_size: int | None) -> int:
    """Check the finished output before its source is deleted.

    Args:
        output_path: Final output file.
        reported_size: Size reported by the supervisor at finalize time,
            or None if unknown.

    Returns:
        The output size in bytes.

    Raises:
        AutoDeleteValidationError: If the output is missing, empty, or its
            size differs from the reported size.
    """
    try:
        size = output_path.stat().st_size
    except OSError as e:
        raise AutoDeleteValidationError(
            f"Cannot stat output file {output_path}: {e}"
        ) from e

    if size <= 0:
        raise AutoDeleteValidationError(f"Output file is empty: {output_path}")

    if reported_size is not None and size != reported_size:
        raise AutoDeleteValidationError(
            f"Output size mismatch for {output_path}: "
            f"{size} bytes on disk, {reported_size} bytes reported"
        )
    return size


def auto_delete_source(job: Job | None, reported_size: int | None) -> bool:
    """Delete a completed job's source file if it asked for that.

    Args:
        job: Freshly re-read job record (None if it was removed).
        reported_size: Output size reported by the supervisor.

    Returns:
        True if the source file was deleted.
    """
    if job is None or not job.auto_delete_source:
        return False
    if job.status is not JobStatus.COMPLETED:
        logger.warning(
            "Not deleting source for job %s: status is %s", job.id, job.status.value
        )
        return False

    source = Path(job.input_path)
    try:
        validate_output(Path(job.output_path), reported_size)
    except AutoDeleteValidationError as e:
        logger.warning("Keeping source %s: %s", source, e)
        return False

    try:
        source.unlink()
    except FileNotFoundError:
        logger.warning("Source already gone: %s", source)
        return False
    except OSError as e:
        logger.error("Failed to delete source %s: %s", source, e)
        return False

    logger.info("Deleted source file %s", source)
    return True
