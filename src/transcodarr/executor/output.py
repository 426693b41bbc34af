"""Temp output paths and atomic finalization.

The encoder always writes to a temp file beside the final output so the
final rename never crosses filesystems.
"""

import logging
from pathlib import Path

from transcodarr.jobs.exceptions import FinalizeError

logger = logging.getLogger(__name__)

TEMP_MARKER = ".tmp"


def temp_output_path(output_path: Path) -> Path:
    """Return the staging path for ``output_path``.

    ``/media/movie [h265].mkv`` -> ``/media/movie [h265].tmp.mkv``
    """
    return output_path.with_name(f"{output_path.stem}{TEMP_MARKER}{output_path.suffix}")


def finalize_output(temp_path: Path, output_path: Path) -> int:
    """Atomically move the finished temp file into place.

    Args:
        temp_path: File written by the encoder.
        output_path: Final destination (replaced if it exists).

    Returns:
        Size of the final output in bytes.

    Raises:
        FinalizeError: If the rename or the stat fails.
    """
    try:
        temp_path.replace(output_path)
        size = output_path.stat().st_size
    except OSError as e:
        raise FinalizeError(f"Failed to finalize output file: {e}") from e
    logger.debug("Finalized %s (%d bytes)", output_path, size)
    return size


def cleanup_temp_file(path: Path) -> None:
    """Remove a temporary file, logging any errors.

    Args:
        path: Path to temp file to remove.
    """
    if path.exists():
        try:
            path.unlink()
            logger.debug("Cleaned up temp file: %s", path)
        except OSError as e:
            logger.warning("Could not clean up temp file %s: %s", path, e)
