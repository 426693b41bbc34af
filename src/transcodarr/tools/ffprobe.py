"""ffprobe wrapper returning container duration and stream metadata."""

from __future__ import annotations

import json
import subprocess  # nosec B404 - subprocess is required for ffprobe invocation
from dataclasses import dataclass, field
from pathlib import Path

from transcodarr.jobs.exceptions import MediaProbeError

# Prevent hangs on corrupted files
PROBE_TIMEOUT = 60


@dataclass(frozen=True)
class StreamInfo:
    """One stream from the ffprobe ``streams`` array."""

    index: int
    codec_type: str
    codec_name: str | None = None
    width: int | None = None
    height: int | None = None
    language: str | None = None

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "codec_type": self.codec_type,
            "codec_name": self.codec_name,
            "width": self.width,
            "height": self.height,
            "language": self.language,
        }


@dataclass(frozen=True)
class MediaInfo:
    """Container-level metadata for a media file."""

    path: Path
    duration: float | None
    format_name: str | None
    size: int | None
    streams: tuple[StreamInfo, ...] = field(default_factory=tuple)

    @property
    def video_streams(self) -> list[StreamInfo]:
        return [s for s in self.streams if s.codec_type == "video"]

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "duration": self.duration,
            "format_name": self.format_name,
            "size": self.size,
            "streams": [s.to_dict() for s in self.streams],
        }


def _to_float(value: object) -> float | None:
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _to_int(value: object) -> int | None:
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def parse_ffprobe_output(path: Path, data: dict) -> MediaInfo:
    """Convert parsed ffprobe JSON into a MediaInfo.

    Raises:
        MediaProbeError: If ``format`` or ``streams`` is missing.
    """
    if "streams" not in data or "format" not in data:
        raise MediaProbeError(
            f"Missing 'format' or 'streams' in ffprobe output for {path}. "
            "File may be corrupted or not a valid media file."
        )

    fmt = data["format"]
    streams = tuple(
        StreamInfo(
            index=stream.get("index", i),
            codec_type=stream.get("codec_type", "unknown"),
            codec_name=stream.get("codec_name"),
            width=_to_int(stream.get("width")),
            height=_to_int(stream.get("height")),
            language=(stream.get("tags") or {}).get("language"),
        )
        for i, stream in enumerate(data["streams"])
    )
    return MediaInfo(
        path=path,
        duration=_to_float(fmt.get("duration")),
        format_name=fmt.get("format_name"),
        size=_to_int(fmt.get("size")),
        streams=streams,
    )


def probe_media(path: Path, ffprobe_path: str = "ffprobe") -> MediaInfo:
    """Run ffprobe against ``path``.

    Args:
        path: Media file to inspect.
        ffprobe_path: ffprobe executable.

    Returns:
        MediaInfo with duration and streams.

    Raises:
        MediaProbeError: If the file is missing or ffprobe fails.
    """
    if not path.exists():
        raise MediaProbeError(f"File not found: {path}")

    try:
        result = subprocess.run(  # nosec B603 - ffprobe path comes from config
            [
                ffprobe_path,
                "-v",
                "quiet",
                "-print_format",
                "json",
                "-show_format",
                "-show_streams",
                str(path),
            ],
            capture_output=True,
            text=True,
            errors="replace",
            check=True,
            timeout=PROBE_TIMEOUT,
        )
        data = json.loads(result.stdout)
    except FileNotFoundError as e:
        raise MediaProbeError(f"ffprobe not found: {ffprobe_path}") from e
    except subprocess.TimeoutExpired as e:
        raise MediaProbeError(f"ffprobe timed out for {path} after {e.timeout}s") from e
    except subprocess.CalledProcessError as e:
        raise MediaProbeError(f"ffprobe failed for {path}: {e.stderr or e}") from e
    except json.JSONDecodeError as e:
        raise MediaProbeError(f"Invalid ffprobe output for {path}: {e}") from e

    return parse_ffprobe_output(path, data)
