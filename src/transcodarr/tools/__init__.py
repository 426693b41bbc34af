"""External tool integration: capability probing, encoder mapping and ffmpeg output parsing."""

from transcodarr.tools.capabilities import (
    NO_HARDWARE,
    CapabilityInfo,
    CapabilityResolver,
    parse_encoder_list,
)
from transcodarr.tools.encoders import (
    HARDWARE_ENCODERS,
    SOFTWARE_ENCODERS,
    EncoderSettings,
    detect_hw_encoder_error,
    settings_for,
)
from transcodarr.tools.ffmpeg_progress import ProgressParser, compute_percent
from transcodarr.tools.ffprobe import MediaInfo, StreamInfo, probe_media

__all__ = [
    "NO_HARDWARE",
    "CapabilityInfo",
    "CapabilityResolver",
    "parse_encoder_list",
    "HARDWARE_ENCODERS",
    "SOFTWARE_ENCODERS",
    "EncoderSettings",
    "detect_hw_encoder_error",
    "settings_for",
    "ProgressParser",
    "compute_percent",
    "MediaInfo",
    "StreamInfo",
    "probe_media",
]
