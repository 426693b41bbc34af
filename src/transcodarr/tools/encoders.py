"""Codec and hardware backend to ffmpeg encoder mapping.

``settings_for()`` is a pure lookup over (codec, hardware kind). Every
codec has a software entry; any hardware combination missing from
``HARDWARE_ENCODERS`` falls back to software.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from transcodarr.db.types import Codec, HardwareKind

# Patterns in ffmpeg output that indicate the hardware encoder could not
# be initialised (driver, device or session limits)
HW_ENCODER_ERROR_PATTERNS = (
    "cannot load",
    "no device available",
    "no capable devices found",
    "openencodesessionex failed",
    "hwaccel initialisation returned error",
    "failed to initialise",
    "error creating a mfx session",
    "unsupported device",
    "driver does not support",
    "cannot open encoder",
    "error while opening encoder",
    "out of memory",
)


@dataclass(frozen=True)
class EncoderSettings:
    """Encoder selected for a job plus its quality arguments."""

    encoder: str
    """FFmpeg encoder name (e.g., 'libx265', 'hevc_nvenc')."""

    args: tuple[str, ...]
    """Options placed after ``-c:v <encoder>``."""

    hardware: HardwareKind = HardwareKind.NONE
    """Backend actually used. NONE when the software table was used."""

    @property
    def is_hardware(self) -> bool:
        return self.hardware is not HardwareKind.NONE


def _crf(preset: str) -> Callable[[int], tuple[str, ...]]:
    return lambda q: ("-crf", str(q), "-preset", preset)


def _aom(q: int) -> tuple[str, ...]:
    # libaom needs -b:v 0 for pure constant-quality mode
    return ("-crf", str(q), "-b:v", "0", "-cpu-used", "6", "-row-mt", "1")


def _nvenc(q: int) -> tuple[str, ...]:
    return ("-rc", "vbr", "-cq", str(q), "-preset", "medium")


def _qsv(q: int) -> tuple[str, ...]:
    return ("-global_quality", str(q), "-preset", "medium")


def videotoolbox_quality(q: int) -> int:
    """Convert a CRF-style value (lower is better) to VideoToolbox -q:v.

    VideoToolbox uses 1-100 where higher is better.
    """
    return max(1, min(100, 100 - 2 * q))


def _videotoolbox(q: int) -> tuple[str, ...]:
    return ("-q:v", str(videotoolbox_quality(q)))


def _videotoolbox_hevc(q: int) -> tuple[str, ...]:
    # hvc1 tag so Apple players accept the stream
    return ("-q:v", str(videotoolbox_quality(q)), "-tag:v", "hvc1")


# Software encoder mappings by codec
SOFTWARE_ENCODERS: dict[Codec, tuple[str, Callable[[int], tuple[str, ...]]]] = {
    Codec.X264: ("libx264", _crf("medium")),
    Codec.X265: ("libx265", _crf("medium")),
    Codec.AV1: ("libaom-av1", _aom),
}

# Hardware encoder mappings by codec and hardware type
HARDWARE_ENCODERS: dict[
    Codec, dict[HardwareKind, tuple[str, Callable[[int], tuple[str, ...]]]]
] = {
    Codec.X264: {
        HardwareKind.NVENC: ("h264_nvenc", _nvenc),
        HardwareKind.QSV: ("h264_qsv", _qsv),
        HardwareKind.VIDEOTOOLBOX: ("h264_videotoolbox", _videotoolbox),
    },
    Codec.X265: {
        HardwareKind.NVENC: ("hevc_nvenc", _nvenc),
        HardwareKind.QSV: ("hevc_qsv", _qsv),
        HardwareKind.VIDEOTOOLBOX: ("hevc_videotoolbox", _videotoolbox_hevc),
    },
    Codec.AV1: {
        HardwareKind.NVENC: ("av1_nvenc", _nvenc),  # RTX 40 series only
        HardwareKind.QSV: ("av1_qsv", _qsv),  # Intel Arc / newer iGPU
    },
}


def hardware_encoder_name(codec: Codec, hardware: HardwareKind) -> str | None:
    """Return the ffmpeg encoder for a hardware combination, or None."""
    entry = HARDWARE_ENCODERS[codec].get(hardware)
    return entry[0] if entry is not None else None


def settings_for(
    codec: Codec, hardware: HardwareKind | None, quality: int
) -> EncoderSettings:
    """Map (codec, hardware kind, quality) to an encoder and its options.

    Args:
        codec: Target codec.
        hardware: Hardware backend, or None / HardwareKind.NONE for software.
        quality: Constant-quality value.

    Returns:
        EncoderSettings. ``hardware`` is NONE if the software path was used.
    """
    if hardware is not None and hardware is not HardwareKind.NONE:
        entry = HARDWARE_ENCODERS[codec].get(hardware)
        if entry is not None:
            encoder, build_args = entry
            return EncoderSettings(encoder, build_args(quality), hardware)

    encoder, build_args = SOFTWARE_ENCODERS[codec]
    return EncoderSettings(encoder, build_args(quality), HardwareKind.NONE)


def detect_hw_encoder_error(stderr_output: str) -> bool:
    """Check if ffmpeg stderr output indicates a hardware encoder failure.

    Args:
        stderr_output: ffmpeg stderr output to analyze.

    Returns:
        True if output suggests retrying with a software encoder.
    """
    stderr_lower = stderr_output.lower()
    return any(pattern in stderr_lower for pattern in HW_ENCODER_ERROR_PATTERNS)
