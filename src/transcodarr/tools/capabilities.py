"""Hardware encoder capability detection.

Probes ffmpeg once for the hardware encoders it was built with and caches
the result for the lifetime of the process. A missing ffmpeg, a non-zero
exit or a timeout all mean "no hardware available"; probing never raises.
"""

from __future__ import annotations

import logging
import platform
import re
import subprocess  # nosec B404 - subprocess is required for capability probing
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from transcodarr.db.types import Codec, HardwareKind
from transcodarr.tools.encoders import HARDWARE_ENCODERS

logger = logging.getLogger(__name__)

# Timeout for probe commands (seconds)
PROBE_TIMEOUT = 10

# Platform-ordered backend preference
_PREFERENCE_ORDER: dict[str, tuple[HardwareKind, ...]] = {
    "Darwin": (HardwareKind.VIDEOTOOLBOX, HardwareKind.NVENC, HardwareKind.QSV),
}
_DEFAULT_PREFERENCE = (HardwareKind.NVENC, HardwareKind.QSV, HardwareKind.VIDEOTOOLBOX)

# Format: " V....D h264_nvenc           NVIDIA NVENC H.264 encoder (codec h264)"
_ENCODER_LINE = re.compile(r"\s+[VASFXBDI.]{6}\s+(\w[\w-]*)")

CommandRunner = Callable[[list[str]], tuple[str, str, int]]


def _run_command(args: list[str], timeout: int = PROBE_TIMEOUT) -> tuple[str, str, int]:
    """Run a probe command and capture output.

    Returns:
        Tuple of (stdout, stderr, returncode). returncode is -1 when the
        command could not be run at all.
    """
    try:
        result = subprocess.run(  # nosec B603 - args are tool paths and fixed flags
            args,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
        )
        return result.stdout, result.stderr, result.returncode
    except subprocess.TimeoutExpired:
        logger.warning("Command timed out: %s", " ".join(args))
        return "", "timeout", -1
    except FileNotFoundError:
        return "", "not found", -1
    except OSError as e:
        logger.warning("Command failed: %s - %s", " ".join(args), e)
        return "", str(e), -1


def parse_encoder_list(output: str) -> set[str]:
    """Parse ``ffmpeg -encoders`` output into a set of encoder names."""
    return {
        match.group(1).casefold()
        for line in output.splitlines()
        if (match := _ENCODER_LINE.match(line))
    }


@dataclass(frozen=True)
class CapabilityInfo:
    """Snapshot of usable hardware backends on this host."""

    codecs: Mapping[HardwareKind, frozenset[Codec]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    """Backend -> codecs it can encode. Only backends with at least one codec."""

    preferred: HardwareKind | None = None
    """First available backend in platform preference order."""

    order: tuple[HardwareKind, ...] = _DEFAULT_PREFERENCE
    """Preference order used to pick ``preferred``."""

    @property
    def backends(self) -> frozenset[HardwareKind]:
        """Set of available hardware backends."""
        return frozenset(self.codecs)

    @property
    def has_hardware(self) -> bool:
        return bool(self.codecs)

    def supports(self, hardware: HardwareKind, codec: Codec) -> bool:
        """Return True if ``hardware`` can encode ``codec`` on this host."""
        return codec in self.codecs.get(hardware, frozenset())

    def preferred_for(self, codec: Codec) -> HardwareKind | None:
        """First backend in preference order that supports ``codec``."""
        for kind in self.order:
            if self.supports(kind, codec):
                return kind
        return None

    def to_dict(self) -> dict:
        """Convert to a JSON-serializable dictionary."""
        return {
            "available": self.has_hardware,
            "preferred": self.preferred.value if self.preferred else None,
            "backends": {
                kind.value: sorted(codec.value for codec in codecs)
                for kind, codecs in self.codecs.items()
            },
        }


NO_HARDWARE = CapabilityInfo()


class CapabilityResolver:
    """Lazily probes and caches hardware encoder capabilities.

    Thread-safe: the first caller probes, concurrent callers wait for it,
    later calls return the cached snapshot.
    """

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        nvidia_smi_path: str = "nvidia-smi",
        system: str | None = None,
        runner: CommandRunner | None = None,
    ) -> None:
        """Initialize the resolver.

        Args:
            ffmpeg_path: ffmpeg executable used for ``-encoders``.
            nvidia_smi_path: nvidia-smi executable used to confirm an
                NVIDIA device is present before trusting NVENC encoders.
            system: Platform name override (defaults to platform.system()).
            runner: Command runner override for testing.
        """
        self.ffmpeg_path = ffmpeg_path
        self.nvidia_smi_path = nvidia_smi_path
        self.system = system or platform.system()
        self._runner = runner or _run_command
        self._cached: CapabilityInfo | None = None
        self._lock = threading.Lock()

    @property
    def is_probed(self) -> bool:
        return self._cached is not None

    def probe(self) -> CapabilityInfo:
        """Return the capability snapshot, probing on first use."""
        cached = self._cached
        if cached is not None:
            return cached

        with self._lock:
            if self._cached is None:
                self._cached = self._detect()
            return self._cached

    def _nvidia_device_present(self) -> bool:
        _, _, rc = self._runner([self.nvidia_smi_path, "-L"])
        return rc == 0

    def _detect(self) -> CapabilityInfo:
        order = _PREFERENCE_ORDER.get(self.system, _DEFAULT_PREFERENCE)

        stdout, stderr, rc = self._runner(
            [self.ffmpeg_path, "-hide_banner", "-encoders"]
        )
        if rc != 0:
            logger.info("Hardware probe unavailable (%s); using software encoders",
                        stderr.strip() or f"exit code {rc}")
            return CapabilityInfo(order=order)

        listed = parse_encoder_list(stdout)
        codecs: dict[HardwareKind, set[Codec]] = {}
        for codec, backends in HARDWARE_ENCODERS.items():
            for kind, (encoder, _) in backends.items():
                if encoder in listed:
                    codecs.setdefault(kind, set()).add(codec)

        if HardwareKind.NVENC in codecs and not self._nvidia_device_present():
            logger.debug("NVENC encoders listed but no NVIDIA device found")
            del codecs[HardwareKind.NVENC]

        # VideoToolbox only works on macOS even if the build lists it
        if HardwareKind.VIDEOTOOLBOX in codecs and self.system != "Darwin":
            del codecs[HardwareKind.VIDEOTOOLBOX]

        frozen = {kind: frozenset(values) for kind, values in codecs.items()}
        preferred = next((kind for kind in order if kind in frozen), None)

        info = CapabilityInfo(
            codecs=MappingProxyType(frozen), preferred=preferred, order=order
        )
        logger.info(
            "Hardware encoders: %s (preferred: %s)",
            ", ".join(sorted(kind.value for kind in frozen)) or "none",
            preferred.value if preferred else "none",
        )
        return info
