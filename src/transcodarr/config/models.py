"""Configuration data models.

Each dataclass mirrors one section of ``config.toml`` and validates its
values in ``__post_init__``.
"""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class ToolPathsConfig:
    """Paths to external executables. Bare names are looked up on PATH."""

    ffmpeg: str = "ffmpeg"
    ffprobe: str = "ffprobe"
    nvidia_smi: str = "nvidia-smi"


@dataclass
class SchedulerConfig:
    """Job scheduler settings."""

    max_concurrent_jobs: int = 1
    """Maximum number of encoder processes running at once."""

    poll_interval_seconds: float = 5.0
    """Seconds between scheduler ticks."""

    target_width: int | None = None
    """Downscale to this width (height keeps aspect ratio). None = no scaling."""

    hardware_fallback: bool = True
    """Retry once with the software encoder when a hardware encoder fails."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.max_concurrent_jobs < 1:
            raise ValueError(
                f"max_concurrent_jobs must be at least 1, got {self.max_concurrent_jobs}"
            )
        if self.poll_interval_seconds <= 0:
            raise ValueError(
                "poll_interval_seconds must be positive, "
                f"got {self.poll_interval_seconds}"
            )
        if self.target_width is not None and self.target_width <= 0:
            raise ValueError(f"target_width must be positive, got {self.target_width}")


@dataclass
class MediaConfig:
    """Where input files may come from and what quality values are allowed."""

    media_dirs: list[Path] = field(default_factory=list)
    quality_min: int = 18
    quality_max: int = 31

    def __post_init__(self) -> None:
        """Validate configuration."""
        if self.quality_min > self.quality_max:
            raise ValueError(
                f"quality_min ({self.quality_min}) must not exceed "
                f"quality_max ({self.quality_max})"
            )

    @property
    def quality_range(self) -> tuple[int, int]:
        return self.quality_min, self.quality_max


@dataclass
class LoggingConfig:
    """Configuration for structured logging."""

    # Log level: debug, info, warning, error
    level: str = "info"

    # Log file path (None = stderr only)
    file: Path | None = None

    # Log format: text or json
    format: str = "text"

    # Also log to stderr when file is set
    include_stderr: bool = False

    # Rotation threshold in bytes (default 10MB)
    max_bytes: int = 10_485_760

    # Number of rotated files to keep
    backup_count: int = 5

    def __post_init__(self) -> None:
        """Validate configuration."""
        valid_levels = {"debug", "info", "warning", "error"}
        if self.level.lower() not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}, got {self.level}")
        valid_formats = {"text", "json"}
        if self.format.lower() not in valid_formats:
            raise ValueError(
                f"format must be one of {valid_formats}, got {self.format}"
            )


@dataclass
class ServerConfig:
    """Configuration for ``transcodarr serve``."""

    bind: str = "127.0.0.1"
    """Network address to bind to. Default localhost for security."""

    port: int = 8321

    shutdown_timeout: float = 30.0
    """Seconds to wait for running encodes to stop on shutdown."""

    def __post_init__(self) -> None:
        """Validate configuration."""
        if not 1 <= self.port <= 65535:
            raise ValueError(f"port must be 1-65535, got {self.port}")
        if self.shutdown_timeout <= 0:
            raise ValueError(
                f"shutdown_timeout must be positive, got {self.shutdown_timeout}"
            )


@dataclass
class TranscodarrConfig:
    """Main configuration container.

    Aggregates all configuration sections.
    """

    tools: ToolPathsConfig = field(default_factory=ToolPathsConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    media: MediaConfig = field(default_factory=MediaConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    # Database path (None = <data dir>/transcodarr.db)
    database_path: Path | None = None
