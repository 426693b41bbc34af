"""Configuration loader with precedence handling.

Configuration is loaded with the following precedence (highest to lowest):
1. CLI arguments (passed directly to get_config)
2. Environment variables (TRANSCODARR_*)
3. Config file (~/.transcodarr/config.toml)
4. Default values

Environment variables:
- TRANSCODARR_CONFIG_PATH: Config file (overrides default location)
- TRANSCODARR_DATA_DIR: Data directory (overrides ~/.transcodarr/)
- TRANSCODARR_DATABASE_PATH: Database file
- TRANSCODARR_FFMPEG_PATH / TRANSCODARR_FFPROBE_PATH: Tool executables
- TRANSCODARR_MAX_CONCURRENT_JOBS: Concurrency ceiling
- TRANSCODARR_MEDIA_DIR: Allowed media roots, colon separated
- TRANSCODARR_LOG_LEVEL / TRANSCODARR_LOG_FILE: Logging
"""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any

from transcodarr.config.env import EnvReader
from transcodarr.config.models import (
    LoggingConfig,
    MediaConfig,
    SchedulerConfig,
    ServerConfig,
    ToolPathsConfig,
    TranscodarrConfig,
)
from transcodarr.db.connection import DB_FILENAME

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".transcodarr"
CONFIG_FILENAME = "config.toml"


def get_data_dir(env: EnvReader | None = None) -> Path:
    """Get the data directory (database, config, logs).

    Can be overridden by TRANSCODARR_DATA_DIR.
    """
    env = env or EnvReader()
    return env.get_path("TRANSCODARR_DATA_DIR") or DEFAULT_CONFIG_DIR


def get_default_config_path(env: EnvReader | None = None) -> Path:
    """Get the config file path.

    Can be overridden by TRANSCODARR_CONFIG_PATH.
    """
    env = env or EnvReader()
    return env.get_path("TRANSCODARR_CONFIG_PATH") or (
        get_data_dir(env) / CONFIG_FILENAME
    )


def get_default_db_path(env: EnvReader | None = None) -> Path:
    """Get the default database path inside the data directory."""
    return get_data_dir(env) / DB_FILENAME


def load_config_file(path: Path) -> dict[str, Any]:
    """Load configuration from a TOML file.

    Returns:
        Parsed configuration dict. Empty if the file is missing or invalid.
    """
    if not path.exists():
        logger.debug("Config file not found: %s", path)
        return {}

    try:
        with path.open("rb") as f:
            config = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Failed to load config file %s: %s", path, e)
        return {}
    logger.debug("Loaded config from %s", path)
    return config


def _first(*values: Any) -> Any:
    """Return the first value that is not None."""
    for value in values:
        if value is not None:
            return value
    return None


def _file_path(section: dict[str, Any], key: str) -> Path | None:
    value = section.get(key)
    return Path(value).expanduser() if value else None


def get_config(
    config_path: Path | None = None,
    *,
    env: EnvReader | None = None,
    # CLI overrides (highest precedence)
    database_path: Path | None = None,
    ffmpeg_path: str | None = None,
    max_concurrent_jobs: int | None = None,
    media_dirs: list[Path] | None = None,
    log_level: str | None = None,
    log_file: Path | None = None,
    log_json: bool | None = None,
    bind: str | None = None,
    port: int | None = None,
) -> TranscodarrConfig:
    """Build the configuration with full precedence handling.

    Args:
        config_path: Config file (overrides TRANSCODARR_CONFIG_PATH).
        env: Environment reader (defaults to os.environ).
        database_path: CLI override for the database file.
        ffmpeg_path: CLI override for the ffmpeg executable.
        max_concurrent_jobs: CLI override for the concurrency ceiling.
        media_dirs: CLI override for allowed media roots.
        log_level: CLI override for the log level.
        log_file: CLI override for the log file.
        log_json: CLI override selecting JSON log output.
        bind: CLI override for the server bind address.
        port: CLI override for the server port.

    Returns:
        TranscodarrConfig with merged configuration.

    Raises:
        ValueError: If a merged value fails validation.
    """
    env = env or EnvReader()
    file_config = load_config_file(config_path or get_default_config_path(env))

    tools_file = file_config.get("tools", {})
    defaults = ToolPathsConfig()
    tools = ToolPathsConfig(
        ffmpeg=_first(
            ffmpeg_path,
            env.get_str("TRANSCODARR_FFMPEG_PATH"),
            tools_file.get("ffmpeg"),
            defaults.ffmpeg,
        ),
        ffprobe=_first(
            env.get_str("TRANSCODARR_FFPROBE_PATH"),
            tools_file.get("ffprobe"),
            defaults.ffprobe,
        ),
        nvidia_smi=_first(tools_file.get("nvidia_smi"), defaults.nvidia_smi),
    )

    scheduler_file = file_config.get("scheduler", {})
    scheduler = SchedulerConfig(
        max_concurrent_jobs=_first(
            max_concurrent_jobs,
            env.get_int("TRANSCODARR_MAX_CONCURRENT_JOBS"),
            scheduler_file.get("max_concurrent_jobs"),
            1,
        ),
        poll_interval_seconds=_first(
            env.get_float("TRANSCODARR_POLL_INTERVAL"),
            scheduler_file.get("poll_interval_seconds"),
            5.0,
        ),
        target_width=scheduler_file.get("target_width"),
        hardware_fallback=_first(
            env.get_bool("TRANSCODARR_HARDWARE_FALLBACK"),
            scheduler_file.get("hardware_fallback"),
            True,
        ),
    )

    media_file = file_config.get("media", {})
    file_media_dirs = [Path(d).expanduser() for d in media_file.get("media_dirs", [])]
    media = MediaConfig(
        media_dirs=(
            media_dirs
            or env.get_path_list("TRANSCODARR_MEDIA_DIR")
            or file_media_dirs
        ),
        quality_min=media_file.get("quality_min", 18),
        quality_max=media_file.get("quality_max", 31),
    )

    logging_file = file_config.get("logging", {})
    log_format = "json" if log_json else None
    logging_config = LoggingConfig(
        level=_first(
            log_level,
            env.get_str("TRANSCODARR_LOG_LEVEL"),
            logging_file.get("level"),
            "info",
        ),
        file=_first(
            log_file,
            env.get_path("TRANSCODARR_LOG_FILE"),
            _file_path(logging_file, "file"),
        ),
        format=_first(log_format, logging_file.get("format"), "text"),
        include_stderr=logging_file.get("include_stderr", False),
        max_bytes=logging_file.get("max_bytes", 10_485_760),
        backup_count=logging_file.get("backup_count", 5),
    )

    server_file = file_config.get("server", {})
    server = ServerConfig(
        bind=_first(bind, env.get_str("TRANSCODARR_SERVER_BIND"),
                    server_file.get("bind"), "127.0.0.1"),
        port=_first(port, env.get_int("TRANSCODARR_SERVER_PORT"),
                    server_file.get("port"), 8321),
        shutdown_timeout=server_file.get("shutdown_timeout", 30.0),
    )

    db_path = _first(
        database_path,
        env.get_path("TRANSCODARR_DATABASE_PATH"),
        _file_path(file_config, "database_path"),
        get_default_db_path(env),
    )

    return TranscodarrConfig(
        tools=tools,
        scheduler=scheduler,
        media=media,
        logging=logging_config,
        server=server,
        database_path=db_path,
    )
