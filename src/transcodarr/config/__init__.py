"""Configuration models and loading."""

from transcodarr.config.env import EnvReader
from transcodarr.config.loader import (
    get_config,
    get_data_dir,
    get_default_config_path,
    get_default_db_path,
    load_config_file,
)
from transcodarr.config.models import (
    LoggingConfig,
    MediaConfig,
    SchedulerConfig,
    ServerConfig,
    ToolPathsConfig,
    TranscodarrConfig,
)

__all__ = [
    "EnvReader",
    "get_config",
    "get_data_dir",
    "get_default_config_path",
    "get_default_db_path",
    "load_config_file",
    "LoggingConfig",
    "MediaConfig",
    "SchedulerConfig",
    "ServerConfig",
    "ToolPathsConfig",
    "TranscodarrConfig",
]
