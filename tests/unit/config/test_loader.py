"""Tests for config loader module."""

from __future__ import annotations

from pathlib import Path

import pytest

from transcodarr.config.env import EnvReader
from transcodarr.config.loader import (
    get_config,
    get_data_dir,
    get_default_config_path,
    get_default_db_path,
    load_config_file,
)
from transcodarr.config.models import MediaConfig, SchedulerConfig, ServerConfig

CONFIG_TOML = """\
database_path = "/data/jobs.db"

[tools]
ffmpeg = "/opt/ffmpeg/bin/ffmpeg"

[scheduler]
max_concurrent_jobs = 3
poll_interval_seconds = 2.0
target_width = 1920
hardware_fallback = false

[media]
media_dirs = ["/mnt/movies", "/mnt/tv"]
quality_min = 16

[logging]
level = "debug"
format = "json"

[server]
port = 9000
"""


@pytest.fixture
def config_file(temp_dir: Path) -> Path:
    path = temp_dir / "config.toml"
    path.write_text(CONFIG_TOML)
    return path


class TestDefaultPaths:
    """Tests for data dir, config path and db path resolution."""

    def test_defaults(self) -> None:
        """Should use ~/.transcodarr when nothing is set."""
        env = EnvReader(env={})
        assert get_data_dir(env) == Path.home() / ".transcodarr"
        assert get_default_config_path(env) == Path.home() / ".transcodarr" / "config.toml"
        assert get_default_db_path(env) == Path.home() / ".transcodarr" / "transcodarr.db"

    def test_data_dir_override(self) -> None:
        env = EnvReader(env={"TRANSCODARR_DATA_DIR": "/srv/transcodarr"})
        assert get_default_config_path(env) == Path("/srv/transcodarr/config.toml")
        assert get_default_db_path(env) == Path("/srv/transcodarr/transcodarr.db")

    def test_config_path_override(self) -> None:
        env = EnvReader(env={"TRANSCODARR_CONFIG_PATH": "/etc/transcodarr.toml"})
        assert get_default_config_path(env) == Path("/etc/transcodarr.toml")


class TestLoadConfigFile:
    """Tests for load_config_file function."""

    def test_missing_file(self, temp_dir: Path) -> None:
        assert load_config_file(temp_dir / "missing.toml") == {}

    def test_invalid_toml(self, temp_dir: Path) -> None:
        path = temp_dir / "bad.toml"
        path.write_text("[scheduler\nmax = ")
        assert load_config_file(path) == {}

    def test_parses_sections(self, config_file: Path) -> None:
        data = load_config_file(config_file)
        assert data["scheduler"]["max_concurrent_jobs"] == 3


class TestGetConfig:
    """Tests for get_config precedence."""

    def test_defaults(self, temp_dir: Path) -> None:
        env = EnvReader(env={"TRANSCODARR_DATA_DIR": str(temp_dir)})

        config = get_config(env=env)

        assert config.tools.ffmpeg == "ffmpeg"
        assert config.scheduler.max_concurrent_jobs == 1
        assert config.scheduler.poll_interval_seconds == 5.0
        assert config.media.media_dirs == []
        assert config.media.quality_range == (18, 31)
        assert config.server.port == 8321
        assert config.database_path == temp_dir / "transcodarr.db"

    def test_file_values(self, config_file: Path) -> None:
        config = get_config(config_file, env=EnvReader(env={}))

        assert config.tools.ffmpeg == "/opt/ffmpeg/bin/ffmpeg"
        assert config.scheduler.max_concurrent_jobs == 3
        assert config.scheduler.target_width == 1920
        assert config.scheduler.hardware_fallback is False
        assert config.media.media_dirs == [Path("/mnt/movies"), Path("/mnt/tv")]
        assert config.media.quality_range == (16, 31)
        assert config.logging.level == "debug"
        assert config.logging.format == "json"
        assert config.server.port == 9000
        assert config.database_path == Path("/data/jobs.db")

    def test_env_overrides_file(self, config_file: Path) -> None:
        env = EnvReader(
            env={
                "TRANSCODARR_MAX_CONCURRENT_JOBS": "5",
                "TRANSCODARR_MEDIA_DIR": "/media/a:/media/b",
                "TRANSCODARR_FFMPEG_PATH": "/usr/local/bin/ffmpeg",
                "TRANSCODARR_DATABASE_PATH": "/tmp/env.db",
            }
        )

        config = get_config(config_file, env=env)

        assert config.scheduler.max_concurrent_jobs == 5
        assert config.media.media_dirs == [Path("/media/a"), Path("/media/b")]
        assert config.tools.ffmpeg == "/usr/local/bin/ffmpeg"
        assert config.database_path == Path("/tmp/env.db")

    def test_cli_overrides_env(self, config_file: Path) -> None:
        env = EnvReader(
            env={
                "TRANSCODARR_MAX_CONCURRENT_JOBS": "5",
                "TRANSCODARR_LOG_LEVEL": "warning",
            }
        )

        config = get_config(
            config_file,
            env=env,
            max_concurrent_jobs=2,
            log_level="error",
            port=9100,
            database_path=Path("/cli.db"),
        )

        assert config.scheduler.max_concurrent_jobs == 2
        assert config.logging.level == "error"
        assert config.server.port == 9100
        assert config.database_path == Path("/cli.db")

    def test_invalid_value_raises(self, temp_dir: Path) -> None:
        env = EnvReader(
            env={
                "TRANSCODARR_DATA_DIR": str(temp_dir),
                "TRANSCODARR_MAX_CONCURRENT_JOBS": "0",
            }
        )

        with pytest.raises(ValueError, match="max_concurrent_jobs"):
            get_config(env=env)


class TestModels:
    """Tests for config model validation."""

    def test_scheduler_rejects_bad_width(self) -> None:
        with pytest.raises(ValueError, match="target_width"):
            SchedulerConfig(target_width=0)

    def test_media_rejects_inverted_range(self) -> None:
        with pytest.raises(ValueError, match="quality_min"):
            MediaConfig(quality_min=40, quality_max=20)

    def test_server_rejects_bad_port(self) -> None:
        with pytest.raises(ValueError, match="port"):
            ServerConfig(port=70000)
