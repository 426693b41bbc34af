"""Command-line interface for transcodarr."""

import logging
from pathlib import Path

import click

from transcodarr.config import TranscodarrConfig, get_config
from transcodarr.logging import configure_logging

logger = logging.getLogger(__name__)


def get_cli_config(ctx: click.Context) -> TranscodarrConfig:
    """Return the configuration loaded by the top-level group."""
    return ctx.obj["config"]


@click.group()
@click.version_option(package_name="transcodarr")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to configuration file (default: ~/.transcodarr/config.toml).",
)
@click.option(
    "--db",
    "db_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to the job database.",
)
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Override log level (default: info).",
)
@click.option(
    "--log-file",
    type=click.Path(path_type=Path),
    default=None,
    help="Override log file path.",
)
@click.option(
    "--log-json",
    is_flag=True,
    default=False,
    help="Use JSON log format.",
)
@click.pass_context
def main(
    ctx: click.Context,
    config_path: Path | None,
    db_path: Path | None,
    log_level: str | None,
    log_file: Path | None,
    log_json: bool,
) -> None:
    """Transcodarr - queue video files for re-encoding and track their progress."""
    ctx.ensure_object(dict)
    # Tests may inject a prepared config
    if "config" not in ctx.obj:
        try:
            ctx.obj["config"] = get_config(
                config_path,
                database_path=db_path,
                log_level=log_level,
                log_file=log_file,
                log_json=log_json or None,
            )
        except ValueError as e:
            raise click.ClickException(f"Invalid configuration: {e}") from e

    config: TranscodarrConfig = ctx.obj["config"]
    configure_logging(config.logging)
    logger.debug("Using database %s", config.database_path)


def _register_commands() -> None:
    from transcodarr.cli.doctor import doctor_command
    from transcodarr.cli.jobs import jobs_group
    from transcodarr.cli.probe import probe_command
    from transcodarr.cli.serve import serve_command

    main.add_command(doctor_command)
    main.add_command(jobs_group)
    main.add_command(probe_command)
    main.add_command(serve_command)


_register_commands()
