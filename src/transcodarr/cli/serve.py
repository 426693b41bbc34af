"""``transcodarr serve``: run the scheduler behind the HTTP control API."""

from __future__ import annotations

import asyncio
import errno
import logging
import os
from dataclasses import replace
from pathlib import Path

import click

from transcodarr.cli import get_cli_config
from transcodarr.config.models import TranscodarrConfig

logger = logging.getLogger(__name__)


async def run_server(config: TranscodarrConfig) -> int:
    """Run the server until SIGTERM or SIGINT.

    Returns:
        Exit code (0 for clean shutdown, 1 if the server could not start).
    """
    from aiohttp import web

    from transcodarr.server.app import create_app
    from transcodarr.server.signals import (
        remove_signal_handlers,
        setup_signal_handlers,
    )

    bind = config.server.bind
    port = config.server.port

    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    setup_signal_handlers(loop, shutdown_event)

    app = create_app(config)
    runner = web.AppRunner(app)
    await runner.setup()

    try:
        site = web.TCPSite(runner, bind, port)
        await site.start()

        logger.info(
            "Transcodarr started on http://%s:%d (PID %d)", bind, port, os.getpid()
        )
        logger.info("Press Ctrl+C or send SIGTERM to stop")

        await shutdown_event.wait()
        app["lifecycle"].initiate_shutdown()
        logger.info(
            "Shutdown initiated, waiting up to %.1fs for running encodes",
            config.server.shutdown_timeout,
        )
    except OSError as e:
        if e.errno == errno.EADDRINUSE:
            logger.error("Port %d is already in use", port)
        elif e.errno == errno.EADDRNOTAVAIL:
            logger.error("Cannot bind to address %s", bind)
        else:
            logger.error("Server error: %s", e)
        return 1
    finally:
        remove_signal_handlers(loop)
        await runner.cleanup()
        logger.info("Transcodarr stopped")

    return 0


@click.command("serve")
@click.option("--bind", type=str, default=None, help="Address to bind to.")
@click.option("--port", "-p", type=int, default=None, help="Port to bind to.")
@click.option(
    "--max-jobs",
    type=click.IntRange(min=1),
    default=None,
    help="Maximum number of concurrent encodes.",
)
@click.option(
    "--media-dir",
    "media_dirs",
    multiple=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Allowed media directory (repeatable).",
)
@click.pass_context
def serve_command(
    ctx: click.Context,
    bind: str | None,
    port: int | None,
    max_jobs: int | None,
    media_dirs: tuple[Path, ...],
) -> None:
    """Run the job scheduler and HTTP API.

    Binds to 127.0.0.1:8321 by default. Jobs left running by a previous
    instance are marked failed on startup.
    """
    config = get_cli_config(ctx)
    try:
        config.server = replace(
            config.server,
            bind=bind if bind is not None else config.server.bind,
            port=port if port is not None else config.server.port,
        )
    except ValueError as e:
        raise click.BadParameter(str(e)) from e
    if max_jobs is not None:
        config.scheduler.max_concurrent_jobs = max_jobs
    if media_dirs:
        config.media.media_dirs = list(media_dirs)

    if not config.media.media_dirs:
        logger.warning(
            "No media directories configured; encode requests will be rejected. "
            "Set TRANSCODARR_MEDIA_DIR or [media] media_dirs."
        )

    exit_code = asyncio.run(run_server(config))
    ctx.exit(exit_code)
