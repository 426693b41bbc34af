"""CLI commands for the job queue.

These commands work directly on the database, so they are usable while
``transcodarr serve`` is running. Stopping a running encode needs the
server (``POST /api/jobs/{id}/stop``).
"""

import asyncio
import json
import logging
import sqlite3
from pathlib import Path

import click

from transcodarr.cli import get_cli_config
from transcodarr.db import JobStatus, delete_job, get_all_jobs, get_job
from transcodarr.db.types import Codec, Job
from transcodarr.jobs.exceptions import JobValidationError
from transcodarr.jobs.store import JobStore
from transcodarr.jobs.submission import EncodeRequest, submit_encode_request

logger = logging.getLogger(__name__)

_STATUS_COLORS = {
    JobStatus.QUEUED: "yellow",
    JobStatus.RUNNING: "blue",
    JobStatus.COMPLETED: "green",
    JobStatus.FAILED: "red",
    JobStatus.CANCELLED: "white",
}


def _truncate(name: str, width: int) -> str:
    if len(name) <= width:
        return name
    return name[: width - 3] + "..."


def _format_progress(job: Job) -> str:
    if job.status in (JobStatus.RUNNING, JobStatus.COMPLETED):
        return f"{job.progress:.0f}%"
    return "-"


def _open_store(ctx: click.Context) -> JobStore:
    config = get_cli_config(ctx)
    try:
        return JobStore.open(config.database_path)
    except (sqlite3.Error, OSError) as e:
        raise click.ClickException(f"Failed to open database: {e}") from e


@click.group("jobs")
def jobs_group() -> None:
    """Inspect and manage the encode queue.

    Examples:

        # List all jobs
        transcodarr jobs list

        # Queue two files for H.265 at quality 22
        transcodarr jobs add --codec x265 --quality 22 a.mkv b.mkv

        # Remove a finished job
        transcodarr jobs delete 12
    """


@jobs_group.command("list")
@click.option(
    "--status",
    "-s",
    type=click.Choice([s.value for s in JobStatus] + ["all"]),
    default="all",
    help="Filter by job status.",
)
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_context
def list_jobs(ctx: click.Context, status: str, json_output: bool) -> None:
    """List jobs, newest first."""
    store = _open_store(ctx)
    try:
        jobs = get_all_jobs(store.connection)
    finally:
        store.close()

    if status != "all":
        jobs = [job for job in jobs if job.status.value == status]

    if json_output:
        click.echo(json.dumps([job.to_dict() for job in jobs], indent=2))
        return

    if not jobs:
        click.echo("No jobs found.")
        return

    click.echo(
        f"{'ID':<6} {'STATUS':<10} {'CODEC':<6} {'Q':<3} {'HW':<12} "
        f"{'FILE':<42} {'PROG':<6}"
    )
    click.echo("-" * 90)
    for job in jobs:
        # Pad before styling so ANSI codes don't break alignment
        status_text = click.style(
            f"{job.status.value:<10}", fg=_STATUS_COLORS[job.status]
        )
        hardware = (
            job.resolved_hardware_kind.value
            if job.resolved_hardware_kind is not None
            else ("requested" if job.requested_hardware else "-")
        )
        click.echo(
            f"{job.id:<6} {status_text} {job.codec.value:<6} {job.quality:<3} "
            f"{hardware:<12} {_truncate(job.filename, 42):<42} "
            f"{_format_progress(job):<6}"
        )


@jobs_group.command("add")
@click.argument("files", nargs=-1, required=True)
@click.option(
    "--codec",
    type=click.Choice([c.value for c in Codec]),
    default=Codec.X265.value,
    show_default=True,
    help="Target video codec.",
)
@click.option("--quality", "-q", type=int, default=23, show_default=True,
              help="Constant-quality value (lower is better).")
@click.option("--no-hardware", is_flag=True, help="Always use the software encoder.")
@click.option("--auto-delete", is_flag=True,
              help="Delete each source file after a verified successful encode.")
@click.pass_context
def add_jobs(
    ctx: click.Context,
    files: tuple[str, ...],
    codec: str,
    quality: int,
    no_hardware: bool,
    auto_delete: bool,
) -> None:
    """Queue FILES for encoding.

    Files must be inside a configured media directory. Relative paths are
    resolved against the first one.
    """
    config = get_cli_config(ctx)
    media_dirs = config.media.media_dirs or [Path.cwd()]

    try:
        request = EncodeRequest(
            files=list(files),
            codec=Codec(codec),
            quality=quality,
            use_hardware=not no_hardware,
            auto_delete=auto_delete,
        )
    except ValueError as e:
        raise click.BadParameter(str(e)) from e

    store = _open_store(ctx)
    try:
        result = asyncio.run(
            submit_encode_request(
                store, request, media_dirs, config.media.quality_range
            )
        )
    except JobValidationError as e:
        raise click.ClickException(str(e)) from e
    finally:
        store.close()

    for job in result.jobs:
        click.echo(f"Queued job {job.id}: {job.filename} -> {Path(job.output_path).name}")
    for file, reason in result.rejected.items():
        click.echo(f"Skipped {file}: {reason}", err=True)
    click.echo(result.message)


@jobs_group.command("delete")
@click.argument("job_id", type=int)
@click.pass_context
def delete_job_command(ctx: click.Context, job_id: int) -> None:
    """Delete a job record. Running jobs cannot be deleted."""
    store = _open_store(ctx)
    try:
        job = get_job(store.connection, job_id)
        if job is None:
            raise click.ClickException(f"Job {job_id} not found")
        if job.status is JobStatus.RUNNING:
            raise click.ClickException(
                f"Job {job_id} is running; stop it first "
                "(POST /api/jobs/{id}/stop or /force-stop)"
            )
        delete_job(store.connection, job_id)
    finally:
        store.close()
    click.echo(f"Deleted job {job_id}")
