"""``transcodarr probe``: show container duration and streams for a file."""

import json
from pathlib import Path

import click

from transcodarr.cli import get_cli_config
from transcodarr.jobs.exceptions import MediaProbeError
from transcodarr.tools.ffprobe import probe_media


def _format_duration(seconds: float | None) -> str:
    if seconds is None:
        return "unknown"
    total = int(seconds)
    return f"{total // 3600}:{total % 3600 // 60:02d}:{total % 60:02d}"


@click.command("probe")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "json_output", is_flag=True, help="Output in JSON format.")
@click.pass_context
def probe_command(ctx: click.Context, file: Path, json_output: bool) -> None:
    """Show duration and streams of FILE using ffprobe."""
    config = get_cli_config(ctx)
    try:
        info = probe_media(file, ffprobe_path=config.tools.ffprobe)
    except MediaProbeError as e:
        raise click.ClickException(str(e)) from e

    if json_output:
        click.echo(json.dumps(info.to_dict(), indent=2))
        return

    click.echo(f"File: {info.path}")
    click.echo(f"Format: {info.format_name or 'unknown'}")
    click.echo(f"Duration: {_format_duration(info.duration)}")
    for stream in info.streams:
        line = f"  #{stream.index} {stream.codec_type}: {stream.codec_name or '?'}"
        if stream.width and stream.height:
            line += f" {stream.width}x{stream.height}"
        if stream.language:
            line += f" [{stream.language}]"
        click.echo(line)
