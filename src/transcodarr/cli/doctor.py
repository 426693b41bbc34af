"""``transcodarr doctor``: check external tools and hardware encoders."""

import json
import shutil
import subprocess  # nosec B404 - subprocess is required for version checks

import click

from transcodarr.cli import get_cli_config
from transcodarr.tools.capabilities import CapabilityResolver

EXIT_OK = 0
EXIT_WARNINGS = 1
EXIT_CRITICAL = 2


def _format_status(available: bool) -> str:
    """Format status for display."""
    return "✓" if available else "✗"


def tool_version(path: str) -> str | None:
    """Return the first line of ``<tool> -version``, or None if unavailable."""
    if shutil.which(path) is None:
        return None
    try:
        result = subprocess.run(  # nosec B603 - path comes from config
            [path, "-version"],
            capture_output=True,
            text=True,
            errors="replace",
            timeout=10,
        )
    except (OSError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    first_line = result.stdout.splitlines()[0] if result.stdout else ""
    return first_line.strip() or "unknown"


@click.command("doctor")
@click.option("--json", "json_output", is_flag=True, help="Output results as JSON.")
@click.pass_context
def doctor_command(ctx: click.Context, json_output: bool) -> None:
    """Check ffmpeg, ffprobe and hardware encoder availability.

    Exit codes:
      0 - Everything available
      1 - Warnings (no hardware encoders, no media directories)
      2 - Critical (ffmpeg or ffprobe missing)
    """
    config = get_cli_config(ctx)

    versions = {
        "ffmpeg": tool_version(config.tools.ffmpeg),
        "ffprobe": tool_version(config.tools.ffprobe),
    }
    capabilities = CapabilityResolver(
        ffmpeg_path=config.tools.ffmpeg,
        nvidia_smi_path=config.tools.nvidia_smi,
    ).probe()

    warnings: list[str] = []
    if not capabilities.has_hardware:
        warnings.append("No hardware encoders available; software encoding only")
    if not config.media.media_dirs:
        warnings.append("No media directories configured")

    if any(v is None for v in versions.values()):
        exit_code = EXIT_CRITICAL
    elif warnings:
        exit_code = EXIT_WARNINGS
    else:
        exit_code = EXIT_OK

    if json_output:
        click.echo(
            json.dumps(
                {
                    "tools": versions,
                    "hardware": capabilities.to_dict(),
                    "media_dirs": [str(d) for d in config.media.media_dirs],
                    "database": str(config.database_path),
                    "warnings": warnings,
                },
                indent=2,
            )
        )
        ctx.exit(exit_code)

    click.echo("Tools:")
    for name, version in versions.items():
        click.echo(f"  {_format_status(version is not None)} {name}: "
                   f"{version or 'not found'}")

    click.echo("Hardware encoders:")
    if capabilities.has_hardware:
        for kind, codecs in sorted(
            capabilities.codecs.items(), key=lambda item: item[0].value
        ):
            marker = " (preferred)" if kind is capabilities.preferred else ""
            names = ", ".join(sorted(c.value for c in codecs))
            click.echo(f"  {_format_status(True)} {kind.value}{marker}: {names}")
    else:
        click.echo(f"  {_format_status(False)} none")

    click.echo(f"Database: {config.database_path}")
    click.echo("Media directories: "
               + (", ".join(str(d) for d in config.media.media_dirs) or "none"))

    for warning in warnings:
        click.secho(f"Warning: {warning}", fg="yellow")
    if exit_code == EXIT_CRITICAL:
        click.secho("Required tools are missing", fg="red")
    ctx.exit(exit_code)
