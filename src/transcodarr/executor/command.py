"""FFmpeg argument vector construction."""

from pathlib import Path

from transcodarr.tools.encoders import EncoderSettings


def scale_filter(target_width: int | None) -> str | None:
    """Return a width-bounded scale filter, or None when not scaling.

    Height is derived by ffmpeg and kept even (``-2``).
    """
    if target_width is None or target_width <= 0:
        return None
    return f"scale={target_width}:-2"


def build_ffmpeg_command(
    ffmpeg_path: str,
    input_path: Path,
    temp_output: Path,
    settings: EncoderSettings,
    target_width: int | None = None,
) -> list[str]:
    """Build the encoder invocation for one job.

    All input streams are mapped; only video is re-encoded. Audio and
    subtitle streams are copied unchanged.

    Args:
        ffmpeg_path: ffmpeg executable.
        input_path: Source media file.
        temp_output: Staging output (same directory as the final output).
        settings: Encoder and options from ``settings_for()``.
        target_width: Optional positive width for downscaling.

    Returns:
        Argument list suitable for ``create_subprocess_exec``.
    """
    cmd = [ffmpeg_path, "-hide_banner", "-i", str(input_path), "-map", "0"]

    vf = scale_filter(target_width)
    if vf is not None:
        cmd.extend(["-vf", vf])

    cmd.extend(["-c:v", settings.encoder, *settings.args])
    cmd.extend(["-c:a", "copy", "-c:s", "copy"])
    cmd.extend(["-y", str(temp_output)])
    return cmd
