"""Tests for ffmpeg command construction."""

from pathlib import Path

from transcodarr.db.types import Codec, HardwareKind
from transcodarr.executor.command import build_ffmpeg_command, scale_filter
from transcodarr.tools.encoders import settings_for


class TestScaleFilter:
    """Tests for scale_filter."""

    def test_width(self) -> None:
        assert scale_filter(1280) == "scale=1280:-2"

    def test_disabled(self) -> None:
        assert scale_filter(None) is None
        assert scale_filter(0) is None


class TestBuildFfmpegCommand:
    """Tests for build_ffmpeg_command."""

    def test_software_command(self) -> None:
        settings = settings_for(Codec.X265, None, 22)

        cmd = build_ffmpeg_command(
            "ffmpeg", Path("/media/in.mkv"), Path("/media/out.tmp.mkv"), settings
        )

        assert cmd == [
            "ffmpeg",
            "-hide_banner",
            "-i",
            "/media/in.mkv",
            "-map",
            "0",
            "-c:v",
            "libx265",
            "-crf",
            "22",
            "-preset",
            "medium",
            "-c:a",
            "copy",
            "-c:s",
            "copy",
            "-y",
            "/media/out.tmp.mkv",
        ]

    def test_scale_filter_before_encoder(self) -> None:
        settings = settings_for(Codec.X264, HardwareKind.NVENC, 24)

        cmd = build_ffmpeg_command(
            "/usr/bin/ffmpeg",
            Path("/media/in.mkv"),
            Path("/media/out.tmp.mkv"),
            settings,
            target_width=1920,
        )

        assert cmd[0] == "/usr/bin/ffmpeg"
        vf = cmd.index("-vf")
        assert cmd[vf + 1] == "scale=1920:-2"
        assert vf < cmd.index("-c:v")
        assert cmd[cmd.index("-c:v") + 1] == "h264_nvenc"

    def test_output_is_last(self) -> None:
        settings = settings_for(Codec.AV1, None, 30)

        cmd = build_ffmpeg_command(
            "ffmpeg", Path("/m/a.mkv"), Path("/m/a [av1].tmp.mkv"), settings
        )

        assert cmd[-2:] == ["-y", "/m/a [av1].tmp.mkv"]
