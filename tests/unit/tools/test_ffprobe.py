"""Tests for the ffprobe wrapper."""

import json
import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from transcodarr.jobs.exceptions import MediaProbeError
from transcodarr.tools.ffprobe import parse_ffprobe_output, probe_media

FFPROBE_OUTPUT = {
    "streams": [
        {
            "index": 0,
            "codec_type": "video",
            "codec_name": "h264",
            "width": 1920,
            "height": 1080,
        },
        {
            "index": 1,
            "codec_type": "audio",
            "codec_name": "aac",
            "tags": {"language": "eng"},
        },
    ],
    "format": {
        "format_name": "matroska,webm",
        "duration": "5400.250000",
        "size": "1073741824",
    },
}


class TestParseFfprobeOutput:
    """Tests for parse_ffprobe_output."""

    def test_parses_format_and_streams(self) -> None:
        info = parse_ffprobe_output(Path("/media/a.mkv"), FFPROBE_OUTPUT)

        assert info.duration == 5400.25
        assert info.size == 1073741824
        assert info.format_name == "matroska,webm"
        assert len(info.streams) == 2
        assert info.video_streams[0].width == 1920
        assert info.streams[1].language == "eng"

    def test_missing_duration(self) -> None:
        data = {"streams": [], "format": {"format_name": "mpegts"}}

        info = parse_ffprobe_output(Path("/media/a.ts"), data)

        assert info.duration is None

    def test_missing_sections(self) -> None:
        with pytest.raises(MediaProbeError, match="Missing"):
            parse_ffprobe_output(Path("/media/a.mkv"), {"streams": []})

    def test_to_dict(self) -> None:
        data = parse_ffprobe_output(Path("/media/a.mkv"), FFPROBE_OUTPUT).to_dict()

        assert data["path"] == "/media/a.mkv"
        assert data["streams"][0]["codec_name"] == "h264"


class TestProbeMedia:
    """Tests for probe_media."""

    def test_missing_file(self, temp_dir) -> None:
        with pytest.raises(MediaProbeError, match="not found"):
            probe_media(temp_dir / "missing.mkv")

    def test_success(self, temp_dir) -> None:
        media = temp_dir / "a.mkv"
        media.write_text("x")
        result = MagicMock(stdout=json.dumps(FFPROBE_OUTPUT))

        with patch("transcodarr.tools.ffprobe.subprocess.run", return_value=result) as run:
            info = probe_media(media, ffprobe_path="/opt/ffprobe")

        assert info.duration == 5400.25
        assert run.call_args.args[0][0] == "/opt/ffprobe"
        assert run.call_args.args[0][-1] == str(media)

    def test_ffprobe_missing(self, temp_dir) -> None:
        media = temp_dir / "a.mkv"
        media.write_text("x")

        with pytest.raises(MediaProbeError, match="ffprobe not found"):
            probe_media(media, ffprobe_path="/nonexistent/ffprobe")

    def test_ffprobe_error(self, temp_dir) -> None:
        media = temp_dir / "a.mkv"
        media.write_text("x")
        error = subprocess.CalledProcessError(1, ["ffprobe"], stderr="Invalid data")

        with patch("transcodarr.tools.ffprobe.subprocess.run", side_effect=error):
            with pytest.raises(MediaProbeError, match="Invalid data"):
                probe_media(media)

    def test_invalid_json(self, temp_dir) -> None:
        media = temp_dir / "a.mkv"
        media.write_text("x")
        result = MagicMock(stdout="not json")

        with patch("transcodarr.tools.ffprobe.subprocess.run", return_value=result):
            with pytest.raises(MediaProbeError, match="Invalid ffprobe output"):
                probe_media(media)
