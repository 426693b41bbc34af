"""Tests for encode request validation and job creation."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from transcodarr.db.types import Codec, JobStatus
from transcodarr.jobs.exceptions import JobValidationError, PathSecurityError
from transcodarr.jobs.submission import (
    EncodeRequest,
    derive_output_path,
    submit_encode_request,
    validate_media_path,
    validate_quality,
)


class TestEncodeRequest:
    """Tests for the EncodeRequest model."""

    def test_defaults(self):
        request = EncodeRequest(files=["a.mkv"], codec="x265", quality=22)

        assert request.codec is Codec.X265
        assert request.use_hardware is True
        assert request.auto_delete is False

    def test_unknown_codec_rejected(self):
        with pytest.raises(ValidationError):
            EncodeRequest(files=["a.mkv"], codec="vp9", quality=22)

    def test_empty_file_list_rejected(self):
        with pytest.raises(ValidationError):
            EncodeRequest(files=[], codec="x265", quality=22)

    def test_blank_file_rejected(self):
        with pytest.raises(ValidationError, match="must not be empty"):
            EncodeRequest(files=["a.mkv", "  "], codec="x265", quality=22)

    def test_extra_fields_rejected(self):
        with pytest.raises(ValidationError):
            EncodeRequest(files=["a.mkv"], codec="x265", quality=22, preset="slow")


class TestDeriveOutputPath:
    """Tests for derive_output_path."""

    @pytest.mark.parametrize(
        "name,codec,expected",
        [
            ("movie_x265.mkv", Codec.X264, "movie_h264.mkv"),
            ("Show.S01E01.HEVC.mkv", Codec.AV1, "Show.S01E01.av1.mkv"),
            ("clip.mkv", Codec.X265, "clip [h265].mkv"),
            ("clip.mp4", Codec.X264, "clip [h264].mkv"),
            ("tax265ing.mkv", Codec.X264, "tax265ing [h264].mkv"),
        ],
    )
    def test_naming(self, name, codec, expected):
        assert derive_output_path(Path("/media") / name, codec) == Path(
            "/media"
        ) / expected

    def test_never_equals_input(self):
        source = Path("/media/movie_h265.mkv")

        output = derive_output_path(source, Codec.X265)

        assert output != source
        assert output == Path("/media/movie_h265 [h265].mkv")

    def test_stays_in_same_directory(self):
        source = Path("/media/nested/ep.mkv")

        assert derive_output_path(source, Codec.X265).parent == source.parent


class TestValidateMediaPath:
    """Tests for validate_media_path."""

    def test_absolute_path_inside_root(self, media_dir):
        resolved = validate_media_path(media_dir / "movie.mkv", [media_dir])

        assert resolved == (media_dir / "movie.mkv").resolve()

    def test_relative_path_uses_first_root(self, media_dir):
        resolved = validate_media_path("nested/episode.mp4", [media_dir])

        assert resolved == (media_dir / "nested" / "episode.mp4").resolve()

    def test_traversal_rejected(self, media_dir):
        with pytest.raises(PathSecurityError):
            validate_media_path("../outside.mkv", [media_dir])

    def test_symlink_escape_rejected(self, media_dir, temp_dir):
        outside = temp_dir / "secret.mkv"
        outside.write_text("ok")
        (media_dir / "link.mkv").symlink_to(outside)

        with pytest.raises(PathSecurityError):
            validate_media_path(media_dir / "link.mkv", [media_dir])

    def test_sibling_prefix_rejected(self, media_dir, temp_dir):
        sibling = temp_dir / "media2"
        sibling.mkdir()
        (sibling / "a.mkv").write_text("ok")

        with pytest.raises(PathSecurityError):
            validate_media_path(sibling / "a.mkv", [media_dir])

    def test_second_root_accepted(self, media_dir, temp_dir):
        other = temp_dir / "other"
        other.mkdir()

        resolved = validate_media_path(other / "x.mkv", [media_dir, other])

        assert resolved.parent == other.resolve()

    def test_nul_byte_raises_validation_error(self, media_dir):
        with pytest.raises(JobValidationError, match="Invalid path"):
            validate_media_path("movie\x00.mkv", [media_dir])

    def test_no_roots_rejects_everything(self, media_dir):
        with pytest.raises(PathSecurityError):
            validate_media_path(media_dir / "movie.mkv", [])


class TestValidateQuality:
    """Tests for validate_quality."""

    @pytest.mark.parametrize("quality", [18, 23, 31])
    def test_in_range(self, quality):
        validate_quality(quality)

    @pytest.mark.parametrize("quality", [17, 32, 0])
    def test_out_of_range(self, quality):
        with pytest.raises(JobValidationError, match="between 18 and 31"):
            validate_quality(quality)


class TestSubmitEncodeRequest:
    """Tests for submit_encode_request."""

    async def test_creates_queued_jobs(self, store, media_dir):
        request = EncodeRequest(
            files=["movie.mkv", "show_x264.mkv"], codec="x265", quality=22
        )

        result = await submit_encode_request(store, request, [media_dir])

        assert len(result.jobs) == 2
        assert result.rejected == {}
        assert result.message == "Created 2 encoding jobs"
        stored = await store.get_all_jobs()
        assert {j.status for j in stored} == {JobStatus.QUEUED}
        outputs = sorted(Path(j.output_path).name for j in stored)
        assert outputs == ["movie [h265].mkv", "show_h265.mkv"]

    async def test_records_sizes_and_flags(self, store, media_dir):
        request = EncodeRequest(
            files=["movie.mkv"],
            codec="av1",
            quality=30,
            use_hardware=False,
            auto_delete=True,
        )

        result = await submit_encode_request(store, request, [media_dir])

        job = await store.get_job(result.jobs[0].id)
        assert job.input_size == 2
        assert job.requested_hardware is False
        assert job.auto_delete_source is True
        assert job.created_at is not None

    async def test_partial_success(self, store, media_dir):
        request = EncodeRequest(
            files=["movie.mkv", "missing.mkv", "../escape.mkv", "nested"],
            codec="x264",
            quality=20,
        )

        result = await submit_encode_request(store, request, [media_dir])

        assert [j.filename for j in result.jobs] == ["movie.mkv"]
        assert set(result.rejected) == {"missing.mkv", "../escape.mkv", "nested"}
        assert result.message == "Created 1 encoding job"
        assert result.to_dict()["success"] is True

    async def test_nul_byte_path_is_rejected(self, store, media_dir):
        request = EncodeRequest(
            files=["movie.mkv", "bad\x00name.mkv"], codec="x265", quality=22
        )

        result = await submit_encode_request(store, request, [media_dir])

        assert [j.filename for j in result.jobs] == ["movie.mkv"]
        assert list(result.rejected) == ["bad\x00name.mkv"]
        assert result.rejected["bad\x00name.mkv"].startswith("Invalid path")

    async def test_all_rejected_raises(self, store, media_dir):
        request = EncodeRequest(files=["missing.mkv"], codec="x264", quality=20)

        with pytest.raises(JobValidationError, match="No valid jobs"):
            await submit_encode_request(store, request, [media_dir])
        assert await store.get_all_jobs() == []

    async def test_quality_out_of_range_creates_nothing(self, store, media_dir):
        request = EncodeRequest(files=["movie.mkv"], codec="x264", quality=40)

        with pytest.raises(JobValidationError):
            await submit_encode_request(store, request, [media_dir])
        assert await store.get_all_jobs() == []

    async def test_custom_quality_range(self, store, media_dir):
        request = EncodeRequest(files=["movie.mkv"], codec="x264", quality=40)

        result = await submit_encode_request(
            store, request, [media_dir], quality_range=(0, 51)
        )

        assert result.jobs[0].quality == 40
