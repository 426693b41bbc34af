"""Tests for job query functions."""

import sqlite3

import pytest

from transcodarr.db.queries import (
    count_jobs_by_status,
    delete_job,
    get_all_jobs,
    get_job,
    get_next_queued_job,
    get_running_jobs,
    insert_job,
    update_job,
    update_job_if_status,
)
from transcodarr.db.schema import create_schema
from transcodarr.db.types import Codec, HardwareKind, Job, JobStatus


@pytest.fixture
def db_conn():
    """Create an in-memory database with schema."""
    conn = sqlite3.connect(":memory:")
    conn.row_factory = sqlite3.Row
    create_schema(conn)
    yield conn
    conn.close()


def create_job(
    conn: sqlite3.Connection,
    name: str = "movie.mkv",
    status: JobStatus = JobStatus.QUEUED,
    created_at: str = "2024-01-01T00:00:00+00:00",
    **kwargs,
) -> int:
    """Insert a job record and return its ID."""
    job = Job(
        id=None,
        filename=name,
        input_path=f"/media/{name}",
        output_path=f"/media/{name}.out.mkv",
        codec=Codec.X265,
        quality=23,
        status=status,
        created_at=created_at,
        **kwargs,
    )
    return insert_job(conn, job)


class TestInsertAndGet:
    """Tests for insert_job and get_job."""

    def test_round_trips_all_fields(self, db_conn):
        job_id = create_job(
            db_conn,
            requested_hardware=True,
            resolved_hardware_kind=HardwareKind.NVENC,
            auto_delete_source=True,
            input_size=1234,
        )

        job = get_job(db_conn, job_id)

        assert job is not None
        assert job.id == job_id
        assert job.codec is Codec.X265
        assert job.status is JobStatus.QUEUED
        assert job.requested_hardware is True
        assert job.resolved_hardware_kind is HardwareKind.NVENC
        assert job.auto_delete_source is True
        assert job.input_size == 1234
        assert job.progress == 0.0

    def test_missing_job_returns_none(self, db_conn):
        assert get_job(db_conn, 999) is None

    def test_created_at_defaults_to_now(self, db_conn):
        job = Job(
            id=None,
            filename="a.mkv",
            input_path="/media/a.mkv",
            output_path="/media/a [h265].mkv",
            codec=Codec.X265,
            quality=23,
        )
        job_id = insert_job(db_conn, job)

        stored = get_job(db_conn, job_id)
        assert stored is not None
        assert stored.created_at is not None

    def test_output_equal_to_input_is_rejected(self, db_conn):
        job = Job(
            id=None,
            filename="a.mkv",
            input_path="/media/a.mkv",
            output_path="/media/a.mkv",
            codec=Codec.X265,
            quality=23,
        )
        with pytest.raises(sqlite3.IntegrityError):
            insert_job(db_conn, job)

    def test_get_all_jobs_newest_first(self, db_conn):
        first = create_job(db_conn, "a.mkv")
        second = create_job(db_conn, "b.mkv")

        jobs = get_all_jobs(db_conn)

        assert [j.id for j in jobs] == [second, first]


class TestUpdateJob:
    """Tests for update_job."""

    def test_updates_only_given_fields(self, db_conn):
        job_id = create_job(db_conn)

        assert update_job(db_conn, job_id, {"progress": 42.5}) is True

        job = get_job(db_conn, job_id)
        assert job.progress == 42.5
        assert job.status is JobStatus.QUEUED

    def test_converts_enums_and_bools(self, db_conn):
        job_id = create_job(db_conn)

        update_job(
            db_conn,
            job_id,
            {
                "resolved_hardware_kind": HardwareKind.QSV,
                "requested_hardware": True,
            },
        )

        job = get_job(db_conn, job_id)
        assert job.resolved_hardware_kind is HardwareKind.QSV
        assert job.requested_hardware is True

    def test_missing_job_returns_false(self, db_conn):
        assert update_job(db_conn, 999, {"progress": 1.0}) is False

    def test_unknown_column_raises(self, db_conn):
        job_id = create_job(db_conn)

        with pytest.raises(ValueError, match="filename"):
            update_job(db_conn, job_id, {"filename": "x.mkv"})

    def test_empty_fields_reports_existence(self, db_conn):
        job_id = create_job(db_conn)

        assert update_job(db_conn, job_id, {}) is True
        assert update_job(db_conn, 999, {}) is False


class TestUpdateJobIfStatus:
    """Tests for the conditional update used by state transitions."""

    def test_updates_when_status_matches(self, db_conn):
        job_id = create_job(db_conn)

        updated = update_job_if_status(
            db_conn,
            job_id,
            (JobStatus.QUEUED,),
            {"status": JobStatus.RUNNING, "progress": 0.0},
        )

        assert updated is True
        assert get_job(db_conn, job_id).status is JobStatus.RUNNING

    def test_skips_when_status_differs(self, db_conn):
        job_id = create_job(db_conn, status=JobStatus.COMPLETED)

        updated = update_job_if_status(
            db_conn, job_id, (JobStatus.RUNNING,), {"status": JobStatus.FAILED}
        )

        assert updated is False
        assert get_job(db_conn, job_id).status is JobStatus.COMPLETED


class TestQueueQueries:
    """Tests for queue selection and counts."""

    def test_next_queued_is_oldest(self, db_conn):
        create_job(db_conn, "late.mkv", created_at="2024-01-02T00:00:00+00:00")
        early = create_job(db_conn, "early.mkv", created_at="2024-01-01T00:00:00+00:00")
        create_job(db_conn, "running.mkv", status=JobStatus.RUNNING,
                   created_at="2023-12-31T00:00:00+00:00")

        job = get_next_queued_job(db_conn)

        assert job is not None
        assert job.id == early

    def test_next_queued_ties_broken_by_id(self, db_conn):
        first = create_job(db_conn, "a.mkv")
        create_job(db_conn, "b.mkv")

        assert get_next_queued_job(db_conn).id == first

    def test_next_queued_empty(self, db_conn):
        create_job(db_conn, status=JobStatus.FAILED)

        assert get_next_queued_job(db_conn) is None

    def test_running_jobs(self, db_conn):
        create_job(db_conn, "a.mkv")
        running = create_job(db_conn, "b.mkv", status=JobStatus.RUNNING)

        assert [j.id for j in get_running_jobs(db_conn)] == [running]

    def test_count_by_status(self, db_conn):
        create_job(db_conn, "a.mkv")
        create_job(db_conn, "b.mkv")
        create_job(db_conn, "c.mkv", status=JobStatus.FAILED)

        counts = count_jobs_by_status(db_conn)

        assert counts["queued"] == 2
        assert counts["failed"] == 1
        assert counts["running"] == 0
        assert counts["total"] == 3


class TestDeleteJob:
    """Tests for delete_job."""

    def test_deletes_existing(self, db_conn):
        job_id = create_job(db_conn)

        assert delete_job(db_conn, job_id) is True
        assert get_job(db_conn, job_id) is None

    def test_missing_returns_false(self, db_conn):
        assert delete_job(db_conn, 999) is False
