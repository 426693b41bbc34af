"""Job CRUD operations for the transcodarr database.

These functions take an open connection and commit their own writes.
They are synchronous; the scheduler reaches them through
``transcodarr.jobs.store.JobStore``, which runs them off the event loop.
"""

import sqlite3
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from transcodarr.db.types import Codec, HardwareKind, Job, JobStatus

_JOB_COLUMNS = (
    "id, filename, input_path, output_path, codec, quality, "
    "requested_hardware, resolved_hardware_kind, auto_delete_source, "
    "status, progress, input_size, output_size, error_message, "
    "created_at, started_at, completed_at"
)

# Columns update_job() may touch (prevents SQL injection via field names)
UPDATABLE_JOB_COLUMNS = frozenset(
    {
        "output_path",
        "requested_hardware",
        "resolved_hardware_kind",
        "auto_delete_source",
        "status",
        "progress",
        "input_size",
        "output_size",
        "error_message",
        "started_at",
        "completed_at",
    }
)


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def _row_to_job(row: sqlite3.Row) -> Job:
    hw = row["resolved_hardware_kind"]
    return Job(
        id=row["id"],
        filename=row["filename"],
        input_path=row["input_path"],
        output_path=row["output_path"],
        codec=Codec(row["codec"]),
        quality=row["quality"],
        requested_hardware=bool(row["requested_hardware"]),
        resolved_hardware_kind=HardwareKind(hw) if hw is not None else None,
        auto_delete_source=bool(row["auto_delete_source"]),
        status=JobStatus(row["status"]),
        progress=float(row["progress"] or 0.0),
        input_size=row["input_size"],
        output_size=row["output_size"],
        error_message=row["error_message"],
        created_at=row["created_at"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
    )


def _to_db_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    return value


def insert_job(conn: sqlite3.Connection, job: Job) -> int:
    """Insert a new job record.

    Args:
        conn: Database connection.
        job: Job to insert. ``job.id`` is ignored; ``created_at`` defaults
            to now.

    Returns:
        The integer ID of the inserted job.
    """
    cursor = conn.execute(
        """
        INSERT INTO jobs (
            filename, input_path, output_path, codec, quality,
            requested_hardware, resolved_hardware_kind, auto_delete_source,
            status, progress, input_size, output_size, error_message,
            created_at, started_at, completed_at
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            job.filename,
            job.input_path,
            job.output_path,
            job.codec.value,
            job.quality,
            int(job.requested_hardware),
            _to_db_value(job.resolved_hardware_kind),
            int(job.auto_delete_source),
            job.status.value,
            job.progress,
            job.input_size,
            job.output_size,
            job.error_message,
            job.created_at or utc_now_iso(),
            job.started_at,
            job.completed_at,
        ),
    )
    conn.commit()
    return int(cursor.lastrowid)


def get_job(conn: sqlite3.Connection, job_id: int) -> Job | None:
    """Get a job by ID, or None if it does not exist."""
    row = conn.execute(
        f"SELECT {_JOB_COLUMNS} FROM jobs WHERE id = ?", (job_id,)
    ).fetchone()
    return _row_to_job(row) if row is not None else None


def get_all_jobs(conn: sqlite3.Connection) -> list[Job]:
    """Get all jobs, newest (highest id) first."""
    cursor = conn.execute(f"SELECT {_JOB_COLUMNS} FROM jobs ORDER BY id DESC")
    return [_row_to_job(row) for row in cursor.fetchall()]


def update_job(
    conn: sqlite3.Connection, job_id: int, fields: dict[str, Any]
) -> bool:
    """Update only the given columns of a job.

    Args:
        conn: Database connection.
        job_id: Job ID.
        fields: Column name to new value. Enums and bools are converted.

    Returns:
        True if a row was updated, False if the job does not exist.

    Raises:
        ValueError: If a field is not an updatable column.
    """
    if not fields:
        return get_job(conn, job_id) is not None

    unknown = set(fields) - UPDATABLE_JOB_COLUMNS
    if unknown:
        raise ValueError(f"Cannot update job column(s): {sorted(unknown)}")

    names = list(fields)
    set_clause = ", ".join(f"{name} = ?" for name in names)
    values = [_to_db_value(fields[name]) for name in names]
    values.append(job_id)

    cursor = conn.execute(f"UPDATE jobs SET {set_clause} WHERE id = ?", values)
    conn.commit()
    return cursor.rowcount > 0


def update_job_if_status(
    conn: sqlite3.Connection,
    job_id: int,
    expected: tuple[JobStatus, ...],
    fields: dict[str, Any],
) -> bool:
    """Update a job only while it is in one of the expected statuses.

    Used for state transitions so a concurrent writer cannot move a job
    out of a terminal state.

    Returns:
        True if the row was updated.
    """
    unknown = set(fields) - UPDATABLE_JOB_COLUMNS
    if unknown:
        raise ValueError(f"Cannot update job column(s): {sorted(unknown)}")

    names = list(fields)
    set_clause = ", ".join(f"{name} = ?" for name in names)
    placeholders = ", ".join("?" for _ in expected)
    values = [_to_db_value(fields[name]) for name in names]
    values.append(job_id)
    values.extend(status.value for status in expected)

    cursor = conn.execute(
        f"UPDATE jobs SET {set_clause} WHERE id = ? AND status IN ({placeholders})",
        values,
    )
    conn.commit()
    return cursor.rowcount > 0


def delete_job(conn: sqlite3.Connection, job_id: int) -> bool:
    """Delete a job record unconditionally.

    Returns:
        True if a row was deleted.
    """
    cursor = conn.execute("DELETE FROM jobs WHERE id = ?", (job_id,))
    conn.commit()
    return cursor.rowcount > 0


def get_next_queued_job(conn: sqlite3.Connection) -> Job | None:
    """Get the oldest queued job, or None if the queue is empty."""
    row = conn.execute(
        f"""
        SELECT {_JOB_COLUMNS} FROM jobs
        WHERE status = 'queued'
        ORDER BY created_at ASC, id ASC
        LIMIT 1
        """
    ).fetchone()
    return _row_to_job(row) if row is not None else None


def get_running_jobs(conn: sqlite3.Connection) -> list[Job]:
    """Get all jobs currently marked running."""
    cursor = conn.execute(
        f"SELECT {_JOB_COLUMNS} FROM jobs WHERE status = 'running' ORDER BY id"
    )
    return [_row_to_job(row) for row in cursor.fetchall()]


def count_jobs_by_status(conn: sqlite3.Connection) -> dict[str, int]:
    """Get job counts per status, plus a ``total`` key."""
    stats = {status.value: 0 for status in JobStatus}
    stats["total"] = 0
    cursor = conn.execute("SELECT status, COUNT(*) FROM jobs GROUP BY status")
    for status, count in cursor.fetchall():
        stats[status] = count
        stats["total"] += count
    return stats
