"""Database module for transcodarr.

The SQLite ``jobs`` table is the durable job store; see
``transcodarr.jobs.store`` for the async adapter the scheduler uses.
"""

from transcodarr.db.connection import connect, ensure_db_directory, get_connection
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
    utc_now_iso,
)
from transcodarr.db.schema import create_schema
from transcodarr.db.types import (
    TERMINAL_STATUSES,
    Codec,
    HardwareKind,
    Job,
    JobStatus,
)

__all__ = [
    # Connection
    "connect",
    "ensure_db_directory",
    "get_connection",
    "create_schema",
    # Types
    "Codec",
    "HardwareKind",
    "Job",
    "JobStatus",
    "TERMINAL_STATUSES",
    # Queries
    "count_jobs_by_status",
    "delete_job",
    "get_all_jobs",
    "get_job",
    "get_next_queued_job",
    "get_running_jobs",
    "insert_job",
    "update_job",
    "update_job_if_status",
    "utc_now_iso",
]
