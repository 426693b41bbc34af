"""Structured logging with JSON output, file rotation and job context."""

from transcodarr.logging.config import configure_logging
from transcodarr.logging.context import (
    JobContextFilter,
    get_job_context,
    job_context,
    set_job_context,
)
from transcodarr.logging.handlers import JSONFormatter

__all__ = [
    "JSONFormatter",
    "JobContextFilter",
    "configure_logging",
    "get_job_context",
    "job_context",
    "set_job_context",
]
