"""HTTP API routes."""

from transcodarr.server.api.jobs import setup_job_routes

__all__ = ["setup_job_routes"]
