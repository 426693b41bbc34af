"""Standardized API error response helper.

All error responses include:
- ``error``: Human-readable error message
- ``code``: Machine-readable error code string
- ``details`` (optional): Additional context for the error

Usage:
    return api_error("Job 3 not found", code=NOT_FOUND, status=404)
"""

from __future__ import annotations

from typing import Any

from aiohttp import web

# --- Error code constants ---

INVALID_JSON = "INVALID_JSON"
INVALID_ID_FORMAT = "INVALID_ID_FORMAT"
NOT_FOUND = "NOT_FOUND"
VALIDATION_FAILED = "VALIDATION_FAILED"
PATH_NOT_ALLOWED = "PATH_NOT_ALLOWED"
RESOURCE_CONFLICT = "RESOURCE_CONFLICT"
DATABASE_UNAVAILABLE = "DATABASE_UNAVAILABLE"
SHUTTING_DOWN = "SHUTTING_DOWN"


def api_error(
    message: str,
    *,
    code: str,
    status: int = 400,
    details: Any = None,
) -> web.Response:
    """Create a standardized JSON error response.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (use constants from this module).
        status: HTTP status code (default 400).
        details: Optional additional context (string, list, or dict).

    Returns:
        aiohttp JSON response with ``{"error": ..., "code": ...}`` body.
    """
    body: dict[str, Any] = {"error": message, "code": code}
    if details is not None:
        body["details"] = details
    return web.json_response(body, status=status)
