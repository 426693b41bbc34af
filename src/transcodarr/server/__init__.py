"""aiohttp control surface hosting the job scheduler."""

from transcodarr.server.app import create_app

__all__ = ["create_app"]
