"""Transcodarr: a concurrency-limited ffmpeg transcoding queue."""

__version__ = "0.3.0"
