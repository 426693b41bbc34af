"""FFmpeg stderr progress parsing.

ffmpeg writes ``Duration: HH:MM:SS.xx`` once while opening the input and
then ``... time=HH:MM:SS.xx ...`` status lines, separated by carriage
returns rather than newlines. ``ProgressParser`` accepts that stream in
arbitrary chunks and turns it into a percentage.
"""

from __future__ import annotations

import re
from collections import deque

# Lines kept for failure diagnostics
MAX_DIAGNOSTIC_LINES = 50

DURATION_PATTERN = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
TIME_PATTERN = re.compile(r"time=\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
# Some builds print plain seconds, e.g. "time=125.32"
TIME_SECONDS_PATTERN = re.compile(r"time=\s*(\d+(?:\.\d+)?)(?![\d:])")

_LINE_SPLIT = re.compile(r"\r\n|\r|\n")


def parse_timestamp(hours: str, minutes: str, seconds: str) -> float:
    """Convert H, MM, SS[.fraction] capture groups to seconds."""
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def parse_duration(line: str) -> float | None:
    """Extract the total duration in seconds from a ``Duration:`` line."""
    match = DURATION_PATTERN.search(line)
    if match is None:
        return None
    return parse_timestamp(*match.groups())


def parse_elapsed(line: str) -> float | None:
    """Extract elapsed output time in seconds from a ``time=`` line."""
    match = TIME_PATTERN.search(line)
    if match is not None:
        return parse_timestamp(*match.groups())
    match = TIME_SECONDS_PATTERN.search(line)
    if match is not None:
        return float(match.group(1))
    return None


def compute_percent(elapsed: float, total: float) -> float:
    """Clamp ``elapsed / total`` to 0-100 and round to one decimal."""
    percent = (elapsed / total) * 100
    return round(max(0.0, min(100.0, percent)), 1)


class ProgressParser:
    """Incremental parser for one encoder invocation.

    Example:
        parser = ProgressParser()
        for chunk in stream:
            for percent in parser.feed(chunk):
                report(percent)
        for percent in parser.close():
            report(percent)
    """

    def __init__(self, max_lines: int = MAX_DIAGNOSTIC_LINES) -> None:
        self.duration: float | None = None
        self.elapsed: float | None = None
        self.percent: float | None = None
        self._partial = ""
        self._lines: deque[str] = deque(maxlen=max_lines)

    @property
    def last_lines(self) -> list[str]:
        """Most recent non-empty raw lines, oldest first."""
        return list(self._lines)

    def tail(self, count: int = 10) -> list[str]:
        """Return the last ``count`` diagnostic lines."""
        if count <= 0:
            return []
        return list(self._lines)[-count:]

    def feed(self, chunk: str) -> list[float]:
        """Consume a chunk of stderr text.

        Args:
            chunk: Arbitrary slice of the stream; may end mid-line.

        Returns:
            Percentages emitted by complete lines in this chunk, in order.
        """
        data = self._partial + chunk
        held = ""
        # A trailing "\r" may be the first half of "\r\n"
        if data.endswith("\r"):
            data, held = data[:-1], "\r"
        parts = _LINE_SPLIT.split(data)
        self._partial = parts.pop() + held
        results: list[float] = []
        for line in parts:
            percent = self._handle_line(line)
            if percent is not None:
                results.append(percent)
        return results

    def close(self) -> list[float]:
        """Flush a trailing partial line at end of stream."""
        line, self._partial = self._partial, ""
        if not line:
            return []
        percent = self._handle_line(line)
        return [percent] if percent is not None else []

    def _handle_line(self, line: str) -> float | None:
        line = line.strip()
        if not line:
            return None
        self._lines.append(line)

        if self.duration is None:
            duration = parse_duration(line)
            if duration is not None:
                if duration > 0:
                    self.duration = duration
                return None

        if self.duration is None:
            return None

        elapsed = parse_elapsed(line)
        if elapsed is None:
            return None
        self.elapsed = elapsed
        self.percent = compute_percent(elapsed, self.duration)
        return self.percent
