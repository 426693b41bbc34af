"""Tests for job logging context and formatters."""

import asyncio
import json
import logging
import sys

from transcodarr.config.models import LoggingConfig
from transcodarr.logging import configure_logging
from transcodarr.logging.context import (
    JobContextFilter,
    get_job_context,
    job_context,
    set_job_context,
)
from transcodarr.logging.handlers import JSONFormatter


def make_record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="transcodarr.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=message,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJobContext:
    """Tests for the job context variable."""

    def test_context_manager_restores(self) -> None:
        assert get_job_context() is None
        with job_context(42):
            assert get_job_context() == 42
            with job_context(7):
                assert get_job_context() == 7
            assert get_job_context() == 42
        assert get_job_context() is None

    async def test_tasks_are_isolated(self) -> None:
        async def worker(job_id: int) -> int | None:
            set_job_context(job_id)
            await asyncio.sleep(0)
            return get_job_context()

        results = await asyncio.gather(worker(1), worker(2))

        assert results == [1, 2]
        assert get_job_context() is None


class TestJobContextFilter:
    """Tests for JobContextFilter."""

    def test_adds_tag_inside_context(self) -> None:
        record = make_record()
        with job_context(42):
            assert JobContextFilter().filter(record) is True

        assert record.job_id == 42
        assert record.job_tag == "[J42] "

    def test_empty_tag_outside_context(self) -> None:
        record = make_record()
        JobContextFilter().filter(record)

        assert record.job_id is None
        assert record.job_tag == ""


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_basic_fields(self) -> None:
        data = json.loads(JSONFormatter().format(make_record("Started job")))

        assert data["level"] == "INFO"
        assert data["message"] == "Started job"
        assert data["logger"] == "transcodarr.test"
        assert "timestamp" in data
        assert "job_id" not in data

    def test_job_id_and_extra_context(self) -> None:
        record = make_record(job_id=5, job_tag="[J5] ", pid=1234)

        data = json.loads(JSONFormatter().format(record))

        assert data["job_id"] == 5
        assert data["context"] == {"pid": 1234}

    def test_exception(self) -> None:
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record()
            record.exc_info = sys.exc_info()

        data = json.loads(JSONFormatter().format(record))

        assert "RuntimeError: boom" in data["exception"]


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_file_handler_with_json(self, temp_dir) -> None:
        log_file = temp_dir / "logs" / "transcodarr.log"
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_logging(
                LoggingConfig(level="debug", file=log_file, format="json")
            )
            with job_context(3):
                logging.getLogger("transcodarr.test").info("encoding")
            for handler in root.handlers:
                handler.flush()

            line = log_file.read_text().strip().splitlines()[-1]
            data = json.loads(line)
            assert data["message"] == "encoding"
            assert data["job_id"] == 3
            assert logging.getLogger("aiohttp.access").level == logging.WARNING
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)
