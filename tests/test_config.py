"""Tests for structquery.config."""

from __future__ import annotations

import io
import logging
from pathlib import Path
from unittest.mock import patch

import orjson
import structlog
from structlog.contextvars import bound_contextvars

from structquery.config import (
    _orjson_serializer,
    _stream_isatty,
    configure_structlog,
    setup_structlog,
    to_logging_level,
)


class TestToLoggingLevel:
    def test_standard_levels(self) -> None:
        assert to_logging_level("DEBUG") == logging.DEBUG
        assert to_logging_level("INFO") == logging.INFO
        assert to_logging_level("WARNING") == logging.WARNING
        assert to_logging_level("ERROR") == logging.ERROR
        assert to_logging_level("CRITICAL") == logging.CRITICAL

    def test_warn_alias(self) -> None:
        assert to_logging_level("warn") == logging.WARNING

    def test_unknown_defaults_to_info(self) -> None:
        assert to_logging_level("CUSTOM") == logging.INFO

    def test_non_level_attribute_defaults_to_info(self) -> None:
        assert to_logging_level("basic_format") == logging.INFO


class TestStreamIsatty:
    def test_non_tty_stream(self) -> None:
        assert _stream_isatty(io.StringIO()) is False

    def test_no_isatty_method(self) -> None:
        assert _stream_isatty(object()) is False


class TestOrjsonSerializer:
    def test_falls_back_to_str(self) -> None:
        assert orjson.loads(_orjson_serializer({"path": Path("/tmp")})) == {"path": "/tmp"}


class TestConfigureStructlog:
    def test_json_output(self) -> None:
        buf = io.StringIO()
        configure_structlog(service="testsvc", level="DEBUG", json_logs=True, stream=buf)

        structlog.get_logger("test").debug("SELECT 1", operation="SELECT", operation_duration_ms=3)
        record = orjson.loads(buf.getvalue())
        assert record["message"] == "SELECT 1"
        assert record["service"] == "testsvc"
        assert record["level"] == "DEBUG"
        assert record["severity"] == 7
        assert record["operation_duration_ms"] == 3
        assert "timestamp" in record

    def test_console_output(self) -> None:
        buf = io.StringIO()
        configure_structlog(service="testsvc", level="DEBUG", json_logs=False, stream=buf)

        structlog.get_logger("test").info("SELECT 1")
        assert "SELECT 1" in buf.getvalue()

    def test_level_filtering(self) -> None:
        buf = io.StringIO()
        configure_structlog(service="app", level="WARNING", json_logs=True, stream=buf)

        log = structlog.get_logger("test")
        log.debug("SELECT fast")
        assert buf.getvalue() == ""

        log.warning("SELECT slow")
        assert "SELECT slow" in buf.getvalue()

    def test_error_attribute_serialized(self) -> None:
        buf = io.StringIO()
        configure_structlog(service="app", level="DEBUG", stream=buf)

        structlog.get_logger("test").error("SELECT 1", operation_duration_ms=0, error=ValueError("bad"))
        record = orjson.loads(buf.getvalue())
        assert record["error"]["type"] == "ValueError"

    def test_query_truncated(self) -> None:
        buf = io.StringIO()
        configure_structlog(service="app", level="DEBUG", stream=buf, max_query_length=8)

        structlog.get_logger("test").debug("SELECT a, b, c FROM t", operation_duration_ms=0)
        record = orjson.loads(buf.getvalue())
        assert record["message"] == "SELECT a"
        assert record["query_truncated"] is True

    def test_contextvars_merged(self) -> None:
        buf = io.StringIO()
        configure_structlog(service="app", level="DEBUG", stream=buf)

        with bound_contextvars(request_id="abc"):
            structlog.get_logger("test").info("SELECT 1")
        assert orjson.loads(buf.getvalue())["request_id"] == "abc"

    def test_foreign_stdlib_records_formatted(self) -> None:
        buf = io.StringIO()
        configure_structlog(service="app", level="INFO", stream=buf)

        logging.getLogger("plain").warning("from stdlib")
        record = orjson.loads(buf.getvalue())
        assert record["message"] == "from stdlib"
        assert record["level"] == "WARN"

    def test_keeps_handlers_when_asked(self) -> None:
        existing = logging.NullHandler()
        logging.getLogger().addHandler(existing)
        configure_structlog(stream=io.StringIO(), clear_handlers=False)
        assert existing in logging.getLogger().handlers


class TestSetupStructlog:
    def test_default_setup(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            setup_structlog(service="myapp")
        assert logging.getLogger().level == logging.INFO

    def test_suppresses_sqlalchemy_echo(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            setup_structlog(service="myapp")
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING

    def test_env_log_level(self) -> None:
        with patch.dict("os.environ", {"LOG_LEVEL": "DEBUG"}, clear=True):
            setup_structlog(service="myapp")
        assert logging.getLogger().level == logging.DEBUG

    def test_log_path_adds_file_handler(self, tmp_path: Path) -> None:
        log_file = tmp_path / "queries.log"
        with patch.dict("os.environ", {"LOG_PATH": str(log_file)}, clear=True):
            setup_structlog(service="myapp")
        handlers = [h for h in logging.getLogger().handlers if isinstance(h, logging.FileHandler)]
        assert len(handlers) == 1
        handlers[0].close()
