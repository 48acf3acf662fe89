"""Structlog configuration for query logs.

Routes structlog through the stdlib :mod:`logging` module and renders each
record as JSON (via orjson) or as colored console output.  Query records
produced by :class:`structquery.QueryHook` come out with these fields:

- ``timestamp``: ISO 8601 in UTC.
- ``service``: application name.
- ``level`` / ``severity``: canonical level name and RFC 5424 code.
- ``message``: the query text, truncated to ``max_query_length``.
- ``operation``, ``operation_duration_ms`` and, for failures, ``error``.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Sequence
from logging.handlers import RotatingFileHandler
from typing import Any

import orjson
import structlog
from structlog.contextvars import merge_contextvars

from structquery.errors import ErrorDictProcessor
from structquery.processors import (
    add_service,
    add_syslog_severity,
    ensure_event_is_str,
    normalize_level,
    truncate_query,
)


def _orjson_serializer(obj: object, **_kw: object) -> str:
    return orjson.dumps(obj, default=str).decode()


def to_logging_level(level_name: str) -> int:
    """Convert a level name such as ``"warn"`` to its :mod:`logging` constant.

    Unknown names map to ``INFO``.
    """
    upper_level = level_name.upper()
    if upper_level == "WARN":
        return logging.WARNING
    result = getattr(logging, upper_level, logging.INFO)
    return result if isinstance(result, int) else logging.INFO


def _stream_isatty(stream: Any) -> bool:
    try:
        result: bool = stream.isatty()
        return result
    except (AttributeError, ValueError):
        return False


def _build_shared_processors(
    service: str,
    max_query_length: int,
) -> list[structlog.types.Processor]:
    """Processor chain shared by structlog records and foreign stdlib records."""
    return [
        merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        normalize_level,  # type: ignore[list-item]
        add_syslog_severity,  # type: ignore[list-item]
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        add_service(service),  # type: ignore[list-item]
        truncate_query(max_query_length),  # type: ignore[list-item]
        ErrorDictProcessor(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        ensure_event_is_str,  # type: ignore[list-item]
        structlog.processors.EventRenamer("message"),
    ]


def _build_formatter(
    service: str,
    max_query_length: int,
    *,
    json_logs: bool,
    colors: bool = False,
) -> structlog.stdlib.ProcessorFormatter:
    renderer: structlog.types.Processor
    if json_logs:
        renderer = structlog.processors.JSONRenderer(serializer=_orjson_serializer)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=colors, event_key="message")

    processors: list[structlog.types.Processor] = [
        structlog.stdlib.ProcessorFormatter.remove_processors_meta,
    ]
    if json_logs:
        processors.append(structlog.processors.format_exc_info)
    processors.append(renderer)

    return structlog.stdlib.ProcessorFormatter(
        processors=processors,
        foreign_pre_chain=_build_shared_processors(service, max_query_length),
    )


def configure_structlog(
    *,
    service: str = "app",
    level: str = "INFO",
    json_logs: bool = True,
    stream: Any = None,
    clear_handlers: bool = True,
    max_query_length: int = 500,
) -> None:
    """Configure structlog and the root logger for query logging.

    Parameters
    ----------
    service:
        Application/service name added to every log record.
    level:
        Minimum log level (e.g. ``"DEBUG"``).  Query records are emitted at
        ``DEBUG`` by default, so the default ``INFO`` only shows slow and
        failed queries.
    json_logs:
        ``True`` for JSON output, ``False`` for console output.
    stream:
        Output stream.  Defaults to ``sys.stdout``.
    clear_handlers:
        Remove existing root logger handlers first.  Set to ``False`` when
        the host application manages its own handlers.
    max_query_length:
        Query text longer than this is cut in the rendered ``message``.
    """
    if stream is None:
        stream = sys.stdout

    shared_processors = _build_shared_processors(service, max_query_length)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(to_logging_level(level)),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    if clear_handlers:
        root.handlers.clear()
    root.setLevel(to_logging_level(level))

    handler = logging.StreamHandler(stream)
    handler.setFormatter(
        _build_formatter(
            service,
            max_query_length,
            json_logs=json_logs,
            colors=_stream_isatty(stream),
        )
    )
    root.addHandler(handler)


def setup_structlog(
    *,
    service: str = "app",
    suppress_loggers: Sequence[str] = ("sqlalchemy.engine",),
) -> None:
    """Application-level logging setup driven by environment variables.

    - ``LOG_LEVEL`` (default: ``"INFO"``)
    - ``JSON_LOGS`` (``"0"`` = console, default: ``"1"`` = JSON)
    - ``LOG_PATH`` (optional JSON file sink with 50 MB rotation)

    *suppress_loggers* are raised to ``WARNING``; by default this silences
    SQLAlchemy's own ``echo`` output, which would duplicate query records.
    """
    level = os.environ.get("LOG_LEVEL", "INFO")
    json_logs = os.environ.get("JSON_LOGS", "1") != "0"

    configure_structlog(service=service, level=level, json_logs=json_logs)

    for name in suppress_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    log_path = os.environ.get("LOG_PATH")
    if log_path:
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=50 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(_build_formatter(service, 500, json_logs=True))
        logging.getLogger().addHandler(file_handler)
