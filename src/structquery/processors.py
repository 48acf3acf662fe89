"""Structlog processors used by :func:`structquery.configure_structlog`."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

_LEVEL_MAP: dict[str, str] = {
    "debug": "DEBUG",
    "info": "INFO",
    "warning": "WARN",
    "warn": "WARN",
    "error": "ERROR",
    "exception": "ERROR",
    "critical": "CRITICAL",
    "fatal": "CRITICAL",
}

# RFC 5424 syslog severity codes
_SEVERITY_MAP: dict[str, int] = {
    "DEBUG": 7,
    "INFO": 6,
    "WARN": 4,
    "ERROR": 3,
    "CRITICAL": 2,
}

QUERY_MARKER_KEY = "operation_duration_ms"


def add_service(
    service_name: str,
) -> Callable[[Any, str, dict[str, Any]], dict[str, Any]]:
    """Return a processor that adds a ``service`` field to every record."""

    def _processor(
        _logger: Any,
        _method_name: str,
        event_dict: dict[str, Any],
    ) -> dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    return _processor


def normalize_level(
    _logger: Any,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Rewrite ``level`` to one of ``CRITICAL``, ``ERROR``, ``WARN``, ``INFO``, ``DEBUG``."""
    raw_level = str(event_dict.get("level", method_name)).lower()
    event_dict["level"] = _LEVEL_MAP.get(raw_level, raw_level.upper())
    return event_dict


def add_syslog_severity(
    _logger: Any,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Add the numeric syslog ``severity``; run after :func:`normalize_level`."""
    event_dict["severity"] = _SEVERITY_MAP.get(event_dict.get("level", "INFO"), 6)
    return event_dict


def truncate_query(
    max_length: int = 500,
) -> Callable[[Any, str, dict[str, Any]], dict[str, Any]]:
    """Return a processor cutting query text to *max_length* characters.

    Only records carrying ``operation_duration_ms`` (i.e. query records)
    are touched; a ``query_truncated`` flag is added when text was cut.
    A non-positive *max_length* disables truncation.
    """

    def _processor(
        _logger: Any,
        _method_name: str,
        event_dict: dict[str, Any],
    ) -> dict[str, Any]:
        if max_length <= 0 or QUERY_MARKER_KEY not in event_dict:
            return event_dict
        query = event_dict.get("event")
        if isinstance(query, str) and len(query) > max_length:
            event_dict["event"] = query[:max_length]
            event_dict["query_truncated"] = True
        return event_dict

    return _processor


def ensure_event_is_str(
    _logger: Any,
    _method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    event = event_dict.get("event")
    if event is not None and not isinstance(event, str):
        event_dict["event"] = str(event)
    return event_dict
