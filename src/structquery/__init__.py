"""structquery — structured, severity-classified query logs for structlog."""

from structquery.config import configure_structlog, setup_structlog
from structquery.errors import ErrorDictProcessor
from structquery.hook import (
    HookConfig,
    NoRowsError,
    Option,
    QueryEvent,
    QueryHook,
    QueryHookProtocol,
    from_env,
    with_enabled,
    with_error_level,
    with_log_slow,
    with_logger,
    with_non_errors,
    with_query_level,
    with_slow_level,
)
from structquery.processors import add_syslog_severity, normalize_level, truncate_query

__version__ = "0.1.0"

__all__ = [
    "ErrorDictProcessor",
    "HookConfig",
    "NoRowsError",
    "Option",
    "QueryEvent",
    "QueryHook",
    "QueryHookProtocol",
    "add_syslog_severity",
    "configure_structlog",
    "from_env",
    "normalize_level",
    "setup_structlog",
    "truncate_query",
    "with_enabled",
    "with_error_level",
    "with_log_slow",
    "with_logger",
    "with_non_errors",
    "with_query_level",
    "with_slow_level",
]
