"""Query event classification for structlog.

A :class:`QueryHook` receives before/after notifications for each database
query and emits exactly one structured record per completed query.  The
severity is chosen from the outcome and latency:

*   a failed query is logged at the error level, with an ``error`` attribute;
*   a successful query slower than the threshold is logged at the slow level;
*   anything else is logged at the query level.

"No rows" sentinel exceptions count as success.  Configuration is built once
from option callables and never changes afterwards::

    from structquery import QueryHook, from_env, with_log_slow

    hook = QueryHook(from_env("SQLDEBUG"), with_log_slow(200))
"""

from __future__ import annotations

import contextvars
import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import timedelta
from time import perf_counter
from typing import Any, Protocol, TypeAlias

import structlog

from structquery.config import to_logging_level

DEFAULT_ENV_KEY = "STRUCTQUERY_DEBUG"
DEFAULT_LOGGER_NAME = "structquery"

_MAX_OPERATION_LENGTH = 16

# Checked from the highest level down; the first threshold <= level wins.
_LEVEL_METHODS: tuple[tuple[int, str], ...] = (
    (logging.CRITICAL, "critical"),
    (logging.ERROR, "error"),
    (logging.WARNING, "warning"),
    (logging.INFO, "info"),
    (logging.DEBUG, "debug"),
)


class NoRowsError(LookupError):
    """Raised (or mapped to) when a lookup query returns no rows."""


def _default_logger() -> Any:
    return structlog.get_logger(DEFAULT_LOGGER_NAME)


@dataclass(frozen=True)
class QueryEvent:
    """A single query execution as seen by the ORM."""

    query: str
    start_time: float
    err: BaseException | None = None
    operation_name: str | None = None

    @property
    def operation(self) -> str:
        """Short statement verb, e.g. ``SELECT``.

        Derived from the first word of the query text unless the ORM
        supplied one explicitly.
        """
        if self.operation_name:
            return self.operation_name
        words = self.query.split(None, 1)
        if not words:
            return ""
        return words[0][:_MAX_OPERATION_LENGTH].upper()


@dataclass(frozen=True)
class HookConfig:
    enabled: bool = True
    query_level: int = logging.DEBUG
    slow_level: int = logging.WARNING
    error_level: int = logging.ERROR
    slow_threshold_ms: float = 0.0
    logger: Any = field(default_factory=_default_logger)
    non_errors: tuple[type[BaseException], ...] = (NoRowsError,)


Option: TypeAlias = Callable[[HookConfig], HookConfig]


def _normalize_level(level: int | str) -> int:
    if isinstance(level, int):
        return level
    return to_logging_level(level)


def with_enabled(on: bool) -> Option:
    """Enable or disable the hook."""

    def _apply(config: HookConfig) -> HookConfig:
        return replace(config, enabled=on)

    return _apply


def from_env(*keys: str, environ: Mapping[str, str] | None = None) -> Option:
    """Enable or disable the hook from environment variables.

    The first of *keys* present in *environ* (default :data:`os.environ`)
    decides: ``""`` or ``"0"`` disables the hook, any other value enables it.
    When none of the keys is set the previous setting is kept.  The lookup
    happens once, when the hook is constructed.
    """
    names = keys or (DEFAULT_ENV_KEY,)

    def _apply(config: HookConfig) -> HookConfig:
        env = os.environ if environ is None else environ
        for name in names:
            if name in env:
                value = env[name]
                return replace(config, enabled=value not in ("", "0"))
        return config

    return _apply


def with_error_level(level: int | str) -> Option:
    resolved = _normalize_level(level)

    def _apply(config: HookConfig) -> HookConfig:
        return replace(config, error_level=resolved)

    return _apply


def with_query_level(level: int | str) -> Option:
    resolved = _normalize_level(level)

    def _apply(config: HookConfig) -> HookConfig:
        return replace(config, query_level=resolved)

    return _apply


def with_slow_level(level: int | str) -> Option:
    resolved = _normalize_level(level)

    def _apply(config: HookConfig) -> HookConfig:
        return replace(config, slow_level=resolved)

    return _apply


def with_log_slow(threshold: float | timedelta) -> Option:
    """Log successful queries taking at least *threshold* at the slow level.

    Plain numbers are milliseconds.  Zero or a negative value disables slow
    query detection.
    """
    if isinstance(threshold, timedelta):
        threshold_ms = threshold.total_seconds() * 1000
    elif isinstance(threshold, (int, float)) and not isinstance(threshold, bool):
        threshold_ms = float(threshold)
    else:
        msg = f"threshold must be a number of milliseconds or a timedelta, got {type(threshold)!r}"
        raise TypeError(msg)

    def _apply(config: HookConfig) -> HookConfig:
        return replace(config, slow_threshold_ms=threshold_ms)

    return _apply


def with_logger(logger: Any) -> Option:
    """Send records to *logger*; ``None`` restores the default logger."""

    def _apply(config: HookConfig) -> HookConfig:
        return replace(config, logger=logger if logger is not None else _default_logger())

    return _apply


def with_non_errors(*types: type[BaseException]) -> Option:
    """Treat exceptions of *types* as successful outcomes.

    Replaces the default set, which only contains :class:`NoRowsError`.
    """
    for exc_type in types:
        if not (isinstance(exc_type, type) and issubclass(exc_type, BaseException)):
            msg = f"non-error sentinels must be exception types, got {exc_type!r}"
            raise TypeError(msg)

    def _apply(config: HookConfig) -> HookConfig:
        return replace(config, non_errors=tuple(types))

    return _apply


def _method_for_level(level: int) -> str:
    for threshold, method in _LEVEL_METHODS:
        if level >= threshold:
            return method
    return "debug"


def _emit(log_method: Callable[..., Any], message: str, attrs: dict[str, Any]) -> None:
    try:
        log_method(message, **attrs)
    except Exception:
        pass


class QueryHookProtocol(Protocol):
    def before_query(self, ctx: Any, event: QueryEvent) -> Any: ...

    def after_query(self, ctx: Any, event: QueryEvent) -> None: ...


class QueryHook:
    """Turns completed query events into structured log records."""

    def __init__(self, *options: Option) -> None:
        config = HookConfig()
        for option in options:
            config = option(config)
        self._config = config

    @property
    def config(self) -> HookConfig:
        return self._config

    def before_query(self, ctx: Any, event: QueryEvent) -> Any:
        """Does nothing; returns *ctx* unchanged."""
        return ctx

    def after_query(self, ctx: Any, event: QueryEvent) -> None:
        """Classify *event* and emit one record through the configured logger.

        When *ctx* is a :class:`contextvars.Context` the record is emitted
        inside it, so request-scoped context bound with
        :func:`structlog.contextvars.bind_contextvars` travels with the query.
        A context that is already entered, or any other *ctx* value, emits in
        the current context.  Failures raised by the logger are discarded.
        """
        config = self._config
        if not config.enabled:
            return

        duration_ms = max((perf_counter() - event.start_time) * 1000, 0.0)
        attrs: dict[str, Any] = {
            "operation": event.operation,
            "operation_duration_ms": int(duration_ms),
        }

        err = event.err
        if err is None or isinstance(err, config.non_errors):
            if 0 < config.slow_threshold_ms <= duration_ms:
                level = config.slow_level
            else:
                level = config.query_level
        else:
            level = config.error_level
            attrs["error"] = err

        log_method = getattr(config.logger, _method_for_level(level), None)
        if log_method is None:
            return

        if isinstance(ctx, contextvars.Context):
            try:
                ctx.run(_emit, log_method, event.query, attrs)
                return
            except RuntimeError:
                # Already entered, e.g. the caller's running context.
                pass
        _emit(log_method, event.query, attrs)
