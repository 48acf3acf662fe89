"""SQLAlchemy query logging integration.

Attaches cursor event listeners to a SQLAlchemy engine and feeds every
executed statement through a :class:`~structquery.QueryHook`.

Usage::

    from structquery import from_env, with_log_slow
    from structquery.integrations.sqlalchemy import setup_query_logging

    setup_query_logging(engine, from_env("SQLDEBUG"), with_log_slow(100))

For an :class:`~sqlalchemy.ext.asyncio.AsyncEngine` pass
``engine.sync_engine``.
"""

from __future__ import annotations

import contextvars
from time import perf_counter
from typing import Any

from structquery.hook import Option, QueryEvent, QueryHook, QueryHookProtocol

_START_KEY = "structquery_query_start"


def setup_query_logging(
    engine: Any,
    *options: Option,
    hook: QueryHookProtocol | None = None,
) -> QueryHookProtocol:
    """Attach query logging listeners to *engine*.

    Parameters
    ----------
    engine:
        A :class:`sqlalchemy.engine.Engine`.
    options:
        Options for the :class:`~structquery.QueryHook` built when *hook*
        is not given.
    hook:
        An existing hook to use instead of building one.

    Returns
    -------
    QueryHookProtocol
        The hook receiving the events.
    """
    from sqlalchemy import event

    if hook is None:
        hook = QueryHook(*options)

    @event.listens_for(engine, "before_cursor_execute")  # type: ignore[untyped-decorator]
    def _before_execute(
        conn: Any,
        cursor: Any,
        statement: str,
        parameters: Any,
        context: Any,
        executemany: bool,
    ) -> None:
        start_time = perf_counter()
        ctx = hook.before_query(
            contextvars.copy_context(),
            QueryEvent(query=statement, start_time=start_time),
        )
        conn.info.setdefault(_START_KEY, []).append((start_time, ctx))

    @event.listens_for(engine, "after_cursor_execute")  # type: ignore[untyped-decorator]
    def _after_execute(
        conn: Any,
        cursor: Any,
        statement: str,
        parameters: Any,
        context: Any,
        executemany: bool,
    ) -> None:
        starts = conn.info.get(_START_KEY)
        if not starts:
            return
        start_time, ctx = starts.pop()
        hook.after_query(ctx, QueryEvent(query=statement, start_time=start_time))

    @event.listens_for(engine, "handle_error")  # type: ignore[untyped-decorator]
    def _handle_error(exception_context: Any) -> None:
        conn = exception_context.connection
        if conn is None:
            return
        starts = conn.info.get(_START_KEY)
        if not starts:
            return
        start_time, ctx = starts.pop()
        hook.after_query(
            ctx,
            QueryEvent(
                query=exception_context.statement or "",
                start_time=start_time,
                err=exception_context.original_exception,
            ),
        )

    return hook
