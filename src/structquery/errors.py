"""Structured rendering of query failures.

:class:`structquery.QueryHook` attaches the raw exception under ``error``.
:class:`ErrorDictProcessor` turns it into a JSON-serializable dictionary with
the exception type, message, module, optional traceback frames and the
underlying DBAPI cause, if any.
"""

from __future__ import annotations

import traceback
from typing import Any


class ErrorDictProcessor:
    """Convert an exception stored under *key* into a dictionary.

    Parameters
    ----------
    key:
        Event-dict key holding the exception (default ``"error"``).
    include_frames:
        If ``True``, include traceback frames.
    max_frames:
        Maximum number of traceback frames to include.
    """

    def __init__(
        self,
        *,
        key: str = "error",
        include_frames: bool = False,
        max_frames: int = 20,
    ) -> None:
        self._key = key
        self._include_frames = include_frames
        self._max_frames = max_frames

    def __call__(
        self,
        _logger: Any,
        _method_name: str,
        event_dict: dict[str, Any],
    ) -> dict[str, Any]:
        error = event_dict.get(self._key)
        if not isinstance(error, BaseException):
            return event_dict

        error_dict: dict[str, Any] = {
            "type": type(error).__qualname__,
            "message": str(error),
            "module": type(error).__module__,
        }

        if self._include_frames and error.__traceback__ is not None:
            error_dict["frames"] = [
                {
                    "filename": fs.filename,
                    "lineno": fs.lineno,
                    "name": fs.name,
                    "line": fs.line,
                }
                for fs in traceback.extract_tb(error.__traceback__)[-self._max_frames :]
            ]

        # SQLAlchemy wraps driver errors; surface the driver exception.
        cause = getattr(error, "orig", None)
        if not isinstance(cause, BaseException):
            cause = error.__cause__
        if cause is None and not error.__suppress_context__:
            cause = error.__context__
        if cause is not None:
            error_dict["cause"] = {
                "type": type(cause).__qualname__,
                "message": str(cause),
            }

        event_dict[self._key] = error_dict
        return event_dict
