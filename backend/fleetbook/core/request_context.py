"""
Per-request context shared with log records and error bodies.

RequestIdMiddleware sets the id for the duration of a request; the
exception handlers and the logging filter read it back from here.
"""

from __future__ import annotations

from contextvars import ContextVar, Token
import logging
from typing import Optional

NO_REQUEST = "-"

_current_request_id: ContextVar[Optional[str]] = ContextVar("fleetbook_request_id", default=None)


def set_request_id(request_id: str) -> Token[Optional[str]]:
    return _current_request_id.set(request_id)


def reset_request_id(token: Token[Optional[str]]) -> None:
    _current_request_id.reset(token)


def get_request_id() -> Optional[str]:
    """The current request's id, or None outside a request."""
    return _current_request_id.get()


class RequestIdFilter(logging.Filter):
    """Tag records with ``request_id`` so the log format can always reference it."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = get_request_id() or NO_REQUEST
        return True


def attach_request_id_filter() -> None:
    for handler in logging.getLogger().handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())
