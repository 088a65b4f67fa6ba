"""
Logging helpers for request-scoped correlation.

Overview
--------
- `request_id_var` holds the id of the request currently being dispatched.
  `request_pipeline.stages.RequestIDStage` binds it on the way in and resets
  it on the way out, so ids never leak between requests served by the same
  worker thread.
- `RequestIDFilter` copies the id onto every `LogRecord` so formatters using
  `%(request_id)s` keep working for logs emitted outside a request (startup,
  management commands). A dash `"-"` is used when no id is bound.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar, Token

request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


def bind_request_id(rid: str) -> Token:
    """Bind `rid` for the current context; pass the token to `reset_request_id`."""
    return request_id_var.set(rid)


def reset_request_id(token: Token) -> None:
    request_id_var.reset(token)


class RequestIDFilter(logging.Filter):
    """Ensure `record.request_id` is always set."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get()
        return True
