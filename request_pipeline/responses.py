"""
Fallback responses produced by the pipeline engine.

A dispatch that fails all the way out must still answer the caller. The
default fallback mirrors the project's JSON error shape (`detail` + `code`)
and is pre-rendered so it can be returned straight to Django without going
through a DRF view.
"""

from __future__ import annotations

from rest_framework.renderers import JSONRenderer
from rest_framework.response import Response

from core.logging import request_id_var


def rendered_json(payload: dict, status: int) -> Response:
    """Build a DRF `Response` and render it to JSON immediately."""
    resp = Response(payload, status=status)
    resp.accepted_renderer = JSONRenderer()
    resp.accepted_media_type = "application/json"
    resp.renderer_context = {}
    resp.render()  # ensure .content is available
    return resp


def dispatch_error_response(request, error) -> Response:
    """
    Default fallback: generic 500 that leaks nothing about the failure.

    The request id (or "-") is included so callers can correlate with logs;
    the id stored on the request wins because stages that bound the contextvar
    have already unwound by the time the fallback runs.
    """
    payload = {
        "detail": "Internal server error.",
        "code": "dispatch_error",
        "request_id": getattr(request, "request_id", None) or request_id_var.get(),
    }
    return rendered_json(payload, status=500)
