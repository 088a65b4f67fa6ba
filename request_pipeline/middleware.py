"""
Django adapter for the request pipeline.

`PipelineMiddleware` is an ordinary Django middleware: Django constructs it
once per handler at startup with `get_response` (the rest of the Django
stack, ending in the view). That `get_response` becomes the terminal handler
of a pipeline built from `settings.PIPELINE_STAGES` and frozen immediately, so
the chain is immutable before the first request arrives.

Place it last in `MIDDLEWARE` so its stages run closest to the view.
"""

from __future__ import annotations

from typing import Callable

from django.http import HttpRequest, HttpResponse

from .manifest import build_pipeline


class PipelineMiddleware:
    """Dispatch every request through the configured stage chain."""

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response
        self.pipeline = build_pipeline(get_response, name="django")

    def __call__(self, request: HttpRequest) -> HttpResponse:
        return self.pipeline.handle(request)
