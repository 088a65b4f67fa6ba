"""
Stage library for the request pipeline.

Every stage is a small object with a `name` and
`__call__(request, call_next) -> response`; stages that need settings read
them once at construction, since the pipeline is built once at startup.

Components
----------
- `MethodOverrideStage`:
    * Lets HTML forms (which can only POST) reach PUT/PATCH/DELETE handlers.
    * Reads the `_method` form field, then the `X-HTTP-Method-Override` header.
    * Rewrites the request method for the rest of the chain and keeps the
      original verb on `request.original_method`.
    * Keeps CSRF working for overridden form posts; unparsable bodies get a 400.

- `RequestIDStage`:
    * Reads `X-Request-ID` (or generates one) and reflects it in the response.
    * Binds the id to `core.logging.request_id_var` for the request's lifetime.
    * Logs one structured line per request including latency (ms).

- `RequestSizeLimitStage`:
    * Short-circuits large POST/PUT/PATCH bodies with a pre-rendered 413 JSON
      response, before anything downstream parses them.
    * Relies on `Content-Length`; missing or unparsable values pass through.

- `BestStandardsStage`:
    * Adds `X-UA-Compatible` so legacy Internet Explorer uses its most
      standards-compliant renderer (opt-in, not in the default manifest).

- `FunctionStage` / `stage()`:
    * Adapt a plain `fn(request, call_next)` into a named stage.
"""

from __future__ import annotations

import logging
import re
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Optional

from django.conf import settings
from django.core.exceptions import SuspiciousOperation
from django.http import HttpRequest, HttpResponse
from django.http.multipartparser import MultiPartParserError

from core.logging import bind_request_id, reset_request_id

from .responses import rendered_json

logger = logging.getLogger(__name__)
request_logger = logging.getLogger("railsauth.request")

# Verbs a POST may be rewritten to.
HTTP_METHODS = frozenset(
    {"GET", "HEAD", "PUT", "POST", "DELETE", "OPTIONS", "PATCH", "LINK", "UNLINK"}
)
FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")

# Allow simple, safe request-id tokens coming from clients
_ALLOWED_CHARS = re.compile(r"^[A-Za-z0-9._\-]{1,200}$")


def _coerce_request_id(raw: str | None) -> str:
    """Return a client-provided request id if it is a safe token, else a new one."""
    if raw and _ALLOWED_CHARS.match(raw):
        return raw
    return uuid.uuid4().hex


@dataclass(frozen=True)
class FunctionStage:
    """A named stage backed by a plain function `fn(request, call_next)`."""

    name: str
    fn: Callable[[Any, Callable[[Any], Any]], Any]

    def __call__(self, request, call_next):
        return self.fn(request, call_next)


def stage(name: str) -> Callable[[Callable], FunctionStage]:
    """
    Decorator turning a function into a `FunctionStage`.

        @stage("timing")
        def timing(request, call_next):
            ...
    """

    def wrap(fn: Callable) -> FunctionStage:
        return FunctionStage(name=name, fn=fn)

    return wrap


class MethodOverrideStage:
    """
    Rewrite POST requests to the verb named by a hidden form field or header.

    The rewrite is permanent for the rest of the chain and the terminal
    handler; nothing is restored on the way back out.

    CSRF: Django's check runs after this stage and only reads the form token
    of POST requests. When the verb came from the form field, the form token
    is copied into the CSRF header slot so the rewritten request still passes.

    A body Django refuses to parse (too many fields, too large, broken
    multipart) short-circuits with a 400 JSON error.
    """

    name = "method-override"

    def __init__(self, param: Optional[str] = None, header: Optional[str] = None) -> None:
        self.param = param or getattr(settings, "METHOD_OVERRIDE_PARAM", "_method")
        self.header = header or getattr(settings, "METHOD_OVERRIDE_HEADER", "X-HTTP-Method-Override")

    def __call__(self, request: HttpRequest, call_next) -> HttpResponse:
        if (request.method or "").upper() == "POST":
            try:
                override, from_form = self._requested_method(request)
            except (SuspiciousOperation, MultiPartParserError) as exc:
                logger.warning("Rejecting unparsable request body: %s", exc)
                return rendered_json(
                    {
                        "detail": "Malformed request body.",
                        "code": "bad_request_body",
                    },
                    status=400,
                )

            if override in HTTP_METHODS:
                if from_form:
                    self._carry_csrf_token(request)
                request.original_method = request.method
                request.method = override
                request.META["REQUEST_METHOD"] = override
            elif override:
                logger.debug("Ignoring unsupported method override %r", override)
        return call_next(request)

    def _requested_method(self, request: HttpRequest) -> tuple[str, bool]:
        """Return the upper-cased verb asked for and whether it came from the form."""
        if (request.content_type or "") in FORM_CONTENT_TYPES:
            # Must read POST while the method is still POST; Django skips body
            # parsing for any other verb.
            value = (request.POST.get(self.param) or "").strip()
            if value:
                return value.upper(), True
        value = request.headers.get(self.header) or ""
        return value.strip().upper(), False

    @staticmethod
    def _carry_csrf_token(request: HttpRequest) -> None:
        header = settings.CSRF_HEADER_NAME
        token = request.POST.get("csrfmiddlewaretoken")
        if token and not request.META.get(header):
            request.META[header] = token


class RequestIDStage:
    """
    - Reads `X-Request-ID` (if provided) or generates one.
    - Adds `request.request_id` and response header `X-Request-ID`.
    - Logs one structured line per request with latency (ms).
    """

    name = "request-id"

    def __call__(self, request: HttpRequest, call_next) -> HttpResponse:
        rid = _coerce_request_id(request.headers.get("X-Request-ID"))
        request.request_id = rid
        token = bind_request_id(rid)

        start = time.perf_counter()
        try:
            response = call_next(request)
            duration_ms = int((time.perf_counter() - start) * 1000)

            response["X-Request-ID"] = rid
            request_logger.info(
                "request",
                extra={
                    "request_id": rid,
                    "method": request.method,
                    "path": request.path,
                    "status": getattr(response, "status_code", 0),
                    "duration_ms": duration_ms,
                },
            )
            return response
        finally:
            reset_request_id(token)


class RequestSizeLimitStage:
    """
    Reject overly large request bodies with 413, before any parsing.

    Configured via `max_bytes` or settings.MAX_REQUEST_BYTES (default 2_000_000);
    a limit of 0 disables the check.
    """

    name = "request-size-limit"
    methods = frozenset({"POST", "PUT", "PATCH"})

    def __init__(self, max_bytes: Optional[int] = None) -> None:
        if max_bytes is None:
            max_bytes = getattr(settings, "MAX_REQUEST_BYTES", 2_000_000)
        self.max_bytes = int(max_bytes)

    def __call__(self, request: HttpRequest, call_next) -> HttpResponse:
        if (request.method or "").upper() in self.methods and self.max_bytes > 0:
            raw_len = request.META.get("CONTENT_LENGTH")
            try:
                content_length = int(raw_len) if raw_len else None
            except ValueError:
                content_length = None

            if content_length is not None and content_length > self.max_bytes:
                return rendered_json(
                    {
                        "detail": f"Request entity too large. Max {self.max_bytes} bytes.",
                        "code": "request_too_large",
                        "max_bytes": self.max_bytes,
                    },
                    status=413,
                )

        return call_next(request)


class BestStandardsStage:
    """Add `X-UA-Compatible: IE=Edge[,chrome=1]` to every response."""

    name = "best-standards"
    header = "X-UA-Compatible"

    def __init__(self, chrome_frame: bool = True) -> None:
        self.value = "IE=Edge,chrome=1" if chrome_frame else "IE=Edge"

    def __call__(self, request: HttpRequest, call_next) -> HttpResponse:
        response = call_next(request)
        current = response.get(self.header)
        if not current:
            response[self.header] = self.value
        elif self.value not in current:
            response[self.header] = f"{current},{self.value}"
        return response
