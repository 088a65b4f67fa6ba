"""
Developer settings (extends base).

Defaults
--------
- DEBUG defaults True (overridable via env).
- SQLite by default unless `DATABASE_URL` is provided.
- Verbose pipeline diagnostics: the `request_pipeline` channel runs at DEBUG,
  so ignored method overrides are shown next to the INFO line `freeze()`
  writes with the stage order.

Security
--------
- Do not use these settings in production; cookies and HTTPS flags are not forced
  here. Use `prod.py` for hardened defaults.
"""

from .base import *  # noqa

DEBUG = env.bool("DEBUG", True)

CSRF_TRUSTED_ORIGINS = env.list(
    "CSRF_TRUSTED_ORIGINS",
    default=[
        "http://127.0.0.1:8000",
        "http://localhost:8000",
    ],
)

# Browsable API is handy while poking at the echo endpoint.
REST_FRAMEWORK["DEFAULT_RENDERER_CLASSES"] = [  # type: ignore[name-defined]
    "rest_framework.renderers.JSONRenderer",
    "rest_framework.renderers.BrowsableAPIRenderer",
]

LOGGING["loggers"]["request_pipeline"]["level"] = env("PIPELINE_LOG_LEVEL", default="DEBUG")  # type: ignore[name-defined]
