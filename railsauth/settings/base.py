"""
Base Django settings for railsauth.

Layout
------
- Split settings: `base.py` (shared), `dev.py` (developer overrides), `prod.py` (hardened).
- `environ` is used to source configuration; a local `.env` is optional in dev.

Request pipeline
----------------
- `request_pipeline.middleware.PipelineMiddleware` is the last entry of
  `MIDDLEWARE`; it runs the stages listed in `PIPELINE_STAGES`, in order, in
  front of the view. The list is the complete manifest: nothing is
  auto-discovered.
- Default stages: request id + structured request log, request size limit,
  method override (`_method` form field / `X-HTTP-Method-Override` header).
  `request_pipeline.stages.BestStandardsStage` is available opt-in.

API stack
---------
- Django 5.x + DRF + drf-spectacular (schema + Swagger UI for the echo endpoint).

Observability
-------------
- The request-id stage logs a single structured line per request (request id,
  method, path, status, duration) on `railsauth.request`. Pipeline
  configuration and dispatch failures are logged on `request_pipeline`.
"""

from pathlib import Path
import environ

# ---------------------------------------------------------------------
# Paths & Env
# ---------------------------------------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent.parent
env = environ.Env(DEBUG=(bool, False))
env_file = BASE_DIR / ".env"
if env_file.exists():
    environ.Env.read_env(str(env_file))

# ---------------------------------------------------------------------
# Core
# ---------------------------------------------------------------------
SECRET_KEY = env("SECRET_KEY", default="dev-insecure-change-me")
DEBUG = env.bool("DEBUG", False)

ALLOWED_HOSTS = env.list("ALLOWED_HOSTS", default=["127.0.0.1", "localhost", "testserver"])
CSRF_TRUSTED_ORIGINS = env.list(
    "CSRF_TRUSTED_ORIGINS",
    default=["http://127.0.0.1:8000", "http://localhost:8000"],
)

# ---------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------
INSTALLED_APPS = [
    # Django apps
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.staticfiles",

    # Third-party
    "rest_framework",
    "drf_spectacular",

    # Local apps
    "core",
    "request_pipeline",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    # Appended last, like `config.middleware.use`: stages run closest to the view.
    "request_pipeline.middleware.PipelineMiddleware",
]

# ---------------------------------------------------------------------
# Request pipeline (explicit manifest, execution order)
# ---------------------------------------------------------------------
PIPELINE_STAGES = env.list(
    "PIPELINE_STAGES",
    default=[
        "request_pipeline.stages.RequestIDStage",
        "request_pipeline.stages.RequestSizeLimitStage",
        "request_pipeline.stages.MethodOverrideStage",
    ],
)

# Max body size for unsafe methods (bytes); 0 disables the check
MAX_REQUEST_BYTES = env.int("MAX_REQUEST_BYTES", default=2_000_000)
# Hidden form field / header naming the verb a POST should be treated as
METHOD_OVERRIDE_PARAM = env("METHOD_OVERRIDE_PARAM", default="_method")
METHOD_OVERRIDE_HEADER = env("METHOD_OVERRIDE_HEADER", default="X-HTTP-Method-Override")

ROOT_URLCONF = "railsauth.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [BASE_DIR / "templates"],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
            ],
        },
    },
]

WSGI_APPLICATION = "railsauth.wsgi.application"

# ---------------------------------------------------------------------
# Database (only used by the health probe)
# ---------------------------------------------------------------------
DATABASES = {
    "default": env.db(
        "DATABASE_URL",
        default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}",
    )
}

# ---------------------------------------------------------------------
# Internationalization
# ---------------------------------------------------------------------
LANGUAGE_CODE = env("LANGUAGE_CODE", default="en-us")
TIME_ZONE = env("TIME_ZONE", default="UTC")
USE_I18N = True
USE_TZ = True

# ---------------------------------------------------------------------
# Static
# ---------------------------------------------------------------------
STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ---------------------------------------------------------------------
# DRF & API Schema
# ---------------------------------------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_RENDERER_CLASSES": [
        "rest_framework.renderers.JSONRenderer",
    ],
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "railsauth API",
    "DESCRIPTION": "Application surface behind the request pipeline.",
    "VERSION": "0.1.0",
    # post/put/patch/delete share the echo handler; suffix their operationIds.
    "OPERATION_ID_DUPLICATE_MODE": "suffix",
    "LICENSE": {"name": "MIT"},
}

# ---------------------------------------------------------------------
# Security defaults (safe baseline; prod hardening in prod.py)
# ---------------------------------------------------------------------
SESSION_COOKIE_SAMESITE = "Lax"
CSRF_COOKIE_SAMESITE = "Lax"
X_FRAME_OPTIONS = "DENY"

# ---------------------------------------------------------------------
# Logging (observability)
# ---------------------------------------------------------------------
# The RequestIDFilter injects `request_id` even for logs outside HTTP contexts.
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "request_id": {"()": "core.logging.RequestIDFilter"},
    },
    "formatters": {
        # One line per request; fields are supplied by RequestIDStage.
        "structured": {
            "format": "level=%(levelname)s logger=%(name)s request_id=%(request_id)s "
                      "method=%(method)s path=%(path)s status=%(status)s duration_ms=%(duration_ms)s "
                      "message=%(message)s"
        },
        "plain": {
            "format": "level=%(levelname)s logger=%(name)s request_id=%(request_id)s message=%(message)s"
        },
    },
    "handlers": {
        "requests": {
            "class": "logging.StreamHandler",
            "filters": ["request_id"],
            "formatter": "structured",
        },
        "console": {
            "class": "logging.StreamHandler",
            "filters": ["request_id"],
            "formatter": "plain",
        },
    },
    "loggers": {
        "railsauth.request": {
            "handlers": ["requests"],
            "level": "INFO",
            "propagate": False,
        },
        "request_pipeline": {
            "handlers": ["console"],
            "level": env("PIPELINE_LOG_LEVEL", default="INFO"),
            "propagate": False,
        },
    },
}
