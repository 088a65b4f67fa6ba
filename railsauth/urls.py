"""
Project URL configuration.

Surfaces
--------
- `/health/` — readiness probe (DB + configured pipeline stages).
- `/api/echo/` — reflects the request as the application sees it after the
  pipeline (all verbs).
- `/api/schema/`, `/api/docs/` — OpenAPI schema & Swagger UI.
"""

from __future__ import annotations

from django.urls import path
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView

from core.views import EchoView, health

urlpatterns = [
    path("health/", health, name="health"),
    path("api/echo/", EchoView.as_view(), name="echo"),

    # OpenAPI / Docs
    path("api/schema/", SpectacularAPIView.as_view(), name="schema"),
    path("api/docs/", SpectacularSwaggerView.as_view(url_name="schema"), name="swagger-ui"),
]
