"""AppConfig for the `core` app.

Scope
-----
Shared infrastructure and the application surface behind the pipeline:
- logging helpers (request-id contextvar + filter),
- health probe and echo endpoint (terminal handlers).
"""

from django.apps import AppConfig


class CoreConfig(AppConfig):
    """Standard Django AppConfig; keep defaults lightweight."""
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'core'
