"""AppConfig for the `request_pipeline` app.

Scope
-----
The stage chain that wraps every request: engine, stage library, manifest
loader, Django middleware adapter and the `show_pipeline` command. The app has
no models.
"""

from django.apps import AppConfig


class RequestPipelineConfig(AppConfig):
    """Standard Django AppConfig; the pipeline itself is built by the middleware."""
    name = "request_pipeline"
    verbose_name = "Request pipeline"
