from __future__ import annotations

"""
Print the request pipeline in execution order.

Overview
--------
- Lists every entry of `PIPELINE_STAGES` as `<n>. <stage name>  <dotted path>`.
- Ends with the terminal handler (the WSGI application), like `rake middleware`.
- Every entry is imported and instantiated, so a broken manifest fails here
  with a `CommandError` instead of on the first request.

Usage
-----
    python manage.py show_pipeline
"""

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from request_pipeline.exceptions import ConfigurationError
from request_pipeline.manifest import describe_manifest


class Command(BaseCommand):
    """Django management command describing the configured stage chain."""
    help = "Show the configured request pipeline stages in execution order."

    def handle(self, *args, **options):
        try:
            described = describe_manifest()
        except ConfigurationError as exc:
            raise CommandError(str(exc)) from exc

        width = max((len(name) for name, _ in described), default=0)
        for position, (name, path) in enumerate(described, start=1):
            self.stdout.write(f"{position}. {name.ljust(width)}  {path}")
        terminal = getattr(settings, "WSGI_APPLICATION", None) or "application"
        self.stdout.write(self.style.SUCCESS(f"run {terminal}"))
