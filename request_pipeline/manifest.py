"""
Build a pipeline from the explicit stage manifest.

Nothing is discovered from the filesystem: the stages that run, and their
order, are exactly the entries of `settings.PIPELINE_STAGES`.

Manifest entries
----------------
- A dotted path to a stage class or factory::

      "request_pipeline.stages.MethodOverrideStage"

- A dict with options::

      {
          "class": "request_pipeline.stages.RequestSizeLimitStage",
          "name": "small-bodies",        # optional, overrides the stage name
          "options": {"max_bytes": 1024}, # optional, passed as kwargs
      }

A dotted path may also point at a ready-made stage instance (for example one
built with the `@stage(...)` decorator); such entries cannot take options.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from django.conf import settings
from django.utils.module_loading import import_string

from .engine import Handler, Pipeline, Stage
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ManifestEntry:
    """One normalized manifest line."""

    path: str
    name: Optional[str] = None
    options: dict = field(default_factory=dict)

    def load(self) -> Stage:
        """Import and instantiate the stage this entry names."""
        try:
            target = import_string(self.path)
        except ImportError as exc:
            raise ConfigurationError(f"Cannot import pipeline stage {self.path!r}: {exc}") from exc

        if isinstance(target, type):
            try:
                obj = target(**self.options)
            except TypeError as exc:
                raise ConfigurationError(f"Invalid options for pipeline stage {self.path!r}: {exc}") from exc
        elif self.options:
            raise ConfigurationError(f"Pipeline stage {self.path!r} is an instance and takes no options.")
        else:
            obj = target

        if self.name and self.name != getattr(obj, "name", None):
            # Shared module-level instances must not be renamed in place.
            obj = _Renamed(self.name, obj)
        return obj


class _Renamed:
    """Expose an existing stage under a different name."""

    def __init__(self, name: str, inner: Stage) -> None:
        self.name = name
        self.inner = inner

    def __call__(self, request, call_next):
        return self.inner(request, call_next)


def _normalize(raw: Any) -> ManifestEntry:
    if isinstance(raw, str):
        return ManifestEntry(path=raw)
    if isinstance(raw, dict):
        unknown = set(raw) - {"class", "name", "options"}
        if "class" not in raw or unknown:
            raise ConfigurationError(
                f"Pipeline manifest entry {raw!r} must have a 'class' key"
                f" and only 'name'/'options' besides it."
            )
        options = raw.get("options") or {}
        if not isinstance(options, dict):
            raise ConfigurationError(f"'options' of pipeline manifest entry {raw!r} must be a dict.")
        return ManifestEntry(path=raw["class"], name=raw.get("name"), options=dict(options))
    raise ConfigurationError(f"Unsupported pipeline manifest entry: {raw!r}")


def load_manifest(manifest: Optional[Iterable[Any]] = None) -> list[ManifestEntry]:
    """Normalize `manifest` (default: `settings.PIPELINE_STAGES`)."""
    if manifest is None:
        manifest = getattr(settings, "PIPELINE_STAGES", [])
    if isinstance(manifest, (str, dict)):
        raise ConfigurationError("PIPELINE_STAGES must be a list of entries.")
    return [_normalize(raw) for raw in manifest]


def build_pipeline(
    terminal: Handler,
    manifest: Optional[Iterable[Any]] = None,
    **kwargs: Any,
) -> Pipeline:
    """Register every manifest stage, in order, in front of `terminal` and freeze."""
    pipeline = Pipeline(terminal, **kwargs)
    for entry in load_manifest(manifest):
        pipeline.register(entry.load())
    return pipeline.freeze()


def _stage_name(stage: Stage, path: str) -> str:
    name = getattr(stage, "name", None)
    if not isinstance(name, str) or not name:
        raise ConfigurationError(f"Pipeline stage {path!r} must have a non-empty string `name`.")
    return name


def describe_manifest(manifest: Optional[Iterable[Any]] = None) -> list[tuple[str, str]]:
    """Return `(stage name, dotted path)` pairs in execution order."""
    return [(_stage_name(entry.load(), entry.path), entry.path) for entry in load_manifest(manifest)]
