"""
Error taxonomy for the request pipeline.

Hierarchy
---------
- `PipelineError`: base class; everything the engine raises derives from it.
- `ConfigurationError`: misuse of the registration API or a bad stage manifest.
  Also an `ImproperlyConfigured`, so Django aborts startup with a diagnostic.
- `StageError`: a stage (or the terminal handler) raised a foreign exception.
  The engine wraps it once, where it originated; outer stages see it as-is.
- `DispatchError`: an error that escaped the outermost stage. It never leaves
  `Pipeline.handle`; the engine logs it and returns the fallback response.
"""

from __future__ import annotations

from django.core.exceptions import ImproperlyConfigured


class PipelineError(Exception):
    """Base class for request pipeline errors."""


class ConfigurationError(PipelineError, ImproperlyConfigured):
    """Invalid use of the registration API (late register, double freeze, ...)."""


class StageError(PipelineError):
    """
    A stage's own logic failed.

    Attributes:
        stage: name of the stage that raised (``"terminal"`` for the handler).
        original: the exception that was raised; also chained as ``__cause__``.
    """

    def __init__(self, stage: str, original: BaseException) -> None:
        self.stage = stage
        self.original = original
        super().__init__(f"Stage {stage!r} failed: {original!r}")


class DispatchError(PipelineError):
    """An error reached the outermost boundary of the pipeline unhandled."""

    def __init__(self, original: BaseException) -> None:
        self.original = original
        super().__init__(f"Unhandled error during dispatch: {original!r}")

    @property
    def stage(self) -> str | None:
        """Name of the failing stage when known."""
        return getattr(self.original, "stage", None)
