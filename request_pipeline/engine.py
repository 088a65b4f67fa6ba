"""
Pipeline engine: ordered request/response stages composed into one callable.

Lifecycle
---------
1. Build: `register()` stages in execution order.
2. Freeze: `freeze()` nests them so stage *i* gets a continuation that runs
   stage *i+1*, ending with the terminal handler (the application).
3. Dispatch: `handle(request)` calls the composed chain.

The two phases never overlap: registering after `freeze()` and dispatching
before it both raise `ConfigurationError`. Once frozen, the chain is read-only
and can be shared by any number of concurrent dispatches without locking.

Onion discipline
----------------
Inbound, stage *i* sees the request after stages 1..i-1; outbound, it sees the
response after stages i+1..N. A stage may short-circuit by not calling
`call_next`, call it several times, or raise. Exceptions propagate outward
through every entered stage; anything that escapes the outermost stage becomes
a `DispatchError` and is answered with the fallback response.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Protocol, runtime_checkable

from .exceptions import (
    ConfigurationError,
    DispatchError,
    PipelineError,
    StageError,
)
from .responses import dispatch_error_response

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Any]
Fallback = Callable[[Any, DispatchError], Any]

TERMINAL = "terminal"


@runtime_checkable
class Stage(Protocol):
    """Anything with a `name` and `__call__(request, call_next) -> response`."""

    name: str

    def __call__(self, request: Any, call_next: Handler) -> Any:
        ...


def _guard(name: str, fn: Callable[..., Any]) -> Callable[..., Any]:
    """Wrap foreign exceptions raised by `fn` into a `StageError` tagged with `name`."""

    def run(*args: Any) -> Any:
        try:
            return fn(*args)
        except PipelineError:
            # Already attributed further in; let enclosing stages see it unchanged.
            raise
        except Exception as exc:
            raise StageError(name, exc) from exc

    return run


def _link(stage: Stage, call_next: Handler) -> Handler:
    guarded = _guard(stage.name, stage)

    def run(request: Any) -> Any:
        return guarded(request, call_next)

    run.__name__ = f"stage_{stage.name}"
    return run


class Pipeline:
    """
    Ordered chain of stages in front of a terminal handler.

    Args:
        terminal: innermost `handler(request) -> response` (the application).
        fallback: `fallback(request, dispatch_error) -> response` used when a
            dispatch fails; defaults to a 500 JSON response.
        name: label used in logs.
    """

    def __init__(
        self,
        terminal: Handler,
        *,
        fallback: Optional[Fallback] = None,
        name: str = "pipeline",
    ) -> None:
        if not callable(terminal):
            raise ConfigurationError(f"Terminal handler for {name!r} must be callable, got {terminal!r}.")
        self.name = name
        self._terminal = terminal
        self._fallback: Fallback = fallback or dispatch_error_response
        self._stages: list[Stage] = []
        self._chain: Optional[Handler] = None

    # ------------------------------------------------------------------
    # Build phase
    # ------------------------------------------------------------------
    def register(self, stage: Stage) -> Stage:
        """Append `stage` to the chain. Only allowed before `freeze()`."""
        if self.frozen:
            raise ConfigurationError(
                f"Cannot register stage {getattr(stage, 'name', stage)!r}: pipeline {self.name!r} is frozen."
            )
        name = getattr(stage, "name", None)
        if not isinstance(name, str) or not name:
            raise ConfigurationError(f"Stage {stage!r} must have a non-empty string `name`.")
        if not callable(stage):
            raise ConfigurationError(f"Stage {name!r} is not callable.")
        if name in self.names:
            raise ConfigurationError(f"Stage {name!r} is already registered in pipeline {self.name!r}.")
        self._stages.append(stage)
        return stage

    def freeze(self) -> "Pipeline":
        """Compose the registered stages into the executable chain."""
        if self.frozen:
            raise ConfigurationError(f"Pipeline {self.name!r} is already frozen.")

        chain = _guard(TERMINAL, self._terminal)
        for stage in reversed(self._stages):
            chain = _link(stage, chain)
        self._chain = chain

        logger.info(
            "Pipeline %s frozen with %d stage(s): %s",
            self.name,
            len(self._stages),
            " -> ".join(self.names) or "(none)",
        )
        return self

    # ------------------------------------------------------------------
    # Dispatch phase
    # ------------------------------------------------------------------
    def handle(self, request: Any) -> Any:
        """Run `request` through the frozen chain and return the response."""
        chain = self._chain
        if chain is None:
            raise ConfigurationError(f"Pipeline {self.name!r} must be frozen before dispatch.")
        try:
            return chain(request)
        except ConfigurationError:
            raise
        except Exception as exc:
            error = DispatchError(exc)
            logger.exception(
                "Dispatch through %s failed in stage %s",
                self.name,
                error.stage or "-",
            )
            return self._respond_with_fallback(request, error)

    def _respond_with_fallback(self, request: Any, error: DispatchError) -> Any:
        if self._fallback is dispatch_error_response:
            return dispatch_error_response(request, error)
        try:
            return self._fallback(request, error)
        except Exception:
            logger.exception("Custom fallback of %s failed; using the default response", self.name)
            return dispatch_error_response(request, error)

    __call__ = handle

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------
    @property
    def frozen(self) -> bool:
        return self._chain is not None

    @property
    def stages(self) -> tuple[Stage, ...]:
        return tuple(self._stages)

    @property
    def names(self) -> list[str]:
        return [s.name for s in self._stages]

    def __len__(self) -> int:
        return len(self._stages)

    def __repr__(self) -> str:
        state = "frozen" if self.frozen else "building"
        return f"<Pipeline {self.name!r} {state} stages={self.names}>"
