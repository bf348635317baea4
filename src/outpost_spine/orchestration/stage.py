"""Stage — one unit of remote work within a multi-step operation.

Manifesto:
    A stage is a pure description.  It holds no state between invocations;
everything it needs arrives as ``(model, state, ctx)`` and everything it
learned leaves as a ``StageResult``.  The same stage value is shared by
every invocation of every operation that uses it.

ARCHITECTURE
────────────
::

    Stage.call(name, api="create_bucket", translate=..., on_success=...,
               on_error=..., when=..., converged=..., transient=...)
    Stage.local(name, handler)

    run(model, state, ctx)
      when() false                    → CONTINUE (no-op)
      local                           → handler(model, state, ctx)
      call
        translate → invoke → on_success          (skipped on resume once
                                                   "<name>:invoked" is set)
        error → transient table → SUSPEND
              → on_error (None defers) → classify → FAIL
        converged? → StabilizationPolicy.evaluate

BEST PRACTICES
──────────────
- Keep ``translate`` and ``on_success`` pure; the client is only touched
  through ``api``/``invoke`` and ``converged``.
- Return ``None`` from ``on_error`` for anything you do not recognize.
- Set ``converged`` on a mutating stage whenever the call may be observed
  before it takes effect; the call is then issued exactly once per
  operation.

Related modules:
    stage_result.py — the tagged result
    policies.py     — StabilizationPolicy
    patterns.py     — ready-made stages (propagation, pre-existence, ...)

Tags:
    outpost-spine, orchestration, stage, remote-call

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Union

from outpost_spine.core.logging import get_logger
from outpost_spine.orchestration.callback_state import CallbackState
from outpost_spine.orchestration.context import InvocationContext
from outpost_spine.orchestration.model import ResourceModel
from outpost_spine.orchestration.outcome import TransientCondition, classify_error, match_transient
from outpost_spine.orchestration.policies import StabilizationPolicy
from outpost_spine.orchestration.stage_result import StageResult

logger = get_logger(__name__)

Model = Union[ResourceModel, None]
TranslateFn = Callable[[Model, InvocationContext], dict[str, Any]]
InvokeFn = Callable[[Any, dict[str, Any]], Any]
SuccessFn = Callable[[Any, Model, CallbackState, InvocationContext], Any]
ErrorFn = Callable[[BaseException, Model, CallbackState, InvocationContext], Union[StageResult, None]]
WhenFn = Callable[[Model, InvocationContext], bool]
ConvergedFn = Callable[[Model, Any, InvocationContext], bool]
HandlerFn = Callable[[Model, CallbackState, InvocationContext], StageResult]


def _no_request(model: Model, ctx: InvocationContext) -> dict[str, Any]:
    return {}


@dataclass(frozen=True)
class Stage:
    """
    A single step of a pipeline.

    Attributes:
        name: Unique name within the pipeline (also the resumption key)
        api: Client method name invoked with the translated request
        translate: Builds the request from the model
        invoke: Custom call, used instead of ``api`` when set
        on_success: Folds the response into (model, state), or returns a StageResult
        on_error: Recognizes benign or special conditions; ``None`` defers to the classifier
        when: Guard; a false result makes the stage a no-op
        converged: Convergence predicate (enables stabilization)
        stabilization: Policy override (defaults from settings)
        transient: Conditions that Suspend instead of Fail
        handler: Local stage body (no remote call of its own)
    """

    name: str
    api: str | None = None
    translate: TranslateFn = _no_request
    invoke: InvokeFn | None = None
    on_success: SuccessFn | None = None
    on_error: ErrorFn | None = None
    when: WhenFn | None = None
    converged: ConvergedFn | None = None
    stabilization: StabilizationPolicy | None = None
    transient: tuple[TransientCondition, ...] = ()
    handler: HandlerFn | None = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Stage name is required")
        if self.handler is None and self.api is None and self.invoke is None:
            raise ValueError(f"Stage '{self.name}' needs an api, an invoke function or a handler")

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def call(
        cls,
        name: str,
        *,
        api: str | None = None,
        translate: TranslateFn | None = None,
        invoke: InvokeFn | None = None,
        on_success: SuccessFn | None = None,
        on_error: ErrorFn | None = None,
        when: WhenFn | None = None,
        converged: ConvergedFn | None = None,
        stabilization: StabilizationPolicy | None = None,
        transient: Iterable[TransientCondition] = (),
    ) -> Stage:
        """Create a stage that issues one remote call."""
        return cls(
            name=name,
            api=api,
            translate=translate or _no_request,
            invoke=invoke,
            on_success=on_success,
            on_error=on_error,
            when=when,
            converged=converged,
            stabilization=stabilization,
            transient=tuple(transient),
        )

    @classmethod
    def local(cls, name: str, handler: HandlerFn, *, when: WhenFn | None = None) -> Stage:
        """Create a stage whose body is a plain function of (model, state, ctx)."""
        return cls(name=name, handler=handler, when=when)

    # =========================================================================
    # Execution
    # =========================================================================

    @property
    def invoked_key(self) -> str:
        return f"{self.name}:invoked"

    def run(self, model: Model, state: CallbackState, ctx: InvocationContext) -> StageResult:
        if self.when is not None and not self.when(model, ctx):
            logger.debug("stage.skipped", stage=self.name, reason="guard")
            return StageResult.continue_(model, state)

        if self.handler is not None:
            return self.handler(model, state, ctx)

        response = None
        resuming = self.converged is not None and bool(state.flag(self.invoked_key))
        if not resuming:
            try:
                request = self.translate(model, ctx)
                response = self._call(ctx, request)
            except Exception as exc:
                return self._handle_error(exc, model, state, ctx)

            outcome = self.on_success(response, model, state, ctx) if self.on_success else None
            if isinstance(outcome, StageResult):
                return outcome
            if outcome is not None:
                model, state = outcome
            if self.converged is not None:
                state = state.with_flag(self.invoked_key)

        if self.converged is None:
            return StageResult.continue_(model, state)

        try:
            converged = self.converged(model, response, ctx)
        except Exception as exc:
            return self._handle_error(exc, model, state, ctx)

        policy = self.stabilization or StabilizationPolicy.from_settings(ctx.settings)
        return policy.evaluate(converged, model, state, resource_type=ctx.resource_type)

    def _call(self, ctx: InvocationContext, request: dict[str, Any]) -> Any:
        logger.debug("stage.call", stage=self.name, api=self.api)
        if self.invoke is not None:
            return self.invoke(ctx.client, request)
        return getattr(ctx.client, self.api)(**request)

    def _handle_error(
        self,
        error: BaseException,
        model: Model,
        state: CallbackState,
        ctx: InvocationContext,
    ) -> StageResult:
        condition = match_transient(error, self.transient)
        if condition is not None:
            logger.info(
                "stage.transient",
                stage=self.name,
                error_code=condition.error_code,
                status_code=condition.status_code,
            )
            return StageResult.suspend(model, state, ctx.settings.callback_delay_seconds)

        if self.on_error is not None:
            handled = self.on_error(error, model, state, ctx)
            if handled is not None:
                return handled

        classification = classify_error(error, ctx.conditions)
        if classification.is_internal:
            logger.error("stage.internal_failure", stage=self.name, exc_info=error)
        else:
            logger.warning(
                "stage.failed",
                stage=self.name,
                outcome_code=classification.code.value,
                error_message=classification.message,
            )
        return StageResult.fail(classification.code, classification.message, model, state)


__all__ = ["Stage"]
