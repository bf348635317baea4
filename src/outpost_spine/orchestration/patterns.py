"""Ready-made stages for the recurring shapes of a provisioning pipeline.

- ``propagation_gate``  — forced delays after a create
- ``expect_absent``     — Create-side pre-existence check
- ``expect_present``    — Update/Delete-side pre-existence check
- ``read_after_write``  — re-read through the Read pipeline and merge
- ``assign_identity``   — record an identity the backend just assigned
- ``tolerate``          — treat "already in target state" errors as success
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from outpost_spine.core.logging import get_logger
from outpost_spine.orchestration.callback_state import CallbackState
from outpost_spine.orchestration.context import InvocationContext, OperationKind
from outpost_spine.orchestration.model import ResourceModel, merge_models
from outpost_spine.orchestration.outcome import OutcomeCode, error_code_of, has_condition, is_not_found
from outpost_spine.orchestration.policies import PropagationPolicy
from outpost_spine.orchestration.progress import OperationStatus
from outpost_spine.orchestration.stage import ErrorFn, Stage, TranslateFn
from outpost_spine.orchestration.stage_result import StageResult

logger = get_logger(__name__)


def assign_identity(
    model: ResourceModel,
    state: CallbackState,
    identity: str | None,
) -> tuple[ResourceModel, CallbackState]:
    """Put a backend-assigned identity on the model and into Callback State.

    The scheduler hands the unchanged desired model back on every call, so
    the state copy is what lets later invocations see the identity.
    """
    return model.with_identity(identity), state.with_identity(identity)


def tolerate(*codes: str) -> ErrorFn:
    """``on_error`` that continues when the target state is already reached.

    A replayed delete finds nothing left to delete; the backend reports that
    with one of ``codes`` and the pipeline carries on.
    """

    def _on_error(error, model, state, ctx):
        if has_condition(error, *codes):
            logger.info("stage.already_done", resource_type=ctx.resource_type, error_code=error_code_of(error))
            return StageResult.continue_(model, state)
        return None

    return _on_error


def propagation_gate(name: str = "propagate", policy: PropagationPolicy | None = None) -> Stage:
    """Suspend a fixed number of times before letting dependent stages run."""

    def _gate(model, state, ctx: InvocationContext) -> StageResult:
        active = policy or PropagationPolicy.from_settings(ctx.settings)
        return active.evaluate(model, state)

    return Stage.local(name, _gate)


def expect_absent(
    name: str,
    *,
    api: str,
    translate: TranslateFn,
    is_present: Callable[[Any], bool],
    message: str,
    absent_codes: tuple[str, ...] = (),
) -> Stage:
    """Probe that must find nothing; any existing value fails AlreadyExists.

    A not-found condition (404 or one of ``absent_codes``) is the expected
    precondition and continues the pipeline.
    """

    def _on_success(response, model, state, ctx):
        if is_present(response):
            logger.info("precheck.exists", stage=name, resource_type=ctx.resource_type)
            return StageResult.fail(OutcomeCode.ALREADY_EXISTS, message, model)
        return StageResult.continue_(model, state)

    def _on_error(error, model, state, ctx):
        if is_not_found(error, *absent_codes):
            return StageResult.continue_(model, state)
        return None

    return Stage.call(name, api=api, translate=translate, on_success=_on_success, on_error=_on_error)


def expect_present(
    name: str,
    *,
    api: str,
    translate: TranslateFn,
    message: str,
    is_present: Callable[[Any], bool] | None = None,
    absent_codes: tuple[str, ...] = (),
) -> Stage:
    """Probe that must find the resource; not-found fails NotFound with ``message``."""

    def _on_success(response, model, state, ctx):
        if is_present is not None and not is_present(response):
            return StageResult.fail(OutcomeCode.NOT_FOUND, message, model)
        return StageResult.continue_(model, state)

    def _on_error(error, model, state, ctx):
        if is_not_found(error, *absent_codes):
            logger.info("precheck.missing", stage=name, resource_type=ctx.resource_type)
            return StageResult.fail(OutcomeCode.NOT_FOUND, message, model)
        return None

    return Stage.call(name, api=api, translate=translate, on_success=_on_success, on_error=_on_error)


def read_after_write(name: str = "read-after-write") -> Stage:
    """Finish the operation with backend-confirmed attributes.

    Runs the resource's Read pipeline against the current model and merges
    what it returns.  Read failures are reported as this operation's failure.
    """

    def _read_back(model: ResourceModel, state: CallbackState, ctx: InvocationContext) -> StageResult:
        pipeline = ctx.pipeline_for(OperationKind.READ)
        if pipeline is None:
            return StageResult.done(model, state)

        envelope = pipeline.run(model, CallbackState.fresh(), ctx.for_operation(OperationKind.READ))
        if envelope.status == OperationStatus.SUCCESS:
            return StageResult.done(merge_models(model, envelope.model), state)
        if envelope.status == OperationStatus.FAILED:
            return StageResult.fail(envelope.outcome_code, envelope.message, model)
        return StageResult.fail(
            OutcomeCode.INTERNAL_FAILURE,
            "Read pipeline did not complete within one invocation.",
            model,
        )

    return Stage.local(name, _read_back)


__all__ = [
    "assign_identity",
    "tolerate",
    "propagation_gate",
    "expect_absent",
    "expect_present",
    "read_after_write",
]
