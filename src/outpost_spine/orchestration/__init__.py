"""
Outpost-Spine orchestration: the resumable multi-step provisioning engine.

Handlers are invoked repeatedly and statelessly.  Each invocation runs the
Pipeline for the requested operation from the point recorded in Callback
State, and returns one Progress Envelope.

Quick start:
    from outpost_spine.orchestration import (
        Orchestrator, HandlerRequest, OperationKind, get_resource,
    )

    definition = get_resource("AWS::S3Outposts::Bucket")
    envelope = Orchestrator(definition).handle(
        HandlerRequest(operation=OperationKind.READ, desired_model=model)
    )
"""

from outpost_spine.orchestration.callback_state import CallbackState
from outpost_spine.orchestration.context import InvocationContext, OperationKind
from outpost_spine.orchestration.model import AttributeModel, ResourceModel, merge_models
from outpost_spine.orchestration.orchestrator import (
    HandlerRequest,
    Orchestrator,
    RequiredFields,
    ResourceDefinition,
)
from outpost_spine.orchestration.outcome import (
    DEFAULT_CONDITIONS,
    Classification,
    OutcomeCode,
    RemoteError,
    TransientCondition,
    classify,
    classify_error,
    has_condition,
    is_not_found,
    match_transient,
)
from outpost_spine.orchestration.patterns import (
    assign_identity,
    expect_absent,
    expect_present,
    propagation_gate,
    read_after_write,
    tolerate,
)
from outpost_spine.orchestration.pipeline import Pipeline
from outpost_spine.orchestration.policies import PropagationPolicy, StabilizationPolicy
from outpost_spine.orchestration.progress import (
    EnvelopeInvariantError,
    OperationStatus,
    ProgressEnvelope,
)
from outpost_spine.orchestration.registry import (
    clear_registry,
    get_resource,
    list_resources,
    register_resource,
    resource_exists,
)
from outpost_spine.orchestration.stage import Stage
from outpost_spine.orchestration.stage_result import StageOutcome, StageResult

__all__ = [
    # state & envelope
    "CallbackState",
    "OperationStatus",
    "ProgressEnvelope",
    "EnvelopeInvariantError",
    # outcome taxonomy
    "OutcomeCode",
    "DEFAULT_CONDITIONS",
    "Classification",
    "RemoteError",
    "TransientCondition",
    "classify",
    "classify_error",
    "has_condition",
    "is_not_found",
    "match_transient",
    # stages
    "Stage",
    "StageOutcome",
    "StageResult",
    "StabilizationPolicy",
    "PropagationPolicy",
    "assign_identity",
    "expect_absent",
    "expect_present",
    "propagation_gate",
    "read_after_write",
    "tolerate",
    # pipeline & orchestrator
    "Pipeline",
    "InvocationContext",
    "OperationKind",
    "AttributeModel",
    "ResourceModel",
    "merge_models",
    "HandlerRequest",
    "RequiredFields",
    "ResourceDefinition",
    "Orchestrator",
    # registry
    "register_resource",
    "get_resource",
    "list_resources",
    "resource_exists",
    "clear_registry",
]
