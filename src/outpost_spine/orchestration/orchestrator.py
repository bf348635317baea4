"""Orchestrator — one invocation in, one Progress Envelope out.

Manifesto:
    The scheduler calls a handler, waits, and calls it again with whatever
the handler told it to carry.  The Orchestrator is the only place that
talks to the scheduler's shapes: it validates the request, restores the
operation's progress from Callback State, selects the Pipeline for the
requested operation, and returns exactly one envelope.  It never raises.

ARCHITECTURE
────────────
::

    HandlerRequest.from_payload(payload, model_class)
           │
           ▼
    Orchestrator(definition).handle(request)
      1. pipeline for operation?       no  → FAILED / InvalidRequest
      2. required fields present?      no  → FAILED / InvalidRequest (0 calls)
      3. state = request.callback_state or CallbackState.fresh()
      4. re-apply identity carried in state to the desired model
      5. pipeline.run(model, state, ctx)   → ProgressEnvelope

    ResourceDefinition
      type_name, model_class, pipelines{OperationKind: Pipeline},
      required{OperationKind: RequiredFields}, validators, conditions

BEST PRACTICES
──────────────
- Put every "is the input usable" rule in ``required``/``validators`` so
  rejection happens before a client is even built.
- Resource modules expose a ``build_definition()`` and register it; they do
  not subclass the Orchestrator.

Related modules:
    pipeline.py  — runs the stages
    registry.py  — type name → ResourceDefinition

Tags:
    outpost-spine, orchestration, orchestrator, entrypoint

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from outpost_spine.core.errors import PipelineNotFoundError
from outpost_spine.core.logging import LogContext, get_logger
from outpost_spine.core.settings import EngineSettings, get_settings
from outpost_spine.orchestration.callback_state import CallbackState
from outpost_spine.orchestration.context import InvocationContext, OperationKind
from outpost_spine.orchestration.model import ResourceModel
from outpost_spine.orchestration.outcome import DEFAULT_CONDITIONS, OutcomeCode
from outpost_spine.orchestration.pipeline import Pipeline
from outpost_spine.orchestration.progress import ProgressEnvelope

logger = get_logger(__name__)

Validator = Callable[[ResourceModel], "str | None"]
ClientFactory = Callable[[InvocationContext], Any]


# =============================================================================
# Request
# =============================================================================


@dataclass(frozen=True)
class HandlerRequest:
    """
    Input of one invocation.

    Attributes:
        operation: Operation kind
        desired_model: Desired resource attributes
        previous_model: Prior attributes (Update/Delete)
        callback_state: State returned by the previous invocation, if any
        next_token: Pagination token (List)
        account_id / region: Caller's account and region
        client_request_token: Scheduler-assigned request token
        desired_tags / system_tags: Resource-level and system tags
    """

    operation: OperationKind
    desired_model: ResourceModel | None = None
    previous_model: ResourceModel | None = None
    callback_state: CallbackState | None = None
    next_token: str | None = None
    account_id: str | None = None
    region: str | None = None
    client_request_token: str | None = None
    desired_tags: dict[str, str] = field(default_factory=dict)
    system_tags: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any], model_class: type[ResourceModel]) -> HandlerRequest:
        """Build a request from the camelCase wire payload.

        Raises:
            pydantic.ValidationError: model attributes have the wrong shape
            ValueError: the payload itself is not shaped like a request
        """
        if not isinstance(payload, Mapping):
            raise ValueError("payload must be a JSON object")
        if not isinstance(payload.get("action"), str):
            raise ValueError("action must be a string")
        desired = payload.get("desiredResourceState")
        previous = payload.get("previousResourceState")
        state = payload.get("callbackContext") or payload.get("callbackState")
        if state and not isinstance(state, Mapping):
            raise ValueError("callbackContext must be a JSON object")
        return cls(
            operation=OperationKind.parse(payload["action"]),
            desired_model=model_class.model_validate(desired) if desired is not None else None,
            previous_model=model_class.model_validate(previous) if previous is not None else None,
            callback_state=CallbackState.from_dict(state) if state else None,
            next_token=payload.get("nextToken"),
            account_id=payload.get("awsAccountId"),
            region=payload.get("region"),
            client_request_token=payload.get("clientRequestToken"),
            desired_tags=dict(payload.get("desiredResourceTags") or {}),
            system_tags=dict(payload.get("systemTags") or {}),
        )


# =============================================================================
# Resource definition
# =============================================================================


@dataclass(frozen=True)
class RequiredFields:
    """Fields that must be non-empty before an operation may start.

    Dotted paths reach into nested models (``"vpc_configuration.vpc_id"``).
    """

    fields: tuple[str, ...]
    message: str

    def missing(self, model: ResourceModel | None) -> list[str]:
        return [path for path in self.fields if _is_empty(_lookup(model, path))]


def _lookup(obj: Any, path: str) -> Any:
    for part in path.split("."):
        if obj is None:
            return None
        obj = getattr(obj, part, None)
    return obj


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, list, dict)) and not value)


@dataclass(frozen=True)
class ResourceDefinition:
    """Everything the Orchestrator needs to serve one resource type."""

    type_name: str
    model_class: type[ResourceModel]
    pipelines: Mapping[OperationKind, Pipeline]
    required: Mapping[OperationKind, tuple[RequiredFields, ...]] = field(default_factory=dict)
    validators: Mapping[OperationKind, tuple[Validator, ...]] = field(default_factory=dict)
    conditions: Mapping[str, OutcomeCode] = field(default_factory=lambda: DEFAULT_CONDITIONS)
    client_factory: ClientFactory | None = None
    description: str = ""

    @property
    def operations(self) -> list[OperationKind]:
        return [op for op in OperationKind if op in self.pipelines]

    def pipeline_for(self, operation: OperationKind) -> Pipeline:
        pipeline = self.pipelines.get(operation)
        if pipeline is None:
            raise PipelineNotFoundError(self.type_name, operation.value)
        return pipeline

    def validate(self, operation: OperationKind, model: ResourceModel | None) -> str | None:
        """Return the first validation message for ``model``, or ``None``."""
        for rule in self.required.get(operation, ()):
            if rule.missing(model):
                return rule.message
        for validator in self.validators.get(operation, ()):
            message = validator(model)
            if message:
                return message
        return None


# =============================================================================
# Orchestrator
# =============================================================================


class Orchestrator:
    """
    Runs one invocation of one resource type.

    Example:
        >>> orchestrator = Orchestrator(bucket.build_definition())
        >>> envelope = orchestrator.handle(request)
        >>> envelope.status
        <OperationStatus.IN_PROGRESS: 'IN_PROGRESS'>
    """

    def __init__(
        self,
        definition: ResourceDefinition,
        *,
        settings: EngineSettings | None = None,
        client_factory: ClientFactory | None = None,
    ):
        self.definition = definition
        self.settings = settings or get_settings()
        self._client_factory = client_factory or definition.client_factory

    def handle(self, request: HandlerRequest) -> ProgressEnvelope:
        with LogContext(
            resource_type=self.definition.type_name,
            operation=request.operation.value,
            client_request_token=request.client_request_token,
        ):
            envelope = self._handle(request)
            logger.info(
                "invocation.complete",
                status=envelope.status.value,
                outcome_code=envelope.outcome_code.value if envelope.outcome_code else None,
                delay_seconds=envelope.requested_delay_seconds,
            )
            return envelope

    def handle_payload(self, payload: Mapping[str, Any]) -> ProgressEnvelope:
        """Parse a wire payload and handle it; malformed models fail InvalidRequest."""
        try:
            request = HandlerRequest.from_payload(payload, self.definition.model_class)
        except (PydanticValidationError, KeyError, ValueError, TypeError, AttributeError) as e:
            logger.warning("invocation.malformed", error=str(e))
            return ProgressEnvelope.failed(OutcomeCode.INVALID_REQUEST, f"Malformed request: {e}")
        return self.handle(request)

    def _handle(self, request: HandlerRequest) -> ProgressEnvelope:
        operation = request.operation
        try:
            pipeline = self.definition.pipeline_for(operation)
        except PipelineNotFoundError as e:
            logger.warning("invocation.unsupported", **e.to_dict())
            return ProgressEnvelope.failed(OutcomeCode.INVALID_REQUEST, e.message)

        model = request.desired_model
        message = self.definition.validate(operation, model)
        if message is not None:
            logger.info("invocation.invalid", reason=message)
            return ProgressEnvelope.failed(OutcomeCode.INVALID_REQUEST, message, model)

        state = request.callback_state or CallbackState.fresh()
        if model is not None and state.identity and not model.identity:
            model = model.with_identity(state.identity)

        logger.info(
            "invocation.start",
            pipeline=pipeline.name,
            resumed=request.callback_state is not None,
            completed_stages=list(state.completed_stages),
        )
        ctx = self._build_context(request)
        return pipeline.run(model, state, ctx)

    def _build_context(self, request: HandlerRequest) -> InvocationContext:
        factory = self._client_factory
        ctx_holder: dict[str, InvocationContext] = {}

        def _client() -> Any:
            if factory is None:
                raise RuntimeError(f"No client factory configured for {self.definition.type_name}")
            return factory(ctx_holder["ctx"])

        ctx = InvocationContext(
            resource_type=self.definition.type_name,
            operation=request.operation,
            settings=self.settings,
            client_factory=_client,
            previous_model=request.previous_model,
            next_token=request.next_token,
            account_id=request.account_id,
            region=request.region,
            desired_tags=request.desired_tags,
            system_tags=request.system_tags,
            client_request_token=request.client_request_token,
            conditions=self.definition.conditions,
            pipelines=self.definition.pipelines,
        )
        ctx_holder["ctx"] = ctx
        return ctx


__all__ = [
    "HandlerRequest",
    "RequiredFields",
    "ResourceDefinition",
    "Orchestrator",
]
