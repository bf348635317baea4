"""Progress Envelope — the one value every invocation returns.

The scheduler reads ``status`` first: IN_PROGRESS means "call again after
``requested_delay_seconds`` with this ``callback_state``"; SUCCESS and
FAILED are terminal.  The factories below are the only sanctioned way to
build an envelope, and ``__post_init__`` rejects any combination that would
break that contract.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from pydantic import BaseModel

from outpost_spine.core.errors import OrchestrationError
from outpost_spine.orchestration.callback_state import CallbackState
from outpost_spine.orchestration.outcome import OutcomeCode


class OperationStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class EnvelopeInvariantError(OrchestrationError):
    """An envelope was built with a status/field combination the scheduler cannot honor."""


@dataclass(frozen=True)
class ProgressEnvelope:
    """Result of one invocation.

    Attributes:
        status: IN_PROGRESS, SUCCESS or FAILED
        model: Resource model (single-resource operations)
        models: Resource models (List only)
        callback_state: Present only while IN_PROGRESS
        requested_delay_seconds: > 0 while IN_PROGRESS, 0 otherwise
        outcome_code: Present only when FAILED
        message: Failure message (never set on SUCCESS)
        next_token: Pagination token (List only)
    """

    status: OperationStatus
    model: BaseModel | None = None
    models: list[BaseModel] | None = None
    callback_state: CallbackState | None = None
    requested_delay_seconds: int = 0
    outcome_code: OutcomeCode | None = None
    message: str | None = None
    next_token: str | None = None

    def __post_init__(self):
        if self.status == OperationStatus.IN_PROGRESS:
            if self.callback_state is None:
                raise EnvelopeInvariantError("IN_PROGRESS envelope requires a callback state")
            if self.requested_delay_seconds <= 0:
                raise EnvelopeInvariantError("IN_PROGRESS envelope requires a positive delay")
        else:
            if self.callback_state is not None:
                raise EnvelopeInvariantError(f"{self.status.value} envelope must not carry a callback state")
            if self.requested_delay_seconds != 0:
                raise EnvelopeInvariantError(f"{self.status.value} envelope must not request a delay")

        if self.status == OperationStatus.FAILED and self.outcome_code is None:
            raise EnvelopeInvariantError("FAILED envelope requires an outcome code")
        if self.status == OperationStatus.SUCCESS and (
            self.outcome_code is not None or self.message is not None
        ):
            raise EnvelopeInvariantError("SUCCESS envelope must not carry an outcome code or message")

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def in_progress(
        cls,
        state: CallbackState,
        delay_seconds: int,
        model: BaseModel | None = None,
    ) -> ProgressEnvelope:
        return cls(
            status=OperationStatus.IN_PROGRESS,
            model=model,
            callback_state=state,
            requested_delay_seconds=delay_seconds,
        )

    @classmethod
    def success(cls, model: BaseModel | None = None) -> ProgressEnvelope:
        return cls(status=OperationStatus.SUCCESS, model=model)

    @classmethod
    def list_success(
        cls,
        models: list[BaseModel],
        next_token: str | None = None,
    ) -> ProgressEnvelope:
        return cls(status=OperationStatus.SUCCESS, models=list(models), next_token=next_token)

    @classmethod
    def failed(
        cls,
        code: OutcomeCode,
        message: str | None = None,
        model: BaseModel | None = None,
    ) -> ProgressEnvelope:
        return cls(
            status=OperationStatus.FAILED,
            model=model,
            outcome_code=code,
            message=message,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def is_terminal(self) -> bool:
        return self.status != OperationStatus.IN_PROGRESS

    @property
    def succeeded(self) -> bool:
        return self.status == OperationStatus.SUCCESS

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase wire shape returned to the scheduler."""
        result: dict[str, Any] = {
            "status": self.status.value,
            "callbackState": self.callback_state.to_dict() if self.callback_state else None,
            "requestedDelaySeconds": self.requested_delay_seconds,
        }
        if self.model is not None:
            result["model"] = self.model.to_payload()
        if self.models is not None:
            result["models"] = [m.to_payload() for m in self.models]
        if self.outcome_code is not None:
            result["outcomeCode"] = self.outcome_code.value
        if self.message is not None:
            result["message"] = self.message
        if self.next_token is not None:
            result["nextToken"] = self.next_token
        return result


__all__ = ["OperationStatus", "ProgressEnvelope", "EnvelopeInvariantError"]
