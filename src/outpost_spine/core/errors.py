"""
Structured error types for Outpost-Spine.

Remote failures (botocore ``ClientError`` / ``BotoCoreError``) are never
wrapped in these types: the engine classifies them directly into an Outcome
Code. The classes here cover everything the engine itself can detect: bad
input shapes, bad configuration, misassembled pipelines, and resources that
refused to converge.

Architecture:
    ::

        OutpostSpineError  (category, retryable, context, cause, outcome_code)
          ├── ValidationError          → InvalidRequest
          │     └── InvalidIdentityError
          ├── ConfigError
          ├── StabilizationError       → GeneralServiceException
          ├── RemoteDataError          → GeneralServiceException
          └── OrchestrationError
                ├── PipelineNotFoundError
                ├── ResourceNotRegisteredError
                └── PipelineDefinitionError

    ``outcome_code`` is the Outcome Code (by value) the classifier reports
    when one of these escapes a Stage. ``None`` means the error is a
    programming fault and is reported as ``InternalFailure``.

Guardrails:
    ❌ DON'T: Raise these for backend failures - let ClientError through
    ✅ DO: Raise ValidationError for malformed caller input

    ❌ DON'T: Swallow the original exception
    ✅ DO: Pass it as cause= for error chaining

Tags:
    error-handling, exception-hierarchy, outpost-spine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Error categories for logging and routing."""

    VALIDATION = "VALIDATION"  # Caller input is malformed
    CONFIG = "CONFIG"  # Missing/invalid settings
    REMOTE = "REMOTE"  # Backend reported a condition
    ORCHESTRATION = "ORCHESTRATION"  # Pipeline/registry misuse
    INTERNAL = "INTERNAL"  # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Attributes:
        resource_type: Resource type name (e.g. "AWS::S3Outposts::Bucket")
        operation: Operation kind being executed
        stage: Stage name within the pipeline
        identity: Primary identity of the resource, if known
        metadata: Additional key-value pairs
    """

    resource_type: str | None = None
    operation: str | None = None
    stage: str | None = None
    identity: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["resource_type", "operation", "stage", "identity"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class OutpostSpineError(Exception):
    """
    Base exception for all Outpost-Spine errors.

    Subclasses set ``default_category``, ``default_retryable`` and
    ``outcome_code`` to give sensible defaults for their domain.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False
    outcome_code: str | None = None

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> OutpostSpineError:
        """
        Add context to this error (fluent API).

        Usage:
            raise ValidationError("bad ARN").with_context(stage="get-bucket")
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key):
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.outcome_code is not None:
            result["outcome_code"] = self.outcome_code
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# VALIDATION ERRORS
# =============================================================================


class ValidationError(OutpostSpineError):
    """Caller input failed validation before or while building a request."""

    default_category = ErrorCategory.VALIDATION
    outcome_code = "InvalidRequest"

    def __init__(self, message: str, *, field: str | None = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.field:
            result["field"] = self.field
        return result


class InvalidIdentityError(ValidationError):
    """An identity string (ARN) could not be decomposed."""

    def __init__(self, identity: str | None, expected: str):
        self.identity = identity
        self.expected = expected
        super().__init__(f"Invalid {expected} ARN: {identity!r}", field="Arn")


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(OutpostSpineError):
    """Configuration error (never retryable)."""

    default_category = ErrorCategory.CONFIG


# =============================================================================
# CONVERGENCE ERRORS
# =============================================================================


class StabilizationError(OutpostSpineError):
    """A resource reached a state from which it will not converge."""

    default_category = ErrorCategory.REMOTE
    outcome_code = "GeneralServiceException"

    def __init__(self, resource_type: str, identity: str | None, status: str | None = None):
        self.resource_type = resource_type
        self.identity = identity
        self.status = status
        detail = f" (status {status})" if status else ""
        super().__init__(
            f"Resource of type '{resource_type}' with identifier '{identity}' did not stabilize{detail}.",
            context=ErrorContext(resource_type=resource_type, identity=identity),
        )


class RemoteDataError(OutpostSpineError):
    """The backend answered, but with a payload that cannot be decoded."""

    default_category = ErrorCategory.REMOTE
    outcome_code = "GeneralServiceException"


# =============================================================================
# ORCHESTRATION ERRORS
# =============================================================================


class OrchestrationError(OutpostSpineError):
    """Engine misuse: bad registry lookups or badly assembled pipelines."""

    default_category = ErrorCategory.ORCHESTRATION


class PipelineNotFoundError(OrchestrationError):
    """No pipeline is registered for an operation on a resource type."""

    outcome_code = "InvalidRequest"

    def __init__(self, resource_type: str, operation: str):
        self.resource_type = resource_type
        self.operation = operation
        super().__init__(
            f"Operation {operation} is not supported for {resource_type}.",
            context=ErrorContext(resource_type=resource_type, operation=operation),
        )


class ResourceNotRegisteredError(OrchestrationError):
    """Raised when a resource type is not present in the registry."""

    def __init__(self, resource_type: str, available: list[str]):
        self.resource_type = resource_type
        names = ", ".join(sorted(available)) if available else "(none)"
        super().__init__(f"Resource type '{resource_type}' not registered. Available: {names}")


class PipelineDefinitionError(OrchestrationError):
    """Raised when a pipeline is assembled incorrectly (e.g. duplicate stage names)."""

    def __init__(self, pipeline: str, message: str):
        self.pipeline = pipeline
        super().__init__(f"Pipeline '{pipeline}': {message}")


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "OutpostSpineError",
    "ValidationError",
    "InvalidIdentityError",
    "ConfigError",
    "StabilizationError",
    "RemoteDataError",
    "OrchestrationError",
    "PipelineNotFoundError",
    "ResourceNotRegisteredError",
    "PipelineDefinitionError",
]
