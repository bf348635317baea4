"""Outcome Taxonomy — the closed vocabulary of terminal failure codes.

Manifesto:
    Four resource families talking to two backend services produce dozens
of distinct exception shapes.  The scheduler only understands ten codes.
``classify_error`` is the single, total function between the two: it never
raises, and every path ends in exactly one ``OutcomeCode``.

ARCHITECTURE
────────────
::

    classify_error(error, conditions)
      1. botocore ClientError  → named condition table (Error.Code)
                               → status bucket table (HTTPStatusCode)
      2. BotoCoreError         → GeneralServiceException  (transport)
      3. OutpostSpineError     → its declared outcome_code, if any
      4. anything else         → InternalFailure           (programming fault)

    TransientCondition  ── exact (status, code, message?) entries that a
                           Stage may treat as "retry later" instead of Fail

BEST PRACTICES
──────────────
- Add named conditions to a table; never branch on ``str(error)``.
- Transient matches are exact.  ``(400, "InvalidRequest", msg)`` does not
  match ``(400, "BadRequest", msg)``.

Related modules:
    stage.py     — calls classify_error from the default error path
    pipeline.py  — converts escaped exceptions via classify_error

Tags:
    outpost-spine, orchestration, outcome, classifier, error-taxonomy

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from outpost_spine.core.errors import OutpostSpineError


class OutcomeCode(str, Enum):
    """Terminal failure classification reported to the scheduler."""

    INVALID_REQUEST = "InvalidRequest"
    ALREADY_EXISTS = "AlreadyExists"
    NOT_FOUND = "NotFound"
    ACCESS_DENIED = "AccessDenied"
    RESOURCE_CONFLICT = "ResourceConflict"
    SERVICE_LIMIT_EXCEEDED = "ServiceLimitExceeded"
    SERVICE_INTERNAL_ERROR = "ServiceInternalError"
    THROTTLING = "Throttling"
    GENERAL_SERVICE_EXCEPTION = "GeneralServiceException"
    INTERNAL_FAILURE = "InternalFailure"


STATUS_OUTCOMES: Mapping[int, OutcomeCode] = MappingProxyType({
    400: OutcomeCode.INVALID_REQUEST,
    403: OutcomeCode.ACCESS_DENIED,
    404: OutcomeCode.NOT_FOUND,
    409: OutcomeCode.RESOURCE_CONFLICT,
    500: OutcomeCode.SERVICE_INTERNAL_ERROR,
    503: OutcomeCode.THROTTLING,
})

# Named backend conditions (Error.Code) checked before the status table.
DEFAULT_CONDITIONS: Mapping[str, OutcomeCode] = MappingProxyType({
    # Malformed input
    "BadRequestException": OutcomeCode.INVALID_REQUEST,
    "InvalidRequestException": OutcomeCode.INVALID_REQUEST,
    "MalformedPolicy": OutcomeCode.INVALID_REQUEST,
    "InvalidAccessPoint": OutcomeCode.INVALID_REQUEST,
    # Already owned by the caller
    "BucketAlreadyExists": OutcomeCode.ALREADY_EXISTS,
    "BucketAlreadyOwnedByYou": OutcomeCode.ALREADY_EXISTS,
    "AccessPointAlreadyOwnedByYou": OutcomeCode.ALREADY_EXISTS,
    # No such resource
    "NotFoundException": OutcomeCode.NOT_FOUND,
    "NoSuchBucket": OutcomeCode.NOT_FOUND,
    "NoSuchBucketPolicy": OutcomeCode.NOT_FOUND,
    "NoSuchAccessPoint": OutcomeCode.NOT_FOUND,
    "NoSuchAccessPointPolicy": OutcomeCode.NOT_FOUND,
    "NoSuchTagSet": OutcomeCode.NOT_FOUND,
    "NoSuchLifecycleConfiguration": OutcomeCode.NOT_FOUND,
    # Limits
    "TooManyTagsException": OutcomeCode.SERVICE_LIMIT_EXCEEDED,
    "TooManyAccessPoints": OutcomeCode.SERVICE_LIMIT_EXCEEDED,
    # Everything else with a name
    "AccessDenied": OutcomeCode.ACCESS_DENIED,
    "InternalServiceException": OutcomeCode.SERVICE_INTERNAL_ERROR,
    "TooManyRequestsException": OutcomeCode.THROTTLING,
    "InvalidNextTokenException": OutcomeCode.GENERAL_SERVICE_EXCEPTION,
})


def outcome_for_status(status_code: int | None) -> OutcomeCode:
    """Bucket an HTTP status into an Outcome Code."""
    if status_code is None:
        return OutcomeCode.GENERAL_SERVICE_EXCEPTION
    return STATUS_OUTCOMES.get(status_code, OutcomeCode.GENERAL_SERVICE_EXCEPTION)


@dataclass(frozen=True)
class RemoteError:
    """The parts of a backend failure the engine is allowed to look at."""

    status_code: int | None
    error_code: str | None
    message: str
    operation: str | None = None

    @classmethod
    def from_exception(cls, error: BaseException) -> RemoteError | None:
        """Extract details from a botocore ``ClientError``; ``None`` otherwise."""
        if not isinstance(error, ClientError):
            return None
        details = error.response.get("Error", {}) or {}
        metadata = error.response.get("ResponseMetadata", {}) or {}
        return cls(
            status_code=metadata.get("HTTPStatusCode"),
            error_code=details.get("Code"),
            message=details.get("Message") or str(error),
            operation=getattr(error, "operation_name", None),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "status_code": self.status_code,
            "error_code": self.error_code,
            "message": self.message,
            "operation": self.operation,
        }


@dataclass(frozen=True)
class Classification:
    """Result of classifying one caught error."""

    code: OutcomeCode
    message: str
    remote: RemoteError | None = None

    @property
    def is_internal(self) -> bool:
        return self.code == OutcomeCode.INTERNAL_FAILURE


def classify_error(
    error: BaseException,
    conditions: Mapping[str, OutcomeCode] | None = None,
) -> Classification:
    """Map a caught error to exactly one Outcome Code plus a message.

    Total: returns for every input, including non-exception surprises.
    """
    table = DEFAULT_CONDITIONS if conditions is None else conditions

    remote = RemoteError.from_exception(error)
    if remote is not None:
        if remote.error_code and remote.error_code in table:
            return Classification(table[remote.error_code], remote.message, remote)
        return Classification(outcome_for_status(remote.status_code), remote.message, remote)

    if isinstance(error, BotoCoreError):
        return Classification(OutcomeCode.GENERAL_SERVICE_EXCEPTION, str(error))

    if isinstance(error, OutpostSpineError) and error.outcome_code is not None:
        return Classification(OutcomeCode(error.outcome_code), error.message)

    return Classification(
        OutcomeCode.INTERNAL_FAILURE,
        f"{type(error).__name__}: {error}",
    )


def classify(
    error: BaseException,
    conditions: Mapping[str, OutcomeCode] | None = None,
) -> OutcomeCode:
    """Shorthand for ``classify_error(error).code``."""
    return classify_error(error, conditions).code


def error_code_of(error: BaseException) -> str | None:
    """Backend error code (``Error.Code``) of a remote failure, if any."""
    remote = RemoteError.from_exception(error)
    return remote.error_code if remote else None


def has_condition(error: BaseException, *codes: str) -> bool:
    """True when ``error`` is a remote failure carrying one of ``codes``."""
    return error_code_of(error) in codes


def is_not_found(error: BaseException, *codes: str) -> bool:
    """True for a 404 remote failure, or one carrying any of ``codes``."""
    remote = RemoteError.from_exception(error)
    if remote is None:
        return False
    return remote.status_code == 404 or (remote.error_code in codes)


# =============================================================================
# Transient conditions
# =============================================================================


@dataclass(frozen=True)
class TransientCondition:
    """One exact backend condition that means "try again later".

    ``message`` is compared for equality, not searched.  Leave it ``None``
    when the error code alone is specific enough.
    """

    status_code: int
    error_code: str
    message: str | None = None

    def matches(self, remote: RemoteError) -> bool:
        if remote.status_code != self.status_code or remote.error_code != self.error_code:
            return False
        return self.message is None or remote.message == self.message


def match_transient(
    error: BaseException,
    conditions: Iterable[TransientCondition],
) -> TransientCondition | None:
    """Return the first transient condition ``error`` matches, if any."""
    remote = RemoteError.from_exception(error)
    if remote is None:
        return None
    for condition in conditions:
        if condition.matches(remote):
            return condition
    return None


__all__ = [
    "OutcomeCode",
    "STATUS_OUTCOMES",
    "DEFAULT_CONDITIONS",
    "RemoteError",
    "Classification",
    "TransientCondition",
    "classify",
    "classify_error",
    "outcome_for_status",
    "error_code_of",
    "has_condition",
    "is_not_found",
    "match_transient",
]
