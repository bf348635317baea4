"""Translation helpers shared by the S3 on Outposts resource families."""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from typing import Any

from outpost_spine.core.errors import RemoteDataError, ValidationError
from outpost_spine.orchestration import (
    AttributeModel,
    CallbackState,
    InvocationContext,
    Stage,
    StageResult,
    is_not_found,
)


class Tag(AttributeModel):
    key: str
    value: str


def compact(request: Mapping[str, Any]) -> dict[str, Any]:
    """Drop ``None`` values so boto3 does not reject them."""
    return {k: v for k, v in request.items() if v is not None}


def require_account(ctx: InvocationContext, fallback: str | None = None) -> str:
    """Account id for a request; the ARN's account when the caller gave none."""
    account = ctx.account_id or fallback
    if not account:
        raise ValidationError("AWS account id is required.", field="AccountId")
    return account


# =============================================================================
# Tags
# =============================================================================


def tags_to_dict(tags: Iterable[Tag] | None) -> dict[str, str]:
    return {t.key: t.value for t in tags or ()}


def tag_set(tags: Mapping[str, str]) -> list[dict[str, str]]:
    """``{"k": "v"}`` → ``[{"Key": "k", "Value": "v"}]`` (sorted by key)."""
    return [{"Key": k, "Value": v} for k, v in sorted(tags.items())]


def tags_from_sdk(tag_list: Iterable[Mapping[str, str]] | None) -> list[Tag] | None:
    tags = [Tag(key=t["Key"], value=t["Value"]) for t in tag_list or ()]
    return tags or None


# =============================================================================
# Policy documents
# =============================================================================


def policy_to_string(document: Mapping[str, Any] | str) -> str:
    if isinstance(document, str):
        return document
    return json.dumps(document)


def policy_from_string(text: str | None) -> dict[str, Any] | None:
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise RemoteDataError(f"Policy returned by the service is not valid JSON: {e}", cause=e) from e


# =============================================================================
# Stages
# =============================================================================


def conclude_deleted(name: str = "deleted") -> Stage:
    """Finish a Delete with no model, as the scheduler expects."""

    def _done(model, state: CallbackState, ctx: InvocationContext) -> StageResult:
        return StageResult.done(None, state)

    return Stage.local(name, _done)


def absent_after(probe, *codes: str):
    """Convergence predicate: true once ``probe(model, ctx)`` reports not-found."""

    def _converged(model, response, ctx: InvocationContext) -> bool:
        try:
            probe(model, ctx)
        except Exception as e:
            if is_not_found(e, *codes):
                return True
            raise
        return False

    return _converged


__all__ = [
    "Tag",
    "compact",
    "require_account",
    "tags_to_dict",
    "tag_set",
    "tags_from_sdk",
    "policy_to_string",
    "policy_from_string",
    "conclude_deleted",
    "absent_after",
]
