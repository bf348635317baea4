"""
AWS::S3Outposts::BucketPolicy — the single policy document attached to a bucket.

A bucket holds at most one policy, so Create and Update both check what is
there first:

    CREATE  absent-check (non-empty policy → AlreadyExists) → put-policy → read-after-write
    READ    get-policy
    UPDATE  present-check (NoSuchBucketPolicy → NotFound) → put-policy → read-after-write
    DELETE  present-check → delete-policy → deleted

There is no List: the policy is identified by its bucket.
"""

from __future__ import annotations

from typing import Any, ClassVar

from outpost_spine.orchestration import (
    OperationKind,
    Pipeline,
    RequiredFields,
    ResourceDefinition,
    ResourceModel,
    Stage,
    expect_absent,
    expect_present,
    read_after_write,
    tolerate,
)
from outpost_spine.resources.arn import parse_bucket_arn
from outpost_spine.resources.client import S3CONTROL, client_factory
from outpost_spine.resources.common import conclude_deleted, policy_from_string, policy_to_string

TYPE_NAME = "AWS::S3Outposts::BucketPolicy"

BUCKET_ARN_REQUIRED = "Bucket ARN is required."
POLICY_DOCUMENT_REQUIRED = "Policy Document is required."
BUCKET_POLICY_EXISTS = "Bucket Policy already exists."
BUCKET_POLICY_MISSING = "Bucket Policy does not exist."

NO_SUCH_BUCKET_POLICY = "NoSuchBucketPolicy"


class BucketPolicyModel(ResourceModel):
    identity_field: ClassVar[str] = "bucket"

    bucket: str | None = None
    policy_document: dict[str, Any] | None = None


def _target(model: BucketPolicyModel, ctx) -> dict[str, Any]:
    return {"AccountId": parse_bucket_arn(model.bucket).account_id, "Bucket": model.bucket}


def _put_request(model: BucketPolicyModel, ctx) -> dict[str, Any]:
    return {**_target(model, ctx), "Policy": policy_to_string(model.policy_document)}


def _has_policy(response) -> bool:
    return bool(response.get("Policy"))


def _absent_check() -> Stage:
    return expect_absent(
        "absent-check",
        api="get_bucket_policy",
        translate=_target,
        is_present=_has_policy,
        message=BUCKET_POLICY_EXISTS,
        absent_codes=(NO_SUCH_BUCKET_POLICY,),
    )


def _present_check() -> Stage:
    return expect_present(
        "present-check",
        api="get_bucket_policy",
        translate=_target,
        message=BUCKET_POLICY_MISSING,
        absent_codes=(NO_SUCH_BUCKET_POLICY,),
    )


def _on_policy(response, model: BucketPolicyModel, state, ctx):
    fresh = BucketPolicyModel(bucket=model.bucket, policy_document=policy_from_string(response.get("Policy")))
    return fresh, state


def build_definition() -> ResourceDefinition:
    put_policy = Stage.call("put-policy", api="put_bucket_policy", translate=_put_request)
    bucket_required = RequiredFields(("bucket",), BUCKET_ARN_REQUIRED)
    document_required = RequiredFields(("policy_document",), POLICY_DOCUMENT_REQUIRED)

    return ResourceDefinition(
        type_name=TYPE_NAME,
        model_class=BucketPolicyModel,
        pipelines={
            OperationKind.CREATE: Pipeline.of(
                "bucket-policy.create", _absent_check(), put_policy, read_after_write()
            ),
            OperationKind.READ: Pipeline.of(
                "bucket-policy.read",
                Stage.call("get-policy", api="get_bucket_policy", translate=_target, on_success=_on_policy),
            ),
            OperationKind.UPDATE: Pipeline.of(
                "bucket-policy.update", _present_check(), put_policy, read_after_write()
            ),
            OperationKind.DELETE: Pipeline.of(
                "bucket-policy.delete",
                _present_check(),
                Stage.call(
                    "delete-policy",
                    api="delete_bucket_policy",
                    translate=_target,
                    on_error=tolerate(NO_SUCH_BUCKET_POLICY),
                ),
                conclude_deleted(),
            ),
        },
        required={
            OperationKind.CREATE: (bucket_required, document_required),
            OperationKind.READ: (bucket_required,),
            OperationKind.UPDATE: (bucket_required, document_required),
            OperationKind.DELETE: (bucket_required,),
        },
        client_factory=client_factory(S3CONTROL),
        description="Bucket policy of an S3 on Outposts bucket",
    )


__all__ = ["TYPE_NAME", "BucketPolicyModel", "build_definition"]
