"""
AWS::S3Outposts::Bucket — a bucket on an Outpost.

ARCHITECTURE
────────────
::

    CREATE  create-bucket (stabilize on returned ARN)
              → propagate → put-tags? → put-lifecycle? → read-after-write
    READ    get-bucket → get-tags → get-lifecycle
    UPDATE  probe (NotFound "Bucket does not exist.")
              → put-tags | delete-tags → put-lifecycle | delete-lifecycle
              → read-after-write
    DELETE  delete-bucket (InvalidBucketState retries, stabilize until gone)
              → deleted
    LIST    list-buckets (paged by nextToken)

Every call except CreateBucket and ListRegionalBuckets addresses the bucket
by its full ARN, with the account taken from the ARN.

Tags:
    outpost-spine, resources, bucket, s3control
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from outpost_spine.core.logging import get_logger
from outpost_spine.orchestration import (
    AttributeModel,
    InvocationContext,
    OperationKind,
    OutcomeCode,
    Pipeline,
    RequiredFields,
    ResourceDefinition,
    ResourceModel,
    Stage,
    StageResult,
    TransientCondition,
    assign_identity,
    expect_present,
    propagation_gate,
    read_after_write,
    tolerate,
)
from outpost_spine.resources.arn import parse_bucket_arn, with_outpost
from outpost_spine.resources.client import S3CONTROL, client_factory
from outpost_spine.resources.common import (
    Tag,
    absent_after,
    compact,
    conclude_deleted,
    require_account,
    tag_set,
    tags_from_sdk,
    tags_to_dict,
)

logger = get_logger(__name__)

TYPE_NAME = "AWS::S3Outposts::Bucket"

BUCKET_ARN_REQUIRED = "Bucket ARN is required."
BUCKET_NAME_REQUIRED = "Bucket Name is required."
OUTPOST_ID_REQUIRED = "OutpostId is required."
BUCKET_DOES_NOT_EXIST = "Bucket does not exist."
CREATE_RETURNED_NO_ARN = "CreateBucket did not return a bucket ARN."

NO_SUCH_TAG_SET = "NoSuchTagSet"
NO_SUCH_LIFECYCLE_CONFIGURATION = "NoSuchLifecycleConfiguration"
INVALID_BUCKET_STATE = "InvalidBucketState"


# =============================================================================
# Model
# =============================================================================


class AbortIncompleteMultipartUpload(AttributeModel):
    days_after_initiation: int


class FilterAndOperator(AttributeModel):
    prefix: str | None = None
    tags: list[Tag] | None = None


class RuleFilter(AttributeModel):
    prefix: str | None = None
    tag: Tag | None = None
    and_operator: FilterAndOperator | None = None


class LifecycleRule(AttributeModel):
    id: str | None = None
    status: str
    expiration_date: str | None = None
    expiration_in_days: int | None = None
    abort_incomplete_multipart_upload: AbortIncompleteMultipartUpload | None = None
    filter: RuleFilter | None = None


class LifecycleConfiguration(AttributeModel):
    rules: list[LifecycleRule] | None = None


class BucketModel(ResourceModel):
    arn: str | None = None
    bucket_name: str | None = None
    outpost_id: str | None = None
    tags: list[Tag] | None = None
    lifecycle_configuration: LifecycleConfiguration | None = None


# =============================================================================
# Translation
# =============================================================================


def _target(model: BucketModel, ctx: InvocationContext) -> dict[str, Any]:
    """AccountId/Bucket pair addressing an existing bucket."""
    arn = parse_bucket_arn(model.arn)
    return {"AccountId": arn.account_id, "Bucket": model.arn}


def _tags_for(model: BucketModel, ctx: InvocationContext) -> dict[str, str]:
    tags = tags_to_dict(model.tags)
    tags.update(ctx.all_tags)
    return tags


def rule_to_sdk(rule: LifecycleRule) -> dict[str, Any]:
    """CloudFormation rule shape → s3control ``LifecycleRule``."""
    sdk: dict[str, Any] = compact({"ID": rule.id, "Status": rule.status})

    expiration = compact({"Date": rule.expiration_date, "Days": rule.expiration_in_days})
    if expiration:
        sdk["Expiration"] = expiration
    if rule.abort_incomplete_multipart_upload is not None:
        sdk["AbortIncompleteMultipartUpload"] = {
            "DaysAfterInitiation": rule.abort_incomplete_multipart_upload.days_after_initiation
        }

    if rule.filter is not None:
        f = rule.filter
        sdk_filter: dict[str, Any] = compact({"Prefix": f.prefix})
        if f.tag is not None:
            sdk_filter["Tag"] = {"Key": f.tag.key, "Value": f.tag.value}
        if f.and_operator is not None:
            sdk_filter["And"] = compact({
                "Prefix": f.and_operator.prefix,
                "Tags": tag_set(tags_to_dict(f.and_operator.tags)) if f.and_operator.tags else None,
            })
        sdk["Filter"] = sdk_filter
    return sdk


def rule_from_sdk(sdk: dict[str, Any]) -> LifecycleRule:
    expiration = sdk.get("Expiration") or {}
    expiration_date = expiration.get("Date")
    if isinstance(expiration_date, (datetime, date)):
        expiration_date = expiration_date.isoformat()

    abort = sdk.get("AbortIncompleteMultipartUpload")
    rule_filter = None
    if "Filter" in sdk:
        f = sdk["Filter"]
        tag = f.get("Tag")
        and_op = f.get("And")
        rule_filter = RuleFilter(
            prefix=f.get("Prefix"),
            tag=Tag(key=tag["Key"], value=tag["Value"]) if tag else None,
            and_operator=FilterAndOperator(
                prefix=and_op.get("Prefix"),
                tags=tags_from_sdk(and_op.get("Tags")),
            ) if and_op else None,
        )

    return LifecycleRule(
        id=sdk.get("ID"),
        status=sdk["Status"],
        expiration_date=expiration_date,
        expiration_in_days=expiration.get("Days"),
        abort_incomplete_multipart_upload=(
            AbortIncompleteMultipartUpload(days_after_initiation=abort["DaysAfterInitiation"]) if abort else None
        ),
        filter=rule_filter,
    )


def _has_rules(model: BucketModel | None) -> bool:
    config = model.lifecycle_configuration if model else None
    return bool(config and config.rules)


def _previous(ctx: InvocationContext) -> BucketModel | None:
    return ctx.previous_model  # type: ignore[return-value]


# =============================================================================
# Create
# =============================================================================


def _create_request(model: BucketModel, ctx: InvocationContext) -> dict[str, Any]:
    return {"Bucket": model.bucket_name, "OutpostId": model.outpost_id}


def _on_created(response, model: BucketModel, state, ctx: InvocationContext):
    arn = response.get("BucketArn")
    if not arn:
        logger.error("bucket.create.no_arn", bucket=model.bucket_name)
        return StageResult.fail(OutcomeCode.GENERAL_SERVICE_EXCEPTION, CREATE_RETURNED_NO_ARN, model)
    # Buckets on EC2-backed outposts come back as ".../outpost/ec2/bucket/..."
    arn = with_outpost(arn, model.outpost_id)
    logger.info("bucket.created", arn=arn)
    return assign_identity(model, state, arn)


def _put_tags_request(model: BucketModel, ctx: InvocationContext) -> dict[str, Any]:
    return {**_target(model, ctx), "Tagging": {"TagSet": tag_set(_tags_for(model, ctx))}}


def _put_lifecycle_request(model: BucketModel, ctx: InvocationContext) -> dict[str, Any]:
    rules = model.lifecycle_configuration.rules or []
    return {
        **_target(model, ctx),
        "LifecycleConfiguration": {"Rules": [rule_to_sdk(rule) for rule in rules]},
    }


def create_pipeline() -> Pipeline:
    return Pipeline.of(
        "bucket.create",
        Stage.call(
            "create-bucket",
            api="create_bucket",
            translate=_create_request,
            on_success=_on_created,
            converged=lambda model, response, ctx: bool(model.arn),
        ),
        propagation_gate(),
        Stage.call(
            "put-tags",
            api="put_bucket_tagging",
            translate=_put_tags_request,
            when=lambda model, ctx: bool(_tags_for(model, ctx)),
        ),
        Stage.call(
            "put-lifecycle",
            api="put_bucket_lifecycle_configuration",
            translate=_put_lifecycle_request,
            when=lambda model, ctx: model.lifecycle_configuration is not None,
        ),
        read_after_write(),
    )


# =============================================================================
# Read
# =============================================================================


def _on_bucket(response, model: BucketModel, state, ctx: InvocationContext):
    arn = parse_bucket_arn(model.arn)
    fresh = BucketModel(arn=model.arn, bucket_name=response.get("Bucket"), outpost_id=arn.outpost_id)
    return fresh, state


def _on_tags(response, model: BucketModel, state, ctx):
    return model.model_copy(update={"tags": tags_from_sdk(response.get("TagSet"))}), state


def _on_lifecycle(response, model: BucketModel, state, ctx):
    rules = [rule_from_sdk(rule) for rule in response.get("Rules") or []]
    config = LifecycleConfiguration(rules=rules) if rules else None
    return model.model_copy(update={"lifecycle_configuration": config}), state


def read_pipeline() -> Pipeline:
    return Pipeline.of(
        "bucket.read",
        Stage.call("get-bucket", api="get_bucket", translate=_target, on_success=_on_bucket),
        Stage.call(
            "get-tags",
            api="get_bucket_tagging",
            translate=_target,
            on_success=_on_tags,
            on_error=tolerate(NO_SUCH_TAG_SET),
        ),
        Stage.call(
            "get-lifecycle",
            api="get_bucket_lifecycle_configuration",
            translate=_target,
            on_success=_on_lifecycle,
            on_error=tolerate(NO_SUCH_LIFECYCLE_CONFIGURATION),
        ),
    )


# =============================================================================
# Update
# =============================================================================


def _tags_changed(model: BucketModel, ctx: InvocationContext) -> bool:
    previous = _previous(ctx)
    return model.tags != (previous.tags if previous else None)


def _lifecycle_changed(model: BucketModel, ctx: InvocationContext) -> bool:
    previous = _previous(ctx)
    return model.lifecycle_configuration != (previous.lifecycle_configuration if previous else None)


def update_pipeline() -> Pipeline:
    return Pipeline.of(
        "bucket.update",
        expect_present(
            "probe",
            api="get_bucket",
            translate=_target,
            message=BUCKET_DOES_NOT_EXIST,
            absent_codes=("NoSuchBucket",),
        ),
        Stage.call(
            "put-tags",
            api="put_bucket_tagging",
            translate=_put_tags_request,
            when=lambda model, ctx: _tags_changed(model, ctx) and model.tags is not None,
        ),
        Stage.call(
            "delete-tags",
            api="delete_bucket_tagging",
            translate=_target,
            on_error=tolerate(NO_SUCH_TAG_SET),
            when=lambda model, ctx: _tags_changed(model, ctx) and model.tags is None,
        ),
        Stage.call(
            "put-lifecycle",
            api="put_bucket_lifecycle_configuration",
            translate=_put_lifecycle_request,
            when=lambda model, ctx: _lifecycle_changed(model, ctx) and _has_rules(model),
        ),
        Stage.call(
            "delete-lifecycle",
            api="delete_bucket_lifecycle_configuration",
            translate=_target,
            on_error=tolerate(NO_SUCH_LIFECYCLE_CONFIGURATION),
            when=lambda model, ctx: _lifecycle_changed(model, ctx) and not _has_rules(model),
        ),
        read_after_write(),
    )


# =============================================================================
# Delete / List
# =============================================================================


def _probe_bucket(model: BucketModel, ctx: InvocationContext) -> Any:
    return ctx.client.get_bucket(**_target(model, ctx))


def delete_pipeline() -> Pipeline:
    return Pipeline.of(
        "bucket.delete",
        Stage.call(
            "delete-bucket",
            api="delete_bucket",
            translate=_target,
            transient=[TransientCondition(409, INVALID_BUCKET_STATE)],
            converged=absent_after(_probe_bucket, "NoSuchBucket"),
        ),
        conclude_deleted(),
    )


def _list_request(model: BucketModel | None, ctx: InvocationContext) -> dict[str, Any]:
    return compact({
        "AccountId": require_account(ctx),
        "OutpostId": model.outpost_id if model else None,
        "NextToken": ctx.next_token,
    })


def _on_listed(response, model, state, ctx) -> StageResult:
    models = [
        BucketModel(arn=entry.get("BucketArn"), bucket_name=entry.get("Bucket"), outpost_id=entry.get("OutpostId"))
        for entry in response.get("RegionalBucketList") or []
    ]
    return StageResult.done(None, state, models=models, next_token=response.get("NextToken"))


def list_pipeline() -> Pipeline:
    return Pipeline.of(
        "bucket.list",
        Stage.call("list-buckets", api="list_regional_buckets", translate=_list_request, on_success=_on_listed),
    )


# =============================================================================
# Definition
# =============================================================================


def build_definition() -> ResourceDefinition:
    arn_required = (RequiredFields(("arn",), BUCKET_ARN_REQUIRED),)
    return ResourceDefinition(
        type_name=TYPE_NAME,
        model_class=BucketModel,
        pipelines={
            OperationKind.CREATE: create_pipeline(),
            OperationKind.READ: read_pipeline(),
            OperationKind.UPDATE: update_pipeline(),
            OperationKind.DELETE: delete_pipeline(),
            OperationKind.LIST: list_pipeline(),
        },
        required={
            OperationKind.CREATE: (
                RequiredFields(("bucket_name",), BUCKET_NAME_REQUIRED),
                RequiredFields(("outpost_id",), OUTPOST_ID_REQUIRED),
            ),
            OperationKind.READ: arn_required,
            OperationKind.UPDATE: arn_required,
            OperationKind.DELETE: arn_required,
        },
        client_factory=client_factory(S3CONTROL),
        description="S3 on Outposts bucket with tags and lifecycle rules",
    )


__all__ = [
    "TYPE_NAME",
    "BucketModel",
    "LifecycleConfiguration",
    "LifecycleRule",
    "RuleFilter",
    "FilterAndOperator",
    "AbortIncompleteMultipartUpload",
    "rule_to_sdk",
    "rule_from_sdk",
    "build_definition",
]
