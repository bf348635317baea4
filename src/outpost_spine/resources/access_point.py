"""
AWS::S3Outposts::AccessPoint — a VPC-restricted access point on an Outposts bucket.

    CREATE  create-access-point (stabilize on returned ARN)
              → propagate → put-policy? → read-after-write
    READ    get-access-point → get-policy (absent policy is data)
    UPDATE  put-policy | delete-policy (diff against the previous model)
              → read-after-write
    DELETE  delete-access-point (retry while the access point is busy,
              stabilize until NotFound) → settle → deleted
    LIST    list-access-points (one bucket, paged by nextToken)

Access points are addressed by their ARN in the ``Name`` request field.
"""

from __future__ import annotations

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
    propagation_gate,
    read_after_write,
    tolerate,
)
from outpost_spine.resources.arn import BUCKET, parse_access_point_arn, parse_bucket_arn, with_outpost
from outpost_spine.resources.client import S3CONTROL, client_factory
from outpost_spine.resources.common import (
    absent_after,
    compact,
    conclude_deleted,
    policy_from_string,
    policy_to_string,
)

logger = get_logger(__name__)

TYPE_NAME = "AWS::S3Outposts::AccessPoint"

ACCESS_POINT_ARN_REQUIRED = "AccessPoint ARN is required."
ACCESS_POINT_NAME_REQUIRED = "AccessPoint Name is required."
BUCKET_ARN_REQUIRED = "Bucket ARN is required."
VPC_CONFIGURATION_REQUIRED = "VpcConfiguration is required."
CREATE_RETURNED_NO_ARN = "CreateAccessPoint did not return an access point ARN."

NO_SUCH_ACCESS_POINT = "NoSuchAccessPoint"
NO_SUCH_ACCESS_POINT_POLICY = "NoSuchAccessPointPolicy"

# DeleteAccessPoint answers this while the access point is still settling.
BUSY_ON_DELETE = TransientCondition(
    400,
    "InvalidRequest",
    "Access Point is not in a state where it can be deleted",
)


class VpcConfiguration(AttributeModel):
    vpc_id: str | None = None


class AccessPointModel(ResourceModel):
    arn: str | None = None
    bucket: str | None = None
    name: str | None = None
    vpc_configuration: VpcConfiguration | None = None
    policy: dict[str, Any] | None = None


def _target(model: AccessPointModel, ctx) -> dict[str, Any]:
    return {"AccountId": parse_access_point_arn(model.arn).account_id, "Name": model.arn}


def _vpc_of(entry: dict[str, Any]) -> VpcConfiguration | None:
    vpc = entry.get("VpcConfiguration")
    return VpcConfiguration(vpc_id=vpc.get("VpcId")) if vpc else None


# =============================================================================
# Create
# =============================================================================


def _create_request(model: AccessPointModel, ctx: InvocationContext) -> dict[str, Any]:
    bucket = parse_bucket_arn(model.bucket)
    return {
        "AccountId": ctx.account_id or bucket.account_id,
        "Name": model.name,
        "Bucket": model.bucket,
        "VpcConfiguration": {"VpcId": model.vpc_configuration.vpc_id},
    }


def _on_created(response, model: AccessPointModel, state, ctx):
    arn = response.get("AccessPointArn")
    if not arn:
        logger.error("access_point.create.no_arn", name=model.name)
        return StageResult.fail(OutcomeCode.GENERAL_SERVICE_EXCEPTION, CREATE_RETURNED_NO_ARN, model)
    arn = with_outpost(arn, parse_bucket_arn(model.bucket).outpost_id)
    logger.info("access_point.created", arn=arn)
    return assign_identity(model, state, arn)


def _put_policy_request(model: AccessPointModel, ctx) -> dict[str, Any]:
    return {**_target(model, ctx), "Policy": policy_to_string(model.policy)}


def create_pipeline() -> Pipeline:
    return Pipeline.of(
        "access-point.create",
        Stage.call(
            "create-access-point",
            api="create_access_point",
            translate=_create_request,
            on_success=_on_created,
            converged=lambda model, response, ctx: bool(model.arn),
        ),
        propagation_gate(),
        Stage.call(
            "put-policy",
            api="put_access_point_policy",
            translate=_put_policy_request,
            when=lambda model, ctx: model.policy is not None,
        ),
        read_after_write(),
    )


# =============================================================================
# Read / Update
# =============================================================================


def _on_access_point(response, model: AccessPointModel, state, ctx):
    arn = parse_access_point_arn(model.arn)
    bucket_name = response.get("Bucket")
    fresh = AccessPointModel(
        arn=model.arn,
        bucket=arn.sibling(BUCKET, bucket_name).arn if bucket_name else None,
        name=response.get("Name"),
        vpc_configuration=_vpc_of(response),
    )
    return fresh, state


def _on_policy(response, model: AccessPointModel, state, ctx):
    return model.model_copy(update={"policy": policy_from_string(response.get("Policy"))}), state


def read_pipeline() -> Pipeline:
    return Pipeline.of(
        "access-point.read",
        Stage.call("get-access-point", api="get_access_point", translate=_target, on_success=_on_access_point),
        Stage.call(
            "get-policy",
            api="get_access_point_policy",
            translate=_target,
            on_success=_on_policy,
            on_error=tolerate(NO_SUCH_ACCESS_POINT_POLICY),
        ),
    )


def _policy_changed(model: AccessPointModel, ctx: InvocationContext) -> bool:
    previous = ctx.previous_model
    return model.policy != (previous.policy if previous else None)


def update_pipeline() -> Pipeline:
    return Pipeline.of(
        "access-point.update",
        Stage.call(
            "put-policy",
            api="put_access_point_policy",
            translate=_put_policy_request,
            when=lambda model, ctx: _policy_changed(model, ctx) and model.policy is not None,
        ),
        Stage.call(
            "delete-policy",
            api="delete_access_point_policy",
            translate=_target,
            on_error=tolerate(NO_SUCH_ACCESS_POINT_POLICY),
            when=lambda model, ctx: _policy_changed(model, ctx) and model.policy is None,
        ),
        read_after_write(),
    )


# =============================================================================
# Delete / List
# =============================================================================


def _probe_access_point(model: AccessPointModel, ctx: InvocationContext) -> Any:
    return ctx.client.get_access_point(**_target(model, ctx))


def delete_pipeline() -> Pipeline:
    return Pipeline.of(
        "access-point.delete",
        Stage.call(
            "delete-access-point",
            api="delete_access_point",
            translate=_target,
            transient=[BUSY_ON_DELETE],
            converged=absent_after(_probe_access_point, NO_SUCH_ACCESS_POINT),
        ),
        propagation_gate("settle"),
        conclude_deleted(),
    )


def _list_request(model: AccessPointModel, ctx: InvocationContext) -> dict[str, Any]:
    bucket = parse_bucket_arn(model.bucket)
    return compact({
        "AccountId": ctx.account_id or bucket.account_id,
        "Bucket": model.bucket,
        "NextToken": ctx.next_token,
    })


def _on_listed(response, model: AccessPointModel, state, ctx) -> StageResult:
    outpost_id = parse_bucket_arn(model.bucket).outpost_id
    models = [
        AccessPointModel(
            arn=with_outpost(entry["AccessPointArn"], outpost_id) if entry.get("AccessPointArn") else None,
            bucket=model.bucket,
            name=entry.get("Name"),
            vpc_configuration=_vpc_of(entry),
        )
        for entry in response.get("AccessPointList") or []
    ]
    return StageResult.done(None, state, models=models, next_token=response.get("NextToken"))


def list_pipeline() -> Pipeline:
    return Pipeline.of(
        "access-point.list",
        Stage.call("list-access-points", api="list_access_points", translate=_list_request, on_success=_on_listed),
    )


def build_definition() -> ResourceDefinition:
    arn_required = (RequiredFields(("arn",), ACCESS_POINT_ARN_REQUIRED),)
    return ResourceDefinition(
        type_name=TYPE_NAME,
        model_class=AccessPointModel,
        pipelines={
            OperationKind.CREATE: create_pipeline(),
            OperationKind.READ: read_pipeline(),
            OperationKind.UPDATE: update_pipeline(),
            OperationKind.DELETE: delete_pipeline(),
            OperationKind.LIST: list_pipeline(),
        },
        required={
            OperationKind.CREATE: (
                RequiredFields(("bucket",), BUCKET_ARN_REQUIRED),
                RequiredFields(("name",), ACCESS_POINT_NAME_REQUIRED),
                RequiredFields(("vpc_configuration.vpc_id",), VPC_CONFIGURATION_REQUIRED),
            ),
            OperationKind.READ: arn_required,
            OperationKind.UPDATE: arn_required,
            OperationKind.DELETE: arn_required,
            OperationKind.LIST: (RequiredFields(("bucket",), BUCKET_ARN_REQUIRED),),
        },
        client_factory=client_factory(S3CONTROL),
        description="VPC access point on an S3 on Outposts bucket",
    )


__all__ = [
    "TYPE_NAME",
    "BUSY_ON_DELETE",
    "VpcConfiguration",
    "AccessPointModel",
    "build_definition",
]
