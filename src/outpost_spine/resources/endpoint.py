"""
AWS::S3Outposts::Endpoint — network endpoint giving a VPC access to Outposts buckets.

The s3outposts API has no describe call: a single endpoint is found by
scanning ``ListEndpoints`` for its ARN.  Endpoint status drives
stabilization:

    Pending     keep waiting
    Available   converged
    (missing)   keep waiting (listing has not caught up yet)
    anything    fails the operation (Create_Failed, Deleting, ...)
    else

Pipelines:

    CREATE  create-endpoint (stabilize on status) → read-after-write
    READ    find-endpoint (NotFound "Endpoint with provided ARN not found.")
    DELETE  delete-endpoint (stabilize until it leaves the listing) → deleted
    LIST    list-endpoints (paged by nextToken)
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from outpost_spine.core.errors import StabilizationError
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
    assign_identity,
    read_after_write,
)
from outpost_spine.resources.arn import parse_endpoint_arn, with_outpost
from outpost_spine.resources.client import S3OUTPOSTS, client_factory
from outpost_spine.resources.common import compact, conclude_deleted

logger = get_logger(__name__)

TYPE_NAME = "AWS::S3Outposts::Endpoint"

INVALID_INPUT = "OutpostId, SecurityGroupId, SubnetId are required parameters."
ENDPOINT_ARN_REQUIRED = "Endpoint ARN is required."
ENDPOINT_ARN_NOT_FOUND = "Endpoint with provided ARN not found."
INVALID_ACCESS_TYPE = "AccessType is invalid."
CREATE_RETURNED_NO_ARN = "CreateEndpoint did not return an endpoint ARN."

DEFAULT_ACCESS_TYPE = "Private"
ACCESS_TYPES = frozenset({"Private", "CustomerOwnedIp"})

PENDING = "Pending"
AVAILABLE = "Available"


class NetworkInterface(AttributeModel):
    network_interface_id: str | None = None


class EndpointModel(ResourceModel):
    arn: str | None = None
    id: str | None = None
    outpost_id: str | None = None
    security_group_id: str | None = None
    subnet_id: str | None = None
    access_type: str | None = None
    customer_owned_ipv4_pool: str | None = None
    cidr_block: str | None = None
    creation_time: str | None = None
    network_interfaces: list[NetworkInterface] | None = None
    status: str | None = None
    failed_reason: str | None = None


# =============================================================================
# Listing
# =============================================================================


def from_sdk(entry: dict[str, Any], outpost_id: str | None = None) -> EndpointModel:
    """``ListEndpoints`` entry → model, with ``/ec2/`` ARNs pinned to ``outpost_id``."""
    arn = entry.get("EndpointArn")
    if arn and outpost_id:
        arn = with_outpost(arn, outpost_id)
    created = entry.get("CreationTime")
    if isinstance(created, datetime):
        created = created.isoformat()
    failed = entry.get("FailedReason") or {}

    return EndpointModel(
        arn=arn,
        id=parse_endpoint_arn(arn).child if arn else None,
        outpost_id=outpost_id or entry.get("OutpostsId"),
        security_group_id=entry.get("SecurityGroupId"),
        subnet_id=entry.get("SubnetId"),
        access_type=entry.get("AccessType"),
        customer_owned_ipv4_pool=entry.get("CustomerOwnedIpv4Pool"),
        cidr_block=entry.get("CidrBlock"),
        creation_time=created,
        network_interfaces=[
            NetworkInterface(network_interface_id=ni.get("NetworkInterfaceId"))
            for ni in entry.get("NetworkInterfaces") or []
        ] or None,
        status=entry.get("Status"),
        failed_reason=failed.get("Message"),
    )


def find_endpoint(client: Any, arn: str) -> EndpointModel | None:
    """Scan every page of ``ListEndpoints`` for ``arn``."""
    outpost_id = parse_endpoint_arn(arn).outpost_id
    token = None
    while True:
        response = client.list_endpoints(**compact({"NextToken": token}))
        for entry in response.get("Endpoints") or []:
            model = from_sdk(entry, outpost_id)
            if model.arn == arn:
                return model
        token = response.get("NextToken")
        if not token:
            return None


def _find(client: Any, request: dict[str, Any]) -> EndpointModel | None:
    return find_endpoint(client, request["Arn"])


def _arn_request(model: EndpointModel, ctx) -> dict[str, Any]:
    parse_endpoint_arn(model.arn)
    return {"Arn": model.arn}


# =============================================================================
# Create
# =============================================================================


def _valid_access_type(model: EndpointModel | None) -> str | None:
    if model is not None and model.access_type is not None and model.access_type not in ACCESS_TYPES:
        return INVALID_ACCESS_TYPE
    return None


def _create_request(model: EndpointModel, ctx) -> dict[str, Any]:
    return compact({
        "OutpostId": model.outpost_id,
        "SubnetId": model.subnet_id,
        "SecurityGroupId": model.security_group_id,
        "AccessType": model.access_type or DEFAULT_ACCESS_TYPE,
        "CustomerOwnedIpv4Pool": model.customer_owned_ipv4_pool,
    })


def _on_created(response, model: EndpointModel, state, ctx):
    arn = response.get("EndpointArn")
    if not arn:
        logger.error("endpoint.create.no_arn", outpost_id=model.outpost_id)
        return StageResult.fail(OutcomeCode.GENERAL_SERVICE_EXCEPTION, CREATE_RETURNED_NO_ARN, model)
    arn = with_outpost(arn, model.outpost_id)
    model, state = assign_identity(model, state, arn)
    model = model.model_copy(update={
        "id": parse_endpoint_arn(arn).child,
        "access_type": model.access_type or DEFAULT_ACCESS_TYPE,
    })
    logger.info("endpoint.created", arn=arn)
    return model, state


def _available(model: EndpointModel, response, ctx: InvocationContext) -> bool:
    if not model.arn:
        return False
    found = find_endpoint(ctx.client, model.arn)
    status = found.status if found else None
    logger.debug("endpoint.status", arn=model.arn, status=status)
    if status is None or status == PENDING:
        return False
    if status == AVAILABLE:
        return True
    raise StabilizationError(TYPE_NAME, model.arn, status)


def create_pipeline() -> Pipeline:
    return Pipeline.of(
        "endpoint.create",
        Stage.call(
            "create-endpoint",
            api="create_endpoint",
            translate=_create_request,
            on_success=_on_created,
            converged=_available,
        ),
        read_after_write(),
    )


# =============================================================================
# Read / Delete / List
# =============================================================================


def _on_found(found: EndpointModel | None, model: EndpointModel, state, ctx):
    if found is None:
        return StageResult.fail(OutcomeCode.NOT_FOUND, ENDPOINT_ARN_NOT_FOUND, model)
    return found, state


def read_pipeline() -> Pipeline:
    return Pipeline.of(
        "endpoint.read",
        Stage.call("find-endpoint", invoke=_find, translate=_arn_request, on_success=_on_found),
    )


def _delete_request(model: EndpointModel, ctx) -> dict[str, Any]:
    arn = parse_endpoint_arn(model.arn)
    return {"EndpointId": arn.child, "OutpostId": arn.outpost_id}


def _gone(model: EndpointModel, response, ctx: InvocationContext) -> bool:
    found = find_endpoint(ctx.client, model.arn)
    if found is None:
        return True
    if found.status and found.status.endswith("Failed"):
        raise StabilizationError(TYPE_NAME, model.arn, found.status)
    return False


def delete_pipeline() -> Pipeline:
    return Pipeline.of(
        "endpoint.delete",
        Stage.call("delete-endpoint", api="delete_endpoint", translate=_delete_request, converged=_gone),
        conclude_deleted(),
    )


def _on_listed(response, model: EndpointModel | None, state, ctx) -> StageResult:
    outpost_id = model.outpost_id if model is not None else None
    models = [from_sdk(entry, outpost_id) for entry in response.get("Endpoints") or []]
    return StageResult.done(None, state, models=models, next_token=response.get("NextToken"))


def list_pipeline() -> Pipeline:
    return Pipeline.of(
        "endpoint.list",
        Stage.call(
            "list-endpoints",
            api="list_endpoints",
            translate=lambda model, ctx: compact({"NextToken": ctx.next_token}),
            on_success=_on_listed,
        ),
    )


def build_definition() -> ResourceDefinition:
    arn_required = (RequiredFields(("arn",), ENDPOINT_ARN_REQUIRED),)
    return ResourceDefinition(
        type_name=TYPE_NAME,
        model_class=EndpointModel,
        pipelines={
            OperationKind.CREATE: create_pipeline(),
            OperationKind.READ: read_pipeline(),
            OperationKind.DELETE: delete_pipeline(),
            OperationKind.LIST: list_pipeline(),
        },
        required={
            OperationKind.CREATE: (
                RequiredFields(("outpost_id", "security_group_id", "subnet_id"), INVALID_INPUT),
            ),
            OperationKind.READ: arn_required,
            OperationKind.DELETE: arn_required,
        },
        validators={OperationKind.CREATE: (_valid_access_type,)},
        client_factory=client_factory(S3OUTPOSTS),
        description="S3 on Outposts endpoint in a customer VPC",
    )


__all__ = [
    "TYPE_NAME",
    "ACCESS_TYPES",
    "EndpointModel",
    "NetworkInterface",
    "from_sdk",
    "find_endpoint",
    "build_definition",
]
