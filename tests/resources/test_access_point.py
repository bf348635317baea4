"""Tests for outpost_spine.resources.access_point — AWS::S3Outposts::AccessPoint."""

from __future__ import annotations

import json

import pytest

from conftest import drive, make_client_error, run_invocation
from outpost_spine.orchestration import OperationKind, OperationStatus, OutcomeCode
from outpost_spine.resources.access_point import AccessPointModel, VpcConfiguration, build_definition

ACCOUNT = "123456789012"
BUCKET = f"arn:aws:s3-outposts:us-west-2:{ACCOUNT}:outpost/op-1/bucket/my-bucket"
AP_ARN = f"arn:aws:s3-outposts:us-west-2:{ACCOUNT}:outpost/op-1/accesspoint/my-ap"
AP_EC2_ARN = f"arn:aws:s3-outposts:us-west-2:{ACCOUNT}:outpost/ec2/accesspoint/my-ap"
TARGET = {"AccountId": ACCOUNT, "Name": AP_ARN}
BUSY_MESSAGE = "Access Point is not in a state where it can be deleted"
POLICY = {"Version": "2012-10-17", "Statement": []}


@pytest.fixture
def definition():
    return build_definition()


def script_read(client, policy=None):
    client.respond(
        "get_access_point",
        {"Name": "my-ap", "Bucket": "my-bucket", "VpcConfiguration": {"VpcId": "vpc-1"}},
    )
    if policy is None:
        client.respond("get_access_point_policy", make_client_error(404, "NoSuchAccessPointPolicy"))
    else:
        client.respond("get_access_point_policy", {"Policy": json.dumps(policy)})


# ── Create ───────────────────────────────────────────────────────────


class TestCreate:
    def test_create_waits_then_attaches_policy(self, definition, stub_client, engine_settings):
        stub_client.respond("create_access_point", {"AccessPointArn": AP_EC2_ARN})
        stub_client.respond("put_access_point_policy", {})
        script_read(stub_client, policy=POLICY)

        model = AccessPointModel(
            bucket=BUCKET, name="my-ap", vpc_configuration=VpcConfiguration(vpc_id="vpc-1"), policy=POLICY
        )
        envelopes = drive(definition, OperationKind.CREATE, model, client=stub_client, settings=engine_settings)

        assert len(envelopes) == 5
        assert envelopes[-1].status == OperationStatus.SUCCESS
        final = envelopes[-1].model
        assert final.arn == AP_ARN
        assert final.bucket == BUCKET
        assert final.vpc_configuration == VpcConfiguration(vpc_id="vpc-1")
        assert final.policy == POLICY

        assert stub_client.calls_to("create_access_point") == [
            {"AccountId": ACCOUNT, "Name": "my-ap", "Bucket": BUCKET, "VpcConfiguration": {"VpcId": "vpc-1"}}
        ]
        assert stub_client.calls_to("put_access_point_policy") == [{**TARGET, "Policy": json.dumps(POLICY)}]

    def test_create_without_arn_is_service_fault(self, definition, stub_client, engine_settings):
        stub_client.respond("create_access_point", {})
        model = AccessPointModel(bucket=BUCKET, name="my-ap", vpc_configuration=VpcConfiguration(vpc_id="vpc-1"))
        envelopes = drive(definition, OperationKind.CREATE, model, client=stub_client, settings=engine_settings)

        assert [e.status for e in envelopes] == [OperationStatus.FAILED]
        assert envelopes[0].outcome_code == OutcomeCode.GENERAL_SERVICE_EXCEPTION
        assert envelopes[0].message == "CreateAccessPoint did not return an access point ARN."
        assert stub_client.methods_called == ["create_access_point"]

    @pytest.mark.parametrize(
        "model, message",
        [
            (AccessPointModel(name="my-ap", vpc_configuration=VpcConfiguration(vpc_id="v")), "Bucket ARN is required."),
            (AccessPointModel(bucket=BUCKET, vpc_configuration=VpcConfiguration(vpc_id="v")),
             "AccessPoint Name is required."),
            (AccessPointModel(bucket=BUCKET, name="my-ap"), "VpcConfiguration is required."),
            (AccessPointModel(bucket=BUCKET, name="my-ap", vpc_configuration=VpcConfiguration()),
             "VpcConfiguration is required."),
        ],
    )
    def test_required_fields(self, definition, stub_client, engine_settings, model, message):
        envelope = run_invocation(definition, OperationKind.CREATE, model, client=stub_client, settings=engine_settings)
        assert envelope.outcome_code == OutcomeCode.INVALID_REQUEST
        assert envelope.message == message
        assert stub_client.calls == []


# ── Read / Update ────────────────────────────────────────────────────


class TestReadUpdate:
    def test_read_without_policy(self, definition, stub_client, engine_settings):
        script_read(stub_client)
        envelope = run_invocation(
            definition, OperationKind.READ, AccessPointModel(arn=AP_ARN), client=stub_client, settings=engine_settings
        )
        assert envelope.model == AccessPointModel(
            arn=AP_ARN, bucket=BUCKET, name="my-ap", vpc_configuration=VpcConfiguration(vpc_id="vpc-1")
        )

    def test_policy_removed_on_update(self, definition, stub_client, engine_settings):
        stub_client.respond("delete_access_point_policy", {})
        script_read(stub_client)
        envelope = run_invocation(
            definition,
            OperationKind.UPDATE,
            AccessPointModel(arn=AP_ARN),
            previous=AccessPointModel(arn=AP_ARN, policy=POLICY),
            client=stub_client,
            settings=engine_settings,
        )
        assert envelope.succeeded
        assert stub_client.calls_to("delete_access_point_policy") == [TARGET]
        assert "put_access_point_policy" not in stub_client.methods_called

    def test_replayed_policy_removal_already_done(self, definition, stub_client, engine_settings):
        stub_client.respond("delete_access_point_policy", make_client_error(404, "NoSuchAccessPointPolicy", "gone"))
        script_read(stub_client)
        envelope = run_invocation(
            definition,
            OperationKind.UPDATE,
            AccessPointModel(arn=AP_ARN),
            previous=AccessPointModel(arn=AP_ARN, policy=POLICY),
            client=stub_client,
            settings=engine_settings,
        )
        assert envelope.status == OperationStatus.SUCCESS
        assert envelope.model.policy is None
        assert stub_client.calls_to("delete_access_point_policy") == [TARGET]


# ── Delete ───────────────────────────────────────────────────────────


class TestDelete:
    def test_busy_access_point_suspends(self, definition, stub_client, engine_settings):
        stub_client.respond("delete_access_point", make_client_error(400, "InvalidRequest", BUSY_MESSAGE))
        envelope = run_invocation(
            definition, OperationKind.DELETE, AccessPointModel(arn=AP_ARN), client=stub_client, settings=engine_settings
        )
        assert envelope.status == OperationStatus.IN_PROGRESS
        assert envelope.requested_delay_seconds == 20

    def test_other_invalid_request_fails(self, definition, stub_client, engine_settings):
        stub_client.respond("delete_access_point", make_client_error(400, "InvalidRequest", "Something else"))
        envelope = run_invocation(
            definition, OperationKind.DELETE, AccessPointModel(arn=AP_ARN), client=stub_client, settings=engine_settings
        )
        assert envelope.status == OperationStatus.FAILED
        assert envelope.outcome_code == OutcomeCode.INVALID_REQUEST
        assert envelope.message == "Something else"

    def test_delete_settles_before_success(self, definition, stub_client, engine_settings):
        stub_client.respond("delete_access_point", make_client_error(400, "InvalidRequest", BUSY_MESSAGE), {})
        stub_client.respond("get_access_point", make_client_error(404, "NoSuchAccessPoint"))
        envelopes = drive(
            definition, OperationKind.DELETE, AccessPointModel(arn=AP_ARN), client=stub_client, settings=engine_settings
        )
        assert [e.status for e in envelopes] == [OperationStatus.IN_PROGRESS] * 5 + [OperationStatus.SUCCESS]
        assert envelopes[-1].model is None
        assert len(stub_client.calls_to("delete_access_point")) == 2
        assert len(stub_client.calls_to("get_access_point")) == 1

    def test_missing_arn(self, definition, stub_client, engine_settings):
        envelope = run_invocation(
            definition, OperationKind.DELETE, AccessPointModel(name="my-ap"), client=stub_client, settings=engine_settings
        )
        assert envelope.message == "AccessPoint ARN is required."


# ── List ─────────────────────────────────────────────────────────────


class TestList:
    def test_list_one_bucket(self, definition, stub_client, engine_settings):
        stub_client.respond(
            "list_access_points",
            {
                "AccessPointList": [
                    {"Name": "my-ap", "AccessPointArn": AP_EC2_ARN, "VpcConfiguration": {"VpcId": "vpc-1"}}
                ]
            },
        )
        envelope = run_invocation(
            definition, OperationKind.LIST, AccessPointModel(bucket=BUCKET), client=stub_client, settings=engine_settings
        )
        assert envelope.models == [
            AccessPointModel(arn=AP_ARN, bucket=BUCKET, name="my-ap", vpc_configuration=VpcConfiguration(vpc_id="vpc-1"))
        ]
        assert envelope.next_token is None
        assert stub_client.calls_to("list_access_points") == [{"AccountId": ACCOUNT, "Bucket": BUCKET}]

    def test_list_requires_bucket(self, definition, stub_client, engine_settings):
        envelope = run_invocation(
            definition, OperationKind.LIST, AccessPointModel(), client=stub_client, settings=engine_settings
        )
        assert envelope.message == "Bucket ARN is required."
