"""Tests for the outpost-spine CLI and the single-invocation entrypoint."""

from __future__ import annotations

import json
from unittest.mock import Mock

import pytest
from typer.testing import CliRunner

from conftest import StubClient, make_client_error
from outpost_spine import __version__, handler
from outpost_spine.cli import utils
from outpost_spine.cli.app import app
from outpost_spine.orchestration import OperationStatus, OutcomeCode

runner = CliRunner()

BUCKET_ARN = "arn:aws:s3-outposts:us-west-2:123456789012:outpost/op-1/bucket/my-bucket"


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    monkeypatch.setattr(utils.console, "width", 200)


@pytest.fixture
def boto_stub(monkeypatch) -> StubClient:
    """Every boto3 client built by the resources is this stub."""
    stub = StubClient()
    monkeypatch.setattr("outpost_spine.resources.client.boto3.client", lambda **kwargs: stub)
    return stub


def write_json(tmp_path, name: str, data) -> str:
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


# ── Commands ─────────────────────────────────────────────────────────


class TestCommands:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_resources(self):
        result = runner.invoke(app, ["resources"])
        assert result.exit_code == 0
        assert "AWS::S3Outposts::Bucket" in result.output
        assert "AWS::S3Outposts::Endpoint" in result.output

    def test_config(self):
        result = runner.invoke(app, ["config"])
        assert result.exit_code == 0
        assert "propagation_cycles" in result.output


class TestInvoke:
    def test_missing_arn_fails_without_client(self, tmp_path, boto_stub):
        model = write_json(tmp_path, "model.json", {"BucketName": "my-bucket"})
        result = runner.invoke(app, ["invoke", "AWS::S3Outposts::Bucket", "delete", "--model", model])
        assert result.exit_code == 1
        assert "InvalidRequest" in result.output
        assert "Bucket ARN is required." in result.output
        assert boto_stub.calls == []

    def test_read_prints_envelope(self, tmp_path, boto_stub):
        boto_stub.respond("get_bucket", {"Bucket": "my-bucket"})
        boto_stub.respond("get_bucket_tagging", make_client_error(404, "NoSuchTagSet"))
        boto_stub.respond("get_bucket_lifecycle_configuration", make_client_error(404, "NoSuchLifecycleConfiguration"))
        model = write_json(tmp_path, "model.json", {"Arn": BUCKET_ARN})

        result = runner.invoke(
            app,
            ["invoke", "AWS::S3Outposts::Bucket", "READ", "-m", model, "--region", "us-west-2", "--json"],
        )
        assert result.exit_code == 0
        assert '"SUCCESS"' in result.output
        assert "my-bucket" in result.output

    def test_unknown_resource(self):
        result = runner.invoke(app, ["invoke", "AWS::S3Outposts::Nope", "READ"])
        assert result.exit_code == 2

    def test_unknown_operation(self):
        result = runner.invoke(app, ["invoke", "AWS::S3Outposts::Bucket", "PATCH"])
        assert result.exit_code == 2

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "model.json"
        path.write_text("{nope", encoding="utf-8")
        result = runner.invoke(app, ["invoke", "AWS::S3Outposts::Bucket", "READ", "-m", str(path)])
        assert result.exit_code == 2


# ── Entrypoint ───────────────────────────────────────────────────────


class TestEntrypoint:
    def test_unknown_type(self, engine_settings):
        envelope = handler.handle({"typeName": "AWS::S3Outposts::Nope", "action": "READ"}, settings=engine_settings)
        assert envelope.status == OperationStatus.FAILED
        assert envelope.outcome_code == OutcomeCode.INVALID_REQUEST

    def test_non_object_payload(self, engine_settings):
        envelope = handler.handle(["AWS::S3Outposts::Bucket", "READ"], settings=engine_settings)
        assert envelope.status == OperationStatus.FAILED
        assert envelope.outcome_code == OutcomeCode.INVALID_REQUEST

    def test_routes_by_type(self, engine_settings, stub_client):
        stub_client.respond("get_bucket_policy", {"Policy": '{"Version": "2012-10-17"}'})
        factory = Mock(return_value=stub_client)
        envelope = handler.handle(
            {
                "typeName": "AWS::S3Outposts::BucketPolicy",
                "action": "READ",
                "desiredResourceState": {"Bucket": BUCKET_ARN},
                "region": "us-west-2",
            },
            settings=engine_settings,
            client_factory=factory,
        )
        factory.assert_called_once()
        assert factory.call_args.args[0].region == "us-west-2"
        assert envelope.succeeded
        assert envelope.model.policy_document == {"Version": "2012-10-17"}

    def test_entrypoint_returns_wire_dict(self):
        result = handler.entrypoint({"typeName": "AWS::S3Outposts::Bucket", "action": "DELETE"})
        assert result["status"] == "FAILED"
        assert result["outcomeCode"] == "InvalidRequest"
        assert result["callbackState"] is None
