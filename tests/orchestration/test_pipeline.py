"""Tests for outpost_spine.orchestration.stage and pipeline — the stage interpreter."""

from __future__ import annotations

from typing import Optional

import pytest

from conftest import StubClient, make_client_error
from outpost_spine.core.errors import PipelineDefinitionError, ValidationError
from outpost_spine.orchestration import (
    CallbackState,
    InvocationContext,
    OperationKind,
    OperationStatus,
    OutcomeCode,
    Pipeline,
    ResourceModel,
    Stage,
    StageOutcome,
    StageResult,
    StabilizationPolicy,
    TransientCondition,
)


class ThingModel(ResourceModel):
    arn: Optional[str] = None
    name: Optional[str] = None


def make_ctx(settings, client: StubClient, operation=OperationKind.CREATE, **kwargs) -> InvocationContext:
    return InvocationContext(
        resource_type="Test::Thing",
        operation=operation,
        settings=settings,
        client_factory=lambda: client,
        **kwargs,
    )


def recording(name: str, log: list[str], result: str = "continue"):
    def _handler(model, state, ctx):
        log.append(name)
        if result == "suspend":
            return StageResult.suspend(model, state, 5)
        if result == "fail":
            return StageResult.fail(OutcomeCode.RESOURCE_CONFLICT, f"{name} failed", model)
        if result == "done":
            return StageResult.done(model, state)
        return StageResult.continue_(model, state)

    return Stage.local(name, _handler)


# ── Stage construction ───────────────────────────────────────────────


class TestStageDefinition:
    def test_name_required(self):
        with pytest.raises(ValueError):
            Stage.call("", api="get_thing")

    def test_needs_a_body(self):
        with pytest.raises(ValueError):
            Stage(name="empty")

    def test_duplicate_stage_names_rejected(self):
        log: list[str] = []
        with pytest.raises(PipelineDefinitionError):
            Pipeline.of("create", recording("a", log), recording("a", log))

    def test_stage_names(self):
        log: list[str] = []
        pipeline = Pipeline.of("create", recording("a", log), recording("b", log))
        assert pipeline.stage_names == ["a", "b"]
        assert pipeline.extend([recording("c", log)]).stage_names == ["a", "b", "c"]


# ── Remote call stages ───────────────────────────────────────────────


class TestCallStage:
    def test_translate_and_on_success(self, engine_settings, stub_client):
        stub_client.respond("create_thing", {"ThingArn": "arn:thing/1"})
        stage = Stage.call(
            "create-thing",
            api="create_thing",
            translate=lambda model, ctx: {"Name": model.name},
            on_success=lambda resp, model, state, ctx: (model.with_identity(resp["ThingArn"]), state),
        )
        result = stage.run(ThingModel(name="t"), CallbackState.fresh(), make_ctx(engine_settings, stub_client))
        assert result.kind == StageOutcome.CONTINUE
        assert result.model.arn == "arn:thing/1"
        assert stub_client.calls == [("create_thing", {"Name": "t"})]

    def test_guard_skips_call(self, engine_settings, stub_client):
        stage = Stage.call("tag", api="tag_thing", when=lambda model, ctx: False)
        result = stage.run(ThingModel(), CallbackState.fresh(), make_ctx(engine_settings, stub_client))
        assert result.kind == StageOutcome.CONTINUE
        assert stub_client.calls == []

    def test_custom_invoke(self, engine_settings, stub_client):
        seen = []
        stage = Stage.call("find", invoke=lambda client, req: seen.append((client, req)) or {"ok": True})
        stage.run(ThingModel(), CallbackState.fresh(), make_ctx(engine_settings, stub_client))
        assert seen == [(stub_client, {})]

    def test_transient_condition_suspends(self, engine_settings, stub_client):
        stub_client.respond("delete_thing", make_client_error(409, "InvalidThingState", "busy"))
        stage = Stage.call(
            "delete",
            api="delete_thing",
            transient=[TransientCondition(409, "InvalidThingState")],
        )
        state = CallbackState.fresh().mark_completed("earlier")
        result = stage.run(ThingModel(), state, make_ctx(engine_settings, stub_client))
        assert result.kind == StageOutcome.SUSPEND
        assert result.delay_seconds == engine_settings.callback_delay_seconds
        assert result.state == state

    def test_on_error_can_recover(self, engine_settings, stub_client):
        stub_client.respond("get_tags", make_client_error(404, "NoSuchTagSet"))
        stage = Stage.call(
            "get-tags",
            api="get_tags",
            on_error=lambda err, model, state, ctx: StageResult.continue_(model, state),
        )
        result = stage.run(ThingModel(), CallbackState.fresh(), make_ctx(engine_settings, stub_client))
        assert result.kind == StageOutcome.CONTINUE

    def test_on_error_none_defers_to_classifier(self, engine_settings, stub_client):
        stub_client.respond("get_tags", make_client_error(403, "AccessDenied", "no"))
        stage = Stage.call("get-tags", api="get_tags", on_error=lambda *args: None)
        result = stage.run(ThingModel(), CallbackState.fresh(), make_ctx(engine_settings, stub_client))
        assert result.kind == StageOutcome.FAIL
        assert result.outcome_code == OutcomeCode.ACCESS_DENIED
        assert result.message == "no"

    def test_translate_errors_are_classified(self, engine_settings, stub_client):
        def _translate(model, ctx):
            raise ValidationError("Name is required.")

        stage = Stage.call("create", api="create_thing", translate=_translate)
        result = stage.run(ThingModel(), CallbackState.fresh(), make_ctx(engine_settings, stub_client))
        assert result.outcome_code == OutcomeCode.INVALID_REQUEST
        assert stub_client.calls == []


# ── Stabilizing stages ───────────────────────────────────────────────


class TestConvergedStage:
    def _stage(self, statuses: list[str]):
        probe = iter(statuses)
        return Stage.call(
            "create",
            api="create_thing",
            converged=lambda model, resp, ctx: next(probe) == "Available",
            stabilization=StabilizationPolicy(max_attempts=5, delay_seconds=3),
        )

    def test_call_issued_once_across_invocations(self, engine_settings, stub_client):
        stub_client.respond("create_thing", {})
        stage = self._stage(["Pending", "Pending", "Available"])
        ctx = make_ctx(engine_settings, stub_client)
        state = CallbackState.fresh()

        first = stage.run(ThingModel(), state, ctx)
        assert first.kind == StageOutcome.SUSPEND
        assert first.delay_seconds == 3
        second = stage.run(ThingModel(), first.state, ctx)
        assert second.kind == StageOutcome.SUSPEND
        third = stage.run(ThingModel(), second.state, ctx)
        assert third.kind == StageOutcome.CONTINUE
        assert third.state.stabilized is True
        assert stub_client.methods_called == ["create_thing"]

    def test_predicate_error_is_classified(self, engine_settings, stub_client):
        stub_client.respond("create_thing", {})

        def _converged(model, resp, ctx):
            raise make_client_error(500, "InternalError", "oops")

        stage = Stage.call("create", api="create_thing", converged=_converged)
        result = stage.run(ThingModel(), CallbackState.fresh(), make_ctx(engine_settings, stub_client))
        assert result.outcome_code == OutcomeCode.SERVICE_INTERNAL_ERROR


# ── Pipeline ─────────────────────────────────────────────────────────


class TestPipelineRun:
    def test_all_continue_is_success(self, engine_settings, stub_client):
        log: list[str] = []
        pipeline = Pipeline.of("read", recording("a", log), recording("b", log))
        envelope = pipeline.run(ThingModel(name="t"), CallbackState.fresh(), make_ctx(engine_settings, stub_client))
        assert envelope.status == OperationStatus.SUCCESS
        assert envelope.model.name == "t"
        assert log == ["a", "b"]

    def test_suspend_records_completed_stages(self, engine_settings, stub_client):
        log: list[str] = []
        pipeline = Pipeline.of("create", recording("a", log), recording("wait", log, "suspend"), recording("c", log))
        envelope = pipeline.run(ThingModel(), CallbackState.fresh(), make_ctx(engine_settings, stub_client))
        assert envelope.status == OperationStatus.IN_PROGRESS
        assert envelope.requested_delay_seconds == 5
        assert envelope.callback_state.completed_stages == ("a",)
        assert log == ["a", "wait"]

    def test_resume_skips_completed(self, engine_settings, stub_client):
        log: list[str] = []
        pipeline = Pipeline.of("create", recording("a", log), recording("b", log), recording("c", log))
        state = CallbackState.fresh().mark_completed("a").mark_completed("b")
        envelope = pipeline.run(ThingModel(), state, make_ctx(engine_settings, stub_client))
        assert envelope.status == OperationStatus.SUCCESS
        assert log == ["c"]

    def test_fail_short_circuits(self, engine_settings, stub_client):
        log: list[str] = []
        pipeline = Pipeline.of("update", recording("a", log, "fail"), recording("b", log))
        envelope = pipeline.run(ThingModel(), CallbackState.fresh(), make_ctx(engine_settings, stub_client))
        assert envelope.status == OperationStatus.FAILED
        assert envelope.outcome_code == OutcomeCode.RESOURCE_CONFLICT
        assert envelope.message == "a failed"
        assert envelope.callback_state is None
        assert log == ["a"]

    def test_done_stops_early(self, engine_settings, stub_client):
        log: list[str] = []
        pipeline = Pipeline.of("delete", recording("a", log, "done"), recording("b", log))
        envelope = pipeline.run(ThingModel(), CallbackState.fresh(), make_ctx(engine_settings, stub_client))
        assert envelope.status == OperationStatus.SUCCESS
        assert log == ["a"]

    def test_done_with_models_is_list_success(self, engine_settings, stub_client):
        def _list(model, state, ctx):
            return StageResult.done(None, state, models=[ThingModel(arn="x")], next_token="n")

        envelope = Pipeline.of("list", Stage.local("list", _list)).run(
            None, CallbackState.fresh(), make_ctx(engine_settings, stub_client)
        )
        assert envelope.models == [ThingModel(arn="x")]
        assert envelope.next_token == "n"

    @pytest.mark.parametrize(
        "error, expected",
        [
            (ValidationError("bad"), OutcomeCode.INVALID_REQUEST),
            (KeyError("Bucket"), OutcomeCode.INTERNAL_FAILURE),
            (make_client_error(404, "NoSuchThing"), OutcomeCode.NOT_FOUND),
        ],
    )
    def test_escaping_exception_is_classified(self, engine_settings, stub_client, error, expected):
        def _boom(model, state, ctx):
            raise error

        envelope = Pipeline.of("read", Stage.local("boom", _boom)).run(
            ThingModel(), CallbackState.fresh(), make_ctx(engine_settings, stub_client)
        )
        assert envelope.status == OperationStatus.FAILED
        assert envelope.outcome_code == expected

    def test_replay_is_deterministic(self, engine_settings):
        def build():
            client = StubClient().respond("create_thing", {"ThingArn": "arn:thing/1"})
            pipeline = Pipeline.of(
                "create",
                Stage.call(
                    "create",
                    api="create_thing",
                    on_success=lambda resp, model, state, ctx: (
                        model.with_identity(resp["ThingArn"]),
                        state.with_identity(resp["ThingArn"]),
                    ),
                ),
                Stage.local("wait", lambda model, state, ctx: StageResult.suspend(model, state, 9)),
            )
            return pipeline, client

        state = CallbackState.fresh()
        first_pipeline, first_client = build()
        second_pipeline, second_client = build()
        first = first_pipeline.run(ThingModel(name="t"), state, make_ctx(engine_settings, first_client))
        second = second_pipeline.run(ThingModel(name="t"), state, make_ctx(engine_settings, second_client))
        assert first.to_dict() == second.to_dict()
        assert first.callback_state.identity == "arn:thing/1"

    def test_each_stabilizing_stage_gets_full_budget(self, engine_settings, stub_client):
        stub_client.respond("create_thing", {}).respond("attach_thing", {})

        def never(model, resp, ctx):
            return False

        policy = StabilizationPolicy(max_attempts=2, delay_seconds=1)
        pipeline = Pipeline.of(
            "create",
            Stage.call("create", api="create_thing", converged=never, stabilization=policy),
            Stage.call("attach", api="attach_thing", converged=never, stabilization=policy),
        )
        ctx = make_ctx(engine_settings, stub_client)

        state, suspends = CallbackState.fresh(), 0
        while True:
            envelope = pipeline.run(ThingModel(), state, ctx)
            if envelope.status != OperationStatus.IN_PROGRESS:
                break
            suspends += 1
            state = envelope.callback_state

        assert envelope.status == OperationStatus.SUCCESS
        assert suspends == 4
        assert stub_client.methods_called == ["create_thing", "attach_thing"]
