"""
Shared pytest fixtures and configuration for outpost-spine tests.

This module provides:
- A recording stub client standing in for boto3 clients
- ``make_client_error`` for building botocore ``ClientError`` values
- Engine settings isolated from the environment
- Registry cleanup for test isolation
- ``run_invocation`` / ``drive`` helpers mirroring the scheduler loop

Usage:
    def test_something(stub_client, engine_settings):
        stub_client.respond("get_bucket", {"Bucket": "b"})
        ...
"""

from __future__ import annotations

import sys
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
from botocore.exceptions import ClientError

# Ensure outpost_spine package is importable
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from outpost_spine.core.settings import EngineSettings
from outpost_spine.orchestration import (
    CallbackState,
    HandlerRequest,
    OperationKind,
    OperationStatus,
    Orchestrator,
    ProgressEnvelope,
    ResourceDefinition,
    clear_registry,
)


# =============================================================================
# Remote doubles
# =============================================================================


def make_client_error(status: int, code: str, message: str = "", operation: str = "Operation") -> ClientError:
    """Build the ``ClientError`` botocore raises for an error response."""
    return ClientError(
        {
            "Error": {"Code": code, "Message": message},
            "ResponseMetadata": {"HTTPStatusCode": status},
        },
        operation,
    )


class StubClient:
    """
    Records every call and answers from a per-method script.

    A script entry is a response dict, an exception (raised), or a callable
    taking the request kwargs.  Lists are consumed one entry per call; the
    last entry repeats.
    """

    def __init__(self):
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._scripts: dict[str, list[Any]] = {}

    def respond(self, method: str, *answers: Any) -> StubClient:
        self._scripts[method] = list(answers) or [{}]
        return self

    def calls_to(self, method: str) -> list[dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == method]

    @property
    def methods_called(self) -> list[str]:
        return [name for name, _ in self.calls]

    def __getattr__(self, method: str) -> Callable[..., Any]:
        if method.startswith("_"):
            raise AttributeError(method)

        def _call(**kwargs: Any) -> Any:
            self.calls.append((method, kwargs))
            script = self._scripts.get(method)
            if script is None:
                raise AssertionError(f"unexpected call: {method}({kwargs})")
            answer = script.pop(0) if len(script) > 1 else script[0]
            if isinstance(answer, BaseException):
                raise answer
            if callable(answer):
                return answer(**kwargs)
            return answer

        return _call


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_resource_registry() -> Generator[None, None, None]:
    """Clear the resource registry before and after each test."""
    clear_registry()
    yield
    clear_registry()


@pytest.fixture
def engine_settings() -> EngineSettings:
    """Default settings, ignoring any OUTPOST_SPINE_* in the environment."""
    return EngineSettings(
        _env_file=None,
        callback_delay_seconds=20,
        propagation_cycles=4,
        stabilization_max_attempts=10,
        stabilization_delay_seconds=15,
        stabilization_exhausted="succeed",
        aws_region="us-west-2",
    )


@pytest.fixture
def stub_client() -> StubClient:
    return StubClient()


# =============================================================================
# Invocation helpers
# =============================================================================


def run_invocation(
    definition: ResourceDefinition,
    operation: OperationKind,
    model: Any,
    *,
    client: StubClient,
    settings: EngineSettings,
    state: CallbackState | None = None,
    previous: Any = None,
    next_token: str | None = None,
    account_id: str | None = "123456789012",
    region: str | None = "us-west-2",
    desired_tags: dict[str, str] | None = None,
    system_tags: dict[str, str] | None = None,
    factory_calls: list | None = None,
) -> ProgressEnvelope:
    """One scheduler invocation with ``client`` behind the client factory."""

    def _factory(ctx):
        if factory_calls is not None:
            factory_calls.append(ctx)
        return client

    request = HandlerRequest(
        operation=operation,
        desired_model=model,
        previous_model=previous,
        callback_state=state,
        next_token=next_token,
        account_id=account_id,
        region=region,
        desired_tags=desired_tags or {},
        system_tags=system_tags or {},
    )
    return Orchestrator(definition, settings=settings, client_factory=_factory).handle(request)


def drive(
    definition: ResourceDefinition,
    operation: OperationKind,
    model: Any,
    *,
    max_invocations: int = 50,
    **kwargs: Any,
) -> list[ProgressEnvelope]:
    """Re-invoke with the returned state until a terminal envelope.

    The desired model is passed unchanged on every call, as the scheduler does.
    """
    envelopes: list[ProgressEnvelope] = []
    state = kwargs.pop("state", None)
    for _ in range(max_invocations):
        envelope = run_invocation(definition, operation, model, state=state, **kwargs)
        envelopes.append(envelope)
        if envelope.status != OperationStatus.IN_PROGRESS:
            return envelopes
        state = envelope.callback_state
    raise AssertionError(f"operation did not finish within {max_invocations} invocations")
