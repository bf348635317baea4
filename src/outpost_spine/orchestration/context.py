"""Invocation Context — everything a stage may consult besides model and state.

The context is built fresh for every invocation and never persisted.  The
remote client is created lazily on first use, so an invocation that fails
validation never constructs one.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from functools import cached_property
from typing import TYPE_CHECKING, Any

from outpost_spine.core.settings import EngineSettings
from outpost_spine.orchestration.model import ResourceModel
from outpost_spine.orchestration.outcome import OutcomeCode

if TYPE_CHECKING:
    from outpost_spine.orchestration.pipeline import Pipeline


class OperationKind(str, Enum):
    CREATE = "CREATE"
    READ = "READ"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    LIST = "LIST"

    @classmethod
    def parse(cls, value: str | OperationKind) -> OperationKind:
        """Accept ``"create"``, ``"Create"`` or ``OperationKind.CREATE``."""
        if isinstance(value, OperationKind):
            return value
        return cls(value.strip().upper())


@dataclass(frozen=True)
class InvocationContext:
    """
    Per-invocation collaborators and request metadata.

    Attributes:
        resource_type: Resource type name
        operation: Operation being executed
        settings: Engine settings
        client_factory: Zero-argument callable building the remote client
        previous_model: Prior model (Update/Delete)
        next_token: Pagination token (List)
        account_id / region: Caller's account and region
        desired_tags / system_tags: Resource tags supplied by the caller
        client_request_token: Idempotency/log correlation token
        conditions: Named backend condition table for the classifier
        pipelines: Sibling pipelines of the resource (read-after-write)
    """

    resource_type: str
    operation: OperationKind
    settings: EngineSettings
    client_factory: Callable[[], Any]
    previous_model: ResourceModel | None = None
    next_token: str | None = None
    account_id: str | None = None
    region: str | None = None
    desired_tags: Mapping[str, str] = field(default_factory=dict)
    system_tags: Mapping[str, str] = field(default_factory=dict)
    client_request_token: str | None = None
    conditions: Mapping[str, OutcomeCode] | None = None
    pipelines: Mapping[OperationKind, Pipeline] = field(default_factory=dict)

    @cached_property
    def client(self) -> Any:
        return self.client_factory()

    def pipeline_for(self, operation: OperationKind) -> Pipeline | None:
        return self.pipelines.get(operation)

    def for_operation(self, operation: OperationKind) -> InvocationContext:
        """Context for a nested pipeline run sharing this invocation's client."""
        return replace(self, operation=operation, client_factory=lambda: self.client)

    @property
    def all_tags(self) -> dict[str, str]:
        """Desired tags with system tags layered on top."""
        tags = dict(self.desired_tags)
        tags.update(self.system_tags)
        return tags


__all__ = ["OperationKind", "InvocationContext"]
