"""Callback State — the only memory an operation has between invocations.

Manifesto:
    Handlers are invoked statelessly.  Anything an operation needs to know
on its next invocation (how many forced delays it has served, whether the
resource has converged, which stages already ran) must be written into this
record and handed back by the scheduler.  Nothing else survives.

ARCHITECTURE
────────────
::

    CallbackState (frozen)
      ├── propagated / forced_delay_count          ← PropagationPolicy
      ├── stabilized / stabilization_count         ← StabilizationPolicy
      └── extra
            ├── "completedStages": [...]           ← Pipeline resumption
            ├── "identity": "arn:..."              ← assigned identity
            └── "<stage>:invoked": true            ← mutating call issued

    .fresh()              → all zero / false
    .with_*(...)          → copy with changes (never mutate)
    .to_dict/.from_dict   → camelCase wire shape

BEST PRACTICES
──────────────
- Always return a new state from a stage; treat the old one as a snapshot.
- Keep ``extra`` JSON-serializable.

Related modules:
    pipeline.py     — reads/writes completed stages
    policies.py     — owns the counters

Tags:
    outpost-spine, orchestration, callback-state, resumption, immutable

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

COMPLETED_STAGES_KEY = "completedStages"
IDENTITY_KEY = "identity"


def _freeze(values: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(values or {}))


@dataclass(frozen=True)
class CallbackState:
    """Cross-invocation progress of one logical operation."""

    propagated: bool = False
    forced_delay_count: int = 0
    stabilized: bool = False
    stabilization_count: int = 0
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "extra", _freeze(self.extra))

    @classmethod
    def fresh(cls) -> CallbackState:
        """State for the first invocation of an operation."""
        return cls()

    # =========================================================================
    # Copy-with-changes
    # =========================================================================

    def with_propagation(self, *, forced_delay_count: int, propagated: bool) -> CallbackState:
        return replace(self, forced_delay_count=forced_delay_count, propagated=propagated)

    def with_stabilization(self, *, stabilization_count: int, stabilized: bool) -> CallbackState:
        return replace(self, stabilization_count=stabilization_count, stabilized=stabilized)

    def with_extra(self, **updates: Any) -> CallbackState:
        """Return a copy with keys merged into ``extra``."""
        merged = dict(self.extra)
        merged.update(updates)
        return replace(self, extra=merged)

    def with_flag(self, key: str, value: Any = True) -> CallbackState:
        return self.with_extra(**{key: value})

    def flag(self, key: str) -> Any:
        return self.extra.get(key)

    # =========================================================================
    # Resumption bookkeeping
    # =========================================================================

    @property
    def completed_stages(self) -> tuple[str, ...]:
        return tuple(self.extra.get(COMPLETED_STAGES_KEY, ()))

    def is_completed(self, stage_name: str) -> bool:
        return stage_name in self.completed_stages

    def mark_completed(self, stage_name: str) -> CallbackState:
        if self.is_completed(stage_name):
            return self
        return self.with_extra(**{COMPLETED_STAGES_KEY: [*self.completed_stages, stage_name]})

    @property
    def identity(self) -> str | None:
        return self.extra.get(IDENTITY_KEY)

    def with_identity(self, identity: str | None) -> CallbackState:
        if identity is None or identity == self.identity:
            return self
        return self.with_extra(**{IDENTITY_KEY: identity})

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase wire shape."""
        result: dict[str, Any] = {
            "propagated": self.propagated,
            "forcedDelayCount": self.forced_delay_count,
            "stabilized": self.stabilized,
            "stabilizationCount": self.stabilization_count,
        }
        if self.extra:
            result["extra"] = {
                key: list(value) if isinstance(value, tuple) else value
                for key, value in self.extra.items()
            }
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> CallbackState:
        """Rebuild from a wire payload; ``None`` or ``{}`` yields a fresh state."""
        if not data:
            return cls.fresh()
        return cls(
            propagated=bool(data.get("propagated", False)),
            forced_delay_count=int(data.get("forcedDelayCount", 0)),
            stabilized=bool(data.get("stabilized", False)),
            stabilization_count=int(data.get("stabilizationCount", 0)),
            extra=dict(data.get("extra") or {}),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CallbackState):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __hash__(self) -> int:
        return hash((self.propagated, self.forced_delay_count, self.stabilized, self.stabilization_count))


__all__ = ["CallbackState", "COMPLETED_STAGES_KEY", "IDENTITY_KEY"]
