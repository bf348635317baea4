"""Convergence policies — bounded waiting expressed as Suspend results.

Manifesto:
    A freshly created Outposts object is not immediately readable in its
final form, and a deleted one does not vanish at once.  The engine never
sleeps; it asks the scheduler to call back later.  The two policies here
decide when to ask and when to stop asking, using only counters held in
Callback State.

ARCHITECTURE
────────────
::

    StabilizationPolicy(max_attempts=10, delay_seconds=15, on_exhausted=SUCCEED)
      .evaluate(converged, model, state)
          converged                 → stabilized=True, count reset, CONTINUE
          count >= max_attempts     → SUCCEED: CONTINUE (count reset)  |  FAIL: FAIL
          otherwise                 → count + 1, SUSPEND(delay)

    PropagationPolicy(cycles=4, delay_seconds=20)
      .evaluate(model, state)
          propagated                → CONTINUE
          otherwise                 → count + 1, propagated = count >= cycles,
                                      SUSPEND(delay)

BEST PRACTICES
──────────────
- Build policies from ``EngineSettings`` with ``from_settings``.
- A never-converging resource takes exactly ``max_attempts + 1``
  invocations to leave the stabilizing stage.

Related modules:
    stage.py      — applies StabilizationPolicy after a remote call
    patterns.py   — wraps PropagationPolicy as a stage

Tags:
    outpost-spine, orchestration, stabilization, propagation, convergence

Doc-Types:
    api-reference
"""

from __future__ import annotations

from dataclasses import dataclass

from outpost_spine.core.errors import StabilizationError
from outpost_spine.core.logging import get_logger
from outpost_spine.core.settings import EngineSettings, ExhaustionAction
from outpost_spine.orchestration.callback_state import CallbackState
from outpost_spine.orchestration.model import ResourceModel
from outpost_spine.orchestration.outcome import OutcomeCode
from outpost_spine.orchestration.stage_result import StageResult

logger = get_logger(__name__)


@dataclass(frozen=True)
class StabilizationPolicy:
    """Bounded wait for a mutated resource to reach its expected state."""

    max_attempts: int = 10
    delay_seconds: int = 15
    on_exhausted: ExhaustionAction = ExhaustionAction.SUCCEED

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> StabilizationPolicy:
        return cls(
            max_attempts=settings.stabilization_max_attempts,
            delay_seconds=settings.stabilization_delay_seconds,
            on_exhausted=settings.stabilization_exhausted,
        )

    def evaluate(
        self,
        converged: bool,
        model: ResourceModel | None,
        state: CallbackState,
        *,
        resource_type: str = "",
    ) -> StageResult:
        count = state.stabilization_count

        if converged:
            return StageResult.continue_(
                model, state.with_stabilization(stabilization_count=0, stabilized=True)
            )

        if count >= self.max_attempts:
            identity = model.identity if model is not None else None
            if self.on_exhausted == ExhaustionAction.SUCCEED:
                logger.warning(
                    "stabilization.exhausted",
                    resource_type=resource_type,
                    identity=identity,
                    attempts=count,
                    action="succeed",
                )
                return StageResult.continue_(
                    model, state.with_stabilization(stabilization_count=0, stabilized=True)
                )
            error = StabilizationError(resource_type, identity)
            logger.error("stabilization.exhausted", attempts=count, action="fail", **error.to_dict())
            return StageResult.fail(OutcomeCode.GENERAL_SERVICE_EXCEPTION, error.message, model)

        logger.info("stabilization.wait", resource_type=resource_type, attempt=count + 1)
        return StageResult.suspend(
            model,
            state.with_stabilization(stabilization_count=count + 1, stabilized=False),
            self.delay_seconds,
        )


@dataclass(frozen=True)
class PropagationPolicy:
    """Fixed number of forced delays before dependent stages may run."""

    cycles: int = 4
    delay_seconds: int = 20

    @classmethod
    def from_settings(cls, settings: EngineSettings) -> PropagationPolicy:
        return cls(cycles=settings.propagation_cycles, delay_seconds=settings.callback_delay_seconds)

    def evaluate(self, model: ResourceModel | None, state: CallbackState) -> StageResult:
        if state.propagated or self.cycles == 0:
            return StageResult.continue_(model, state)

        count = state.forced_delay_count + 1
        logger.info("propagation.wait", forced_delay_count=count, cycles=self.cycles)
        return StageResult.suspend(
            model,
            state.with_propagation(forced_delay_count=count, propagated=count >= self.cycles),
            self.delay_seconds,
        )


__all__ = ["StabilizationPolicy", "PropagationPolicy"]
