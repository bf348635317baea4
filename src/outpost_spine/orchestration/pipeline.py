"""Pipeline — an ordered list of Stages interpreted by one loop.

Manifesto:
    Each operation of a resource (Create, Read, Update, Delete, List) is a
Pipeline value.  Running it is a tiny interpreter over ``StageResult``:
skip what Callback State says is done, run the next stage, stop at the
first result that is not CONTINUE.  Nothing escapes the loop as an
exception; the scheduler always gets a Progress Envelope.

ARCHITECTURE
────────────
::

    Pipeline(name, stages=[...])
      .run(model, state, ctx) → ProgressEnvelope

      for stage in stages:
          completed in state?     → skip
          CONTINUE                → mark completed, next stage
          SUSPEND                 → IN_PROGRESS(state, delay)
          FAIL                    → FAILED(code, message)
          DONE                    → SUCCESS(model) / SUCCESS(models, token)
          raised                  → FAILED(classified)
      end of list                 → SUCCESS(model)

BEST PRACTICES
──────────────
- Stage names are resumption keys: keep them stable across releases.
- Replaying the same ``(model, state)`` must reach the same decision, so
  stages consult nothing but their inputs and the remote backend.

Related modules:
    stage.py         — the units being run
    orchestrator.py  — selects and runs the pipeline for an invocation

Tags:
    outpost-spine, orchestration, pipeline, interpreter, resumption

Doc-Types:
    api-reference
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

from outpost_spine.core.errors import PipelineDefinitionError
from outpost_spine.core.logging import get_logger
from outpost_spine.orchestration.callback_state import CallbackState
from outpost_spine.orchestration.context import InvocationContext
from outpost_spine.orchestration.model import ResourceModel
from outpost_spine.orchestration.outcome import classify_error
from outpost_spine.orchestration.progress import ProgressEnvelope
from outpost_spine.orchestration.stage import Stage
from outpost_spine.orchestration.stage_result import StageOutcome

logger = get_logger(__name__)


@dataclass(frozen=True)
class Pipeline:
    """Ordered stages for one operation of one resource type."""

    name: str
    stages: tuple[Stage, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "stages", tuple(self.stages))
        seen: set[str] = set()
        for stage in self.stages:
            if stage.name in seen:
                raise PipelineDefinitionError(self.name, f"duplicate stage name '{stage.name}'")
            seen.add(stage.name)

    @classmethod
    def of(cls, name: str, *stages: Stage) -> Pipeline:
        return cls(name=name, stages=stages)

    @property
    def stage_names(self) -> list[str]:
        return [s.name for s in self.stages]

    def extend(self, stages: Iterable[Stage]) -> Pipeline:
        return Pipeline(name=self.name, stages=(*self.stages, *stages))

    def run(
        self,
        model: ResourceModel | None,
        state: CallbackState,
        ctx: InvocationContext,
    ) -> ProgressEnvelope:
        """Run stages from the resumption point until one does not continue."""
        for stage in self.stages:
            if state.is_completed(stage.name):
                logger.debug("stage.resume_skip", pipeline=self.name, stage=stage.name)
                continue

            logger.debug("stage.start", pipeline=self.name, stage=stage.name)
            try:
                result = stage.run(model, state, ctx)
            except Exception as e:
                classification = classify_error(e, ctx.conditions)
                logger.exception(
                    "stage.exception",
                    pipeline=self.name,
                    stage=stage.name,
                    outcome_code=classification.code.value,
                )
                return ProgressEnvelope.failed(classification.code, classification.message, model)

            if result.kind == StageOutcome.CONTINUE:
                model = result.model
                state = result.state.mark_completed(stage.name)
                continue

            if result.kind == StageOutcome.SUSPEND:
                logger.info(
                    "pipeline.suspend",
                    pipeline=self.name,
                    stage=stage.name,
                    delay_seconds=result.delay_seconds,
                )
                return ProgressEnvelope.in_progress(result.state, result.delay_seconds, result.model)

            if result.kind == StageOutcome.FAIL:
                logger.info(
                    "pipeline.failed",
                    pipeline=self.name,
                    stage=stage.name,
                    outcome_code=result.outcome_code.value,
                )
                return ProgressEnvelope.failed(result.outcome_code, result.message, result.model)

            logger.debug("pipeline.done", pipeline=self.name, stage=stage.name)
            if result.models is not None:
                return ProgressEnvelope.list_success(result.models, result.next_token)
            return ProgressEnvelope.success(result.model)

        return ProgressEnvelope.success(model)


__all__ = ["Pipeline"]
