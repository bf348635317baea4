"""Stage Result — the tagged value a Stage hands back to the Pipeline.

Manifesto:
    The Pipeline is a small interpreter, not a try/except ladder.  Every
stage returns exactly one of four shapes and the loop decides what to do
by looking at the tag alone.

ARCHITECTURE
────────────
::

    StageResult
      ├── .continue_(model, state)              → run next stage
      ├── .suspend(model, state, delay)         → IN_PROGRESS, stop
      ├── .fail(code, message, model)           → FAILED, stop
      └── .done(model, state)                   → SUCCESS, stop early

BEST PRACTICES
──────────────
- Build results with the factories; never construct directly.
- ``done`` is for stages that know the operation is finished before the
  end of the list (read-after-write, verified absence).

Related modules:
    stage.py     — produces StageResults
    pipeline.py  — consumes them

Tags:
    outpost-spine, orchestration, stage-result, tagged-union

Doc-Types:
    api-reference
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel

from outpost_spine.orchestration.callback_state import CallbackState
from outpost_spine.orchestration.outcome import OutcomeCode


class StageOutcome(str, Enum):
    CONTINUE = "CONTINUE"
    SUSPEND = "SUSPEND"
    FAIL = "FAIL"
    DONE = "DONE"


@dataclass(frozen=True)
class StageResult:
    """
    Result of running one Stage.

    Attributes:
        kind: Which branch of the union this is
        model: Model after the stage (may carry a newly assigned identity)
        state: Callback state after the stage
        delay_seconds: Requested delay (SUSPEND only)
        outcome_code: Classified failure (FAIL only)
        message: Failure message (FAIL only)
        models: Listed models (DONE from a list stage)
        next_token: Pagination token (DONE from a list stage)
    """

    kind: StageOutcome
    model: BaseModel | None
    state: CallbackState
    delay_seconds: int = 0
    outcome_code: OutcomeCode | None = None
    message: str | None = None
    models: list[BaseModel] | None = None
    next_token: str | None = None

    # =========================================================================
    # Factories
    # =========================================================================

    @classmethod
    def continue_(cls, model: BaseModel | None, state: CallbackState) -> StageResult:
        """Proceed to the next stage.  (``continue`` is a keyword.)"""
        return cls(kind=StageOutcome.CONTINUE, model=model, state=state)

    @classmethod
    def suspend(
        cls,
        model: BaseModel | None,
        state: CallbackState,
        delay_seconds: int,
    ) -> StageResult:
        if delay_seconds <= 0:
            raise ValueError(f"Suspend requires a positive delay, got {delay_seconds}")
        return cls(
            kind=StageOutcome.SUSPEND,
            model=model,
            state=state,
            delay_seconds=delay_seconds,
        )

    @classmethod
    def fail(
        cls,
        code: OutcomeCode,
        message: str | None,
        model: BaseModel | None = None,
        state: CallbackState | None = None,
    ) -> StageResult:
        return cls(
            kind=StageOutcome.FAIL,
            model=model,
            state=state or CallbackState.fresh(),
            outcome_code=code,
            message=message,
        )

    @classmethod
    def done(
        cls,
        model: BaseModel | None,
        state: CallbackState,
        *,
        models: list[BaseModel] | None = None,
        next_token: str | None = None,
    ) -> StageResult:
        return cls(
            kind=StageOutcome.DONE,
            model=model,
            state=state,
            models=models,
            next_token=next_token,
        )

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def is_continue(self) -> bool:
        return self.kind == StageOutcome.CONTINUE

    @property
    def is_terminal(self) -> bool:
        return self.kind in (StageOutcome.FAIL, StageOutcome.DONE)

    def __repr__(self) -> str:
        detail = ""
        if self.kind == StageOutcome.SUSPEND:
            detail = f", delay={self.delay_seconds}"
        elif self.kind == StageOutcome.FAIL:
            detail = f", code={self.outcome_code.value if self.outcome_code else None}"
        return f"StageResult({self.kind.value}{detail})"


__all__ = ["StageOutcome", "StageResult"]
