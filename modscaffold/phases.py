"""Pure phase state machine for one generation run.

The orchestrator in :mod:`modscaffold.pipeline` owns a :class:`PhaseState`
and only ever changes it through :func:`advance`.  :func:`plan` tells it
which side-effecting action to run next.  Neither function touches the file
system, so every transition can be tested without one::

    SCAFFOLD_PENDING --types_written--> TYPES_GENERATED
    TYPES_GENERATED --review_requested--> AWAITING_REVIEW
    AWAITING_REVIEW --review_confirmed--> AWAITING_REVIEW (confirmed)
    AWAITING_REVIEW --review_declined--> CANCELLED
    TYPES_GENERATED | AWAITING_REVIEW (confirmed) --code_written--> CODE_GENERATED
    CODE_GENERATED --tests_written--> TESTS_GENERATED
    TESTS_GENERATED --finished--> COMPLETE
    any non-terminal --failed--> FAILED
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class GenerationPhase(str, Enum):
    SCAFFOLD_PENDING = "scaffold_pending"
    TYPES_GENERATED = "types_generated"
    AWAITING_REVIEW = "awaiting_review"
    CODE_GENERATED = "code_generated"
    TESTS_GENERATED = "tests_generated"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_PHASES


TERMINAL_PHASES = frozenset(
    {GenerationPhase.COMPLETE, GenerationPhase.CANCELLED, GenerationPhase.FAILED}
)


class PhaseEvent(str, Enum):
    TYPES_WRITTEN = "types_written"
    REVIEW_REQUESTED = "review_requested"
    REVIEW_CONFIRMED = "review_confirmed"
    REVIEW_DECLINED = "review_declined"
    CODE_WRITTEN = "code_written"
    TESTS_WRITTEN = "tests_written"
    FINISHED = "finished"
    FAILED = "failed"


class Action(str, Enum):
    """Side-effecting step the orchestrator runs for the current state."""
    WRITE_TYPES = "write_types"
    REQUEST_REVIEW = "request_review"
    PROMPT_REVIEW = "prompt_review"
    WRITE_CODE = "write_code"
    WRITE_TESTS = "write_tests"
    FINISH = "finish"


# The phase an action is working towards; errors raised by it are tagged with it.
ACTION_PHASES: dict[Action, GenerationPhase] = {
    Action.WRITE_TYPES: GenerationPhase.TYPES_GENERATED,
    Action.REQUEST_REVIEW: GenerationPhase.AWAITING_REVIEW,
    Action.PROMPT_REVIEW: GenerationPhase.AWAITING_REVIEW,
    Action.WRITE_CODE: GenerationPhase.CODE_GENERATED,
    Action.WRITE_TESTS: GenerationPhase.TESTS_GENERATED,
    Action.FINISH: GenerationPhase.COMPLETE,
}


class InvalidTransitionError(RuntimeError):
    """An event was applied to a phase that does not accept it."""

    def __init__(self, phase: GenerationPhase, event: PhaseEvent) -> None:
        self.phase = phase
        self.event = event
        super().__init__(f"Event {event.value!r} is not valid in phase {phase.value!r}")


class PhaseState(BaseModel):
    """Immutable snapshot of where one run is."""
    model_config = ConfigDict(frozen=True)

    phase: GenerationPhase = GenerationPhase.SCAFFOLD_PENDING
    review_confirmed: bool = False
    failed_phase: Optional[GenerationPhase] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.phase.is_terminal


_TRANSITIONS: dict[tuple[GenerationPhase, PhaseEvent], GenerationPhase] = {
    (GenerationPhase.SCAFFOLD_PENDING, PhaseEvent.TYPES_WRITTEN): GenerationPhase.TYPES_GENERATED,
    (GenerationPhase.TYPES_GENERATED, PhaseEvent.REVIEW_REQUESTED): GenerationPhase.AWAITING_REVIEW,
    (GenerationPhase.AWAITING_REVIEW, PhaseEvent.REVIEW_CONFIRMED): GenerationPhase.AWAITING_REVIEW,
    (GenerationPhase.AWAITING_REVIEW, PhaseEvent.REVIEW_DECLINED): GenerationPhase.CANCELLED,
    (GenerationPhase.TYPES_GENERATED, PhaseEvent.CODE_WRITTEN): GenerationPhase.CODE_GENERATED,
    (GenerationPhase.AWAITING_REVIEW, PhaseEvent.CODE_WRITTEN): GenerationPhase.CODE_GENERATED,
    (GenerationPhase.CODE_GENERATED, PhaseEvent.TESTS_WRITTEN): GenerationPhase.TESTS_GENERATED,
    (GenerationPhase.TESTS_GENERATED, PhaseEvent.FINISHED): GenerationPhase.COMPLETE,
}


def advance(
    state: PhaseState,
    event: PhaseEvent,
    *,
    failed_phase: Optional[GenerationPhase] = None,
    error: Optional[str] = None,
) -> PhaseState:
    """Apply *event* to *state* and return the new state.

    Raises:
        InvalidTransitionError: for any event the current phase does not
            accept, including every event on a terminal phase.
    """
    if state.is_terminal:
        raise InvalidTransitionError(state.phase, event)

    if event is PhaseEvent.FAILED:
        return state.model_copy(
            update={
                "phase": GenerationPhase.FAILED,
                "failed_phase": failed_phase or state.phase,
                "error": error,
            }
        )

    target = _TRANSITIONS.get((state.phase, event))
    if target is None:
        raise InvalidTransitionError(state.phase, event)

    if event is PhaseEvent.REVIEW_CONFIRMED:
        if state.review_confirmed:
            raise InvalidTransitionError(state.phase, event)
        return state.model_copy(update={"review_confirmed": True})

    if (
        event is PhaseEvent.CODE_WRITTEN
        and state.phase is GenerationPhase.AWAITING_REVIEW
        and not state.review_confirmed
    ):
        raise InvalidTransitionError(state.phase, event)

    return state.model_copy(update={"phase": target})


def plan(state: PhaseState, interactive: bool) -> Optional[Action]:
    """Return the next action for *state*, or ``None`` once terminal."""
    phase = state.phase
    if phase.is_terminal:
        return None
    if phase is GenerationPhase.SCAFFOLD_PENDING:
        return Action.WRITE_TYPES
    if phase is GenerationPhase.TYPES_GENERATED:
        return Action.REQUEST_REVIEW if interactive else Action.WRITE_CODE
    if phase is GenerationPhase.AWAITING_REVIEW:
        return Action.WRITE_CODE if state.review_confirmed else Action.PROMPT_REVIEW
    if phase is GenerationPhase.CODE_GENERATED:
        return Action.WRITE_TESTS
    return Action.FINISH
