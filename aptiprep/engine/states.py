from __future__ import annotations

"""Session state as an explicit tagged union plus a pure transition function.

`transition(state, event, durations)` never touches clocks, timers or I/O;
the runtime in `session.py` feeds it events and acts on the result. Every
phase change bumps `epoch` so callbacks armed for an older phase can be
recognised and dropped.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Optional, Tuple, Union

from ..errors import InvalidTransitionError
from ..questions.models import MemorizePayload, Question
from ..results.schema import AnswerValue, SubmittedAnswer
from .blueprint import TestBlueprint
from .presentation import ENTER_MEMORIZE, entry_phase
from .validator import is_correct


class Phase(str, Enum):
    NOT_STARTED = "not_started"
    BLOCK_INTRO = "block_intro"
    MEMORIZE = "memorize"
    DISTRACTION = "distraction"
    RECALL = "recall"
    AWAITING_ANSWER = "awaiting_answer"
    FEEDBACK = "feedback"
    ADVANCING = "advancing"
    COMPLETED = "completed"
    SCORED = "scored"
    ABANDONED = "abandoned"


# ----------------------------- phases -----------------------------


@dataclass(frozen=True)
class NotStarted:
    kind: ClassVar[Phase] = Phase.NOT_STARTED


@dataclass(frozen=True)
class BlockIntro:
    index: int
    kind: ClassVar[Phase] = Phase.BLOCK_INTRO


@dataclass(frozen=True)
class Memorize:
    index: int
    remaining_ms: int
    kind: ClassVar[Phase] = Phase.MEMORIZE


@dataclass(frozen=True)
class Distraction:
    index: int
    remaining_ms: int
    sub_answer: Optional[AnswerValue] = None
    kind: ClassVar[Phase] = Phase.DISTRACTION


@dataclass(frozen=True)
class Recall:
    index: int
    kind: ClassVar[Phase] = Phase.RECALL


@dataclass(frozen=True)
class AwaitingAnswer:
    index: int
    kind: ClassVar[Phase] = Phase.AWAITING_ANSWER


@dataclass(frozen=True)
class Feedback:
    index: int
    correct: bool
    remaining_ms: int
    kind: ClassVar[Phase] = Phase.FEEDBACK


@dataclass(frozen=True)
class Advancing:
    index: int
    kind: ClassVar[Phase] = Phase.ADVANCING


@dataclass(frozen=True)
class Completed:
    reason: str
    kind: ClassVar[Phase] = Phase.COMPLETED


@dataclass(frozen=True)
class Scored:
    reason: str
    kind: ClassVar[Phase] = Phase.SCORED


@dataclass(frozen=True)
class Abandoned:
    kind: ClassVar[Phase] = Phase.ABANDONED


PhaseState = Union[
    NotStarted,
    BlockIntro,
    Memorize,
    Distraction,
    Recall,
    AwaitingAnswer,
    Feedback,
    Advancing,
    Completed,
    Scored,
    Abandoned,
]

TIMED_PHASES = (Memorize, Distraction, Feedback)
ANSWER_PHASES = (AwaitingAnswer, Recall)
TERMINAL_PHASES = (Completed, Scored, Abandoned)

REASON_FINISHED = "finished"
REASON_TIMEOUT = "timeout"


@dataclass(frozen=True)
class PhaseDurations:
    default_memorize_ms: int = 10_000
    distraction_ms: int = 5_000
    feedback_ms: int = 1_500


@dataclass(frozen=True)
class SessionState:
    blueprint: TestBlueprint
    phase: PhaseState = NotStarted()
    remaining_ms: int = 0
    answers: Tuple[SubmittedAnswer, ...] = ()
    epoch: int = 0
    started_at_ms: Optional[int] = None
    completed_at_ms: Optional[int] = None

    @property
    def index(self) -> Optional[int]:
        return getattr(self.phase, "index", None)

    @property
    def current_question(self) -> Optional[Question]:
        idx = self.index
        return None if idx is None else self.blueprint.questions[idx]

    @property
    def completion_reason(self) -> Optional[str]:
        return getattr(self.phase, "reason", None)

    @property
    def is_terminal(self) -> bool:
        return isinstance(self.phase, TERMINAL_PHASES)

    @property
    def phase_remaining_ms(self) -> Optional[int]:
        return getattr(self.phase, "remaining_ms", None)


# ----------------------------- events -----------------------------


@dataclass(frozen=True)
class Start:
    at_ms: int = 0


@dataclass(frozen=True)
class ConfirmIntro:
    pass


@dataclass(frozen=True)
class Tick:
    """Overall countdown tick."""

    elapsed_ms: int
    at_ms: int = 0


@dataclass(frozen=True)
class PhaseTick:
    elapsed_ms: int
    epoch: int


@dataclass(frozen=True)
class SkipWait:
    pass


@dataclass(frozen=True)
class SubmitDistraction:
    value: AnswerValue


@dataclass(frozen=True)
class SubmitAnswer:
    answer: SubmittedAnswer


@dataclass(frozen=True)
class Advance:
    at_ms: int = 0


@dataclass(frozen=True)
class Abandon:
    pass


@dataclass(frozen=True)
class MarkScored:
    pass


Event = Union[
    Start,
    ConfirmIntro,
    Tick,
    PhaseTick,
    SkipWait,
    SubmitDistraction,
    SubmitAnswer,
    Advance,
    Abandon,
    MarkScored,
]


# --------------------------- transitions ---------------------------


def _enter(state: SessionState, phase: PhaseState, **changes: Any) -> SessionState:
    return replace(state, phase=phase, epoch=state.epoch + 1, **changes)


def _reject(state: SessionState, action: str, detail: Optional[str] = None) -> InvalidTransitionError:
    return InvalidTransitionError(state.phase.kind.value, action, detail)


def _present(state: SessionState, index: int, durations: PhaseDurations) -> SessionState:
    question = state.blueprint.questions[index]
    if entry_phase(question) == ENTER_MEMORIZE:
        seconds = question.memorize_seconds
        ms = int(seconds * 1000) if seconds else durations.default_memorize_ms
        return _enter(state, Memorize(index=index, remaining_ms=ms))
    return _enter(state, AwaitingAnswer(index=index))


def _expire_phase(state: SessionState, durations: PhaseDurations) -> SessionState:
    phase = state.phase
    if isinstance(phase, Memorize):
        payload: MemorizePayload = state.blueprint.questions[phase.index].payload  # type: ignore[assignment]
        if payload.distraction is not None:
            return _enter(state, Distraction(index=phase.index, remaining_ms=durations.distraction_ms))
        return _enter(state, Recall(index=phase.index))
    if isinstance(phase, Distraction):
        # sub-answer is dropped with the phase
        return _enter(state, Recall(index=phase.index))
    if isinstance(phase, Feedback):
        return _enter(state, Advancing(index=phase.index))
    raise _reject(state, "expire phase")


def _on_start(state: SessionState, event: Start, durations: PhaseDurations) -> SessionState:
    if not isinstance(state.phase, NotStarted):
        raise _reject(state, "start")
    return _enter(
        state,
        BlockIntro(index=0),
        remaining_ms=state.blueprint.time_limit_seconds * 1000,
        started_at_ms=event.at_ms,
    )


def _on_confirm_intro(state: SessionState, event: ConfirmIntro, durations: PhaseDurations) -> SessionState:
    if not isinstance(state.phase, BlockIntro):
        raise _reject(state, "confirm intro")
    return _present(state, state.phase.index, durations)


def _on_tick(state: SessionState, event: Tick, durations: PhaseDurations) -> SessionState:
    if isinstance(state.phase, NotStarted) or state.is_terminal:
        return state
    remaining = max(0, state.remaining_ms - event.elapsed_ms)
    if remaining == 0:
        return _enter(state, Completed(reason=REASON_TIMEOUT), remaining_ms=0, completed_at_ms=event.at_ms)
    return replace(state, remaining_ms=remaining)


def _on_phase_tick(state: SessionState, event: PhaseTick, durations: PhaseDurations) -> SessionState:
    phase = state.phase
    if event.epoch != state.epoch or not isinstance(phase, TIMED_PHASES):
        return state
    remaining = phase.remaining_ms - event.elapsed_ms
    if remaining <= 0:
        return _expire_phase(state, durations)
    return replace(state, phase=replace(phase, remaining_ms=remaining))


def _on_skip_wait(state: SessionState, event: SkipWait, durations: PhaseDurations) -> SessionState:
    if not isinstance(state.phase, TIMED_PHASES):
        raise _reject(state, "skip wait")
    return _expire_phase(state, durations)


def _on_submit_distraction(
    state: SessionState, event: SubmitDistraction, durations: PhaseDurations
) -> SessionState:
    phase = state.phase
    if not isinstance(phase, Distraction):
        raise _reject(state, "submit distraction answer")
    return replace(state, phase=replace(phase, sub_answer=event.value))


def _on_submit_answer(state: SessionState, event: SubmitAnswer, durations: PhaseDurations) -> SessionState:
    phase = state.phase
    if not isinstance(phase, ANSWER_PHASES):
        raise _reject(state, "submit answer")
    question = state.blueprint.questions[phase.index]
    if event.answer.question_id != question.id:
        raise _reject(state, "submit answer", f"question '{event.answer.question_id}' is not the current question")
    answers = state.answers + (event.answer,)
    if state.blueprint.show_feedback:
        fb = Feedback(index=phase.index, correct=is_correct(question, event.answer), remaining_ms=durations.feedback_ms)
        return _enter(state, fb, answers=answers)
    return _enter(state, Advancing(index=phase.index), answers=answers)


def _on_advance(state: SessionState, event: Advance, durations: PhaseDurations) -> SessionState:
    phase = state.phase
    if not isinstance(phase, (Feedback, Advancing)):
        raise _reject(state, "advance")
    blueprint = state.blueprint
    nxt = phase.index + 1
    if nxt >= len(blueprint.questions):
        return _enter(state, Completed(reason=REASON_FINISHED), completed_at_ms=event.at_ms)
    if blueprint.block_index_of(nxt) != blueprint.block_index_of(phase.index):
        return _enter(state, BlockIntro(index=nxt))
    return _present(state, nxt, durations)


def _on_abandon(state: SessionState, event: Abandon, durations: PhaseDurations) -> SessionState:
    if state.is_terminal:
        raise _reject(state, "abandon")
    return _enter(state, Abandoned())


def _on_mark_scored(state: SessionState, event: MarkScored, durations: PhaseDurations) -> SessionState:
    if not isinstance(state.phase, Completed):
        raise _reject(state, "score")
    return _enter(state, Scored(reason=state.phase.reason))


_HANDLERS: Dict[type, Callable[[SessionState, Any, PhaseDurations], SessionState]] = {
    Start: _on_start,
    ConfirmIntro: _on_confirm_intro,
    Tick: _on_tick,
    PhaseTick: _on_phase_tick,
    SkipWait: _on_skip_wait,
    SubmitDistraction: _on_submit_distraction,
    SubmitAnswer: _on_submit_answer,
    Advance: _on_advance,
    Abandon: _on_abandon,
    MarkScored: _on_mark_scored,
}


def transition(state: SessionState, event: Event, durations: Optional[PhaseDurations] = None) -> SessionState:
    """Apply one event. Raises InvalidTransitionError for out-of-contract events.

    Overall ticks before start or after completion, and phase ticks from an
    older epoch, return the state unchanged.
    """
    handler = _HANDLERS.get(type(event))
    if handler is None:
        raise TypeError(f"Unknown session event {type(event).__name__}")
    return handler(state, event, durations or PhaseDurations())
