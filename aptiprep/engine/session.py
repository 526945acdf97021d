from __future__ import annotations

"""Session runtime: drives the pure state machine with real timers.

A TestSession owns one overall countdown timer and at most one phase timer.
User actions go through `_act`, which first applies any expiry that is
already due; when an expiry wins, the late action is discarded.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from ..app.events import (
    ABANDONED,
    ANSWER_RECORDED,
    COMPLETED,
    LATE_ACTION_DISCARDED,
    PHASE_CHANGED,
    SCORED,
    SCORING_FAILED,
    EventBus,
)
from ..app.explain import trace as xtrace
from ..errors import EmptyBlueprintError, InvalidTransitionError
from ..questions.models import QuestionType
from ..results.schema import AnswerValue, ResultEnvelope, ScoreReport, SubmittedAnswer
from .blueprint import TestBlueprint
from .presentation import PhaseView, ViewOption, answer_options, memorize_options, sequence_prompt
from .scoring import STRENGTH_THRESHOLD, WEAKNESS_THRESHOLD, ScoreWeightConfig, score
from .states import (
    ANSWER_PHASES,
    TIMED_PHASES,
    Abandon,
    Abandoned,
    Advance,
    Advancing,
    BlockIntro,
    Completed,
    ConfirmIntro,
    Distraction,
    Event,
    MarkScored,
    Memorize,
    PhaseDurations,
    PhaseTick,
    Scored,
    SessionState,
    SkipWait,
    Start,
    SubmitAnswer,
    SubmitDistraction,
    Tick,
    transition,
)
from .timers import Clock, SchedClock, TickHandle

logger = logging.getLogger(__name__)

Scorer = Callable[..., ScoreReport]


@dataclass
class SessionSettings:
    tick_interval_ms: int = 1000
    default_memorize_seconds: float = 10
    distraction_seconds: float = 5
    feedback_ms: int = 1500
    auto_advance: bool = True
    strict_transitions: bool = True
    strength_threshold: float = STRENGTH_THRESHOLD
    weakness_threshold: float = WEAKNESS_THRESHOLD

    @classmethod
    def from_config(cls, cfg: Dict[str, Any]) -> "SessionSettings":
        """Read the `session` and `scoring` sections of a validated config."""
        s = cfg.get("session", {})
        sc = cfg.get("scoring", {})
        return cls(
            tick_interval_ms=int(s.get("tick_interval_ms", 1000)),
            default_memorize_seconds=float(s.get("default_memorize_seconds", 10)),
            distraction_seconds=float(s.get("distraction_seconds", 5)),
            feedback_ms=int(s.get("feedback_ms", 1500)),
            auto_advance=bool(s.get("auto_advance", True)),
            strict_transitions=bool(s.get("strict_transitions", True)),
            strength_threshold=float(sc.get("strength_threshold", STRENGTH_THRESHOLD)),
            weakness_threshold=float(sc.get("weakness_threshold", WEAKNESS_THRESHOLD)),
        )

    def durations(self) -> PhaseDurations:
        return PhaseDurations(
            default_memorize_ms=int(self.default_memorize_seconds * 1000),
            distraction_ms=int(self.distraction_seconds * 1000),
            feedback_ms=int(self.feedback_ms),
        )


class TestSession:
    """One learner's attempt at one blueprint."""

    __test__ = False  # not a pytest test class

    def __init__(
        self,
        blueprint: TestBlueprint,
        *,
        clock: Optional[Clock] = None,
        settings: Optional[SessionSettings] = None,
        weights: Optional[ScoreWeightConfig] = None,
        scorer: Scorer = score,
        bus: Optional[EventBus] = None,
        session_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> None:
        if not blueprint.questions:
            raise EmptyBlueprintError(blueprint.skipped_categories)
        self.blueprint = blueprint
        self.clock: Clock = clock or SchedClock()
        self.settings = settings or SessionSettings()
        self.weights = weights
        self.bus = bus or EventBus()
        self.session_id = session_id or str(uuid4())
        self.user_id = user_id
        self.report: Optional[ScoreReport] = None
        self.scoring_error: Optional[BaseException] = None

        self._scorer = scorer
        self._durations = self.settings.durations()
        self._state = SessionState(blueprint=blueprint)
        self._scoring = False
        self._started_wall: Optional[datetime] = None

        self._overall: Optional[TickHandle] = None
        self._overall_mark_ms = 0
        self._phase_timer: Optional[TickHandle] = None
        self._phase_mark_ms = 0

    # ------------------------------------------------------------------ state

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def phase(self):
        return self._state.phase

    @property
    def answers(self):
        return self._state.answers

    @property
    def remaining_ms(self) -> int:
        return self._state.remaining_ms

    # ---------------------------------------------------------------- actions

    def start(self) -> None:
        now = self.clock.now_ms()
        if not self._dispatch(Start(at_ms=now), "start", at_ms=now):
            return
        self._started_wall = datetime.now(timezone.utc)
        self._overall_mark_ms = now
        self._arm_overall()
        xtrace("session_started", {"session": self.session_id, "questions": len(self.blueprint)})

    def confirm_intro(self) -> None:
        self._act(ConfirmIntro(), "confirm intro")

    def skip_wait(self) -> None:
        self._act(SkipWait(), "skip wait")

    def submit_distraction(self, value: AnswerValue) -> None:
        self._act(SubmitDistraction(value=value), "submit distraction answer")

    def submit_answer(self, question_id: str, value: Optional[AnswerValue]) -> bool:
        """Record an answer for the current question.

        Returns False when the action was discarded or ignored.
        """
        answer = SubmittedAnswer(question_id=question_id, value=value, submitted_at_ms=self.clock.now_ms())
        return self._act(SubmitAnswer(answer=answer), "submit answer")

    def advance(self) -> None:
        self._act(Advance(at_ms=self.clock.now_ms()), "advance")

    def abandon(self) -> None:
        if self._dispatch(Abandon(), "abandon"):
            self.bus.emit(ABANDONED, {"session_id": self.session_id})

    def close(self) -> None:
        """Release timers; abandons a session that is still running."""
        if not self._state.is_terminal and self._overall is not None:
            self.abandon()
        self._cancel_timers()

    def __enter__(self) -> "TestSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ----------------------------------------------------------------- scoring

    def score(self) -> Optional[ScoreReport]:
        """Score a completed session (or retry after a failed attempt).

        Returns the existing report when already scored. Scorer errors
        propagate to the caller after being recorded on the session.
        """
        if isinstance(self._state.phase, Scored):
            return self.report
        if not isinstance(self._state.phase, Completed):
            self._reject("score")
            return None
        return self._run_scoring(raise_errors=True)

    def _run_scoring(self, raise_errors: bool) -> Optional[ScoreReport]:
        if self._scoring:
            return None
        self._scoring = True
        snapshot = tuple(self._state.answers)
        try:
            report = self._scorer(
                self.blueprint,
                snapshot,
                self.weights,
                strength_threshold=self.settings.strength_threshold,
                weakness_threshold=self.settings.weakness_threshold,
            )
        except Exception as exc:
            self.scoring_error = exc
            logger.exception("Scoring failed for session %s", self.session_id)
            self.bus.emit(SCORING_FAILED, {"session_id": self.session_id, "error": str(exc)})
            if raise_errors:
                raise
            return None
        finally:
            self._scoring = False
        self.scoring_error = None
        self.report = report
        self._apply(transition(self._state, MarkScored(), self._durations))
        self.bus.emit(SCORED, {"session_id": self.session_id, "report": report})
        xtrace("scored", {"total": report.total_score, "pct": round(report.percentage_score, 1)})
        return report

    def envelope(self) -> ResultEnvelope:
        """Package the report with session metadata for a result sink."""
        if self.report is None:
            raise InvalidTransitionError(self._state.phase.kind.value, "build result", "session has no report")
        st = self._state
        spent_ms = max(0, (st.completed_at_ms or 0) - (st.started_at_ms or 0))
        started = self._started_wall or datetime.now(timezone.utc)
        return ResultEnvelope(
            session_id=self.session_id,
            test_id=self.blueprint.id,
            user_id=self.user_id,
            started_at=started,
            completed_at=started + timedelta(milliseconds=spent_ms),
            time_spent_seconds=spent_ms / 1000.0,
            completion_reason=st.completion_reason or "",
            report=self.report,
            answers=tuple(st.answers),
        )

    # ------------------------------------------------------------------- view

    def view(self) -> PhaseView:
        st = self._state
        phase = st.phase
        base: Dict[str, Any] = {"phase": phase.kind.value, "total_remaining_ms": st.remaining_ms}
        q = st.current_question
        idx = st.index
        if q is None or idx is None:
            return PhaseView(**base)
        block_idx = self.blueprint.block_index_of(idx)
        base.update(
            question_id=q.id,
            question_type=q.type.value,
            prompt=q.text,
            block_name=self.blueprint.blocks[block_idx].name,
            block_number=block_idx + 1,
            block_count=len(self.blueprint.blocks),
            question_number=idx + 1,
            question_count=len(self.blueprint),
            phase_remaining_ms=st.phase_remaining_ms,
        )
        if isinstance(phase, BlockIntro):
            base.update(prompt="", question_id=None, question_type=None)
        elif isinstance(phase, Memorize):
            base.update(options=memorize_options(q))
        elif isinstance(phase, Distraction):
            prompt = q.payload.distraction  # type: ignore[union-attr]
            base.update(
                prompt=prompt.text,
                options=tuple(ViewOption(value=i, label=o) for i, o in enumerate(prompt.options)),
                selectable=True,
            )
        elif isinstance(phase, ANSWER_PHASES):
            if q.type is QuestionType.SEQUENCE:
                base.update(prompt=sequence_prompt(q))
            base.update(options=answer_options(q, self.blueprint.id), selectable=True)
        return PhaseView(**base)

    # --------------------------------------------------------------- internals

    def _reject(self, action: str, detail: Optional[str] = None) -> None:
        err = InvalidTransitionError(self._state.phase.kind.value, action, detail)
        if self.settings.strict_transitions:
            raise err
        logger.warning("Ignored: %s", err)

    def _act(self, event: Event, action: str) -> bool:
        """Apply a user action after any expiry that is already due."""
        if self._flush_due():
            logger.info("Discarded late '%s' in session %s", action, self.session_id)
            self.bus.emit(LATE_ACTION_DISCARDED, {"session_id": self.session_id, "action": action})
            xtrace("late_action_discarded", {"action": action, "phase": self._state.phase.kind.value})
            return False
        return self._dispatch(event, action)

    def _dispatch(self, event: Event, action: str, at_ms: Optional[int] = None) -> bool:
        try:
            new_state = transition(self._state, event, self._durations)
        except InvalidTransitionError as err:
            if self.settings.strict_transitions:
                raise
            logger.warning("Ignored: %s", err)
            return False
        self._apply(new_state, at_ms)
        return True

    def _flush_due(self) -> bool:
        """Apply overall/phase expiries whose deadline has passed; True if any did."""
        if self._overall is None or self._state.is_terminal:
            return False
        applied = False
        now = self.clock.now_ms()
        while not self._state.is_terminal:
            st = self._state
            overall_due = self._overall_mark_ms + st.remaining_ms
            phase_left = st.phase_remaining_ms
            phase_due = None if phase_left is None else self._phase_mark_ms + phase_left
            if phase_due is not None and phase_due < overall_due and phase_due <= now:
                self._apply(transition(st, PhaseTick(elapsed_ms=phase_left, epoch=st.epoch), self._durations), phase_due)
            elif overall_due <= now:
                self._apply(transition(st, Tick(elapsed_ms=st.remaining_ms, at_ms=overall_due), self._durations))
            else:
                break
            applied = True
        return applied

    def _on_overall_tick(self, _interval_ms: int) -> None:
        now = self.clock.now_ms()
        elapsed = now - self._overall_mark_ms
        self._overall_mark_ms = now
        self._apply(transition(self._state, Tick(elapsed_ms=elapsed, at_ms=now), self._durations))
        if not self._state.is_terminal:
            self._arm_overall()

    def _on_phase_tick(self, epoch: int) -> None:
        if epoch != self._state.epoch:
            return
        now = self.clock.now_ms()
        elapsed = now - self._phase_mark_ms
        self._phase_mark_ms = now
        before = self._state.epoch
        self._apply(transition(self._state, PhaseTick(elapsed_ms=elapsed, epoch=epoch), self._durations), now)
        if self._state.epoch == before:
            self._arm_phase()

    def _arm_overall(self) -> None:
        if self._overall is not None:
            self._overall.cancel()
        interval = max(1, min(self.settings.tick_interval_ms, self._state.remaining_ms))
        self._overall = self.clock.schedule_tick(interval, self._on_overall_tick)

    def _arm_phase(self) -> None:
        if self._phase_timer is not None:
            self._phase_timer.cancel()
            self._phase_timer = None
        left = self._state.phase_remaining_ms
        if left is None:
            return
        epoch = self._state.epoch
        interval = max(1, min(self.settings.tick_interval_ms, left))
        self._phase_timer = self.clock.schedule_tick(interval, lambda _ms: self._on_phase_tick(epoch))

    def _cancel_timers(self) -> None:
        if self._overall is not None:
            self._overall.cancel()
        if self._phase_timer is not None:
            self._phase_timer.cancel()
            self._phase_timer = None

    def _apply(self, new_state: SessionState, at_ms: Optional[int] = None) -> None:
        old = self._state
        self._state = new_state
        if len(new_state.answers) > len(old.answers):
            last = new_state.answers[-1]
            self.bus.emit(ANSWER_RECORDED, {"session_id": self.session_id, "question_id": last.question_id})
            xtrace("answer_recorded", {"question": last.question_id})
        if new_state.epoch == old.epoch:
            return
        phase = new_state.phase
        logger.debug("Session %s: %s -> %s", self.session_id, old.phase.kind.value, phase.kind.value)
        self.bus.emit(
            PHASE_CHANGED,
            {"session_id": self.session_id, "phase": phase.kind.value, "index": new_state.index},
        )
        xtrace("phase", {"from": old.phase.kind.value, "to": phase.kind.value, "q": new_state.index})

        if isinstance(phase, (Completed, Scored, Abandoned)):
            self._cancel_timers()
            if isinstance(phase, Completed) and not isinstance(old.phase, Completed):
                logger.info(
                    "Session %s completed (%s): %d answers logged",
                    self.session_id,
                    phase.reason,
                    len(new_state.answers),
                )
                self.bus.emit(COMPLETED, {"session_id": self.session_id, "reason": phase.reason})
                self._run_scoring(raise_errors=False)
            return

        if isinstance(phase, TIMED_PHASES):
            self._phase_mark_ms = self.clock.now_ms() if at_ms is None else at_ms
        self._arm_phase()

        if isinstance(phase, Advancing) and self.settings.auto_advance:
            at = self.clock.now_ms() if at_ms is None else at_ms
            self._apply(transition(new_state, Advance(at_ms=at), self._durations), at_ms)
