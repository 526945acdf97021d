import unittest

from aptiprep.engine.states import (
    Abandon,
    Abandoned,
    Advance,
    Advancing,
    AwaitingAnswer,
    BlockIntro,
    Completed,
    ConfirmIntro,
    Distraction,
    Feedback,
    MarkScored,
    Memorize,
    NotStarted,
    PhaseDurations,
    PhaseTick,
    Recall,
    Scored,
    SessionState,
    SkipWait,
    Start,
    SubmitAnswer,
    SubmitDistraction,
    Tick,
    transition,
)
from aptiprep.errors import InvalidTransitionError
from aptiprep.results.schema import SubmittedAnswer

from factories import choice, make_blueprint, memorize, sequence

DUR = PhaseDurations(default_memorize_ms=3000, distraction_ms=2000, feedback_ms=1000)


def run(state, *events):
    for e in events:
        state = transition(state, e, DUR)
    return state


def submit(qid, value):
    return SubmitAnswer(SubmittedAnswer(question_id=qid, value=value))


class TransitionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.bp = make_blueprint(
            [choice("v1"), choice("v2"), memorize("m1", distraction=True), sequence("s1")],
            time_limit_seconds=60,
        )
        self.initial = SessionState(blueprint=self.bp)

    def test_start_enters_first_block_intro(self) -> None:
        st = run(self.initial, Start(at_ms=5))
        self.assertEqual(st.phase, BlockIntro(index=0))
        self.assertEqual(st.remaining_ms, 60_000)
        self.assertEqual(st.started_at_ms, 5)

    def test_presenting_resolves_by_question_type(self) -> None:
        st = run(self.initial, Start(), ConfirmIntro())
        self.assertEqual(st.phase, AwaitingAnswer(index=0))

    def test_answer_then_advance_within_block(self) -> None:
        st = run(self.initial, Start(), ConfirmIntro(), submit("v1", "b"))
        self.assertEqual(st.phase, Advancing(index=0))
        st = run(st, Advance())
        self.assertEqual(st.phase, AwaitingAnswer(index=1))
        self.assertEqual(len(st.answers), 1)

    def test_block_change_goes_through_intro(self) -> None:
        st = run(self.initial, Start(), ConfirmIntro(), submit("v1", "b"), Advance(), submit("v2", "a"), Advance())
        self.assertEqual(st.phase, BlockIntro(index=2))

    def test_memorize_distraction_recall(self) -> None:
        st = run(
            self.initial, Start(), ConfirmIntro(), submit("v1", "b"), Advance(), submit("v2", "a"), Advance(), ConfirmIntro()
        )
        self.assertEqual(st.phase, Memorize(index=2, remaining_ms=3000))
        epoch = st.epoch
        st = run(st, PhaseTick(elapsed_ms=1000, epoch=epoch))
        self.assertEqual(st.phase, Memorize(index=2, remaining_ms=2000))
        self.assertEqual(st.epoch, epoch)
        st = run(st, PhaseTick(elapsed_ms=2000, epoch=epoch))
        self.assertEqual(st.phase, Distraction(index=2, remaining_ms=2000))
        st = run(st, SubmitDistraction("4"))
        self.assertEqual(st.phase.sub_answer, "4")
        st = run(st, SkipWait())
        self.assertEqual(st.phase, Recall(index=2))
        st = run(st, submit("m1", 1))
        self.assertEqual(st.phase, Advancing(index=2))

    def test_memorize_seconds_override(self) -> None:
        bp = make_blueprint([memorize("m1", memorize_seconds=7)])
        st = run(SessionState(blueprint=bp), Start(), ConfirmIntro())
        self.assertEqual(st.phase, Memorize(index=0, remaining_ms=7000))
        st = run(st, SkipWait())
        self.assertEqual(st.phase, Recall(index=0))

    def test_stale_phase_tick_is_ignored(self) -> None:
        bp = make_blueprint([memorize("m1")])
        st = run(SessionState(blueprint=bp), Start(), ConfirmIntro())
        stale = st.epoch - 1
        self.assertIs(run(st, PhaseTick(elapsed_ms=9999, epoch=stale)), st)

    def test_feedback_when_enabled(self) -> None:
        bp = make_blueprint([choice("v1"), choice("v2")], show_feedback=True)
        st = run(SessionState(blueprint=bp), Start(), ConfirmIntro(), submit("v1", "b"))
        self.assertEqual(st.phase, Feedback(index=0, correct=True, remaining_ms=1000))
        st = run(st, PhaseTick(elapsed_ms=1000, epoch=st.epoch))
        self.assertEqual(st.phase, Advancing(index=0))

    def test_last_advance_completes(self) -> None:
        bp = make_blueprint([choice("v1")])
        st = run(SessionState(blueprint=bp), Start(), ConfirmIntro(), submit("v1", "b"), Advance(at_ms=42))
        self.assertEqual(st.phase, Completed(reason="finished"))
        self.assertEqual(st.completed_at_ms, 42)
        st = run(st, MarkScored())
        self.assertEqual(st.phase, Scored(reason="finished"))

    def test_overall_timeout(self) -> None:
        st = run(self.initial, Start(), ConfirmIntro(), Tick(elapsed_ms=59_000, at_ms=59_000))
        self.assertEqual(st.remaining_ms, 1000)
        st = run(st, Tick(elapsed_ms=1000, at_ms=60_000))
        self.assertEqual(st.phase, Completed(reason="timeout"))
        self.assertEqual(st.completion_reason, "timeout")
        self.assertIs(run(st, Tick(elapsed_ms=1000, at_ms=61_000)), st)

    def test_tick_before_start_is_noop(self) -> None:
        self.assertIs(run(self.initial, Tick(elapsed_ms=1000)), self.initial)

    def test_submit_for_other_question_rejected(self) -> None:
        st = run(self.initial, Start(), ConfirmIntro())
        with self.assertRaises(InvalidTransitionError):
            run(st, submit("v2", "b"))

    def test_double_submit_rejected(self) -> None:
        st = run(self.initial, Start(), ConfirmIntro(), submit("v1", "b"))
        with self.assertRaises(InvalidTransitionError) as ctx:
            run(st, submit("v1", "c"))
        self.assertEqual(ctx.exception.phase, "advancing")

    def test_out_of_contract_events(self) -> None:
        with self.assertRaises(InvalidTransitionError):
            run(self.initial, ConfirmIntro())
        with self.assertRaises(InvalidTransitionError):
            run(self.initial, Start(), Start())
        with self.assertRaises(InvalidTransitionError):
            run(self.initial, Start(), SkipWait())
        with self.assertRaises(InvalidTransitionError):
            run(self.initial, MarkScored())

    def test_abandon(self) -> None:
        st = run(self.initial, Start(), Abandon())
        self.assertEqual(st.phase, Abandoned())
        self.assertTrue(st.is_terminal)
        with self.assertRaises(InvalidTransitionError):
            run(st, Abandon())

    def test_abandon_before_start(self) -> None:
        self.assertIsInstance(run(self.initial, Abandon()).phase, Abandoned)
        self.assertIsInstance(self.initial.phase, NotStarted)

    def test_transition_does_not_mutate(self) -> None:
        st = run(self.initial, Start())
        run(st, ConfirmIntro())
        self.assertEqual(st.phase, BlockIntro(index=0))


if __name__ == "__main__":
    unittest.main()
