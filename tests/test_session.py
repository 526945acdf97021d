import unittest

from aptiprep.app.events import (
    ANSWER_RECORDED,
    LATE_ACTION_DISCARDED,
    PHASE_CHANGED,
    SCORED,
    SCORING_FAILED,
)
from aptiprep.engine.scoring import score
from aptiprep.engine.session import SessionSettings, TestSession
from aptiprep.engine.states import (
    Abandoned,
    AwaitingAnswer,
    BlockIntro,
    Completed,
    Distraction,
    Feedback,
    Memorize,
    Recall,
    Scored,
)
from aptiprep.engine.timers import ManualClock
from aptiprep.errors import EmptyBlueprintError, InvalidTransitionError

from factories import choice, make_blueprint, memorize, sequence


class CountingScorer:
    def __init__(self, fail_times: int = 0) -> None:
        self.calls = 0
        self.snapshots = []
        self.fail_times = fail_times

    def __call__(self, blueprint, answers, weights, **kwargs):
        self.calls += 1
        self.snapshots.append(answers)
        if self.calls <= self.fail_times:
            raise RuntimeError("scoring backend down")
        return score(blueprint, answers, weights, **kwargs)


def five_questions(**kw):
    return make_blueprint([choice(f"v{i}") for i in range(5)], **kw)


class SessionFlowTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = ManualClock()
        self.scorer = CountingScorer()

    def make(self, blueprint, **settings) -> TestSession:
        return TestSession(blueprint, clock=self.clock, settings=SessionSettings(**settings), scorer=self.scorer)

    def test_happy_path_scores_once(self) -> None:
        s = self.make(five_questions())
        s.start()
        s.confirm_intro()
        for i in range(5):
            self.assertEqual(s.phase, AwaitingAnswer(index=i))
            self.assertTrue(s.submit_answer(f"v{i}", "b"))
        self.assertEqual(s.phase, Scored(reason="finished"))
        self.assertEqual(self.scorer.calls, 1)
        self.assertEqual(s.report.percentage_score, 100)
        self.assertEqual(self.clock.active_timers, 0)
        self.assertIs(s.score(), s.report)
        self.assertEqual(self.scorer.calls, 1)

    def test_timeout_with_three_of_five_answered(self) -> None:
        s = self.make(five_questions(time_limit_seconds=10))
        s.start()
        s.confirm_intro()
        for i in range(3):
            s.submit_answer(f"v{i}", "b")
        self.assertEqual(s.phase, AwaitingAnswer(index=3))
        self.clock.advance(10_000)
        self.assertEqual(s.phase, Scored(reason="timeout"))
        self.assertEqual(self.scorer.calls, 1)
        self.assertEqual(len(self.scorer.snapshots[0]), 3)
        self.assertEqual(s.report.correct_answers, 3)
        self.assertEqual(s.report.total_questions, 5)
        self.assertEqual(s.report.percentage_score, 60)
        # a second expiry tick is a no-op
        s._on_overall_tick(1000)
        self.clock.advance(5_000)
        self.assertEqual(self.scorer.calls, 1)
        self.assertEqual(self.clock.active_timers, 0)

    def test_countdown_decrements_per_tick(self) -> None:
        s = self.make(five_questions(time_limit_seconds=10))
        s.start()
        self.clock.advance(2_500)
        self.assertEqual(s.remaining_ms, 8_000)
        self.assertIsInstance(s.phase, BlockIntro)

    def test_late_answer_after_overall_expiry_is_discarded(self) -> None:
        s = self.make(five_questions(time_limit_seconds=10))
        events = []
        s.bus.subscribe(LATE_ACTION_DISCARDED, events.append)
        s.start()
        s.confirm_intro()
        # callback not yet delivered, but the deadline has passed
        self.clock.set_time(10_000)
        self.assertFalse(s.submit_answer("v0", "b"))
        self.assertEqual(s.phase, Scored(reason="timeout"))
        self.assertEqual(s.report.correct_answers, 0)
        self.assertEqual(len(events), 1)

    def test_answer_at_memorize_expiry_loses(self) -> None:
        bp = make_blueprint([memorize("m1"), memorize("m2")])
        s = self.make(bp, default_memorize_seconds=3)
        s.start()
        s.confirm_intro()
        self.assertEqual(s.phase, Memorize(index=0, remaining_ms=3000))
        self.clock.set_time(3_000)
        s.skip_wait()  # discarded: expiry already moved the question to recall
        self.assertEqual(s.phase, Recall(index=0))

    def test_memorize_distraction_recall_on_timers(self) -> None:
        bp = make_blueprint([memorize("m1", distraction=True)])
        s = self.make(bp, default_memorize_seconds=2, distraction_seconds=1)
        s.start()
        s.confirm_intro()
        self.clock.advance(1_000)
        self.assertEqual(s.phase, Memorize(index=0, remaining_ms=1000))
        self.clock.advance(1_000)
        self.assertEqual(s.phase, Distraction(index=0, remaining_ms=1000))
        s.submit_distraction(1)
        self.clock.advance(1_000)
        self.assertEqual(s.phase, Recall(index=0))
        self.assertEqual(s.answers, ())
        view = s.view()
        self.assertTrue(view.selectable)
        self.assertEqual(sorted(o.value for o in view.options), [0, 1, 2])
        self.assertTrue(s.submit_answer("m1", 1))
        self.assertEqual(s.phase, Scored(reason="finished"))
        self.assertEqual(s.report.correct_answers, 1)

    def test_phase_timer_with_partial_interval(self) -> None:
        bp = make_blueprint([memorize("m1", memorize_seconds=1), choice("v1", category="memory")])
        s = self.make(bp, tick_interval_ms=400)
        s.start()
        s.confirm_intro()
        self.clock.advance(999)
        self.assertIsInstance(s.phase, Memorize)
        self.clock.advance(1)
        self.assertEqual(s.phase, Recall(index=0))

    def test_feedback_then_auto_advance(self) -> None:
        bp = make_blueprint([choice("v1"), choice("v2")], show_feedback=True)
        s = self.make(bp, feedback_ms=1500)
        s.start()
        s.confirm_intro()
        s.submit_answer("v1", "a")
        self.assertEqual(s.phase, Feedback(index=0, correct=False, remaining_ms=1500))
        self.clock.advance(1_500)
        self.assertEqual(s.phase, AwaitingAnswer(index=1))

    def test_manual_advance(self) -> None:
        s = self.make(five_questions(), auto_advance=False)
        s.start()
        s.confirm_intro()
        s.submit_answer("v0", "b")
        self.assertEqual(s.phase.kind.value, "advancing")
        s.advance()
        self.assertEqual(s.phase, AwaitingAnswer(index=1))

    def test_double_submit_strict_raises(self) -> None:
        s = self.make(five_questions(), auto_advance=False)
        s.start()
        s.confirm_intro()
        s.submit_answer("v0", "b")
        with self.assertRaises(InvalidTransitionError):
            s.submit_answer("v0", "c")

    def test_double_submit_lenient_is_ignored(self) -> None:
        s = self.make(five_questions(), auto_advance=False, strict_transitions=False)
        s.start()
        s.confirm_intro()
        s.submit_answer("v0", "b")
        with self.assertLogs("aptiprep.engine.session", level="WARNING"):
            self.assertFalse(s.submit_answer("v0", "c"))
        self.assertEqual(len(s.answers), 1)

    def test_foreign_question_rejected(self) -> None:
        s = self.make(five_questions())
        s.start()
        s.confirm_intro()
        with self.assertRaises(InvalidTransitionError):
            s.submit_answer("nope", "b")

    def test_abandon_cancels_timers(self) -> None:
        bp = make_blueprint([memorize("m1")])
        s = self.make(bp)
        s.start()
        s.confirm_intro()
        self.assertEqual(self.clock.active_timers, 2)
        s.abandon()
        self.assertEqual(s.phase, Abandoned())
        self.assertEqual(self.clock.active_timers, 0)
        self.clock.advance(60_000)
        self.assertEqual(s.phase, Abandoned())
        self.assertEqual(self.scorer.calls, 0)

    def test_context_manager_closes(self) -> None:
        with self.make(five_questions()) as s:
            s.start()
            self.assertEqual(self.clock.active_timers, 1)
        self.assertIsInstance(s.phase, Abandoned)
        self.assertEqual(self.clock.active_timers, 0)

    def test_scoring_failure_leaves_completed_and_can_retry(self) -> None:
        self.scorer = CountingScorer(fail_times=1)
        s = self.make(five_questions(time_limit_seconds=5))
        failures = []
        scored = []
        s.bus.subscribe(SCORING_FAILED, failures.append)
        s.bus.subscribe(SCORED, scored.append)
        s.start()
        with self.assertLogs("aptiprep.engine.session", level="ERROR"):
            self.clock.advance(5_000)
        self.assertEqual(s.phase, Completed(reason="timeout"))
        self.assertIsNotNone(s.scoring_error)
        self.assertEqual(len(failures), 1)
        self.assertEqual(self.clock.active_timers, 0)
        report = s.score()
        self.assertEqual(s.phase, Scored(reason="timeout"))
        self.assertIsNone(s.scoring_error)
        self.assertEqual(report.correct_answers, 0)
        self.assertEqual(len(scored), 1)

    def test_explicit_score_before_completion_rejected(self) -> None:
        s = self.make(five_questions())
        s.start()
        with self.assertRaises(InvalidTransitionError):
            s.score()

    def test_events_emitted(self) -> None:
        s = self.make(five_questions())
        phases = []
        recorded = []
        s.bus.subscribe(PHASE_CHANGED, lambda p: phases.append(p["phase"]))
        s.bus.subscribe(ANSWER_RECORDED, lambda p: recorded.append(p["question_id"]))
        s.start()
        s.confirm_intro()
        s.submit_answer("v0", "b")
        self.assertEqual(phases, ["block_intro", "awaiting_answer", "advancing", "awaiting_answer"])
        self.assertEqual(recorded, ["v0"])

    def test_envelope_metadata(self) -> None:
        s = self.make(make_blueprint([choice("v1")]))
        s.start()
        s.confirm_intro()
        self.clock.advance(4_000)
        s.submit_answer("v1", "b")
        env = s.envelope()
        self.assertEqual(env.test_id, "bp-1")
        self.assertEqual(env.completion_reason, "finished")
        self.assertEqual(env.time_spent_seconds, 4.0)
        self.assertEqual(env.report.correct_answers, 1)
        self.assertEqual(len(env.answers), 1)

    def test_view_for_sequence_question(self) -> None:
        s = self.make(make_blueprint([sequence("s1")]))
        s.start()
        intro = s.view()
        self.assertEqual(intro.phase, "block_intro")
        self.assertEqual(intro.block_name, "numerical")
        s.confirm_intro()
        view = s.view()
        self.assertEqual(view.question_id, "s1")
        self.assertIn("2, 4, 8, ?", view.prompt)
        self.assertEqual(view.question_number, 1)
        self.assertEqual(view.question_count, 1)

    def test_empty_blueprint_rejected(self) -> None:
        with self.assertRaises(EmptyBlueprintError):
            TestSession(make_blueprint([]), clock=self.clock)


if __name__ == "__main__":
    unittest.main()
