import unittest

from aptiprep.engine.presentation import (
    ENTER_ANSWER,
    ENTER_MEMORIZE,
    answer_options,
    entry_phase,
    recall_order,
)
from aptiprep.questions.models import QuestionType

from factories import choice, image_choice, memorize, open_text, sequence, true_false


class PresentationSelectorTests(unittest.TestCase):
    def test_entry_phase_covers_every_type(self) -> None:
        samples = {
            QuestionType.PLAIN_CHOICE: choice("q"),
            QuestionType.IMAGE_CHOICE: image_choice("q"),
            QuestionType.MEMORIZE: memorize("q"),
            QuestionType.DISTRACTION: memorize("q", distraction=True),
            QuestionType.SEQUENCE: sequence("q"),
            QuestionType.TRUE_FALSE: true_false("q"),
            QuestionType.OPEN_TEXT: open_text("q"),
        }
        self.assertEqual(set(samples), set(QuestionType))
        for qtype, q in samples.items():
            expected = ENTER_MEMORIZE if qtype in (QuestionType.MEMORIZE, QuestionType.DISTRACTION) else ENTER_ANSWER
            self.assertEqual(entry_phase(q), expected, qtype)
            answer_options(q, "bp")  # every type renders

    def test_recall_order_is_stable_per_blueprint(self) -> None:
        q = memorize("m1")
        self.assertEqual(recall_order("bp-1", q), recall_order("bp-1", q))
        self.assertEqual(sorted(recall_order("bp-1", q)), [0, 1, 2])

    def test_choice_options_submit_option_ids(self) -> None:
        opts = answer_options(choice("q"))
        self.assertEqual([o.value for o in opts], ["a", "b", "c"])

    def test_image_and_recall_options_carry_original_indices(self) -> None:
        grid = answer_options(image_choice("q"))
        self.assertEqual([o.value for o in grid], [0, 1, 2, 3])
        self.assertEqual(grid[3].image_url, "d.png")
        q = memorize("m1")
        recall = answer_options(q, "bp-1")
        self.assertEqual([o.value for o in recall], list(recall_order("bp-1", q)))
        self.assertEqual([o.image_url for o in recall], [("x.png", "y.png", "z.png")[i] for i in recall_order("bp-1", q)])

    def test_true_false_options(self) -> None:
        self.assertEqual([o.value for o in answer_options(true_false("t"))], [True, False])


if __name__ == "__main__":
    unittest.main()
