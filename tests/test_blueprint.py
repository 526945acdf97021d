import random
import unittest
from collections import Counter

from aptiprep.engine.blueprint import CategoryQuota, TestBlueprint, TestBlueprintConfig, generate
from aptiprep.errors import EmptyBlueprintError
from aptiprep.questions.bank import InMemoryQuestionBank

from factories import choice, sequence


def bank_with(**counts: int) -> InMemoryQuestionBank:
    bank = InMemoryQuestionBank()
    for category, n in counts.items():
        for i in range(n):
            bank.add(choice(f"{category}-{i}", category=category))
    return bank


class DuplicatingBank:
    """Returns every question twice to exercise duplicate suppression."""

    def __init__(self, questions):
        self._questions = list(questions)

    def fetch_by_category(self, category):
        picked = [q for q in self._questions if q.category == category]
        return picked + picked


class CategoryQuotaTests(unittest.TestCase):
    def test_desired_defaults_to_max(self) -> None:
        self.assertEqual(CategoryQuota(min_questions=1, max_questions=3).count_for(10), 3)

    def test_clamped_to_available(self) -> None:
        self.assertEqual(CategoryQuota(min_questions=1, max_questions=5).count_for(2), 2)

    def test_desired_below_min_is_raised_to_min(self) -> None:
        self.assertEqual(CategoryQuota(min_questions=2, max_questions=5, desired=0).count_for(10), 2)

    def test_min_zero_still_draws_one(self) -> None:
        self.assertEqual(CategoryQuota(min_questions=0, max_questions=3, desired=0).count_for(4), 1)

    def test_min_greater_than_max_rejected(self) -> None:
        with self.assertRaises(ValueError):
            CategoryQuota(min_questions=4, max_questions=2)


class GenerateTests(unittest.TestCase):
    def test_empty_category_is_skipped_not_fatal(self) -> None:
        bank = bank_with(numerical=5)
        cfg = TestBlueprintConfig(
            categories=["verbal", "numerical"],
            distribution={"numerical": CategoryQuota(min_questions=1, max_questions=3)},
        )
        with self.assertLogs("aptiprep.engine.blueprint", level="WARNING"):
            bp = generate(cfg, bank, random.Random(1))
        self.assertTrue(1 <= len(bp) <= 3)
        self.assertTrue(all(q.category == "numerical" for q in bp.questions))
        self.assertEqual(bp.skipped_categories, ("verbal",))

    def test_all_empty_raises(self) -> None:
        cfg = TestBlueprintConfig(categories=["verbal", "spatial"])
        with self.assertRaises(EmptyBlueprintError) as ctx:
            generate(cfg, InMemoryQuestionBank(), random.Random(1))
        self.assertEqual(ctx.exception.skipped_categories, ("verbal", "spatial"))

    def test_length_is_sum_of_clamped_counts_in_request_order(self) -> None:
        bank = bank_with(verbal=10, numerical=2, memory=4)
        cfg = TestBlueprintConfig(
            categories=["numerical", "verbal", "memory"],
            distribution={
                "verbal": CategoryQuota(min_questions=2, max_questions=4),
                "numerical": CategoryQuota(min_questions=1, max_questions=5),
                "memory": CategoryQuota(min_questions=1, max_questions=3, desired=2),
            },
        )
        bp = generate(cfg, bank, random.Random(7))
        self.assertEqual(len(bp), 2 + 4 + 2)
        self.assertEqual([b.name for b in bp.blocks], ["numerical", "verbal", "memory"])
        self.assertEqual([len(b) for b in bp.blocks], [2, 4, 2])

    def test_no_duplicate_ids(self) -> None:
        questions = [choice(f"v{i}") for i in range(3)]
        cfg = TestBlueprintConfig(
            categories=["verbal", "verbal"],
            distribution={"verbal": CategoryQuota(min_questions=1, max_questions=6)},
        )
        bp = generate(cfg, DuplicatingBank(questions), random.Random(3))
        ids = [q.id for q in bp.questions]
        self.assertEqual(len(ids), len(set(ids)))
        self.assertEqual(len(ids), 3)

    def test_inactive_questions_excluded(self) -> None:
        bank = InMemoryQuestionBank([choice("a1"), choice("a2", is_active=False)])
        bp = generate(TestBlueprintConfig(categories=["verbal"]), bank, random.Random(0))
        self.assertEqual([q.id for q in bp.questions], ["a1"])

    def test_fewer_than_minimum_warns(self) -> None:
        bank = bank_with(verbal=1)
        cfg = TestBlueprintConfig(
            categories=["verbal"],
            distribution={"verbal": CategoryQuota(min_questions=3, max_questions=5)},
        )
        with self.assertLogs("aptiprep.engine.blueprint", level="WARNING") as logs:
            bp = generate(cfg, bank, random.Random(0))
        self.assertEqual(len(bp), 1)
        self.assertTrue(any("fewer than minimum" in line for line in logs.output))

    def test_seeded_generation_is_reproducible(self) -> None:
        bank = bank_with(verbal=10)
        cfg = TestBlueprintConfig(categories=["verbal"])
        a = generate(cfg, bank, random.Random(42))
        b = generate(cfg, bank, random.Random(42))
        self.assertEqual([q.id for q in a.questions], [q.id for q in b.questions])

    def test_selection_is_roughly_uniform(self) -> None:
        bank = bank_with(verbal=4)
        cfg = TestBlueprintConfig(
            categories=["verbal"],
            distribution={"verbal": CategoryQuota(min_questions=1, max_questions=1)},
        )
        rng = random.Random(2024)
        counts = Counter(generate(cfg, bank, rng).questions[0].id for _ in range(4000))
        self.assertEqual(set(counts), {f"verbal-{i}" for i in range(4)})
        for n in counts.values():
            self.assertTrue(850 < n < 1150, counts)

    def test_time_limit_and_flags_carried(self) -> None:
        bank = bank_with(verbal=2)
        cfg = TestBlueprintConfig(categories=["verbal"], time_limit_minutes=1.5, weights="default", show_feedback=True)
        bp = generate(cfg, bank, random.Random(0))
        self.assertEqual(bp.time_limit_seconds, 90)
        self.assertEqual(bp.weights_name, "default")
        self.assertTrue(bp.show_feedback)

    def test_json_round_trip(self) -> None:
        bank = InMemoryQuestionBank([choice("v1"), sequence("s1")])
        bp = generate(TestBlueprintConfig(categories=["verbal", "numerical"]), bank, random.Random(0))
        again = TestBlueprint.from_json(bp.to_json())
        self.assertEqual(again.id, bp.id)
        self.assertEqual(again.questions, bp.questions)
        self.assertEqual(again.blocks, bp.blocks)


if __name__ == "__main__":
    unittest.main()
