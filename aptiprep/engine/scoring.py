from __future__ import annotations

"""Scoring engine: grade a completed attempt into a weighted report.

Two numbers are reported side by side and are intentionally unrelated:
`total_score` is the weighted sum of points for correct answers, while
`percentage_score` is the plain share of correct answers.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Union

from pydantic import BaseModel, Field

from ..errors import ValidationError
from ..questions.models import Difficulty
from ..results.schema import CategoryPerformance, ScoreReport, SubmittedAnswer, resolve_answers
from .blueprint import TestBlueprint
from .validator import is_correct

logger = logging.getLogger(__name__)

STRENGTH_THRESHOLD = 75.0
WEAKNESS_THRESHOLD = 50.0


class CategoryWeight(BaseModel):
    base_points: float = Field(1.0, ge=0)
    difficulty_multiplier: Dict[Difficulty, float] = Field(default_factory=dict)

    def points_for(self, difficulty: Difficulty) -> float:
        return self.base_points * self.difficulty_multiplier.get(difficulty, 1.0)


DEFAULT_WEIGHT = CategoryWeight()


class ScoreWeightConfig(BaseModel):
    """Per-category weight table; categories without an entry use defaults."""

    categories: Dict[str, CategoryWeight] = Field(default_factory=dict)

    @classmethod
    def from_table(cls, table: Optional[Mapping[str, Mapping]]) -> "ScoreWeightConfig":
        """Build from the YAML shape `{category: {base_points, difficulty_multiplier}}`."""
        return cls.model_validate({"categories": dict(table or {})})

    def require(self, category: str) -> CategoryWeight:
        try:
            return self.categories[category]
        except KeyError:
            raise ValidationError(category) from None


AnswerLog = Union[Mapping[str, SubmittedAnswer], Iterable[SubmittedAnswer]]


def _percentage(correct: int, total: int) -> float:
    return (correct / total) * 100.0 if total else 0.0


def score(
    blueprint: TestBlueprint,
    answer_log: AnswerLog,
    weights: Optional[ScoreWeightConfig] = None,
    *,
    strength_threshold: float = STRENGTH_THRESHOLD,
    weakness_threshold: float = WEAKNESS_THRESHOLD,
) -> ScoreReport:
    """Grade every blueprint question, answered or not.

    Unanswered questions count as incorrect. Identical inputs always give an
    identical report.
    """
    if weakness_threshold > strength_threshold:
        raise ValueError(
            f"weakness_threshold {weakness_threshold} must not exceed strength_threshold {strength_threshold}"
        )
    weights = weights or ScoreWeightConfig()
    answers = resolve_answers(answer_log)
    question_ids = {q.id for q in blueprint.questions}
    foreign = [qid for qid in answers if qid not in question_ids]
    if foreign:
        logger.warning("Ignoring %d answers for questions outside blueprint %s", len(foreign), blueprint.id)

    total_score = 0.0
    correct_answers = 0
    per_category: Dict[str, Dict[str, float]] = {}
    fallbacks: List[str] = []

    for question in blueprint.questions:
        correct = is_correct(question, answers.get(question.id))
        try:
            weight = weights.require(question.category)
        except ValidationError as exc:
            if question.category not in fallbacks:
                logger.warning("%s", exc)
                fallbacks.append(question.category)
            weight = DEFAULT_WEIGHT
        question_score = weight.points_for(question.difficulty)

        bucket = per_category.setdefault(question.category, {"correct": 0, "total": 0, "score": 0.0})
        bucket["total"] += 1
        if correct:
            total_score += question_score
            correct_answers += 1
            bucket["correct"] += 1
            bucket["score"] += question_score

    performance: Dict[str, CategoryPerformance] = {}
    for category, b in per_category.items():
        performance[category] = CategoryPerformance(
            correct_answers=int(b["correct"]),
            total_questions=int(b["total"]),
            score=float(b["score"]),
            percentage_score=_percentage(int(b["correct"]), int(b["total"])),
        )

    strengths = tuple(c for c, p in performance.items() if p.percentage_score >= strength_threshold)
    weaknesses = tuple(c for c, p in performance.items() if p.percentage_score < weakness_threshold)

    total_questions = len(blueprint.questions)
    return ScoreReport(
        test_id=blueprint.id,
        total_score=total_score,
        percentage_score=_percentage(correct_answers, total_questions),
        total_questions=total_questions,
        correct_answers=correct_answers,
        category_performance=performance,
        strengths=strengths,
        weaknesses=weaknesses,
        weight_fallbacks=tuple(fallbacks),
    )
