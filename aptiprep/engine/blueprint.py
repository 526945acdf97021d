from __future__ import annotations

"""Test blueprint generation.

Turns a category/quantity configuration plus a question bank into a concrete,
ordered, immutable test instance.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator

from ..app.explain import trace as xtrace
from ..errors import EmptyBlueprintError
from ..questions.bank import QuestionBank
from ..questions.models import Question
from ..util.randomness import sample_without_replacement

logger = logging.getLogger(__name__)


class CategoryQuota(BaseModel):
    """How many questions to draw from one category."""

    min_questions: int = Field(1, ge=0)
    max_questions: int = Field(3, ge=1)
    desired: Optional[int] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _min_le_max(self) -> "CategoryQuota":
        if self.min_questions > self.max_questions:
            raise ValueError("min_questions must be <= max_questions")
        return self

    def count_for(self, available: int) -> int:
        """n = clamp(desired, max(min, 1), min(max, available))."""
        desired = self.max_questions if self.desired is None else self.desired
        lo = max(self.min_questions, 1)
        hi = min(self.max_questions, available)
        return max(0, min(max(desired, lo), hi))


class TestBlueprintConfig(BaseModel):
    name: str = "Generated Test"
    categories: List[str] = Field(min_length=1)
    distribution: Dict[str, CategoryQuota] = Field(default_factory=dict)
    time_limit_minutes: float = Field(30, gt=0)
    weights: Optional[str] = None
    show_feedback: bool = False

    def quota_for(self, category: str) -> CategoryQuota:
        return self.distribution.get(category) or CategoryQuota()


@dataclass(frozen=True)
class Block:
    """Consecutive run of questions sharing a category."""

    name: str
    start: int
    stop: int

    def __len__(self) -> int:
        return self.stop - self.start


@dataclass(frozen=True)
class TestBlueprint:
    id: str
    title: str
    questions: Tuple[Question, ...]
    time_limit_seconds: int
    created_at: datetime
    skipped_categories: Tuple[str, ...] = ()
    weights_name: Optional[str] = None
    show_feedback: bool = False
    blocks: Tuple[Block, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        seen = set()
        for q in self.questions:
            if q.id in seen:
                raise ValueError(f"Duplicate question id in blueprint: {q.id}")
            seen.add(q.id)
        object.__setattr__(self, "blocks", _split_blocks(self.questions))

    def __len__(self) -> int:
        return len(self.questions)

    def index_of(self, question_id: str) -> int:
        for i, q in enumerate(self.questions):
            if q.id == question_id:
                return i
        raise KeyError(question_id)

    def block_index_of(self, question_index: int) -> int:
        for b_idx, block in enumerate(self.blocks):
            if block.start <= question_index < block.stop:
                return b_idx
        raise IndexError(question_index)

    def to_json(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "questions": [q.to_dict() for q in self.questions],
            "time_limit_seconds": self.time_limit_seconds,
            "created_at": self.created_at.isoformat(),
            "skipped_categories": list(self.skipped_categories),
            "weights_name": self.weights_name,
            "show_feedback": self.show_feedback,
        }

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "TestBlueprint":
        return cls(
            id=str(data["id"]),
            title=str(data.get("title", "Generated Test")),
            questions=tuple(Question.from_dict(q) for q in data.get("questions", [])),
            time_limit_seconds=int(data["time_limit_seconds"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            skipped_categories=tuple(data.get("skipped_categories", [])),
            weights_name=data.get("weights_name"),
            show_feedback=bool(data.get("show_feedback", False)),
        )


def _split_blocks(questions: Tuple[Question, ...]) -> Tuple[Block, ...]:
    blocks: List[Block] = []
    start = 0
    for i in range(1, len(questions) + 1):
        if i == len(questions) or questions[i].category != questions[start].category:
            blocks.append(Block(name=questions[start].category, start=start, stop=i))
            start = i
    return tuple(blocks)


def generate(
    config: TestBlueprintConfig,
    bank: QuestionBank,
    rng: Optional[random.Random] = None,
) -> TestBlueprint:
    """Build a blueprint from the bank according to the configuration.

    Categories with no eligible questions are skipped and recorded; the call
    only fails when nothing at all could be selected.
    """
    rng = rng or random.Random()
    selected: List[Question] = []
    selected_ids: set[str] = set()
    skipped: List[str] = []
    requested: List[str] = []

    for category in config.categories:
        if category in requested:
            logger.warning("Category '%s' requested twice; using first occurrence", category)
            continue
        requested.append(category)

        pool: List[Question] = []
        pool_ids: set[str] = set()
        for q in bank.fetch_by_category(category):
            if q.is_active and q.id not in selected_ids and q.id not in pool_ids:
                pool.append(q)
                pool_ids.add(q.id)
        if not pool:
            logger.warning("No active questions found for category: %s", category)
            skipped.append(category)
            continue

        quota = config.quota_for(category)
        n = quota.count_for(len(pool))
        if len(pool) < quota.min_questions:
            logger.warning(
                "Category '%s' has %d active questions, fewer than minimum %d",
                category,
                len(pool),
                quota.min_questions,
            )
        picked = sample_without_replacement(pool, n, rng)
        selected_ids.update(q.id for q in picked)
        selected.extend(picked)
        xtrace("category_selected", {"category": category, "available": len(pool), "picked": n})

    if not selected:
        raise EmptyBlueprintError(skipped)

    blueprint = TestBlueprint(
        id=str(uuid4()),
        title=config.name,
        questions=tuple(selected),
        time_limit_seconds=int(round(config.time_limit_minutes * 60)),
        created_at=datetime.now(timezone.utc),
        skipped_categories=tuple(skipped),
        weights_name=config.weights,
        show_feedback=config.show_feedback,
    )
    logger.info(
        "Blueprint %s: %d questions across %d blocks (skipped: %s)",
        blueprint.id,
        len(blueprint),
        len(blueprint.blocks),
        ", ".join(skipped) or "none",
    )
    return blueprint
