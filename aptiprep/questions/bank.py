from __future__ import annotations

"""Question bank boundary and simple bank implementations.

The engine only needs `fetch_by_category(category)`, returning active
questions. Writes belong to the surrounding content administration.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Protocol

import yaml

from ..errors import ConfigError
from .models import Question

logger = logging.getLogger(__name__)


class QuestionBank(Protocol):
    def fetch_by_category(self, category: str) -> List[Question]:
        ...


class InMemoryQuestionBank:
    """Holds question records in memory; returns only active ones."""

    def __init__(self, questions: Iterable[Question] = ()) -> None:
        self._by_category: Dict[str, List[Question]] = {}
        for q in questions:
            self.add(q)

    def add(self, question: Question) -> None:
        self._by_category.setdefault(question.category, []).append(question)

    def fetch_by_category(self, category: str) -> List[Question]:
        return [q for q in self._by_category.get(category, []) if q.is_active]

    def categories(self) -> List[str]:
        return list(self._by_category.keys())

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_category.values())


def _read_records(path: Path) -> List[Dict[str, Any]]:
    try:
        with path.open("r", encoding="utf-8") as f:
            if path.suffix.lower() == ".json":
                raw = json.load(f)
            else:
                raw = yaml.safe_load(f)
    except FileNotFoundError as exc:
        raise ConfigError(f"Question bank not found: {path}") from exc
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Question bank {path} is not valid: {exc}") from exc
    if raw is None:
        return []
    if isinstance(raw, dict):
        raw = raw.get("questions", [])
    if not isinstance(raw, list):
        raise ConfigError(f"Question bank {path} must hold a list of questions")
    return raw


def load_question_bank(path: str | Path) -> InMemoryQuestionBank:
    """Load a YAML or JSON question file into an in-memory bank.

    Malformed records are logged and skipped so one bad entry does not take
    the whole bank down.
    """
    path = Path(path)
    bank = InMemoryQuestionBank()
    for i, rec in enumerate(_read_records(path)):
        try:
            bank.add(Question.from_dict(rec))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping question #%d in %s: %s", i, path, exc)
    logger.info("Loaded %d questions from %s", len(bank), path)
    return bank
