from __future__ import annotations

"""Presentation-phase selector and read-only phase views.

Decides which phase a question opens with and what each phase shows. The
views are plain data for whatever front end drives the session.
"""

import random
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from ..questions.models import (
    ChoicePayload,
    ImageChoicePayload,
    MemorizePayload,
    Question,
    QuestionType,
    SequencePayload,
)

# Phase names used by the entry selector; kept as strings to avoid importing
# the state module (which imports this one).
ENTER_MEMORIZE = "memorize"
ENTER_ANSWER = "awaiting_answer"

_ENTRY: Dict[QuestionType, str] = {
    QuestionType.PLAIN_CHOICE: ENTER_ANSWER,
    QuestionType.IMAGE_CHOICE: ENTER_ANSWER,
    QuestionType.MEMORIZE: ENTER_MEMORIZE,
    QuestionType.DISTRACTION: ENTER_MEMORIZE,
    QuestionType.SEQUENCE: ENTER_ANSWER,
    QuestionType.TRUE_FALSE: ENTER_ANSWER,
    QuestionType.OPEN_TEXT: ENTER_ANSWER,
}


def entry_phase(question: Question) -> str:
    try:
        return _ENTRY[question.type]
    except KeyError:
        raise TypeError(f"No presentation for question type {question.type!r}") from None


@dataclass(frozen=True)
class ViewOption:
    value: object
    label: str = ""
    image_url: Optional[str] = None


@dataclass(frozen=True)
class PhaseView:
    phase: str
    question_id: Optional[str] = None
    question_type: Optional[str] = None
    prompt: str = ""
    options: Tuple[ViewOption, ...] = ()
    selectable: bool = False
    phase_remaining_ms: Optional[int] = None
    total_remaining_ms: int = 0
    block_name: Optional[str] = None
    block_number: int = 0
    block_count: int = 0
    question_number: int = 0
    question_count: int = 0


def recall_order(blueprint_id: str, question: Question) -> Tuple[int, ...]:
    """Display order of the images during recall, stable for one session."""
    payload: MemorizePayload = question.payload  # type: ignore[assignment]
    order = list(range(len(payload.images)))
    random.Random(f"{blueprint_id}:{question.id}").shuffle(order)
    return tuple(order)


def answer_options(question: Question, blueprint_id: str = "") -> Tuple[ViewOption, ...]:
    """Selectable options for the answering phase; values are what to submit."""
    qtype = question.type
    if qtype is QuestionType.PLAIN_CHOICE:
        choices: ChoicePayload = question.payload  # type: ignore[assignment]
        return tuple(ViewOption(value=o.id, label=o.text, image_url=o.image_url) for o in choices.options)
    if qtype is QuestionType.IMAGE_CHOICE:
        grid: ImageChoicePayload = question.payload  # type: ignore[assignment]
        return tuple(ViewOption(value=i, label=str(i + 1), image_url=u) for i, u in enumerate(grid.images))
    if qtype in (QuestionType.MEMORIZE, QuestionType.DISTRACTION):
        shown: MemorizePayload = question.payload  # type: ignore[assignment]
        return tuple(
            ViewOption(value=i, label=str(pos + 1), image_url=shown.images[i])
            for pos, i in enumerate(recall_order(blueprint_id, question))
        )
    if qtype is QuestionType.SEQUENCE:
        return ()
    if qtype is QuestionType.TRUE_FALSE:
        return (ViewOption(value=True, label="True"), ViewOption(value=False, label="False"))
    if qtype is QuestionType.OPEN_TEXT:
        return ()
    raise TypeError(f"No presentation for question type {qtype!r}")


def memorize_options(question: Question) -> Tuple[ViewOption, ...]:
    payload: MemorizePayload = question.payload  # type: ignore[assignment]
    return tuple(ViewOption(value=i, label=str(i + 1), image_url=u) for i, u in enumerate(payload.images))


def sequence_prompt(question: Question) -> str:
    payload: SequencePayload = question.payload  # type: ignore[assignment]
    shown = ", ".join(payload.sequence)
    return f"{question.text} {shown}, ?".strip() if question.text else f"{shown}, ?"
