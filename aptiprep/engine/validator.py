from __future__ import annotations

"""Answer validation: decide correctness of one answer for one question.

Pure functions only; no session or clock involved. Dispatch is keyed by
question type and covers every member of QuestionType.
"""

from typing import Any, Callable, Dict, Optional

from ..questions.models import (
    ChoicePayload,
    ImageChoicePayload,
    MemorizePayload,
    OpenTextPayload,
    Question,
    QuestionType,
    SequencePayload,
    TrueFalsePayload,
)
from ..results.schema import SubmittedAnswer


def _as_index(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value.strip())
    return None


def _check_choice(question: Question, value: Any) -> bool:
    payload: ChoicePayload = question.payload  # type: ignore[assignment]
    correct = payload.correct_option
    if isinstance(value, str):
        return value == correct.id
    # positional answers only as real ints; strings are always option ids
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    if not (0 <= value < len(payload.options)):
        return False
    return payload.options[value].id == correct.id


def _check_image(question: Question, value: Any) -> bool:
    payload: ImageChoicePayload = question.payload  # type: ignore[assignment]
    return _as_index(value) == payload.correct_index


def _check_recall(question: Question, value: Any) -> bool:
    payload: MemorizePayload = question.payload  # type: ignore[assignment]
    return _as_index(value) == payload.target_index


def _check_sequence(question: Question, value: Any) -> bool:
    payload: SequencePayload = question.payload  # type: ignore[assignment]
    return str(value) == payload.expected


def _check_true_false(question: Question, value: Any) -> bool:
    payload: TrueFalsePayload = question.payload  # type: ignore[assignment]
    if isinstance(value, str):
        v = value.strip().lower()
        if v not in ("true", "false"):
            return False
        value = v == "true"
    if not isinstance(value, bool):
        return False
    return value is payload.correct


def _check_open_text(question: Question, value: Any) -> bool:
    # Exact match after trim/casefold; no fuzzy matching.
    payload: OpenTextPayload = question.payload  # type: ignore[assignment]
    if not isinstance(value, str):
        return False
    return value.strip().lower() == payload.expected.strip().lower()


_CHECKERS: Dict[QuestionType, Callable[[Question, Any], bool]] = {
    QuestionType.PLAIN_CHOICE: _check_choice,
    QuestionType.IMAGE_CHOICE: _check_image,
    QuestionType.MEMORIZE: _check_recall,
    QuestionType.DISTRACTION: _check_recall,
    QuestionType.SEQUENCE: _check_sequence,
    QuestionType.TRUE_FALSE: _check_true_false,
    QuestionType.OPEN_TEXT: _check_open_text,
}


def checker_for(qtype: QuestionType) -> Callable[[Question, Any], bool]:
    try:
        return _CHECKERS[qtype]
    except KeyError:
        raise TypeError(f"No answer checker for question type {qtype!r}") from None


def is_correct(question: Question, answer: Optional[SubmittedAnswer]) -> bool:
    """Return True when the submitted answer is correct for the question.

    A missing answer, or one whose value is None, is always incorrect.
    """
    if answer is None or answer.value is None:
        return False
    return checker_for(question.type)(question, answer.value)
