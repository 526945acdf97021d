from __future__ import annotations

"""Question model: a closed set of question types with typed payloads.

Each question type owns exactly one payload class; the pairing is checked on
construction so downstream code (validator, presentation selector) can rely
on it without re-checking.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


class QuestionType(str, Enum):
    PLAIN_CHOICE = "plain_choice"
    IMAGE_CHOICE = "image_choice"
    MEMORIZE = "memorize"
    DISTRACTION = "distraction"
    SEQUENCE = "sequence"
    TRUE_FALSE = "true_false"
    OPEN_TEXT = "open_text"


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


MEMORY_TYPES = frozenset({QuestionType.MEMORIZE, QuestionType.DISTRACTION})


@dataclass(frozen=True)
class Option:
    id: str
    text: str = ""
    is_correct: bool = False
    image_url: Optional[str] = None


@dataclass(frozen=True)
class ChoicePayload:
    options: Tuple[Option, ...]

    def __post_init__(self) -> None:
        marked = [o for o in self.options if o.is_correct]
        if len(marked) != 1:
            raise ValueError(f"Choice question needs exactly one correct option, got {len(marked)}")

    @property
    def correct_option(self) -> Option:
        return next(o for o in self.options if o.is_correct)


@dataclass(frozen=True)
class ImageChoicePayload:
    images: Tuple[str, ...]
    correct_index: int

    def __post_init__(self) -> None:
        _check_index(self.correct_index, len(self.images), "correct_index")


@dataclass(frozen=True)
class DistractionPrompt:
    """Unrelated filler question shown between memorize and recall."""

    text: str
    options: Tuple[str, ...] = ()
    correct_index: Optional[int] = None


@dataclass(frozen=True)
class MemorizePayload:
    images: Tuple[str, ...]
    target_index: int
    distraction: Optional[DistractionPrompt] = None

    def __post_init__(self) -> None:
        _check_index(self.target_index, len(self.images), "target_index")


@dataclass(frozen=True)
class SequencePayload:
    sequence: Tuple[str, ...]
    expected: str


@dataclass(frozen=True)
class TrueFalsePayload:
    correct: bool


@dataclass(frozen=True)
class OpenTextPayload:
    expected: str


Payload = Union[
    ChoicePayload,
    ImageChoicePayload,
    MemorizePayload,
    SequencePayload,
    TrueFalsePayload,
    OpenTextPayload,
]

PAYLOAD_TYPES: Dict[QuestionType, type] = {
    QuestionType.PLAIN_CHOICE: ChoicePayload,
    QuestionType.IMAGE_CHOICE: ImageChoicePayload,
    QuestionType.MEMORIZE: MemorizePayload,
    QuestionType.DISTRACTION: MemorizePayload,
    QuestionType.SEQUENCE: SequencePayload,
    QuestionType.TRUE_FALSE: TrueFalsePayload,
    QuestionType.OPEN_TEXT: OpenTextPayload,
}


def _check_index(index: int, size: int, name: str) -> None:
    if isinstance(index, bool) or not isinstance(index, int) or not (0 <= index < size):
        raise ValueError(f"{name} {index!r} out of range for {size} images")


@dataclass(frozen=True)
class Question:
    id: str
    category: str
    difficulty: Difficulty
    type: QuestionType
    payload: Payload
    text: str = ""
    is_active: bool = True
    memorize_seconds: Optional[int] = None
    explanation: Optional[str] = None
    tags: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        expected = PAYLOAD_TYPES[self.type]
        if not isinstance(self.payload, expected):
            raise ValueError(
                f"Question {self.id}: type {self.type.value} needs {expected.__name__}, "
                f"got {type(self.payload).__name__}"
            )
        if self.type in MEMORY_TYPES:
            has_distraction = self.payload.distraction is not None  # type: ignore[union-attr]
            if self.type is QuestionType.DISTRACTION and not has_distraction:
                raise ValueError(f"Question {self.id}: distraction question without a distraction prompt")
            if self.type is QuestionType.MEMORIZE and has_distraction:
                raise ValueError(f"Question {self.id}: memorize question carries a distraction prompt")
        elif self.memorize_seconds is not None:
            raise ValueError(f"Question {self.id}: memorize_seconds only applies to memory questions")
        if self.memorize_seconds is not None and self.memorize_seconds <= 0:
            raise ValueError(f"Question {self.id}: memorize_seconds must be positive")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Question":
        """Build a question from a bank record (YAML/JSON shaped)."""
        qtype = QuestionType(data["type"])
        return cls(
            id=str(data["id"]),
            category=str(data["category"]),
            difficulty=Difficulty(str(data.get("difficulty", "medium")).lower()),
            type=qtype,
            payload=_payload_from_dict(qtype, data),
            text=str(data.get("text", "")),
            is_active=bool(data.get("is_active", True)),
            memorize_seconds=data.get("memorize_seconds"),
            explanation=data.get("explanation"),
            tags=tuple(data.get("tags", ()) or ()),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "category": self.category,
            "difficulty": self.difficulty.value,
            "type": self.type.value,
            "text": self.text,
            "is_active": self.is_active,
        }
        if self.memorize_seconds is not None:
            data["memorize_seconds"] = self.memorize_seconds
        if self.explanation is not None:
            data["explanation"] = self.explanation
        if self.tags:
            data["tags"] = list(self.tags)
        data.update(_payload_to_dict(self.payload))
        return data


def _payload_from_dict(qtype: QuestionType, data: Dict[str, Any]) -> Payload:
    if qtype is QuestionType.PLAIN_CHOICE:
        options = []
        for i, opt in enumerate(data.get("options") or []):
            options.append(
                Option(
                    id=str(opt.get("id", i)),
                    text=str(opt.get("text", "")),
                    is_correct=bool(opt.get("is_correct", False)),
                    image_url=opt.get("image_url"),
                )
            )
        return ChoicePayload(options=tuple(options))
    if qtype is QuestionType.IMAGE_CHOICE:
        return ImageChoicePayload(images=tuple(data.get("images") or ()), correct_index=int(data["correct_index"]))
    if qtype in MEMORY_TYPES:
        distraction = None
        raw = data.get("distraction")
        if raw:
            ci = raw.get("correct_index")
            distraction = DistractionPrompt(
                text=str(raw.get("text", "")),
                options=tuple(str(o) for o in raw.get("options") or ()),
                correct_index=int(ci) if ci is not None else None,
            )
        return MemorizePayload(
            images=tuple(data.get("images") or ()),
            target_index=int(data["target_index"]),
            distraction=distraction,
        )
    if qtype is QuestionType.SEQUENCE:
        return SequencePayload(
            sequence=tuple(str(s) for s in data.get("sequence") or ()),
            expected=str(data["expected"]),
        )
    if qtype is QuestionType.TRUE_FALSE:
        return TrueFalsePayload(correct=bool(data["correct"]))
    if qtype is QuestionType.OPEN_TEXT:
        return OpenTextPayload(expected=str(data["expected"]))
    raise ValueError(f"Unknown question type: {qtype}")


def _payload_to_dict(payload: Payload) -> Dict[str, Any]:
    if isinstance(payload, ChoicePayload):
        return {
            "options": [
                {"id": o.id, "text": o.text, "is_correct": o.is_correct, "image_url": o.image_url}
                for o in payload.options
            ]
        }
    if isinstance(payload, ImageChoicePayload):
        return {"images": list(payload.images), "correct_index": payload.correct_index}
    if isinstance(payload, MemorizePayload):
        out: Dict[str, Any] = {"images": list(payload.images), "target_index": payload.target_index}
        if payload.distraction is not None:
            out["distraction"] = {
                "text": payload.distraction.text,
                "options": list(payload.distraction.options),
                "correct_index": payload.distraction.correct_index,
            }
        return out
    if isinstance(payload, SequencePayload):
        return {"sequence": list(payload.sequence), "expected": payload.expected}
    if isinstance(payload, TrueFalsePayload):
        return {"correct": payload.correct}
    if isinstance(payload, OpenTextPayload):
        return {"expected": payload.expected}
    raise TypeError(f"Unknown payload: {type(payload).__name__}")
