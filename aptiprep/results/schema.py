from __future__ import annotations

"""Result dataclasses: submitted answers, per-category performance, reports."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union

AnswerValue = Union[str, int, bool]


@dataclass(frozen=True)
class SubmittedAnswer:
    question_id: str
    value: Optional[AnswerValue]
    submitted_at_ms: int = 0


def resolve_answers(
    answers: Union[Mapping[str, SubmittedAnswer], Iterable[SubmittedAnswer]],
) -> Dict[str, SubmittedAnswer]:
    """Collapse an answer log to one entry per question, last write wins."""
    if isinstance(answers, Mapping):
        return dict(answers)
    resolved: Dict[str, SubmittedAnswer] = {}
    for a in answers:
        resolved[a.question_id] = a
    return resolved


@dataclass(frozen=True)
class CategoryPerformance:
    correct_answers: int
    total_questions: int
    score: float
    percentage_score: float


@dataclass(frozen=True)
class ScoreReport:
    test_id: str
    total_score: float
    percentage_score: float
    total_questions: int
    correct_answers: int
    category_performance: Dict[str, CategoryPerformance] = field(default_factory=dict)
    strengths: Tuple[str, ...] = ()
    weaknesses: Tuple[str, ...] = ()
    weight_fallbacks: Tuple[str, ...] = ()

    def to_json(self) -> Dict[str, Any]:
        data = asdict(self)
        data["strengths"] = list(self.strengths)
        data["weaknesses"] = list(self.weaknesses)
        data["weight_fallbacks"] = list(self.weight_fallbacks)
        return data


@dataclass(frozen=True)
class ResultEnvelope:
    """Payload handed to a result sink once a session has been scored."""

    session_id: str
    test_id: str
    user_id: Optional[str]
    started_at: datetime
    completed_at: datetime
    time_spent_seconds: float
    completion_reason: str
    report: ScoreReport
    answers: Tuple[SubmittedAnswer, ...] = ()

    def to_json(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "test_id": self.test_id,
            "user_id": self.user_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "time_spent_seconds": self.time_spent_seconds,
            "completion_reason": self.completion_reason,
            "report": self.report.to_json(),
            "answers": [asdict(a) for a in self.answers],
        }
