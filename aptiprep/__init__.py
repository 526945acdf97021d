"""aptiprep: test administration and scoring engine for aptitude-test practice.

Exposes the blueprint generator, the session state machine and the scoring
engine so callers can simply `import aptiprep`.
"""

from __future__ import annotations

from .errors import (
    AptiprepError,
    ConfigError,
    EmptyBlueprintError,
    InvalidTransitionError,
    ValidationError,
)
from .engine.blueprint import CategoryQuota, TestBlueprint, TestBlueprintConfig, generate
from .engine.scoring import CategoryWeight, ScoreWeightConfig, score
from .engine.session import SessionSettings, TestSession
from .engine.timers import ManualClock, SchedClock
from .engine.validator import is_correct
from .questions.bank import InMemoryQuestionBank, QuestionBank, load_question_bank
from .questions.models import Difficulty, Question, QuestionType
from .results.schema import CategoryPerformance, ResultEnvelope, ScoreReport, SubmittedAnswer

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "AptiprepError",
    "ConfigError",
    "EmptyBlueprintError",
    "InvalidTransitionError",
    "ValidationError",
    "CategoryQuota",
    "TestBlueprint",
    "TestBlueprintConfig",
    "generate",
    "CategoryWeight",
    "ScoreWeightConfig",
    "score",
    "SessionSettings",
    "TestSession",
    "ManualClock",
    "SchedClock",
    "is_correct",
    "InMemoryQuestionBank",
    "QuestionBank",
    "load_question_bank",
    "Difficulty",
    "Question",
    "QuestionType",
    "CategoryPerformance",
    "ResultEnvelope",
    "ScoreReport",
    "SubmittedAnswer",
]
