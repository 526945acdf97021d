from .schema import (
    AnswerValue,
    CategoryPerformance,
    ResultEnvelope,
    ScoreReport,
    SubmittedAnswer,
    resolve_answers,
)
from .result_manager import InMemoryResultSink, ParquetResultSink, ResultSink

__all__ = [
    "AnswerValue",
    "CategoryPerformance",
    "ResultEnvelope",
    "ScoreReport",
    "SubmittedAnswer",
    "resolve_answers",
    "InMemoryResultSink",
    "ParquetResultSink",
    "ResultSink",
]
