from __future__ import annotations

"""Result sinks: where scored sessions go once the engine is done with them.

The engine only calls `save(envelope)`; swap the in-memory sink for the
Parquet one without changing call sites.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from storage import (
    CategoryResultRow,
    SessionResultRow,
    append_category_results,
    init_store,
    upsert_session_result,
    validate_records,
)

from .schema import ResultEnvelope

logger = logging.getLogger(__name__)


class ResultSink(Protocol):
    def save(self, envelope: ResultEnvelope) -> None:
        ...


class InMemoryResultSink:
    def __init__(self) -> None:
        self._results: Dict[str, ResultEnvelope] = {}

    def save(self, envelope: ResultEnvelope) -> None:
        self._results[envelope.session_id] = envelope

    def get(self, session_id: str) -> Optional[ResultEnvelope]:
        return self._results.get(session_id)

    def for_user(self, user_id: str) -> List[ResultEnvelope]:
        return [r for r in self._results.values() if r.user_id == user_id]

    def __len__(self) -> int:
        return len(self._results)

    def summarize(self, session_id: str) -> Dict[str, Any]:
        env = self._results[session_id]
        rep = env.report
        return {
            "session_id": session_id,
            "total": rep.total_questions,
            "correct": rep.correct_answers,
            "score": rep.total_score,
            "pct": rep.percentage_score,
        }


class ParquetResultSink:
    """Writes one session row and one row per category through `storage`."""

    def __init__(self, data_dir: str | Path) -> None:
        self.data_dir = Path(data_dir)
        init_store(self.data_dir)

    def save(self, envelope: ResultEnvelope) -> None:
        rep = envelope.report
        rows = [
            CategoryResultRow(
                session_id=envelope.session_id,
                test_id=envelope.test_id,
                user_id=envelope.user_id,
                completed_at=envelope.completed_at,
                category=category,
                Q=perf.total_questions,
                C=perf.correct_answers,
                points=perf.score,
            )
            for category, perf in rep.category_performance.items()
            if perf.total_questions > 0
        ]
        if rows:
            append_category_results(validate_records(rows), self.data_dir)
        upsert_session_result(
            SessionResultRow(
                session_id=envelope.session_id,
                test_id=envelope.test_id,
                user_id=envelope.user_id,
                started_at=envelope.started_at,
                completed_at=envelope.completed_at,
                time_spent_s=envelope.time_spent_seconds,
                completion_reason=envelope.completion_reason,
                total_score=rep.total_score,
                percentage_score=rep.percentage_score,
                total_questions=rep.total_questions,
                correct_answers=rep.correct_answers,
            ),
            self.data_dir,
        )
        logger.info("Saved results for session %s to %s", envelope.session_id, self.data_dir)
