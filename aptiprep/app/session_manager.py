from __future__ import annotations

"""Session Manager: wires bank, generator, session, scoring and result sink.

Front-end agnostic: callers drive the returned TestSession and the manager
hands the scored result to the configured sink.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..config.config import weights_from_config
from ..engine.blueprint import CategoryQuota, TestBlueprint, TestBlueprintConfig, generate
from ..engine.session import SessionSettings, TestSession
from ..engine.timers import Clock
from ..errors import ConfigError
from ..questions.bank import QuestionBank, load_question_bank
from ..results.result_manager import InMemoryResultSink, ParquetResultSink, ResultSink
from ..results.schema import ResultEnvelope
from ..util.randomness import make_rng
from .events import ABANDONED, SCORED, EventBus
from .explain import trace as xtrace
from .presets import TEST_PRESETS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionContext:
    session_id: str
    user_id: Optional[str]
    started_at: datetime
    preset: str
    params: Dict[str, Any]


@dataclass
class SessionRecord:
    context: SessionContext
    session: TestSession
    saved: bool = False
    save_error: Optional[str] = None


def make_sink(cfg: Dict[str, Any]) -> ResultSink:
    storage = cfg.get("storage", {})
    if storage.get("backend") == "parquet":
        return ParquetResultSink(storage.get("data_dir", "./data"))
    return InMemoryResultSink()


class SessionManager:
    def __init__(
        self,
        cfg: Dict[str, Any],
        bank: QuestionBank,
        *,
        sink: Optional[ResultSink] = None,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.cfg = cfg
        self.bank = bank
        self.sink = sink if sink is not None else make_sink(cfg)
        self.clock = clock
        self.rng = rng or make_rng()
        self.settings = SessionSettings.from_config(cfg)
        self._records: Dict[str, SessionRecord] = {}

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], **kwargs: Any) -> "SessionManager":
        """Build a manager whose bank is loaded from `bank.path`."""
        path = cfg.get("bank", {}).get("path")
        if not path:
            raise ConfigError("bank.path is not set")
        return cls(cfg, load_question_bank(path), **kwargs)

    def build_config(self, preset: str, overrides: Optional[Dict[str, Any]] = None) -> TestBlueprintConfig:
        """Resolve blueprint params: preset -> overrides."""
        if preset not in TEST_PRESETS:
            raise KeyError(f"Unknown preset '{preset}'. Available: {', '.join(sorted(TEST_PRESETS))}")
        params = {**TEST_PRESETS[preset], **(overrides or {})}
        categories: List[str] = list(params.get("categories") or [])
        quota = CategoryQuota.model_validate(params.get("quota") or {})
        distribution = {c: quota for c in categories}
        for cat, q in (params.get("distribution") or {}).items():
            distribution[cat] = q if isinstance(q, CategoryQuota) else CategoryQuota.model_validate(q)
        return TestBlueprintConfig(
            name=params.get("name", "Generated Test"),
            categories=categories,
            distribution=distribution,
            time_limit_minutes=params.get("time_limit_minutes", 30),
            weights=params.get("weights") or self.cfg.get("scoring", {}).get("weights"),
            show_feedback=bool(params.get("show_feedback", False)),
        )

    def start_session(
        self,
        preset: str,
        overrides: Optional[Dict[str, Any]] = None,
        *,
        user_id: Optional[str] = None,
    ) -> TestSession:
        config = self.build_config(preset, overrides)
        blueprint = generate(config, self.bank, self.rng)
        return self.open_session(blueprint, preset=preset, user_id=user_id, params=config.model_dump())

    def open_session(
        self,
        blueprint: TestBlueprint,
        *,
        preset: str = "custom",
        user_id: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> TestSession:
        """Create (but do not start) a session for an existing blueprint."""
        bus = EventBus()
        session = TestSession(
            blueprint,
            clock=self.clock,
            settings=self.settings,
            weights=weights_from_config(self.cfg, blueprint.weights_name),
            bus=bus,
            user_id=user_id,
        )
        ctx = SessionContext(
            session_id=session.session_id,
            user_id=user_id,
            started_at=datetime.now(timezone.utc),
            preset=preset,
            params=dict(params or {}),
        )
        record = SessionRecord(context=ctx, session=session)
        self._records[session.session_id] = record
        bus.subscribe(SCORED, lambda _payload: self._on_scored(record))
        bus.subscribe(ABANDONED, lambda _payload: self._forget(record))
        xtrace("session_opened", {"session": session.session_id, "preset": preset, "questions": len(blueprint)})
        return session

    def get(self, session_id: str) -> Optional[SessionRecord]:
        """Live or unsaved record; saved and abandoned sessions are released."""
        return self._records.get(session_id)

    def __len__(self) -> int:
        return len(self._records)

    def _forget(self, record: SessionRecord) -> None:
        self._records.pop(record.context.session_id, None)

    def _on_scored(self, record: SessionRecord) -> None:
        try:
            self._save(record)
        except Exception as exc:
            record.save_error = str(exc)
            logger.exception("Result sink failed for session %s", record.context.session_id)

    def _save(self, record: SessionRecord) -> None:
        envelope: ResultEnvelope = record.session.envelope()
        self.sink.save(envelope)
        record.saved = True
        record.save_error = None
        self._forget(record)
        logger.info(
            "Session %s scored %.1f (%.1f%%) and saved",
            envelope.session_id,
            envelope.report.total_score,
            envelope.report.percentage_score,
        )

    def retry_save(self, session_id: str) -> None:
        record = self._records[session_id]
        if not record.saved:
            self._save(record)

    def close(self) -> None:
        for record in list(self._records.values()):
            record.session.close()
        if self._records:
            logger.warning("Releasing %d sessions with unsaved results", len(self._records))
        self._records.clear()

