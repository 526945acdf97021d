from __future__ import annotations

"""Tiny pub/sub event bus for session lifecycle notifications."""

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

# Event names emitted by TestSession
PHASE_CHANGED = "phase_changed"
ANSWER_RECORDED = "answer_recorded"
LATE_ACTION_DISCARDED = "late_action_discarded"
COMPLETED = "completed"
SCORED = "scored"
SCORING_FAILED = "scoring_failed"
ABANDONED = "abandoned"


class EventBus:
    def __init__(self) -> None:
        self._subs: Dict[str, List[Callable[[Any], None]]] = {}

    def subscribe(self, event: str, handler: Callable[[Any], None]) -> None:
        self._subs.setdefault(event, []).append(handler)

    def unsubscribe(self, event: str, handler: Callable[[Any], None]) -> None:
        handlers = self._subs.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: str, payload: Any) -> None:
        for h in list(self._subs.get(event, [])):
            try:
                h(payload)
            except Exception:
                # subscriber errors are logged, not propagated
                logger.exception("Handler for '%s' failed", event)
