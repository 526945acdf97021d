from __future__ import annotations

"""Minimal tracing helpers (Explain Mode).

Enable from config (`explain.enabled`) and emit terse, readable one-line
JSON records at session milestones.
"""

import json
import logging
from typing import Any, Dict

logger = logging.getLogger("aptiprep.explain")

_ENABLED = False


def enable(flag: bool = True) -> None:
    global _ENABLED
    _ENABLED = bool(flag)


def enabled() -> bool:
    return _ENABLED


def trace(event: str, payload: Dict[str, Any] | None = None) -> None:
    if not _ENABLED:
        return
    # keep it short; one line JSON
    data = json.dumps(payload or {}, separators=(",", ":"), default=str)
    logger.info("[EXPLAIN] %s :: %s", event, data)
