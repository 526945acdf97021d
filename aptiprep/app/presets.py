from __future__ import annotations

"""Curated blueprint parameter presets.

Presets help callers pick sensible defaults quickly; anything passed as an
override wins over the preset.
"""

TEST_PRESETS = {
    "practice": {
        "name": "Practice Test",
        "time_limit_minutes": 30,
        "show_feedback": True,
        "quota": {"min_questions": 1, "max_questions": 3},
    },
    "simulacro": {
        "name": "Simulacro",
        "time_limit_minutes": 60,
        "show_feedback": False,
        "quota": {"min_questions": 3, "max_questions": 5},
    },
    "memory": {
        "name": "Memory Drill",
        "categories": ["memory"],
        "time_limit_minutes": 15,
        "show_feedback": True,
        "quota": {"min_questions": 2, "max_questions": 4},
    },
}
