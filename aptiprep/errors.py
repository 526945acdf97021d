from __future__ import annotations

"""Error taxonomy for the test engine."""

from typing import Iterable, Optional


class AptiprepError(Exception):
    """Base class for engine errors."""


class ConfigError(AptiprepError):
    """Configuration or question bank file could not be read."""


class EmptyBlueprintError(AptiprepError):
    """Generation selected zero questions across all requested categories."""

    def __init__(self, skipped_categories: Iterable[str] = ()) -> None:
        self.skipped_categories = tuple(skipped_categories)
        detail = ", ".join(self.skipped_categories) or "none requested"
        super().__init__(f"Could not generate test: no questions available (skipped: {detail})")


class InvalidTransitionError(AptiprepError):
    """The session state machine was driven outside its contract."""

    def __init__(self, phase: str, action: str, detail: Optional[str] = None) -> None:
        self.phase = phase
        self.action = action
        msg = f"Cannot {action} while in phase '{phase}'"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class ValidationError(AptiprepError):
    """A category has no explicit scoring weight entry.

    Non-fatal: grading falls back to default weights.
    """

    def __init__(self, category: str, detail: Optional[str] = None) -> None:
        self.category = category
        super().__init__(detail or f"No weight entry for category '{category}', using defaults")
