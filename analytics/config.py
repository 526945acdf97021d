from __future__ import annotations

"""Analytics configuration (hyperparameters) using Pydantic."""

from pydantic import BaseModel, Field, model_validator


class AnalyticsConfig(BaseModel):
    """Hyperparameters for analytics computations and smoothing.

    - strength_threshold: category pct at or above which it counts as a strength
    - weakness_threshold: category pct below which it counts as a weakness
    - smoothing_span: EWMA span in sessions (>1)
    - min_questions: categories with fewer questions in total are left unclassified
    """

    strength_threshold: float = Field(75.0, ge=0, le=100)
    weakness_threshold: float = Field(50.0, ge=0, le=100)
    smoothing_span: int = Field(5, gt=1)
    min_questions: int = Field(1, ge=1)

    @model_validator(mode="after")
    def _ordered(self) -> "AnalyticsConfig":
        if self.weakness_threshold > self.strength_threshold:
            raise ValueError("weakness_threshold must be <= strength_threshold")
        return self
