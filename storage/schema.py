from __future__ import annotations

"""Schema constants and Pydantic models for Parquet-backed test results."""

from datetime import datetime, timezone
from typing import Literal, Optional

import pandas as pd
from pandas.api.types import CategoricalDtype
from pydantic import BaseModel, Field, field_validator, model_validator

# --- Constants ---

COMPLETION_REASONS = {"finished", "timeout"}


def _cat_dtype(categories: set[str]) -> CategoricalDtype:
    return CategoricalDtype(categories=sorted(categories), ordered=False)


# (session x category) rows
DTYPES = {
    "session_id": "string",
    "test_id": "string",
    "user_id": "string",
    # timezone-aware UTC timestamps
    "completed_at": pd.DatetimeTZDtype(tz="UTC"),
    "category": "string",
    "Q": "UInt16",
    "C": "UInt16",
    "points": "float32",
}

# one row per session
SESSION_DTYPES = {
    "session_id": "string",
    "test_id": "string",
    "user_id": "string",
    "started_at": pd.DatetimeTZDtype(tz="UTC"),
    "completed_at": pd.DatetimeTZDtype(tz="UTC"),
    "time_spent_s": "float32",
    "completion_reason": _cat_dtype(COMPLETION_REASONS),
    "total_score": "float32",
    "percentage_score": "float32",
    "total_questions": "UInt16",
    "correct_answers": "UInt16",
}


def _utc(v: datetime) -> datetime:
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


# --- Pydantic models ---

class CategoryResultRow(BaseModel):
    session_id: str
    test_id: str
    user_id: Optional[str] = None
    completed_at: datetime
    category: str = Field(min_length=1)
    Q: int = Field(ge=1, le=65535)
    C: int = Field(ge=0, le=65535)
    points: float = Field(default=0.0, ge=0)

    @model_validator(mode="after")
    def _c_le_q(self) -> "CategoryResultRow":
        if self.C > self.Q:
            raise ValueError("C must be <= Q")
        return self

    @field_validator("completed_at")
    @classmethod
    def _ensure_utc(cls, v: datetime) -> datetime:
        return _utc(v)


class SessionResultRow(BaseModel):
    session_id: str
    test_id: str
    user_id: Optional[str] = None
    started_at: datetime
    completed_at: datetime
    time_spent_s: float = Field(ge=0)
    completion_reason: Literal["finished", "timeout"]
    total_score: float = Field(ge=0)
    percentage_score: float = Field(ge=0, le=100)
    total_questions: int = Field(ge=0, le=65535)
    correct_answers: int = Field(ge=0, le=65535)

    @field_validator("started_at", "completed_at")
    @classmethod
    def _ensure_utc(cls, v: datetime) -> datetime:
        return _utc(v)
