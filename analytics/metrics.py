from __future__ import annotations

"""Metric computations for per-row and per-category analytics."""

import numpy as np
import pandas as pd

from .config import AnalyticsConfig

STATUS_STRENGTH = "strength"
STATUS_WEAKNESS = "weakness"
STATUS_NEUTRAL = "neutral"
STATUS_UNRATED = "unrated"


def classify(pct: pd.Series, questions: pd.Series, cfg: AnalyticsConfig) -> pd.Series:
    """Label each percentage the same way the score report does."""
    pct = pct.astype("float64")
    conditions = [
        questions.astype("int64") < cfg.min_questions,
        pct >= cfg.strength_threshold,
        pct < cfg.weakness_threshold,
    ]
    choices = [STATUS_UNRATED, STATUS_STRENGTH, STATUS_WEAKNESS]
    return pd.Series(np.select(conditions, choices, default=STATUS_NEUTRAL), index=pct.index, dtype="string")


def compute_metrics(df: pd.DataFrame, cfg: AnalyticsConfig) -> pd.DataFrame:
    """Compute accuracy, percentage, points per question and status.

    Returns a copy with added columns:
    - acc, pct, points_per_q, status
    """
    out = df.copy()
    # Avoid divide by zero; Q should be >=1 by construction
    q = out["Q"].astype("float32").where(out["Q"] > 0, other=1.0)
    out["acc"] = (out["C"].astype("float32") / q).astype("float32")
    out["pct"] = (out["acc"] * 100).astype("float32")
    out["points_per_q"] = (out["points"].astype("float32") / q).astype("float32")
    out["status"] = classify(out["pct"], out["Q"], cfg)
    return out


def category_summary(df: pd.DataFrame, cfg: AnalyticsConfig) -> pd.DataFrame:
    """Aggregate all sessions per category; percentages come from summed counts."""
    cols = ["category", "sessions", "Q", "C", "points", "pct", "status"]
    if df.empty:
        return pd.DataFrame({c: pd.Series(dtype="object") for c in cols})
    g = (
        df.assign(category=df["category"].astype("string"))
        .groupby("category", observed=True)
        .agg(sessions=("session_id", "nunique"), Q=("Q", "sum"), C=("C", "sum"), points=("points", "sum"))
        .reset_index()
    )
    q = g["Q"].astype("float64").where(g["Q"] > 0, other=1.0)
    g["pct"] = (g["C"].astype("float64") / q * 100).astype("float32")
    g["status"] = classify(g["pct"], g["Q"], cfg)
    return g[cols].sort_values("category").reset_index(drop=True)
