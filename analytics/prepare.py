from __future__ import annotations

"""Load stored category results and compute derived metrics."""

from pathlib import Path

import pandas as pd

from storage import load_all

from .config import AnalyticsConfig
from .metrics import compute_metrics


def prepare(df: pd.DataFrame, cfg: AnalyticsConfig) -> pd.DataFrame:
    """Sort rows by completion time and compute metrics.

    - Sorts by (completed_at, session_id), stable.
    - Adds a stable session index 'session_idx'.
    """
    df = df.sort_values(["completed_at", "session_id"], kind="stable").reset_index(drop=True)
    df = compute_metrics(df, cfg)
    df["session_idx"] = pd.factorize(df["session_id"])[0]
    return df


def load_and_prepare(data_dir: Path, cfg: AnalyticsConfig) -> pd.DataFrame:
    return prepare(load_all(Path(data_dir)), cfg)
