from __future__ import annotations

"""Smoothing utilities (EWMA by session)."""

import pandas as pd


def ewma_by_session(
    df: pd.DataFrame,
    value_col: str,
    span: int,
    group_cols: list[str] | None = None,
) -> pd.DataFrame:
    """Apply EWMA smoothing per group over session order.

    Groups a Series rather than the DataFrame and aligns the result on the
    row index. Returns a copy of df with a new column f"{value_col}_smooth"
    and rows sorted by session_idx.
    """
    g = df.sort_values("session_idx", kind="stable").copy()
    values = g[value_col].astype("float64")
    if group_cols:
        keys = [g[c].astype("string") for c in group_cols]
        smooth = values.groupby(keys).transform(lambda s: s.ewm(span=span).mean())
    else:
        smooth = values.ewm(span=span).mean()
    g[f"{value_col}_smooth"] = smooth.reindex(g.index).astype("float32")
    return g
