from __future__ import annotations

"""Parquet-backed store for scored test results using pandas + pyarrow.

Two tables: (session x category) summary rows, and one row per session.
"""

from pathlib import Path
from typing import Any, Iterable

import pandas as pd

from .schema import DTYPES, SESSION_DTYPES, CategoryResultRow, SessionResultRow

DATA_FILE = "category_results.parquet"
SESSIONS_FILE = "sessions.parquet"


def _empty_df(dtypes: dict[str, Any]) -> pd.DataFrame:
    return pd.DataFrame({k: pd.Series(dtype=v) for k, v in dtypes.items()})


def init_store(data_dir: Path) -> None:
    """Ensure data directory and empty Parquet files with correct schema exist."""
    data_dir = Path(data_dir)
    data_dir.mkdir(parents=True, exist_ok=True)
    stats_path = data_dir / DATA_FILE
    sessions_path = data_dir / SESSIONS_FILE
    if not stats_path.exists():
        _empty_df(DTYPES).to_parquet(stats_path, engine="pyarrow", compression="zstd")
    if not sessions_path.exists():
        _empty_df(SESSION_DTYPES).to_parquet(sessions_path, engine="pyarrow", compression="zstd")


def _fix_dtypes(df: pd.DataFrame, dtypes: dict[str, Any]) -> pd.DataFrame:
    for col, dt in dtypes.items():
        if col not in df.columns:
            df[col] = pd.NA
        if isinstance(dt, pd.DatetimeTZDtype):
            df[col] = pd.to_datetime(df[col], utc=True)
        else:
            df[col] = df[col].astype(dt)
    return df[list(dtypes.keys())]


def validate_records(records: Iterable[CategoryResultRow | dict]) -> pd.DataFrame:
    """Validate category rows and return a DataFrame with proper dtypes.

    Counts and the C <= Q constraint are enforced by Pydantic.
    """
    if isinstance(records, (str, bytes, dict)):
        raise TypeError("records must be an iterable of CategoryResultRow")
    rows = [r if isinstance(r, CategoryResultRow) else CategoryResultRow.model_validate(r) for r in records]
    df = pd.DataFrame([r.model_dump() for r in rows])
    return _fix_dtypes(df, DTYPES)


def append_category_results(df_new: pd.DataFrame, data_path: Path) -> None:
    """Append rows to the category results table.

    Reads existing, concatenates, fixes dtypes, removes exact duplicates and
    writes back.
    """
    f = Path(data_path) / DATA_FILE
    if f.exists():
        df_old = pd.read_parquet(f, engine="pyarrow")
    else:
        df_old = _empty_df(DTYPES)
    df_new = _fix_dtypes(df_new.copy(), DTYPES)
    frames = [d for d in (_fix_dtypes(df_old, DTYPES), df_new) if not d.empty]
    combined = pd.concat(frames, ignore_index=True) if frames else _empty_df(DTYPES)
    combined = _fix_dtypes(combined, DTYPES).drop_duplicates()  # exact duplicate rows only
    combined.to_parquet(f, engine="pyarrow", compression="zstd", index=False)


def upsert_session_result(row: SessionResultRow | dict, data_path: Path) -> None:
    """Insert or update a single session row keyed by session_id."""
    f = Path(data_path) / SESSIONS_FILE
    rec = SessionResultRow.model_validate(row if isinstance(row, dict) else row.model_dump())
    df_new = _fix_dtypes(pd.DataFrame([rec.model_dump()]), SESSION_DTYPES)
    if f.exists():
        df = pd.read_parquet(f, engine="pyarrow")
        # drop any existing with same session_id
        if not df.empty:
            df = df[df["session_id"].astype("string") != rec.session_id]
        df = pd.concat([d for d in (df, df_new) if not d.empty], ignore_index=True)
    else:
        df = df_new
    _fix_dtypes(df, SESSION_DTYPES).to_parquet(f, engine="pyarrow", compression="zstd", index=False)


def load_sessions(data_path: Path) -> pd.DataFrame:
    f = Path(data_path) / SESSIONS_FILE
    if not f.exists():
        return _empty_df(SESSION_DTYPES)
    return _fix_dtypes(pd.read_parquet(f, engine="pyarrow"), SESSION_DTYPES)


def load_all(data_path: Path) -> pd.DataFrame:
    """Load the full category results table and compute convenience columns.

    Adds:
    - acc: float32 = C / Q
    - pct: float32 = acc * 100
    """
    f = Path(data_path) / DATA_FILE
    if not f.exists():
        return _empty_df(DTYPES).assign(acc=pd.Series(dtype="float32"), pct=pd.Series(dtype="float32"))
    df = _fix_dtypes(pd.read_parquet(f, engine="pyarrow"), DTYPES)
    # Avoid division warnings; compute as float32
    q = df["Q"].astype("float32").where(df["Q"] > 0, other=1.0)
    df["acc"] = (df["C"].astype("float32") / q).astype("float32")
    df["pct"] = (df["acc"] * 100).astype("float32")
    return df


def query_trend(df: pd.DataFrame, *, category: str, user_id: str | None = None) -> pd.DataFrame:
    """Filter rows for one category (optionally one user) and sort by completion time."""
    mask = df["category"].astype("string") == category
    if user_id is not None:
        mask &= df["user_id"].astype("string") == user_id
    dff = df[mask.fillna(False)]
    return dff.sort_values("completed_at").reset_index(drop=True)


def export_ndjson(df: pd.DataFrame, out_path: Path) -> None:
    """Export a DataFrame to line-delimited JSON (NDJSON) for quick inspection."""
    Path(out_path).parent.mkdir(parents=True, exist_ok=True)
    df.to_json(out_path, orient="records", lines=True, date_format="iso")
