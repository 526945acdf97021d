from .schema import COMPLETION_REASONS, DTYPES, SESSION_DTYPES, CategoryResultRow, SessionResultRow
from .store import (
    init_store,
    validate_records,
    append_category_results,
    upsert_session_result,
    load_sessions,
    load_all,
    query_trend,
    export_ndjson,
)

__all__ = [
    "COMPLETION_REASONS",
    "DTYPES",
    "SESSION_DTYPES",
    "CategoryResultRow",
    "SessionResultRow",
    "init_store",
    "validate_records",
    "append_category_results",
    "upsert_session_result",
    "load_sessions",
    "load_all",
    "query_trend",
    "export_ndjson",
]
