from .config import AnalyticsConfig
from .metrics import category_summary, classify, compute_metrics
from .prepare import load_and_prepare, prepare
from .smoothing import ewma_by_session

__all__ = [
    "AnalyticsConfig",
    "category_summary",
    "classify",
    "compute_metrics",
    "load_and_prepare",
    "prepare",
    "ewma_by_session",
]
