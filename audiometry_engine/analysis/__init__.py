"""
Analysis module for audiometry results.

This module contains functions for:
- Hearing loss classification and recommendations
- Progression traces and tabular exports of sessions
- Hearing history: frequency range status, trends and insights
"""

from .classification import (
    HearingClassification,
    HearingModel,
    HearingResult,
    ResponseClassifier,
    classify_mean,
    classify_levels,
    generate_recommendations,
    model_eligible,
)
from .history import (
    HistoryInsight,
    RangeStatus,
    frequency_range_status,
    frequency_response,
    history_insights,
    history_recommendations,
    load_history,
    trend_analysis,
    trend_frame,
)
from .reporting import format_progression, format_result, session_to_dataframe, sessions_to_dataframe

__all__ = [
    "HearingClassification",
    "HearingModel",
    "HearingResult",
    "ResponseClassifier",
    "classify_mean",
    "classify_levels",
    "generate_recommendations",
    "model_eligible",
    "format_progression",
    "format_result",
    "session_to_dataframe",
    "sessions_to_dataframe",
    "HistoryInsight",
    "RangeStatus",
    "frequency_range_status",
    "frequency_response",
    "history_insights",
    "history_recommendations",
    "load_history",
    "trend_analysis",
    "trend_frame",
]
