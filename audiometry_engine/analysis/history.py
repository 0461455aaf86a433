"""
Hearing history across saved sessions.

Builds the views a returning user sees: the latest audiogram averaged over
both ears, a status per frequency range, threshold trends over recent
sessions and pattern-based insights.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from ..models import Ear, TestSession
from ..utils.defaults import (
    ASYMMETRY_THRESHOLD_DB,
    NOISE_NOTCH_DB,
    PROGRESSION_DECLINE_DB,
    PROGRESSION_IMPROVEMENT_DB,
    TREND_SESSION_LIMIT,
    TREND_STABLE_DB,
)
from .classification import HearingClassification, classify_levels, classify_mean, generate_recommendations

logger = logging.getLogger(__name__)

# (name, label, lower bound, lower bound inclusive, upper bound inclusive)
FREQUENCY_RANGES = (
    ('low', 'low frequencies (500-1000 Hz)', 500, True, 1000),
    ('mid', 'mid frequencies (1000-4000 Hz)', 1000, False, 4000),
    ('high', 'high frequencies (4000-8000 Hz)', 4000, False, None),
)

_RANGE_STATUS = {
    HearingClassification.NORMAL: ('Normal', 'Good response to {}.', 90),
    HearingClassification.MILD: ('Mild Loss', 'Slight difficulty with {}.', 70),
    HearingClassification.MODERATE: ('Moderate Loss', 'Noticeable difficulty with {}.', 50),
    HearingClassification.MODERATELY_SEVERE: ('Moderate-Severe Loss', 'Significant difficulty with {}.', 35),
    HearingClassification.SEVERE: ('Severe Loss', 'Major difficulty with {}.', 20),
    HearingClassification.PROFOUND: ('Profound Loss', 'Extreme difficulty with {}.', 10),
}

DEFAULT_HISTORY_RECOMMENDATIONS = (
    "Complete a hearing test to get personalized recommendations.",
    "Protect your hearing by avoiding prolonged exposure to loud noises.",
    "Consider using hearing protection in noisy environments.",
)

_INSIGHT_RECOMMENDATIONS = {
    'Potential Noise Exposure': "Avoid loud noise exposure and always use hearing protection in noisy environments.",
    'Asymmetric Hearing': "Consult with an ENT specialist to evaluate the asymmetric hearing pattern between your ears.",
    'Progressive Hearing Loss': "Track your hearing more frequently, such as every 3-6 months, to monitor progression.",
}


@dataclass(frozen=True)
class RangeStatus:
    title: str
    description: str
    score: int
    classification: HearingClassification


@dataclass(frozen=True)
class HistoryInsight:
    title: str
    description: str


def order_sessions(sessions: Iterable[TestSession]) -> List[TestSession]:
    """Completed sessions, newest first."""
    completed = [s for s in sessions if s.is_complete]
    return sorted(completed, key=lambda s: s.started_at, reverse=True)


def load_history(store) -> List[TestSession]:
    """Rebuild the saved sessions of a result store, newest first."""
    return order_sessions(TestSession.from_record(record) for record in store.load_all())


def frequency_response(session: TestSession) -> pd.Series:
    """Threshold per frequency averaged over both ears, sorted by frequency."""
    rows = [(t.frequency, t.level) for t in session.thresholds.values()]
    if not rows:
        return pd.Series(dtype=float, name='level')
    df = pd.DataFrame(rows, columns=['frequency', 'level'])
    return df.groupby('frequency')['level'].mean().sort_index()


def range_status(mean_db: float, label: str) -> RangeStatus:
    classification = classify_mean(mean_db)
    title, description, score = _RANGE_STATUS[classification]
    return RangeStatus(title, description.format(label), score, classification)


def frequency_range_status(session: TestSession) -> Dict[str, RangeStatus]:
    """
    Status of the low, mid and high frequency ranges of a session.

    Ranges without any tested frequency are left out.
    """
    response = frequency_response(session)
    statuses = {}
    for name, label, lower, lower_inclusive, upper in FREQUENCY_RANGES:
        freqs = response.index.to_numpy()
        mask = freqs >= lower if lower_inclusive else freqs > lower
        if upper is not None:
            mask &= freqs <= upper
        if mask.any():
            statuses[name] = range_status(float(response[mask].mean()), label)
    return statuses


def trend_frame(sessions: Iterable[TestSession], limit: int = TREND_SESSION_LIMIT) -> pd.DataFrame:
    """
    Long-format thresholds of the most recent sessions.

    Returns:
        pd.DataFrame: Columns ``date``, ``ear``, ``frequency`` and ``level``,
        oldest session first.
    """
    rows = []
    for session in order_sessions(sessions)[:limit]:
        for threshold in session.thresholds.values():
            rows.append({'date': session.started_at, 'ear': threshold.ear.value,
                         'frequency': threshold.frequency, 'level': threshold.level})
    df = pd.DataFrame(rows, columns=['date', 'ear', 'frequency', 'level'])
    return df.sort_values('date', kind='stable').reset_index(drop=True)


def _ear_trend(levels: pd.Series, ear: Ear, frequency: int) -> str:
    change = float(levels.iloc[-1] - levels.iloc[0])
    name = ear.value
    if abs(change) < TREND_STABLE_DB:
        return f"Your {name} ear hearing at {frequency} Hz has been stable."
    if change > 0:
        return f"Your {name} ear shows a decline of {int(change)} dB at {frequency} Hz."
    return f"Your {name} ear shows an improvement of {int(abs(change))} dB at {frequency} Hz."


def trend_analysis(sessions: Iterable[TestSession], frequency: int,
                   limit: int = TREND_SESSION_LIMIT) -> str:
    """
    Describe how the threshold at ``frequency`` moved over recent sessions.

    A change of less than 5 dB between the oldest and newest session counts
    as stable; a rise in threshold is a decline in hearing.
    """
    df = trend_frame(sessions, limit)
    df = df[df['frequency'] == int(frequency)]
    parts = []
    for ear in (Ear.RIGHT, Ear.LEFT):
        levels = df.loc[df['ear'] == ear.value, 'level']
        if len(levels) >= 2:
            parts.append(_ear_trend(levels, ear, frequency))
    if not parts:
        return f"Complete more tests to see hearing trends at {frequency} Hz."
    return " ".join(parts)


def history_insights(sessions: Iterable[TestSession]) -> List[HistoryInsight]:
    """Patterns in the session history worth pointing out, newest session first."""
    sessions = order_sessions(sessions)
    if not sessions:
        return []
    latest = sessions[0]
    ranges = frequency_range_status(latest)
    insights = []

    if len(sessions) >= 2:
        high = ranges.get('high')
        if high is not None and high.classification in (HearingClassification.MODERATE,
                                                         HearingClassification.MODERATELY_SEVERE):
            right = latest.thresholds_for(Ear.RIGHT)
            if all(f in right for f in (2000, 4000, 8000)):
                notch_depth = right[4000] - (right[2000] + right[8000]) / 2
                if notch_depth > NOISE_NOTCH_DB:
                    insights.append(HistoryInsight(
                        'Potential Noise Exposure',
                        "Your high-frequency hearing loss pattern is consistent with noise exposure. "
                        "Consider using hearing protection."))

        if abs(latest.average_level(Ear.RIGHT) - latest.average_level(Ear.LEFT)) > ASYMMETRY_THRESHOLD_DB:
            insights.append(HistoryInsight(
                'Asymmetric Hearing',
                "There's a significant difference between your ears. "
                "This should be evaluated by a professional."))

        if len(sessions) >= 3:
            first = sessions[-1]
            changes = np.array([latest.average_level(ear) - first.average_level(ear)
                                for ear in (Ear.RIGHT, Ear.LEFT)])
            if np.any(changes > PROGRESSION_DECLINE_DB):
                insights.append(HistoryInsight(
                    'Progressive Hearing Loss',
                    "Your hearing shows a decline over time. Schedule a professional evaluation."))
            elif np.any(changes < -PROGRESSION_IMPROVEMENT_DB):
                insights.append(HistoryInsight(
                    'Hearing Improvement',
                    "Your hearing shows improvement over time. This could be due to resolved "
                    "conditions or better testing environment."))
            else:
                insights.append(HistoryInsight(
                    'Stable Hearing',
                    "Your hearing has remained relatively stable over time. Continue regular monitoring."))

    high, mid = ranges.get('high'), ranges.get('mid')
    if high is not None and mid is not None and high.title != 'Normal' and mid.title == 'Normal':
        insights.append(HistoryInsight(
            'Age-Related Pattern',
            "Your hearing pattern shows typical age-related changes, with high frequencies affected first."))

    logger.debug("Derived %d insights from %d sessions", len(insights), len(sessions))
    return insights


def history_recommendations(sessions: Iterable[TestSession],
                            insights: Optional[List[HistoryInsight]] = None) -> List[str]:
    """
    Recommendations for the latest session, extended by its frequency ranges
    and the history insights.
    """
    sessions = order_sessions(sessions)
    if not sessions:
        return list(DEFAULT_HISTORY_RECOMMENDATIONS)
    latest = sessions[0]
    if insights is None:
        insights = history_insights(sessions)

    recommendations = generate_recommendations(classify_levels(latest.thresholds_for(Ear.RIGHT)),
                                               classify_levels(latest.thresholds_for(Ear.LEFT)))
    ranges = frequency_range_status(latest)
    mild_or_better = ('Normal', 'Mild Loss')
    if 'high' in ranges and ranges['high'].title not in mild_or_better:
        recommendations.append("Your high-frequency hearing loss may affect your ability to hear certain "
                               "consonants. Consider speech reading techniques to improve understanding.")
    if 'low' in ranges and ranges['low'].title not in mild_or_better:
        recommendations.append("Your low-frequency hearing loss may affect your ability to hear vowel sounds "
                               "and deeper voices. Position yourself to better see speakers' faces.")
    for insight in insights:
        text = _INSIGHT_RECOMMENDATIONS.get(insight.title)
        if text:
            recommendations.append(text)
    return list(dict.fromkeys(recommendations))
