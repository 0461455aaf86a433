"""Text and tabular views of test sessions."""
from typing import Iterable, List, Optional

import pandas as pd

from ..models import Ear, TestSession
from .classification import HearingResult


def column_name(frequency, ear):
    """Audiogram column label, e.g. ``0.5kHz Right``."""
    return f"{frequency/1000:.1f}kHz {ear.value.capitalize()}"


def format_progression(progression, frequency) -> str:
    """Render the presentation trace of one frequency."""
    lines = [f"Progression for {frequency} Hz:",
             "Level | Response | Ratio | Phase",
             "-" * 40]
    for level, response, ratio, phase in progression:
        lines.append(f"{level:3d} dB | {str(response):5} | {ratio:^7} | {phase}")
    return "\n".join(lines)


def session_progressions(session: TestSession):
    """Presentation trace per (ear, frequency), rebuilt from the event log."""
    traces = {}
    for ear, frequency in session.pairs:
        traces[(ear, frequency)] = [
            (e.hearing_level, e.heard, 'timeout' if e.timed_out else '', e.phase)
            for e in session.events_for(ear, frequency)
        ]
    return traces


def session_to_dataframe(session: TestSession, result: Optional[HearingResult] = None) -> pd.DataFrame:
    """
    One-row DataFrame of a session's thresholds.

    Args:
        session: Session to export; missing thresholds become NaN.
        result: Optional classification added as extra columns.

    Returns:
        pd.DataFrame: Columns ``session_id``, one ``<f>kHz <Ear>`` column per pair
        and, with a result, the classifications.
    """
    data_dict = {'session_id': session.session_id}
    for ear in session.ears:
        levels = session.thresholds_for(ear)
        for freq in session.frequencies:
            data_dict[column_name(freq, ear)] = levels.get(freq, float('nan'))
    if result is not None:
        data_dict['Right classification'] = result.right_classification.value
        data_dict['Left classification'] = result.left_classification.value
        data_dict['Classification method'] = result.method
    return pd.DataFrame(data_dict, index=[0])


def sessions_to_dataframe(sessions: Iterable[TestSession], results: Optional[Iterable[HearingResult]] = None) -> pd.DataFrame:
    sessions = list(sessions)
    results = list(results) if results is not None else [None] * len(sessions)
    if len(results) != len(sessions):
        raise ValueError("results must match sessions one to one")
    frames = [session_to_dataframe(s, r) for s, r in zip(sessions, results)]
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index=True)


def format_result(result: HearingResult) -> str:
    """Short human-readable summary of a classification."""
    lines: List[str] = []
    for ear in (Ear.RIGHT, Ear.LEFT):
        levels = result.right_levels if ear is Ear.RIGHT else result.left_levels
        classification = result.classification_for(ear)
        points = ", ".join(f"{f} Hz: {level:g}" for f, level in sorted(levels.items()))
        lines.append(f"{ear.value.capitalize()} ear: {classification.display_name} ({points or 'no data'})")
    lines.append("Recommendations:")
    lines.extend(f"  - {text}" for text in result.recommendations)
    return "\n".join(lines)
