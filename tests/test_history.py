from datetime import datetime, timedelta, timezone

import pytest

from audiometry_engine.analysis import (
    HearingClassification,
    ResponseClassifier,
    frequency_range_status,
    frequency_response,
    history_insights,
    history_recommendations,
    load_history,
    trend_analysis,
    trend_frame,
)
from audiometry_engine.analysis.history import DEFAULT_HISTORY_RECOMMENDATIONS
from audiometry_engine.models import Ear, TestSession, Threshold
from audiometry_engine.storage import JsonResultStore, build_record

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


def session_at(days, right, left=None):
    """Completed session ``days`` after T0 with the given thresholds per frequency."""
    left = right if left is None else left
    started = T0 + timedelta(days=days)
    session = TestSession(tuple(right), started_at=started)
    for ear, levels in ((Ear.RIGHT, right), (Ear.LEFT, left)):
        for freq in session.frequencies:
            session.record_threshold(Threshold(ear, freq, levels[freq]))
    session.finalize(started)
    return session


def titles(insights):
    return [insight.title for insight in insights]


class TestFrequencyRanges:

    def test_response_averages_both_ears(self):
        session = session_at(0, {500: 10, 1000: 30}, {500: 30, 1000: 30})
        response = frequency_response(session)
        assert list(response.index) == [500, 1000]
        assert response[500] == pytest.approx(20.0)

    def test_status_per_range(self):
        session = session_at(0, {500: 10, 1000: 30, 2000: 30, 4000: 50, 8000: 60},
                             {500: 30, 1000: 30, 2000: 30, 4000: 50, 8000: 60})
        statuses = frequency_range_status(session)
        assert statuses['low'].classification is HearingClassification.MILD
        assert statuses['low'].title == 'Mild Loss'
        assert statuses['mid'].description == "Noticeable difficulty with mid frequencies (1000-4000 Hz)."
        assert statuses['high'].title == 'Moderate-Severe Loss'
        assert statuses['high'].score == 35

    def test_1000_hz_belongs_to_low_range(self):
        statuses = frequency_range_status(session_at(0, {1000: 0, 4000: 60}))
        assert set(statuses) == {'low', 'mid'}
        assert statuses['low'].title == 'Normal'
        assert statuses['low'].score == 90


class TestTrends:

    def test_decline_and_stable(self):
        sessions = [
            session_at(0, {4000: 20}),
            session_at(30, {4000: 25}, {4000: 20}),
            session_at(60, {4000: 30}, {4000: 20}),
        ]
        assert trend_analysis(sessions, 4000) == (
            "Your right ear shows a decline of 10 dB at 4000 Hz. "
            "Your left ear hearing at 4000 Hz has been stable.")

    def test_improvement(self):
        sessions = [session_at(60, {1000: 25}), session_at(0, {1000: 40})]
        assert trend_analysis(sessions, 1000) == (
            "Your right ear shows an improvement of 15 dB at 1000 Hz. "
            "Your left ear shows an improvement of 15 dB at 1000 Hz.")

    def test_change_below_5_db_is_stable(self):
        sessions = [session_at(0, {1000: 20}), session_at(30, {1000: 20}, {1000: 25})]
        analysis = trend_analysis(sessions, 1000)
        assert "right ear hearing at 1000 Hz has been stable" in analysis
        assert "left ear shows a decline of 5 dB" in analysis

    def test_not_enough_sessions(self):
        assert trend_analysis([session_at(0, {4000: 20})], 4000) == \
            "Complete more tests to see hearing trends at 4000 Hz."
        assert trend_analysis([session_at(0, {4000: 20}), session_at(1, {4000: 20})], 8000) == \
            "Complete more tests to see hearing trends at 8000 Hz."

    def test_only_recent_sessions_count(self):
        sessions = [session_at(0, {1000: 80})] + [session_at(day, {1000: 20}) for day in range(1, 7)]
        df = trend_frame(sessions)
        assert df['date'].nunique() == 6
        assert df['date'].is_monotonic_increasing
        assert "right ear hearing at 1000 Hz has been stable" in trend_analysis(sessions, 1000)

    def test_incomplete_sessions_are_ignored(self):
        open_session = TestSession((1000,), started_at=T0 + timedelta(days=90))
        open_session.record_threshold(Threshold(Ear.RIGHT, 1000, 90))
        sessions = [session_at(0, {1000: 20}), session_at(30, {1000: 20}), open_session]
        assert "right ear hearing at 1000 Hz has been stable" in trend_analysis(sessions, 1000)


class TestInsights:

    def test_progressive_loss(self):
        sessions = [session_at(0, {1000: 20}), session_at(30, {1000: 25}), session_at(60, {1000: 35})]
        assert titles(history_insights(sessions)) == ['Progressive Hearing Loss']

    def test_improvement_and_stable(self):
        improving = [session_at(0, {1000: 40}), session_at(30, {1000: 35}), session_at(60, {1000: 30})]
        assert titles(history_insights(improving)) == ['Hearing Improvement']
        stable = [session_at(0, {1000: 20}), session_at(30, {1000: 25}), session_at(60, {1000: 25})]
        assert titles(history_insights(stable)) == ['Stable Hearing']

    def test_asymmetric_hearing(self):
        sessions = [session_at(0, {1000: 20}), session_at(30, {1000: 10}, {1000: 40})]
        assert 'Asymmetric Hearing' in titles(history_insights(sessions))

    def test_noise_notch(self):
        levels = {2000: 20, 4000: 60, 8000: 40}
        sessions = [session_at(0, levels), session_at(30, levels)]
        assert titles(history_insights(sessions)) == ['Potential Noise Exposure']

    def test_noise_notch_needs_history(self):
        assert history_insights([session_at(0, {2000: 20, 4000: 60, 8000: 40})]) == []

    def test_age_related_pattern(self):
        session = session_at(0, {1000: 10, 2000: 10, 4000: 10, 8000: 40})
        assert titles(history_insights([session])) == ['Age-Related Pattern']

    def test_no_sessions(self):
        assert history_insights([]) == []


class TestRecommendations:

    def test_defaults_without_sessions(self):
        assert history_recommendations([]) == list(DEFAULT_HISTORY_RECOMMENDATIONS)

    def test_range_and_insight_recommendations(self):
        levels = {2000: 20, 4000: 60, 8000: 40}
        recommendations = history_recommendations([session_at(0, levels), session_at(30, levels)])
        assert any("high-frequency hearing loss" in text for text in recommendations)
        assert "Avoid loud noise exposure and always use hearing protection in noisy environments." \
            in recommendations
        assert len(recommendations) == len(set(recommendations))

    def test_progression_recommends_closer_tracking(self):
        sessions = [session_at(0, {1000: 20}), session_at(30, {1000: 25}), session_at(60, {1000: 35})]
        assert "Track your hearing more frequently, such as every 3-6 months, to monitor progression." \
            in history_recommendations(sessions)


def test_load_history_newest_first(tmp_path):
    store = JsonResultStore(tmp_path / 'results')
    older, newer = session_at(0, {1000: 20}), session_at(30, {1000: 30})
    for session in (newer, older):
        store.save(build_record(session, ResponseClassifier().classify(session)))
    history = load_history(store)
    assert [s.session_id for s in history] == [newer.session_id, older.session_id]
    assert history[0].thresholds_for(Ear.RIGHT) == {1000: 30}
