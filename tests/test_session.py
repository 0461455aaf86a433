from datetime import datetime, timezone

import pytest

from audiometry_engine.exceptions import IncompleteSessionError, SessionClosedError
from audiometry_engine.models import Ear, ResponseEvent, TestSession, Threshold

T0 = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


def complete_session(right=20, left=20, frequencies=(1000, 4000)):
    session = TestSession(frequencies, started_at=T0)
    for ear, level in ((Ear.RIGHT, right), (Ear.LEFT, left)):
        for freq in frequencies:
            session.append_event(ResponseEvent(freq, ear, level, True, T0, phase='ascending'))
            session.record_threshold(Threshold(ear, freq, level, presentations=1))
    session.finalize(T0)
    return session


def test_pairs_in_test_order():
    session = TestSession((500, 1000), ears=(Ear.LEFT, Ear.RIGHT))
    assert session.pairs == ((Ear.LEFT, 500), (Ear.LEFT, 1000), (Ear.RIGHT, 500), (Ear.RIGHT, 1000))


def test_threshold_recorded_once():
    session = TestSession((1000,))
    session.record_threshold(Threshold(Ear.RIGHT, 1000, 30))
    with pytest.raises(ValueError):
        session.record_threshold(Threshold(Ear.RIGHT, 1000, 35))


def test_threshold_outside_session_rejected():
    session = TestSession((1000,))
    with pytest.raises(ValueError):
        session.record_threshold(Threshold(Ear.RIGHT, 2000, 30))


def test_finalize_requires_every_pair():
    session = TestSession((1000,))
    session.record_threshold(Threshold(Ear.RIGHT, 1000, 30))
    with pytest.raises(IncompleteSessionError):
        session.finalize()
    assert not session.is_complete


def test_finalized_session_is_read_only():
    session = complete_session()
    assert session.is_complete
    with pytest.raises(SessionClosedError):
        session.append_event(ResponseEvent(1000, Ear.RIGHT, 20, True, T0))
    with pytest.raises(SessionClosedError):
        session.finalize()
    with pytest.raises(TypeError):
        session.thresholds[(Ear.RIGHT, 1000)] = Threshold(Ear.RIGHT, 1000, 0)


def test_derived_views():
    session = complete_session(right=20, left=40)
    assert session.thresholds_for(Ear.LEFT) == {1000: 40, 4000: 40}
    assert session.average_level(Ear.RIGHT) == 20
    assert session.has_asymmetric_hearing
    assert not complete_session(right=20, left=35).has_asymmetric_hearing
    assert len(session.events_for(Ear.RIGHT, 4000)) == 1


def test_record_round_trip():
    session = complete_session()
    restored = TestSession.from_record(session.to_record())
    assert restored.session_id == session.session_id
    assert restored.events == session.events
    assert dict(restored.thresholds) == dict(session.thresholds)
    assert restored.completed_at == T0
    assert restored.is_complete
