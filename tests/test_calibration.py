from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from audiometry_engine.calibration import (
    CalibrationProfile,
    CalibrationStatus,
    YamlCalibrationStore,
    amplitude_to_db,
    calibrate_reference_level,
    db_to_amplitude,
    days_since_calibration,
    evaluate_calibration,
)
from audiometry_engine.utils.defaults import HEARING_LEVELS

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def profile():
    return CalibrationProfile(
        device_identifier='iPhone',
        headphone_label='AirPods Pro',
        reference_adjustment={1000: 0.25, 4000: 1.0},
        calibrated_at=NOW - timedelta(days=10),
    )


class TestMapping:

    @pytest.mark.parametrize('db_hl, amplitude', [
        (0, 0.05), (10, 0.1), (40, 0.4), (50, 0.5), (60, 0.7), (65, 0.8), (80, 1.0),
    ])
    def test_anchor_interpolation(self, db_hl, amplitude):
        assert db_to_amplitude(db_hl, 1000) == pytest.approx(amplitude)

    def test_clamped_outside_table(self):
        assert db_to_amplitude(-10, 1000) == pytest.approx(0.05)
        assert db_to_amplitude(100, 1000) == pytest.approx(1.0)

    def test_monotonic_over_ladder(self, profile):
        for calibration in (None, profile):
            amplitudes = [db_to_amplitude(level, 2000, calibration) for level in HEARING_LEVELS]
            assert np.all(np.diff(amplitudes) >= 0)
            assert all(0.0 <= a <= 1.0 for a in amplitudes)

    def test_exact_frequency_adjustment(self, profile):
        assert db_to_amplitude(40, 1000, profile) == pytest.approx(0.2)
        # 0.4 scaled by 1.0 / 0.5, clipped
        assert db_to_amplitude(80, 4000, profile) == pytest.approx(1.0)
        assert db_to_amplitude(40, 4000, profile) == pytest.approx(0.8)

    def test_falls_back_to_1000_hz_adjustment(self, profile):
        assert db_to_amplitude(40, 8000, profile) == pytest.approx(0.2)

    def test_profile_without_adjustments_uses_raw_mapping(self):
        empty = CalibrationProfile(device_identifier='iPhone')
        assert db_to_amplitude(40, 1000, empty) == pytest.approx(0.4)

    def test_inverse_mapping(self, profile):
        assert amplitude_to_db(0.4, 1000) == pytest.approx(40)
        assert amplitude_to_db(0.8, 1000) == pytest.approx(65)
        assert amplitude_to_db(0.2, 1000, profile) == pytest.approx(40)
        assert amplitude_to_db(0.0, 1000) == pytest.approx(0)

    def test_inverse_rejects_out_of_range(self):
        with pytest.raises(ValueError):
            amplitude_to_db(1.5, 1000)


class TestProfile:

    def test_adjustment_must_be_normalized(self):
        with pytest.raises(ValueError):
            CalibrationProfile(device_identifier='iPhone', reference_adjustment={1000: 1.2})

    def test_keys_are_integers(self):
        profile = CalibrationProfile(device_identifier='iPhone', reference_adjustment={'1000': 0.5})
        assert profile.adjustment_for(1000) == 0.5

    def test_reference_level_profile(self):
        profile = calibrate_reference_level('iPhone', 'AirPods', 0.6, calibrated_at=NOW)
        assert profile.reference_adjustment == {1000: 0.6}
        assert profile.adjustment_for(250) == 0.6

    def test_dict_round_trip(self, profile):
        assert CalibrationProfile.from_dict(profile.to_dict()) == profile


class TestStatus:

    def test_never_calibrated(self):
        status = evaluate_calibration(None, 'iPhone', now=NOW)
        assert status is CalibrationStatus.NEEDS_CALIBRATION
        assert not status.allows_testing

    def test_calibrated(self, profile):
        status = evaluate_calibration(profile, 'iPhone', 'AirPods Pro', now=NOW)
        assert status is CalibrationStatus.CALIBRATED
        assert status.message == "Device is calibrated and ready for testing."

    def test_other_device(self, profile):
        assert evaluate_calibration(profile, 'iPad', now=NOW) is CalibrationStatus.NEEDS_RECALIBRATION

    def test_changed_headphones(self, profile):
        status = evaluate_calibration(profile, 'iPhone', 'Wired Earbuds', now=NOW)
        assert status is CalibrationStatus.NEEDS_RECALIBRATION
        assert not status.allows_testing

    def test_unknown_headphones_are_not_a_change(self, profile):
        assert evaluate_calibration(profile, 'iPhone', 'Unknown', now=NOW) is CalibrationStatus.CALIBRATED
        assert evaluate_calibration(profile, 'iPhone', None, now=NOW) is CalibrationStatus.CALIBRATED

    def test_old_calibration(self, profile):
        assert evaluate_calibration(profile, 'iPhone', now=NOW + timedelta(days=80)) \
            is CalibrationStatus.CALIBRATED
        status = evaluate_calibration(profile, 'iPhone', now=NOW + timedelta(days=81))
        assert status is CalibrationStatus.RECOMMEND_RECALIBRATION
        assert status.allows_testing

    def test_days_since_calibration(self, profile):
        assert days_since_calibration(profile, NOW) == 10
        assert days_since_calibration(None, NOW) is None

    def test_naive_timestamp_is_taken_as_utc(self):
        profile = CalibrationProfile('iPhone', calibrated_at=datetime(2026, 5, 22, 12, 0))
        assert profile.calibrated_at.tzinfo is timezone.utc
        assert days_since_calibration(profile, NOW) == 10
        assert days_since_calibration(profile, datetime(2026, 6, 1, 12, 0)) == 10
        assert evaluate_calibration(profile, 'iPhone', now=NOW) is CalibrationStatus.CALIBRATED


class TestYamlStore:

    def test_missing_file(self, tmp_path):
        assert YamlCalibrationStore(tmp_path / 'calibration.yaml', 'iPhone').load() is None

    def test_save_and_load(self, tmp_path, profile):
        store = YamlCalibrationStore(tmp_path / 'nested' / 'calibration.yaml', 'iPhone')
        store.save(profile)
        loaded = store.load()
        assert loaded == profile
        assert store.is_current_device(loaded)

    def test_reset(self, tmp_path, profile):
        store = YamlCalibrationStore(tmp_path / 'calibration.yaml', 'iPhone')
        store.save(profile)
        store.reset()
        assert store.load() is None
        store.reset()

    def test_unreadable_file_means_not_calibrated(self, tmp_path):
        path = tmp_path / 'calibration.yaml'
        path.write_text("reference_adjustment: [unclosed\n")
        assert YamlCalibrationStore(path, 'iPhone').load() is None
        path.write_text("- just\n- a list\n")
        assert YamlCalibrationStore(path, 'iPhone').load() is None

    @pytest.mark.parametrize('stamp', ["'2026-05-22T12:00:00'", "2026-05-22T12:00:00"])
    def test_load_timestamp_without_offset(self, tmp_path, stamp):
        path = tmp_path / 'calibration.yaml'
        path.write_text("device_identifier: iPhone\n"
                        "headphone_label: AirPods Pro\n"
                        "reference_adjustment:\n  1000: 0.25\n"
                        f"calibrated_at: {stamp}\n")
        loaded = YamlCalibrationStore(path, 'iPhone').load()
        assert loaded.calibrated_at == datetime(2026, 5, 22, 12, 0, tzinfo=timezone.utc)
        assert evaluate_calibration(loaded, 'iPhone', 'AirPods Pro', now=NOW) is CalibrationStatus.CALIBRATED
