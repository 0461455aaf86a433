"""
Calibration module.

This module contains:
- The dB HL to output amplitude mapping
- Calibration profiles and status checks
- Profile persistence
"""

from .mapping import db_to_amplitude, amplitude_to_db, DB_AMPLITUDE_ANCHORS
from .profile import (
    CalibrationProfile,
    CalibrationStatus,
    evaluate_calibration,
    calibrate_reference_level,
    days_since_calibration,
)
from .store import CalibrationStore, YamlCalibrationStore

__all__ = [
    "db_to_amplitude",
    "amplitude_to_db",
    "DB_AMPLITUDE_ANCHORS",
    "CalibrationProfile",
    "CalibrationStatus",
    "evaluate_calibration",
    "calibrate_reference_level",
    "days_since_calibration",
    "CalibrationStore",
    "YamlCalibrationStore",
]
