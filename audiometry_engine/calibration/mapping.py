"""
Mapping between clinical hearing level (dB HL) and device output amplitude.

Both directions are pure functions of their arguments: a fixed anchor table
interpolated piecewise-linearly, optionally scaled by a calibration profile.
"""
from typing import Optional

import numpy as np

from ..utils.defaults import DEFAULT_REFERENCE_LEVEL
from .profile import CalibrationProfile

# (dB HL, amplitude) anchor points, strictly increasing in both columns
DB_AMPLITUDE_ANCHORS = (
    (0, 0.05),
    (10, 0.10),
    (20, 0.20),
    (30, 0.30),
    (40, 0.40),
    (50, 0.50),
    (60, 0.70),
    (70, 0.90),
    (80, 1.00),
)

_ANCHOR_DB = np.array([db for db, _ in DB_AMPLITUDE_ANCHORS], dtype=float)
_ANCHOR_AMPLITUDE = np.array([amp for _, amp in DB_AMPLITUDE_ANCHORS], dtype=float)


def calibration_ratio(frequency: int, calibration: Optional[CalibrationProfile],
                      reference_level: float = DEFAULT_REFERENCE_LEVEL) -> Optional[float]:
    """Scaling applied by the calibration at this frequency, or None when uncalibrated."""
    if calibration is None:
        return None
    adjustment = calibration.adjustment_for(frequency)
    if adjustment is None:
        return None
    return adjustment / reference_level


def db_to_amplitude(db_hl: float, frequency: int,
                    calibration: Optional[CalibrationProfile] = None,
                    reference_level: float = DEFAULT_REFERENCE_LEVEL) -> float:
    """
    Convert a hearing level to a device amplitude in [0, 1].

    Levels outside the anchor table clamp to its first or last amplitude. With a
    calibration, the interpolated amplitude is scaled by the adjustment for the
    exact frequency (or the 1000 Hz adjustment) relative to the reference level.

    Args:
        db_hl: Hearing level in dB HL.
        frequency: Tone frequency in Hz.
        calibration: Calibration profile, or None for the raw mapping.
        reference_level: Output level that corresponds to an unscaled mapping.

    Returns:
        float: Amplitude between 0.0 and 1.0.
    """
    amplitude = float(np.interp(float(db_hl), _ANCHOR_DB, _ANCHOR_AMPLITUDE))
    ratio = calibration_ratio(frequency, calibration, reference_level)
    if ratio is not None:
        amplitude *= ratio
    return float(np.clip(amplitude, 0.0, 1.0))


def amplitude_to_db(amplitude: float, frequency: int,
                    calibration: Optional[CalibrationProfile] = None,
                    reference_level: float = DEFAULT_REFERENCE_LEVEL) -> float:
    """
    Convert a device amplitude back to a hearing level.

    The calibration scaling is removed first; the result is then inverted on
    the anchor table and clamped to the table's dB range.
    """
    if not 0.0 <= amplitude <= 1.0:
        raise ValueError(f"amplitude must be within [0, 1], got {amplitude}")
    ratio = calibration_ratio(frequency, calibration, reference_level)
    if ratio is not None:
        if ratio == 0:
            return float(_ANCHOR_DB[0])
        amplitude = amplitude / ratio
    return float(np.interp(amplitude, _ANCHOR_AMPLITUDE, _ANCHOR_DB))
