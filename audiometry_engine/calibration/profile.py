"""Calibration profiles and calibration status checks."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

from ..utils.defaults import CALIBRATION_REFERENCE_FREQUENCY, RECALIBRATION_AFTER_DAYS

logger = logging.getLogger(__name__)

# Headphone labels that carry no information about the connected output
UNKNOWN_HEADPHONES = frozenset({'', 'Unknown', 'No headphones detected'})


@dataclass(frozen=True)
class CalibrationProfile:
    """
    Result of a calibration procedure for one device and headphone.

    Args:
        device_identifier: Device the calibration was made on.
        headphone_label: Headphone connected during calibration.
        reference_adjustment: Output level (0-1) chosen per frequency in Hz.
        calibrated_at: When the calibration was made (timezone aware).
    """
    device_identifier: str
    headphone_label: str = 'Unknown'
    reference_adjustment: Dict[int, float] = field(default_factory=dict)
    calibrated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        adjustments = {}
        for frequency, level in dict(self.reference_adjustment).items():
            level = float(level)
            if not 0.0 <= level <= 1.0:
                raise ValueError(f"Calibration level for {frequency} Hz must be within [0, 1], got {level}")
            adjustments[int(frequency)] = level
        object.__setattr__(self, 'reference_adjustment', adjustments)
        if self.calibrated_at.tzinfo is None:
            # Timestamps written without an offset are taken as UTC
            object.__setattr__(self, 'calibrated_at', self.calibrated_at.replace(tzinfo=timezone.utc))

    def adjustment_for(self, frequency: int) -> Optional[float]:
        """Adjustment for the frequency, falling back to the 1000 Hz reference."""
        adjustment = self.reference_adjustment.get(int(frequency))
        if adjustment is None:
            adjustment = self.reference_adjustment.get(CALIBRATION_REFERENCE_FREQUENCY)
        return adjustment

    def to_dict(self) -> dict:
        return {
            'device_identifier': self.device_identifier,
            'headphone_label': self.headphone_label,
            'reference_adjustment': {int(f): float(v) for f, v in self.reference_adjustment.items()},
            'calibrated_at': self.calibrated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'CalibrationProfile':
        calibrated_at = data.get('calibrated_at')
        if isinstance(calibrated_at, str):
            calibrated_at = datetime.fromisoformat(calibrated_at)
        if calibrated_at is None:
            calibrated_at = datetime.now(timezone.utc)
        return cls(
            device_identifier=str(data['device_identifier']),
            headphone_label=str(data.get('headphone_label', 'Unknown')),
            reference_adjustment=data.get('reference_adjustment') or {},
            calibrated_at=calibrated_at,
        )


def calibrate_reference_level(device_identifier, headphone_label, level, calibrated_at=None):
    """Profile holding a single reference level at 1000 Hz, applied to all frequencies."""
    return CalibrationProfile(
        device_identifier=device_identifier,
        headphone_label=headphone_label,
        reference_adjustment={CALIBRATION_REFERENCE_FREQUENCY: level},
        calibrated_at=calibrated_at or datetime.now(timezone.utc),
    )


class CalibrationStatus(Enum):
    CALIBRATED = 'calibrated'
    NEEDS_CALIBRATION = 'needs_calibration'
    NEEDS_RECALIBRATION = 'needs_recalibration'
    RECOMMEND_RECALIBRATION = 'recommend_recalibration'

    @property
    def message(self) -> str:
        return _STATUS_MESSAGES[self]

    @property
    def allows_testing(self) -> bool:
        return self in (CalibrationStatus.CALIBRATED, CalibrationStatus.RECOMMEND_RECALIBRATION)


_STATUS_MESSAGES = {
    CalibrationStatus.CALIBRATED: "Device is calibrated and ready for testing.",
    CalibrationStatus.NEEDS_CALIBRATION: "Your device needs to be calibrated before testing.",
    CalibrationStatus.NEEDS_RECALIBRATION: "Your device or headphones have changed and need recalibration.",
    CalibrationStatus.RECOMMEND_RECALIBRATION: "It's been over 3 months since your last calibration.",
}


def days_since_calibration(profile: Optional[CalibrationProfile], now: Optional[datetime] = None) -> Optional[int]:
    if profile is None:
        return None
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return (now - profile.calibrated_at).days


def is_profile_valid(profile: Optional[CalibrationProfile], device_identifier: str,
                     headphone_label: Optional[str] = None) -> bool:
    """A profile is valid on the device it was made on, with the same headphones if known."""
    if profile is None:
        return False
    if profile.device_identifier != device_identifier:
        return False
    if headphone_label is not None and headphone_label not in UNKNOWN_HEADPHONES:
        return headphone_label == profile.headphone_label
    return True


def evaluate_calibration(profile: Optional[CalibrationProfile], device_identifier: str,
                         headphone_label: Optional[str] = None, now: Optional[datetime] = None,
                         max_age_days: int = RECALIBRATION_AFTER_DAYS) -> CalibrationStatus:
    """
    Status used by callers to decide whether testing may proceed.

    Args:
        profile: Stored calibration, or None when the device was never calibrated.
        device_identifier: Identifier of the device the test will run on.
        headphone_label: Currently connected headphones, if known.
        now: Reference time for the age check.
        max_age_days: Age after which recalibration is recommended.

    Returns:
        CalibrationStatus
    """
    if profile is None:
        status = CalibrationStatus.NEEDS_CALIBRATION
    elif not is_profile_valid(profile, device_identifier, headphone_label):
        status = CalibrationStatus.NEEDS_RECALIBRATION
    elif days_since_calibration(profile, now) > max_age_days:
        status = CalibrationStatus.RECOMMEND_RECALIBRATION
    else:
        status = CalibrationStatus.CALIBRATED
    logger.debug("Calibration status for %s: %s", device_identifier, status.value)
    return status
