"""Persistence of the calibration profile."""
import logging
from pathlib import Path
from typing import Optional, Protocol

import yaml

from .profile import CalibrationProfile

logger = logging.getLogger(__name__)


class CalibrationStore(Protocol):
    def load(self) -> Optional[CalibrationProfile]:
        ...

    def save(self, profile: CalibrationProfile) -> None:
        ...

    def is_current_device(self, profile: CalibrationProfile) -> bool:
        ...

    def reset(self) -> None:
        ...


class YamlCalibrationStore:
    """
    Calibration profile kept in a YAML file.

    File layout::

        device_identifier: iPhone
        headphone_label: AirPods Pro
        reference_adjustment: {1000: 0.45}
        calibrated_at: '2026-01-05T10:00:00+00:00'

    An unreadable file is treated as "not calibrated" so the caller is sent
    through calibration again instead of testing with a broken profile.
    """

    def __init__(self, path, device_identifier: str):
        self.path = Path(path)
        self.device_identifier = device_identifier

    def load(self) -> Optional[CalibrationProfile]:
        if not self.path.is_file():
            return None
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
            if not isinstance(data, dict):
                raise ValueError("calibration file does not contain a mapping")
            return CalibrationProfile.from_dict(data)
        except (yaml.YAMLError, KeyError, TypeError, ValueError) as e:
            logger.warning("Ignoring unreadable calibration file %s: %s", self.path, e)
            return None

    def save(self, profile: CalibrationProfile) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(profile.to_dict(), f, sort_keys=False)
        logger.info("Saved calibration for %s (%s) to %s",
                    profile.device_identifier, profile.headphone_label, self.path)

    def is_current_device(self, profile: CalibrationProfile) -> bool:
        return profile.device_identifier == self.device_identifier

    def reset(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.info("Calibration reset, removed %s", self.path)
