"""YAML-backed engine configuration."""
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Optional, Tuple, Union

import yaml

from ..exceptions import ConfigurationError
from .defaults import (
    STANDARD_FREQUENCIES,
    HEARING_LEVELS,
    DEFAULT_STARTING_LEVEL,
    MAX_PRESENTATIONS_PER_PAIR,
    RESPONSE_TIMEOUT,
    INTER_TONE_DELAY,
    TONE_DURATION,
    DEFAULT_REFERENCE_LEVEL,
    RECALIBRATION_AFTER_DAYS,
    DEFAULT_SLOPE,
    DEFAULT_GUESS_RATE,
    DEFAULT_LAPSE_RATE,
)


@dataclass(frozen=True)
class ProcedureConfig:
    frequencies: Tuple[int, ...] = STANDARD_FREQUENCIES
    starting_level: int = DEFAULT_STARTING_LEVEL
    max_presentations: int = MAX_PRESENTATIONS_PER_PAIR


@dataclass(frozen=True)
class TimingConfig:
    response_timeout: float = RESPONSE_TIMEOUT
    inter_tone_delay: float = INTER_TONE_DELAY
    tone_duration: Optional[float] = TONE_DURATION


@dataclass(frozen=True)
class CalibrationConfig:
    reference_level: float = DEFAULT_REFERENCE_LEVEL
    recalibration_after_days: int = RECALIBRATION_AFTER_DAYS


@dataclass(frozen=True)
class SimulationConfig:
    n_listeners: int = 10
    seed: Optional[int] = 42
    profile: str = 'normal_hearing'
    slope: float = DEFAULT_SLOPE
    guess_rate: float = DEFAULT_GUESS_RATE
    lapse_rate: float = DEFAULT_LAPSE_RATE
    timeout_rate: float = 0.0


@dataclass(frozen=True)
class EngineConfig:
    procedure: ProcedureConfig = field(default_factory=ProcedureConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    calibration: CalibrationConfig = field(default_factory=CalibrationConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)

    def __post_init__(self):
        procedure = self.procedure
        if not procedure.frequencies:
            raise ConfigurationError("At least one test frequency is required")
        if len(set(procedure.frequencies)) != len(procedure.frequencies):
            raise ConfigurationError(f"Duplicate test frequencies: {procedure.frequencies}")
        if procedure.starting_level not in HEARING_LEVELS:
            raise ConfigurationError(
                f"starting_level must be on the hearing level ladder, got {procedure.starting_level}")
        if procedure.max_presentations < 1:
            raise ConfigurationError("max_presentations must be positive")
        if self.timing.response_timeout <= 0:
            raise ConfigurationError("response_timeout must be positive")
        if self.timing.inter_tone_delay < 0:
            raise ConfigurationError("inter_tone_delay must not be negative")
        if not 0 < self.calibration.reference_level <= 1:
            raise ConfigurationError("reference_level must be within (0, 1]")

    def to_dict(self):
        data = asdict(self)
        data['procedure']['frequencies'] = list(self.procedure.frequencies)
        return data


_SECTIONS = {
    'procedure': ProcedureConfig,
    'timing': TimingConfig,
    'calibration': CalibrationConfig,
    'simulation': SimulationConfig,
}


def _build_section(name, values):
    section_class = _SECTIONS[name]
    if values is None:
        return section_class()
    if not isinstance(values, dict):
        raise ConfigurationError(f"Section '{name}' must be a mapping")
    known = {f.name for f in fields(section_class)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigurationError(f"Unknown keys in section '{name}': {unknown}")
    values = dict(values)
    if 'frequencies' in values:
        values['frequencies'] = tuple(int(f) for f in values['frequencies'])
    return section_class(**values)


def config_from_dict(data):
    """Build an EngineConfig from a (possibly partial) nested mapping."""
    data = data or {}
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ConfigurationError(f"Unknown configuration sections: {unknown}")
    try:
        return EngineConfig(**{name: _build_section(name, data.get(name)) for name in _SECTIONS})
    except TypeError as e:
        raise ConfigurationError(f"Invalid configuration value: {e}") from e


def load_config(config_path: Union[str, Path, None] = None) -> EngineConfig:
    """
    Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML file. ``None`` or a missing file gives the defaults.

    Returns:
        EngineConfig: Parsed and validated configuration.
    """
    if config_path is None:
        return EngineConfig()
    path = Path(config_path)
    if not path.is_file():
        return EngineConfig()
    with open(path, 'r') as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Cannot parse {path}: {e}") from e
    if data is not None and not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return config_from_dict(data)
