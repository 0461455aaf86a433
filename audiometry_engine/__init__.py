"""
Audiometry Engine - adaptive pure-tone threshold testing and hearing loss classification
"""

__version__ = "0.1.0"

# Import main classes and functions for easy access
from .models import Ear, ResponseEvent, Threshold, TestSession
from .procedures.threshold_search import ThresholdSearch, SearchPhase
from .procedures.orchestrator import TestOrchestrator, TestStatus
from .analysis.classification import HearingClassification, ResponseClassifier
from .calibration.mapping import db_to_amplitude, amplitude_to_db
from .calibration.profile import CalibrationProfile, CalibrationStatus, evaluate_calibration
from .utils.config import EngineConfig, load_config

__all__ = [
    "Ear",
    "ResponseEvent",
    "Threshold",
    "TestSession",
    "ThresholdSearch",
    "SearchPhase",
    "TestOrchestrator",
    "TestStatus",
    "HearingClassification",
    "ResponseClassifier",
    "db_to_amplitude",
    "amplitude_to_db",
    "CalibrationProfile",
    "CalibrationStatus",
    "evaluate_calibration",
    "EngineConfig",
    "load_config",
]
