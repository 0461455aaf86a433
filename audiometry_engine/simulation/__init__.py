"""
Simulation module for audiometry testing.

This module contains functions and classes for:
- Simulating listener responses with a psychometric function
- Generating true-threshold profiles
- Running complete tests without audio hardware
"""

from .response_model import HearingResponseModel, SimulatedListener
from .emitters import InProcessToneEmitter
from .profiles import generate_listener_thresholds, PROFILE_TYPES
from .runner import run_simulated_session

__all__ = [
    "HearingResponseModel",
    "SimulatedListener",
    "InProcessToneEmitter",
    "generate_listener_thresholds",
    "PROFILE_TYPES",
    "run_simulated_session",
]
