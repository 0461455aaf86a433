"""
Procedures module for pure-tone threshold testing.

This module contains implementations of:
- The hearing level ladder and its quantized stepping
- The modified Hughson-Westlake threshold search for one ear and frequency
- The orchestrator that runs the search across frequencies and ears
"""

from .levels import HearingLevelScale, DEFAULT_SCALE
from .threshold_search import SearchPhase, SearchState, ThresholdSearch, advance, initial_state, run_search
from .orchestrator import TestOrchestrator, TestStatus, ToneEmitter, Presentation

__all__ = [
    "HearingLevelScale",
    "DEFAULT_SCALE",
    "SearchPhase",
    "SearchState",
    "ThresholdSearch",
    "advance",
    "initial_state",
    "run_search",
    "TestOrchestrator",
    "TestStatus",
    "ToneEmitter",
    "Presentation",
]
