"""
Utility module for common functions and constants.

This module contains:
- Default values and protocol constants
- YAML configuration loading
- Cancellable schedulers for timeouts
"""

from .defaults import *
from .config import EngineConfig, load_config, config_from_dict
from .timers import ManualScheduler, ThreadingScheduler

__all__ = ["EngineConfig", "load_config", "config_from_dict",
           "ManualScheduler", "ThreadingScheduler"]
