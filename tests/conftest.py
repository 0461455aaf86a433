import pytest

from audiometry_engine.models import Ear
from audiometry_engine.procedures import TestOrchestrator
from audiometry_engine.simulation import InProcessToneEmitter
from audiometry_engine.utils import ManualScheduler
from audiometry_engine.utils.config import EngineConfig, TimingConfig


class ThresholdListener:
    """Hears every tone at or above its threshold, nothing below."""

    def __init__(self, thresholds):
        self.thresholds = thresholds

    def respond(self, ear, frequency, level):
        return level >= self.thresholds[ear][frequency]


class SilentListener:
    def respond(self, ear, frequency, level):
        return None


def uniform_thresholds(level, frequencies=(500, 1000, 2000, 4000, 8000)):
    return {ear: {f: level for f in frequencies} for ear in (Ear.RIGHT, Ear.LEFT)}


@pytest.fixture
def config():
    return EngineConfig(timing=TimingConfig(response_timeout=5.0, inter_tone_delay=1.0))


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def emitter():
    return InProcessToneEmitter()


@pytest.fixture
def orchestrator(emitter, scheduler, config):
    return TestOrchestrator(emitter, scheduler, config=config)


@pytest.fixture
def listener_at_30():
    return ThresholdListener(uniform_thresholds(30))
