"""In-process tone emitter for simulations and tests."""
import itertools
import logging
from dataclasses import dataclass
from typing import List, Optional

from ..exceptions import EmitterFailure
from ..models import Ear

logger = logging.getLogger(__name__)


@dataclass
class PlayedTone:
    handle: int
    frequency: int
    amplitude: float
    ear: Ear
    stopped: bool = False


class InProcessToneEmitter:
    """
    Records every tone instead of producing sound.

    Args:
        fail_on_play: 1-based play call numbers that raise EmitterFailure.
        fail_on_stop: 1-based stop call numbers that raise EmitterFailure.
    """

    def __init__(self, fail_on_play=(), fail_on_stop=()):
        self.fail_on_play = set(fail_on_play)
        self.fail_on_stop = set(fail_on_stop)
        self.played: List[PlayedTone] = []
        self.play_calls = 0
        self.stop_calls = 0
        self._handles = itertools.count(1)
        self.orchestrator = None

    def play(self, frequency, amplitude, ear):
        self.play_calls += 1
        if self.play_calls in self.fail_on_play:
            raise EmitterFailure(f"Simulated playback failure on call {self.play_calls}", ear, frequency)
        if not 0.0 <= amplitude <= 1.0:
            raise ValueError(f"amplitude must be within [0, 1], got {amplitude}")
        tone = PlayedTone(next(self._handles), int(frequency), float(amplitude), ear)
        self.played.append(tone)
        logger.debug("Playing %d Hz at amplitude %.3f (%s ear), handle %d",
                     tone.frequency, tone.amplitude, ear.value, tone.handle)
        return tone.handle

    def stop(self, handle):
        self.stop_calls += 1
        if self.stop_calls in self.fail_on_stop:
            raise EmitterFailure(f"Simulated stop failure on call {self.stop_calls}")
        self._mark_stopped(handle)

    @property
    def last_tone(self) -> Optional[PlayedTone]:
        return self.played[-1] if self.played else None

    @property
    def active_tones(self) -> List[PlayedTone]:
        return [tone for tone in self.played if not tone.stopped]

    # Playback reports back to the orchestrator

    def bind(self, orchestrator):
        """Send completion and failure reports to ``orchestrator``."""
        self.orchestrator = orchestrator

    def finish(self, handle):
        """Simulate the tone reaching its natural end."""
        self._mark_stopped(handle)
        if self.orchestrator is not None:
            self.orchestrator.on_playback_complete(handle)

    def fail(self, handle, error='playback interrupted'):
        """Simulate an asynchronous playback failure."""
        self._mark_stopped(handle)
        if self.orchestrator is None:
            return False
        return self.orchestrator.on_playback_failed(handle, error)

    def _mark_stopped(self, handle):
        for tone in self.played:
            if tone.handle == handle:
                tone.stopped = True
