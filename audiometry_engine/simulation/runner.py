"""Drive a complete test with a simulated listener."""
import logging

from ..exceptions import EmitterFailure
from ..models import Ear
from ..procedures.orchestrator import TestOrchestrator, TestStatus
from ..utils.config import EngineConfig
from ..utils.timers import ManualScheduler
from .emitters import InProcessToneEmitter

logger = logging.getLogger(__name__)


def run_simulated_session(listener, config=None, starting_ear=Ear.RIGHT, calibration=None,
                          emitter=None, max_steps=10000):
    """
    Run a full test on a virtual clock, answering each tone with ``listener``.

    Silent answers (``None`` from the listener) advance the clock past the
    response timeout so the orchestrator records "not heard" itself.

    Args:
        listener: Object with ``respond(ear, frequency, level) -> bool | None``.
        config (EngineConfig): Engine configuration.
        starting_ear (Ear): Ear tested first.
        calibration (CalibrationProfile): Optional calibration for the amplitude mapping.
        emitter: Tone emitter; defaults to an InProcessToneEmitter.
        max_steps (int): Safety bound on driver iterations.

    Returns:
        TestOrchestrator: The orchestrator after the test ended (complete or paused).
    """
    config = config or EngineConfig()
    scheduler = ManualScheduler()
    emitter = emitter or InProcessToneEmitter()
    orchestrator = TestOrchestrator(emitter, scheduler, calibration=calibration, config=config)
    if hasattr(emitter, 'bind'):
        emitter.bind(orchestrator)

    steps = 0
    try:
        orchestrator.start_test(starting_ear)
        while orchestrator.status is TestStatus.TESTING:
            steps += 1
            if steps > max_steps:
                raise RuntimeError(f"Simulated test did not finish within {max_steps} steps")
            presentation = orchestrator.pending_presentation
            if presentation is None:
                scheduler.advance(config.timing.inter_tone_delay)
                continue
            answer = listener.respond(presentation.ear, presentation.frequency, presentation.level)
            if answer is None:
                scheduler.advance(config.timing.response_timeout)
            else:
                orchestrator.respond_to_tone(answer)
    except EmitterFailure as e:
        # The orchestrator is paused; the caller decides between retry and abort
        logger.warning("Simulated test paused after emitter failure: %s", e)

    logger.debug("Simulated test ended with status %s after %d steps", orchestrator.status.value, steps)
    return orchestrator
