"""
Sequencing of threshold searches over frequencies and ears.

The orchestrator owns the test session while a test runs. It turns each search
step into a tone presentation, waits for a response (bounded by a timeout that
answers "not heard"), and moves on to the next (ear, frequency) pair when a
search confirms.

Every state change happens under one lock, and a presentation is resolved at
most once: whichever of the user response or the timeout arrives first wins,
and the timeout is cancelled in the same critical section.
"""
# Standard library imports
import itertools
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, Iterable, Optional, Protocol, Tuple

# Local imports
from ..analysis.classification import HearingResult, ResponseClassifier
from ..calibration.mapping import db_to_amplitude
from ..calibration.profile import CalibrationProfile
from ..exceptions import EmitterFailure, IncompleteSessionError
from ..models import Ear, ResponseEvent, TestSession, utcnow
from ..storage.result_store import ResultStore, build_record
from ..utils.config import EngineConfig
from ..utils.timers import Scheduler
from .levels import HearingLevelScale, DEFAULT_SCALE
from .threshold_search import SearchPhase, ThresholdSearch

logger = logging.getLogger(__name__)


class ToneEmitter(Protocol):
    """Plays sine tones; completion or failure is reported back asynchronously."""

    def play(self, frequency: int, amplitude: float, ear: Ear) -> Any:
        ...

    def stop(self, handle: Any) -> None:
        ...


class TestStatus(Enum):
    __test__ = False  # keep pytest from collecting this class

    READY = 'ready'
    TESTING = 'testing'
    PAUSED = 'paused'
    STOPPED = 'stopped'
    COMPLETE = 'complete'


@dataclass
class Presentation:
    presentation_id: int
    ear: Ear
    frequency: int
    level: int
    amplitude: float
    phase: str
    started_at: datetime
    handle: Any = None
    tone_finished: bool = False


class TestOrchestrator:
    """
    Run a full pure-tone test: every frequency on the starting ear, then every
    frequency on the other ear.

    Args:
        emitter: ToneEmitter that plays the tones.
        scheduler: Scheduler for inter-tone delays, response timeouts and tone stops.
        calibration: Calibration profile for the dB HL to amplitude mapping; None
            uses the raw mapping.
        config: Engine configuration.
        frequencies: Test frequencies in order; defaults to the configured list.
        scale: Hearing level ladder.
        clock: Returns the timestamp for response events.
    """

    __test__ = False  # keep pytest from collecting this class

    def __init__(self, emitter: ToneEmitter, scheduler: Scheduler,
                 calibration: Optional[CalibrationProfile] = None,
                 config: Optional[EngineConfig] = None,
                 frequencies: Optional[Iterable[int]] = None,
                 scale: HearingLevelScale = DEFAULT_SCALE,
                 clock: Callable[[], datetime] = utcnow):
        self.emitter = emitter
        self.scheduler = scheduler
        self.calibration = calibration
        self.config = config or EngineConfig()
        self.frequencies = tuple(int(f) for f in (frequencies or self.config.procedure.frequencies))
        self.scale = scale
        self.clock = clock

        self._lock = threading.RLock()
        self._status = TestStatus.READY
        self._session: Optional[TestSession] = None
        self._pairs: Tuple[Tuple[Ear, int], ...] = ()
        self._pair_index = 0
        self._search: Optional[ThresholdSearch] = None
        self._pending: Optional[Presentation] = None
        self._presentation_ids = itertools.count(1)
        self._play_timer = None
        self._timeout_timer = None
        self._tone_timer = None
        self._playing = False
        self._play_failure: Optional[EmitterFailure] = None

        self.progression_patterns: Dict[Tuple[Ear, int], tuple] = {}
        self.failure: Optional[EmitterFailure] = None
        self.saved = False

    # State accessors

    @property
    def status(self) -> TestStatus:
        return self._status

    @property
    def session(self) -> Optional[TestSession]:
        return self._session

    @property
    def current_ear(self) -> Optional[Ear]:
        return self._search.ear if self._search else None

    @property
    def current_frequency(self) -> Optional[int]:
        return self._search.frequency if self._search else None

    @property
    def current_level(self) -> Optional[int]:
        return self._search.level if self._search else None

    @property
    def current_phase(self) -> Optional[SearchPhase]:
        return self._search.phase if self._search else None

    @property
    def is_tone_active(self) -> bool:
        return self._pending is not None

    @property
    def pending_presentation(self) -> Optional[Presentation]:
        return self._pending

    @property
    def progress(self) -> float:
        """Fraction of (ear, frequency) pairs with a recorded threshold."""
        if not self._pairs:
            return 0.0
        return len(self._session.thresholds) / len(self._pairs)

    # Test control

    def start_test(self, starting_ear: Ear = Ear.RIGHT) -> None:
        """Reset all state and begin with the first frequency on ``starting_ear``."""
        with self._lock:
            presentation = self._pending
            self._halt()
            if presentation is not None:
                self._stop_tone(presentation)
            self._session = TestSession(self.frequencies, ears=(starting_ear, starting_ear.other),
                                        started_at=self.clock())
            self._pairs = self._session.pairs
            self._pair_index = 0
            self.progression_patterns = {}
            self.failure = None
            self.saved = False
            self._status = TestStatus.TESTING
            self._search = self._new_search(*self._pairs[0])
            logger.info("Starting test %s with the %s ear over %s Hz", self._session.session_id,
                        starting_ear.value, list(self.frequencies))
            self._schedule_presentation()

    def stop_test(self) -> None:
        """
        Stop mid-session. Recorded events are kept and the session stays
        incomplete; later responses are ignored.
        """
        with self._lock:
            presentation = self._pending
            self._halt()
            if self._status in (TestStatus.TESTING, TestStatus.PAUSED):
                self._status = TestStatus.STOPPED
                logger.info("Test stopped at %.0f%% progress", self.progress * 100)
            if presentation is not None:
                self._stop_tone(presentation)

    def abort(self) -> None:
        """Give up after an emitter failure."""
        self.stop_test()

    def retry(self) -> bool:
        """Present the current tone again after an emitter failure."""
        with self._lock:
            if self._status is not TestStatus.PAUSED:
                return False
            logger.info("Retrying after emitter failure: %s", self.failure)
            self.failure = None
            self._status = TestStatus.TESTING
            self._schedule_presentation()
            return True

    def respond_to_tone(self, heard: bool) -> bool:
        """
        Apply the user's answer to the tone being presented.

        Returns:
            bool: False when no tone was awaiting a response or the test is not
            running (the answer is ignored).
        """
        with self._lock:
            if self._status is not TestStatus.TESTING or self._pending is None:
                logger.debug("Ignoring response %s: no tone awaiting a response", heard)
                return False
            self._resolve(bool(heard), timed_out=False)
            return True

    # Emitter callbacks

    def on_playback_complete(self, handle) -> None:
        with self._lock:
            if self._pending is not None and self._pending.handle == handle:
                self._pending.tone_finished = True
                logger.debug("Tone %s finished, waiting for response", handle)

    def on_playback_failed(self, handle, error=None) -> bool:
        """
        Report an asynchronous playback failure. The presentation is withdrawn
        without a response event and the test pauses for retry or abort.

        A failure reported from inside ``play`` (before the handle is known)
        belongs to the tone being started.

        Returns:
            bool: False when the handle does not belong to the pending tone.
        """
        with self._lock:
            if self._playing:
                search = self._search
                self._play_failure = EmitterFailure(f"Playback failed: {error}", search.ear,
                                                    search.frequency, search.level)
                return True
            presentation = self._pending
            if presentation is None or presentation.handle != handle:
                logger.debug("Ignoring playback failure for stale tone %s", handle)
                return False
            self._pause(EmitterFailure(f"Playback failed: {error}", presentation.ear,
                                       presentation.frequency, presentation.level))
            return True

    # Results

    def classify(self, classifier: Optional[ResponseClassifier] = None) -> HearingResult:
        if self._status is not TestStatus.COMPLETE:
            raise IncompleteSessionError("Cannot classify an incomplete test")
        return (classifier or ResponseClassifier()).classify(self._session)

    def save_results(self, store: ResultStore, classifier: Optional[ResponseClassifier] = None) -> bool:
        """
        Hand the completed session and its classification to a result store.

        The store is called at most once per session: after a successful save
        this returns True without calling it again. A failed save can be retried.
        """
        with self._lock:
            if self._status is not TestStatus.COMPLETE:
                raise IncompleteSessionError("Only a completed test can be saved")
            if self.saved:
                logger.info("Session %s already saved", self._session.session_id)
                return True
            record = build_record(self._session, self.classify(classifier))
            stored = bool(store.save(record))
            if stored:
                self.saved = True
            else:
                logger.warning("Result store did not save session %s", self._session.session_id)
            return stored

    # Internals

    def _new_search(self, ear, frequency):
        return ThresholdSearch(ear, frequency, scale=self.scale,
                               starting_level=self.config.procedure.starting_level,
                               max_presentations=self.config.procedure.max_presentations)

    def _schedule_presentation(self):
        delay = self.config.timing.inter_tone_delay
        if delay > 0:
            self._play_timer = self.scheduler.call_later(delay, self._present)
        else:
            self._present()

    def _present(self):
        with self._lock:
            self._play_timer = None
            search = self._search
            if self._status is not TestStatus.TESTING or self._pending is not None or search is None:
                return
            level = search.present()
            amplitude = db_to_amplitude(level, search.frequency, self.calibration,
                                        self.config.calibration.reference_level)
            presentation = Presentation(
                presentation_id=next(self._presentation_ids),
                ear=search.ear,
                frequency=search.frequency,
                level=level,
                amplitude=amplitude,
                phase=search.phase.value,
                started_at=self.clock(),
            )
            self._playing = True
            self._play_failure = None
            try:
                presentation.handle = self.emitter.play(search.frequency, amplitude, search.ear)
            except Exception as e:
                search.cancel_presentation()
                raise self._pause(EmitterFailure(f"Could not play tone: {e}", search.ear,
                                                 search.frequency, level)) from e
            finally:
                self._playing = False
            if self._play_failure is not None:
                failure, self._play_failure = self._play_failure, None
                search.cancel_presentation()
                self._pause(failure)
                return
            self._pending = presentation
            logger.debug("Presenting %d Hz at %d dB HL (amplitude %.3f) to the %s ear",
                         search.frequency, level, amplitude, search.ear.value)
            timing = self.config.timing
            self._timeout_timer = self.scheduler.call_later(
                timing.response_timeout, partial(self._on_timeout, presentation.presentation_id))
            if timing.tone_duration:
                self._tone_timer = self.scheduler.call_later(
                    timing.tone_duration, partial(self._on_tone_duration, presentation.presentation_id))

    def _on_timeout(self, presentation_id):
        with self._lock:
            if self._pending is None or self._pending.presentation_id != presentation_id:
                logger.debug("Timeout for presentation %d already resolved", presentation_id)
                return
            logger.debug("No response within %.1f s, recording not heard",
                         self.config.timing.response_timeout)
            self._resolve(False, timed_out=True)

    def _on_tone_duration(self, presentation_id):
        with self._lock:
            presentation = self._pending
            if presentation is None or presentation.presentation_id != presentation_id:
                return
            self._tone_timer = None
            self._stop_tone(presentation)

    def _resolve(self, heard, timed_out):
        presentation = self._pending
        self._pending = None
        self._cancel_presentation_timers()

        search = self._search
        search.respond(heard)
        self._session.append_event(ResponseEvent(
            frequency=presentation.frequency,
            ear=presentation.ear,
            hearing_level=presentation.level,
            heard=heard,
            timestamp=self.clock(),
            timed_out=timed_out,
            phase=presentation.phase,
        ))
        if search.is_complete:
            self._complete_pair(search)

        self._stop_tone(presentation)
        if self._status is TestStatus.TESTING:
            self._schedule_presentation()

    def _complete_pair(self, search):
        self._session.record_threshold(search.threshold)
        self.progression_patterns[(search.ear, search.frequency)] = search.progression
        self._pair_index += 1
        if self._pair_index >= len(self._pairs):
            self._search = None
            self._session.finalize(self.clock())
            self._status = TestStatus.COMPLETE
            logger.info("Test %s complete", self._session.session_id)
            return
        ear, frequency = self._pairs[self._pair_index]
        if ear is not search.ear:
            logger.info("Switching to the %s ear", ear.value)
        self._search = self._new_search(ear, frequency)

    def _stop_tone(self, presentation):
        if presentation.tone_finished:
            return
        presentation.tone_finished = True
        try:
            self.emitter.stop(presentation.handle)
        except Exception as e:
            if self._status is TestStatus.COMPLETE:
                # Every threshold is already recorded
                logger.warning("Could not stop the final tone at %s Hz: %s", presentation.frequency, e)
                return
            failure = EmitterFailure(f"Could not stop tone: {e}", presentation.ear,
                                     presentation.frequency, presentation.level)
            if self._status is TestStatus.TESTING:
                self._pause(failure)
            raise failure from e

    def _pause(self, failure):
        # The pending tone is withdrawn; retry presents the same level again
        self._halt()
        self._status = TestStatus.PAUSED
        self.failure = failure
        logger.warning("Emitter failure at %s Hz, %s dB HL (%s ear): %s", failure.frequency,
                       failure.level, failure.ear.value if failure.ear else '?', failure)
        return failure

    def _cancel_timer(self, name):
        timer = getattr(self, name)
        if timer is not None:
            timer.cancel()
            setattr(self, name, None)

    def _cancel_presentation_timers(self):
        self._cancel_timer('_timeout_timer')
        self._cancel_timer('_tone_timer')

    def _halt(self):
        self._cancel_timer('_play_timer')
        self._cancel_presentation_timers()
        if self._pending is not None:
            if self._search is not None:
                self._search.cancel_presentation()
            self._pending = None
