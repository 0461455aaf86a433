"""
Adaptive threshold search using a bounded modified Hughson-Westlake procedure.

One search covers one (ear, frequency) pair and moves through four phases:

- familiarization: start at 40 dB HL, +20 dB after each miss until heard
- descending: -10 dB after each response, switch to ascending on the first miss
- ascending: +5 dB after each miss; a level with 2 positive responses out of at
  least 3 presentations (or 5 presentations in total) is the threshold
- confirmed: terminal

The state is an immutable ``SearchState`` and ``advance`` is a pure function,
so a search can be stored, replayed and tested without any audio or timers.
"""
# Standard library imports
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

# Local imports
from ..models import Ear, Threshold
from ..utils.defaults import (
    DEFAULT_STARTING_LEVEL,
    FAMILIARIZATION_STEP_UP,
    DESCENDING_STEP_DOWN,
    ASCENDING_STEP_UP,
    CONFIRMATION_POSITIVE_RESPONSES,
    CONFIRMATION_MIN_RESPONSES,
    CONFIRMATION_MAX_RESPONSES,
    MAX_PRESENTATIONS_PER_PAIR,
)
from .levels import HearingLevelScale, DEFAULT_SCALE

logger = logging.getLogger(__name__)

# (level, response, ratio, phase)
ProgressionStep = Tuple[int, bool, str, str]


class SearchPhase(Enum):
    FAMILIARIZATION = 'familiarization'
    DESCENDING = 'descending'
    ASCENDING = 'ascending'
    CONFIRMED = 'confirmed'


@dataclass(frozen=True)
class SearchState:
    level_index: int
    phase: SearchPhase = SearchPhase.FAMILIARIZATION
    response_count: int = 0
    positive_response_count: int = 0
    presentations: int = 0
    threshold: Optional[int] = None
    no_response: bool = False
    capped: bool = False
    progression: Tuple[ProgressionStep, ...] = ()

    @property
    def is_confirmed(self) -> bool:
        return self.phase is SearchPhase.CONFIRMED

    def to_dict(self) -> dict:
        return {
            'level_index': self.level_index,
            'phase': self.phase.value,
            'response_count': self.response_count,
            'positive_response_count': self.positive_response_count,
            'presentations': self.presentations,
            'threshold': self.threshold,
            'no_response': self.no_response,
            'capped': self.capped,
            'progression': [list(step) for step in self.progression],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'SearchState':
        return cls(
            level_index=int(data['level_index']),
            phase=SearchPhase(data['phase']),
            response_count=int(data.get('response_count', 0)),
            positive_response_count=int(data.get('positive_response_count', 0)),
            presentations=int(data.get('presentations', 0)),
            threshold=data.get('threshold'),
            no_response=bool(data.get('no_response', False)),
            capped=bool(data.get('capped', False)),
            progression=tuple(
                (int(level), bool(heard), str(ratio), str(phase))
                for level, heard, ratio, phase in data.get('progression', [])
            ),
        )


def initial_state(scale: HearingLevelScale = DEFAULT_SCALE,
                  starting_level: int = DEFAULT_STARTING_LEVEL) -> SearchState:
    """Familiarization state at the starting level."""
    return SearchState(level_index=scale.index_of(starting_level))


def _confirm(state, scale, level_index, **changes):
    return replace(state,
                   level_index=level_index,
                   phase=SearchPhase.CONFIRMED,
                   threshold=scale.level(level_index),
                   **changes)


def advance(state: SearchState, heard: bool,
            scale: HearingLevelScale = DEFAULT_SCALE,
            max_presentations: int = MAX_PRESENTATIONS_PER_PAIR) -> SearchState:
    """
    Apply one response to a search state.

    Args:
        state: State of the presentation that was just answered.
        heard: Whether the tone was heard.
        scale: Hearing level ladder used for stepping.
        max_presentations: Presentation bound; reaching it finalizes the search.

    Returns:
        SearchState: The next state. A confirmed state is returned unchanged.
    """
    if state.is_confirmed:
        return state

    heard = bool(heard)
    index = state.level_index
    phase = state.phase
    count = state.response_count
    positive = state.positive_response_count

    if phase is SearchPhase.FAMILIARIZATION:
        if heard:
            nxt = replace(state, phase=SearchPhase.DESCENDING)
        else:
            new_index, moved = scale.raise_by(index, FAMILIARIZATION_STEP_UP)
            if moved:
                nxt = replace(state, level_index=new_index)
            else:
                # Never heard, even at the top of the scale
                nxt = _confirm(state, scale, scale.max_index, no_response=True)

    elif phase is SearchPhase.DESCENDING:
        if heard:
            new_index, moved = scale.lower_by(index, DESCENDING_STEP_DOWN)
            if moved:
                nxt = replace(state, level_index=new_index)
            else:
                nxt = _confirm(state, scale, index)
        else:
            new_index, _ = scale.raise_by(index, ASCENDING_STEP_UP)
            nxt = replace(state, level_index=new_index, phase=SearchPhase.ASCENDING,
                          response_count=0, positive_response_count=0)

    else:  # ascending
        count += 1
        if heard:
            positive += 1
            if positive >= CONFIRMATION_POSITIVE_RESPONSES and count >= CONFIRMATION_MIN_RESPONSES:
                nxt = _confirm(state, scale, index,
                               response_count=count, positive_response_count=positive)
            elif count >= CONFIRMATION_MAX_RESPONSES:
                nxt = _confirm(state, scale, index,
                               response_count=count, positive_response_count=positive)
            else:
                nxt = replace(state, response_count=count, positive_response_count=positive)
        else:
            new_index, _ = scale.raise_by(index, ASCENDING_STEP_UP)
            nxt = replace(state, level_index=new_index,
                          response_count=0, positive_response_count=0)

    ratio = f"{positive}/{count}" if phase is SearchPhase.ASCENDING else "0/0"
    step = (scale.level(index), heard, ratio, phase.value)
    nxt = replace(nxt, presentations=state.presentations + 1,
                  progression=state.progression + (step,))

    if not nxt.is_confirmed and nxt.presentations >= max_presentations:
        saturated = scale.is_maximum(nxt.level_index) and not heard
        nxt = _confirm(nxt, scale, nxt.level_index, capped=True, no_response=saturated)

    return nxt


class ThresholdSearch:
    """
    Threshold search for one (ear, frequency) pair.

    Wraps a ``SearchState`` with the notion of an active presentation:
    ``respond`` is only applied after ``present`` and before the response, so
    duplicate or late answers cannot advance the search twice.
    """

    def __init__(self, ear: Ear, frequency: int,
                 scale: HearingLevelScale = DEFAULT_SCALE,
                 starting_level: int = DEFAULT_STARTING_LEVEL,
                 max_presentations: int = MAX_PRESENTATIONS_PER_PAIR,
                 state: Optional[SearchState] = None):
        self.ear = ear
        self.frequency = int(frequency)
        self.scale = scale
        self.max_presentations = max_presentations
        self._state = state or initial_state(scale, starting_level)
        self._active = False

    @property
    def state(self) -> SearchState:
        return self._state

    @property
    def phase(self) -> SearchPhase:
        return self._state.phase

    @property
    def level(self) -> int:
        return self.scale.level(self._state.level_index)

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def is_complete(self) -> bool:
        return self._state.is_confirmed

    def present(self) -> int:
        """Mark a tone as active and return the level to present."""
        if self.is_complete:
            raise RuntimeError(f"Search at {self.frequency} Hz ({self.ear.value}) is already confirmed")
        self._active = True
        return self.level

    def cancel_presentation(self) -> None:
        """Withdraw the active tone without recording a response."""
        self._active = False

    def respond(self, heard: bool) -> bool:
        """
        Apply a response to the active tone.

        Returns:
            bool: False when no tone was active and the response was ignored.
        """
        if not self._active:
            logger.debug("Ignoring response at %d Hz (%s ear): no active tone",
                         self.frequency, self.ear.value)
            return False
        self._active = False
        previous = self._state
        self._state = advance(previous, heard, self.scale, self.max_presentations)
        logger.debug("%s ear %d Hz: %s at %d dB HL (%s) -> %s at %d dB HL",
                     self.ear.value, self.frequency, 'heard' if heard else 'not heard',
                     self.scale.level(previous.level_index), previous.phase.value,
                     self._state.phase.value, self.level)
        if self.is_complete:
            if self._state.capped:
                logger.warning("%s ear %d Hz: no convergence after %d presentations, "
                               "recording %d dB HL", self.ear.value, self.frequency,
                               self._state.presentations, self._state.threshold)
            else:
                logger.info("%s ear %d Hz: threshold %d dB HL%s", self.ear.value, self.frequency,
                            self._state.threshold, ' (no response)' if self._state.no_response else '')
        return True

    @property
    def threshold(self) -> Optional[Threshold]:
        if not self.is_complete:
            return None
        return Threshold(
            ear=self.ear,
            frequency=self.frequency,
            level=self._state.threshold,
            no_response=self._state.no_response,
            capped=self._state.capped,
            presentations=self._state.presentations,
        )

    @property
    def progression(self) -> Tuple[ProgressionStep, ...]:
        return self._state.progression


def run_search(responses, ear: Ear = Ear.RIGHT, frequency: int = 1000, **kwargs) -> ThresholdSearch:
    """
    Feed a sequence of responses into a fresh search until it confirms.

    ``responses`` may be any iterable of booleans; it is consumed lazily and the
    search stops reading once it is confirmed.
    """
    search = ThresholdSearch(ear, frequency, **kwargs)
    for heard in responses:
        if search.is_complete:
            break
        search.present()
        search.respond(heard)
    return search
