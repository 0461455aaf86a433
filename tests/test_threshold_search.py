import itertools

import numpy as np
import pytest

from audiometry_engine.models import Ear
from audiometry_engine.procedures.levels import DEFAULT_SCALE
from audiometry_engine.procedures.threshold_search import (
    SearchPhase,
    SearchState,
    ThresholdSearch,
    advance,
    initial_state,
    run_search,
)


def listener(threshold):
    def answer(level):
        return level >= threshold
    return answer


def search_against(threshold, **kwargs):
    search = ThresholdSearch(Ear.RIGHT, 1000, **kwargs)
    hears = listener(threshold)
    while not search.is_complete:
        level = search.present()
        search.respond(hears(level))
    return search


class TestScenarios:

    def test_threshold_at_30(self):
        search = search_against(30)
        assert search.threshold.level == 30
        assert not search.threshold.no_response
        assert not search.threshold.capped
        assert search.progression == (
            (40, True, '0/0', 'familiarization'),
            (40, True, '0/0', 'descending'),
            (30, True, '0/0', 'descending'),
            (20, False, '0/0', 'descending'),
            (25, False, '0/1', 'ascending'),
            (30, True, '1/1', 'ascending'),
            (30, True, '2/2', 'ascending'),
            (30, True, '3/3', 'ascending'),
        )
        assert search.threshold.presentations == 8

    def test_never_heard_saturates_at_maximum(self):
        search = search_against(1000)
        assert search.threshold.level == 100
        assert search.threshold.no_response
        assert [step[0] for step in search.progression] == [40, 60, 80, 100]

    def test_always_heard_finalizes_at_minimum(self):
        search = search_against(-100)
        assert search.threshold.level == -10
        assert not search.threshold.no_response
        assert [step[0] for step in search.progression] == [40, 40, 30, 20, 10, 0, -10]

    def test_start_at_maximum_never_heard(self):
        search = search_against(1000, starting_level=100)
        assert search.threshold.level == 100
        assert search.threshold.no_response
        assert search.threshold.presentations == 1

    def test_threshold_between_ladder_levels_rounds_up(self):
        assert search_against(32).threshold.level == 35

    def test_unconverging_responses_are_capped(self):
        responses = [True, True, False] + [True, False] * 20
        search = run_search(responses)
        assert search.threshold.capped
        assert search.threshold.presentations == 20
        assert search.threshold.level == 75
        assert not search.threshold.no_response

    def test_custom_presentation_bound(self):
        search = run_search(itertools.cycle([True, False]), max_presentations=6)
        assert search.is_complete
        assert search.threshold.presentations <= 6


class TestTermination:

    @pytest.mark.parametrize('length', [1, 2, 3, 5, 8])
    def test_every_repeating_pattern_terminates(self, length):
        for pattern in itertools.product([True, False], repeat=length):
            search = run_search(itertools.cycle(pattern))
            self._check(search)

    def test_all_sequences_of_length_12(self):
        for pattern in itertools.product([True, False], repeat=12):
            # Pad with misses so every sequence has a definite end
            search = run_search(itertools.chain(pattern, itertools.repeat(False)))
            self._check(search)

    def test_random_sequences(self):
        rng = np.random.default_rng(1234)
        for _ in range(500):
            p = rng.uniform(0.05, 0.95)
            search = run_search(bool(x) for x in rng.random(100) < p)
            self._check(search)

    @staticmethod
    def _check(search):
        assert search.is_complete
        threshold = search.threshold
        assert threshold.presentations <= 20
        assert threshold.level in DEFAULT_SCALE.levels
        assert len(search.progression) == threshold.presentations
        if threshold.no_response:
            assert threshold.level == 100


class TestSearchState:

    def test_initial_state(self):
        state = initial_state()
        assert state.phase is SearchPhase.FAMILIARIZATION
        assert DEFAULT_SCALE.level(state.level_index) == 40
        assert state.presentations == 0

    def test_confirmed_state_is_terminal(self):
        state = run_search(itertools.repeat(True)).state
        assert advance(state, False) is state

    def test_resume_from_serialized_state(self):
        responses = [True, True, True, False, False, True, True, True]
        partial = run_search(responses[:4])
        restored = SearchState.from_dict(partial.state.to_dict())
        assert restored == partial.state

        resumed = ThresholdSearch(Ear.RIGHT, 1000, state=restored)
        for heard in responses[4:]:
            resumed.present()
            resumed.respond(heard)
        assert resumed.state == run_search(responses).state


class TestThresholdSearch:

    def test_response_without_presentation_is_ignored(self):
        search = ThresholdSearch(Ear.LEFT, 2000)
        assert not search.respond(True)
        assert search.state.presentations == 0

    def test_double_response_advances_once(self):
        search = ThresholdSearch(Ear.LEFT, 2000)
        search.present()
        assert search.respond(True)
        assert not search.respond(True)
        assert search.state.presentations == 1
        assert search.phase is SearchPhase.DESCENDING

    def test_cancelled_presentation_does_not_count(self):
        search = ThresholdSearch(Ear.LEFT, 2000)
        search.present()
        search.cancel_presentation()
        assert not search.respond(False)
        assert search.level == 40

    def test_present_after_completion_raises(self):
        search = run_search(itertools.repeat(False))
        with pytest.raises(RuntimeError):
            search.present()

    def test_threshold_identifies_pair(self):
        search = run_search(itertools.repeat(False), ear=Ear.LEFT, frequency=8000)
        assert search.threshold.ear is Ear.LEFT
        assert search.threshold.frequency == 8000
