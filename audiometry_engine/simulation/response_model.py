"""Simulated listeners answering tone presentations."""

import numpy as np
from scipy.special import expit, logit

from ..models import Ear
from ..utils.defaults import DEFAULT_SLOPE, DEFAULT_GUESS_RATE, DEFAULT_LAPSE_RATE


class HearingResponseModel:
    """Models probability of response to pure tone stimulus."""

    def __init__(self, slope=DEFAULT_SLOPE, guess_rate=DEFAULT_GUESS_RATE,
                 lapse_rate=DEFAULT_LAPSE_RATE, threshold_probability=0.5):
        """
        Initialize the hearing response model.

        Args:
            slope (float): Steepness of the psychometric function
            guess_rate (float): Probability of a "heard" answer to an inaudible tone
            lapse_rate (float): Probability of missing a clearly audible tone
            threshold_probability (float): Probability of response at threshold (0-1)
        """
        if not 0 <= threshold_probability <= 1:
            raise ValueError("threshold_probability must be between 0 and 1")
        if guess_rate + lapse_rate > 1:
            raise ValueError("guess_rate and lapse_rate must not sum above 1")

        self.slope = slope
        self.guess_rate = guess_rate
        self.lapse_rate = lapse_rate
        self.threshold_probability = threshold_probability

        # Shift so the function crosses threshold_probability at the true threshold
        if threshold_probability == 0:
            self.threshold_bias = float('-inf')
        elif threshold_probability == 1:
            self.threshold_bias = float('inf')
        else:
            self.threshold_bias = logit(threshold_probability) / self.slope

    def get_response_probability(self, stimulus_level, true_threshold):
        """Calculate probability of response for given stimulus level."""
        x = self.slope * (stimulus_level - true_threshold + self.threshold_bias)
        p = expit(x)
        return float(self.guess_rate + (1 - self.guess_rate - self.lapse_rate) * p)

    def sample_response(self, stimulus_level, true_threshold, rng):
        """Draw a binary response from the model using ``rng``."""
        p = self.get_response_probability(stimulus_level, true_threshold)
        return bool(rng.random() < p)


class SimulatedListener:
    """
    Listener with known true thresholds per ear and frequency.

    Args:
        true_thresholds (dict): ``{Ear: {frequency: dB HL}}``.
        response_model (HearingResponseModel): Psychometric model; the default is
            a steep, nearly deterministic listener.
        timeout_rate (float): Probability of giving no answer at all, letting the
            response timeout decide.
        random_state (int or np.random.Generator): Seed for reproducibility.
    """

    def __init__(self, true_thresholds, response_model=None, timeout_rate=0.0, random_state=None):
        self.true_thresholds = {Ear(ear): {int(f): float(v) for f, v in levels.items()}
                                for ear, levels in true_thresholds.items()}
        self.response_model = response_model or HearingResponseModel(
            slope=10, guess_rate=0.0, lapse_rate=0.0)
        if not 0 <= timeout_rate <= 1:
            raise ValueError("timeout_rate must be between 0 and 1")
        self.timeout_rate = timeout_rate
        self.rng = np.random.default_rng(random_state)

    def true_threshold(self, ear, frequency):
        try:
            return self.true_thresholds[ear][int(frequency)]
        except KeyError as e:
            raise ValueError(f"No true threshold for {ear.value} ear at {frequency} Hz") from e

    def respond(self, ear, frequency, level):
        """Answer one presentation: True/False, or None to stay silent."""
        if self.timeout_rate and self.rng.random() < self.timeout_rate:
            return None
        return self.response_model.sample_response(level, self.true_threshold(ear, frequency), self.rng)
