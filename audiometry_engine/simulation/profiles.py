"""Synthetic true-threshold profiles for simulated listeners."""

import numpy as np

from ..models import Ear
from ..utils.defaults import STANDARD_FREQUENCIES, MIN_HEARING_LEVEL, MAX_HEARING_LEVEL

PROFILE_TYPES = ('normal_hearing', 'age_related', 'noise_induced', 'flat', 'asymmetric')


def _clip(value):
    return float(np.clip(value, MIN_HEARING_LEVEL, MAX_HEARING_LEVEL))


def _ear_profile(profile_type, frequencies, rng, base=None):
    thresholds = {}
    if profile_type == 'normal_hearing':
        # Flat, minimal hearing loss
        base = rng.uniform(0, 15) if base is None else base
        for freq in frequencies:
            thresholds[freq] = _clip(min(base + rng.normal(0, 2), 20))

    elif profile_type == 'age_related':
        # High-frequency sloping loss
        base = rng.uniform(10, 30) if base is None else base
        slope = rng.uniform(0.5, 2.0)
        for freq in frequencies:
            octaves_from_250 = np.log2(freq / 250)
            thresholds[freq] = _clip(base + slope * octaves_from_250 * 10 + rng.normal(0, 3))

    elif profile_type == 'noise_induced':
        # 4 kHz notch
        for freq in frequencies:
            if freq == 4000:
                level = rng.uniform(40, 70)
            elif freq in (2000, 8000):
                level = rng.uniform(25, 45)
            else:
                level = rng.uniform(10, 30)
            thresholds[freq] = _clip(level + rng.normal(0, 3))

    elif profile_type == 'flat':
        base = rng.uniform(10, 80) if base is None else base
        for freq in frequencies:
            thresholds[freq] = _clip(base + rng.uniform(-5, 5))

    else:
        raise ValueError(f"Unrecognized profile type: {profile_type}. Expected one of {PROFILE_TYPES}.")
    return thresholds


def generate_listener_thresholds(profile_type='normal_hearing', frequencies=STANDARD_FREQUENCIES,
                                 random_state=None):
    """
    Generate true thresholds for both ears.

    Args:
        profile_type (str): One of PROFILE_TYPES. ``asymmetric`` gives a normal
            right ear and a flat loss of 50-70 dB on the left.
        frequencies (sequence): Frequencies in Hz.
        random_state (int or np.random.Generator): Seed for reproducibility.

    Returns:
        dict: ``{Ear: {frequency: dB HL}}``
    """
    rng = np.random.default_rng(random_state)
    frequencies = [int(f) for f in frequencies]
    if profile_type == 'asymmetric':
        return {
            Ear.RIGHT: _ear_profile('normal_hearing', frequencies, rng),
            Ear.LEFT: _ear_profile('flat', frequencies, rng, base=rng.uniform(50, 70)),
        }
    if profile_type not in PROFILE_TYPES:
        raise ValueError(f"Unrecognized profile type: {profile_type}. Expected one of {PROFILE_TYPES}.")
    # Ears share the profile shape but vary independently
    return {ear: _ear_profile(profile_type, frequencies, rng) for ear in (Ear.RIGHT, Ear.LEFT)}
