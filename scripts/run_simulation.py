#!/usr/bin/env python3
"""
Main simulation script for running the adaptive threshold test against
simulated listeners.

Each listener gets true thresholds drawn from a hearing profile, answers tones
through a psychometric response model, and is classified at the end.
"""

import argparse
import dataclasses
import logging
import sys
from pathlib import Path

import numpy as np
import pandas as pd
from tqdm import tqdm

# Add the package to the path
sys.path.append(str(Path(__file__).parent.parent))

from audiometry_engine.models import Ear
from audiometry_engine.analysis import ResponseClassifier, format_result, sessions_to_dataframe
from audiometry_engine.procedures import TestStatus
from audiometry_engine.simulation import (
    HearingResponseModel,
    SimulatedListener,
    generate_listener_thresholds,
    run_simulated_session,
)
from audiometry_engine.utils import load_config

logger = logging.getLogger(__name__)


def run_simulation(config):
    """Run the main simulation based on configuration."""
    sim = config.simulation
    print(f"Running simulation with {sim.n_listeners} listeners ({sim.profile} profile)")
    print(f"Frequencies: {list(config.procedure.frequencies)}")

    rng = np.random.default_rng(sim.seed)
    response_model = HearingResponseModel(slope=sim.slope, guess_rate=sim.guess_rate,
                                          lapse_rate=sim.lapse_rate)
    classifier = ResponseClassifier()

    sessions, results, errors = [], [], []
    for _ in tqdm(range(sim.n_listeners), desc="Simulating listeners"):
        true_thresholds = generate_listener_thresholds(sim.profile, config.procedure.frequencies, rng)
        listener = SimulatedListener(true_thresholds, response_model=response_model,
                                     timeout_rate=sim.timeout_rate, random_state=rng)
        orchestrator = run_simulated_session(listener, config=config)
        if orchestrator.status is not TestStatus.COMPLETE:
            logger.warning("Listener test ended with status %s", orchestrator.status.value)
            continue

        session = orchestrator.session
        result = classifier.classify(session)
        sessions.append(session)
        results.append(result)
        tqdm.write(f"Listener {len(sessions)}: {result.overall_classification.display_name} "
                   f"(right {session.average_level(Ear.RIGHT):.1f} dB, left {session.average_level(Ear.LEFT):.1f} dB)")
        for (ear, frequency), threshold in session.thresholds.items():
            errors.append(threshold.level - listener.true_threshold(ear, frequency))

    return sessions, results, np.array(errors)


def main():
    parser = argparse.ArgumentParser(description='Run audiometry simulation study')
    parser.add_argument('--config', type=str,
                        default='configs/default.yaml',
                        help='Path to configuration file')
    parser.add_argument('--n-listeners', type=int,
                        help='Number of listeners to simulate')
    parser.add_argument('--profile', type=str,
                        help='Hearing profile of the simulated listeners')
    parser.add_argument('--seed', type=int,
                        help='Random seed')
    parser.add_argument('--output', type=str,
                        help='Write per-listener thresholds to this CSV file')
    parser.add_argument('--log-level', type=str, default='WARNING',
                        help='Logging level')

    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper(),
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    # Load configuration
    if not Path(args.config).is_file():
        print(f"Configuration file {args.config} not found. Using defaults.")
    config = load_config(args.config)

    # Override with command line arguments
    overrides = {}
    if args.n_listeners is not None:
        overrides['n_listeners'] = args.n_listeners
    if args.profile:
        overrides['profile'] = args.profile
    if args.seed is not None:
        overrides['seed'] = args.seed
    if overrides:
        config = dataclasses.replace(config, simulation=dataclasses.replace(config.simulation, **overrides))

    # Run simulation
    sessions, results, errors = run_simulation(config)

    print(f"Simulation completed: {len(sessions)} complete tests")
    if errors.size:
        print(f"Threshold error: mean {errors.mean():.2f} dB, "
              f"RMSE {np.sqrt(np.mean(errors ** 2)):.2f} dB, "
              f"within 5 dB {np.mean(np.abs(errors) <= 5):.1%}")
    if results:
        counts = pd.Series([r.overall_classification.display_name for r in results]).value_counts()
        print("Overall classifications:")
        print(counts.to_string())
        print("\nFirst listener:")
        print(format_result(results[0]))

    if args.output:
        df = sessions_to_dataframe(sessions, results)
        df.to_csv(args.output, index=False)
        print(f"Results written to {args.output}")


if __name__ == "__main__":
    main()
