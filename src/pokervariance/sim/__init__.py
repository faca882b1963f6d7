"""Seeded simulation of cumulative-winnings paths."""

from pokervariance.sim.downswing import (
    estimate_max_drawdown_probability,
    run_downswing_analysis,
)
from pokervariance.sim.paths import SimulationPath, create_rng, generate_sample_paths

__all__ = [
    "SimulationPath",
    "create_rng",
    "generate_sample_paths",
    "run_downswing_analysis",
    "estimate_max_drawdown_probability",
]
