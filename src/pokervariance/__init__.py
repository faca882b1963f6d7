"""Pokervariance: closed-form and Monte Carlo variance statistics for poker."""

from pokervariance.errors import EngineFailure, InvalidParameterError, ProtocolViolation
from pokervariance.metrics.risk import DownswingStats, max_drawdown
from pokervariance.sim.downswing import run_downswing_analysis
from pokervariance.sim.paths import SimulationPath, create_rng, generate_sample_paths
from pokervariance.stats.bayesian import bayesian_winner_analysis
from pokervariance.stats.variance import (
    VarianceParameters,
    confidence_interval_95,
    minimum_bankroll,
    probability_of_loss,
    risk_of_ruin,
)
from pokervariance.worker.host import SimulationHost
from pokervariance.worker.protocol import RequestKind, SimulationRequest

__version__ = "0.1.0"
__all__ = [
    "VarianceParameters",
    "confidence_interval_95",
    "probability_of_loss",
    "risk_of_ruin",
    "minimum_bankroll",
    "bayesian_winner_analysis",
    "SimulationPath",
    "create_rng",
    "generate_sample_paths",
    "run_downswing_analysis",
    "DownswingStats",
    "max_drawdown",
    "SimulationHost",
    "SimulationRequest",
    "RequestKind",
    "InvalidParameterError",
    "EngineFailure",
    "ProtocolViolation",
]
