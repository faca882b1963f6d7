"""Tournament variance: payout tables, skill model and schedule simulation."""

from pokervariance.tournament.model import TournamentInputs, build_tournament_model
from pokervariance.tournament.payouts import build_payout_model
from pokervariance.tournament.simulation import (
    run_tournament_monte_carlo,
    simulate_tournament_path,
)

__all__ = [
    "TournamentInputs",
    "build_payout_model",
    "build_tournament_model",
    "simulate_tournament_path",
    "run_tournament_monte_carlo",
]
