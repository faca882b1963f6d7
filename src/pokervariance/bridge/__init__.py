"""Bridge from recorded results to model inputs."""

from pokervariance.bridge.stats import (
    DriftDiffusion,
    ObservedResults,
    calculate_drift_diffusion,
    observed_results_from_hands,
)

__all__ = [
    "DriftDiffusion",
    "ObservedResults",
    "calculate_drift_diffusion",
    "observed_results_from_hands",
]
