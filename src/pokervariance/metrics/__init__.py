"""Drawdown and downswing metrics over simulated paths."""

from pokervariance.metrics.risk import (
    DownswingStats,
    drawdowns,
    max_drawdown,
    percentile_bands,
    probability_of_ruin,
    running_peaks,
)

__all__ = [
    "DownswingStats",
    "running_peaks",
    "drawdowns",
    "max_drawdown",
    "probability_of_ruin",
    "percentile_bands",
]
