"""Closed-form probability model of poker results."""

from pokervariance.stats.normal import normal_cdf, normal_inverse_cdf, normal_pdf
from pokervariance.stats.variance import (
    VarianceParameters,
    confidence_interval,
    expected_winnings,
    hands_for_accuracy,
    minimum_bankroll,
    probability_of_loss,
    risk_of_ruin,
    standard_error,
)

__all__ = [
    "normal_cdf",
    "normal_inverse_cdf",
    "normal_pdf",
    "VarianceParameters",
    "expected_winnings",
    "standard_error",
    "confidence_interval",
    "probability_of_loss",
    "risk_of_ruin",
    "minimum_bankroll",
    "hands_for_accuracy",
]
