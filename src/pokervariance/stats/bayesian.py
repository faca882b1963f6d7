"""Bayesian estimate of a player's true winrate.

With a flat prior and the observed winrate as a sufficient statistic, the
posterior over the true winrate is approximately
``Normal(observed_winrate, standard_error)``. The credible intervals below
are therefore numerically identical to the frequentist confidence intervals
of the closed-form model.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np
from scipy import stats

from pokervariance.config import DEFAULT_CREDIBLE_PROBABILITIES
from pokervariance.errors import InvalidParameterError
from pokervariance.stats.normal import two_sided_z
from pokervariance.stats.variance import (
    hands_for_accuracy,
    observed_winrate,
    probability_true_winrate_above,
    standard_error,
)


class NormalPoint(NamedTuple):
    """A point on a probability density curve."""

    x: float
    density: float


class CredibleInterval(NamedTuple):
    """Central credible interval for the true winrate (BB/100)."""

    probability: float
    lower: float
    upper: float
    label: str


@dataclass(frozen=True, slots=True)
class BayesianAnalysis:
    """Full 'am I a winner?' analysis of observed results.

    Attributes:
        probability_winner: Posterior probability the true winrate is above 0.
        probability_above_target: Posterior probability it is above the target.
        target_winrate: Target winrate tested, in BB/100.
        observed_winrate: Observed winrate, in BB/100.
        hands_played: Sample size.
        standard_error: Standard error of the observed winrate.
        credible_intervals: Intervals at the default probabilities.
        posterior_curve: Density of the posterior for charting.
    """

    probability_winner: float
    probability_above_target: float
    target_winrate: float
    observed_winrate: float
    hands_played: int
    standard_error: float
    credible_intervals: tuple[CredibleInterval, ...]
    posterior_curve: tuple[NormalPoint, ...]


def posterior_distribution(
    observed_winnings: float,
    hands: int,
    std_dev: float,
    num_points: int = 100,
) -> list[NormalPoint]:
    """Evenly spaced posterior density points over ``observed ± 4 SE``.

    Args:
        observed_winnings: Total winnings in BB.
        hands: Hands played.
        std_dev: Standard deviation in BB/100.
        num_points: Number of points, endpoints included.

    Returns:
        Points ordered by winrate.
    """
    if num_points < 2:
        raise InvalidParameterError("num_points must be at least 2")
    center = observed_winrate(observed_winnings, hands)
    se = standard_error(hands, std_dev)

    xs = np.linspace(center - 4 * se, center + 4 * se, num_points)
    densities = stats.norm.pdf(xs, loc=center, scale=se)
    return [NormalPoint(float(x), float(d)) for x, d in zip(xs, densities)]


def multiple_credible_intervals(
    observed_winnings: float,
    hands: int,
    std_dev: float,
    probabilities: Sequence[float] = DEFAULT_CREDIBLE_PROBABILITIES,
) -> list[CredibleInterval]:
    """Central credible intervals for each requested probability."""
    center = observed_winrate(observed_winnings, hands)
    se = standard_error(hands, std_dev)

    intervals = []
    for probability in probabilities:
        margin = two_sided_z(probability) * se
        intervals.append(
            CredibleInterval(
                probability=probability,
                lower=center - margin,
                upper=center + margin,
                label=f"{round(probability * 100)}% confident",
            )
        )
    return intervals


def bayesian_winner_analysis(
    observed_winnings: float,
    hands: int,
    std_dev: float,
    target_winrate: float = 0.0,
) -> BayesianAnalysis:
    """Combine posterior probabilities, intervals and curve for observed results."""
    return BayesianAnalysis(
        probability_winner=probability_true_winrate_above(observed_winnings, hands, std_dev, 0.0),
        probability_above_target=probability_true_winrate_above(
            observed_winnings, hands, std_dev, target_winrate
        ),
        target_winrate=target_winrate,
        observed_winrate=observed_winrate(observed_winnings, hands),
        hands_played=hands,
        standard_error=standard_error(hands, std_dev),
        credible_intervals=tuple(multiple_credible_intervals(observed_winnings, hands, std_dev)),
        posterior_curve=tuple(posterior_distribution(observed_winnings, hands, std_dev)),
    )


def format_hands(hands: float) -> str:
    """Compact hand count, e.g. ``1.2M`` or ``35k``."""
    if hands >= 1_000_000:
        return f"{hands / 1_000_000:.1f}M"
    if hands >= 1000:
        return f"{round(hands / 1000)}k"
    return str(int(hands))


def generate_bayesian_insight(analysis: BayesianAnalysis, std_dev: float) -> str:
    """Plain-language reading of ``analysis.probability_winner``."""
    p = analysis.probability_winner
    pct = f"{p * 100:.0f}"
    additional = max(0, hands_for_accuracy(std_dev, 1.0, 0.95) - analysis.hands_played)

    if p >= 0.95:
        return (
            f"Very likely a winner. With {pct}% confidence, your results are "
            "statistically significant. Your true winrate is almost certainly positive."
        )
    if p >= 0.80:
        text = f"Probably a winning player. There's an {pct}% chance your true winrate is positive."
        if additional > 0:
            text += f" Play another {format_hands(additional)} hands to reach 95% confidence."
        return text
    if p >= 0.60:
        text = (
            "Leaning toward winner, but variance is still a significant factor. "
            f"Your margin of error is ±{analysis.standard_error:.1f} BB/100."
        )
        if additional > 0:
            text += f" You need about {format_hands(additional)} more hands to narrow this down."
        return text
    if p >= 0.40:
        return (
            "Too early to tell. You're right at the edge of breakeven. Your observed "
            f"{analysis.observed_winrate:.1f} BB/100 could easily be explained by variance. "
            "Play significantly more hands to distinguish skill from luck."
        )
    if p >= 0.20:
        return (
            f"Results suggest you may be a losing player. There's only a {pct}% chance "
            "your true winrate is positive. Consider studying or moving down in stakes."
        )
    return (
        f"Very likely a losing player. Only {pct}% chance of being a winner. Your negative "
        "results are statistically significant. Consider moving down and working on your game."
    )
