"""Derived analytical tables built on the closed-form variance model."""

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import NamedTuple

from pokervariance.config import MILESTONE_HANDS, Z_70, Z_95
from pokervariance.errors import InvalidParameterError
from pokervariance.stats.variance import (
    VarianceParameters,
    WinningsInterval,
    confidence_interval_70,
    confidence_interval_95,
    downswing_probability,
    expected_winnings,
    goal_probability,
    minimum_bankroll,
    percentile_outcome,
    probability_above_observed,
    probability_below_observed,
    probability_of_loss,
    probability_of_profit,
    risk_of_ruin,
    standard_error,
    winnings_std_dev,
)


class RoundedHands(NamedTuple):
    """Hand count snapped to the simulation grid."""

    rounded: int
    was_rounded: bool


@dataclass(frozen=True, slots=True)
class AnalyticalMetrics:
    """Closed-form summary for one set of inputs."""

    expected_winnings: float
    standard_deviation: float
    standard_error: float
    probability_of_loss: float
    confidence_interval_70: WinningsInterval
    confidence_interval_95: WinningsInterval
    minimum_bankroll_5_percent: float
    probability_above_observed: float | None = None
    probability_below_observed: float | None = None


class ConfidencePoint(NamedTuple):
    """One x-position of the EV line with its 70% and 95% bands."""

    hands: int
    ev: float
    ci70_lower: float
    ci70_upper: float
    ci95_lower: float
    ci95_upper: float


class MilestoneSummary(NamedTuple):
    """Row of the variance-by-volume table."""

    hands: int
    expected_value: float
    standard_deviation: float
    ci95_lower: float
    ci95_upper: float
    probability_of_profit: float
    required_bankroll: float


class PercentileRow(NamedTuple):
    """Total winnings at one percentile."""

    percentile: float
    winnings: float


class GoalProbability(NamedTuple):
    """Chance of finishing above a profit goal."""

    goal: float
    probability: float


class SensitivityRow(NamedTuple):
    """Risk figures under an alternate winrate."""

    winrate: float
    risk_of_ruin: float
    minimum_bankroll: float
    probability_of_profit: float
    downswing_probability: float


def round_hands(hands: float) -> RoundedHands:
    """Round a hand count to the nearest 100 (halves up), with a minimum of 100."""
    if hands < 0:
        raise InvalidParameterError("hands cannot be negative")
    rounded = max(100, int(math.floor(hands / 100.0 + 0.5)) * 100)
    return RoundedHands(rounded=rounded, was_rounded=rounded != hands)


def calculate_analytical_metrics(
    hands: float,
    winrate: float,
    std_dev: float,
    observed_winrate: float | None = None,
) -> AnalyticalMetrics:
    """Collect the closed-form metrics shown next to a simulation."""
    above = below = None
    if observed_winrate is not None:
        above = probability_above_observed(hands, winrate, std_dev, observed_winrate)
        below = probability_below_observed(hands, winrate, std_dev, observed_winrate)

    return AnalyticalMetrics(
        expected_winnings=expected_winnings(hands, winrate),
        standard_deviation=winnings_std_dev(hands, std_dev),
        standard_error=standard_error(hands, std_dev),
        probability_of_loss=probability_of_loss(hands, winrate, std_dev),
        confidence_interval_70=confidence_interval_70(hands, winrate, std_dev),
        confidence_interval_95=confidence_interval_95(hands, winrate, std_dev),
        minimum_bankroll_5_percent=minimum_bankroll(winrate, std_dev, 0.05),
        probability_above_observed=above,
        probability_below_observed=below,
    )


def _confidence_point(hands: int, winrate: float, std_dev: float) -> ConfidencePoint:
    ev = expected_winnings(hands, winrate)
    sigma = winnings_std_dev(hands, std_dev)
    return ConfidencePoint(
        hands=hands,
        ev=ev,
        ci70_lower=ev - Z_70 * sigma,
        ci70_upper=ev + Z_70 * sigma,
        ci95_lower=ev - Z_95 * sigma,
        ci95_upper=ev + Z_95 * sigma,
    )


def generate_confidence_data(
    total_hands: int,
    winrate: float,
    std_dev: float,
    num_points: int = 100,
) -> list[ConfidencePoint]:
    """EV line and confidence bands from 0 to ``total_hands``.

    Points are spaced at least 100 hands apart; the last point is always
    ``total_hands`` itself.
    """
    if num_points <= 0:
        raise InvalidParameterError("num_points must be positive")
    step = max(100, total_hands // num_points)
    points = [_confidence_point(h, winrate, std_dev) for h in range(0, total_hands + 1, step)]
    if points[-1].hands != total_hands:
        points.append(_confidence_point(total_hands, winrate, std_dev))
    return points


def generate_milestone_summaries(
    total_hands: int,
    winrate: float,
    std_dev: float,
) -> list[MilestoneSummary]:
    """Variance table rows for every milestone up to ``total_hands``."""
    milestones = [h for h in MILESTONE_HANDS if h <= total_hands]
    if total_hands > 0 and total_hands not in milestones:
        milestones.append(total_hands)

    required = minimum_bankroll(winrate, std_dev)
    summaries = []
    for hands in sorted(milestones):
        ci95 = confidence_interval_95(hands, winrate, std_dev)
        summaries.append(
            MilestoneSummary(
                hands=hands,
                expected_value=ci95.mean,
                standard_deviation=winnings_std_dev(hands, std_dev),
                ci95_lower=ci95.lower,
                ci95_upper=ci95.upper,
                probability_of_profit=probability_of_profit(hands, winrate, std_dev),
                required_bankroll=required,
            )
        )
    return summaries


def percentile_table(
    hands: float,
    winrate: float,
    std_dev: float,
    percentiles: Sequence[float] = (5, 25, 50, 75, 95),
) -> list[PercentileRow]:
    """Total winnings at each requested percentile."""
    return [
        PercentileRow(p, percentile_outcome(p, hands, winrate, std_dev)) for p in percentiles
    ]


def milestone_probabilities(
    goals: Sequence[float],
    hands: float,
    winrate: float,
    std_dev: float,
) -> list[GoalProbability]:
    """Probability of finishing above each profit goal (in BB)."""
    return [GoalProbability(g, goal_probability(g, hands, winrate, std_dev)) for g in goals]


def winrate_sensitivity(
    params: VarianceParameters,
    deltas: Sequence[float] = (-2.0, -1.0, 0.0, 1.0, 2.0),
    downswing_bb: float | None = None,
) -> list[SensitivityRow]:
    """Risk figures if the true winrate differs from the assumed one.

    Args:
        params: Assumed parameters; ``bankroll`` is the barrier for ruin.
        deltas: Offsets in BB/100 added to the assumed winrate.
        downswing_bb: Downswing size to report; defaults to the bankroll.

    Returns:
        One row per delta, in the order given.
    """
    barrier = params.bankroll if downswing_bb is None else downswing_bb
    rows = []
    for delta in deltas:
        winrate = params.winrate + delta
        rows.append(
            SensitivityRow(
                winrate=winrate,
                risk_of_ruin=risk_of_ruin(winrate, params.bankroll, params.std_dev),
                minimum_bankroll=minimum_bankroll(winrate, params.std_dev),
                probability_of_profit=probability_of_profit(
                    params.hands, winrate, params.std_dev
                ),
                downswing_probability=downswing_probability(barrier, winrate, params.std_dev),
            )
        )
    return rows
