"""Closed-form variance model for poker results.

Cumulative winnings after ``h`` hands are approximated as a Brownian motion
with drift: Normal with mean ``winrate * h / 100`` and standard deviation
``std_dev * sqrt(h / 100)``, where winrate and std_dev are in BB/100.

Ruin and bankroll formulas use the gambler's-ruin result for a
drift-diffusion process with an absorbing barrier at zero:

    RoR = exp(-2 * mu * B / sigma^2)

Per-hand drift and variance both carry a 1/100 factor, so the ratio can be
written directly in BB/100 units. A non-positive winrate makes ruin certain
over an unbounded horizon; the model returns 1.0 and an infinite bankroll for
that case rather than raising.
"""

import math
from dataclasses import dataclass
from typing import NamedTuple

from pokervariance.config import Z_70, Z_95
from pokervariance.errors import InvalidParameterError
from pokervariance.stats.normal import normal_cdf, normal_inverse_cdf, two_sided_z


@dataclass(frozen=True, slots=True)
class VarianceParameters:
    """Inputs shared by the closed-form model and the simulator.

    Attributes:
        winrate: Expected win rate in BB/100 (any sign).
        std_dev: Standard deviation in BB/100.
        hands: Horizon in hands.
        bankroll: Bankroll in big blinds.
        stake_value: Dollar value of one big blind.
    """

    winrate: float
    std_dev: float
    hands: int
    bankroll: float = 0.0
    stake_value: float = 1.0

    def __post_init__(self) -> None:
        """Validate parameters."""
        _check_std_dev(self.std_dev)
        _check_hands(self.hands)
        if self.bankroll < 0:
            raise InvalidParameterError("bankroll cannot be negative")
        if self.stake_value <= 0:
            raise InvalidParameterError("stake_value must be positive")

    def to_dollars(self, amount_bb: float) -> float:
        """Convert an amount in big blinds to dollars."""
        return amount_bb * self.stake_value


class WinningsInterval(NamedTuple):
    """Central interval for total winnings, in BB."""

    mean: float
    lower: float
    upper: float


class WinrateInterval(NamedTuple):
    """Interval for the true winrate, in BB/100."""

    observed: float
    lower: float
    upper: float


def _check_std_dev(std_dev: float) -> None:
    if not std_dev > 0:
        raise InvalidParameterError("std_dev must be positive")


def _check_hands(hands: float) -> None:
    if hands < 0:
        raise InvalidParameterError("hands cannot be negative")


def _check_played(hands: float) -> None:
    if not hands > 0:
        raise InvalidParameterError("hands must be positive")


def is_infinite_bankroll(value: float) -> bool:
    """Whether a bankroll result is the 'no finite bankroll suffices' sentinel."""
    return math.isinf(value) and value > 0


def expected_winnings(hands: float, winrate: float) -> float:
    """Expected total winnings in BB after ``hands`` hands."""
    _check_hands(hands)
    return winrate * (hands / 100.0)


def winnings_std_dev(hands: float, std_dev: float) -> float:
    """Standard deviation of total winnings in BB after ``hands`` hands."""
    _check_hands(hands)
    _check_std_dev(std_dev)
    return std_dev * math.sqrt(hands / 100.0)


def standard_error(hands: float, std_dev: float) -> float:
    """Standard error of an observed winrate in BB/100."""
    _check_played(hands)
    _check_std_dev(std_dev)
    return std_dev / math.sqrt(hands / 100.0)


def confidence_interval(
    hands: float,
    winrate: float,
    std_dev: float,
    z_value: float,
) -> WinningsInterval:
    """Interval of total winnings ``mean ± z_value * sigma``."""
    mean = expected_winnings(hands, winrate)
    margin = z_value * winnings_std_dev(hands, std_dev)
    return WinningsInterval(mean=mean, lower=mean - margin, upper=mean + margin)


def confidence_interval_70(hands: float, winrate: float, std_dev: float) -> WinningsInterval:
    """Central 70% interval of total winnings."""
    return confidence_interval(hands, winrate, std_dev, Z_70)


def confidence_interval_95(hands: float, winrate: float, std_dev: float) -> WinningsInterval:
    """Central 95% interval of total winnings."""
    return confidence_interval(hands, winrate, std_dev, Z_95)


def _tail_above(level: float, mean: float, sigma: float) -> float:
    """P(X > level) for X ~ Normal(mean, sigma), with the sigma = 0 limit."""
    if sigma == 0:
        if mean > level:
            return 1.0
        if mean < level:
            return 0.0
        return 0.5
    return 1.0 - normal_cdf((level - mean) / sigma)


def probability_of_loss(hands: float, winrate: float, std_dev: float) -> float:
    """Probability that total winnings are negative after ``hands`` hands."""
    mean = expected_winnings(hands, winrate)
    sigma = winnings_std_dev(hands, std_dev)
    return 1.0 - _tail_above(0.0, mean, sigma)


def probability_of_profit(hands: float, winrate: float, std_dev: float) -> float:
    """Complement of :func:`probability_of_loss`."""
    return 1.0 - probability_of_loss(hands, winrate, std_dev)


def probability_above_observed(
    hands: float,
    true_winrate: float,
    std_dev: float,
    observed_winrate: float,
) -> float:
    """Probability of running at or above ``observed_winrate`` over ``hands``."""
    target = expected_winnings(hands, observed_winrate)
    mean = expected_winnings(hands, true_winrate)
    sigma = winnings_std_dev(hands, std_dev)
    if sigma == 0:
        return 1.0 if mean >= target else 0.0
    return _tail_above(target, mean, sigma)


def probability_below_observed(
    hands: float,
    true_winrate: float,
    std_dev: float,
    observed_winrate: float,
) -> float:
    """Complement of :func:`probability_above_observed`."""
    return 1.0 - probability_above_observed(hands, true_winrate, std_dev, observed_winrate)


def percentile_outcome(
    percentile: float,
    hands: float,
    winrate: float,
    std_dev: float,
) -> float:
    """Total winnings in BB at the given percentile (0-100, exclusive).

    Example:
        >>> percentile_outcome(50, 10000, 5.0, 80.0)
        500.0
    """
    if not 0 < percentile < 100:
        raise InvalidParameterError("percentile must be between 0 and 100")
    mean = expected_winnings(hands, winrate)
    sigma = winnings_std_dev(hands, std_dev)
    return mean + normal_inverse_cdf(percentile / 100.0) * sigma


def outcome_percentile(
    outcome: float,
    hands: float,
    winrate: float,
    std_dev: float,
) -> float:
    """Percentile (0-100) of a given total-winnings outcome."""
    mean = expected_winnings(hands, winrate)
    sigma = winnings_std_dev(hands, std_dev)
    if sigma == 0:
        return 100.0 if outcome >= mean else 0.0
    return normal_cdf((outcome - mean) / sigma) * 100.0


def goal_probability(
    goal: float,
    hands: float,
    winrate: float,
    std_dev: float,
) -> float:
    """Probability that total winnings exceed ``goal`` BB at exactly ``hands``."""
    mean = expected_winnings(hands, winrate)
    sigma = winnings_std_dev(hands, std_dev)
    if sigma == 0:
        return 1.0 if mean >= goal else 0.0
    return _tail_above(goal, mean, sigma)


def _barrier_probability(winrate: float, barrier: float, std_dev: float) -> float:
    probability = math.exp(-2.0 * winrate * barrier / (std_dev * std_dev))
    return min(1.0, max(0.0, probability))


def risk_of_ruin(winrate: float, bankroll: float, std_dev: float) -> float:
    """Probability of ever losing ``bankroll`` BB over unbounded play.

    Args:
        winrate: Win rate in BB/100.
        bankroll: Bankroll in BB.
        std_dev: Standard deviation in BB/100.

    Returns:
        Risk of ruin in [0, 1]; 1.0 when winrate <= 0 or bankroll <= 0.

    Example:
        >>> risk_of_ruin(0.0, 5000.0, 75.0)
        1.0
    """
    _check_std_dev(std_dev)
    if winrate <= 0 or bankroll <= 0:
        return 1.0
    return _barrier_probability(winrate, bankroll, std_dev)


def minimum_bankroll(
    winrate: float,
    std_dev: float,
    target_ror: float = 0.05,
) -> float:
    """Bankroll in BB whose risk of ruin equals ``target_ror``.

    Inverse of :func:`risk_of_ruin`: ``-std_dev^2 * ln(target) / (2 * winrate)``.

    Returns:
        Bankroll in BB, ``math.inf`` when winrate <= 0 or target <= 0, and
        0.0 when target >= 1.
    """
    _check_std_dev(std_dev)
    if winrate <= 0 or target_ror <= 0:
        return math.inf
    if target_ror >= 1:
        return 0.0
    return -(std_dev * std_dev) * math.log(target_ror) / (2.0 * winrate)


def bankroll_for_ror(winrate: float, target_ror: float, std_dev: float) -> float:
    """Bankroll in BB for a target risk of ruin (e.g. 0.05)."""
    return minimum_bankroll(winrate, std_dev, target_ror)


def downswing_probability(downswing_bb: float, winrate: float, std_dev: float) -> float:
    """Probability of ever falling ``downswing_bb`` below the current level.

    Uses the ruin formula with the downswing size as the barrier. This is not
    the chance of a peak-to-trough drawdown of that size: drawdowns are
    measured from every later peak, so over a long horizon one becomes
    almost certain. Feeding alternate winrates gives the 'what if my winrate
    is wrong' view.
    """
    _check_std_dev(std_dev)
    if winrate <= 0 or downswing_bb <= 0:
        return 1.0
    return _barrier_probability(winrate, downswing_bb, std_dev)


def hands_for_accuracy(
    std_dev: float,
    target_margin: float,
    confidence: float = 0.95,
) -> float:
    """Hands needed before the winrate margin of error shrinks to ``target_margin``.

    Solves ``target_margin = z * std_dev / sqrt(hands / 100)`` for hands and
    rounds up, so the returned sample always meets the margin.

    Returns:
        Number of hands, or ``math.inf`` when target_margin <= 0.
    """
    _check_std_dev(std_dev)
    if target_margin <= 0:
        return math.inf
    z = two_sided_z(confidence)
    return math.ceil(100.0 * (z * std_dev / target_margin) ** 2)


def recovery_hands(downswing_bb: float, winrate: float) -> float:
    """Expected hands to win back ``downswing_bb`` at the given winrate."""
    if winrate <= 0:
        return math.inf
    if downswing_bb <= 0:
        return 0
    return math.ceil(downswing_bb / (winrate / 100.0))


def observed_winrate(observed_winnings: float, hands: float) -> float:
    """Observed winrate in BB/100 from total winnings and hands played."""
    _check_played(hands)
    return observed_winnings / hands * 100.0


def winrate_confidence_interval(
    observed_winnings: float,
    hands: float,
    std_dev: float,
    confidence: float = 0.95,
) -> WinrateInterval:
    """Confidence interval for the true winrate given observed results."""
    observed = observed_winrate(observed_winnings, hands)
    margin = two_sided_z(confidence) * standard_error(hands, std_dev)
    return WinrateInterval(observed=observed, lower=observed - margin, upper=observed + margin)


def probability_true_winrate_above(
    observed_winnings: float,
    hands: float,
    std_dev: float,
    threshold: float = 0.0,
) -> float:
    """Probability that the true winrate exceeds ``threshold`` BB/100.

    Example:
        >>> p = probability_true_winrate_above(1250.0, 50000, 75.0, 0.0)
        >>> round(p, 3)
        0.772
    """
    observed = observed_winrate(observed_winnings, hands)
    se = standard_error(hands, std_dev)
    return 1.0 - normal_cdf((threshold - observed) / se)
