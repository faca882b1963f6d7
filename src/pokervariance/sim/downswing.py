"""Monte Carlo estimates of finite-horizon downswing statistics.

The probability that the running drawdown reaches a threshold before a
finite horizon is a first-passage property of the random walk with no single
end-point Normal formula, so it is estimated here by simulation. Paths are
generated in batches sized to a fixed number of simulated points, so memory
stays flat as the horizon grows, and progress is reported between batches.
"""

import logging
from collections.abc import Callable, Sequence
from typing import NamedTuple

import numpy as np

from pokervariance.config import DOWNSWING_THRESHOLDS
from pokervariance.errors import InvalidParameterError
from pokervariance.metrics.risk import (
    DownswingAccumulator,
    DownswingStats,
    PercentileBands,
    max_drawdown,
    percentile_bands,
    probability_of_ruin,
)
from pokervariance.sim.paths import hand_grid, simulate_winnings, validate_simulation_inputs

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

# Upper bound on simulated points (paths x recorded steps) held per batch
_BATCH_ELEMENTS = 2_000_000


class DrawdownProbability(NamedTuple):
    """Estimated P(max drawdown >= threshold) within the horizon.

    ``ruin_probability`` is the fraction of the same paths that fell the
    threshold below their starting level. Every such path also has a drawdown
    of at least the threshold, so it never exceeds ``probability``.
    """

    probability: float
    num_trials: int
    step_size: int
    ruin_probability: float


def default_batch_size(total_hands: int, step_size: int = 100) -> int:
    """Paths per batch that keep one batch within the point budget.

    Example:
        >>> default_batch_size(2_000_000, 100)
        99
    """
    return max(1, _BATCH_ELEMENTS // hand_grid(total_hands, step_size).size)


def _batches(total: int, batch_size: int) -> list[int]:
    if batch_size <= 0:
        raise InvalidParameterError("batch_size must be positive")
    full, rest = divmod(total, batch_size)
    return [batch_size] * full + ([rest] if rest else [])


def run_downswing_analysis(
    total_hands: int,
    winrate: float,
    std_dev: float,
    num_trials: int,
    rng: np.random.Generator,
    thresholds: Sequence[float] = DOWNSWING_THRESHOLDS,
    step_size: int = 100,
    horizons: float = 1.0,
    batch_size: int | None = None,
    progress: ProgressCallback | None = None,
) -> DownswingStats:
    """Simulate ``num_trials`` paths and aggregate their downswings.

    Args:
        total_hands: Horizon of each path in hands.
        winrate: Win rate in BB/100.
        std_dev: Standard deviation in BB/100.
        num_trials: Number of simulated paths.
        rng: Seeded generator.
        thresholds: Downswing sizes in BB; reported in ascending order.
        step_size: Hands per simulated block.
        horizons: Number of such horizons the player expects to face; scales
            the expected downswing counts.
        batch_size: Paths simulated per batch. Defaults to
            :func:`default_batch_size` for the horizon.
        progress: Called with the completed fraction after each batch.

    Returns:
        DownswingStats for the whole population.
    """
    validate_simulation_inputs(total_hands, std_dev, max(num_trials, 1), step_size)
    if num_trials <= 0:
        raise InvalidParameterError("num_trials must be positive")
    if horizons < 0:
        raise InvalidParameterError("horizons cannot be negative")
    ordered = tuple(sorted(float(t) for t in thresholds))
    if any(t <= 0 for t in ordered):
        raise InvalidParameterError("thresholds must be positive")
    if batch_size is None:
        batch_size = default_batch_size(total_hands, step_size)

    logger.debug(
        "downswing analysis: %d trials x %d hands (step %d, batch %d)",
        num_trials,
        total_hands,
        step_size,
        batch_size,
    )
    accumulator = DownswingAccumulator(thresholds=ordered, horizons=horizons)
    done = 0
    for size in _batches(num_trials, batch_size):
        hands, winnings = simulate_winnings(total_hands, winrate, std_dev, size, rng, step_size)
        accumulator.add_batch(hands, winnings)
        done += size
        if progress is not None:
            progress(done / num_trials)

    return accumulator.result()


def estimate_max_drawdown_probability(
    total_hands: int,
    winrate: float,
    std_dev: float,
    threshold_bb: float,
    num_trials: int,
    rng: np.random.Generator,
    step_size: int = 100,
    batch_size: int | None = None,
    progress: ProgressCallback | None = None,
) -> DrawdownProbability:
    """Estimate the chance of a peak-to-trough drawdown of ``threshold_bb``.

    The fraction of the same paths that ended up ``threshold_bb`` below the
    start at some step is returned alongside, as the finite-horizon
    counterpart of the closed-form barrier probability.

    Returns:
        Probability 0 for no trials or a zero-hand horizon, 1 for a
        non-positive threshold, otherwise the simulated fraction.
    """
    if not std_dev > 0:
        raise InvalidParameterError("std_dev must be positive")
    if total_hands < 0:
        raise InvalidParameterError("total_hands cannot be negative")
    if num_trials <= 0:
        return DrawdownProbability(0.0, 0, step_size, 0.0)
    if total_hands == 0:
        return DrawdownProbability(0.0, num_trials, step_size, 0.0)
    if threshold_bb <= 0:
        return DrawdownProbability(1.0, num_trials, step_size, 1.0)
    if batch_size is None:
        batch_size = default_batch_size(total_hands, step_size)

    exceeded = 0
    ruined = 0
    done = 0
    for size in _batches(num_trials, batch_size):
        _, winnings = simulate_winnings(total_hands, winrate, std_dev, size, rng, step_size)
        exceeded += int(np.sum(max_drawdown(winnings) >= threshold_bb))
        ruined += round(probability_of_ruin(winnings + threshold_bb) * size)
        done += size
        if progress is not None:
            progress(done / num_trials)

    return DrawdownProbability(
        exceeded / num_trials, num_trials, step_size, ruined / num_trials
    )


def simulate_percentile_bands(
    total_hands: int,
    winrate: float,
    std_dev: float,
    n_paths: int,
    rng: np.random.Generator,
    step_size: int = 100,
    percentiles: Sequence[float] = (5, 25, 50, 75, 95),
) -> PercentileBands:
    """Per-step percentile bands over an independent batch of paths."""
    hands, winnings = simulate_winnings(total_hands, winrate, std_dev, n_paths, rng, step_size)
    return percentile_bands(hands, winnings, percentiles)
