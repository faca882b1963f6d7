"""Drawdown and downswing metrics over batches of simulated paths.

All functions take winnings arrays of shape (n_paths, n_steps) as produced by
:func:`pokervariance.sim.paths.simulate_winnings`, with column 0 holding the
starting point of every path.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import NamedTuple

import numpy as np
from numpy.typing import NDArray

from pokervariance.errors import InvalidParameterError


class PercentileBands(NamedTuple):
    """Percentiles of winnings at each recorded hand count."""

    hands: NDArray[np.int64]
    percentiles: tuple[float, ...]
    values: NDArray[np.float64]  # shape (len(percentiles), n_steps)


class RecoveryStats(NamedTuple):
    """Recovery of each path's deepest downswing.

    ``recovery_hands`` holds one entry per path that recovered; paths whose
    deepest downswing never returned to the prior peak inside the horizon are
    counted in ``unrecovered`` instead.
    """

    recovery_hands: NDArray[np.int64]
    unrecovered: int


@dataclass(frozen=True, slots=True)
class DownswingStats:
    """Aggregate downswing statistics over a simulated population.

    Attributes:
        average_max_drawdown: Mean of per-path maximum drawdowns, in BB.
        worst_max_drawdown: Largest maximum drawdown seen, in BB.
        average_recovery_hands: Mean recovery length over recovered paths.
        longest_recovery: Longest recovery among recovered paths.
        unrecovered_fraction: Share of all paths still below their pre-downswing
            peak at the end of the horizon.
        probabilities: ``(threshold, P(max drawdown >= threshold))`` pairs.
        expected_counts: ``(threshold, expected downswings >= threshold)`` pairs.
        num_trials: Number of simulated paths.
    """

    average_max_drawdown: float
    worst_max_drawdown: float
    average_recovery_hands: float
    longest_recovery: int
    unrecovered_fraction: float
    probabilities: tuple[tuple[float, float], ...]
    expected_counts: tuple[tuple[float, float], ...]
    num_trials: int


def running_peaks(winnings: NDArray[np.float64]) -> NDArray[np.float64]:
    """Running maximum of winnings along each path."""
    return np.maximum.accumulate(winnings, axis=-1)


def drawdowns(winnings: NDArray[np.float64]) -> NDArray[np.float64]:
    """Distance below the running peak at every step."""
    return running_peaks(winnings) - winnings


def max_drawdown(winnings: NDArray[np.float64]) -> NDArray[np.float64]:
    """Maximum drawdown for each path.

    Example:
        >>> paths = np.array([[0, 50, 20, 80], [0, -20, -40, -10]])
        >>> max_drawdown(paths)
        array([30., 40.])
    """
    if winnings.size == 0:
        return np.array([], dtype=np.float64)
    return drawdowns(np.asarray(winnings, dtype=np.float64)).max(axis=-1)


def probability_of_ruin(
    paths: NDArray[np.float64],
    threshold: float = 0.0,
) -> float:
    """Share of paths touching ``threshold`` or lower at some recorded step.

    Shift winnings up by a bankroll (or a downswing size) and keep the default
    threshold of zero to get the finite-horizon chance of losing that much.

    Example:
        >>> winnings = np.array([[0, -30, -60, -20], [0, 40, 10, 70], [0, -10, -5, 5]])
        >>> probability_of_ruin(winnings + 50)
        0.3333333333333333
    """
    if paths.size == 0:
        return 0.0
    n_ruined = np.sum(np.min(paths, axis=1) <= threshold)
    return float(n_ruined / paths.shape[0])


def percentile_bands(
    hands: NDArray[np.int64],
    winnings: NDArray[np.float64],
    percentiles: Sequence[float] = (5, 25, 50, 75, 95),
) -> PercentileBands:
    """Cross-path percentiles of winnings at each recorded hand count."""
    if any(not 0 <= p <= 100 for p in percentiles):
        raise InvalidParameterError("percentiles must be between 0 and 100")
    values = np.percentile(winnings, list(percentiles), axis=0)
    return PercentileBands(
        hands=hands,
        percentiles=tuple(float(p) for p in percentiles),
        values=np.asarray(values, dtype=np.float64).reshape(len(percentiles), -1),
    )


def threshold_probabilities(
    max_drawdowns: NDArray[np.float64],
    thresholds: Sequence[float],
) -> NDArray[np.float64]:
    """Fraction of paths whose maximum drawdown reaches each threshold.

    Non-increasing whenever ``thresholds`` is sorted ascending.
    """
    if max_drawdowns.size == 0:
        return np.zeros(len(thresholds), dtype=np.float64)
    limits = np.asarray(thresholds, dtype=np.float64)
    return (max_drawdowns[:, None] >= limits[None, :]).mean(axis=0)


def downswing_episode_counts(
    winnings: NDArray[np.float64],
    thresholds: Sequence[float],
) -> NDArray[np.int64]:
    """Distinct downswings per path that reach each threshold.

    A downswing episode runs from one peak to the next new high; an episode
    counts once per threshold no matter how often it dips past it.

    Returns:
        Integer array of shape (n_paths, len(thresholds)).
    """
    n_paths, n_steps = winnings.shape
    peaks = running_peaks(winnings)
    depth = peaks - winnings

    # Episode index: number of new highs made so far on the path
    new_high = np.zeros_like(winnings, dtype=bool)
    new_high[:, 1:] = peaks[:, 1:] > peaks[:, :-1]
    episode = np.cumsum(new_high, axis=1)

    row = np.broadcast_to(np.arange(n_paths)[:, None], winnings.shape)
    keys = row * (n_steps + 1) + episode

    counts = np.zeros((n_paths, len(thresholds)), dtype=np.int64)
    for j, threshold in enumerate(thresholds):
        reached = np.unique(keys[depth >= threshold])
        counts[:, j] = np.bincount(reached // (n_steps + 1), minlength=n_paths)
    return counts


def recovery_statistics(
    hands: NDArray[np.int64],
    winnings: NDArray[np.float64],
) -> RecoveryStats:
    """Hands from the peak before each path's deepest trough back to that peak.

    Paths without any drawdown contribute nothing. Paths that never regain
    the peak inside the horizon are counted as unrecovered.
    """
    n_paths, n_steps = winnings.shape
    peaks = running_peaks(winnings)
    depth = peaks - winnings

    rows = np.arange(n_paths)
    cols = np.arange(n_steps)[None, :]
    trough = depth.argmax(axis=1)
    had_downswing = depth[rows, trough] > 0
    peak_value = peaks[rows, trough]

    # Last step at or before the trough that sat on the running peak
    at_peak = (depth == 0) & (cols <= trough[:, None])
    peak_idx = np.where(at_peak, cols, -1).max(axis=1)

    regained = (cols > trough[:, None]) & (winnings >= peak_value[:, None])
    recovered = regained.any(axis=1) & had_downswing
    recovery_idx = regained.argmax(axis=1)

    lengths = hands[recovery_idx[recovered]] - hands[peak_idx[recovered]]
    unrecovered = int(np.sum(had_downswing & ~recovered))
    return RecoveryStats(recovery_hands=lengths.astype(np.int64), unrecovered=unrecovered)


@dataclass(slots=True)
class DownswingAccumulator:
    """Folds batches of simulated paths into :class:`DownswingStats`.

    Only per-path summaries are kept between batches, so the caller controls
    peak memory through the batch size. Results depend only on the paths
    seen, not on how they were split into batches.
    """

    thresholds: tuple[float, ...]
    horizons: float = 1.0
    _max_drawdowns: list[NDArray[np.float64]] = field(default_factory=list)
    _recoveries: list[NDArray[np.int64]] = field(default_factory=list)
    _episode_totals: NDArray[np.int64] = field(init=False)
    _unrecovered: int = 0
    _trials: int = 0

    def __post_init__(self) -> None:
        self._episode_totals = np.zeros(len(self.thresholds), dtype=np.int64)

    def add_batch(self, hands: NDArray[np.int64], winnings: NDArray[np.float64]) -> None:
        """Accumulate one batch of paths sharing the hand grid ``hands``."""
        self._max_drawdowns.append(max_drawdown(winnings))

        recovery = recovery_statistics(hands, winnings)
        self._recoveries.append(recovery.recovery_hands)
        self._unrecovered += recovery.unrecovered

        episodes = downswing_episode_counts(winnings, self.thresholds).sum(axis=0)
        self._episode_totals += episodes
        self._trials += winnings.shape[0]

    def result(self) -> DownswingStats:
        """Aggregate everything added so far."""
        if self._trials == 0:
            raise InvalidParameterError("no paths were added")

        max_dd = np.concatenate(self._max_drawdowns)
        recoveries = np.concatenate(self._recoveries)
        probabilities = threshold_probabilities(max_dd, self.thresholds)
        counts = self._episode_totals / self._trials * self.horizons

        return DownswingStats(
            average_max_drawdown=float(max_dd.mean()),
            worst_max_drawdown=float(max_dd.max()),
            average_recovery_hands=float(recoveries.mean()) if recoveries.size else 0.0,
            longest_recovery=int(recoveries.max()) if recoveries.size else 0,
            unrecovered_fraction=self._unrecovered / self._trials,
            probabilities=tuple(
                (float(t), float(p)) for t, p in zip(self.thresholds, probabilities)
            ),
            expected_counts=tuple((float(t), float(c)) for t, c in zip(self.thresholds, counts)),
            num_trials=self._trials,
        )
