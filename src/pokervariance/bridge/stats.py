"""Turn recorded results into inputs for the variance model.

Hand-by-hand profit/loss gives the drift (mean per hand) and diffusion
(standard deviation per hand) of the random walk; aggregate session results
give the observed winnings and hands used by the Bayesian analysis.
"""

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from pokervariance.errors import InvalidParameterError
from pokervariance.stats.variance import observed_winrate


@dataclass(frozen=True, slots=True)
class DriftDiffusion:
    """Drift and diffusion of per-hand results.

    Attributes:
        drift: Mean profit per hand.
        diffusion: Sample standard deviation per hand.
        n_samples: Number of hand results used.
        bb_size: Big blind size used for normalization (if known).
    """

    drift: float
    diffusion: float
    n_samples: int
    bb_size: float | None = None

    @property
    def winrate_bb_per_100(self) -> float | None:
        """Drift expressed in BB/100, or None without a big blind size."""
        if not self.bb_size:
            return None
        return (self.drift / self.bb_size) * 100

    @property
    def stdev_bb_per_100(self) -> float | None:
        """Diffusion expressed in BB/100, or None without a big blind size.

        Per-100 stdev = per-hand stdev * sqrt(100).
        """
        if not self.bb_size:
            return None
        return (self.diffusion / self.bb_size) * 10


@dataclass(frozen=True, slots=True)
class ObservedResults:
    """Observed results fed to the Bayesian winrate analysis.

    Attributes:
        observed_winnings: Total winnings in BB.
        hands_played: Number of hands behind the result.
        std_dev: Standard deviation in BB/100, when it was measured.
    """

    observed_winnings: float
    hands_played: int
    std_dev: float | None = None

    def __post_init__(self) -> None:
        """Validate the sample."""
        if self.hands_played <= 0:
            raise InvalidParameterError("hands_played must be positive")
        if self.std_dev is not None and not self.std_dev > 0:
            raise InvalidParameterError("std_dev must be positive")

    @property
    def observed_winrate(self) -> float:
        """Observed winrate in BB/100."""
        return observed_winrate(self.observed_winnings, self.hands_played)


def calculate_drift_diffusion(
    hand_results: Sequence[float],
    bb_size: float | None = None,
) -> DriftDiffusion:
    """Calculate drift and diffusion from a sequence of hand results.

    Args:
        hand_results: Profit/loss of each hand, in currency or BB.
        bb_size: Optional big blind size for BB-normalized metrics.

    Raises:
        InvalidParameterError: If fewer than two results are given.

    Example:
        >>> dd = calculate_drift_diffusion([3.0, -1.0, 5.0, -3.0], bb_size=0.5)
        >>> f"{dd.drift:.2f} per hand, sd {dd.diffusion:.2f}"
        '1.00 per hand, sd 3.65'
    """
    if len(hand_results) < 2:
        raise InvalidParameterError("hand_results needs at least two hands")

    results_array: NDArray[np.float64] = np.asarray(hand_results, dtype=np.float64)

    return DriftDiffusion(
        drift=float(np.mean(results_array)),
        diffusion=float(np.std(results_array, ddof=1)),
        n_samples=len(hand_results),
        bb_size=bb_size,
    )


def observed_results_from_hands(
    hand_results: Sequence[float],
    bb_size: float = 1.0,
) -> ObservedResults:
    """Summarize per-hand results as observed winnings in BB.

    The measured standard deviation is carried along so the Bayesian analysis
    can use the player's own variance.
    """
    if bb_size <= 0:
        raise InvalidParameterError("bb_size must be positive")
    dd = calculate_drift_diffusion(hand_results, bb_size=bb_size)
    std_dev = dd.stdev_bb_per_100
    return ObservedResults(
        observed_winnings=dd.drift * dd.n_samples / bb_size,
        hands_played=dd.n_samples,
        std_dev=std_dev if std_dev and std_dev > 0 else None,
    )


def estimate_from_session_data(
    session_profit: float,
    n_hands: int,
    estimated_stdev_bb_per_100: float = 80.0,
    bb_size: float = 1.0,
) -> DriftDiffusion:
    """Estimate drift and diffusion from aggregate session data.

    The drift comes from the actual result; the diffusion uses a typical
    standard deviation (60-80 BB/100 for NLH cash, 100+ for PLO).

    Example:
        >>> dd = estimate_from_session_data(-120.0, 2000, bb_size=0.5)
        >>> round(dd.winrate_bb_per_100, 1)
        -12.0
    """
    if n_hands <= 0:
        raise InvalidParameterError("n_hands must be positive")
    if bb_size <= 0 or not math.isfinite(bb_size):
        raise InvalidParameterError("bb_size must be positive")

    return DriftDiffusion(
        drift=session_profit / n_hands,
        diffusion=(estimated_stdev_bb_per_100 / 10.0) * bb_size,
        n_samples=n_hands,
        bb_size=bb_size,
    )
