"""Seeded Monte Carlo generation of cumulative-winnings paths.

Winnings are simulated in blocks of ``step_size`` hands. Each block adds a
Normal(winrate * dh / 100, std_dev * sqrt(dh / 100)) increment, the exact
distribution of dh hands under the random-walk model. Only block endpoints
are observed, so peaks and troughs inside a block are missed: coarse steps
bias drawdowns low relative to continuous play. That is an approximation of
the grid, not of the increments.
"""

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from pokervariance.errors import InvalidParameterError

_MAX_SEED = 2_147_483_647


def create_rng(seed: int | None) -> np.random.Generator:
    """Create the generator every simulation draws from.

    The same seed always reproduces the same variates, and therefore
    bit-identical paths.
    """
    return np.random.default_rng(seed)


def generate_random_seed() -> int:
    """Draw a fresh positive 31-bit seed for requests that supply none."""
    return int(np.random.default_rng().integers(1, _MAX_SEED, endpoint=True))


def validate_simulation_inputs(
    total_hands: int,
    std_dev: float,
    n_paths: int = 1,
    step_size: int = 100,
) -> None:
    """Reject inputs the simulator cannot sample from.

    Raises:
        InvalidParameterError: On non-positive std_dev, n_paths or step_size,
            or negative total_hands.
    """
    if not std_dev > 0:
        raise InvalidParameterError("std_dev must be positive")
    if total_hands < 0:
        raise InvalidParameterError("total_hands cannot be negative")
    if n_paths <= 0:
        raise InvalidParameterError("n_paths must be positive")
    if step_size <= 0:
        raise InvalidParameterError("step_size must be positive")


def hand_grid(total_hands: int, step_size: int = 100) -> NDArray[np.int64]:
    """Recorded hand counts: 0, step, 2*step, ..., total_hands.

    The final block is shortened when ``total_hands`` is not a multiple of
    ``step_size``.

    Example:
        >>> hand_grid(250, 100)
        array([  0, 100, 200, 250])
    """
    if step_size <= 0:
        raise InvalidParameterError("step_size must be positive")
    grid = np.arange(0, total_hands, step_size, dtype=np.int64)
    return np.append(grid, np.int64(total_hands))


def simulate_winnings(
    total_hands: int,
    winrate: float,
    std_dev: float,
    n_paths: int,
    rng: np.random.Generator,
    step_size: int = 100,
) -> tuple[NDArray[np.int64], NDArray[np.float64]]:
    """Simulate cumulative winnings for a batch of paths.

    Args:
        total_hands: Horizon in hands.
        winrate: Win rate in BB/100.
        std_dev: Standard deviation in BB/100.
        n_paths: Number of independent paths.
        rng: Generator from :func:`create_rng`.
        step_size: Hands per recorded block.

    Returns:
        Tuple ``(hands, winnings)``: the hand grid of shape (n_steps + 1,)
        and winnings in BB of shape (n_paths, n_steps + 1). Column 0 is zero.
    """
    validate_simulation_inputs(total_hands, std_dev, n_paths, step_size)

    hands = hand_grid(total_hands, step_size)
    block_hands = np.diff(hands).astype(np.float64)

    # Per-block mean and scale; the last block may be partial
    block_mean = winrate * block_hands / 100.0
    block_std = std_dev * np.sqrt(block_hands / 100.0)

    winnings: NDArray[np.float64] = np.zeros((n_paths, hands.size), dtype=np.float64)
    if block_hands.size:
        increments = rng.standard_normal((n_paths, block_hands.size)) * block_std + block_mean
        np.cumsum(increments, axis=1, out=winnings[:, 1:])

    return hands, winnings


@dataclass(frozen=True, slots=True, eq=False)
class SimulationPath:
    """One simulated sample path with its running peak and drawdown.

    Attributes:
        hands: Recorded hand counts, strictly increasing from 0.
        winnings: Cumulative winnings in BB; ``winnings[0] == 0``.
        peaks: Running maximum of winnings.
        drawdowns: ``peaks - winnings``, never negative.
        max_drawdown: Largest drawdown along the path.
        final_winnings: Winnings at the last recorded hand.
    """

    hands: NDArray[np.int64]
    winnings: NDArray[np.float64]
    peaks: NDArray[np.float64]
    drawdowns: NDArray[np.float64]
    max_drawdown: float
    final_winnings: float

    @classmethod
    def from_winnings(
        cls,
        hands: NDArray[np.int64],
        winnings: NDArray[np.float64],
    ) -> "SimulationPath":
        """Derive peaks and drawdowns for a single row of winnings."""
        peaks = np.maximum.accumulate(winnings)
        drawdowns = peaks - winnings
        return cls(
            hands=hands.copy(),
            winnings=winnings.copy(),
            peaks=peaks,
            drawdowns=drawdowns,
            max_drawdown=float(drawdowns.max()),
            final_winnings=float(winnings[-1]),
        )

    def to_rows(self) -> list[tuple[int, float, float, float]]:
        """Rows of ``(hands, winnings, peak, drawdown)`` for tabular export."""
        return [
            (int(h), float(w), float(p), float(d))
            for h, w, p, d in zip(self.hands, self.winnings, self.peaks, self.drawdowns)
        ]

    def to_dict(self) -> dict[str, object]:
        """Plain-Python representation suitable for JSON."""
        return {
            "hands": self.hands.tolist(),
            "winnings": self.winnings.tolist(),
            "peaks": self.peaks.tolist(),
            "drawdowns": self.drawdowns.tolist(),
            "maxDrawdown": self.max_drawdown,
            "finalWinnings": self.final_winnings,
        }


def trivial_path() -> SimulationPath:
    """The path of a zero-hand horizon: a single point at zero."""
    zero = np.zeros(1, dtype=np.float64)
    return SimulationPath.from_winnings(np.zeros(1, dtype=np.int64), zero)


def generate_sample_paths(
    total_hands: int,
    winrate: float,
    std_dev: float,
    n_paths: int,
    rng: np.random.Generator,
    step_size: int = 100,
) -> list[SimulationPath]:
    """Simulate paths for display.

    A zero-hand horizon yields a single trivial path regardless of
    ``n_paths``.

    Example:
        >>> rng = create_rng(42)
        >>> paths = generate_sample_paths(1000, 5.0, 80.0, 3, rng)
        >>> len(paths), paths[0].hands[-1]
        (3, 1000)
    """
    validate_simulation_inputs(total_hands, std_dev, n_paths, step_size)
    if total_hands == 0:
        return [trivial_path()]

    hands, winnings = simulate_winnings(total_hands, winrate, std_dev, n_paths, rng, step_size)
    return [SimulationPath.from_winnings(hands, row) for row in winnings]


def simulate_path(
    total_hands: int,
    winrate: float,
    std_dev: float,
    rng: np.random.Generator,
    step_size: int = 100,
) -> SimulationPath:
    """Simulate a single path."""
    return generate_sample_paths(total_hands, winrate, std_dev, 1, rng, step_size)[0]
