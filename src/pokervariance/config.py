"""Model constants, simulation presets and runtime settings.

Simulation presets trade accuracy for speed: coarser hand steps and fewer
trials return faster but under-estimate drawdowns, since a coarse grid misses
peaks and troughs that fall between recorded points.
"""

import os
from dataclasses import dataclass

from pokervariance.errors import InvalidParameterError

# Two-sided z-values for the central 70% and 95% intervals
Z_70 = 1.036433
Z_95 = 1.959964

HANDS_PER_HOUR = 500

DEFAULT_CREDIBLE_PROBABILITIES: tuple[float, ...] = (0.50, 0.70, 0.90, 0.95)

# Hand counts for the variance summary table
MILESTONE_HANDS: tuple[int, ...] = (
    10_000,
    25_000,
    50_000,
    100_000,
    250_000,
    500_000,
    1_000_000,
)

# Downswing sizes in BB reported by the downswing analysis
DOWNSWING_THRESHOLDS: tuple[float, ...] = (
    2000.0,
    3000.0,
    4000.0,
    5000.0,
    7500.0,
    10000.0,
    15000.0,
    20000.0,
    30000.0,
    50000.0,
)

# Downswing sizes in buy-ins for the tournament variant
TOURNAMENT_DOWNSWING_THRESHOLDS: tuple[float, ...] = (20, 30, 50, 75, 100, 150, 200)


@dataclass(frozen=True, slots=True)
class SimulationMode:
    """Preset sizes for one accuracy level.

    Attributes:
        name: Preset name.
        step_size: Hands per recorded point of a sample path.
        num_paths: Number of sample paths returned for display.
        downswing_trials: Paths simulated for downswing probabilities.
        band_paths: Paths simulated for per-step percentile bands.
        tournament_paths: Sample paths for the tournament variant.
        tournament_trials: Trials for the tournament Monte Carlo.
    """

    name: str
    step_size: int
    num_paths: int
    downswing_trials: int
    band_paths: int
    tournament_paths: int
    tournament_trials: int


SIMULATION_MODES: dict[str, SimulationMode] = {
    "turbo": SimulationMode(
        name="turbo",
        step_size=1000,
        num_paths=10,
        downswing_trials=1000,
        band_paths=500,
        tournament_paths=12,
        tournament_trials=5000,
    ),
    "fast": SimulationMode(
        name="fast",
        step_size=500,
        num_paths=20,
        downswing_trials=5000,
        band_paths=1000,
        tournament_paths=20,
        tournament_trials=20000,
    ),
    "accurate": SimulationMode(
        name="accurate",
        step_size=100,
        num_paths=20,
        downswing_trials=50000,
        band_paths=2000,
        tournament_paths=20,
        tournament_trials=50000,
    ),
}


def get_mode(name: str) -> SimulationMode:
    """Look up a simulation preset by name.

    Raises:
        InvalidParameterError: If the preset does not exist.
    """
    try:
        return SIMULATION_MODES[name]
    except KeyError:
        valid = ", ".join(sorted(SIMULATION_MODES))
        raise InvalidParameterError(
            f"unknown simulation mode {name!r} (expected one of: {valid})"
        ) from None


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime settings of the execution host.

    Attributes:
        max_path_steps: Upper bound on paths × steps for a single request.
        poll_interval: Seconds between liveness checks while waiting on a worker.
        log_verbosity: Verbosity passed to ``setup_logging`` inside workers.
        start_method: ``multiprocessing`` start method for worker processes.
    """

    max_path_steps: int = 1_000_000_000
    poll_interval: float = 0.1
    log_verbosity: int = 0
    start_method: str = "spawn"

    def __post_init__(self) -> None:
        """Validate settings."""
        if self.max_path_steps <= 0:
            raise InvalidParameterError("max_path_steps must be positive")
        if self.poll_interval <= 0:
            raise InvalidParameterError("poll_interval must be positive")
        if self.log_verbosity < 0:
            raise InvalidParameterError("log_verbosity cannot be negative")
        if self.start_method not in ("spawn", "fork", "forkserver"):
            raise InvalidParameterError(f"unsupported start_method {self.start_method!r}")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from ``POKERVARIANCE_*`` environment variables."""
        defaults = cls()
        try:
            return cls(
                max_path_steps=int(
                    os.environ.get("POKERVARIANCE_MAX_PATH_STEPS", defaults.max_path_steps)
                ),
                poll_interval=float(
                    os.environ.get("POKERVARIANCE_POLL_INTERVAL", defaults.poll_interval)
                ),
                log_verbosity=int(
                    os.environ.get("POKERVARIANCE_LOG_VERBOSITY", defaults.log_verbosity)
                ),
                start_method=os.environ.get(
                    "POKERVARIANCE_START_METHOD", defaults.start_method
                ),
            )
        except ValueError as exc:
            if isinstance(exc, InvalidParameterError):
                raise
            raise InvalidParameterError(f"invalid environment setting: {exc}") from exc
