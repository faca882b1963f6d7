"""Messages exchanged between a caller and a simulation worker.

A request carries a unique id. The worker answers with zero or more
:class:`ProgressMessage` values followed by exactly one terminal message,
either :class:`ResultMessage` or :class:`ErrorMessage`, all tagged with the
request id. Every message is a plain picklable value so it can cross a
process boundary.
"""

import math
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from pokervariance.config import SIMULATION_MODES
from pokervariance.errors import InvalidParameterError
from pokervariance.tournament.model import TournamentInputs


class RequestKind(str, Enum):
    """Computations a worker can run."""

    SIMULATE = "simulate"
    DOWNSWING_PROBABILITY = "downswingProbability"
    SIMULATE_TOURNAMENT = "simulateTournament"


def _check_common(winrate: float, std_dev: float, hands: int, mode: str, seed: int | None) -> None:
    if not math.isfinite(winrate):
        raise InvalidParameterError("winrate must be a finite number")
    if not (math.isfinite(std_dev) and std_dev > 0):
        raise InvalidParameterError("std_dev must be positive")
    if hands < 0:
        raise InvalidParameterError("hands cannot be negative")
    if mode not in SIMULATION_MODES:
        raise InvalidParameterError(f"unknown simulation mode {mode!r}")
    if seed is not None and seed <= 0:
        raise InvalidParameterError("seed must be a positive integer")


@dataclass(frozen=True, slots=True)
class SimulationInputs:
    """Parameters of a full cash-game simulation.

    Attributes:
        winrate: Expected win rate in BB/100.
        std_dev: Standard deviation in BB/100.
        hands: Horizon in hands; rounded to the nearest 100 before simulating.
        observed_winrate: Actual results in BB/100, for comparison metrics.
        seed: Random seed; a fresh one is drawn when omitted.
        mode: Simulation preset name.
        big_blind_size: Dollar value of one big blind, for dollar figures.
    """

    winrate: float
    std_dev: float
    hands: int
    observed_winrate: float | None = None
    seed: int | None = None
    mode: str = "fast"
    big_blind_size: float | None = None

    def __post_init__(self) -> None:
        """Validate inputs."""
        _check_common(self.winrate, self.std_dev, self.hands, self.mode, self.seed)
        if self.big_blind_size is not None and not self.big_blind_size > 0:
            raise InvalidParameterError("big_blind_size must be positive")


@dataclass(frozen=True, slots=True)
class DownswingProbabilityInputs:
    """Parameters of a single drawdown-probability estimate."""

    hands: int
    winrate: float
    std_dev: float
    threshold_bb: float
    mode: str = "turbo"
    seed: int | None = None

    def __post_init__(self) -> None:
        """Validate inputs."""
        _check_common(self.winrate, self.std_dev, self.hands, self.mode, self.seed)
        if not math.isfinite(self.threshold_bb):
            raise InvalidParameterError("threshold_bb must be a finite number")


RequestParams = Union[SimulationInputs, DownswingProbabilityInputs, TournamentInputs]

_PARAMS_BY_KIND: dict[RequestKind, type] = {
    RequestKind.SIMULATE: SimulationInputs,
    RequestKind.DOWNSWING_PROBABILITY: DownswingProbabilityInputs,
    RequestKind.SIMULATE_TOURNAMENT: TournamentInputs,
}


@dataclass(frozen=True, slots=True)
class SimulationRequest:
    """A unit of work addressed to a worker."""

    kind: RequestKind
    params: RequestParams
    request_id: str

    def __post_init__(self) -> None:
        """Check the parameter type matches the request kind."""
        expected = _PARAMS_BY_KIND[RequestKind(self.kind)]
        if not isinstance(self.params, expected):
            raise InvalidParameterError(
                f"{RequestKind(self.kind).value} requests take {expected.__name__}, "
                f"got {type(self.params).__name__}"
            )

    @classmethod
    def new(cls, kind: RequestKind | str, params: RequestParams) -> "SimulationRequest":
        """Create a request with a fresh unique id."""
        return cls(kind=RequestKind(kind), params=params, request_id=uuid.uuid4().hex)


@dataclass(frozen=True, slots=True)
class ProgressMessage:
    """Completed fraction of a request, in [0, 1]."""

    request_id: str
    progress: float


@dataclass(frozen=True, slots=True)
class ResultMessage:
    """Successful completion of a request."""

    request_id: str
    kind: RequestKind
    payload: Any


@dataclass(frozen=True, slots=True)
class ErrorMessage:
    """Failed request with a human-readable reason."""

    request_id: str
    error: str


WorkerMessage = Union[ProgressMessage, ResultMessage, ErrorMessage]


def is_terminal(message: WorkerMessage) -> bool:
    """True for the message that ends a request."""
    return isinstance(message, (ResultMessage, ErrorMessage))
