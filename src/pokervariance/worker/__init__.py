"""Execution host running simulations off the calling thread."""

from pokervariance.worker.host import SimulationHost, SimulationTask
from pokervariance.worker.protocol import (
    DownswingProbabilityInputs,
    RequestKind,
    SimulationInputs,
    SimulationRequest,
)

__all__ = [
    "SimulationHost",
    "SimulationTask",
    "SimulationRequest",
    "RequestKind",
    "SimulationInputs",
    "DownswingProbabilityInputs",
]
