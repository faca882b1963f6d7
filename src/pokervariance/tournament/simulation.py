"""Monte Carlo simulation of a tournament schedule.

Each tournament's profit is drawn from the discrete outcome distribution of
:mod:`pokervariance.tournament.model` by inverse-CDF sampling. Outcomes are
heavy-tailed, so drawdowns and finite-horizon bust risk are estimated by
simulation rather than from a Normal approximation.
"""

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np
from numpy.typing import NDArray

from pokervariance.config import TOURNAMENT_DOWNSWING_THRESHOLDS
from pokervariance.errors import InvalidParameterError
from pokervariance.stats.normal import normal_cdf
from pokervariance.tournament.model import TournamentOutcome

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]

# Upper bound on sampled outcomes held in memory per batch
_BATCH_ELEMENTS = 2_000_000
_DEFAULT_POINTS = 220

QUANTILES: tuple[float, ...] = (0.05, 0.25, 0.50, 0.75, 0.95)


class OutcomeTable(NamedTuple):
    """Profits of each outcome and the cumulative distribution over them."""

    profits: NDArray[np.float64]
    cdf: NDArray[np.float64]


@dataclass(frozen=True, slots=True, eq=False)
class TournamentPath:
    """One simulated schedule, recorded every ``record_every`` tournaments.

    ``max_drawdown`` covers every tournament, including those between
    recorded points.
    """

    tournaments: NDArray[np.int64]
    profit: NDArray[np.float64]
    peaks: NDArray[np.float64]
    drawdowns: NDArray[np.float64]
    max_drawdown: float
    final_profit: float

    def to_dict(self) -> dict[str, object]:
        """Plain-Python representation suitable for JSON."""
        return {
            "tournaments": self.tournaments.tolist(),
            "profit": self.profit.tolist(),
            "peaks": self.peaks.tolist(),
            "drawdowns": self.drawdowns.tolist(),
            "maxDrawdown": self.max_drawdown,
            "finalProfit": self.final_profit,
        }


@dataclass(frozen=True, slots=True)
class TournamentDownswingStats:
    """Drawdowns over the schedule, thresholds in buy-ins."""

    thresholds_buy_ins: tuple[float, ...]
    probabilities: tuple[float, ...]
    average_max_drawdown: float
    worst_max_drawdown: float


class MonteCarloResult(NamedTuple):
    """Raw output of :func:`run_tournament_monte_carlo`."""

    final_profits: NDArray[np.float64]
    simulated_probability_of_profit: float
    downswing: TournamentDownswingStats
    bust_probability: float


class ProfitQuantiles(NamedTuple):
    """Final profit (or ROI) at the 5/25/50/75/95th percentiles."""

    p05: float
    p25: float
    p50: float
    p75: float
    p95: float


class ProfitSummary(NamedTuple):
    profit_quantiles: ProfitQuantiles
    roi_quantiles: ProfitQuantiles


def build_outcome_table(outcomes: Sequence[TournamentOutcome]) -> OutcomeTable:
    """Cumulative distribution of ``outcomes``, normalized to end at exactly 1."""
    if not outcomes:
        raise InvalidParameterError("outcomes cannot be empty")
    profits = np.array([o.profit for o in outcomes], dtype=np.float64)
    cdf = np.cumsum([max(0.0, o.probability) for o in outcomes], dtype=np.float64)
    if cdf[-1] <= 0:
        raise InvalidParameterError("outcome probabilities must not all be zero")
    cdf /= cdf[-1]
    cdf[-1] = 1.0
    return OutcomeTable(profits=profits, cdf=cdf)


def sample_profits(
    table: OutcomeTable,
    rng: np.random.Generator,
    size: int | tuple[int, ...],
) -> NDArray[np.float64]:
    """Draw outcome profits by inverse-CDF lookup of uniform variates.

    Outcomes with zero probability are never drawn.
    """
    u = rng.random(size)
    idx = np.searchsorted(table.cdf, u, side="right")
    return table.profits[idx]


def simulate_tournament_path(
    tournaments: int,
    outcomes: Sequence[TournamentOutcome],
    rng: np.random.Generator,
    record_every: int | None = None,
) -> TournamentPath:
    """Simulate one schedule of ``tournaments`` entries.

    Args:
        tournaments: Number of tournaments played.
        outcomes: Outcome distribution of one tournament.
        rng: Seeded generator.
        record_every: Record every K tournaments; defaults to about 220
            recorded points. The final tournament is always recorded.
    """
    total = max(0, int(math.floor(tournaments)))
    if record_every is None or record_every < 1:
        record_every = max(1, total // _DEFAULT_POINTS)
    table = build_outcome_table(outcomes)

    cumulative = np.zeros(total + 1, dtype=np.float64)
    if total:
        np.cumsum(sample_profits(table, rng, total), out=cumulative[1:])
    peaks = np.maximum.accumulate(cumulative)
    drawdowns = peaks - cumulative

    recorded = np.arange(0, total + 1, record_every, dtype=np.int64)
    if recorded[-1] != total:
        recorded = np.append(recorded, np.int64(total))

    return TournamentPath(
        tournaments=recorded,
        profit=cumulative[recorded],
        peaks=peaks[recorded],
        drawdowns=drawdowns[recorded],
        max_drawdown=float(drawdowns.max()),
        final_profit=float(cumulative[-1]),
    )


def _quantile(sorted_values: NDArray[np.float64], p: float) -> float:
    if sorted_values.size == 0:
        return 0.0
    return float(np.quantile(sorted_values, min(1.0, max(0.0, p))))


def normal_approx_probability_of_profit(mean: float, sd: float) -> float:
    """P(profit > 0) when total profit is approximated as Normal(mean, sd)."""
    if sd <= 0:
        if mean > 0:
            return 1.0
        return 0.0 if mean < 0 else 0.5
    return 1.0 - normal_cdf(-mean / sd)


def run_tournament_monte_carlo(
    tournaments: int,
    outcomes: Sequence[TournamentOutcome],
    num_trials: int,
    bankroll_dollars: float,
    cost_dollars: float,
    buy_in_dollars: float,
    rng: np.random.Generator,
    thresholds_buy_ins: Sequence[float] = TOURNAMENT_DOWNSWING_THRESHOLDS,
    progress: ProgressCallback | None = None,
) -> MonteCarloResult:
    """Simulate many schedules and summarize profit, drawdowns and busts.

    A trial busts when the bankroll cannot cover the next entry fee at any
    point. Play continues regardless so that the final-profit distribution is
    always that of the full ``tournaments`` entries.

    Args:
        tournaments: Entries per trial.
        outcomes: Outcome distribution of one tournament.
        num_trials: Number of simulated schedules.
        bankroll_dollars: Starting bankroll.
        cost_dollars: Cost of one entry.
        buy_in_dollars: Size of one buy-in, the unit of ``thresholds_buy_ins``.
        rng: Seeded generator.
        thresholds_buy_ins: Drawdown thresholds; non-positive ones are dropped.
        progress: Called with the completed fraction after each batch.
    """
    total = max(0, int(math.floor(tournaments)))
    num_trials = max(0, int(num_trials))
    table = build_outcome_table(outcomes)

    thresholds = tuple(sorted(float(t) for t in thresholds_buy_ins if t > 0))
    limits = np.asarray(thresholds, dtype=np.float64) * buy_in_dollars

    final_profits = np.zeros(num_trials, dtype=np.float64)
    max_drawdowns = np.zeros(num_trials, dtype=np.float64)
    busted = np.full(num_trials, bankroll_dollars < cost_dollars, dtype=bool)

    batch = max(1, _BATCH_ELEMENTS // max(1, total))
    logger.debug("tournament monte carlo: %d trials x %d entries", num_trials, total)
    for start in range(0, num_trials, batch):
        stop = min(num_trials, start + batch)
        if total:
            cumulative = np.cumsum(sample_profits(table, rng, (stop - start, total)), axis=1)
            peaks = np.maximum.accumulate(np.maximum(cumulative, 0.0), axis=1)
            final_profits[start:stop] = cumulative[:, -1]
            max_drawdowns[start:stop] = (peaks - cumulative).max(axis=1)
            busted[start:stop] |= (bankroll_dollars + cumulative).min(axis=1) < cost_dollars
        if progress is not None:
            progress(stop / num_trials)
    if progress is not None:
        progress(1.0)

    if num_trials:
        probabilities = (max_drawdowns[:, None] >= limits[None, :]).mean(axis=0)
        downswing = TournamentDownswingStats(
            thresholds_buy_ins=thresholds,
            probabilities=tuple(float(p) for p in probabilities),
            average_max_drawdown=float(max_drawdowns.mean()),
            worst_max_drawdown=float(max_drawdowns.max()),
        )
        p_profit = float(np.mean(final_profits > 0))
        p_bust = float(np.mean(busted))
    else:
        downswing = TournamentDownswingStats(thresholds, (0.0,) * len(thresholds), 0.0, 0.0)
        p_profit = p_bust = 0.0

    return MonteCarloResult(
        final_profits=final_profits,
        simulated_probability_of_profit=p_profit,
        downswing=downswing,
        bust_probability=p_bust,
    )


def summarize_final_profit_distribution(
    final_profits: NDArray[np.float64] | Sequence[float],
    total_cost: float,
    tournaments: int,
) -> ProfitSummary:
    """Quantiles of final profit, and the same quantiles as ROI on total spend.

    Quantiles interpolate linearly between order statistics.

    Example:
        >>> summary = summarize_final_profit_distribution([-10.0, 0.0, 10.0, 20.0, 30.0], 10.0, 2)
        >>> summary.profit_quantiles.p50, summary.roi_quantiles.p50
        (10.0, 0.5)
    """
    ordered = np.sort(np.asarray(final_profits, dtype=np.float64))
    profit = ProfitQuantiles(*(_quantile(ordered, q) for q in QUANTILES))
    denom = max(1e-12, tournaments * total_cost)
    roi = ProfitQuantiles(*(x / denom for x in profit))
    return ProfitSummary(profit_quantiles=profit, roi_quantiles=roi)
