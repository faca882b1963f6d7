"""Single-tournament outcome model.

Skill is modelled as an exponential bias over finishing positions: place ``i``
(1 = winner) of ``n`` has weight ``exp(-beta * (i - 1) / (n - 1))``. beta = 0
is a uniform finish distribution, positive beta favours deep runs and
negative beta favours early exits. beta is solved so that the expected profit
on the total cost (buy-in plus fee) equals the requested ROI.
"""

import dataclasses
import logging
import math
from dataclasses import dataclass
from typing import NamedTuple

import numpy as np
from numpy.typing import NDArray

from pokervariance.config import SIMULATION_MODES, Z_70, Z_95
from pokervariance.errors import InvalidParameterError
from pokervariance.tournament.payouts import PayoutModel, build_payout_model

logger = logging.getLogger(__name__)

_BETA_BISECTION_STEPS = 70
_BETA_MAX = 20000.0
_ROI_TOL = 1e-6


@dataclass(frozen=True, slots=True)
class TournamentInputs:
    """Inputs of the tournament variance calculator.

    ROI is measured on the total cost (buy-in plus fee). One buy-in unit is
    the base buy-in, fee excluded.

    Attributes:
        buy_in: Amount that goes to the prize pool.
        fee: Rake paid on top of the buy-in.
        field_size: Number of entrants.
        percent_paid: Percentage of the field paid.
        top_prize_multiple: First prize as a multiple of the buy-in.
        roi_percent: Expected ROI in percent of total cost.
        tournaments: Number of tournaments played.
        bankroll_buy_ins: Starting bankroll in buy-ins.
        mode: Simulation preset name.
        seed: Random seed; a fresh seed is drawn when omitted.
    """

    buy_in: float
    fee: float
    field_size: int
    percent_paid: float
    top_prize_multiple: float
    roi_percent: float
    tournaments: int
    bankroll_buy_ins: float
    mode: str = "fast"
    seed: int | None = None

    def __post_init__(self) -> None:
        """Validate inputs."""
        if not math.isfinite(self.buy_in) or self.buy_in <= 0:
            raise InvalidParameterError("Buy-in must be a positive number.")
        if not math.isfinite(self.fee) or self.fee < 0:
            raise InvalidParameterError("Fee must be a non-negative number.")
        if not math.isfinite(self.field_size) or self.field_size < 2:
            raise InvalidParameterError("Field size must be at least 2.")
        if not math.isfinite(self.percent_paid) or not 0 < self.percent_paid <= 100:
            raise InvalidParameterError("Percent paid must be between 0 and 100.")
        if not math.isfinite(self.top_prize_multiple) or self.top_prize_multiple <= 0:
            raise InvalidParameterError("Top prize multiple must be positive.")
        if not math.isfinite(self.roi_percent):
            raise InvalidParameterError("ROI must be a valid number.")
        if not math.isfinite(self.tournaments) or self.tournaments < 0:
            raise InvalidParameterError("Tournaments must be 0 or greater.")
        if not math.isfinite(self.bankroll_buy_ins) or self.bankroll_buy_ins < 0:
            raise InvalidParameterError("Bankroll (buy-ins) must be 0 or greater.")
        if self.mode not in SIMULATION_MODES:
            raise InvalidParameterError("Invalid mode.")
        if self.seed is not None and self.seed <= 0:
            raise InvalidParameterError("Seed must be a positive integer.")

    @property
    def cost(self) -> float:
        """Total cost of one entry."""
        return self.buy_in + self.fee

    @property
    def bankroll_dollars(self) -> float:
        """Starting bankroll in currency."""
        return self.bankroll_buy_ins * self.buy_in

    def normalized(self, seed: int | None = None) -> "TournamentInputs":
        """Whole field size and tournament count, with ``seed`` filled in."""
        return dataclasses.replace(
            self,
            field_size=int(math.floor(self.field_size)),
            tournaments=int(math.floor(self.tournaments)),
            seed=self.seed if seed is None else seed,
        )


@dataclass(frozen=True, slots=True)
class SkillModel:
    """Finish-bias parameter solved for a target ROI.

    Attributes:
        roi_target: Target ROI as a fraction, after clamping to what is feasible.
        roi_achieved: ROI reached by the solved ``beta``.
        beta: Finish-bias parameter.
        max_roi_feasible: ROI of winning every tournament.
        warnings: Human-readable notes about clamped targets.
    """

    roi_target: float
    roi_achieved: float
    beta: float
    max_roi_feasible: float
    warnings: tuple[str, ...] = ()


class TournamentOutcome(NamedTuple):
    """One possible result of a single tournament."""

    label: str
    place: int | None
    prize: float
    profit: float
    probability: float


@dataclass(frozen=True, slots=True)
class SingleTournamentStats:
    """Moments of the profit of one tournament entry."""

    cost: float
    ev: float
    variance: float
    sd: float
    itm_probability: float
    avg_prize_when_cashing: float
    avg_profit_when_cashing: float


@dataclass(frozen=True, slots=True)
class TournamentModel:
    """Payout table, skill model and outcome distribution of one tournament."""

    payout_model: PayoutModel
    skill_model: SkillModel
    outcomes: tuple[TournamentOutcome, ...]
    per_tournament: SingleTournamentStats


class TournamentConfidencePoint(NamedTuple):
    """Normal-approximation EV line and bands after ``tournaments`` entries."""

    tournaments: int
    ev: float
    ci70_lower: float
    ci70_upper: float
    ci95_lower: float
    ci95_upper: float


class _FinishDistribution(NamedTuple):
    paid: NDArray[np.float64]
    bust: float
    expected_profit: float


def ordinal(place: int) -> str:
    """English ordinal of a finishing place.

    Example:
        >>> [ordinal(p) for p in (1, 2, 3, 4, 11, 22, 113)]
        ['1st', '2nd', '3rd', '4th', '11th', '22nd', '113th']
    """
    p = abs(place)
    if 11 <= p % 100 <= 13:
        return f"{place}th"
    suffix = {1: "st", 2: "nd", 3: "rd"}.get(p % 10, "th")
    return f"{place}{suffix}"


def _geometric_sum_exp(a: float, n: int) -> float:
    """Sum of exp(a * k) for k in 0..n-1, via expm1 for stability."""
    if n <= 0:
        return 0.0
    if abs(a) < 1e-14:
        return float(n)
    return math.expm1(a * n) / math.expm1(a)


def _finish_distribution(payouts: PayoutModel, cost: float, beta: float) -> _FinishDistribution:
    n = payouts.field_size
    a = -beta / max(1, n - 1)
    total = _geometric_sum_exp(a, n)

    paid = np.exp(a * np.arange(payouts.num_paid, dtype=np.float64)) / total
    prizes = np.asarray(payouts.prizes, dtype=np.float64)
    expected_prize = float(np.dot(paid, prizes))
    return _FinishDistribution(
        paid=paid,
        bust=max(0.0, 1.0 - float(paid.sum())),
        expected_profit=expected_prize - cost,
    )


def _roi(payouts: PayoutModel, cost: float, beta: float) -> tuple[float, _FinishDistribution]:
    dist = _finish_distribution(payouts, cost, beta)
    return (dist.expected_profit / cost if cost > 0 else 0.0), dist


def solve_skill_model(
    payouts: PayoutModel,
    cost: float,
    roi_target: float,
) -> tuple[SkillModel, _FinishDistribution]:
    """Solve beta so the expected ROI matches ``roi_target``.

    The target is clamped to [-1, max feasible ROI]. beta is bracketed by
    doubling away from zero, then bisected. Negative beta is limited so that
    ``exp`` cannot overflow.
    """
    max_feasible = (payouts.prizes[0] - cost) / cost if cost > 0 else 0.0
    warnings: list[str] = []

    target = min(100.0, max(-1.0, roi_target))
    if target > max_feasible:
        warnings.append(
            f"ROI target {target * 100:.1f}% exceeds max feasible ROI "
            f"{max_feasible * 100:.1f}% given the modeled payout "
            "(you can't win more than 1st place every time). Clamped."
        )
    target = min(max(target, -1.0), max_feasible)

    n = payouts.field_size
    beta_min_safe = -math.floor(700 * max(1, n - 1) / max(1, n))
    base_roi, _ = _roi(payouts, cost, 0.0)

    if target >= base_roi:
        lo, hi = 0.0, 1.0
        while _roi(payouts, cost, hi)[0] < target and hi < _BETA_MAX:
            hi *= 2
    else:
        lo, hi = -1.0, 0.0
        while _roi(payouts, cost, lo)[0] > target and lo > beta_min_safe:
            lo = max(lo * 2, beta_min_safe)

    beta = (lo + hi) / 2
    achieved, dist = _roi(payouts, cost, beta)
    for _ in range(_BETA_BISECTION_STEPS):
        beta = (lo + hi) / 2
        achieved, dist = _roi(payouts, cost, beta)
        if abs(achieved - target) < _ROI_TOL:
            break
        if achieved < target:
            lo = beta
        else:
            hi = beta

    logger.debug("skill model: beta=%.6g roi=%.6g (target %.6g)", beta, achieved, target)
    model = SkillModel(
        roi_target=target,
        roi_achieved=achieved,
        beta=beta,
        max_roi_feasible=max_feasible,
        warnings=tuple(warnings),
    )
    return model, dist


def single_tournament_stats(
    cost: float,
    prizes: tuple[float, ...],
    paid: NDArray[np.float64],
    bust: float,
) -> SingleTournamentStats:
    """EV, variance and in-the-money figures of one entry."""
    prize_arr = np.asarray(prizes, dtype=np.float64)
    profit = prize_arr - cost

    ev_prize = float(np.dot(paid, prize_arr))
    ev_paid_profit = float(np.dot(paid, profit))
    ev = ev_paid_profit - bust * cost
    second_moment = float(np.dot(paid, profit**2)) + bust * cost**2
    variance = max(0.0, second_moment - ev**2)
    itm = float(paid[prize_arr > 0].sum())

    return SingleTournamentStats(
        cost=cost,
        ev=ev,
        variance=variance,
        sd=math.sqrt(variance),
        itm_probability=itm,
        avg_prize_when_cashing=ev_prize / itm if itm > 0 else 0.0,
        avg_profit_when_cashing=ev_paid_profit / itm if itm > 0 else 0.0,
    )


def build_tournament_model(inputs: TournamentInputs) -> TournamentModel:
    """Build payouts, solve skill and tabulate the outcome distribution.

    Outcomes are ``Bust`` followed by places 1..num_paid; their probabilities
    sum to 1.
    """
    cost = inputs.cost
    payouts = build_payout_model(
        inputs.field_size,
        inputs.percent_paid,
        inputs.buy_in,
        inputs.top_prize_multiple,
    )
    skill, dist = solve_skill_model(payouts, cost, inputs.roi_percent / 100)
    per_tournament = single_tournament_stats(cost, payouts.prizes, dist.paid, dist.bust)

    probabilities = np.concatenate(([dist.bust], dist.paid))
    total = probabilities.sum()
    if total > 0 and abs(total - 1) > 1e-9:
        probabilities = probabilities / total

    outcomes = [TournamentOutcome("Bust", None, 0.0, -cost, float(probabilities[0]))]
    for place, prize in enumerate(payouts.prizes, start=1):
        outcomes.append(
            TournamentOutcome(ordinal(place), place, prize, prize - cost, float(probabilities[place]))
        )

    return TournamentModel(
        payout_model=payouts,
        skill_model=skill,
        outcomes=tuple(outcomes),
        per_tournament=per_tournament,
    )


def _confidence_point(tournaments: int, ev: float, sd: float) -> TournamentConfidencePoint:
    mean = tournaments * ev
    sigma = math.sqrt(tournaments) * sd
    return TournamentConfidencePoint(
        tournaments=tournaments,
        ev=mean,
        ci70_lower=mean - Z_70 * sigma,
        ci70_upper=mean + Z_70 * sigma,
        ci95_lower=mean - Z_95 * sigma,
        ci95_upper=mean + Z_95 * sigma,
    )


def generate_tournament_confidence_data(
    tournaments: int,
    ev_per_tournament: float,
    sd_per_tournament: float,
    num_points: int = 150,
) -> list[TournamentConfidencePoint]:
    """EV line and normal-approximation bands from 0 to ``tournaments``.

    ``num_points`` is clamped to [50, 300]; the last point is always the full
    tournament count.
    """
    total = max(0, int(math.floor(tournaments)))
    num_points = max(50, min(300, int(num_points)))
    if total == 0:
        return [_confidence_point(0, ev_per_tournament, sd_per_tournament)]

    step = max(1, total // num_points)
    points = [
        _confidence_point(t, ev_per_tournament, sd_per_tournament)
        for t in range(0, total + 1, step)
    ]
    if points[-1].tournaments != total:
        points.append(_confidence_point(total, ev_per_tournament, sd_per_tournament))
    return points
