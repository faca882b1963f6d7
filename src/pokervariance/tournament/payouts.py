"""Approximate tournament payout tables.

Prizes follow a power law over the paid places::

    weight(place) = 1 / place ** alpha
    prize(place) = weight(place) / sum(weights) * prize_pool

``alpha`` is chosen by bisection so that first prize matches the requested
``top_prize_multiple * buy_in``. alpha = 0 pays every place equally and large
alpha approaches winner-take-all.
"""

import logging
import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

logger = logging.getLogger(__name__)

ALPHA_MAX = 10.0
_BISECTION_STEPS = 60
_REL_TOL = 1e-10


@dataclass(frozen=True, slots=True)
class PayoutModel:
    """Prize structure of one tournament.

    Attributes:
        field_size: Number of entrants.
        percent_paid: Percentage of the field that cashes.
        num_paid: Number of paid places.
        prize_pool: Total prize money (buy-ins only, fees excluded).
        top_prize_target: First prize the curve was fitted to, after clamping.
        top_prize_actual: First prize of the fitted curve.
        alpha: Power-law exponent.
        prizes: Prize for places 1..num_paid, non-increasing.
        warnings: Human-readable notes about clamped inputs.
    """

    field_size: int
    percent_paid: float
    num_paid: int
    prize_pool: float
    top_prize_target: float
    top_prize_actual: float
    alpha: float
    prizes: tuple[float, ...]
    warnings: tuple[str, ...] = ()


def _power_weights(num_paid: int, alpha: float) -> NDArray[np.float64]:
    places = np.arange(1, num_paid + 1, dtype=np.float64)
    return places ** (-alpha)


def _first_prize(prize_pool: float, num_paid: int, alpha: float) -> float:
    return prize_pool / float(_power_weights(num_paid, alpha).sum())


def _fit_alpha(prize_pool: float, num_paid: int, target: float) -> float:
    """Bisect alpha in [0, ALPHA_MAX] so first prize matches ``target``.

    First prize grows monotonically with alpha.
    """
    equal = prize_pool / num_paid
    if abs(target - equal) / max(1e-9, equal) < _REL_TOL:
        return 0.0
    if abs(target - prize_pool) / max(1e-9, prize_pool) < _REL_TOL:
        return ALPHA_MAX

    lo, hi = 0.0, ALPHA_MAX
    for _ in range(_BISECTION_STEPS):
        mid = (lo + hi) / 2
        if _first_prize(prize_pool, num_paid, mid) < target:
            lo = mid
        else:
            hi = mid
    return (lo + hi) / 2


def build_payout_model(
    field_size: int,
    percent_paid: float,
    buy_in: float,
    top_prize_multiple: float,
) -> PayoutModel:
    """Fit a power-law payout table to the requested first prize.

    Inputs are normalized rather than rejected: the field is at least 2,
    ``percent_paid`` is clamped to [0.1, 100] and at least one place pays.
    A first prize below the equal-payout minimum or above the whole prize pool
    is clamped and reported in ``warnings``.

    Example:
        >>> model = build_payout_model(100, 10, 10.0, 1000)
        >>> model.num_paid, model.prize_pool, model.alpha
        (10, 1000.0, 10.0)
    """
    field_size = max(2, int(math.floor(field_size)))
    percent_paid = min(100.0, max(0.1, float(percent_paid)))
    buy_in = max(0.01, float(buy_in))
    top_prize_multiple = max(0.01, float(top_prize_multiple))

    prize_pool = buy_in * field_size
    num_paid = max(1, int(math.floor(field_size * percent_paid / 100)))

    min_top = prize_pool / num_paid
    max_top = prize_pool
    requested = top_prize_multiple * buy_in

    warnings: list[str] = []
    target = requested
    if requested < min_top:
        warnings.append(
            f"Top prize target (${requested:.2f}) is too small for {num_paid} paid places; "
            f"clamped to equal-payout minimum (${min_top:.2f})."
        )
        target = min_top
    if requested > max_top:
        warnings.append(
            f"Top prize target (${requested:.2f}) exceeds prize pool (${max_top:.2f}); "
            "clamped to prize pool."
        )
        target = max_top

    alpha = _fit_alpha(prize_pool, num_paid, target)
    weights = _power_weights(num_paid, alpha)
    prizes = weights / weights.sum() * prize_pool

    for warning in warnings:
        logger.info("payout model: %s", warning)

    return PayoutModel(
        field_size=field_size,
        percent_paid=percent_paid,
        num_paid=num_paid,
        prize_pool=prize_pool,
        top_prize_target=target,
        top_prize_actual=float(prizes[0]),
        alpha=alpha,
        prizes=tuple(float(p) for p in prizes),
        warnings=tuple(warnings),
    )
