"""Standard normal distribution primitives.

Thin wrappers over ``scipy.stats.norm`` with the edge behaviour the variance
model relies on: the CDF saturates outside [-8, 8] and the inverse CDF maps
the closed endpoints 0 and 1 to infinities instead of failing.
"""

import math

from scipy import stats

from pokervariance.errors import InvalidParameterError

_SATURATION_Z = 8.0


def normal_cdf(z: float) -> float:
    """Standard normal cumulative distribution P(Z <= z).

    Args:
        z: The z-score to evaluate.

    Returns:
        Probability in [0, 1]. Exactly 0.0 below -8 and 1.0 above 8.

    Example:
        >>> round(normal_cdf(1.0), 4)
        0.8413
    """
    if math.isnan(z):
        raise InvalidParameterError("z must be a number")
    if z == 0:
        return 0.5
    if z < -_SATURATION_Z:
        return 0.0
    if z > _SATURATION_Z:
        return 1.0
    return float(stats.norm.cdf(z))


def normal_inverse_cdf(p: float) -> float:
    """Quantile function of the standard normal distribution.

    Args:
        p: Probability in [0, 1].

    Returns:
        z such that P(Z <= z) = p; -inf at 0 and +inf at 1.

    Raises:
        InvalidParameterError: If p is NaN or outside [0, 1].
    """
    if math.isnan(p) or p < 0 or p > 1:
        raise InvalidParameterError(f"probability must be in [0, 1], got {p}")
    if p == 0:
        return -math.inf
    if p == 1:
        return math.inf
    if p == 0.5:
        return 0.0
    return float(stats.norm.ppf(p))


def normal_pdf(x: float, mean: float = 0.0, sd: float = 1.0) -> float:
    """Normal probability density at x."""
    if sd <= 0:
        raise InvalidParameterError("sd must be positive")
    return float(stats.norm.pdf(x, loc=mean, scale=sd))


def two_sided_z(confidence: float) -> float:
    """z-value bounding the central ``confidence`` mass of the distribution.

    Raises:
        InvalidParameterError: If confidence is not strictly between 0 and 1.
    """
    if not 0 < confidence < 1:
        raise InvalidParameterError("confidence must be between 0 and 1")
    return normal_inverse_cdf((1 + confidence) / 2)
