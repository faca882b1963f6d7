"""Tests for the standard normal primitives."""

import math

import numpy as np
import pytest

from pokervariance.errors import InvalidParameterError
from pokervariance.stats.normal import (
    normal_cdf,
    normal_inverse_cdf,
    normal_pdf,
    two_sided_z,
)


class TestNormalCdf:
    """Tests for normal_cdf."""

    def test_known_values(self) -> None:
        """Test textbook values of the standard normal CDF."""
        assert normal_cdf(0.0) == 0.5
        assert normal_cdf(1.0) == pytest.approx(0.841345, abs=1e-6)
        assert normal_cdf(-1.959964) == pytest.approx(0.025, abs=1e-6)

    def test_saturates_at_extremes(self) -> None:
        """Test that the CDF is exactly 0 or 1 beyond |z| = 8."""
        assert normal_cdf(-8.5) == 0.0
        assert normal_cdf(8.5) == 1.0
        assert normal_cdf(-math.inf) == 0.0
        assert normal_cdf(math.inf) == 1.0

    def test_symmetry(self) -> None:
        """Test that cdf(z) + cdf(-z) == 1."""
        for z in (0.3, 1.2, 2.7, 5.0):
            assert normal_cdf(z) + normal_cdf(-z) == pytest.approx(1.0, abs=1e-12)

    def test_monotone(self) -> None:
        """Test that the CDF never decreases."""
        values = [normal_cdf(z) for z in np.linspace(-9, 9, 400)]
        assert all(b >= a for a, b in zip(values, values[1:]))

    def test_nan_raises(self) -> None:
        """Test that NaN is rejected."""
        with pytest.raises(InvalidParameterError, match="z must be a number"):
            normal_cdf(math.nan)


class TestNormalInverseCdf:
    """Tests for normal_inverse_cdf."""

    def test_round_trip(self) -> None:
        """Test cdf(inverse_cdf(p)) == p across the open unit interval."""
        for p in np.linspace(0.0001, 0.9999, 1000):
            assert abs(normal_cdf(normal_inverse_cdf(float(p))) - p) < 1e-6

    def test_endpoints(self) -> None:
        """Test that 0 and 1 map to infinities and 0.5 to zero."""
        assert normal_inverse_cdf(0.0) == -math.inf
        assert normal_inverse_cdf(1.0) == math.inf
        assert normal_inverse_cdf(0.5) == 0.0

    def test_known_quantile(self) -> None:
        """Test the 97.5th percentile."""
        assert normal_inverse_cdf(0.975) == pytest.approx(1.959964, abs=1e-6)

    @pytest.mark.parametrize("p", [-0.1, 1.1, math.nan])
    def test_out_of_range_raises(self, p: float) -> None:
        """Test that probabilities outside [0, 1] are rejected."""
        with pytest.raises(InvalidParameterError, match="probability must be in"):
            normal_inverse_cdf(p)


class TestHelpers:
    """Tests for normal_pdf and two_sided_z."""

    def test_pdf_peak(self) -> None:
        """Test the density at the mean."""
        assert normal_pdf(0.0) == pytest.approx(1 / math.sqrt(2 * math.pi))
        assert normal_pdf(5.0, mean=5.0, sd=2.0) == pytest.approx(1 / (2 * math.sqrt(2 * math.pi)))

    def test_pdf_rejects_bad_sd(self) -> None:
        """Test that a non-positive sd is rejected."""
        with pytest.raises(InvalidParameterError, match="sd must be positive"):
            normal_pdf(0.0, sd=0.0)

    def test_two_sided_z(self) -> None:
        """Test z-values for common confidence levels."""
        assert two_sided_z(0.95) == pytest.approx(1.959964, abs=1e-6)
        assert two_sided_z(0.70) == pytest.approx(1.036433, abs=1e-6)

    @pytest.mark.parametrize("confidence", [0.0, 1.0, -0.5, 2.0])
    def test_two_sided_z_rejects_bounds(self, confidence: float) -> None:
        """Test that confidence must be strictly inside (0, 1)."""
        with pytest.raises(InvalidParameterError):
            two_sided_z(confidence)
