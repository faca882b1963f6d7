"""Tests for Monte Carlo downswing analysis."""

import numpy as np
import pytest

from pokervariance.config import DOWNSWING_THRESHOLDS
from pokervariance.errors import InvalidParameterError
from pokervariance.metrics.risk import max_drawdown, probability_of_ruin
from pokervariance.sim import downswing
from pokervariance.sim.downswing import (
    default_batch_size,
    estimate_max_drawdown_probability,
    run_downswing_analysis,
    simulate_percentile_bands,
)
from pokervariance.sim.paths import create_rng, hand_grid, simulate_winnings
from pokervariance.stats.variance import downswing_probability


class TestRunDownswingAnalysis:
    """Tests for run_downswing_analysis."""

    def test_probabilities_non_increasing(self) -> None:
        """Test that larger downswings are never more likely."""
        stats = run_downswing_analysis(100_000, 2.0, 90.0, 500, create_rng(1))
        probabilities = [p for _, p in stats.probabilities]
        assert all(b <= a for a, b in zip(probabilities, probabilities[1:]))
        assert [t for t, _ in stats.probabilities] == list(DOWNSWING_THRESHOLDS)

    def test_unsorted_thresholds_are_sorted(self) -> None:
        """Test thresholds are reported in ascending order."""
        stats = run_downswing_analysis(
            10000, 5.0, 80.0, 100, create_rng(1), thresholds=(500, 100, 250)
        )
        assert [t for t, _ in stats.probabilities] == [100.0, 250.0, 500.0]

    def test_reproducible(self) -> None:
        """Test that the same seed gives the same statistics."""
        a = run_downswing_analysis(20000, 3.0, 80.0, 300, create_rng(9), batch_size=64)
        b = run_downswing_analysis(20000, 3.0, 80.0, 300, create_rng(9), batch_size=64)
        assert a == b

    def test_summary_fields(self) -> None:
        """Test the ranges of the aggregate values."""
        stats = run_downswing_analysis(50000, 3.0, 80.0, 400, create_rng(4), horizons=3.0)
        assert stats.num_trials == 400
        assert 0 < stats.average_max_drawdown <= stats.worst_max_drawdown
        assert 0.0 <= stats.unrecovered_fraction <= 1.0
        assert stats.longest_recovery >= stats.average_recovery_hands >= 0
        counts = [c for _, c in stats.expected_counts]
        assert all(b <= a for a, b in zip(counts, counts[1:]))

    def test_progress_reported_per_batch(self) -> None:
        """Test that progress rises to exactly 1."""
        seen: list[float] = []
        run_downswing_analysis(
            5000, 3.0, 80.0, 250, create_rng(2), batch_size=100, progress=seen.append
        )
        assert seen == pytest.approx([0.4, 0.8, 1.0])

    def test_rejects_bad_inputs(self) -> None:
        """Test validation before any sampling."""
        with pytest.raises(InvalidParameterError, match="std_dev must be positive"):
            run_downswing_analysis(1000, 3.0, 0.0, 10, create_rng(1))
        with pytest.raises(InvalidParameterError, match="num_trials must be positive"):
            run_downswing_analysis(1000, 3.0, 80.0, 0, create_rng(1))
        with pytest.raises(InvalidParameterError, match="thresholds must be positive"):
            run_downswing_analysis(1000, 3.0, 80.0, 10, create_rng(1), thresholds=(0, 10))


class TestEstimateMaxDrawdownProbability:
    """Tests for estimate_max_drawdown_probability."""

    def test_edge_cases(self) -> None:
        """Test the defined results for degenerate inputs."""
        rng = create_rng(1)
        assert estimate_max_drawdown_probability(10000, 3.0, 80.0, 500, 0, rng) == (
            0.0,
            0,
            100,
            0.0,
        )
        assert estimate_max_drawdown_probability(0, 3.0, 80.0, 500, 10, rng).probability == 0.0
        certain = estimate_max_drawdown_probability(10000, 3.0, 80.0, 0, 10, rng)
        assert (certain.probability, certain.ruin_probability) == (1.0, 1.0)

    def test_ruin_fraction_is_a_lower_bound(self) -> None:
        """Test falling below the start is rarer than a drawdown from any peak."""
        closed_form = downswing_probability(1500.0, 5.0, 80.0)
        estimate = estimate_max_drawdown_probability(
            100_000, 5.0, 80.0, 1500.0, 2000, create_rng(21)
        )
        assert 0.0 < estimate.ruin_probability < estimate.probability
        # A finite horizon can only lower the chance of reaching the barrier
        assert estimate.ruin_probability <= closed_form + 0.03

    def test_ruin_fraction_matches_paths(self) -> None:
        """Test the ruin fraction equals probability_of_ruin on the same paths."""
        estimate = estimate_max_drawdown_probability(
            20000, 2.0, 80.0, 800.0, 300, create_rng(8), batch_size=300
        )
        _, winnings = simulate_winnings(20000, 2.0, 80.0, 300, create_rng(8))
        assert estimate.ruin_probability == pytest.approx(probability_of_ruin(winnings + 800.0))
        assert estimate.probability == pytest.approx(np.mean(max_drawdown(winnings) >= 800.0))

    def test_rises_with_horizon(self) -> None:
        """Test that longer play makes a given drawdown more likely."""
        short = estimate_max_drawdown_probability(20000, 5.0, 80.0, 1000.0, 1000, create_rng(3))
        long = estimate_max_drawdown_probability(200_000, 5.0, 80.0, 1000.0, 1000, create_rng(3))
        assert short.probability < long.probability

    def test_long_horizon_drawdown_is_near_certain(self) -> None:
        """Test a long horizon: drawdowns near 1, ruin near the barrier formula."""
        closed_form = downswing_probability(1000.0, 5.0, 80.0)
        estimate = estimate_max_drawdown_probability(
            1_000_000, 5.0, 80.0, 1000.0, 1000, create_rng(5), step_size=100
        )
        assert estimate.probability >= 0.95
        # Coarse steps miss some crossings, so the ruin fraction sits a little low
        assert closed_form - 0.06 < estimate.ruin_probability <= closed_form + 0.04

    def test_negative_hands_raises(self) -> None:
        """Test that a negative horizon is rejected."""
        with pytest.raises(InvalidParameterError):
            estimate_max_drawdown_probability(-1, 3.0, 80.0, 500, 10, create_rng(1))


class TestBatchSizing:
    """Tests for memory-bounded batches."""

    def test_default_batch_size_shrinks_with_horizon(self) -> None:
        """Test fewer paths per batch as each path gets longer."""
        sizes = [default_batch_size(hands) for hands in (10_000, 100_000, 1_000_000)]
        assert sizes == [19801, 1998, 199]
        assert default_batch_size(10**8) == 1

    def test_batch_rows_follow_horizon(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the rows simulated per batch stay within the point budget."""
        rows: dict[int, list[int]] = {}

        def recording(total_hands, winrate, std_dev, n_paths, rng, step_size=100):
            rows.setdefault(total_hands, []).append(n_paths)
            return simulate_winnings(total_hands, winrate, std_dev, n_paths, rng, step_size)

        monkeypatch.setattr(downswing, "simulate_winnings", recording)
        for hands in (20000, 2_000_000):
            estimate_max_drawdown_probability(hands, 3.0, 80.0, 500.0, 150, create_rng(1))

        assert rows[20000] == [150]
        assert rows[2_000_000] == [99, 51]
        assert max(rows[2_000_000]) * hand_grid(2_000_000).size <= 2_000_000


class TestPercentileBands:
    """Tests for simulate_percentile_bands."""

    def test_median_tracks_expectation(self) -> None:
        """Test the median band follows the EV line."""
        bands = simulate_percentile_bands(20000, 5.0, 80.0, 4000, create_rng(3), 1000)
        median = bands.values[bands.percentiles.index(50.0)]
        expected = 5.0 * bands.hands / 100.0
        np.testing.assert_allclose(median, expected, atol=100.0)
