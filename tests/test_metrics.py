"""Tests for drawdown and downswing metrics."""

import numpy as np
import pytest

from pokervariance.errors import InvalidParameterError
from pokervariance.metrics.risk import (
    DownswingAccumulator,
    downswing_episode_counts,
    drawdowns,
    max_drawdown,
    percentile_bands,
    probability_of_ruin,
    recovery_statistics,
    running_peaks,
    threshold_probabilities,
)
from pokervariance.sim.paths import create_rng, simulate_winnings

HANDS = np.array([0, 100, 200, 300, 400, 500])


class TestPeaksAndDrawdowns:
    """Tests for running peaks, drawdowns and max drawdown."""

    def test_running_peaks(self) -> None:
        """Test the running maximum along each path."""
        paths = np.array([[0.0, 50.0, 20.0, 80.0]])
        np.testing.assert_array_equal(running_peaks(paths), [[0.0, 50.0, 50.0, 80.0]])
        np.testing.assert_array_equal(drawdowns(paths), [[0.0, 0.0, 30.0, 0.0]])

    def test_simple_drawdown(self) -> None:
        """Test max drawdown calculation on simple paths."""
        paths = np.array(
            [
                [0, 50, 20, 80],  # Peak 50, trough 20 = DD 30
                [0, -20, -40, -10],  # Peak 0, trough -40 = DD 40
            ]
        )
        np.testing.assert_array_equal(max_drawdown(paths), [30.0, 40.0])

    def test_no_drawdown(self) -> None:
        """Test paths that only go up."""
        paths = np.array([[0, 10, 20, 30], [0, 5, 10, 15]])
        np.testing.assert_array_equal(max_drawdown(paths), [0.0, 0.0])

    def test_empty_paths(self) -> None:
        """Test with empty input."""
        assert max_drawdown(np.array([]).reshape(0, 0)).size == 0

    def test_simulated_path_invariants(self) -> None:
        """Test peaks >= winnings and drawdowns >= 0 on random paths."""
        _, winnings = simulate_winnings(20000, 2.0, 90.0, 200, create_rng(3))
        peaks = running_peaks(winnings)
        assert np.all(np.diff(peaks, axis=1) >= 0)
        assert np.all(peaks >= winnings)
        assert np.all(drawdowns(winnings) >= 0)


class TestProbabilityOfRuin:
    """Tests for probability_of_ruin function."""

    def test_partial_ruin(self) -> None:
        """Test with some paths ruined."""
        paths = np.array(
            [
                [100, 50, 0, 0],
                [100, 120, 140, 160],
                [100, 80, 60, 40],
                [100, 90, 0, 0],
            ]
        )
        assert probability_of_ruin(paths) == 0.5

    def test_custom_threshold(self) -> None:
        """Test with custom ruin threshold."""
        paths = np.array([[100, 60, 40, 30], [100, 120, 110, 100]])
        assert probability_of_ruin(paths, threshold=50) == 0.5

    def test_bankroll_offset(self) -> None:
        """Test ruin of a bankroll applied to winnings paths."""
        winnings = np.array([[0.0, -60.0, -20.0], [0.0, -30.0, 10.0]])
        assert probability_of_ruin(winnings + 50.0) == 0.5

    def test_empty_paths(self) -> None:
        """Test with empty input."""
        assert probability_of_ruin(np.array([]).reshape(0, 0)) == 0.0


class TestThresholds:
    """Tests for threshold probabilities and episode counts."""

    def test_threshold_probabilities(self) -> None:
        """Test the fraction of paths reaching each drawdown size."""
        probabilities = threshold_probabilities(np.array([10.0, 30.0, 50.0, 70.0]), [20, 50, 80])
        np.testing.assert_allclose(probabilities, [0.75, 0.5, 0.0])

    def test_episode_counts(self) -> None:
        """Test that each peak-to-new-high episode counts once."""
        paths = np.array([[0.0, -50.0, -10.0, 20.0, -40.0, 30.0]])
        counts = downswing_episode_counts(paths, [30.0, 55.0])
        np.testing.assert_array_equal(counts, [[2, 1]])

    def test_repeated_dips_count_once(self) -> None:
        """Test that dipping past a threshold twice without a new high is one episode."""
        paths = np.array([[0.0, -40.0, -5.0, -45.0, -10.0]])
        np.testing.assert_array_equal(downswing_episode_counts(paths, [30.0]), [[1]])


class TestRecoveryStatistics:
    """Tests for recovery_statistics."""

    def test_recovered_and_unrecovered(self) -> None:
        """Test one recovered, one unrecovered and one flat path."""
        paths = np.array(
            [
                [0.0, -50.0, -10.0, 20.0, -40.0, 30.0],  # deepest at 400, from peak at 300
                [0.0, 10.0, -30.0, -20.0, 5.0, 8.0],  # never regains 10
                [0.0, 1.0, 2.0, 3.0, 4.0, 5.0],  # no downswing
            ]
        )
        stats = recovery_statistics(HANDS, paths)
        np.testing.assert_array_equal(stats.recovery_hands, [200])
        assert stats.unrecovered == 1


class TestPercentileBands:
    """Tests for percentile_bands."""

    def test_shape_and_order(self) -> None:
        """Test one row per percentile, ordered at every step."""
        hands, winnings = simulate_winnings(10000, 5.0, 80.0, 500, create_rng(11))
        bands = percentile_bands(hands, winnings)
        assert bands.values.shape == (5, hands.size)
        assert np.all(np.diff(bands.values, axis=0) >= 0)
        np.testing.assert_array_equal(bands.values[:, 0], 0.0)

    def test_invalid_percentile(self) -> None:
        """Test that percentiles outside [0, 100] are rejected."""
        with pytest.raises(InvalidParameterError):
            percentile_bands(HANDS, np.zeros((2, HANDS.size)), [50, 120])


class TestDownswingAccumulator:
    """Tests for DownswingAccumulator."""

    def test_batching_does_not_change_result(self) -> None:
        """Test that splitting the same paths into batches gives the same stats."""
        hands, winnings = simulate_winnings(20000, 3.0, 80.0, 300, create_rng(5))
        thresholds = (500.0, 1000.0, 2000.0)

        whole = DownswingAccumulator(thresholds=thresholds)
        whole.add_batch(hands, winnings)

        split = DownswingAccumulator(thresholds=thresholds)
        for chunk in np.array_split(winnings, 4):
            split.add_batch(hands, chunk)

        assert whole.result() == split.result()

    def test_result_fields(self) -> None:
        """Test aggregate values on hand-made paths."""
        paths = np.array(
            [
                [0.0, -50.0, -10.0, 20.0, -40.0, 30.0],
                [0.0, 10.0, -30.0, -20.0, 5.0, 8.0],
            ]
        )
        acc = DownswingAccumulator(thresholds=(30.0, 55.0), horizons=2.0)
        acc.add_batch(HANDS, paths)
        stats = acc.result()

        assert stats.num_trials == 2
        assert stats.average_max_drawdown == pytest.approx(50.0)
        assert stats.worst_max_drawdown == pytest.approx(60.0)
        assert stats.probabilities == ((30.0, 1.0), (55.0, 0.5))
        # Episodes reaching 30: two on path 1, one on path 2; per trial x 2 horizons
        assert stats.expected_counts == ((30.0, 3.0), (55.0, 1.0))
        assert stats.average_recovery_hands == 200.0
        assert stats.longest_recovery == 200
        assert stats.unrecovered_fraction == 0.5

    def test_empty_accumulator_raises(self) -> None:
        """Test that a result needs at least one path."""
        with pytest.raises(InvalidParameterError):
            DownswingAccumulator(thresholds=(100.0,)).result()

    def test_counts_start_from_zero(self) -> None:
        """Test episode counts accumulate from zero across batches."""
        acc = DownswingAccumulator(thresholds=(30.0, 55.0))
        acc.add_batch(HANDS, np.zeros((3, 6)))
        assert acc.result().expected_counts == ((30.0, 0.0), (55.0, 0.0))

        acc.add_batch(HANDS, np.array([[0.0, -50.0, -10.0, 20.0, -40.0, 30.0]]))
        # Two episodes of 30 and one of 55 (peak 20 to -40), over 4 trials
        assert acc.result().expected_counts == ((30.0, 0.5), (55.0, 0.25))
