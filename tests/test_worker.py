"""Tests for the worker protocol, request handlers and process host."""

import math

import numpy as np
import pytest

from pokervariance.config import Settings
from pokervariance.errors import EngineFailure, InvalidParameterError
from pokervariance.tournament.model import TournamentInputs
from pokervariance.worker import handlers
from pokervariance.worker.handlers import (
    DownswingProbabilityResult,
    ProgressReporter,
    SimulationResults,
    TournamentSimulationResults,
    handle_request,
    run_downswing_probability,
    run_simulation,
)
from pokervariance.worker.host import SimulationHost
from pokervariance.worker.protocol import (
    DownswingProbabilityInputs,
    ErrorMessage,
    ProgressMessage,
    RequestKind,
    ResultMessage,
    SimulationInputs,
    SimulationRequest,
    is_terminal,
)


def small_simulation(**overrides) -> SimulationInputs:
    params = dict(winrate=5.0, std_dev=80.0, hands=10000, seed=7, mode="turbo")
    params.update(overrides)
    return SimulationInputs(**params)


def small_tournament(**overrides) -> TournamentInputs:
    params = dict(
        buy_in=10.0,
        fee=1.0,
        field_size=500,
        percent_paid=15.0,
        top_prize_multiple=150.0,
        roi_percent=15.0,
        tournaments=200,
        bankroll_buy_ins=100.0,
        mode="turbo",
        seed=3,
    )
    params.update(overrides)
    return TournamentInputs(**params)


def collect(request: SimulationRequest, settings: Settings | None = None) -> list:
    messages: list = []
    handle_request(request, messages.append, settings)
    return messages


class TestProtocol:
    """Tests for request and message types."""

    @pytest.mark.parametrize(
        ("overrides", "message"),
        [
            ({"std_dev": 0.0}, "std_dev must be positive"),
            ({"winrate": math.inf}, "winrate must be a finite number"),
            ({"hands": -1}, "hands cannot be negative"),
            ({"mode": "ludicrous"}, "unknown simulation mode"),
            ({"seed": 0}, "seed must be a positive integer"),
            ({"big_blind_size": 0.0}, "big_blind_size must be positive"),
        ],
    )
    def test_simulation_inputs_validation(self, overrides: dict, message: str) -> None:
        """Test that bad parameters are rejected at construction."""
        with pytest.raises(InvalidParameterError, match=message):
            small_simulation(**overrides)

    def test_downswing_inputs_validation(self) -> None:
        """Test the threshold must be a number."""
        with pytest.raises(InvalidParameterError, match="threshold_bb"):
            DownswingProbabilityInputs(10000, 5.0, 80.0, math.nan)

    def test_params_must_match_kind(self) -> None:
        """Test a request rejects parameters of another kind."""
        inputs = DownswingProbabilityInputs(10000, 5.0, 80.0, 1000.0)
        with pytest.raises(InvalidParameterError, match="simulate requests take SimulationInputs"):
            SimulationRequest(RequestKind.SIMULATE, inputs, "abc")

    def test_new_assigns_unique_ids(self) -> None:
        """Test fresh request ids and string kinds."""
        a = SimulationRequest.new("simulate", small_simulation())
        b = SimulationRequest.new(RequestKind.SIMULATE, small_simulation())
        assert a.kind is RequestKind.SIMULATE
        assert a.request_id != b.request_id

    def test_unknown_kind(self) -> None:
        """Test that unknown kinds are rejected."""
        with pytest.raises(ValueError):
            SimulationRequest.new("bankroll", small_simulation())

    def test_is_terminal(self) -> None:
        """Test which messages end a request."""
        assert not is_terminal(ProgressMessage("a", 0.5))
        assert is_terminal(ResultMessage("a", RequestKind.SIMULATE, None))
        assert is_terminal(ErrorMessage("a", "boom"))


class TestProgressReporter:
    """Tests for ProgressReporter."""

    def test_clamped_and_monotone(self) -> None:
        """Test values are clamped and never move backwards."""
        sent: list = []
        reporter = ProgressReporter("r1", sent.append)
        for value in (0.5, 0.3, -1.0, math.nan, 1.5):
            reporter.report(value)
        assert sent == [ProgressMessage("r1", 0.5), ProgressMessage("r1", 1.0)]
        assert reporter.last == 1.0

    def test_silent_after_close(self) -> None:
        """Test nothing is forwarded once closed."""
        sent: list = []
        reporter = ProgressReporter("r1", sent.append)
        reporter.close()
        reporter.report(0.5)
        assert sent == []


class TestHandleRequest:
    """Tests for handle_request message ordering."""

    def test_progress_then_one_result(self) -> None:
        """Test progress messages followed by exactly one terminal message."""
        request = SimulationRequest.new("simulate", small_simulation())
        messages = collect(request)

        *progress, last = messages
        assert all(isinstance(m, ProgressMessage) for m in progress)
        assert isinstance(last, ResultMessage)
        assert last.kind is RequestKind.SIMULATE
        assert all(m.request_id == request.request_id for m in messages)

        values = [m.progress for m in progress]
        assert values == sorted(values)
        assert values[-1] == 1.0
        assert isinstance(last.payload, SimulationResults)

    def test_work_bound_is_an_error(self) -> None:
        """Test oversized requests fail before any progress."""
        request = SimulationRequest.new("simulate", small_simulation())
        messages = collect(request, Settings(max_path_steps=10))
        assert len(messages) == 1
        assert isinstance(messages[0], ErrorMessage)
        assert "path steps" in messages[0].error

    def test_unexpected_failure_is_reported(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test a crashing handler still produces one error message."""

        def explode(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(handlers, "run_simulation", explode)
        messages = collect(SimulationRequest.new("simulate", small_simulation()))
        assert messages == [ErrorMessage(messages[0].request_id, "boom")]

    def test_downswing_probability_request(self) -> None:
        """Test the single-estimate request end to end."""
        inputs = DownswingProbabilityInputs(20000, 3.0, 80.0, 1000.0, seed=11)
        messages = collect(SimulationRequest.new("downswingProbability", inputs))
        result = messages[-1].payload
        assert isinstance(result, DownswingProbabilityResult)
        assert result.num_trials == 1000
        assert result.seed == 11
        assert 0.0 <= result.ruin_probability <= result.probability <= 1.0

    def test_tournament_request(self) -> None:
        """Test the tournament request end to end."""
        messages = collect(SimulationRequest.new("simulateTournament", small_tournament()))
        result = messages[-1].payload
        assert isinstance(result, TournamentSimulationResults)
        assert result.seed == 3
        assert result.inputs.seed == 3
        assert len(result.sample_paths) == 12
        assert result.detailed_path.tournaments.size == 201
        assert result.num_trials == 5000
        assert result.skill_model.roi_achieved == pytest.approx(0.15, abs=1e-5)
        assert 0.0 <= result.bankroll.bust_probability <= 1.0
        assert messages[-2].progress == 1.0


class TestRunSimulation:
    """Tests for run_simulation results."""

    def test_same_seed_same_results(self) -> None:
        """Test seeded requests are reproducible."""
        a = run_simulation(small_simulation())
        b = run_simulation(small_simulation())
        np.testing.assert_array_equal(a.detailed_path.winnings, b.detailed_path.winnings)
        np.testing.assert_array_equal(a.percentile_bands.values, b.percentile_bands.values)
        assert a.downswing_stats == b.downswing_stats

    def test_presets_shape_results(self) -> None:
        """Test the turbo preset sizes."""
        result = run_simulation(small_simulation())
        assert len(result.sample_paths) == 10
        assert result.sample_paths[0].hands[1] == 1000
        assert result.detailed_path.hands[1] == 100
        assert result.downswing_stats.num_trials == 1000
        assert result.seed == 7

    def test_hands_rounded(self) -> None:
        """Test the horizon is rounded to a whole hundred."""
        result = run_simulation(small_simulation(hands=12345))
        assert result.rounded_hands == 12300
        assert result.hands_were_rounded
        assert result.detailed_path.hands[-1] == 12300

    def test_dollar_conversion(self) -> None:
        """Test amounts in BB convert through the blind size."""
        result = run_simulation(small_simulation(big_blind_size=2.0))
        assert result.to_dollars(150.0) == 300.0
        assert run_simulation(small_simulation()).to_dollars(150.0) is None

    def test_random_seed_when_omitted(self) -> None:
        """Test a seed is drawn and reported."""
        inputs = DownswingProbabilityInputs(1000, 3.0, 80.0, 100.0)
        assert run_downswing_probability(inputs).seed > 0


class TestSimulationHost:
    """Tests that run requests in real worker processes."""

    @pytest.fixture
    def host(self) -> SimulationHost:
        return SimulationHost(Settings(poll_interval=0.05))

    def test_matches_inline_run(self, host: SimulationHost) -> None:
        """Test a worker returns the same results as an inline run."""
        seen: list[float] = []
        request = SimulationRequest.new("simulate", small_simulation())
        result = host.run(request, on_progress=seen.append)

        inline = host.run_inline(request)[-1].payload
        np.testing.assert_array_equal(result.detailed_path.winnings, inline.detailed_path.winnings)
        assert seen[-1] == 1.0

    def test_error_raises_engine_failure(self) -> None:
        """Test a rejected request surfaces as EngineFailure."""
        host = SimulationHost(Settings(max_path_steps=10, poll_interval=0.05))
        request = SimulationRequest.new("simulate", small_simulation())
        with pytest.raises(EngineFailure, match="path steps") as excinfo:
            host.run(request)
        assert excinfo.value.request_id == request.request_id

    def test_messages_end_with_terminal(self, host: SimulationHost) -> None:
        """Test the raw message stream."""
        inputs = DownswingProbabilityInputs(5000, 3.0, 80.0, 500.0, seed=2)
        request = SimulationRequest.new("downswingProbability", inputs)
        with host.submit(request) as task:
            messages = list(task.messages())
            assert task.done
        assert is_terminal(messages[-1])
        assert sum(is_terminal(m) for m in messages) == 1

    def test_cancel(self, host: SimulationHost) -> None:
        """Test cancelling a long request stops it."""
        inputs = small_simulation(hands=2_000_000, mode="fast")
        task = host.submit(SimulationRequest.new("simulate", inputs))
        task.cancel()
        assert task.done
        with pytest.raises(EngineFailure, match="cancelled"):
            task.result()
