"""Request handlers run inside a worker.

Each handler is a pure function of its inputs plus a progress callback, so
the same code runs in a child process or inline in the caller.
"""

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass

from pokervariance.config import TOURNAMENT_DOWNSWING_THRESHOLDS, Settings, get_mode
from pokervariance.errors import InvalidParameterError
from pokervariance.metrics.risk import DownswingStats, PercentileBands
from pokervariance.sim.downswing import (
    estimate_max_drawdown_probability,
    run_downswing_analysis,
    simulate_percentile_bands,
)
from pokervariance.sim.paths import (
    SimulationPath,
    create_rng,
    generate_random_seed,
    generate_sample_paths,
    simulate_path,
)
from pokervariance.stats.analytics import (
    AnalyticalMetrics,
    ConfidencePoint,
    MilestoneSummary,
    calculate_analytical_metrics,
    generate_confidence_data,
    generate_milestone_summaries,
    round_hands,
)
from pokervariance.tournament.model import (
    SingleTournamentStats,
    SkillModel,
    TournamentConfidencePoint,
    TournamentInputs,
    TournamentOutcome,
    build_tournament_model,
    generate_tournament_confidence_data,
)
from pokervariance.tournament.payouts import PayoutModel
from pokervariance.tournament.simulation import (
    ProfitQuantiles,
    TournamentDownswingStats,
    TournamentPath,
    normal_approx_probability_of_profit,
    run_tournament_monte_carlo,
    simulate_tournament_path,
    summarize_final_profit_distribution,
)
from pokervariance.worker.protocol import (
    DownswingProbabilityInputs,
    ErrorMessage,
    ProgressMessage,
    RequestKind,
    ResultMessage,
    SimulationInputs,
    SimulationRequest,
    WorkerMessage,
)

logger = logging.getLogger(__name__)

Emit = Callable[[WorkerMessage], None]
Progress = Callable[[float], None]

DETAILED_STEP_SIZE = 100
DOWNSWING_STEP_SIZE = 100
TOURNAMENT_RECORD_POINTS = 220


@dataclass(frozen=True, slots=True)
class SimulationResults:
    """Everything a cash-game simulation request returns.

    Attributes:
        sample_paths: Paths for display, at the preset's step size.
        detailed_path: One path at 100-hand resolution.
        downswing_stats: Drawdown statistics over the preset's trial count.
        analytical_metrics: Closed-form metrics for the same inputs.
        confidence_data: EV line with 70% and 95% bands.
        milestone_summaries: Variance table by volume.
        percentile_bands: Cross-path percentiles at each recorded step.
        rounded_hands: Hand count actually simulated.
        hands_were_rounded: Whether ``rounded_hands`` differs from the request.
        seed: Seed the request ran with.
        big_blind_size: Dollar value of one big blind, if supplied.
    """

    sample_paths: tuple[SimulationPath, ...]
    detailed_path: SimulationPath
    downswing_stats: DownswingStats
    analytical_metrics: AnalyticalMetrics
    confidence_data: tuple[ConfidencePoint, ...]
    milestone_summaries: tuple[MilestoneSummary, ...]
    percentile_bands: PercentileBands
    rounded_hands: int
    hands_were_rounded: bool
    seed: int
    big_blind_size: float | None = None

    def to_dollars(self, amount_bb: float) -> float | None:
        """Convert an amount in big blinds to dollars, None without a blind size."""
        if self.big_blind_size is None:
            return None
        return amount_bb * self.big_blind_size


@dataclass(frozen=True, slots=True)
class DownswingProbabilityResult:
    """Estimated chance of a drawdown of ``threshold_bb`` within ``hands``.

    ``ruin_probability`` is the share of the same paths that fell
    ``threshold_bb`` below where they started.
    """

    hands: int
    threshold_bb: float
    probability: float
    num_trials: int
    step_size: int
    seed: int
    ruin_probability: float


@dataclass(frozen=True, slots=True)
class TournamentAggregateStats:
    """Profit over the whole schedule."""

    tournaments: int
    expected_profit: float
    sd_profit: float
    normal_approx_probability_of_profit: float
    simulated_probability_of_profit: float
    profit_quantiles: ProfitQuantiles
    roi_quantiles: ProfitQuantiles


@dataclass(frozen=True, slots=True)
class TournamentBankrollStats:
    """Bust risk for the starting bankroll.

    ``approx_infinite_ror`` and ``approx_bankroll_for_1pct_ror`` use the
    drift-diffusion approximation on per-tournament EV and variance; both are
    None when it does not apply.
    """

    bankroll_buy_ins: float
    bankroll_dollars: float
    bust_probability: float
    approx_infinite_ror: float | None = None
    approx_bankroll_for_1pct_ror: float | None = None


@dataclass(frozen=True, slots=True)
class TournamentSimulationResults:
    """Everything a tournament simulation request returns."""

    inputs: TournamentInputs
    payout_model: PayoutModel
    skill_model: SkillModel
    outcomes: tuple[TournamentOutcome, ...]
    per_tournament: SingleTournamentStats
    confidence: tuple[TournamentConfidencePoint, ...]
    sample_paths: tuple[TournamentPath, ...]
    detailed_path: TournamentPath
    aggregate: TournamentAggregateStats
    downswing: TournamentDownswingStats
    bankroll: TournamentBankrollStats
    num_trials: int
    seed: int


class ProgressReporter:
    """Forwards progress for one request.

    Reported values are clamped to [0, 1] and never go backwards; nothing is
    forwarded once the reporter is closed.
    """

    def __init__(self, request_id: str, emit: Emit) -> None:
        self.request_id = request_id
        self._emit = emit
        self._last = 0.0
        self._closed = False

    @property
    def last(self) -> float:
        return self._last

    def report(self, progress: float) -> None:
        if self._closed or math.isnan(progress):
            return
        progress = min(1.0, max(0.0, progress))
        if progress < self._last:
            return
        self._last = progress
        self._emit(ProgressMessage(self.request_id, progress))

    def close(self) -> None:
        self._closed = True


def _steps(hands: int, step_size: int) -> int:
    return math.ceil(hands / step_size)


def _check_work(path_steps: int, settings: Settings) -> None:
    if path_steps > settings.max_path_steps:
        raise InvalidParameterError(
            f"request needs {path_steps:,} path steps, above the limit of "
            f"{settings.max_path_steps:,}"
        )


def _noop(_: float) -> None:
    pass


def run_simulation(
    inputs: SimulationInputs,
    progress: Progress | None = None,
    settings: Settings | None = None,
) -> SimulationResults:
    """Run sample paths, downswing analysis and closed-form metrics.

    Sample paths, the detailed path, the downswing batch and the percentile
    band batch each draw from their own generator, seeded ``seed`` to
    ``seed + 3``, so changing one preset size never shifts another's paths.
    """
    settings = settings or Settings()
    report = progress or _noop
    mode = get_mode(inputs.mode)
    hands, was_rounded = round_hands(inputs.hands)

    _check_work(
        (mode.num_paths + mode.band_paths) * _steps(hands, mode.step_size)
        + (1 + mode.downswing_trials) * _steps(hands, DOWNSWING_STEP_SIZE),
        settings,
    )
    seed = inputs.seed if inputs.seed is not None else generate_random_seed()
    logger.info("simulate: %d hands, mode=%s, seed=%d", hands, mode.name, seed)
    report(0.05)

    sample_paths = generate_sample_paths(
        hands, inputs.winrate, inputs.std_dev, mode.num_paths, create_rng(seed), mode.step_size
    )
    report(0.2)

    detailed_path = simulate_path(
        hands, inputs.winrate, inputs.std_dev, create_rng(seed + 1), DETAILED_STEP_SIZE
    )
    report(0.3)

    downswing_stats = run_downswing_analysis(
        hands,
        inputs.winrate,
        inputs.std_dev,
        mode.downswing_trials,
        create_rng(seed + 2),
        step_size=DOWNSWING_STEP_SIZE,
        progress=lambda p: report(0.3 + p * 0.5),
    )
    report(0.8)

    bands = simulate_percentile_bands(
        hands,
        inputs.winrate,
        inputs.std_dev,
        mode.band_paths,
        create_rng(seed + 3),
        mode.step_size,
    )
    report(0.9)

    num_ci_points = 200 if mode.name == "accurate" else 100
    results = SimulationResults(
        sample_paths=tuple(sample_paths),
        detailed_path=detailed_path,
        downswing_stats=downswing_stats,
        analytical_metrics=calculate_analytical_metrics(
            hands, inputs.winrate, inputs.std_dev, inputs.observed_winrate
        ),
        confidence_data=tuple(
            generate_confidence_data(hands, inputs.winrate, inputs.std_dev, num_ci_points)
        ),
        milestone_summaries=tuple(
            generate_milestone_summaries(hands, inputs.winrate, inputs.std_dev)
        ),
        percentile_bands=bands,
        rounded_hands=hands,
        hands_were_rounded=was_rounded,
        seed=seed,
        big_blind_size=inputs.big_blind_size,
    )
    report(1.0)
    return results


def run_downswing_probability(
    inputs: DownswingProbabilityInputs,
    progress: Progress | None = None,
    settings: Settings | None = None,
) -> DownswingProbabilityResult:
    """Estimate P(max drawdown >= threshold) over the requested horizon."""
    settings = settings or Settings()
    mode = get_mode(inputs.mode)
    _check_work(mode.downswing_trials * _steps(inputs.hands, DOWNSWING_STEP_SIZE), settings)

    seed = inputs.seed if inputs.seed is not None else generate_random_seed()
    logger.info(
        "downswing probability: %d hands, threshold %.0f BB, seed=%d",
        inputs.hands,
        inputs.threshold_bb,
        seed,
    )
    estimate = estimate_max_drawdown_probability(
        inputs.hands,
        inputs.winrate,
        inputs.std_dev,
        inputs.threshold_bb,
        mode.downswing_trials,
        create_rng(seed),
        step_size=DOWNSWING_STEP_SIZE,
        progress=progress,
    )
    return DownswingProbabilityResult(
        hands=inputs.hands,
        threshold_bb=inputs.threshold_bb,
        probability=estimate.probability,
        num_trials=estimate.num_trials,
        step_size=estimate.step_size,
        seed=seed,
        ruin_probability=estimate.ruin_probability,
    )


def _approximate_ror(
    stats: SingleTournamentStats,
    bankroll_dollars: float,
    buy_in: float,
) -> tuple[float | None, float | None]:
    if stats.ev <= 0:
        return 1.0, None
    if stats.variance <= 0 or bankroll_dollars <= 0:
        return None, None
    ror = math.exp(-2 * stats.ev * bankroll_dollars / stats.variance)
    bankroll_for_1pct = -stats.variance * math.log(0.01) / (2 * stats.ev)
    return min(1.0, max(0.0, ror)), bankroll_for_1pct / buy_in


def run_tournament_simulation(
    inputs: TournamentInputs,
    progress: Progress | None = None,
    settings: Settings | None = None,
) -> TournamentSimulationResults:
    """Model one tournament, then simulate the whole schedule."""
    settings = settings or Settings()
    report = progress or _noop
    mode = get_mode(inputs.mode)
    seed = inputs.seed if inputs.seed is not None else generate_random_seed()
    inputs = inputs.normalized(seed=seed)
    total = inputs.tournaments

    _check_work((mode.tournament_trials + mode.tournament_paths + 1) * total, settings)
    logger.info("simulate tournament: %d entries, mode=%s, seed=%d", total, mode.name, seed)

    model = build_tournament_model(inputs)
    per = model.per_tournament
    report(0.08)

    confidence = generate_tournament_confidence_data(
        total, per.ev, per.sd, num_points=240 if mode.name == "accurate" else 160
    )
    report(0.14)

    record_every = max(1, total // TOURNAMENT_RECORD_POINTS)
    sample_paths = tuple(
        simulate_tournament_path(
            total, model.outcomes, create_rng(seed + 10 + i * 997), record_every=record_every
        )
        for i in range(mode.tournament_paths)
    )
    detailed_path = simulate_tournament_path(
        total, model.outcomes, create_rng(seed + 99991), record_every=1
    )
    report(0.24)

    mc = run_tournament_monte_carlo(
        total,
        model.outcomes,
        mode.tournament_trials,
        bankroll_dollars=inputs.bankroll_dollars,
        cost_dollars=per.cost,
        buy_in_dollars=inputs.buy_in,
        rng=create_rng(seed + 2222),
        thresholds_buy_ins=TOURNAMENT_DOWNSWING_THRESHOLDS,
        progress=lambda p: report(0.24 + p * 0.68),
    )
    summary = summarize_final_profit_distribution(mc.final_profits, per.cost, total)

    expected_profit = total * per.ev
    sd_profit = math.sqrt(total) * per.sd
    approx_ror, bankroll_for_1pct = _approximate_ror(per, inputs.bankroll_dollars, inputs.buy_in)

    results = TournamentSimulationResults(
        inputs=inputs,
        payout_model=model.payout_model,
        skill_model=model.skill_model,
        outcomes=model.outcomes,
        per_tournament=per,
        confidence=tuple(confidence),
        sample_paths=sample_paths,
        detailed_path=detailed_path,
        aggregate=TournamentAggregateStats(
            tournaments=total,
            expected_profit=expected_profit,
            sd_profit=sd_profit,
            normal_approx_probability_of_profit=normal_approx_probability_of_profit(
                expected_profit, sd_profit
            ),
            simulated_probability_of_profit=mc.simulated_probability_of_profit,
            profit_quantiles=summary.profit_quantiles,
            roi_quantiles=summary.roi_quantiles,
        ),
        downswing=mc.downswing,
        bankroll=TournamentBankrollStats(
            bankroll_buy_ins=inputs.bankroll_buy_ins,
            bankroll_dollars=inputs.bankroll_dollars,
            bust_probability=mc.bust_probability,
            approx_infinite_ror=approx_ror,
            approx_bankroll_for_1pct_ror=bankroll_for_1pct,
        ),
        num_trials=mode.tournament_trials,
        seed=seed,
    )
    report(1.0)
    return results


def handle_request(
    request: SimulationRequest,
    emit: Emit,
    settings: Settings | None = None,
) -> None:
    """Run ``request`` and emit progress followed by one terminal message.

    Any exception raised by a handler is reported as an :class:`ErrorMessage`
    rather than propagated; nothing is emitted after the terminal message.
    """
    reporter = ProgressReporter(request.request_id, emit)
    try:
        match request.kind:
            case RequestKind.SIMULATE:
                payload = run_simulation(request.params, reporter.report, settings)
            case RequestKind.DOWNSWING_PROBABILITY:
                payload = run_downswing_probability(request.params, reporter.report, settings)
            case RequestKind.SIMULATE_TOURNAMENT:
                payload = run_tournament_simulation(request.params, reporter.report, settings)
            case _:
                raise InvalidParameterError(f"unsupported request kind {request.kind!r}")
    except InvalidParameterError as exc:
        logger.warning("request %s rejected: %s", request.request_id, exc)
        reporter.close()
        emit(ErrorMessage(request.request_id, str(exc)))
        return
    except Exception as exc:
        logger.exception("request %s failed", request.request_id)
        reporter.close()
        emit(ErrorMessage(request.request_id, str(exc) or type(exc).__name__))
        return

    reporter.close()
    emit(ResultMessage(request.request_id, RequestKind(request.kind), payload))
