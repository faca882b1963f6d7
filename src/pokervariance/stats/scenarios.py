"""Side-by-side comparison of alternative winrate and stakes scenarios."""

from dataclasses import dataclass

from pokervariance.config import HANDS_PER_HOUR
from pokervariance.stats.variance import (
    bankroll_for_ror,
    confidence_interval_95,
    expected_winnings,
    probability_of_profit,
    risk_of_ruin,
)


@dataclass(frozen=True, slots=True)
class Scenario:
    """A winrate played at a given big-blind value."""

    id: str
    name: str
    description: str
    winrate: float
    stakes: float
    is_base: bool = False


@dataclass(frozen=True, slots=True)
class ScenarioMetrics:
    """Closed-form outcome of one scenario."""

    scenario: Scenario
    expected_value_bb: float
    expected_value_dollars: float
    probability_of_profit: float
    ci95_lower: float
    ci95_upper: float
    risk_of_ruin: float
    recommended_bankroll_bb: float
    recommended_bankroll_dollars: float
    hourly_rate_dollars: float


@dataclass(frozen=True, slots=True)
class ScenarioComparison:
    """All scenarios plus a handle on the base case."""

    scenarios: tuple[ScenarioMetrics, ...]
    base_scenario: ScenarioMetrics
    hands: int
    bankroll: float


def generate_default_scenarios(base_winrate: float, base_stakes: float) -> list[Scenario]:
    """Current parameters plus ±30%, ±60% winrate and a half-stakes option."""

    def at_same_stakes(key: str, label: str, factor: float) -> Scenario:
        winrate = base_winrate * factor
        return Scenario(
            id=key,
            name=label,
            description=f"{winrate:.1f} BB/100 at same stakes",
            winrate=winrate,
            stakes=base_stakes,
        )

    half_stakes_winrate = base_winrate * 1.6
    return [
        Scenario(
            id="current",
            name="Current",
            description="Your current parameters",
            winrate=base_winrate,
            stakes=base_stakes,
            is_base=True,
        ),
        at_same_stakes("plus30", "+30% Winrate", 1.3),
        at_same_stakes("minus30", "-30% Winrate", 0.7),
        at_same_stakes("plus60", "+60% Winrate", 1.6),
        at_same_stakes("minus60", "-60% Winrate", 0.4),
        Scenario(
            id="halfStakes",
            name="Half Stakes +60% WR",
            description=f"{half_stakes_winrate:.1f} BB/100 at ${base_stakes / 2:.2f} BB",
            winrate=half_stakes_winrate,
            stakes=base_stakes / 2,
        ),
    ]


def calculate_scenario_metrics(
    scenario: Scenario,
    hands: int,
    std_dev: float,
    bankroll: float,
) -> ScenarioMetrics:
    """Evaluate one scenario; ``bankroll`` is in BB of the scenario's stakes."""
    ev_bb = expected_winnings(hands, scenario.winrate)
    ci95 = confidence_interval_95(hands, scenario.winrate, std_dev)
    recommended_bb = bankroll_for_ror(scenario.winrate, 0.05, std_dev)

    return ScenarioMetrics(
        scenario=scenario,
        expected_value_bb=ev_bb,
        expected_value_dollars=ev_bb * scenario.stakes,
        probability_of_profit=probability_of_profit(hands, scenario.winrate, std_dev),
        ci95_lower=ci95.lower,
        ci95_upper=ci95.upper,
        risk_of_ruin=risk_of_ruin(scenario.winrate, bankroll, std_dev),
        recommended_bankroll_bb=recommended_bb,
        recommended_bankroll_dollars=recommended_bb * scenario.stakes,
        hourly_rate_dollars=(scenario.winrate / 100.0) * HANDS_PER_HOUR * scenario.stakes,
    )


def compare_scenarios(
    base_winrate: float,
    base_stakes: float,
    hands: int,
    std_dev: float,
    bankroll: float,
) -> ScenarioComparison:
    """Evaluate the default scenario set against the base parameters."""
    metrics = tuple(
        calculate_scenario_metrics(s, hands, std_dev, bankroll)
        for s in generate_default_scenarios(base_winrate, base_stakes)
    )
    base = next(m for m in metrics if m.scenario.is_base)
    return ScenarioComparison(scenarios=metrics, base_scenario=base, hands=hands, bankroll=bankroll)
