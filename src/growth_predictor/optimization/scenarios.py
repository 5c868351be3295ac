"""
Scenario planning utilities for spend optimization.

Run the optimizer at several budget levels and compare the resulting
plans side by side for what-if analysis.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import pandas as pd

from growth_predictor.core.contracts import (
    BusinessConstraints,
    ChannelPerformance,
    DateRange,
    MarketingChannel,
    Objective,
    SpendConstraints,
)
from growth_predictor.optimization.allocator import SpendOptimizer, SpendPlan


@dataclass
class BudgetScenario:
    """A budget level and the plan produced for it."""

    name: str
    description: str
    total_budget: float
    plan: SpendPlan

    @property
    def allocation(self) -> dict[str, float]:
        return self.plan.amounts()

    def to_dict(self) -> dict:
        outcome = self.plan.expected_outcome
        return {
            "name": self.name,
            "description": self.description,
            "total_budget": self.total_budget,
            "allocation": self.allocation,
            "expected_leads": outcome.leads,
            "expected_conversions": outcome.conversions,
            "expected_revenue": outcome.revenue,
            "expected_roi": outcome.roi,
        }


def create_budget_scenarios(
    channels: Sequence[MarketingChannel],
    history: Sequence[ChannelPerformance],
    base_budget: float,
    objective: Objective | str = Objective.MAXIMIZE_ROI,
    constraints: SpendConstraints | BusinessConstraints | None = None,
    period: DateRange | None = None,
    budget_multipliers: list[float] | None = None,
    include_current: bool = True,
    optimizer: SpendOptimizer | None = None,
) -> list[BudgetScenario]:
    """
    Create multiple budget scenarios for comparison.

    Args:
        channels: Channels to allocate across
        history: Channel performance history
        base_budget: Base budget level
        objective: Optimization objective for every scenario
        constraints: Constraints applied to every scenario
        period: Planning window
        budget_multipliers: Multipliers of the base budget (e.g. [0.8, 1.0, 1.2])
        include_current: Prepend the channels' current spend as a scenario
        optimizer: Optimizer to use; a default one when omitted

    Returns:
        List of BudgetScenario objects
    """
    if budget_multipliers is None:
        budget_multipliers = [0.7, 0.85, 1.0, 1.15, 1.3]

    optimizer = optimizer or SpendOptimizer()
    objective = optimizer.resolve_objective(objective)
    scenarios = []

    if include_current and channels:
        current = {c.id: c.current_spend for c in channels}
        current_budget = sum(current.values())
        curves = optimizer.curve_model.fit_channels(channels, history)

        scenarios.append(BudgetScenario(
            name="Current",
            description="Current allocation",
            total_budget=current_budget,
            plan=optimizer.assemble_plan(
                total_budget=current_budget,
                channels=channels,
                curves=curves,
                amounts=current,
                objective=objective,
                period=period,
                assumptions=["Channels held at current spend"],
            ),
        ))

    for mult in budget_multipliers:
        budget = base_budget * mult
        plan = optimizer.optimize(
            total_budget=budget,
            period=period,
            channels=channels,
            history=history,
            constraints=constraints,
            objective=objective,
        )

        scenarios.append(BudgetScenario(
            name=f"Optimized ({mult:.0%})",
            description=f"Optimal allocation at {mult:.0%} of base budget",
            total_budget=budget,
            plan=plan,
        ))

    return scenarios


def compare_scenarios(scenarios: list[BudgetScenario]) -> pd.DataFrame:
    """
    Create a comparison table of scenarios.

    Args:
        scenarios: List of BudgetScenario objects

    Returns:
        DataFrame comparing all scenarios
    """
    records = []

    all_channels = set()
    for s in scenarios:
        all_channels.update(s.allocation.keys())

    for scenario in scenarios:
        outcome = scenario.plan.expected_outcome
        record = {
            "scenario": scenario.name,
            "description": scenario.description,
            "total_budget": scenario.total_budget,
            "expected_leads": outcome.leads,
            "expected_revenue": outcome.revenue,
            "expected_roi": outcome.roi,
        }

        for channel in sorted(all_channels):
            record[f"{channel}_spend"] = scenario.allocation.get(channel, 0)

        records.append(record)

    df = pd.DataFrame(records)

    if len(df) > 0:
        base_revenue = df["expected_revenue"].iloc[0]
        if base_revenue > 0:
            df["revenue_vs_base"] = (df["expected_revenue"] - base_revenue) / base_revenue * 100
        else:
            df["revenue_vs_base"] = 0.0

    return df
