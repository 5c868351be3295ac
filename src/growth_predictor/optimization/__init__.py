"""
Spend optimization layer for Growth Predictor.

Allocates a marketing budget across channels from fitted response
curves, with Monte Carlo confidence intervals and budget scenarios.
"""

from growth_predictor.optimization.allocator import (
    ConfidenceInterval,
    ExpectedOutcome,
    SpendAllocation,
    SpendOptimizer,
    SpendPlan,
    optimize_spend_plan,
)
from growth_predictor.optimization.scenarios import (
    BudgetScenario,
    compare_scenarios,
    create_budget_scenarios,
)
from growth_predictor.optimization.simulation import SimulationResult, simulate_roi

__all__ = [
    "ConfidenceInterval",
    "ExpectedOutcome",
    "SpendAllocation",
    "SpendOptimizer",
    "SpendPlan",
    "optimize_spend_plan",
    "BudgetScenario",
    "compare_scenarios",
    "create_budget_scenarios",
    "SimulationResult",
    "simulate_roi",
]
