"""
Growth Predictor: decision-support engine for operational growth.

Turns process-stage timings, marketing-channel performance history and
capacity limits into ranked, financially-quantified recommendations,
and guarantees proposed spend plans respect hard business guardrails.

Quickstart::

    from growth_predictor import detect_bottlenecks, optimize_spend, validate_spend_plan

    bottlenecks = detect_bottlenecks(flows)
    plan = optimize_spend(50_000, period, channels, history)
    result = validate_spend_plan(plan, current_spend, day_of_month=10, constraints=constraints)
"""

__version__ = "0.1.0"

from growth_predictor.engine import (
    DecisionEngine,
    EngineReport,
    detect_bottlenecks,
    optimize_spend,
    validate_spend_plan,
)

__all__ = [
    "DecisionEngine",
    "EngineReport",
    "detect_bottlenecks",
    "optimize_spend",
    "validate_spend_plan",
    "__version__",
]
