"""
Decision engine -- the entry point for an end-to-end Growth Predictor run.

Orchestrates:
  1. Detect    -- score process stages and attach templated fixes
  2. Optimise  -- allocate the marketing budget from response curves
  3. Validate  -- check the plan against guardrails, repairing if invalid
  4. Weight    -- blend displayed confidence with the audit batting average
  5. Gate      -- keep only the fixes the team has capacity for

The three module-level functions are the external call contracts; the
``DecisionEngine`` chains them for one snapshot of telemetry.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Mapping, Sequence

from loguru import logger

from growth_predictor.audit.logger import AuditSummary, DecisionSink, weight_confidence
from growth_predictor.bottleneck.detector import Bottleneck, BottleneckDetector
from growth_predictor.config import GrowthPredictorConfig
from growth_predictor.core.contracts import (
    BusinessConstraints,
    ChannelPerformance,
    DateRange,
    MarketingChannel,
    Objective,
    ProcessFlow,
    SpendConstraints,
)
from growth_predictor.core.recommendations import Recommendation
from growth_predictor.guardrails.validator import (
    GuardrailsValidator,
    RecommendationCheck,
    ValidationResult,
    WorkloadSnapshot,
)
from growth_predictor.optimization.allocator import SpendOptimizer, SpendPlan


# ---------------------------------------------------------------------------
# External call contracts
# ---------------------------------------------------------------------------

def detect_bottlenecks(
    flows: Sequence[ProcessFlow],
    config: GrowthPredictorConfig | None = None,
) -> list[Bottleneck]:
    """Bottlenecks across ``flows``, highest monthly cost of delay first."""
    config = config or GrowthPredictorConfig()
    detector = BottleneckDetector(config.bottleneck, config.economics)
    return detector.analyze(flows)


def optimize_spend(
    total_budget: float,
    period: DateRange | None,
    channels: Sequence[MarketingChannel],
    history: Sequence[ChannelPerformance],
    constraints: SpendConstraints | BusinessConstraints | None = None,
    objective: Objective | str = Objective.MAXIMIZE_ROI,
    config: GrowthPredictorConfig | None = None,
) -> SpendPlan:
    """Spend plan for ``total_budget`` under ``objective``."""
    config = config or GrowthPredictorConfig()
    optimizer = SpendOptimizer(config.optimization, config.economics)
    return optimizer.optimize(
        total_budget=total_budget,
        period=period,
        channels=channels,
        history=history,
        constraints=constraints,
        objective=objective,
    )


def validate_spend_plan(
    plan: SpendPlan,
    current_spend: Mapping[str, float] | None,
    day_of_month: float,
    constraints: BusinessConstraints,
    config: GrowthPredictorConfig | None = None,
) -> ValidationResult:
    """Guardrail check of ``plan``; an adjusted plan is attached when invalid."""
    config = config or GrowthPredictorConfig()
    validator = GuardrailsValidator(constraints, config.guardrails, config.economics)
    return validator.validate(plan, current_spend or {}, day_of_month)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

@dataclass
class EngineReport:
    """Everything one engine run produced."""

    bottlenecks: list[Bottleneck] = field(default_factory=list)
    plan: SpendPlan | None = None
    validation: ValidationResult | None = None
    recommendation_check: RecommendationCheck | None = None
    timestamp: str = ""
    duration_seconds: float = 0.0

    @property
    def final_plan(self) -> SpendPlan | None:
        """The plan to act on: the adjusted plan when validation failed."""
        if self.validation is not None and self.validation.adjusted_plan is not None:
            return self.validation.adjusted_plan
        return self.plan

    @property
    def recommendations(self) -> list[Recommendation]:
        return [fix for b in self.bottlenecks for fix in b.recommended_fixes]

    def to_dict(self) -> dict:
        final = self.final_plan
        return {
            "timestamp": self.timestamp,
            "duration_seconds": self.duration_seconds,
            "bottlenecks": [b.to_dict() for b in self.bottlenecks],
            "plan": self.plan.to_dict() if self.plan else None,
            "validation": self.validation.to_dict() if self.validation else None,
            "final_plan_id": final.id if final else None,
            "recommendation_check": (
                self.recommendation_check.to_dict() if self.recommendation_check else None
            ),
        }


class DecisionEngine:
    """
    Detect -> optimise -> validate pipeline over one telemetry snapshot.

    Example::

        engine = DecisionEngine(config, constraints, audit=AuditLogger())
        report = engine.run(
            flows=flows,
            channels=channels,
            history=history,
            total_budget=100_000,
        )
        report.final_plan.to_dict()
    """

    def __init__(
        self,
        config: GrowthPredictorConfig | None = None,
        constraints: BusinessConstraints | None = None,
        audit: DecisionSink | None = None,
    ):
        self.config = config or GrowthPredictorConfig()
        self.constraints = constraints or BusinessConstraints()
        self.audit = audit

        self.detector = BottleneckDetector(self.config.bottleneck, self.config.economics)
        self.optimizer = SpendOptimizer(self.config.optimization, self.config.economics)
        self.validator = GuardrailsValidator(
            self.constraints, self.config.guardrails, self.config.economics,
        )

    def run(
        self,
        flows: Sequence[ProcessFlow] = (),
        channels: Sequence[MarketingChannel] = (),
        history: Sequence[ChannelPerformance] = (),
        total_budget: float | None = None,
        period: DateRange | None = None,
        objective: Objective | str = Objective.MAXIMIZE_ROI,
        spend_constraints: SpendConstraints | None = None,
        current_spend: Mapping[str, float] | None = None,
        day_of_month: float = 1,
        current_load: WorkloadSnapshot | Mapping[str, float] | None = None,
    ) -> EngineReport:
        """
        Execute the pipeline.

        Args:
            flows: Process flows to scan for bottlenecks
            channels: Marketing channels to allocate across
            history: Channel performance history
            total_budget: Budget to allocate; current channel spend when None
            period: Planning window
            objective: Optimisation objective
            spend_constraints: Optimizer bounds; derived from the business
                constraints when None
            current_spend: Channel id -> current spend for ramp-rate checks;
                channel ``current_spend`` when None
            day_of_month: Day used for the pacing check
            current_load: Current daily workload for the capacity gate
        """
        t0 = time.time()
        report = EngineReport(timestamp=datetime.now(timezone.utc).isoformat())

        if flows:
            logger.info("Engine step: detect")
            report.bottlenecks = self.detector.analyze(flows)

        if channels:
            logger.info("Engine step: optimise")
            budget = total_budget
            if budget is None:
                budget = sum(c.current_spend for c in channels)

            report.plan = self.optimizer.optimize(
                total_budget=budget,
                period=period,
                channels=channels,
                history=history,
                constraints=spend_constraints or self.constraints,
                objective=objective,
            )

            logger.info("Engine step: validate")
            if current_spend is None:
                current_spend = {c.id: c.current_spend for c in channels}
            report.validation = self.validator.validate(report.plan, current_spend, day_of_month)

        if self.audit is not None and report.recommendations:
            logger.info("Engine step: weight confidence")
            report.bottlenecks = self._weight_fixes(report.bottlenecks, self.audit.get_summary())

        recommendations = report.recommendations
        if recommendations:
            logger.info("Engine step: capacity gate")
            report.recommendation_check = self.validator.validate_recommendations(
                recommendations, current_load,
            )

        report.duration_seconds = round(time.time() - t0, 3)
        logger.info(
            f"Engine run complete in {report.duration_seconds:.2f}s: "
            f"{len(report.bottlenecks)} bottleneck(s), "
            f"plan={'none' if report.plan is None else report.plan.id}, "
            f"valid={None if report.validation is None else report.validation.valid}"
        )
        return report

    def _weight_fixes(
        self,
        bottlenecks: Sequence[Bottleneck],
        summary: AuditSummary,
    ) -> list[Bottleneck]:
        """New bottlenecks whose fixes carry audit-weighted display confidence."""
        prior = self.config.audit.confidence_prior_weight
        return [
            replace(b, recommended_fixes=[
                rec.with_display_confidence(weight_confidence(rec, summary, prior))
                for rec in b.recommended_fixes
            ])
            for b in bottlenecks
        ]
