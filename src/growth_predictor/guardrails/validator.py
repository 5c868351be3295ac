"""
Business guardrails for spend plans and recommendations.

A spend plan is checked against five families of constraint before it
is acted on:

  1. Capacity    -- downstream proposals and meetings per day
  2. Ramp rate   -- relative change per channel versus current spend
  3. Pacing      -- spend to date versus the monthly pacing curve
  4. Platform    -- per-channel minimum and maximum spend, total budget
  5. Diversity   -- active channel count, concentration, diversity ratio

Errors make a plan invalid; warnings are advisory.  An invalid plan is
repaired on a best-effort basis into a new plan that fits the budget.
The repair does not guarantee feasibility: when combined platform
minimums exceed the budget the adjusted plan still violates them and
stays invalid.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Mapping, Sequence

from loguru import logger
from pydantic import BaseModel, ConfigDict, field_validator

from growth_predictor.config import EconomicAssumptions, GuardrailConfig
from growth_predictor.core.contracts import (
    BusinessConstraints,
    PacingPolicy,
    finite_non_negative,
)
from growth_predictor.core.recommendations import Recommendation
from growth_predictor.optimization.allocator import ExpectedOutcome, SpendAllocation, SpendPlan


ERROR = "error"
WARNING = "warning"

BUDGET_TOLERANCE = 1e-6


class ViolationType(str, Enum):
    CAPACITY = "capacity"
    RAMP_RATE = "ramp_rate"
    PACING = "pacing"
    PLATFORM = "platform"
    DIVERSITY = "diversity"


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GuardrailViolation:
    """One breached constraint."""

    type: ViolationType
    constraint: str
    current: float
    limit: float
    severity: str = ERROR  # error | warning
    suggestion: str = ""
    channel_id: str | None = None

    @property
    def is_error(self) -> bool:
        return self.severity == ERROR

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "constraint": self.constraint,
            "current": self.current,
            "limit": self.limit,
            "severity": self.severity,
            "suggestion": self.suggestion,
            "channel_id": self.channel_id,
        }


@dataclass
class ValidationResult:
    """Outcome of validating a spend plan."""

    valid: bool
    violations: list[GuardrailViolation] = field(default_factory=list)
    adjusted_plan: SpendPlan | None = None
    adjusted_violations: list[GuardrailViolation] = field(default_factory=list)

    @property
    def errors(self) -> list[GuardrailViolation]:
        return [v for v in self.violations if v.is_error]

    @property
    def warnings(self) -> list[GuardrailViolation]:
        return [v for v in self.violations if not v.is_error]

    @property
    def adjusted_valid(self) -> bool | None:
        """Whether the repaired plan is free of errors; None when no repair ran."""
        if self.adjusted_plan is None:
            return None
        return not any(v.is_error for v in self.adjusted_violations)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "n_errors": len(self.errors),
            "n_warnings": len(self.warnings),
            "violations": [v.to_dict() for v in self.violations],
            "adjusted_plan": self.adjusted_plan.to_dict() if self.adjusted_plan else None,
            "adjusted_valid": self.adjusted_valid,
            "adjusted_violations": [v.to_dict() for v in self.adjusted_violations],
        }


class WorkloadSnapshot(BaseModel):
    """Current daily commitments of the commercial team."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    proposals: float = 0.0
    meetings: float = 0.0
    implementations: float = 0.0

    @field_validator("proposals", "meetings", "implementations", mode="before")
    @classmethod
    def _non_negative(cls, value: Any) -> float:
        return finite_non_negative(value)


@dataclass
class InfeasibleRecommendation:
    recommendation: Recommendation
    reason: str
    alternatives: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "recommendation": self.recommendation.to_dict(),
            "reason": self.reason,
            "alternatives": list(self.alternatives),
        }


@dataclass
class RecommendationCheck:
    """Recommendations split by whether the team can absorb them."""

    feasible: list[Recommendation] = field(default_factory=list)
    infeasible: list[InfeasibleRecommendation] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "feasible": [r.to_dict() for r in self.feasible],
            "infeasible": [i.to_dict() for i in self.infeasible],
        }


# ---------------------------------------------------------------------------
# Validator
# ---------------------------------------------------------------------------

class GuardrailsValidator:
    """
    Check plans and recommendations against business constraints.

    Example:
        >>> validator = GuardrailsValidator(constraints)
        >>> result = validator.validate(plan, current_spend={"search": 20_000}, day_of_month=10)
        >>> result.valid, len(result.warnings)
        (True, 1)
    """

    def __init__(
        self,
        constraints: BusinessConstraints | None = None,
        config: GuardrailConfig | None = None,
        economics: EconomicAssumptions | None = None,
    ):
        self.constraints = constraints or BusinessConstraints()
        self.config = config or GuardrailConfig()
        self.economics = economics or EconomicAssumptions()

    def validate(
        self,
        plan: SpendPlan,
        current_spend: Mapping[str, float] | None = None,
        day_of_month: float = 1,
    ) -> ValidationResult:
        """
        Run every check; repair the plan into a new one when any error is found.
        """
        violations = self.check(plan, current_spend or {}, day_of_month)
        valid = not any(v.is_error for v in violations)

        result = ValidationResult(valid=valid, violations=violations)

        if not valid:
            adjusted = self.repair(plan, violations)
            result.adjusted_plan = adjusted
            result.adjusted_violations = self.check(adjusted, current_spend or {}, day_of_month)
            if not result.adjusted_valid:
                logger.warning(
                    f"Plan {plan.id}: repair could not satisfy every constraint "
                    f"({sum(v.is_error for v in result.adjusted_violations)} error(s) remain)"
                )

        logger.info(
            f"Plan {plan.id}: valid={valid}, {len(result.errors)} error(s), "
            f"{len(result.warnings)} warning(s)"
        )
        return result

    def check(
        self,
        plan: SpendPlan,
        current_spend: Mapping[str, float],
        day_of_month: float = 1,
    ) -> list[GuardrailViolation]:
        violations: list[GuardrailViolation] = []
        violations.extend(self.check_capacity(plan))
        violations.extend(self.check_ramp_rate(plan, current_spend))
        violations.extend(self.check_pacing(plan, day_of_month))
        violations.extend(self.check_platform(plan))
        violations.extend(self.check_diversity(plan))
        return violations

    # ------------------------------------------------------------------
    # Individual checks
    # ------------------------------------------------------------------

    def check_capacity(self, plan: SpendPlan) -> list[GuardrailViolation]:
        cfg = self.config
        capacity = self.constraints.max_daily_capacity
        days = self.economics.days_per_month
        leads = plan.expected_outcome.leads
        violations = []

        daily_proposals = leads * cfg.lead_to_proposal_rate / days
        if daily_proposals > capacity.cpq_proposals:
            cut = round((1 - capacity.cpq_proposals / daily_proposals) * 100)
            violations.append(GuardrailViolation(
                type=ViolationType.CAPACITY,
                constraint="CPQ proposals per day",
                current=daily_proposals,
                limit=capacity.cpq_proposals,
                severity=ERROR,
                suggestion=f"Reduce lead generation by {cut}% or increase CPQ team capacity",
            ))

        daily_meetings = leads * cfg.lead_to_meeting_rate / days
        if daily_meetings > capacity.meetings:
            violations.append(GuardrailViolation(
                type=ViolationType.CAPACITY,
                constraint="Meetings per day",
                current=daily_meetings,
                limit=capacity.meetings,
                severity=WARNING,
                suggestion="Consider qualifying leads more strictly or batching meetings",
            ))

        return violations

    def check_ramp_rate(
        self,
        plan: SpendPlan,
        current_spend: Mapping[str, float],
    ) -> list[GuardrailViolation]:
        limit = self.constraints.max_channel_change_rate
        violations = []

        for channel_id, new_spend in plan.amounts().items():
            current = finite_non_negative(current_spend.get(channel_id, 0.0))
            if current == 0:
                continue  # new channel

            change_rate = abs(new_spend - current) / current
            if change_rate > limit:
                days = math.ceil(change_rate / limit) if limit > 0 else None
                phase = f"over {days} days" if days else "gradually"
                violations.append(GuardrailViolation(
                    type=ViolationType.RAMP_RATE,
                    constraint=f"{channel_id} daily change rate",
                    current=change_rate,
                    limit=limit,
                    severity=WARNING,
                    suggestion=f"Phase the {channel_id} change {phase}",
                    channel_id=channel_id,
                ))

        return violations

    def check_pacing(self, plan: SpendPlan, day_of_month: float) -> list[GuardrailViolation]:
        total = plan.total_allocated
        expected = self.expected_spend_to_date(total, day_of_month)
        actual = self.actual_spend_to_date(total, day_of_month)

        if expected <= 0:
            return []

        variance = abs(actual - expected) / expected
        if variance <= self.config.pacing_tolerance:
            return []

        if actual > expected:
            suggestion = "Reduce daily spend to avoid early budget exhaustion"
        else:
            suggestion = "Increase daily spend to meet monthly targets"

        return [GuardrailViolation(
            type=ViolationType.PACING,
            constraint="Monthly pacing",
            current=actual,
            limit=expected,
            severity=WARNING,
            suggestion=suggestion,
        )]

    def check_platform(self, plan: SpendPlan) -> list[GuardrailViolation]:
        minimums = self.constraints.platform_minimums
        maximums = self.constraints.platform_maximums
        violations = []

        for channel_id, spend in plan.amounts().items():
            minimum = minimums.get(channel_id)
            if minimum and 0 < spend < minimum:
                violations.append(GuardrailViolation(
                    type=ViolationType.PLATFORM,
                    constraint=f"{channel_id} minimum spend",
                    current=spend,
                    limit=minimum,
                    severity=ERROR,
                    suggestion=f"Increase {channel_id} to minimum {minimum:,.0f} or remove entirely",
                    channel_id=channel_id,
                ))

            maximum = maximums.get(channel_id)
            if maximum is not None and spend > maximum:
                violations.append(GuardrailViolation(
                    type=ViolationType.PLATFORM,
                    constraint=f"{channel_id} maximum spend",
                    current=spend,
                    limit=maximum,
                    severity=ERROR,
                    suggestion=f"Reduce {channel_id} to maximum {maximum:,.0f} and reallocate excess",
                    channel_id=channel_id,
                ))

        combined = sum(
            minimums.get(channel_id, 0.0)
            for channel_id, spend in plan.amounts().items()
            if spend > 0
        )
        if combined > plan.total_budget:
            violations.append(GuardrailViolation(
                type=ViolationType.PLATFORM,
                constraint="Combined platform minimums",
                current=combined,
                limit=plan.total_budget,
                severity=ERROR,
                suggestion="Drop a channel or raise the budget; active minimums exceed it",
            ))

        allocated = plan.total_allocated
        if allocated > plan.total_budget * (1 + BUDGET_TOLERANCE):
            violations.append(GuardrailViolation(
                type=ViolationType.PLATFORM,
                constraint="Total budget",
                current=allocated,
                limit=plan.total_budget,
                severity=ERROR,
                suggestion=f"Remove {allocated - plan.total_budget:,.0f} of spend to stay within budget",
            ))

        return violations

    def check_diversity(self, plan: SpendPlan) -> list[GuardrailViolation]:
        bc = self.constraints
        amounts = plan.amounts()
        base = plan.total_budget if plan.total_budget > 0 else plan.total_allocated
        active = sum(1 for v in amounts.values() if v > 0)
        violations = []

        if active < bc.min_active_channels:
            violations.append(GuardrailViolation(
                type=ViolationType.DIVERSITY,
                constraint="Minimum active channels",
                current=active,
                limit=bc.min_active_channels,
                severity=WARNING,
                suggestion=(
                    f"Activate {bc.min_active_channels - active} more channels "
                    f"for risk diversification"
                ),
            ))

        if base > 0:
            for channel_id, spend in amounts.items():
                concentration = spend / base
                if concentration > bc.max_channel_concentration:
                    violations.append(GuardrailViolation(
                        type=ViolationType.DIVERSITY,
                        constraint=f"{channel_id} concentration",
                        current=concentration,
                        limit=bc.max_channel_concentration,
                        severity=WARNING,
                        suggestion=(
                            f"Reduce {channel_id} to "
                            f"{bc.max_channel_concentration * 100:.0f}% and diversify"
                        ),
                        channel_id=channel_id,
                    ))

        if amounts and bc.diversity_ratio > 0:
            ratio = active / len(amounts)
            if ratio < bc.diversity_ratio:
                violations.append(GuardrailViolation(
                    type=ViolationType.DIVERSITY,
                    constraint="Diversity ratio",
                    current=ratio,
                    limit=bc.diversity_ratio,
                    severity=WARNING,
                    suggestion="Spread spend across more of the available channels",
                ))

        return violations

    # ------------------------------------------------------------------
    # Repair
    # ------------------------------------------------------------------

    def repair(
        self,
        plan: SpendPlan,
        violations: Sequence[GuardrailViolation] | None = None,
    ) -> SpendPlan:
        """
        Return a new plan with platform bounds, concentration and budget enforced.

        Under-minimum channels are lifted to their minimum and over-maximum
        channels lowered to their maximum, then every channel is capped at
        ``total_budget x max_channel_concentration``.  If the result exceeds
        the budget, spend above each channel's minimum is scaled down
        proportionally.  The outcome is recomputed with a linear lead model.
        """
        if violations is None:
            violations = self.check_platform(plan)

        amounts = plan.amounts()
        for v in violations:
            if v.type is not ViolationType.PLATFORM or v.channel_id not in amounts:
                continue
            amounts[v.channel_id] = v.limit

        cap = plan.total_budget * self.constraints.max_channel_concentration
        for channel_id, spend in amounts.items():
            if spend > cap:
                amounts[channel_id] = cap

        amounts = self._fit_to_budget(amounts, plan.total_budget)

        allocations = [self._relinearize(a, amounts[a.channel_id], plan.total_budget)
                       for a in plan.allocations]

        return replace(
            plan,
            allocations=allocations,
            expected_outcome=self.linear_outcome(allocations),
            assumptions=list(plan.assumptions) + [
                "Adjusted by guardrails: outcome recomputed with a linear model "
                f"(${self.economics.cost_per_lead:,.0f} per lead, "
                f"{self.economics.repair_conversion_rate:.0%} conversion)"
            ],
        )

    def _fit_to_budget(self, amounts: dict[str, float], budget: float) -> dict[str, float]:
        """Scale spend above platform minimums so the total fits ``budget``."""
        total = sum(amounts.values())
        if total <= budget:
            return amounts

        minimums = self.constraints.platform_minimums
        floors = {
            channel_id: min(spend, minimums.get(channel_id, 0.0))
            for channel_id, spend in amounts.items()
        }
        above = total - sum(floors.values())
        headroom = budget - sum(floors.values())
        if above <= 0 or headroom < 0:
            # Minimums alone exceed the budget; the combined-minimums error stands.
            return amounts

        scale = headroom / above
        logger.debug(f"Repair over budget by {total - budget:,.0f}; scaling spend above minimums by {scale:.3f}")
        return {
            channel_id: floors[channel_id] + (spend - floors[channel_id]) * scale
            for channel_id, spend in amounts.items()
        }

    def _relinearize(self, allocation: SpendAllocation, amount: float, budget: float) -> SpendAllocation:
        leads = amount / self.economics.cost_per_lead
        conversions = leads * self.economics.repair_conversion_rate
        return replace(
            allocation,
            recommended_amount=amount,
            recommended_percent=amount / budget * 100 if budget > 0 else 0.0,
            expected_leads=leads,
            expected_conversions=conversions,
            expected_roi=conversions * self.economics.avg_deal_value / amount if amount > 0 else 0.0,
        )

    def linear_outcome(self, allocations: Sequence[SpendAllocation]) -> ExpectedOutcome:
        total_spend = sum(a.recommended_amount for a in allocations)
        leads = total_spend / self.economics.cost_per_lead
        conversions = leads * self.economics.repair_conversion_rate
        revenue = conversions * self.economics.avg_deal_value

        return ExpectedOutcome(
            leads=round(leads),
            conversions=round(conversions),
            revenue=revenue,
            roi=revenue / total_spend if total_spend > 0 else 0.0,
        )

    # ------------------------------------------------------------------
    # Pacing helpers
    # ------------------------------------------------------------------

    def expected_spend_to_date(self, total: float, day_of_month: float) -> float:
        """Cumulative spend the pacing policy expects by ``day_of_month``."""
        progress = finite_non_negative(day_of_month) / self.economics.days_per_month
        policy = self.constraints.monthly_pacing

        if policy is PacingPolicy.LINEAR:
            return total * progress

        first_half = 0.6 if policy is PacingPolicy.FRONT_LOADED else 0.4
        if progress <= 0.5:
            return total * first_half * (progress * 2)
        return total * first_half + total * (1 - first_half) * ((progress - 0.5) * 2)

    def actual_spend_to_date(self, total: float, day_of_month: float) -> float:
        return total / self.economics.days_per_month * finite_non_negative(day_of_month)

    # ------------------------------------------------------------------
    # Recommendations
    # ------------------------------------------------------------------

    def validate_recommendations(
        self,
        recommendations: Sequence[Recommendation],
        current_load: WorkloadSnapshot | Mapping[str, float] | None = None,
    ) -> RecommendationCheck:
        """Split recommendations by whether daily capacity can absorb them."""
        load = self._resolve_load(current_load)
        check = RecommendationCheck()

        for rec in recommendations:
            needed = self.estimate_capacity_needed(rec)
            if self.has_capacity(needed, load):
                check.feasible.append(rec)
            else:
                check.infeasible.append(InfeasibleRecommendation(
                    recommendation=rec,
                    reason=self.explain_capacity_shortfall(needed, load),
                    alternatives=self.suggest_alternatives(rec),
                ))

        logger.debug(
            f"Recommendations: {len(check.feasible)} feasible, "
            f"{len(check.infeasible)} over capacity"
        )
        return check

    def estimate_capacity_needed(self, rec: Recommendation) -> WorkloadSnapshot:
        proposals = meetings = implementations = 0.0

        for action in rec.actions:
            label = action.label.lower()
            if "proposal" in label:
                proposals += 1
            if "meeting" in label:
                meetings += 1
            if action.type == "immediate":
                implementations += self.config.implementation_load_per_immediate_action

        return WorkloadSnapshot(
            proposals=proposals, meetings=meetings, implementations=implementations,
        )

    def has_capacity(self, needed: WorkloadSnapshot, current: WorkloadSnapshot) -> bool:
        capacity = self.constraints.max_daily_capacity
        return (
            current.proposals + needed.proposals <= capacity.cpq_proposals
            and current.meetings + needed.meetings <= capacity.meetings
            and current.implementations + needed.implementations <= capacity.implementations
        )

    def explain_capacity_shortfall(self, needed: WorkloadSnapshot, current: WorkloadSnapshot) -> str:
        capacity = self.constraints.max_daily_capacity
        shortfalls = []

        if current.proposals + needed.proposals > capacity.cpq_proposals:
            shortfalls.append(
                f"CPQ capacity (need {needed.proposals:g}, "
                f"have {capacity.cpq_proposals - current.proposals:g})"
            )
        if current.meetings + needed.meetings > capacity.meetings:
            shortfalls.append(
                f"Meeting capacity (need {needed.meetings:g}, "
                f"have {capacity.meetings - current.meetings:g})"
            )
        if current.implementations + needed.implementations > capacity.implementations:
            shortfalls.append(
                f"Implementation capacity (need {needed.implementations:g}, "
                f"have {capacity.implementations - current.implementations:g})"
            )

        return f"Insufficient capacity: {', '.join(shortfalls)}"

    def suggest_alternatives(self, rec: Recommendation) -> list[str]:
        """Advisory alternatives, most conservative first."""
        alternatives = ["Defer implementation to next week when capacity available"]

        if len(rec.actions) > 2:
            alternatives.append("Break into phases: implement highest-impact actions first")

        revenue = rec.expected_impact.revenue
        if revenue is not None and revenue.delta > self.config.outsourcing_revenue_threshold:
            alternatives.append(
                "Consider outsourcing or temporary resources for high-value opportunity"
            )

        automatable = [a for a in rec.actions if a.automatable]
        if automatable:
            alternatives.append(f"Automate {len(automatable)} actions to reduce capacity needs")

        return alternatives[: self.config.max_alternatives]

    @staticmethod
    def _resolve_load(current_load: WorkloadSnapshot | Mapping[str, float] | None) -> WorkloadSnapshot:
        if current_load is None:
            return WorkloadSnapshot()
        if isinstance(current_load, WorkloadSnapshot):
            return current_load
        return WorkloadSnapshot(**dict(current_load))
