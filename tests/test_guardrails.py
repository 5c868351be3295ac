"""Tests for business guardrails."""

import pytest

from growth_predictor.config import EconomicAssumptions
from growth_predictor.core.contracts import (
    BusinessConstraints,
    DailyCapacity,
    MarketingChannel,
    Objective,
    PacingPolicy,
)
from growth_predictor.core.recommendations import Action, ImpactEstimate, MetricDelta, Recommendation
from growth_predictor.engine import validate_spend_plan
from growth_predictor.guardrails import GuardrailsValidator, ViolationType, WorkloadSnapshot
from growth_predictor.optimization import ExpectedOutcome, SpendAllocation, SpendPlan


def make_plan(amounts, total_budget, leads=0):
    allocations = [
        SpendAllocation(
            channel=MarketingChannel(id=cid),
            recommended_amount=amount,
            recommended_percent=amount / total_budget * 100,
        )
        for cid, amount in amounts.items()
    ]
    return SpendPlan(
        id="spend-plan-test",
        name="Test plan",
        objective=Objective.BALANCED_GROWTH,
        total_budget=total_budget,
        allocations=allocations,
        expected_outcome=ExpectedOutcome(leads=leads),
        assumptions=["Historical performance is indicative of future results"],
    )


def make_recommendation(actions=(), revenue_delta=None):
    revenue = MetricDelta.from_values(0, revenue_delta, "USD") if revenue_delta else None
    return Recommendation(
        title="Test recommendation",
        executive_summary="",
        rationale="",
        expected_impact=ImpactEstimate(time_to_impact=14, sustainability_months=12, revenue=revenue),
        confidence=0.8,
        actions=list(actions),
    )


class TestPlanValidation:
    """Test the five plan checks."""

    def test_valid_plan_unchanged(self):
        """A plan inside every limit validates cleanly, every time."""
        amounts = {"a": 10_000, "b": 10_000, "c": 10_000}
        plan = make_plan(amounts, 30_000)
        constraints = BusinessConstraints()

        first = validate_spend_plan(plan, amounts, 10, constraints)
        second = validate_spend_plan(plan, amounts, 10, constraints)

        assert first.valid and second.valid
        assert first.violations == [] and second.violations == []
        assert first.adjusted_plan is None
        assert first.adjusted_valid is None

    def test_infeasible_minimums(self):
        """Minimums above the budget cannot be repaired away."""
        plan = make_plan({"a": 10_000, "b": 10_000}, 20_000)
        constraints = BusinessConstraints(
            platform_minimums={"a": 15_000, "b": 15_000}, min_active_channels=2,
        )

        result = validate_spend_plan(plan, {}, 1, constraints)

        assert not result.valid
        platform_errors = [v for v in result.errors if v.type is ViolationType.PLATFORM]
        assert len(platform_errors) == 3
        assert any(v.constraint == "Combined platform minimums" for v in platform_errors)

        adjusted = result.adjusted_plan
        assert adjusted is not None
        assert adjusted.id == plan.id
        assert adjusted.amounts() == {"a": 10_000, "b": 10_000}
        assert result.adjusted_valid is False
        assert adjusted.assumptions[-1].startswith("Adjusted by guardrails")
        assert len(plan.assumptions) == 1

    def test_repair_lowers_maximum(self):
        """Over-maximum channels are lowered and the outcome re-linearised."""
        plan = make_plan({"a": 15_000, "b": 5_000}, 20_000)
        constraints = BusinessConstraints(platform_maximums={"a": 5_000})

        result = validate_spend_plan(plan, {}, 1, constraints)

        assert not result.valid
        adjusted = result.adjusted_plan
        assert adjusted.amounts() == {"a": 5_000, "b": 5_000}
        assert adjusted.expected_outcome.leads == 20
        assert adjusted.expected_outcome.conversions == 2
        assert adjusted.expected_outcome.revenue == pytest.approx(100_000)
        assert adjusted.expected_outcome.roi == pytest.approx(10)
        assert result.adjusted_valid is True
        assert plan.amounts()["a"] == 15_000

    def test_repair_caps_concentration(self):
        """Lifted minimums are still capped at budget x concentration."""
        plan = make_plan({"a": 16_000, "b": 4_000}, 20_000)
        constraints = BusinessConstraints(platform_minimums={"a": 18_000})

        adjusted = GuardrailsValidator(constraints).validate(plan).adjusted_plan

        assert adjusted.amounts()["a"] == pytest.approx(10_000)
        assert adjusted.allocations[0].recommended_percent == pytest.approx(50)

    def test_repair_stays_within_budget(self):
        """Lifting a minimum takes the money from channels above their minimum."""
        plan = make_plan({"a": 4_900, "b": 4_900, "c": 200}, 10_000)
        constraints = BusinessConstraints(platform_minimums={"c": 1_000})

        result = validate_spend_plan(plan, {}, 1, constraints)

        assert not result.valid
        adjusted = result.adjusted_plan
        assert adjusted.total_allocated <= 10_000 * (1 + 1e-6)
        assert adjusted.amounts() == pytest.approx({"a": 4_500, "b": 4_500, "c": 1_000})
        assert result.adjusted_valid is True

    def test_over_budget_plan_is_an_error(self):
        plan = make_plan({"a": 6_000, "b": 6_000}, 10_000)

        result = validate_spend_plan(plan, {}, 1, BusinessConstraints())

        assert not result.valid
        assert [v.constraint for v in result.errors] == ["Total budget"]
        assert result.adjusted_plan.total_allocated == pytest.approx(10_000)
        assert result.adjusted_valid is True

    def test_repair_uses_configured_cost_per_lead(self):
        plan = make_plan({"a": 15_000, "b": 5_000}, 20_000)
        constraints = BusinessConstraints(platform_maximums={"a": 5_000})
        economics = EconomicAssumptions(cost_per_lead=250)

        adjusted = GuardrailsValidator(constraints, economics=economics).validate(plan).adjusted_plan

        assert adjusted.expected_outcome.leads == 40
        assert "$250 per lead" in adjusted.assumptions[-1]

    def test_capacity(self):
        """Too many leads overload proposals (error) and meetings (warning)."""
        plan = make_plan({"a": 10_000, "b": 10_000, "c": 10_000}, 30_000, leads=900)
        violations = GuardrailsValidator().check_capacity(plan)

        assert [v.severity for v in violations] == ["error", "warning"]
        assert violations[0].current == pytest.approx(15)
        assert "33%" in violations[0].suggestion

    def test_custom_capacity(self):
        constraints = BusinessConstraints(max_daily_capacity=DailyCapacity(cpq_proposals=20, meetings=10))
        plan = make_plan({"a": 10_000}, 10_000, leads=900)

        assert GuardrailsValidator(constraints).check_capacity(plan) == []

    def test_ramp_rate(self):
        """Large moves from current spend are phased; new channels are exempt."""
        plan = make_plan({"a": 15_000, "b": 5_000}, 20_000)
        violations = GuardrailsValidator().check_ramp_rate(plan, {"a": 10_000})

        assert len(violations) == 1
        assert violations[0].channel_id == "a"
        assert violations[0].current == pytest.approx(0.5)
        assert "over 2 days" in violations[0].suggestion

    @pytest.mark.parametrize("policy,day,warned", [
        (PacingPolicy.LINEAR, 10, False),
        (PacingPolicy.BACK_LOADED, 10, True),
        (PacingPolicy.FRONT_LOADED, 10, False),
    ])
    def test_pacing(self, policy, day, warned):
        """Spend to date is compared with the pacing curve."""
        plan = make_plan({"a": 10_000, "b": 10_000, "c": 10_000}, 30_000)
        validator = GuardrailsValidator(BusinessConstraints(monthly_pacing=policy))
        violations = validator.check_pacing(plan, day)

        assert bool(violations) is warned
        if warned:
            assert violations[0].severity == "warning"
            assert violations[0].suggestion.startswith("Reduce daily spend")

    def test_pacing_expected_curve(self):
        validator = GuardrailsValidator(BusinessConstraints(monthly_pacing=PacingPolicy.FRONT_LOADED))

        assert validator.expected_spend_to_date(30_000, 15) == pytest.approx(18_000)
        assert validator.expected_spend_to_date(30_000, 30) == pytest.approx(30_000)

    def test_diversity(self):
        """Too few active channels, concentration and diversity ratio all warn."""
        plan = make_plan({"a": 18_000, "b": 0}, 20_000)
        constraints = BusinessConstraints(diversity_ratio=0.8)
        violations = GuardrailsValidator(constraints).check_diversity(plan)

        assert [v.constraint for v in violations] == [
            "Minimum active channels",
            "a concentration",
            "Diversity ratio",
        ]
        assert all(v.severity == "warning" for v in violations)

    def test_result_to_dict(self):
        plan = make_plan({"a": 15_000, "b": 5_000}, 20_000)
        result = validate_spend_plan(plan, {}, 1, BusinessConstraints(platform_maximums={"a": 5_000}))
        data = result.to_dict()

        assert data["valid"] is False
        assert data["n_errors"] == 1
        assert data["adjusted_plan"]["allocations"][0]["recommended_amount"] == 5_000


class TestRecommendationCapacity:
    """Test the recommendation capacity gate."""

    def test_feasible_and_infeasible(self):
        busy = make_recommendation([
            Action(id="1", label="Send proposal", description="", type="immediate"),
        ])
        idle = make_recommendation()

        check = GuardrailsValidator().validate_recommendations([busy, idle], {"proposals": 10})

        assert check.feasible == [idle]
        assert len(check.infeasible) == 1
        infeasible = check.infeasible[0]
        assert infeasible.recommendation is busy
        assert "CPQ capacity (need 1, have 0)" in infeasible.reason
        assert infeasible.alternatives[0].startswith("Defer implementation")

    def test_capacity_estimate(self):
        rec = make_recommendation([
            Action(id="1", label="Book meeting", description="", type="immediate"),
            Action(id="2", label="Draft proposal", description=""),
        ])
        needed = GuardrailsValidator().estimate_capacity_needed(rec)

        assert needed == WorkloadSnapshot(proposals=1, meetings=1, implementations=0.5)

    def test_alternatives(self):
        """Phasing, outsourcing and automation are offered where they apply."""
        rec = make_recommendation(
            [Action(id=str(i), label=f"Step {i}", description="", automatable=True) for i in range(3)],
            revenue_delta=250_000,
        )
        alternatives = GuardrailsValidator().suggest_alternatives(rec)

        assert len(alternatives) == 3
        assert alternatives[1].startswith("Break into phases")
        assert "outsourcing" in alternatives[2]

    def test_negative_load_repaired(self):
        assert WorkloadSnapshot(proposals=-3).proposals == 0.0
