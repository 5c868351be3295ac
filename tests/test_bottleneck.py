"""Tests for bottleneck scoring and detection."""

import pytest

from growth_predictor.bottleneck import (
    BottleneckDetector,
    BottleneckScorer,
    FixType,
    RootCauseCategory,
    generate_sample_process_flow,
)
from growth_predictor.core.contracts import ProcessFlow, ProcessStage, Severity
from growth_predictor.core.recommendations import RecommendationStatus
from growth_predictor.engine import detect_bottlenecks


@pytest.fixture
def dominant_flow():
    """Three stages, one of which waits three times its working time."""
    return ProcessFlow(
        id="onboarding",
        name="Customer Onboarding",
        avg_cycle_time=10,
        volume_per_month=44,
        stages=[
            ProcessStage(id="intake", avg_duration=1, min_duration=1, max_duration=1),
            ProcessStage(
                id="review", name="Security Review",
                avg_duration=5, min_duration=2, max_duration=12,
                wait_time=15, rework_rate=0.2, drop_off_rate=0.2,
            ),
            ProcessStage(id="handoff", avg_duration=1, min_duration=1, max_duration=1, wait_time=0.1),
        ],
    )


class TestBottleneckScorer:
    """Test the seven-factor stage score."""

    def test_factors_are_clamped(self, dominant_flow):
        """Ratios above one are capped."""
        factors = BottleneckScorer().factors(dominant_flow.stages[1], dominant_flow)

        assert factors.duration_ratio == pytest.approx(0.5)
        assert factors.variability == 1.0
        assert factors.wait_time_ratio == 1.0
        assert factors.utilization == 1.0
        assert factors.queue_length == 1.0
        assert factors.rework == pytest.approx(0.2)

    def test_weighted_score(self, dominant_flow):
        """Score is the weighted sum of the factors."""
        score = BottleneckScorer().score(dominant_flow.stages[1], dominant_flow)
        assert score == pytest.approx(0.675)

    def test_zero_cycle_time(self):
        """A flow without cycle time does not divide by zero."""
        flow = ProcessFlow(id="f", stages=[ProcessStage(id="s", avg_duration=3)])
        factors = BottleneckScorer().factors(flow.stages[0], flow)

        assert factors.duration_ratio == 0.0
        assert factors.utilization == 0.0

    @pytest.mark.parametrize("score,expected", [
        (0.8, Severity.CRITICAL),
        (0.6, Severity.HIGH),
        (0.4, Severity.MEDIUM),
        (0.39, None),
    ])
    def test_severity_bands(self, score, expected):
        """Band lower bounds are inclusive."""
        assert BottleneckScorer().severity(score) == expected


class TestBottleneckDetector:
    """Test detection, root causes and fixes."""

    def test_dominant_stage_found(self, dominant_flow):
        """Only the dominant stage crosses the reporting floor."""
        bottlenecks = BottleneckDetector().analyze([dominant_flow])

        assert len(bottlenecks) == 1
        b = bottlenecks[0]
        assert b.id == "btl-onboarding-review"
        assert b.stage.name == "Security Review"
        assert b.score >= 0.6
        assert b.severity == Severity.HIGH
        assert b.impacted_volume == pytest.approx(44 * 0.4)

    def test_cost_of_delay(self, dominant_flow):
        """Opportunity, holding and rework cost over the stage delay."""
        detector = BottleneckDetector()
        stage = dominant_flow.stages[1]
        breakdown = detector.cost_breakdown(stage, dominant_flow)

        assert breakdown["opportunity"] == pytest.approx(44 * 50_000 * 0.1 / 30 * 20)
        assert breakdown["holding"] == pytest.approx(44 * 100 * 20)
        assert breakdown["rework"] == pytest.approx(0.2 * 44 * 5_000)
        assert detector.cost_of_delay(stage, dominant_flow) == pytest.approx(278_666.67, rel=1e-6)

    def test_root_causes(self, dominant_flow):
        """Every rule that applies is reported, in rule order."""
        causes = BottleneckDetector().identify_root_causes(dominant_flow.stages[1], dominant_flow)

        assert [c.category for c in causes] == [
            RootCauseCategory.RESOURCE_CONSTRAINT,
            RootCauseCategory.VARIABILITY,
            RootCauseCategory.QUALITY_CONTROL,
            RootCauseCategory.DROP_OFF,
            RootCauseCategory.OVER_UTILIZATION,
        ]
        assert "20.0%" in causes[2].description

    def test_unknown_cause_fallback(self):
        """A stage matching no rule gets one generic cause and no fixes."""
        flow = ProcessFlow(id="f", avg_cycle_time=100, volume_per_month=1,
                           stages=[ProcessStage(id="s", avg_duration=1)])
        detector = BottleneckDetector()
        causes = detector.identify_root_causes(flow.stages[0], flow)

        assert [c.category for c in causes] == [RootCauseCategory.UNKNOWN]
        assert detector.generate_fixes(flow.stages[0], flow, causes) == []

    def test_fixes_deduplicated(self, dominant_flow):
        """Wait time and over-utilisation share one resource fix."""
        b = BottleneckDetector().analyze([dominant_flow])[0]
        tags = [fix.tag for fix in b.recommended_fixes]

        assert tags == [
            FixType.RESOURCE_REALLOCATION.value,
            FixType.PROCESS_STANDARDIZATION.value,
            FixType.QUALITY_GATING.value,
            FixType.ENGAGEMENT_RETENTION.value,
        ]
        assert all(fix.status is RecommendationStatus.PROPOSED for fix in b.recommended_fixes)
        assert all(0 <= fix.confidence <= 1 for fix in b.recommended_fixes)

    def test_ordered_by_cost(self, dominant_flow):
        """Bottlenecks from several flows are ranked by cost of delay."""
        bottlenecks = detect_bottlenecks([generate_sample_process_flow(), dominant_flow])
        costs = [b.cost_of_delay for b in bottlenecks]

        assert costs == sorted(costs, reverse=True)
        assert bottlenecks[0].flow_id == "onboarding"

    def test_sample_flow(self):
        """The demo flow ranks negotiation first."""
        bottlenecks = detect_bottlenecks([generate_sample_process_flow()])

        assert bottlenecks
        assert bottlenecks[0].stage.id == "negotiation"
        assert all(b.score >= 0.4 for b in bottlenecks)

    def test_empty_inputs(self):
        """No flows or no stages give no bottlenecks."""
        assert detect_bottlenecks([]) == []
        assert detect_bottlenecks([ProcessFlow(id="empty")]) == []

    def test_to_frame(self, dominant_flow):
        """Summary table has one row per bottleneck."""
        bottlenecks = BottleneckDetector().analyze([dominant_flow])
        df = BottleneckDetector.to_frame(bottlenecks)

        assert len(df) == 1
        assert df.iloc[0]["severity"] == "high"
        assert df.iloc[0]["n_fixes"] == 4
