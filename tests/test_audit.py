"""Tests for the recommendation lifecycle and decision audit log."""

from datetime import datetime, timedelta, timezone

import pytest

from growth_predictor.audit import AuditAction, AuditLogger, DecisionSink, weight_confidence
from growth_predictor.config import AuditConfig
from growth_predictor.core.exceptions import DataValidationError, InvalidStatusTransitionError
from growth_predictor.core.recommendations import (
    ImpactEstimate,
    MetricDelta,
    Recommendation,
    RecommendationStatus,
)


def make_recommendation(tag="quality_gating", revenue=100_000.0, confidence=0.8):
    return Recommendation(
        title=f"{tag} fix",
        executive_summary="",
        rationale="",
        expected_impact=ImpactEstimate(
            time_to_impact=30,
            sustainability_months=12,
            revenue=MetricDelta.from_values(0, revenue, "USD"),
        ),
        confidence=confidence,
        tag=tag,
        priority=2,
    )


def realised(revenue, days=20):
    return ImpactEstimate(
        time_to_impact=days,
        sustainability_months=12,
        revenue=MetricDelta.from_values(0, revenue, "USD"),
    )


class TestMetricDelta:
    """Test baseline -> target deltas."""

    def test_from_values(self):
        delta = MetricDelta.from_values(10, 6, "days")

        assert delta.delta == -4
        assert delta.delta_percent == pytest.approx(-40)

    def test_zero_baseline(self):
        """A zero baseline has no percentage change."""
        assert MetricDelta.from_values(0, 5, "USD").delta_percent == 0.0


class TestRecommendationLifecycle:
    """Test the status state machine."""

    def test_happy_path(self):
        rec = make_recommendation()
        assert rec.status is RecommendationStatus.PROPOSED

        rec.transition("accepted")
        assert rec.decided_at is not None
        rec.transition(RecommendationStatus.IN_PROGRESS)
        rec.transition(RecommendationStatus.MEASURED)

        assert rec.is_terminal

    def test_deferred_can_be_accepted(self):
        rec = make_recommendation()
        rec.transition("deferred")

        assert rec.can_transition("accepted")
        assert not rec.can_transition("in_progress")

    @pytest.mark.parametrize("path", [
        ["in_progress"],
        ["rejected", "accepted"],
        ["accepted", "completed"],
    ])
    def test_illegal_transitions(self, path):
        rec = make_recommendation()
        *legal, illegal = path
        for status in legal:
            rec.transition(status)

        with pytest.raises(InvalidStatusTransitionError):
            rec.transition(illegal)

    def test_status_assignment_is_validated(self):
        """Assigning status follows the same lifecycle rules as transition()."""
        rec = make_recommendation()

        with pytest.raises(InvalidStatusTransitionError):
            rec.status = RecommendationStatus.COMPLETED
        assert rec.status is RecommendationStatus.PROPOSED

        rec.status = "accepted"
        assert rec.status is RecommendationStatus.ACCEPTED
        assert rec.decided_at is not None

    def test_terminal_status_cannot_be_reopened(self):
        rec = make_recommendation()
        rec.transition("rejected")

        with pytest.raises(InvalidStatusTransitionError):
            rec.status = RecommendationStatus.PROPOSED
        assert rec.status is RecommendationStatus.REJECTED

    def test_status_not_an_init_argument(self):
        """New recommendations always start as proposed."""
        with pytest.raises(TypeError):
            Recommendation(
                title="", executive_summary="", rationale="",
                expected_impact=ImpactEstimate(time_to_impact=0, sustainability_months=0),
                confidence=0.5, status="completed",
            )

    def test_weighted_copy_keeps_lifecycle(self):
        rec = make_recommendation(confidence=0.8)
        rec.transition("deferred")

        weighted = rec.with_display_confidence(0.4)

        assert weighted is not rec
        assert weighted.status is RecommendationStatus.DEFERRED
        assert weighted.id == rec.id
        assert weighted.display_confidence == 0.4
        assert rec.display_confidence is None

    def test_confidence_and_priority_clamped(self):
        rec = Recommendation(
            title="", executive_summary="", rationale="",
            expected_impact=ImpactEstimate(time_to_impact=0, sustainability_months=0),
            confidence=1.4, priority=9,
        )

        assert rec.confidence == 1.0
        assert rec.priority == 5


class TestAuditLogger:
    """Test decision logging and summaries."""

    def test_is_decision_sink(self):
        assert isinstance(AuditLogger(), DecisionSink)

    def test_log_moves_status(self):
        audit = AuditLogger(session_id="s1")
        rec = make_recommendation()

        entry = audit.log_decision("u1", "Sam", "accept", rec, reasoning="Quick win")

        assert rec.status is RecommendationStatus.ACCEPTED
        assert entry.tags == ["quality_gating", "priority-2", "accepted"]
        assert entry.tag == "quality_gating"
        assert entry.session_id == "s1"
        assert len(audit) == 1

    def test_illegal_decision_not_logged(self):
        audit = AuditLogger()
        rec = make_recommendation()
        audit.log_decision("u1", "Sam", "reject", rec)

        with pytest.raises(InvalidStatusTransitionError):
            audit.log_decision("u1", "Sam", "accept", rec)
        assert len(audit) == 1

    def test_view_does_not_move_status(self):
        audit = AuditLogger()
        rec = make_recommendation()
        audit.log_decision("u1", "Sam", AuditAction.VIEW, rec)

        assert rec.status is RecommendationStatus.PROPOSED

    def test_record_outcome_requires_acceptance(self):
        audit = AuditLogger()
        rec = make_recommendation()

        with pytest.raises(DataValidationError):
            audit.record_outcome(rec.id, realised(50_000))

    def test_variance(self):
        audit = AuditLogger()
        rec = make_recommendation(revenue=100_000)
        audit.log_decision("u1", "Sam", "accept", rec)

        entry = audit.record_outcome(rec.id, realised(80_000))

        assert entry.variance == pytest.approx(-20)

    def test_batting_average(self):
        """Hits reach 70% of expected revenue; rejected items do not count."""
        audit = AuditLogger()
        hit, miss, pending = (make_recommendation() for _ in range(3))
        other = make_recommendation(tag="resource_reallocation")

        for rec in (hit, miss, pending, other):
            audit.log_decision("u1", "Sam", "accept", rec)
        audit.log_decision("u2", "Lee", "reject", make_recommendation())

        audit.record_outcome(hit.id, realised(75_000))
        audit.record_outcome(miss.id, realised(69_000))
        audit.record_outcome(other.id, realised(150_000))

        summary = audit.get_summary()

        assert summary.batting_average == pytest.approx({
            "quality_gating": 1 / 3,
            "resource_reallocation": 1.0,
        })
        assert summary.total_decisions == 5
        assert summary.acceptance_rate == pytest.approx(0.8)
        assert summary.avg_time_to_value == pytest.approx(20)
        assert summary.impact_realized["revenue"] == pytest.approx(294_000)
        assert summary.top_decision_makers[0] == {"user_id": "u1", "user_name": "Sam", "decisions": 4}

    def test_time_to_decision(self):
        audit = AuditLogger()
        rec = make_recommendation()
        start = datetime.now(timezone.utc) - timedelta(hours=5)

        audit.log_decision("u1", "Sam", "view", rec, when=start)
        audit.log_decision("u1", "Sam", "accept", rec, when=start + timedelta(hours=3))

        assert audit.get_summary().avg_time_to_decision == pytest.approx(3)

    def test_summary_window(self):
        audit = AuditLogger()
        now = datetime.now(timezone.utc)
        audit.log_decision("u1", "Sam", "accept", make_recommendation(), when=now - timedelta(days=10))
        audit.log_decision("u1", "Sam", "accept", make_recommendation(), when=now)

        summary = audit.get_summary(start=now - timedelta(days=1))
        assert summary.total_decisions == 1

    def test_retention(self):
        """Entries older than the retention window are pruned."""
        audit = AuditLogger(AuditConfig(retention_days=30))
        old = datetime.now(timezone.utc) - timedelta(days=45)

        audit.log_decision("u1", "Sam", "view", make_recommendation(), when=old)
        assert len(audit) == 0

    def test_history_newest_first(self):
        audit = AuditLogger()
        rec = make_recommendation()
        start = datetime.now(timezone.utc) - timedelta(hours=2)
        audit.log_decision("u1", "Sam", "view", rec, when=start)
        audit.log_decision("u1", "Sam", "defer", rec, when=start + timedelta(hours=1))

        history = audit.get_history(rec.id)
        assert [e.action for e in history] == [AuditAction.DEFER, AuditAction.VIEW]

    def test_export_csv(self, tmp_path):
        audit = AuditLogger()
        audit.log_decision("u1", "Sam", "accept", make_recommendation(), reasoning="Clear ROI")
        path = tmp_path / "audit" / "log.csv"

        csv = audit.export_csv(path)

        assert path.read_text() == csv
        assert csv.splitlines()[0].startswith("timestamp,user,action")
        assert "Clear ROI" in csv


class TestWeightConfidence:
    """Test blending confidence with the batting average."""

    def test_without_history(self):
        audit = AuditLogger()
        rec = make_recommendation(confidence=0.8)

        assert weight_confidence(rec, audit.get_summary()) == pytest.approx(0.8)
        assert rec.display_confidence is None

    def test_with_history(self):
        audit = AuditLogger()
        past = make_recommendation()
        audit.log_decision("u1", "Sam", "accept", past)
        audit.record_outcome(past.id, realised(10_000))

        rec = make_recommendation(confidence=0.8)
        display = weight_confidence(rec, audit.get_summary())

        assert display == pytest.approx(0.4)
        assert rec.confidence == pytest.approx(0.8)
