"""Tests for the end-to-end decision engine and CLI."""

import json

from typer.testing import CliRunner

from growth_predictor import DecisionEngine
from growth_predictor.audit import AuditLogger
from growth_predictor.bottleneck import generate_sample_process_flow
from growth_predictor.cli import app
from growth_predictor.config import GrowthPredictorConfig
from growth_predictor.core.contracts import BusinessConstraints
from growth_predictor.core.recommendations import ImpactEstimate, MetricDelta


class TestDecisionEngine:
    """Test the detect -> optimise -> validate pipeline."""

    def test_full_run(self, channels, history):
        report = DecisionEngine().run(
            flows=[generate_sample_process_flow()],
            channels=channels,
            history=history,
            total_budget=20_000,
        )

        assert report.bottlenecks[0].stage.id == "negotiation"
        assert report.plan is not None
        assert report.validation is not None
        assert report.final_plan.total_allocated <= 20_000 + 1e-6
        assert report.recommendation_check is not None
        checked = len(report.recommendation_check.feasible) + len(report.recommendation_check.infeasible)
        assert checked == len(report.recommendations)

    def test_budget_defaults_to_current_spend(self, channels, history):
        report = DecisionEngine().run(channels=channels, history=history)

        assert report.plan.total_budget == 18_000
        assert report.bottlenecks == []
        assert report.recommendation_check is None

    def test_invalid_plan_uses_adjusted(self, channels, history):
        """The final plan is the repaired one when validation fails."""
        constraints = BusinessConstraints(platform_minimums={"a": 15_000, "b": 15_000})
        report = DecisionEngine(constraints=constraints).run(
            channels=channels, history=history, total_budget=20_000,
        )

        assert not report.validation.valid
        assert report.final_plan is report.validation.adjusted_plan
        assert report.final_plan.amounts() == {"a": 10_000, "b": 10_000}
        assert report.validation.adjusted_valid is False

    def test_confidence_weighted_by_audit(self):
        """Displayed confidence drops for a tag that has missed before."""
        audit = AuditLogger()
        engine = DecisionEngine(audit=audit)

        first = engine.run(flows=[generate_sample_process_flow()])
        past = first.recommendations[0]
        audit.log_decision("u1", "Sam", "accept", past)
        audit.record_outcome(past.id, ImpactEstimate(
            time_to_impact=30, sustainability_months=6,
            revenue=MetricDelta.from_values(0, 1, "USD"),
        ))

        second = engine.run(flows=[generate_sample_process_flow()])
        same_tag = [r for r in second.recommendations if r.tag == past.tag]

        assert same_tag
        for rec in same_tag:
            assert rec.display_confidence == rec.confidence * 0.5

    def test_weighting_leaves_detector_output_untouched(self):
        """Weighted fixes live on new Bottleneck objects."""
        audit = AuditLogger()
        engine = DecisionEngine(audit=audit)
        bottlenecks = engine.detector.analyze([generate_sample_process_flow()])

        weighted = engine._weight_fixes(bottlenecks, audit.get_summary())

        assert weighted[0] is not bottlenecks[0]
        assert all(r.display_confidence is None for r in bottlenecks[0].recommended_fixes)
        assert [r.display_confidence for r in weighted[0].recommended_fixes] == [
            r.confidence for r in bottlenecks[0].recommended_fixes
        ]

    def test_report_serializes(self, channels, history):
        report = DecisionEngine().run(
            flows=[generate_sample_process_flow()], channels=channels, history=history,
        )
        data = json.loads(json.dumps(report.to_dict(), default=str))

        assert data["final_plan_id"].startswith("spend-plan-")
        assert data["bottlenecks"][0]["severity"] == "medium"


class TestCli:
    """Smoke tests for the command-line interface."""

    def test_demo(self, tmp_path):
        output = tmp_path / "report.json"
        result = CliRunner().invoke(app, ["demo", "--budget", "30000", "--output", str(output)])

        assert result.exit_code == 0, result.output
        report = json.loads(output.read_text())
        assert report["plan"]["total_budget"] == 30_000

    def test_optimize_then_validate(self, tmp_path, channels, history):
        from growth_predictor.ingestion import performance_frame

        channels_path = tmp_path / "channels.json"
        channels_path.write_text(json.dumps({"channels": [c.model_dump(mode="json") for c in channels]}))
        history_path = tmp_path / "history.csv"
        performance_frame(history).to_csv(history_path, index=False)
        plan_path = tmp_path / "plan.json"

        runner = CliRunner()
        result = runner.invoke(app, [
            "optimize", "--budget", "20000", "--channels", str(channels_path),
            "--history", str(history_path), "--objective", "balanced_growth",
            "--output", str(plan_path),
        ])
        assert result.exit_code == 0, result.output
        assert plan_path.with_suffix(".csv").exists()

        config_path = tmp_path / "config.yaml"
        GrowthPredictorConfig().to_yaml(config_path)
        out = tmp_path / "validation.json"
        result = runner.invoke(app, [
            "validate", "--plan", str(plan_path), "--config", str(config_path),
            "--output", str(out),
        ])
        assert result.exit_code == 0, result.output
        assert json.loads(out.read_text())["valid"] is True

    def test_unknown_objective(self, tmp_path, channels, history):
        from growth_predictor.ingestion import performance_frame

        channels_path = tmp_path / "channels.json"
        channels_path.write_text(json.dumps([c.model_dump(mode="json") for c in channels]))
        history_path = tmp_path / "history.csv"
        performance_frame(history).to_csv(history_path, index=False)

        result = CliRunner().invoke(app, [
            "optimize", "--budget", "20000", "--channels", str(channels_path),
            "--history", str(history_path), "--objective", "maximize_fun",
        ])
        assert result.exit_code == 1
