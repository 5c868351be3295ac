"""Tests for data ingestion."""

import json

import pandas as pd
import pytest
import yaml

from growth_predictor.core.contracts import ChannelPerformance, DateRange, PacingPolicy
from growth_predictor.core.exceptions import IngestionError
from growth_predictor.ingestion import (
    history_from_frame,
    load_business_constraints,
    load_channels,
    load_performance_history,
    load_process_flows,
    load_spend_map,
    performance_frame,
)


class TestPerformanceHistory:
    """Test loading channel performance tables."""

    def test_csv_round_trip(self, tmp_path):
        history = [
            ChannelPerformance(
                channel_id="search",
                period=DateRange(start="2024-01-01", end="2024-01-31"),
                spend=8_000, leads=40, conversions=6, revenue=300_000,
            ),
            ChannelPerformance(channel_id="social", spend=5_000, leads=20),
        ]
        path = tmp_path / "history.csv"
        performance_frame(history).to_csv(path, index=False)

        loaded = load_performance_history(path)

        assert [h.channel_id for h in loaded] == ["search", "social"]
        assert loaded[0].spend == 8_000
        assert loaded[0].period.days == pytest.approx(30)
        assert loaded[1].period is None
        assert loaded[1].conversions == 0.0

    def test_bad_values_repaired(self):
        """Negative and missing numbers become zero."""
        df = pd.DataFrame({
            "channel_id": ["a", "b"],
            "spend": [-100.0, None],
            "leads": [5, None],
        })

        history = history_from_frame(df)

        assert [h.spend for h in history] == [0.0, 0.0]
        assert history[1].leads == 0.0

    def test_missing_column(self):
        with pytest.raises(IngestionError):
            history_from_frame(pd.DataFrame({"channel_id": ["a"]}))

    def test_missing_file(self, tmp_path):
        with pytest.raises(IngestionError):
            load_performance_history(tmp_path / "nope.csv")

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "history.xlsx"
        path.write_text("")

        with pytest.raises(IngestionError):
            load_performance_history(path)


class TestProcessFlows:
    """Test loading process flows from documents and tables."""

    def test_json_document(self, tmp_path):
        path = tmp_path / "flows.json"
        path.write_text(json.dumps({"flows": [{
            "id": "sales",
            "avg_cycle_time": 21,
            "volume_per_month": 50,
            "stages": [{"id": "negotiation", "avg_duration": 7, "max_duration": 3}],
        }]}))

        flows = load_process_flows(path)

        assert flows[0].stages[0].name == "negotiation"
        assert flows[0].stages[0].max_duration == 7

    def test_stage_table(self, tmp_path):
        """Rows are grouped by flow, keeping stage order."""
        path = tmp_path / "stages.csv"
        pd.DataFrame({
            "flow_id": ["sales", "sales", "support"],
            "flow_name": ["Sales", "Sales", "Support"],
            "avg_cycle_time": [21, 21, 5],
            "volume_per_month": [50, 50, 200],
            "stage_id": ["proposal", "negotiation", "triage"],
            "avg_duration": [5, 7, 1],
            "wait_time": [2, 3, None],
            "rework_rate": [0.25, 1.5, 0.0],
        }).to_csv(path, index=False)

        flows = load_process_flows(path)

        assert [f.id for f in flows] == ["sales", "support"]
        assert flows[0].name == "Sales"
        assert flows[1].name == "Support"
        assert [s.id for s in flows[0].stages] == ["proposal", "negotiation"]
        assert flows[0].stages[1].rework_rate == 1.0
        assert flows[1].stages[0].wait_time == 0.0

    def test_invalid_document(self, tmp_path):
        path = tmp_path / "flows.yaml"
        path.write_text("flows:\n  - name: no id\n")

        with pytest.raises(IngestionError):
            load_process_flows(path)


class TestDocuments:
    """Test channels, constraints and spend maps."""

    def test_channels_yaml(self, tmp_path):
        path = tmp_path / "channels.yaml"
        path.write_text(yaml.safe_dump({"channels": [
            {"id": "search", "type": "paid", "current_spend": 8000, "current_roi": 2.0},
            {"id": "content", "type": "owned", "current_spend": -5},
        ]}))

        channels = load_channels(path)

        assert [c.id for c in channels] == ["search", "content"]
        assert channels[1].current_spend == 0.0

    def test_business_constraints(self, tmp_path):
        path = tmp_path / "constraints.yaml"
        path.write_text(yaml.safe_dump({
            "monthly_pacing": "back_loaded",
            "platform_minimums": {"search": 1000},
            "max_daily_capacity": {"cpq_proposals": 12},
        }))

        constraints = load_business_constraints(path)

        assert constraints.monthly_pacing is PacingPolicy.BACK_LOADED
        assert constraints.platform_minimums == {"search": 1000}
        assert constraints.max_daily_capacity.cpq_proposals == 12
        assert constraints.max_daily_capacity.meetings == 8

    def test_invalid_constraints(self, tmp_path):
        path = tmp_path / "constraints.json"
        path.write_text(json.dumps({"monthly_pacing": "sideways"}))

        with pytest.raises(IngestionError):
            load_business_constraints(path)

    def test_spend_map(self, tmp_path):
        path = tmp_path / "spend.json"
        path.write_text(json.dumps({"search": 8000, "social": "bad"}))

        assert load_spend_map(path) == {"search": 8000.0, "social": 0.0}
