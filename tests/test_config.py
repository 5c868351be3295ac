"""Tests for configuration loading."""

import pytest

from growth_predictor.config import GrowthPredictorConfig, load_config
from growth_predictor.core.exceptions import ConfigurationError


class TestConfig:
    """Test YAML config and environment overrides."""

    def test_defaults(self):
        cfg = GrowthPredictorConfig()

        assert cfg.economics.avg_deal_value == 50_000
        assert cfg.optimization.curve_mode == "hill"
        assert cfg.bottleneck.medium_threshold == 0.4
        assert cfg.audit.success_threshold == 0.7

    def test_yaml_round_trip(self, tmp_path):
        cfg = GrowthPredictorConfig()
        cfg.optimization.monte_carlo_runs = 250
        path = tmp_path / "config.yaml"

        cfg.to_yaml(path)
        loaded = GrowthPredictorConfig.from_yaml(path)

        assert loaded.optimization.monte_carlo_runs == 250
        assert loaded == cfg

    def test_partial_yaml(self, tmp_path):
        """Missing sections fall back to defaults."""
        path = tmp_path / "config.yaml"
        path.write_text("economics:\n  avg_deal_value: 20000\n")

        cfg = load_config(path)

        assert cfg.economics.avg_deal_value == 20_000
        assert cfg.economics.cost_per_lead == 500

    def test_invalid_yaml_value(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("optimization:\n  curve_mode: logistic\n")

        with pytest.raises(ConfigurationError):
            load_config(path)

    def test_env_overrides(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GROWTH_PREDICTOR_CURVE_MODE", "exponential")
        monkeypatch.setenv("GROWTH_PREDICTOR_LOG_LEVEL", "debug")
        monkeypatch.chdir(tmp_path)

        cfg = load_config()

        assert cfg.optimization.curve_mode == "exponential"
        assert cfg.logging.level == "DEBUG"

    def test_invalid_env_override(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GROWTH_PREDICTOR_CURVE_MODE", "spline")
        monkeypatch.chdir(tmp_path)

        with pytest.raises(ConfigurationError):
            load_config()
