"""
Configuration management for Growth Predictor.

Centralised configuration with YAML loading, environment variable
overrides, and sensible defaults.  The economic assumptions that price
delays and leads live here instead of inside the engine so they can be
overridden per deployment and in tests.

Components receive their section explicitly; nothing in the engine
reads a module-level config.
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

from growth_predictor.core.exceptions import ConfigurationError


CURVE_MODES = ("hill", "exponential")


# ---------------------------------------------------------------------------
# Section configs
# ---------------------------------------------------------------------------

class EconomicAssumptions(BaseModel):
    """Business constants used to price leads, delays and rework."""

    avg_deal_value: float = Field(default=50_000.0, gt=0)
    cost_per_lead: float = Field(default=500.0, gt=0)
    lead_conversion_rate: float = Field(default=0.15, ge=0, le=1)
    repair_conversion_rate: float = Field(
        default=0.10, ge=0, le=1, description="Conversion rate of the linear repair model",
    )
    opportunity_cost_rate: float = Field(default=0.10, ge=0, description="Share of deal value lost to delay")
    holding_cost_per_day: float = Field(default=100.0, ge=0, description="Per unit, per day")
    rework_cost: float = Field(default=5_000.0, ge=0, description="Per reworked unit")
    days_per_month: float = Field(default=30.0, gt=0)


class BottleneckConfig(BaseModel):
    """Scoring weights, severity thresholds and capacity model."""

    critical_threshold: float = Field(default=0.8)
    high_threshold: float = Field(default=0.6)
    medium_threshold: float = Field(default=0.4)

    weights: dict[str, float] = Field(
        default_factory=lambda: {
            "duration_ratio": 0.25,
            "variability": 0.15,
            "wait_time_ratio": 0.15,
            "rework": 0.15,
            "drop_off": 0.10,
            "utilization": 0.10,
            "queue_length": 0.10,
        }
    )

    workdays_per_month: float = Field(default=22.0, gt=0)
    hours_per_day: float = Field(default=8.0, gt=0)
    assumed_workers: float = Field(default=2.0, gt=0)

    # Root-cause rules
    long_stage_ratio: float = Field(default=0.3, description="Stage share of cycle time")
    wait_ratio: float = Field(default=0.5)
    variability_multiple: float = Field(default=2.0)
    rework_threshold: float = Field(default=0.15)
    drop_off_threshold: float = Field(default=0.10)
    utilization_threshold: float = Field(default=0.85)


class OptimizationConfig(BaseModel):
    """Spend optimiser settings."""

    curve_mode: str = Field(default="hill", description="Response curve: hill, exponential")
    min_history_points: int = Field(default=3, ge=1)
    default_beta: float = Field(default=0.7, gt=0)
    saturation_drop: float = Field(default=0.2, description="Efficiency drop marking saturation")
    saturation_extrapolation: float = Field(default=1.5)
    marginal_delta_pct: float = Field(default=0.01, gt=0)

    min_marginal_roi: float = Field(default=1.5)
    max_iterations: int = Field(default=100, ge=0)
    increment_remaining_pct: float = Field(default=0.10, gt=0)
    increment_budget_pct: float = Field(default=0.02, gt=0)
    stop_remaining_pct: float = Field(default=0.01, ge=0)
    max_channel_share: float = Field(default=0.5, gt=0, le=1)

    balanced_floor_pct: float = Field(default=0.05, ge=0)
    balanced_ceiling_pct: float = Field(default=0.40, gt=0, le=1)
    balanced_min_channels: int = Field(default=3, ge=0)

    monte_carlo_runs: int = Field(default=1000, ge=1)
    confidence_level: float = Field(default=0.95, gt=0, lt=1)
    perturbation: float = Field(default=0.2, ge=0, lt=1, description="Uniform +/- ROI noise")
    random_seed: int | None = Field(default=None)

    @field_validator("curve_mode")
    @classmethod
    def _known_mode(cls, value: str) -> str:
        mode = value.lower()
        if mode not in CURVE_MODES:
            raise ValueError(f"Unknown curve mode: {value} (expected one of {CURVE_MODES})")
        return mode


class GuardrailConfig(BaseModel):
    """Guardrail validator settings."""

    pacing_tolerance: float = Field(default=0.2, ge=0)
    lead_to_proposal_rate: float = Field(default=0.5, ge=0)
    lead_to_meeting_rate: float = Field(default=0.3, ge=0)
    implementation_load_per_immediate_action: float = Field(default=0.5, ge=0)
    max_alternatives: int = Field(default=3, ge=0)
    outsourcing_revenue_threshold: float = Field(default=100_000.0)


class AuditConfig(BaseModel):
    """Decision log settings."""

    retention_days: int = Field(default=365, ge=1)
    success_threshold: float = Field(
        default=0.7, ge=0, description="Share of expected impact that counts as a hit",
    )
    confidence_prior_weight: float = Field(default=0.5, ge=0, le=1)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")


# ---------------------------------------------------------------------------
# Root config
# ---------------------------------------------------------------------------

class GrowthPredictorConfig(BaseModel):
    """Root configuration for Growth Predictor."""

    project_name: str = Field(default="Growth Predictor")
    environment: str = Field(default="development")

    economics: EconomicAssumptions = Field(default_factory=EconomicAssumptions)
    bottleneck: BottleneckConfig = Field(default_factory=BottleneckConfig)
    optimization: OptimizationConfig = Field(default_factory=OptimizationConfig)
    guardrails: GuardrailConfig = Field(default_factory=GuardrailConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "GrowthPredictorConfig":
        """Load config from a YAML file."""
        with open(Path(path)) as f:
            data = yaml.safe_load(f) or {}
        try:
            return cls(**data)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid config in {path}: {exc}") from exc

    def to_yaml(self, path: Path | str) -> None:
        """Write config to a YAML file."""
        with open(Path(path), "w") as f:
            yaml.dump(self.model_dump(), f, default_flow_style=False, sort_keys=False)


def _apply_env_overrides(config: GrowthPredictorConfig) -> GrowthPredictorConfig:
    mode = os.environ.get("GROWTH_PREDICTOR_CURVE_MODE")
    level = os.environ.get("GROWTH_PREDICTOR_LOG_LEVEL")
    if not mode and not level:
        return config

    data = config.model_dump()
    if mode:
        data["optimization"]["curve_mode"] = mode
    if level:
        data["logging"]["level"] = level.upper()
    try:
        return GrowthPredictorConfig(**data)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid environment override: {exc}") from exc


def load_config(path: Path | str | None = None) -> GrowthPredictorConfig:
    """
    Load config from file, falling back to standard locations, then defaults.

    Environment variables ``GROWTH_PREDICTOR_CURVE_MODE`` and
    ``GROWTH_PREDICTOR_LOG_LEVEL`` override the file.
    """
    if path is not None:
        config = GrowthPredictorConfig.from_yaml(path)
    else:
        for candidate in [Path("config.yaml"), Path("config/config.yaml")]:
            if candidate.exists():
                config = GrowthPredictorConfig.from_yaml(candidate)
                break
        else:
            config = GrowthPredictorConfig()

    return _apply_env_overrides(config)
