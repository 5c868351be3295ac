"""
Canonical input contracts for Growth Predictor.

These Pydantic models define every data boundary the engine accepts:
process telemetry, marketing channels, channel performance history and
the business constraints a plan must respect.

Design principles:
  - Inputs are immutable snapshots (frozen models) for one analysis run.
  - Malformed telemetry is repaired, not rejected: NaN, None and negative
    numbers become 0, rates are clamped to [0, 1], and stage durations
    are widened so that min <= avg <= max.
  - Money amounts are floats in the currency of the caller.
  - Durations are in days.
"""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------

def finite_non_negative(value: Any) -> float:
    """Coerce ``value`` to a finite float >= 0, defaulting to 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number) or number < 0:
        return 0.0
    return number


def clamp_rate(value: Any) -> float:
    """Coerce ``value`` to a rate in [0, 1]."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number):
        return 0.0
    return min(1.0, max(0.0, number))


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class ChannelType(str, Enum):
    PAID = "paid"
    OWNED = "owned"
    EARNED = "earned"


class AttributionModel(str, Enum):
    LAST_TOUCH = "last_touch"
    FIRST_TOUCH = "first_touch"
    LINEAR = "linear"
    DECAY = "decay"
    DATA_DRIVEN = "data_driven"


class Objective(str, Enum):
    MAXIMIZE_ROI = "maximize_roi"
    MAXIMIZE_VOLUME = "maximize_volume"
    MINIMIZE_CAC = "minimize_cac"
    BALANCED_GROWTH = "balanced_growth"


class PacingPolicy(str, Enum):
    LINEAR = "linear"
    FRONT_LOADED = "front_loaded"
    BACK_LOADED = "back_loaded"


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ---------------------------------------------------------------------------
# Shared value objects
# ---------------------------------------------------------------------------

class DateRange(BaseModel):
    """Inclusive reporting window."""

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @property
    def days(self) -> float:
        return max(0.0, (self.end - self.start).total_seconds() / 86400)


# ---------------------------------------------------------------------------
# Process telemetry
# ---------------------------------------------------------------------------

class ProcessStage(BaseModel):
    """One step of a process flow, with timing and quality telemetry."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str = ""
    avg_duration: float = 0.0
    min_duration: float = 0.0
    max_duration: float = 0.0
    wait_time: float = 0.0
    rework_rate: float = 0.0
    drop_off_rate: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def _bracket_durations(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        avg = finite_non_negative(data.get("avg_duration"))
        low = finite_non_negative(data.get("min_duration"))
        high = finite_non_negative(data.get("max_duration", avg))
        data["avg_duration"] = avg
        data["min_duration"] = min(low, avg)
        data["max_duration"] = max(high, avg)
        if not data.get("name"):
            data["name"] = str(data.get("id", ""))
        return data

    @field_validator("wait_time", mode="before")
    @classmethod
    def _non_negative(cls, value: Any) -> float:
        return finite_non_negative(value)

    @field_validator("rework_rate", "drop_off_rate", mode="before")
    @classmethod
    def _rate(cls, value: Any) -> float:
        return clamp_rate(value)


class ProcessFlow(BaseModel):
    """A named pipeline of ordered stages (e.g. lead-to-delivery)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str = ""
    stages: list[ProcessStage] = Field(default_factory=list)
    avg_cycle_time: float = 0.0
    volume_per_month: float = 0.0

    @field_validator("avg_cycle_time", "volume_per_month", mode="before")
    @classmethod
    def _non_negative(cls, value: Any) -> float:
        return finite_non_negative(value)


# ---------------------------------------------------------------------------
# Marketing inputs
# ---------------------------------------------------------------------------

class MarketingChannel(BaseModel):
    """One acquisition channel at its current operating point."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str = ""
    type: ChannelType = ChannelType.PAID
    current_spend: float = 0.0
    current_roi: float = 0.0
    saturation_point: float = 0.0
    min_effective_spend: float = 0.0
    max_recommended_spend: float | None = None
    incremental_cac: float = 0.0
    attribution_model: AttributionModel = AttributionModel.DATA_DRIVEN

    @field_validator(
        "current_spend",
        "current_roi",
        "saturation_point",
        "min_effective_spend",
        "incremental_cac",
        mode="before",
    )
    @classmethod
    def _non_negative(cls, value: Any) -> float:
        return finite_non_negative(value)

    @field_validator("max_recommended_spend", mode="before")
    @classmethod
    def _optional_non_negative(cls, value: Any) -> float | None:
        if value is None:
            return None
        return finite_non_negative(value)


class ChannelPerformance(BaseModel):
    """One period of observed channel performance (append-only history)."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    channel_id: str
    period: DateRange | None = None
    spend: float = 0.0
    impressions: float = 0.0
    clicks: float = 0.0
    leads: float = 0.0
    conversions: float = 0.0
    revenue: float = 0.0

    @field_validator(
        "spend", "impressions", "clicks", "leads", "conversions", "revenue",
        mode="before",
    )
    @classmethod
    def _non_negative(cls, value: Any) -> float:
        return finite_non_negative(value)


# ---------------------------------------------------------------------------
# Constraints
# ---------------------------------------------------------------------------

class DailyCapacity(BaseModel):
    """Maximum daily workload the commercial team can absorb."""

    model_config = ConfigDict(frozen=True)

    cpq_proposals: float = Field(default=10.0, description="Max CPQ proposals per day")
    meetings: float = Field(default=8.0, description="Max meetings per day")
    implementations: float = Field(default=3.0, description="Max concurrent projects")


class BusinessConstraints(BaseModel):
    """
    Guardrail configuration supplied by the caller for one run.

    ``platform_minimums`` / ``platform_maximums`` map channel id to spend;
    concentration and diversity ratios are fractions of the plan budget.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    max_daily_capacity: DailyCapacity = Field(default_factory=DailyCapacity)
    max_channel_change_rate: float = Field(default=0.3, ge=0)
    min_channel_stability: int = Field(default=7, ge=0, description="Days before major changes")
    monthly_pacing: PacingPolicy = PacingPolicy.LINEAR
    platform_minimums: dict[str, float] = Field(default_factory=dict)
    platform_maximums: dict[str, float] = Field(default_factory=dict)
    max_channel_concentration: float = Field(default=0.5, gt=0, le=1)
    min_active_channels: int = Field(default=3, ge=0)
    diversity_ratio: float = Field(default=0.0, ge=0, le=1)


class SpendConstraints(BaseModel):
    """Optimizer-side bounds on individual channels."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    min_spend: dict[str, float] = Field(default_factory=dict)
    max_spend: dict[str, float] = Field(default_factory=dict)
    mandatory_channels: list[str] = Field(default_factory=list)
    excluded_channels: list[str] = Field(default_factory=list)
    min_roi: float | None = None
    max_channel_concentration: float | None = Field(default=None, gt=0, le=1)

    @classmethod
    def from_business_constraints(cls, constraints: BusinessConstraints) -> "SpendConstraints":
        """Derive optimizer bounds from the guardrail configuration."""
        return cls(
            min_spend=dict(constraints.platform_minimums),
            max_spend=dict(constraints.platform_maximums),
            max_channel_concentration=constraints.max_channel_concentration,
        )

    def is_excluded(self, channel_id: str) -> bool:
        return channel_id in self.excluded_channels and channel_id not in self.mandatory_channels
