"""
Core module for Growth Predictor.

Provides the canonical input contracts, the shared recommendation model
and the exception types used by every engine component.
"""

from growth_predictor.core.contracts import (
    BusinessConstraints,
    ChannelPerformance,
    ChannelType,
    DailyCapacity,
    DateRange,
    MarketingChannel,
    Objective,
    PacingPolicy,
    ProcessFlow,
    ProcessStage,
    Severity,
    SpendConstraints,
)
from growth_predictor.core.recommendations import (
    Action,
    ImpactEstimate,
    MetricDelta,
    Recommendation,
    RecommendationStatus,
    RiskFactor,
)
from growth_predictor.core.exceptions import (
    ConfigurationError,
    DataValidationError,
    GrowthPredictorError,
    IngestionError,
    InvalidStatusTransitionError,
)

__all__ = [
    "BusinessConstraints",
    "ChannelPerformance",
    "ChannelType",
    "DailyCapacity",
    "DateRange",
    "MarketingChannel",
    "Objective",
    "PacingPolicy",
    "ProcessFlow",
    "ProcessStage",
    "Severity",
    "SpendConstraints",
    "Action",
    "ImpactEstimate",
    "MetricDelta",
    "Recommendation",
    "RecommendationStatus",
    "RiskFactor",
    "ConfigurationError",
    "DataValidationError",
    "GrowthPredictorError",
    "IngestionError",
    "InvalidStatusTransitionError",
]
