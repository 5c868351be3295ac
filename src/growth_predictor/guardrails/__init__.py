"""
Business guardrails for Growth Predictor.
"""

from growth_predictor.guardrails.validator import (
    GuardrailViolation,
    GuardrailsValidator,
    InfeasibleRecommendation,
    RecommendationCheck,
    ValidationResult,
    ViolationType,
    WorkloadSnapshot,
)

__all__ = [
    "GuardrailViolation",
    "GuardrailsValidator",
    "InfeasibleRecommendation",
    "RecommendationCheck",
    "ValidationResult",
    "ViolationType",
    "WorkloadSnapshot",
]
