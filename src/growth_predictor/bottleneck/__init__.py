"""
Bottleneck detection for Growth Predictor.

Scores process stages, explains them with root causes and attaches
templated fixes.
"""

from growth_predictor.bottleneck.detector import (
    Bottleneck,
    BottleneckDetector,
    RootCause,
    RootCauseCategory,
    generate_sample_process_flow,
)
from growth_predictor.bottleneck.fixes import FixType
from growth_predictor.bottleneck.scoring import BottleneckScorer, StageFactors

__all__ = [
    "Bottleneck",
    "BottleneckDetector",
    "BottleneckScorer",
    "FixType",
    "RootCause",
    "RootCauseCategory",
    "StageFactors",
    "generate_sample_process_flow",
]
