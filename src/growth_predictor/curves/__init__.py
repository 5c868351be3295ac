"""
Response curve layer for Growth Predictor.

Fits per-channel spend -> return curves from performance history.
"""

from growth_predictor.curves.model import EfficiencyCurve, ResponseCurveModel

__all__ = [
    "EfficiencyCurve",
    "ResponseCurveModel",
]
