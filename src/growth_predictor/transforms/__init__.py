"""
Response curve transforms for Growth Predictor.

Vectorised spend -> return functions with diminishing returns.
"""

from growth_predictor.transforms.response import (
    RESPONSE_FUNCTIONS,
    evaluate_response,
    exponential_response,
    finite_difference_marginal,
    hill_response,
)

__all__ = [
    "RESPONSE_FUNCTIONS",
    "evaluate_response",
    "exponential_response",
    "finite_difference_marginal",
    "hill_response",
]
