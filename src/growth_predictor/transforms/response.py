"""
Response (diminishing returns) functions for channel spend curves.

Response curves capture the fact that doubling spend doesn't double
return.  Both forms are 0 at zero spend and monotonically
non-decreasing for spend >= 0.
"""

import numpy as np
import pandas as pd


def hill_response(
    spend: np.ndarray | pd.Series | float,
    alpha: float,
    beta: float,
    gamma: float,
) -> np.ndarray:
    """
    Hill-type response curve.

    Formula: R = alpha * S^beta / (gamma + S^beta)

    Args:
        spend: Spend level(s); negative values are treated as 0
        alpha: Ceiling of the response
        beta: Shape parameter (0.5-1.0 typical)
        gamma: Half-saturation constant

    Returns:
        Response values in [0, alpha]

    Example:
        >>> hill_response(np.array([0, 100, 10_000]), alpha=3.0, beta=0.7, gamma=50)
        # Returns: [0, 1.0, 2.78]
    """
    s = np.maximum(np.asarray(spend, dtype=float), 0)
    s_b = np.power(s, beta)
    denom = gamma + s_b

    with np.errstate(divide="ignore", invalid="ignore"):
        out = np.where(denom > 0, alpha * s_b / denom, 0.0)

    return out


def exponential_response(
    spend: np.ndarray | pd.Series | float,
    alpha: float,
    beta: float,
) -> np.ndarray:
    """
    Exponential saturation curve.

    Formula: R = alpha * (1 - exp(-beta * S))

    Args:
        spend: Spend level(s); negative values are treated as 0
        alpha: Ceiling approached as spend grows
        beta: Decay rate

    Returns:
        Response values in [0, alpha)
    """
    s = np.maximum(np.asarray(spend, dtype=float), 0)

    return alpha * (1 - np.exp(-beta * s))


RESPONSE_FUNCTIONS = {
    "hill": hill_response,
    "exponential": exponential_response,
}


def evaluate_response(
    spend: np.ndarray | pd.Series | float,
    mode: str = "hill",
    **params,
) -> np.ndarray:
    """
    Evaluate the named response curve.

    Args:
        spend: Spend level(s)
        mode: 'hill' or 'exponential'
        **params: alpha, beta and (hill only) gamma

    Returns:
        Response at each spend level
    """
    if mode == "hill":
        return hill_response(spend, params["alpha"], params["beta"], params["gamma"])
    elif mode == "exponential":
        return exponential_response(spend, params["alpha"], params["beta"])

    raise ValueError(f"Unknown response curve mode: {mode}")


def finite_difference_marginal(
    spend: np.ndarray | pd.Series | float,
    mode: str = "hill",
    delta_pct: float = 0.01,
    **params,
) -> np.ndarray:
    """
    Marginal return d(response)/d(spend) by forward difference.

    The step is ``delta_pct`` of the spend level, so the estimate is
    scale-free.  At zero spend the marginal return is undefined and is
    reported as +inf, which keeps unspent channels first in line when
    seeding an allocation.
    """
    s = np.maximum(np.asarray(spend, dtype=float), 0)
    step = s * delta_pct

    base = evaluate_response(s, mode, **params)
    bumped = evaluate_response(s + step, mode, **params)

    with np.errstate(divide="ignore", invalid="ignore"):
        marginal = np.where(step > 0, (bumped - base) / step, np.inf)

    return marginal
