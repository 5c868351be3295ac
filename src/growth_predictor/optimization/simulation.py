"""
Monte Carlo confidence intervals for channel ROI.

Each run multiplies every channel's expected ROI by an independent
uniform factor in [1 - p, 1 + p].  The interval is read off the sorted
samples at the lower and upper tail indices rather than from a
parametric formula.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from loguru import logger


@dataclass
class SimulationResult:
    """Per-channel ROI samples and the derived intervals."""

    samples: np.ndarray  # shape (runs, n_channels)
    lower: np.ndarray
    upper: np.ndarray
    runs: int
    confidence_level: float

    def to_dict(self) -> dict:
        return {
            "runs": self.runs,
            "confidence_level": self.confidence_level,
            "lower": self.lower.tolist(),
            "upper": self.upper.tolist(),
        }


def interval_indices(runs: int, confidence_level: float) -> tuple[int, int]:
    """Sorted-array indices of the lower and upper interval bounds."""
    tail = (1 - confidence_level) / 2
    lower = math.floor(runs * tail)
    upper = math.floor(runs * (1 - tail))
    return max(0, min(lower, runs - 1)), max(0, min(upper, runs - 1))


def simulate_roi(
    expected_roi: np.ndarray | list[float],
    runs: int = 1000,
    perturbation: float = 0.2,
    confidence_level: float = 0.95,
    rng: np.random.Generator | None = None,
) -> SimulationResult:
    """
    Perturb expected ROI per channel and per run.

    Args:
        expected_roi: Expected ROI of each channel at its allocated spend
        runs: Number of simulation runs
        perturbation: Half-width of the uniform multiplicative noise
        confidence_level: Coverage of the reported interval
        rng: Random generator; a fresh unseeded one when omitted

    Returns:
        SimulationResult with lower <= upper for every channel
    """
    rng = rng or np.random.default_rng()
    roi = np.asarray(expected_roi, dtype=float)

    factors = rng.uniform(1 - perturbation, 1 + perturbation, size=(runs, roi.size))
    samples = factors * roi

    ordered = np.sort(samples, axis=0)
    lo_idx, hi_idx = interval_indices(runs, confidence_level)

    if roi.size:
        lower, upper = ordered[lo_idx], ordered[hi_idx]
    else:
        lower, upper = np.empty(0), np.empty(0)

    logger.debug(f"Monte Carlo: {runs} runs x {roi.size} channels")

    return SimulationResult(
        samples=samples,
        lower=lower,
        upper=upper,
        runs=runs,
        confidence_level=confidence_level,
    )
