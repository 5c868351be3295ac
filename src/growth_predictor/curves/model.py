"""
Channel response curve fitting.

Fits a spend -> return curve per marketing channel from its performance
history.  The fit is a bounded heuristic rather than a regression:

  1. Sort history by spend.
  2. Saturation point = first spend whose efficiency (conversions/spend)
     falls 20% or more below the running maximum, else 1.5x the highest
     observed spend.
  3. Average efficiency in the low (0-30%), mid (30-70%) and high
     (70%+) spend buckets relative to that saturation point.
  4. alpha = 1.2 x low-bucket efficiency, beta = 0.7 (fixed shape),
     gamma = 0.5 x saturation point.

Channels with fewer than three usable points get a default curve built
from the channel's declared operating point.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd
from loguru import logger

from growth_predictor.config import OptimizationConfig
from growth_predictor.core.contracts import ChannelPerformance, MarketingChannel
from growth_predictor.core.exceptions import ConfigurationError
from growth_predictor.transforms.response import (
    RESPONSE_FUNCTIONS,
    evaluate_response,
    finite_difference_marginal,
)


EMPTY_BUCKET_EFFICIENCY = 0.5


@dataclass(frozen=True)
class EfficiencyCurve:
    """Fitted response-curve parameters for one channel."""

    channel_id: str
    alpha: float  # ceiling
    beta: float  # shape
    gamma: float  # half-saturation
    saturation_point: float
    min_effective_spend: float
    max_effective_spend: float
    current_efficiency: float = EMPTY_BUCKET_EFFICIENCY
    is_default: bool = False
    n_points: int = 0

    @property
    def params(self) -> dict[str, float]:
        return {"alpha": self.alpha, "beta": self.beta, "gamma": self.gamma}

    def to_dict(self) -> dict:
        return {
            "channel_id": self.channel_id,
            "alpha": self.alpha,
            "beta": self.beta,
            "gamma": self.gamma,
            "saturation_point": self.saturation_point,
            "min_effective_spend": self.min_effective_spend,
            "max_effective_spend": self.max_effective_spend,
            "current_efficiency": self.current_efficiency,
            "is_default": self.is_default,
            "n_points": self.n_points,
        }


class ResponseCurveModel:
    """
    Fit and evaluate channel response curves.

    Example:
        >>> model = ResponseCurveModel(mode="hill")
        >>> curve = model.fit(history, channel)
        >>> model.evaluate(curve, 10_000)
        >>> model.marginal_return(curve, 10_000)
    """

    def __init__(
        self,
        mode: str | None = None,
        config: OptimizationConfig | None = None,
    ):
        self.config = config or OptimizationConfig()
        self.mode = (mode or self.config.curve_mode).lower()

        if self.mode not in RESPONSE_FUNCTIONS:
            raise ConfigurationError(
                f"Unknown response curve mode: {self.mode}", setting="curve_mode",
            )

    # ------------------------------------------------------------------
    # Fitting
    # ------------------------------------------------------------------

    def fit(
        self,
        history: Sequence[ChannelPerformance],
        channel: MarketingChannel,
    ) -> EfficiencyCurve:
        """Fit a curve from ``history``, falling back to the channel default."""
        usable = sorted((h for h in history if h.spend > 0), key=lambda h: h.spend)

        if len(usable) < self.config.min_history_points:
            logger.debug(
                f"Channel {channel.id}: {len(usable)} usable points, using default curve"
            )
            return self.default_curve(channel)

        saturation = self.estimate_saturation_point(usable)
        if saturation <= 0:
            return self.default_curve(channel)

        low = [h for h in usable if h.spend < saturation * 0.3]
        mid = [h for h in usable if saturation * 0.3 <= h.spend < saturation * 0.7]

        low_eff = self.average_efficiency(low)
        mid_eff = self.average_efficiency(mid)

        curve = EfficiencyCurve(
            channel_id=channel.id,
            alpha=low_eff * 1.2,
            beta=self.config.default_beta,
            gamma=saturation * 0.5,
            saturation_point=saturation,
            min_effective_spend=saturation * 0.1,
            max_effective_spend=saturation * 2,
            current_efficiency=mid_eff,
            is_default=False,
            n_points=len(usable),
        )

        logger.debug(
            f"Channel {channel.id}: saturation={saturation:,.0f}, "
            f"alpha={curve.alpha:.4f}, gamma={curve.gamma:,.0f}"
        )
        return curve

    def fit_channels(
        self,
        channels: Sequence[MarketingChannel],
        history: Sequence[ChannelPerformance],
    ) -> dict[str, EfficiencyCurve]:
        """Fit one curve per channel, keyed by channel id."""
        by_channel: dict[str, list[ChannelPerformance]] = {}
        for record in history:
            by_channel.setdefault(record.channel_id, []).append(record)

        return {
            channel.id: self.fit(by_channel.get(channel.id, []), channel)
            for channel in channels
        }

    def default_curve(self, channel: MarketingChannel) -> EfficiencyCurve:
        """Curve declared by the channel's static fields."""
        max_effective = channel.max_recommended_spend
        if max_effective is None:
            max_effective = channel.saturation_point * 2

        return EfficiencyCurve(
            channel_id=channel.id,
            alpha=channel.current_roi,
            beta=self.config.default_beta,
            gamma=channel.current_spend,
            saturation_point=channel.saturation_point,
            min_effective_spend=channel.min_effective_spend,
            max_effective_spend=max_effective,
            current_efficiency=EMPTY_BUCKET_EFFICIENCY,
            is_default=True,
            n_points=0,
        )

    def estimate_saturation_point(self, history: Sequence[ChannelPerformance]) -> float:
        """
        Spend level where efficiency first degrades.

        ``history`` must be sorted by spend and contain positive spends.
        """
        max_efficiency = 0.0
        drop_floor = 1 - self.config.saturation_drop

        for perf in history:
            efficiency = perf.conversions / perf.spend
            if efficiency > max_efficiency:
                max_efficiency = efficiency
            elif max_efficiency > 0 and efficiency <= max_efficiency * drop_floor:
                return perf.spend

        highest = max(h.spend for h in history)
        return highest * self.config.saturation_extrapolation

    @staticmethod
    def average_efficiency(history: Sequence[ChannelPerformance]) -> float:
        """Pooled conversions per unit spend, 0.5 for an empty bucket."""
        if not history:
            return EMPTY_BUCKET_EFFICIENCY

        total_spend = sum(h.spend for h in history)
        total_conversions = sum(h.conversions for h in history)

        if total_spend <= 0:
            return EMPTY_BUCKET_EFFICIENCY
        return total_conversions / total_spend

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def evaluate(self, curve: EfficiencyCurve, spend: float) -> float:
        """Expected return at ``spend``."""
        return float(evaluate_response(spend, self.mode, **curve.params))

    def marginal_return(self, curve: EfficiencyCurve, spend: float) -> float:
        """d(return)/d(spend) with a 1% forward step; +inf at zero spend."""
        return float(
            finite_difference_marginal(
                spend, self.mode, self.config.marginal_delta_pct, **curve.params,
            )
        )

    def expected_roi(self, curve: EfficiencyCurve, spend: float) -> float:
        """Average return per unit spend; 0 when nothing is spent."""
        if spend <= 0:
            return 0.0
        return self.evaluate(curve, spend) / spend

    def response_frame(
        self,
        curve: EfficiencyCurve,
        spend_grid: np.ndarray | None = None,
        n_points: int = 50,
    ) -> pd.DataFrame:
        """Tabulate spend / response / marginal response for reporting."""
        if spend_grid is None:
            upper = max(curve.max_effective_spend, curve.saturation_point * 2, 1.0)
            spend_grid = np.linspace(0, upper, n_points)

        spend_grid = np.asarray(spend_grid, dtype=float)
        response = evaluate_response(spend_grid, self.mode, **curve.params)
        marginal = finite_difference_marginal(
            spend_grid, self.mode, self.config.marginal_delta_pct, **curve.params,
        )

        return pd.DataFrame({
            "channel": curve.channel_id,
            "spend": spend_grid,
            "response": response,
            "marginal_response": marginal,
        })
