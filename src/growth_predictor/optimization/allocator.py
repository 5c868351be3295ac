"""
Marketing spend allocation using fitted response curves.

Splits a fixed budget across channels under one of four objectives:

  maximize_roi      greedy increments to the best marginal return
  maximize_volume   fill channels by curve ceiling up to saturation
  minimize_cac      fill channels by incremental CAC up to gamma
  balanced_growth   floors, a concentration ceiling and proportional
                    water-filling of the remainder

Every strategy starts from the same seed allocation and never spends
more than the budget.  Monte Carlo intervals and expected outcomes are
attached afterwards.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Sequence
from uuid import uuid4

import numpy as np
import pandas as pd
from loguru import logger

from growth_predictor.config import EconomicAssumptions, OptimizationConfig
from growth_predictor.core.contracts import (
    BusinessConstraints,
    ChannelPerformance,
    DateRange,
    MarketingChannel,
    Objective,
    SpendConstraints,
    finite_non_negative,
)
from growth_predictor.core.exceptions import ConfigurationError
from growth_predictor.curves.model import EfficiencyCurve, ResponseCurveModel
from growth_predictor.optimization.simulation import simulate_roi


_EPS = 1e-9


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ConfidenceInterval:
    lower: float = 0.0
    upper: float = 0.0

    def to_dict(self) -> dict:
        return {"lower": self.lower, "upper": self.upper}


@dataclass(frozen=True)
class SpendAllocation:
    """Recommended spend for one channel."""

    channel: MarketingChannel
    recommended_amount: float
    current_percent: float = 0.0
    recommended_percent: float = 0.0
    expected_leads: float = 0.0
    expected_conversions: float = 0.0
    expected_roi: float = 0.0
    confidence_interval: ConfidenceInterval = field(default_factory=ConfidenceInterval)

    @property
    def channel_id(self) -> str:
        return self.channel.id

    def to_dict(self) -> dict:
        return {
            "channel": self.channel.model_dump(mode="json"),
            "current_percent": self.current_percent,
            "recommended_percent": self.recommended_percent,
            "recommended_amount": self.recommended_amount,
            "expected_leads": self.expected_leads,
            "expected_conversions": self.expected_conversions,
            "expected_roi": self.expected_roi,
            "confidence_interval": self.confidence_interval.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SpendAllocation":
        interval = data.get("confidence_interval") or {}
        return cls(
            channel=MarketingChannel.model_validate(data["channel"]),
            recommended_amount=finite_non_negative(data.get("recommended_amount")),
            current_percent=float(data.get("current_percent", 0.0)),
            recommended_percent=float(data.get("recommended_percent", 0.0)),
            expected_leads=float(data.get("expected_leads", 0.0)),
            expected_conversions=float(data.get("expected_conversions", 0.0)),
            expected_roi=float(data.get("expected_roi", 0.0)),
            confidence_interval=ConfidenceInterval(
                lower=float(interval.get("lower", 0.0)),
                upper=float(interval.get("upper", 0.0)),
            ),
        )


@dataclass(frozen=True)
class ExpectedOutcome:
    leads: float = 0.0
    conversions: float = 0.0
    revenue: float = 0.0
    roi: float = 0.0

    def to_dict(self) -> dict:
        return {
            "leads": self.leads,
            "conversions": self.conversions,
            "revenue": self.revenue,
            "roi": self.roi,
        }


@dataclass(frozen=True)
class SpendPlan:
    """
    A budget split across channels with its expected outcome.

    Plans are immutable; repair produces a new plan.
    """

    id: str
    name: str
    objective: Objective
    total_budget: float
    allocations: list[SpendAllocation] = field(default_factory=list)
    expected_outcome: ExpectedOutcome = field(default_factory=ExpectedOutcome)
    constraints: list[str] = field(default_factory=list)
    assumptions: list[str] = field(default_factory=list)
    simulation_runs: int = 0
    period: DateRange | None = None

    @property
    def total_allocated(self) -> float:
        return sum(a.recommended_amount for a in self.allocations)

    def amounts(self) -> dict[str, float]:
        """Channel id -> recommended amount."""
        return {a.channel_id: a.recommended_amount for a in self.allocations}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "objective": self.objective.value,
            "total_budget": self.total_budget,
            "period": self.period.model_dump(mode="json") if self.period else None,
            "allocations": [a.to_dict() for a in self.allocations],
            "expected_outcome": self.expected_outcome.to_dict(),
            "constraints": list(self.constraints),
            "assumptions": list(self.assumptions),
            "simulation_runs": self.simulation_runs,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SpendPlan":
        outcome = data.get("expected_outcome") or {}
        period = data.get("period")
        return cls(
            id=data.get("id") or f"spend-plan-{uuid4().hex[:12]}",
            name=data.get("name", ""),
            objective=Objective(data.get("objective", Objective.MAXIMIZE_ROI.value)),
            total_budget=finite_non_negative(data.get("total_budget")),
            period=DateRange.model_validate(period) if period else None,
            allocations=[SpendAllocation.from_dict(a) for a in data.get("allocations", [])],
            expected_outcome=ExpectedOutcome(**outcome),
            constraints=list(data.get("constraints", [])),
            assumptions=list(data.get("assumptions", [])),
            simulation_runs=int(data.get("simulation_runs", 0)),
        )

    def to_frame(self) -> pd.DataFrame:
        """One row per allocation."""
        rows = [
            {
                "channel": a.channel_id,
                "current_percent": a.current_percent,
                "recommended_amount": a.recommended_amount,
                "recommended_percent": a.recommended_percent,
                "expected_leads": a.expected_leads,
                "expected_conversions": a.expected_conversions,
                "expected_roi": a.expected_roi,
                "roi_lower": a.confidence_interval.lower,
                "roi_upper": a.confidence_interval.upper,
            }
            for a in self.allocations
        ]
        return pd.DataFrame(rows)

    def save(self, path: Path | str) -> None:
        """Save the plan to JSON, with a CSV of allocations alongside."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2, default=str)

        if self.allocations:
            self.to_frame().to_csv(path.with_suffix(".csv"), index=False)


# ---------------------------------------------------------------------------
# Optimizer
# ---------------------------------------------------------------------------

class SpendOptimizer:
    """
    Allocate a budget across marketing channels.

    Example:
        >>> optimizer = SpendOptimizer()
        >>> plan = optimizer.optimize(
        ...     total_budget=100_000,
        ...     period=None,
        ...     channels=channels,
        ...     history=history,
        ...     objective="balanced_growth",
        ... )
        >>> plan.total_allocated <= 100_000
        True
    """

    def __init__(
        self,
        config: OptimizationConfig | None = None,
        economics: EconomicAssumptions | None = None,
        curve_model: ResponseCurveModel | None = None,
    ):
        self.config = config or OptimizationConfig()
        self.economics = economics or EconomicAssumptions()
        self.curve_model = curve_model or ResponseCurveModel(config=self.config)

        self._strategies: dict[Objective, Callable[..., dict[str, float]]] = {
            Objective.MAXIMIZE_ROI: self._optimize_for_roi,
            Objective.MAXIMIZE_VOLUME: self._optimize_for_volume,
            Objective.MINIMIZE_CAC: self._optimize_for_cac,
            Objective.BALANCED_GROWTH: self._optimize_for_balance,
        }

    def optimize(
        self,
        total_budget: float,
        period: DateRange | None,
        channels: Sequence[MarketingChannel],
        history: Sequence[ChannelPerformance],
        constraints: SpendConstraints | BusinessConstraints | None = None,
        objective: Objective | str = Objective.MAXIMIZE_ROI,
    ) -> SpendPlan:
        """
        Build a spend plan for ``total_budget``.

        Raises:
            ConfigurationError: if ``objective`` is not a known objective
        """
        objective = self.resolve_objective(objective)
        constraints = self._resolve_constraints(constraints)
        budget = finite_non_negative(total_budget)

        curves = self.curve_model.fit_channels(channels, history)
        notes: list[str] = []

        if channels:
            amounts = self._strategies[objective](channels, budget, curves, constraints, notes)
        else:
            amounts = {}

        assumptions = self.document_assumptions(channels, history, curves) + notes

        plan = self.assemble_plan(
            total_budget=budget,
            channels=channels,
            curves=curves,
            amounts=amounts,
            objective=objective,
            period=period,
            constraint_notes=self.document_constraints(constraints),
            assumptions=assumptions,
        )

        logger.info(
            f"Spend plan ({objective.value}): allocated {plan.total_allocated:,.0f} "
            f"of {budget:,.0f} across {len(channels)} channel(s), "
            f"expected revenue {plan.expected_outcome.revenue:,.0f}"
        )
        return plan

    def assemble_plan(
        self,
        total_budget: float,
        channels: Sequence[MarketingChannel],
        curves: dict[str, EfficiencyCurve],
        amounts: dict[str, float],
        objective: Objective,
        period: DateRange | None = None,
        constraint_notes: list[str] | None = None,
        assumptions: list[str] | None = None,
    ) -> SpendPlan:
        """Attach intervals and expected outcomes to a raw allocation."""
        rois = np.array([
            self.curve_model.expected_roi(curves[c.id], amounts.get(c.id, 0.0))
            for c in channels
        ])
        sim = simulate_roi(
            rois,
            runs=self.config.monte_carlo_runs,
            perturbation=self.config.perturbation,
            confidence_level=self.config.confidence_level,
            rng=np.random.default_rng(self.config.random_seed),
        )

        allocations = []
        for i, channel in enumerate(channels):
            amount = amounts.get(channel.id, 0.0)
            curve = curves[channel.id]
            leads = self.expected_leads(amount, curve)

            allocations.append(SpendAllocation(
                channel=channel,
                recommended_amount=amount,
                current_percent=_percent(channel.current_spend, total_budget),
                recommended_percent=_percent(amount, total_budget),
                expected_leads=leads,
                expected_conversions=leads * self.economics.lead_conversion_rate,
                expected_roi=float(rois[i]),
                confidence_interval=ConfidenceInterval(
                    lower=float(sim.lower[i]), upper=float(sim.upper[i]),
                ),
            ))

        return SpendPlan(
            id=f"spend-plan-{uuid4().hex[:12]}",
            name=f"Optimized {objective.value.replace('_', ' ')} plan",
            objective=objective,
            total_budget=total_budget,
            period=period,
            allocations=allocations,
            expected_outcome=self.expected_outcome(allocations),
            constraints=constraint_notes or [],
            assumptions=assumptions or [],
            simulation_runs=self.config.monte_carlo_runs,
        )

    # ------------------------------------------------------------------
    # Bounds
    # ------------------------------------------------------------------

    def get_max_spend(
        self,
        channel: MarketingChannel,
        budget: float,
        constraints: SpendConstraints,
    ) -> float:
        """Upper bound for one channel; 0 for an excluded channel."""
        if constraints.is_excluded(channel.id):
            return 0.0

        limits = [budget * self.config.max_channel_share]
        limits.append(constraints.max_spend.get(channel.id, budget))
        if channel.max_recommended_spend is not None:
            limits.append(channel.max_recommended_spend)
        return max(0.0, min(limits))

    def _seed(
        self,
        channels: Sequence[MarketingChannel],
        budget: float,
        constraints: SpendConstraints,
        notes: list[str],
        floor: float = 0.0,
    ) -> dict[str, float]:
        """Starting allocation: each channel at its minimum, within its maximum."""
        amounts = {}
        for channel in channels:
            if constraints.is_excluded(channel.id):
                amounts[channel.id] = 0.0
                continue
            minimum = max(
                floor,
                constraints.min_spend.get(channel.id, 0.0),
                channel.min_effective_spend,
            )
            amounts[channel.id] = min(minimum, self.get_max_spend(channel, budget, constraints))

        seeded = sum(amounts.values())
        if seeded > budget:
            scale = budget / seeded if seeded > 0 else 0.0
            amounts = {k: v * scale for k, v in amounts.items()}
            logger.warning(
                f"Channel minimums ({seeded:,.0f}) exceed budget ({budget:,.0f}); "
                f"scaled by {scale:.3f}"
            )
            notes.append(
                f"Channel minimums ({seeded:,.0f}) exceed the budget; "
                f"minimums scaled down to {scale:.0%}"
            )
        return amounts

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _optimize_for_roi(self, channels, budget, curves, constraints, notes):
        """Greedy increments to the channel with the best marginal return."""
        cfg = self.config
        amounts = self._seed(channels, budget, constraints, notes)
        threshold = constraints.min_roi if constraints.min_roi is not None else cfg.min_marginal_roi
        max_spend = {c.id: self.get_max_spend(c, budget, constraints) for c in channels}

        remaining = budget - sum(amounts.values())
        iterations = 0

        while remaining > budget * cfg.stop_remaining_pct and iterations < cfg.max_iterations:
            best_id = None
            best_marginal = 0.0

            for channel in channels:
                if amounts[channel.id] >= max_spend[channel.id] - _EPS:
                    continue
                marginal = self.curve_model.marginal_return(curves[channel.id], amounts[channel.id])
                if marginal > best_marginal:
                    best_marginal = marginal
                    best_id = channel.id

            if best_id is None or best_marginal < threshold:
                break

            increment = min(
                remaining * cfg.increment_remaining_pct,
                budget * cfg.increment_budget_pct,
                max_spend[best_id] - amounts[best_id],
            )
            amounts[best_id] += increment
            remaining -= increment
            iterations += 1

        logger.debug(f"maximize_roi: {iterations} iteration(s), {remaining:,.0f} unallocated")
        return amounts

    def _optimize_for_volume(self, channels, budget, curves, constraints, notes):
        """Fill channels with the highest curve ceiling first, up to saturation."""
        amounts = self._seed(channels, budget, constraints, notes)
        remaining = budget - sum(amounts.values())

        for channel in sorted(channels, key=lambda c: curves[c.id].alpha, reverse=True):
            if remaining <= 0:
                break
            cap = min(
                curves[channel.id].saturation_point,
                self.get_max_spend(channel, budget, constraints),
            )
            additional = min(remaining, cap - amounts[channel.id])
            if additional > 0:
                amounts[channel.id] += additional
                remaining -= additional

        return amounts

    def _optimize_for_cac(self, channels, budget, curves, constraints, notes):
        """Fill cheapest-to-acquire channels first, up to their half-saturation point."""
        amounts = self._seed(channels, budget, constraints, notes)
        remaining = budget - sum(amounts.values())

        for channel in sorted(channels, key=lambda c: c.incremental_cac):
            if remaining <= 0:
                break
            target = min(curves[channel.id].gamma, self.get_max_spend(channel, budget, constraints))
            additional = min(remaining, target - amounts[channel.id])
            if additional > 0:
                amounts[channel.id] += additional
                remaining -= additional

        return amounts

    def _optimize_for_balance(self, channels, budget, curves, constraints, notes):
        """Diversified allocation with floors and a concentration ceiling."""
        cfg = self.config
        ceiling_pct = cfg.balanced_ceiling_pct
        if constraints.max_channel_concentration is not None:
            ceiling_pct = min(ceiling_pct, constraints.max_channel_concentration)

        floor = budget * cfg.balanced_floor_pct
        ceilings = {
            c.id: min(budget * ceiling_pct, self.get_max_spend(c, budget, constraints))
            for c in channels
        }

        amounts = self._seed(channels, budget, constraints, notes, floor=floor)

        # Activate further channels by current ROI until the minimum count is met
        active = [c for c in channels if amounts[c.id] > 0]
        if len(active) < cfg.balanced_min_channels:
            inactive = sorted(
                (c for c in channels if amounts[c.id] <= 0 and ceilings[c.id] > 0),
                key=lambda c: c.current_roi,
                reverse=True,
            )
            remaining = budget - sum(amounts.values())
            for channel in inactive[: cfg.balanced_min_channels - len(active)]:
                stake = min(max(floor, channel.min_effective_spend), remaining)
                if stake <= 0:
                    break
                amounts[channel.id] = stake
                remaining -= stake

        for channel_id, ceiling in ceilings.items():
            amounts[channel_id] = min(amounts[channel_id], ceiling)

        self._water_fill(amounts, ceilings, budget - sum(amounts.values()))
        return amounts

    @staticmethod
    def _water_fill(
        amounts: dict[str, float],
        ceilings: dict[str, float],
        remaining: float,
    ) -> float:
        """
        Spread ``remaining`` over active channels in proportion to their
        current amounts without passing any ceiling.  Returns what is
        left unallocated once every active channel is at its ceiling.
        """
        while remaining > _EPS:
            open_ids = [
                k for k, v in amounts.items()
                if v > 0 and v < ceilings[k] - _EPS
            ]
            if not open_ids:
                break

            base = sum(amounts[k] for k in open_ids)
            added = 0.0
            for k in open_ids:
                share = remaining * amounts[k] / base
                step = min(share, ceilings[k] - amounts[k])
                amounts[k] += step
                added += step

            remaining -= added
            if added <= _EPS:
                break

        return max(0.0, remaining)

    # ------------------------------------------------------------------
    # Outcomes
    # ------------------------------------------------------------------

    @staticmethod
    def efficiency_factor(spend: float, curve: EfficiencyCurve) -> float:
        if spend < curve.min_effective_spend:
            return 0.5
        if spend > curve.max_effective_spend:
            return 0.3
        if spend > curve.saturation_point:
            return 0.7
        return 1.0

    def expected_leads(self, spend: float, curve: EfficiencyCurve) -> float:
        """Leads at base cost per lead, discounted outside the effective range."""
        if spend <= 0:
            return 0.0
        return spend / self.economics.cost_per_lead * self.efficiency_factor(spend, curve)

    def expected_outcome(self, allocations: Sequence[SpendAllocation]) -> ExpectedOutcome:
        total_leads = sum(a.expected_leads for a in allocations)
        total_conversions = sum(a.expected_conversions for a in allocations)
        total_revenue = total_conversions * self.economics.avg_deal_value
        total_spend = sum(a.recommended_amount for a in allocations)

        return ExpectedOutcome(
            leads=round(total_leads),
            conversions=round(total_conversions),
            revenue=total_revenue,
            roi=total_revenue / total_spend if total_spend > 0 else 0.0,
        )

    # ------------------------------------------------------------------
    # Documentation
    # ------------------------------------------------------------------

    def document_assumptions(
        self,
        channels: Sequence[MarketingChannel],
        history: Sequence[ChannelPerformance],
        curves: dict[str, EfficiencyCurve],
    ) -> list[str]:
        eco = self.economics
        assumptions = [
            "Historical performance is indicative of future results",
            "No major market disruptions or competitive changes",
            "Channel interactions are independent (no cannibalization)",
        ]

        if len(history) < len(channels) * 6:
            assumptions.append("Limited historical data - using industry benchmarks")

        for channel in channels:
            if curves[channel.id].is_default:
                assumptions.append(
                    f"Insufficient history for {channel.name or channel.id} - "
                    f"default response curve from declared ROI and spend"
                )
                logger.warning(f"Channel {channel.id}: using default response curve")

        assumptions.extend([
            f"{eco.lead_conversion_rate:.0%} baseline conversion rate from lead to customer",
            f"${eco.avg_deal_value:,.0f} average deal value",
            f"Attribution model accuracy ±{self.config.perturbation:.0%}",
        ])
        return assumptions

    @staticmethod
    def document_constraints(constraints: SpendConstraints) -> list[str]:
        applied = []

        if constraints.min_spend:
            applied.append(
                f"Minimum spend requirements enforced for {len(constraints.min_spend)} channels"
            )
        if constraints.max_spend:
            applied.append(f"Maximum spend limits applied to {len(constraints.max_spend)} channels")
        if constraints.mandatory_channels:
            applied.append(f"{len(constraints.mandatory_channels)} channels required to be active")
        if constraints.excluded_channels:
            applied.append(
                f"{len(constraints.excluded_channels)} channels excluded from optimization"
            )
        if constraints.min_roi is not None:
            applied.append(f"Minimum marginal ROI of {constraints.min_roi:g} enforced")

        if not applied:
            applied.append("No external constraints applied - fully optimized allocation")
        return applied

    # ------------------------------------------------------------------
    # Argument handling
    # ------------------------------------------------------------------

    @staticmethod
    def resolve_objective(objective: Objective | str) -> Objective:
        try:
            return Objective(objective)
        except ValueError as exc:
            raise ConfigurationError(
                f"Unknown objective: {objective}", setting="objective",
            ) from exc

    @staticmethod
    def _resolve_constraints(
        constraints: SpendConstraints | BusinessConstraints | None,
    ) -> SpendConstraints:
        if constraints is None:
            return SpendConstraints()
        if isinstance(constraints, BusinessConstraints):
            return SpendConstraints.from_business_constraints(constraints)
        return constraints


def _percent(amount: float, budget: float) -> float:
    return amount / budget * 100 if budget > 0 else 0.0


def optimize_spend_plan(
    total_budget: float,
    channels: Sequence[MarketingChannel],
    history: Sequence[ChannelPerformance],
    objective: Objective | str = Objective.MAXIMIZE_ROI,
    constraints: SpendConstraints | BusinessConstraints | None = None,
    period: DateRange | None = None,
    config: OptimizationConfig | None = None,
    economics: EconomicAssumptions | None = None,
) -> SpendPlan:
    """
    Convenience function for a one-off optimization.

    Args:
        total_budget: Budget to allocate
        channels: Channels at their current operating point
        history: Performance history of those channels
        objective: One of the four objectives
        constraints: Optimizer or business constraints
        period: Planning window
        config: Optimizer settings
        economics: Economic assumptions

    Returns:
        SpendPlan whose allocations sum to at most ``total_budget``
    """
    optimizer = SpendOptimizer(config=config, economics=economics)
    return optimizer.optimize(
        total_budget=total_budget,
        period=period,
        channels=channels,
        history=history,
        constraints=constraints,
        objective=objective,
    )
