"""
Bottleneck detection across process flows.

For every stage of every flow the detector scores how strongly the stage
constrains throughput, keeps stages scoring at least the medium
threshold, explains them with rule-based root causes, prices the delay
and fans out one templated fix per root-cause family.  Results are
ordered by monthly cost of delay, highest first.

Malformed telemetry never raises: contracts repair it on the way in and
zero denominators produce zero ratios.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

import pandas as pd
from loguru import logger

from growth_predictor.bottleneck.fixes import FIX_GENERATORS, FixType
from growth_predictor.bottleneck.scoring import BottleneckScorer, StageFactors
from growth_predictor.config import BottleneckConfig, EconomicAssumptions
from growth_predictor.core.contracts import ProcessFlow, ProcessStage, Severity
from growth_predictor.core.recommendations import Recommendation


class RootCauseCategory(str, Enum):
    RESOURCE_CONSTRAINT = "resource_constraint"
    VARIABILITY = "variability"
    QUALITY_CONTROL = "quality_control"
    DROP_OFF = "drop_off"
    OVER_UTILIZATION = "over_utilization"
    UNKNOWN = "unknown"


# Which fix answers which cause; UNKNOWN has no template.
CAUSE_TO_FIX: dict[RootCauseCategory, FixType] = {
    RootCauseCategory.RESOURCE_CONSTRAINT: FixType.RESOURCE_REALLOCATION,
    RootCauseCategory.OVER_UTILIZATION: FixType.RESOURCE_REALLOCATION,
    RootCauseCategory.QUALITY_CONTROL: FixType.QUALITY_GATING,
    RootCauseCategory.VARIABILITY: FixType.PROCESS_STANDARDIZATION,
    RootCauseCategory.DROP_OFF: FixType.ENGAGEMENT_RETENTION,
}


@dataclass(frozen=True)
class RootCause:
    category: RootCauseCategory
    description: str


@dataclass(frozen=True)
class Bottleneck:
    """A stage that constrains its flow, with price tag and fixes."""

    id: str
    flow_id: str
    flow_name: str
    stage: ProcessStage
    score: float
    severity: Severity
    impacted_volume: float
    cost_of_delay: float  # per month
    root_causes: list[str] = field(default_factory=list)
    cause_categories: list[RootCauseCategory] = field(default_factory=list)
    recommended_fixes: list[Recommendation] = field(default_factory=list)
    cost_breakdown: dict[str, float] = field(default_factory=dict)
    factors: StageFactors | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "flow_id": self.flow_id,
            "flow_name": self.flow_name,
            "stage": self.stage.model_dump(),
            "score": round(self.score, 4),
            "severity": self.severity.value,
            "impacted_volume": self.impacted_volume,
            "cost_of_delay": round(self.cost_of_delay, 2),
            "cost_breakdown": {k: round(v, 2) for k, v in self.cost_breakdown.items()},
            "root_causes": list(self.root_causes),
            "cause_categories": [c.value for c in self.cause_categories],
            "factors": self.factors.to_dict() if self.factors else None,
            "recommended_fixes": [r.to_dict() for r in self.recommended_fixes],
        }


class BottleneckDetector:
    """
    Theory-of-Constraints analysis over process flows.

    Example:
        >>> detector = BottleneckDetector()
        >>> bottlenecks = detector.analyze([generate_sample_process_flow()])
        >>> bottlenecks[0].stage.name, bottlenecks[0].severity
        ('Negotiation', <Severity.MEDIUM: 'medium'>)
    """

    def __init__(
        self,
        config: BottleneckConfig | None = None,
        economics: EconomicAssumptions | None = None,
    ):
        self.config = config or BottleneckConfig()
        self.economics = economics or EconomicAssumptions()
        self.scorer = BottleneckScorer(self.config)

    def analyze(self, flows: Sequence[ProcessFlow]) -> list[Bottleneck]:
        """Bottlenecks of all flows, highest cost of delay first."""
        bottlenecks: list[Bottleneck] = []
        for flow in flows:
            bottlenecks.extend(self.analyze_flow(flow))

        bottlenecks.sort(key=lambda b: b.cost_of_delay, reverse=True)

        logger.info(
            f"Analysed {len(flows)} flow(s): {len(bottlenecks)} bottleneck(s) found"
        )
        return bottlenecks

    def analyze_flow(self, flow: ProcessFlow) -> list[Bottleneck]:
        found = []

        for stage in flow.stages:
            score = self.scorer.score(stage, flow)
            severity = self.scorer.severity(score)
            logger.debug(f"{flow.id}/{stage.id}: score={score:.3f}")

            if severity is None:
                continue

            causes = self.identify_root_causes(stage, flow)
            breakdown = self.cost_breakdown(stage, flow)
            cost_of_delay = sum(breakdown.values())

            found.append(Bottleneck(
                id=f"btl-{flow.id}-{stage.id}",
                flow_id=flow.id,
                flow_name=flow.name,
                stage=stage,
                score=score,
                severity=severity,
                impacted_volume=flow.volume_per_month * (stage.drop_off_rate + stage.rework_rate),
                cost_of_delay=cost_of_delay,
                root_causes=[c.description for c in causes],
                cause_categories=[c.category for c in causes],
                recommended_fixes=self.generate_fixes(stage, flow, causes, cost_of_delay),
                cost_breakdown=breakdown,
                factors=self.scorer.factors(stage, flow),
            ))

        return found

    # ------------------------------------------------------------------
    # Root causes
    # ------------------------------------------------------------------

    def identify_root_causes(self, stage: ProcessStage, flow: ProcessFlow) -> list[RootCause]:
        cfg = self.config
        causes: list[RootCause] = []

        if stage.wait_time > stage.avg_duration * cfg.wait_ratio:
            causes.append(RootCause(
                RootCauseCategory.RESOURCE_CONSTRAINT,
                "Excessive wait time - likely resource constraint or approval bottleneck",
            ))

        is_long_stage = stage.avg_duration > flow.avg_cycle_time * cfg.long_stage_ratio
        if is_long_stage and stage.max_duration > stage.avg_duration * cfg.variability_multiple:
            causes.append(RootCause(
                RootCauseCategory.VARIABILITY,
                "High variability - inconsistent process or skill gaps",
            ))

        if stage.rework_rate > cfg.rework_threshold:
            causes.append(RootCause(
                RootCauseCategory.QUALITY_CONTROL,
                f"High rework rate ({stage.rework_rate * 100:.1f}%) - "
                f"quality control or requirements clarity issue",
            ))

        if stage.drop_off_rate > cfg.drop_off_threshold:
            causes.append(RootCause(
                RootCauseCategory.DROP_OFF,
                f"High drop-off rate ({stage.drop_off_rate * 100:.1f}%) - "
                f"customer experience or value perception issue",
            ))

        if self.scorer.estimate_utilization(stage, flow) > cfg.utilization_threshold:
            causes.append(RootCause(
                RootCauseCategory.OVER_UTILIZATION,
                "Over-utilization - insufficient capacity for demand",
            ))

        if not causes:
            causes.append(RootCause(
                RootCauseCategory.UNKNOWN,
                "Complex interdependencies requiring detailed analysis",
            ))

        return causes

    # ------------------------------------------------------------------
    # Cost of delay
    # ------------------------------------------------------------------

    def cost_breakdown(self, stage: ProcessStage, flow: ProcessFlow) -> dict[str, float]:
        """Monthly opportunity, holding and rework cost of the stage."""
        eco = self.economics
        delay_days = stage.avg_duration + stage.wait_time
        volume = flow.volume_per_month

        return {
            "opportunity": volume * eco.avg_deal_value * eco.opportunity_cost_rate
            / eco.days_per_month * delay_days,
            "holding": volume * eco.holding_cost_per_day * delay_days,
            "rework": stage.rework_rate * volume * eco.rework_cost,
        }

    def cost_of_delay(self, stage: ProcessStage, flow: ProcessFlow) -> float:
        return sum(self.cost_breakdown(stage, flow).values())

    # ------------------------------------------------------------------
    # Fixes
    # ------------------------------------------------------------------

    def generate_fixes(
        self,
        stage: ProcessStage,
        flow: ProcessFlow,
        causes: Sequence[RootCause],
        cost_of_delay: float | None = None,
    ) -> list[Recommendation]:
        """One recommendation per fix family, in root-cause order."""
        if cost_of_delay is None:
            cost_of_delay = self.cost_of_delay(stage, flow)

        seen: set[FixType] = set()
        fixes = []
        for cause in causes:
            fix_type = CAUSE_TO_FIX.get(cause.category)
            if fix_type is None or fix_type in seen:
                continue
            seen.add(fix_type)
            fixes.append(FIX_GENERATORS[fix_type](stage, flow, cost_of_delay, self.economics))

        return fixes

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @staticmethod
    def to_frame(bottlenecks: Sequence[Bottleneck]) -> pd.DataFrame:
        """One summary row per bottleneck."""
        rows = [
            {
                "flow": b.flow_name,
                "stage": b.stage.name,
                "score": round(b.score, 3),
                "severity": b.severity.value,
                "cost_of_delay": round(b.cost_of_delay, 2),
                "impacted_volume": b.impacted_volume,
                "n_root_causes": len(b.root_causes),
                "n_fixes": len(b.recommended_fixes),
            }
            for b in bottlenecks
        ]
        columns = [
            "flow", "stage", "score", "severity", "cost_of_delay",
            "impacted_volume", "n_root_causes", "n_fixes",
        ]
        return pd.DataFrame(rows, columns=columns)


def generate_sample_process_flow() -> ProcessFlow:
    """Five-stage sales-to-delivery flow used by the demo."""
    return ProcessFlow(
        id="sales-process",
        name="Sales to Delivery",
        avg_cycle_time=21,
        volume_per_month=50,
        stages=[
            ProcessStage(
                id="lead-response", name="Lead Response",
                avg_duration=2, min_duration=0.5, max_duration=5,
                wait_time=0.5, rework_rate=0.05, drop_off_rate=0.15,
            ),
            ProcessStage(
                id="proposal-creation", name="Proposal Creation",
                avg_duration=5, min_duration=2, max_duration=14,
                wait_time=2, rework_rate=0.25, drop_off_rate=0.1,
            ),
            ProcessStage(
                id="negotiation", name="Negotiation",
                avg_duration=7, min_duration=3, max_duration=21,
                wait_time=3, rework_rate=0.15, drop_off_rate=0.2,
            ),
            ProcessStage(
                id="contract-approval", name="Contract Approval",
                avg_duration=3, min_duration=1, max_duration=7,
                wait_time=2, rework_rate=0.1, drop_off_rate=0.05,
            ),
            ProcessStage(
                id="project-kickoff", name="Project Kickoff",
                avg_duration=4, min_duration=2, max_duration=7,
                wait_time=1, rework_rate=0.02, drop_off_rate=0.01,
            ),
        ],
    )
