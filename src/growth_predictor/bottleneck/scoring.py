"""
Theory-of-Constraints scoring for a single process stage.

The bottleneck score is a weighted sum of seven factors, each
normalised to [0, 1]:

    duration ratio      avg_duration / flow cycle time       25%
    variability         (max - min) / avg_duration           15%
    wait-time ratio     wait_time / avg_duration             15%
    rework rate                                              15%
    drop-off rate                                            10%
    utilisation         demand hours / capacity hours        10%
    queue length        Little's law, arrivals x wait        10%
"""

from __future__ import annotations

from dataclasses import asdict, dataclass

from growth_predictor.config import BottleneckConfig
from growth_predictor.core.contracts import ProcessFlow, ProcessStage, Severity, clamp_rate


@dataclass(frozen=True)
class StageFactors:
    """Normalised scoring factors for one stage."""

    duration_ratio: float
    variability: float
    wait_time_ratio: float
    rework: float
    drop_off: float
    utilization: float
    queue_length: float

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


def _ratio(numerator: float, denominator: float) -> float:
    if denominator <= 0:
        return 0.0
    return clamp_rate(numerator / denominator)


class BottleneckScorer:
    """
    Scores how strongly a stage constrains its flow's throughput.

    Example:
        >>> scorer = BottleneckScorer()
        >>> scorer.score(stage, flow)
        0.62
        >>> scorer.severity(0.62)
        <Severity.HIGH: 'high'>
    """

    def __init__(self, config: BottleneckConfig | None = None):
        self.config = config or BottleneckConfig()

    def estimate_utilization(self, stage: ProcessStage, flow: ProcessFlow) -> float:
        """Demand hours over assumed team capacity, capped at 1."""
        cfg = self.config
        demand_hours = flow.volume_per_month * stage.avg_duration * cfg.hours_per_day
        capacity_hours = cfg.workdays_per_month * cfg.hours_per_day * cfg.assumed_workers
        return min(1.0, demand_hours / capacity_hours)

    def estimate_queue_length(self, stage: ProcessStage, flow: ProcessFlow) -> float:
        """Little's law: L = lambda * W with daily arrivals."""
        arrival_rate = flow.volume_per_month / self.config.workdays_per_month
        return arrival_rate * stage.wait_time

    def factors(self, stage: ProcessStage, flow: ProcessFlow) -> StageFactors:
        spread = stage.max_duration - stage.min_duration

        return StageFactors(
            duration_ratio=_ratio(stage.avg_duration, flow.avg_cycle_time),
            variability=_ratio(spread, stage.avg_duration),
            wait_time_ratio=_ratio(stage.wait_time, stage.avg_duration),
            rework=clamp_rate(stage.rework_rate),
            drop_off=clamp_rate(stage.drop_off_rate),
            utilization=clamp_rate(self.estimate_utilization(stage, flow)),
            queue_length=clamp_rate(self.estimate_queue_length(stage, flow)),
        )

    def score(self, stage: ProcessStage, flow: ProcessFlow) -> float:
        """Weighted composite in [0, 1]."""
        weights = self.config.weights
        factors = self.factors(stage, flow).to_dict()

        total = sum(weights.get(name, 0.0) * value for name, value in factors.items())
        return clamp_rate(total)

    def severity(self, score: float) -> Severity | None:
        """Severity band, or None when the stage is not a bottleneck."""
        cfg = self.config
        if score >= cfg.critical_threshold:
            return Severity.CRITICAL
        if score >= cfg.high_threshold:
            return Severity.HIGH
        if score >= cfg.medium_threshold:
            return Severity.MEDIUM
        return None
