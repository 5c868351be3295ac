"""
Recommendation model shared by the detector, optimizer and guardrails.

A ``Recommendation`` is the unifying output of the engine.  It is created
in the ``proposed`` state and only moves through the decision lifecycle
via :meth:`Recommendation.transition`:

    proposed -> accepted | rejected | deferred
    deferred -> accepted | rejected
    accepted -> in_progress
    in_progress -> completed | measured

``completed``, ``measured`` and ``rejected`` are terminal.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from growth_predictor.core.exceptions import InvalidStatusTransitionError


class RecommendationStatus(str, Enum):
    PROPOSED = "proposed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    DEFERRED = "deferred"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    MEASURED = "measured"


_S = RecommendationStatus

ALLOWED_TRANSITIONS: dict[RecommendationStatus, frozenset[RecommendationStatus]] = {
    _S.PROPOSED: frozenset({_S.ACCEPTED, _S.REJECTED, _S.DEFERRED}),
    _S.DEFERRED: frozenset({_S.ACCEPTED, _S.REJECTED}),
    _S.ACCEPTED: frozenset({_S.IN_PROGRESS}),
    _S.IN_PROGRESS: frozenset({_S.COMPLETED, _S.MEASURED}),
    _S.COMPLETED: frozenset(),
    _S.MEASURED: frozenset(),
    _S.REJECTED: frozenset(),
}

_DECISIONS = {_S.ACCEPTED, _S.REJECTED, _S.DEFERRED}


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Impact
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MetricDelta:
    """Baseline -> target movement of one metric."""

    baseline: float
    target: float
    delta: float
    delta_percent: float
    unit: str

    @classmethod
    def from_values(cls, baseline: float, target: float, unit: str) -> "MetricDelta":
        delta = target - baseline
        delta_percent = delta / baseline * 100 if baseline != 0 else 0.0
        return cls(
            baseline=baseline,
            target=target,
            delta=delta,
            delta_percent=delta_percent,
            unit=unit,
        )

    def to_dict(self) -> dict:
        return {
            "baseline": self.baseline,
            "target": self.target,
            "delta": self.delta,
            "delta_percent": self.delta_percent,
            "unit": self.unit,
        }


@dataclass(frozen=True)
class ImpactEstimate:
    """Expected effect of a recommendation and how long it lasts."""

    time_to_impact: float  # days
    sustainability_months: float
    revenue: MetricDelta | None = None
    margin: MetricDelta | None = None
    velocity: MetricDelta | None = None

    def to_dict(self) -> dict:
        return {
            "revenue": self.revenue.to_dict() if self.revenue else None,
            "margin": self.margin.to_dict() if self.margin else None,
            "velocity": self.velocity.to_dict() if self.velocity else None,
            "time_to_impact": self.time_to_impact,
            "sustainability_months": self.sustainability_months,
        }


@dataclass(frozen=True)
class Action:
    """One concrete step of a recommendation."""

    id: str
    label: str
    description: str
    type: str = "planned"  # immediate | planned | experimental
    automatable: bool = False
    estimated_effort: float | None = None  # hours

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "label": self.label,
            "description": self.description,
            "type": self.type,
            "automatable": self.automatable,
            "estimated_effort": self.estimated_effort,
        }


@dataclass(frozen=True)
class RiskFactor:
    description: str
    probability: str  # high | medium | low
    impact: str  # critical | high | medium | low
    mitigation: str | None = None

    def to_dict(self) -> dict:
        return {
            "description": self.description,
            "probability": self.probability,
            "impact": self.impact,
            "mitigation": self.mitigation,
        }


# ---------------------------------------------------------------------------
# Recommendation
# ---------------------------------------------------------------------------

@dataclass
class Recommendation:
    """
    A ranked, financially-quantified proposal.

    ``tag`` names the recommendation family (``resource_reallocation``,
    ``quality_gating``...) and keys the audit batting average.
    ``display_confidence`` is the confidence shown to decision makers
    after weighting by historical acceptance; ``confidence`` itself is
    never changed by that weighting.
    """

    title: str
    executive_summary: str
    rationale: str
    expected_impact: ImpactEstimate
    confidence: float
    tag: str = "general"
    actions: list[Action] = field(default_factory=list)
    risks: list[RiskFactor] = field(default_factory=list)
    confidence_factors: list[str] = field(default_factory=list)
    success_criteria: list[str] = field(default_factory=list)
    assumptions: list[str] = field(default_factory=list)
    priority: int = 3
    testable: bool = True
    id: str = field(default_factory=lambda: f"rec-{uuid4().hex[:12]}")
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)
    decided_at: datetime | None = None
    display_confidence: float | None = None
    _status: RecommendationStatus = field(
        default=RecommendationStatus.PROPOSED, init=False, repr=False,
    )

    def __post_init__(self) -> None:
        self.confidence = min(1.0, max(0.0, float(self.confidence)))
        self.priority = min(5, max(1, int(self.priority)))

    @property
    def status(self) -> RecommendationStatus:
        return self._status

    @status.setter
    def status(self, new_status: RecommendationStatus | str) -> None:
        self.transition(new_status)

    @property
    def is_terminal(self) -> bool:
        return not ALLOWED_TRANSITIONS[self._status]

    def can_transition(self, new_status: RecommendationStatus | str) -> bool:
        return RecommendationStatus(new_status) in ALLOWED_TRANSITIONS[self._status]

    def transition(
        self,
        new_status: RecommendationStatus | str,
        when: datetime | None = None,
    ) -> None:
        """Move to ``new_status``, raising on an illegal lifecycle edge."""
        target = RecommendationStatus(new_status)
        if target not in ALLOWED_TRANSITIONS[self._status]:
            raise InvalidStatusTransitionError(self._status.value, target.value)

        stamp = when or _now()
        self._status = target
        self.updated_at = stamp
        if target in _DECISIONS:
            self.decided_at = stamp

    def with_display_confidence(self, display_confidence: float) -> Recommendation:
        """Copy carrying a new displayed confidence; lifecycle state is kept."""
        weighted = replace(self, display_confidence=display_confidence)
        weighted._status = self._status
        return weighted

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "tag": self.tag,
            "executive_summary": self.executive_summary,
            "rationale": self.rationale,
            "expected_impact": self.expected_impact.to_dict(),
            "confidence": self.confidence,
            "display_confidence": self.display_confidence,
            "confidence_factors": list(self.confidence_factors),
            "actions": [a.to_dict() for a in self.actions],
            "success_criteria": list(self.success_criteria),
            "risks": [r.to_dict() for r in self.risks],
            "assumptions": list(self.assumptions),
            "status": self.status.value,
            "priority": self.priority,
            "testable": self.testable,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
        }
