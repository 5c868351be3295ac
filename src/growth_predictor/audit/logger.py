"""
Decision audit log.

Records who accepted, rejected or deferred which recommendation, what
impact was expected and, later, what impact was realised.  The summary
feeds back into the engine as a per-tag batting average that weights
the confidence shown to decision makers.

The engine only depends on the ``DecisionSink`` protocol; ``AuditLogger``
is the in-memory implementation.  Instances are injected, never global.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Protocol, runtime_checkable
from uuid import uuid4

import pandas as pd
from loguru import logger

from growth_predictor.config import AuditConfig
from growth_predictor.core.exceptions import DataValidationError
from growth_predictor.core.recommendations import (
    ImpactEstimate,
    Recommendation,
    RecommendationStatus,
)


class AuditAction(str, Enum):
    VIEW = "view"
    ACCEPT = "accept"
    REJECT = "reject"
    MODIFY = "modify"
    DEFER = "defer"
    EXPERIMENT_START = "experiment_start"
    EXPERIMENT_COMPLETE = "experiment_complete"


# Decisions that move the recommendation through its lifecycle
_ACTION_STATUS = {
    AuditAction.ACCEPT: RecommendationStatus.ACCEPTED,
    AuditAction.REJECT: RecommendationStatus.REJECTED,
    AuditAction.DEFER: RecommendationStatus.DEFERRED,
}

_DECISIONS = {AuditAction.ACCEPT, AuditAction.REJECT, AuditAction.DEFER}


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------

@dataclass
class AuditEntry:
    """One logged action on an entity."""

    user_id: str
    user_name: str
    action: AuditAction
    entity_id: str
    entity_title: str
    entity_type: str = "recommendation"
    reasoning: str | None = None
    modifications: dict[str, Any] | None = None
    deferred_until: datetime | None = None
    assigned_to: str | None = None
    expected_impact: ImpactEstimate | None = None
    actual_impact: ImpactEstimate | None = None
    variance: float | None = None  # % difference from expected revenue
    tags: list[str] = field(default_factory=list)
    session_id: str | None = None
    timestamp: datetime = field(default_factory=_now)
    id: str = field(default_factory=lambda: f"audit-{uuid4().hex[:12]}")

    @property
    def tag(self) -> str:
        """Recommendation family; the first tag."""
        return self.tags[0] if self.tags else "other"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "user_id": self.user_id,
            "user_name": self.user_name,
            "action": self.action.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "entity_title": self.entity_title,
            "reasoning": self.reasoning,
            "modifications": self.modifications,
            "deferred_until": self.deferred_until.isoformat() if self.deferred_until else None,
            "assigned_to": self.assigned_to,
            "expected_impact": self.expected_impact.to_dict() if self.expected_impact else None,
            "actual_impact": self.actual_impact.to_dict() if self.actual_impact else None,
            "variance": self.variance,
            "tags": list(self.tags),
            "session_id": self.session_id,
        }


@dataclass
class AuditSummary:
    """Aggregate decision statistics over a window."""

    total_decisions: int = 0
    acceptance_rate: float = 0.0
    avg_time_to_decision: float = 0.0  # hours
    avg_time_to_value: float = 0.0  # days
    batting_average: dict[str, float] = field(default_factory=dict)
    top_decision_makers: list[dict[str, Any]] = field(default_factory=list)
    impact_realized: dict[str, float] = field(
        default_factory=lambda: {"revenue": 0.0, "margin": 0.0, "velocity": 0.0}
    )

    def to_dict(self) -> dict:
        return {
            "total_decisions": self.total_decisions,
            "acceptance_rate": self.acceptance_rate,
            "avg_time_to_decision": self.avg_time_to_decision,
            "avg_time_to_value": self.avg_time_to_value,
            "batting_average": dict(self.batting_average),
            "top_decision_makers": list(self.top_decision_makers),
            "impact_realized": dict(self.impact_realized),
        }


@runtime_checkable
class DecisionSink(Protocol):
    """What the engine needs from an audit backend."""

    def log_decision(
        self,
        user_id: str,
        user_name: str,
        action: AuditAction | str,
        recommendation: Recommendation,
        **details: Any,
    ) -> AuditEntry: ...

    def get_summary(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> AuditSummary: ...


# ---------------------------------------------------------------------------
# In-memory logger
# ---------------------------------------------------------------------------

class AuditLogger:
    """
    In-memory decision log.

    Example:
        >>> audit = AuditLogger()
        >>> audit.log_decision("u1", "Ana", "accept", rec, reasoning="Quick win")
        >>> audit.record_outcome(rec.id, actual_impact)
        >>> audit.get_summary().batting_average
        {'quality_gating': 1.0}
    """

    def __init__(self, config: AuditConfig | None = None, session_id: str | None = None):
        self.config = config or AuditConfig()
        self.session_id = session_id or f"session-{uuid4().hex[:8]}"
        self._entries: list[AuditEntry] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[AuditEntry]:
        return list(self._entries)

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def log_decision(
        self,
        user_id: str,
        user_name: str,
        action: AuditAction | str,
        recommendation: Recommendation,
        reasoning: str | None = None,
        modifications: dict[str, Any] | None = None,
        deferred_until: datetime | None = None,
        assigned_to: str | None = None,
        when: datetime | None = None,
    ) -> AuditEntry:
        """
        Log an action on a recommendation.

        Accept, reject and defer also move the recommendation through its
        status lifecycle; an illegal move raises before anything is logged.
        """
        action = AuditAction(action)
        timestamp = when or _now()

        if action in _ACTION_STATUS:
            recommendation.transition(_ACTION_STATUS[action], when=timestamp)

        entry = AuditEntry(
            user_id=user_id,
            user_name=user_name,
            action=action,
            entity_id=recommendation.id,
            entity_title=recommendation.title,
            reasoning=reasoning,
            modifications=modifications,
            deferred_until=deferred_until,
            assigned_to=assigned_to,
            expected_impact=recommendation.expected_impact,
            tags=self.extract_tags(recommendation),
            session_id=self.session_id,
            timestamp=timestamp,
        )
        self._entries.append(entry)
        self.prune()

        logger.debug(f"Audit: {user_name} {action.value} {recommendation.id}")
        return entry

    def record_outcome(
        self,
        recommendation_id: str,
        actual_impact: ImpactEstimate,
    ) -> AuditEntry:
        """Attach realised impact to the latest acceptance of a recommendation."""
        accepted = [
            e for e in self._entries
            if e.entity_id == recommendation_id and e.action is AuditAction.ACCEPT
        ]
        if not accepted:
            raise DataValidationError(
                f"No accepted decision logged for {recommendation_id}",
                field="recommendation_id",
            )

        entry = max(accepted, key=lambda e: e.timestamp)
        entry.actual_impact = actual_impact

        expected = entry.expected_impact.revenue if entry.expected_impact else None
        if expected is not None and actual_impact.revenue is not None and expected.delta != 0:
            entry.variance = (actual_impact.revenue.delta - expected.delta) / abs(expected.delta) * 100

        return entry

    def prune(self, now: datetime | None = None) -> int:
        """Drop entries older than the retention window; returns how many."""
        cutoff = (now or _now()) - timedelta(days=self.config.retention_days)
        before = len(self._entries)
        self._entries = [e for e in self._entries if e.timestamp > cutoff]
        return before - len(self._entries)

    @staticmethod
    def extract_tags(recommendation: Recommendation) -> list[str]:
        return [
            recommendation.tag,
            f"priority-{recommendation.priority}",
            recommendation.status.value,
        ]

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def get_history(self, entity_id: str) -> list[AuditEntry]:
        """Entries for one entity, newest first."""
        return sorted(
            (e for e in self._entries if e.entity_id == entity_id),
            key=lambda e: e.timestamp,
            reverse=True,
        )

    def get_summary(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> AuditSummary:
        entries = self._filter(start, end)

        decisions = [e for e in entries if e.action in _DECISIONS]
        accepted = [e for e in decisions if e.action is AuditAction.ACCEPT]

        return AuditSummary(
            total_decisions=len(decisions),
            acceptance_rate=len(accepted) / len(decisions) if decisions else 0.0,
            avg_time_to_decision=self._avg_time_to_decision(entries),
            avg_time_to_value=self._avg_time_to_value(entries),
            batting_average=self.batting_average(entries),
            top_decision_makers=self._top_decision_makers(entries),
            impact_realized=self._realized_impact(entries),
        )

    def batting_average(self, entries: list[AuditEntry] | None = None) -> dict[str, float]:
        """Share of accepted recommendations per tag that met expectations."""
        entries = self._entries if entries is None else entries
        totals: dict[str, int] = defaultdict(int)
        hits: dict[str, int] = defaultdict(int)

        for entry in entries:
            if entry.entity_type != "recommendation" or entry.action is not AuditAction.ACCEPT:
                continue
            totals[entry.tag] += 1
            if entry.actual_impact and entry.expected_impact:
                if self.is_successful(entry.expected_impact, entry.actual_impact):
                    hits[entry.tag] += 1

        return {tag: hits[tag] / total for tag, total in totals.items() if total > 0}

    def is_successful(self, expected: ImpactEstimate, actual: ImpactEstimate) -> bool:
        """Actual revenue (else margin) delta reached the success threshold."""
        threshold = self.config.success_threshold
        if expected.revenue and actual.revenue:
            return actual.revenue.delta >= expected.revenue.delta * threshold
        if expected.margin and actual.margin:
            return actual.margin.delta >= expected.margin.delta * threshold
        return False

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------

    def to_frame(
        self,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> pd.DataFrame:
        columns = [
            "timestamp", "user", "action", "entity_type", "entity", "reasoning",
            "expected_revenue_impact", "expected_margin_impact",
            "actual_revenue_impact", "actual_margin_impact", "assigned_to", "tags",
        ]
        rows = [
            {
                "timestamp": e.timestamp.isoformat(),
                "user": e.user_name,
                "action": e.action.value,
                "entity_type": e.entity_type,
                "entity": e.entity_title,
                "reasoning": e.reasoning or "",
                "expected_revenue_impact": _delta(e.expected_impact, "revenue"),
                "expected_margin_impact": _delta(e.expected_impact, "margin"),
                "actual_revenue_impact": _delta(e.actual_impact, "revenue"),
                "actual_margin_impact": _delta(e.actual_impact, "margin"),
                "assigned_to": e.assigned_to or "",
                "tags": ", ".join(e.tags),
            }
            for e in self._filter(start, end)
        ]
        return pd.DataFrame(rows, columns=columns)

    def export_csv(
        self,
        path: Path | str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> str:
        """CSV of the log; also written to ``path`` when given."""
        csv = self.to_frame(start, end).to_csv(index=False)
        if path is not None:
            path = Path(path)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(csv)
            logger.info(f"Exported {len(self)} audit entries to {path}")
        return csv

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _filter(self, start: datetime | None, end: datetime | None) -> list[AuditEntry]:
        return [
            e for e in self._entries
            if (start is None or e.timestamp >= start) and (end is None or e.timestamp <= end)
        ]

    @staticmethod
    def _avg_time_to_decision(entries: list[AuditEntry]) -> float:
        """Hours from first view to accept/reject."""
        hours = []
        for decision in entries:
            if decision.action not in (AuditAction.ACCEPT, AuditAction.REJECT):
                continue
            views = [
                e.timestamp for e in entries
                if e.entity_id == decision.entity_id
                and e.action is AuditAction.VIEW
                and e.timestamp < decision.timestamp
            ]
            if views:
                hours.append((decision.timestamp - min(views)).total_seconds() / 3600)
        return sum(hours) / len(hours) if hours else 0.0

    @staticmethod
    def _avg_time_to_value(entries: list[AuditEntry]) -> float:
        realised = [e.actual_impact.time_to_impact for e in entries if e.actual_impact]
        return sum(realised) / len(realised) if realised else 0.0

    @staticmethod
    def _top_decision_makers(entries: list[AuditEntry], limit: int = 5) -> list[dict[str, Any]]:
        counts = Counter()
        names = {}
        for e in entries:
            if e.action not in (AuditAction.ACCEPT, AuditAction.REJECT):
                continue
            counts[e.user_id] += 1
            names[e.user_id] = e.user_name

        return [
            {"user_id": uid, "user_name": names[uid], "decisions": n}
            for uid, n in counts.most_common(limit)
        ]

    @staticmethod
    def _realized_impact(entries: list[AuditEntry]) -> dict[str, float]:
        totals = {"revenue": 0.0, "margin": 0.0, "velocity": 0.0}
        for e in entries:
            if not e.actual_impact:
                continue
            for key in totals:
                totals[key] += _delta(e.actual_impact, key) or 0.0
        return totals


def _delta(impact: ImpactEstimate | None, metric: str) -> float | None:
    if impact is None:
        return None
    value = getattr(impact, metric)
    return value.delta if value is not None else None


def weight_confidence(
    recommendation: Recommendation,
    summary: AuditSummary,
    prior_weight: float = 0.5,
) -> float:
    """
    Confidence to display, blended with the tag's historical hit rate.

    ``display = confidence x (prior_weight + (1 - prior_weight) x batting)``.
    Without history for the tag the raw confidence is shown.  The
    recommendation is not modified; use
    ``Recommendation.with_display_confidence`` for a weighted copy.
    """
    batting = summary.batting_average.get(recommendation.tag)
    if batting is None:
        return recommendation.confidence
    return recommendation.confidence * (prior_weight + (1 - prior_weight) * batting)
