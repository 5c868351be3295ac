"""
Decision audit trail for Growth Predictor.
"""

from growth_predictor.audit.logger import (
    AuditAction,
    AuditEntry,
    AuditLogger,
    AuditSummary,
    DecisionSink,
    weight_confidence,
)

__all__ = [
    "AuditAction",
    "AuditEntry",
    "AuditLogger",
    "AuditSummary",
    "DecisionSink",
    "weight_confidence",
]
