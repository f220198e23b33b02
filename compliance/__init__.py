"""Riot API compliance rules, audit trail and scheduled sweeps."""

from .audit import AuditAggregate, AuditAlreadyResolved, ComplianceAuditLog
from .monitor import ComplianceMonitor, SweepSummary, WeeklyReport
from .rules import (
    GAMBLING_KEYWORDS,
    ComplianceResult,
    ComplianceRuleSet,
    contains_gambling_keywords,
    recommendations_for,
    validate_coin_usage,
    validate_tournament,
)

__all__ = [
    "AuditAggregate",
    "AuditAlreadyResolved",
    "ComplianceAuditLog",
    "ComplianceMonitor",
    "SweepSummary",
    "WeeklyReport",
    "GAMBLING_KEYWORDS",
    "ComplianceResult",
    "ComplianceRuleSet",
    "contains_gambling_keywords",
    "recommendations_for",
    "validate_coin_usage",
    "validate_tournament",
]
