"""Persistent record of every compliance evaluation."""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Final

from bracket_core.models import (
    AUDITORS,
    CHECK_TYPES,
    ComplianceAudit,
    format_timestamp,
    utc_now,
)
from bracket_core.storage import PlatformStorage
from bracket_core.validation import NotFound, PlatformError, ValidationError

from .rules import ComplianceResult, recommendations_for

log: Final = logging.getLogger("bracket-platform.compliance")


class AuditAlreadyResolved(PlatformError):
    """Raised when an audit already carries a resolution."""


@dataclass(slots=True)
class AuditAggregate:
    checked: int = 0
    violating: int = 0
    by_severity: Counter[str] = field(default_factory=Counter)
    by_type: Counter[str] = field(default_factory=Counter)

    @property
    def compliance_rate(self) -> float:
        if self.checked == 0:
            return 1.0
        return (self.checked - self.violating) / self.checked


class ComplianceAuditLog:
    def __init__(
        self,
        storage: PlatformStorage,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._storage = storage
        self._clock = clock

    def record(
        self,
        subject_id: str,
        check_type: str,
        result: ComplianceResult,
        *,
        audited_by: str = "system",
        subject_kind: str = "tournament",
    ) -> ComplianceAudit:
        if check_type not in CHECK_TYPES:
            raise ValidationError(f"Unknown check type: {check_type}")
        if audited_by not in AUDITORS:
            raise ValidationError(f"Unknown auditor: {audited_by}")
        audit = ComplianceAudit(
            audit_id=uuid.uuid4().hex,
            subject_id=subject_id,
            check_type=check_type,
            compliant=result.is_compliant,
            violations=list(result.violations),
            compliance_level=result.compliance_level,
            recommendations=recommendations_for(result.violations),
            audited_by=audited_by,
            created_at=format_timestamp(self._clock()),
            subject_kind=subject_kind,  # type: ignore[arg-type]
        )
        # Audit ids are random; a collision means the id must not be reused.
        if not self._storage.put_audit(audit):
            raise PlatformError(f"Audit {audit.audit_id} already exists")
        log.info(
            "Recorded %s audit %s for %s %s (compliant=%s)",
            check_type,
            audit.audit_id,
            subject_kind,
            subject_id,
            audit.compliant,
        )
        return audit

    def record_safely(
        self,
        subject_id: str,
        check_type: str,
        result: ComplianceResult,
        **kwargs,
    ) -> ComplianceAudit | None:
        """Record an audit without letting a storage failure abort the caller."""
        try:
            return self.record(subject_id, check_type, result, **kwargs)
        except PlatformError:
            log.exception("Failed to record %s audit for %s", check_type, subject_id)
            return None

    def get(self, audit_id: str) -> ComplianceAudit:
        audit = self._storage.get_audit(audit_id)
        if audit is None:
            raise NotFound(f"Audit {audit_id} not found")
        return audit

    def list_audits(
        self,
        *,
        compliant: bool | None = None,
        severity: str | None = None,
        limit: int = 50,
    ) -> list[ComplianceAudit]:
        audits = self._storage.list_audits()
        if compliant is not None:
            audits = [audit for audit in audits if audit.compliant is compliant]
        if severity is not None:
            audits = [
                audit
                for audit in audits
                if any(violation.severity == severity for violation in audit.violations)
            ]
        return audits[:limit]

    def audits_since(self, window: timedelta) -> list[ComplianceAudit]:
        since = format_timestamp(self._clock() - window)
        return self._storage.list_audits(since=since)

    def aggregate(self, window: timedelta) -> AuditAggregate:
        summary = AuditAggregate()
        for audit in self.audits_since(window):
            summary.checked += 1
            if audit.compliant:
                continue
            summary.violating += 1
            for violation in audit.violations:
                summary.by_severity[violation.severity] += 1
                summary.by_type[violation.type] += 1
        return summary

    def resolve(
        self,
        audit_id: str,
        resolution: str,
        *,
        resolved: bool,
        resolved_by: str,
    ) -> ComplianceAudit:
        audit = self.get(audit_id)
        if audit.is_resolved:
            raise AuditAlreadyResolved(f"Audit {audit_id} is already resolved")
        resolved_at = format_timestamp(self._clock())
        if not self._storage.resolve_audit(
            audit_id,
            resolution=resolution,
            resolved=resolved,
            resolved_by=resolved_by,
            resolved_at=resolved_at,
        ):
            raise AuditAlreadyResolved(f"Audit {audit_id} is already resolved")

        if resolved and audit.subject_kind == "tournament":
            updated = self._storage.update_tournament_compliance(
                audit.subject_id,
                compliant=True,
                checked=True,
                updated_at=resolved_at,
            )
            if not updated:
                log.warning(
                    "Resolved audit %s but tournament %s no longer exists",
                    audit_id,
                    audit.subject_id,
                )

        audit.resolution = resolution
        audit.resolved = resolved
        audit.resolved_by = resolved_by
        audit.resolved_at = resolved_at
        log.info("Audit %s resolved by %s (resolved=%s)", audit_id, resolved_by, resolved)
        return audit


__all__ = ["AuditAggregate", "AuditAlreadyResolved", "ComplianceAuditLog"]
