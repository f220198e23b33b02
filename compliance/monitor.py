"""Scheduled compliance sweeps over tournaments and linked user accounts."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Final, Literal, Protocol

from bracket_core.models import (
    Tournament,
    UserAccount,
    Violation,
    ViolationRecord,
    format_timestamp,
    parse_timestamp,
    utc_now,
)
from bracket_core.storage import PlatformStorage

from .audit import ComplianceAuditLog
from .rules import ALLOWED_COIN_USAGE, ComplianceResult, ComplianceRuleSet

log: Final = logging.getLogger("bracket-platform.compliance")

SweepKind = Literal["hourly", "daily", "weekly"]
SWEEP_KINDS: Final[tuple[str, ...]] = ("hourly", "daily", "weekly")

HOURLY_BATCH_LIMIT: Final = 10
DAILY_PURCHASE_LIMIT: Final = 10_000
WEEKLY_REPORT_DAYS: Final = 7
PATTERN_WINDOW_DAYS: Final = 30
TOP_VIOLATION_COUNT: Final = 5
WARNING_VIOLATION_COUNT: Final = 3
WEEKDAYS: Final[tuple[str, ...]] = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


class AccountVerifier(Protocol):
    def verify_account(self, game_name: str, tag_line: str, region: str): ...


class SweepReporter(Protocol):
    async def report_sweep(self, summary: SweepSummary) -> None: ...


@dataclass(slots=True)
class WeeklyReport:
    period_days: int
    total_audits: int
    violation_count: int
    compliance_rate: int
    top_violations: list[tuple[str, int]]
    violations_by_weekday: dict[str, int]
    peak_violation_day: str | None


@dataclass(slots=True)
class SweepSummary:
    kind: str
    checked: int = 0
    violations: int = 0
    failures: int = 0
    skipped: bool = False
    report: WeeklyReport | None = None
    flagged: list[str] = field(default_factory=list)


class ComplianceMonitor:
    def __init__(
        self,
        storage: PlatformStorage,
        audit_log: ComplianceAuditLog,
        rules: ComplianceRuleSet,
        *,
        clock: Callable[[], datetime] = utc_now,
        verifier: AccountVerifier | None = None,
        verification_timeout: float = 10.0,
        reporter: SweepReporter | None = None,
    ) -> None:
        self._storage = storage
        self._audit_log = audit_log
        self._rules = rules
        self._clock = clock
        self._verifier = verifier
        self._verification_timeout = verification_timeout
        self._reporter = reporter
        self._locks: dict[str, asyncio.Lock] = {kind: asyncio.Lock() for kind in SWEEP_KINDS}

    def is_running(self, kind: str) -> bool:
        return self._locks[kind].locked()

    async def run_scheduled_sweep(self, kind: str) -> SweepSummary:
        runners: dict[str, Callable[[], Awaitable[SweepSummary]]] = {
            "hourly": self.run_hourly_check,
            "daily": self.run_daily_audit,
            "weekly": self.run_weekly_audit,
        }
        runner = runners.get(kind)
        if runner is None:
            raise ValueError(f"Unknown sweep kind: {kind}")
        return await runner()

    async def run_hourly_check(self) -> SweepSummary:
        return await self._guarded("hourly", self._hourly)

    async def run_daily_audit(self) -> SweepSummary:
        return await self._guarded("daily", self._daily)

    async def run_weekly_audit(self) -> SweepSummary:
        return await self._guarded("weekly", self._weekly)

    async def _guarded(
        self, kind: str, runner: Callable[[SweepSummary], Awaitable[None]]
    ) -> SweepSummary:
        lock = self._locks[kind]
        if lock.locked():
            log.warning("Skipping %s compliance sweep; previous run still in progress", kind)
            return SweepSummary(kind=kind, skipped=True)
        async with lock:
            summary = SweepSummary(kind=kind)
            log.info("Starting %s compliance sweep", kind)
            await runner(summary)
            log.info(
                "Finished %s compliance sweep: checked=%s violations=%s failures=%s",
                kind,
                summary.checked,
                summary.violations,
                summary.failures,
            )
        if self._reporter is not None:
            await self._reporter.report_sweep(summary)
        return summary

    def _now_iso(self) -> str:
        return format_timestamp(self._clock())

    def _creator_status(self, tournament: Tournament) -> str | None:
        creator = self._storage.get_user(tournament.creator_id)
        return creator.compliance_status if creator is not None else None

    def _evaluate(self, tournament: Tournament) -> ComplianceResult:
        return self._rules.validate_tournament(
            tournament, self._creator_status(tournament)
        )

    # ----- Hourly -----
    async def _hourly(self, summary: SweepSummary) -> None:
        tournaments = self._storage.list_tournaments(
            ["ongoing"], compliant=True, limit=HOURLY_BATCH_LIMIT
        )
        for tournament in tournaments:
            try:
                result = self._evaluate(tournament)
                summary.checked += 1
                if not result.is_compliant:
                    self._audit_log.record_safely(tournament.tournament_id, "scheduled", result)
                    summary.violations += 1
                    summary.flagged.append(tournament.tournament_id)
            except Exception:  # pylint: disable=broad-except
                summary.failures += 1
                log.exception(
                    "Hourly compliance check failed for tournament %s",
                    tournament.tournament_id,
                )
            await asyncio.sleep(0)

    # ----- Daily -----
    async def _daily(self, summary: SweepSummary) -> None:
        tournaments = self._storage.list_tournaments(
            ["registration", "ongoing"], compliant=True
        )
        for tournament in tournaments:
            try:
                summary.checked += 1
                if self._audit_tournament(tournament):
                    summary.violations += 1
                    summary.flagged.append(tournament.tournament_id)
            except Exception:  # pylint: disable=broad-except
                summary.failures += 1
                log.exception(
                    "Daily compliance audit failed for tournament %s",
                    tournament.tournament_id,
                )
            await asyncio.sleep(0)

        for user in self._storage.list_linked_users():
            try:
                summary.checked += 1
                if await self._audit_user(user):
                    summary.violations += 1
                    summary.flagged.append(user.user_id)
            except Exception:  # pylint: disable=broad-except
                summary.failures += 1
                log.exception("Daily compliance audit failed for user %s", user.user_id)
            await asyncio.sleep(0)

    def _audit_tournament(self, tournament: Tournament) -> bool:
        result = self._evaluate(tournament)
        if result.is_compliant:
            return False
        recorded_at = self._now_iso()
        self._storage.update_tournament_compliance(
            tournament.tournament_id,
            compliant=False,
            updated_at=recorded_at,
            violations=[
                ViolationRecord.from_violation(violation, recorded_at)
                for violation in result.violations
            ],
        )
        self._audit_log.record_safely(tournament.tournament_id, "scheduled", result)
        log.warning(
            "Tournament %s flagged non-compliant: %s",
            tournament.tournament_id,
            ", ".join(result.violation_types),
        )
        return True

    async def _audit_user(self, user: UserAccount) -> bool:
        since = format_timestamp(self._clock() - timedelta(hours=24))
        transactions = self._storage.list_transactions(user.user_id, since=since)
        violations: list[Violation] = []

        purchased = sum(txn.amount for txn in transactions if txn.type == "purchase")
        if purchased > DAILY_PURCHASE_LIMIT:
            violations.append(
                Violation(
                    type="excessive_coin_purchase",
                    description=f"Purchased {purchased} coins in 24 hours",
                    severity="medium",
                )
            )

        prohibited = sorted(
            {
                txn.usage_type
                for txn in transactions
                if txn.usage_type is not None and txn.usage_type not in ALLOWED_COIN_USAGE
            }
        )
        if prohibited:
            violations.append(
                Violation(
                    type="prohibited_coin_usage",
                    description="Coins used for " + ", ".join(prohibited),
                    severity="high",
                )
            )

        if await self._account_missing(user):
            violations.append(
                Violation(
                    type="account_verification_failed",
                    description="Linked Riot account could not be verified",
                    severity="high",
                )
            )

        if not violations:
            return False

        result = ComplianceResult.from_violations(violations)
        status = "violation" if result.compliance_level == "violations" else "warning"
        recorded_at = self._now_iso()
        self._storage.update_user_compliance(
            user.user_id,
            status=status,
            checked_at=recorded_at,
            violations=[
                ViolationRecord.from_violation(violation, recorded_at)
                for violation in violations
            ],
        )
        self._audit_log.record_safely(user.user_id, "scheduled", result, subject_kind="user")
        log.warning(
            "User %s marked %s: %s", user.user_id, status, ", ".join(result.violation_types)
        )
        return True

    async def _account_missing(self, user: UserAccount) -> bool:
        """True only when the verifier positively reports the account gone."""
        if self._verifier is None or user.riot_account is None:
            return False
        account = user.riot_account
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(
                    self._verifier.verify_account,
                    account.game_name,
                    account.tag_line,
                    account.region,
                ),
                timeout=self._verification_timeout,
            )
        except asyncio.TimeoutError:
            log.warning("Account verification timed out for user %s", user.user_id)
            return False
        except Exception:  # pylint: disable=broad-except
            log.exception("Account verification failed for user %s", user.user_id)
            return False
        if result.status in ("rate_limited", "error"):
            log.warning(
                "Skipping account verification for user %s (%s)",
                user.user_id,
                result.status,
            )
            return False
        return result.status == "not_found"

    # ----- Weekly -----
    async def _weekly(self, summary: SweepSummary) -> None:
        summary.report = self.build_weekly_report()
        log.info(
            "Weekly compliance report: %s audits, %s violations, %s%% compliant",
            summary.report.total_audits,
            summary.report.violation_count,
            summary.report.compliance_rate,
        )

        cutoff = format_timestamp(self._clock() - timedelta(days=PATTERN_WINDOW_DAYS))
        for user in self._storage.list_linked_users():
            try:
                summary.checked += 1
                status = self._recompute_user_status(user, cutoff)
                if status != "compliant":
                    summary.violations += 1
                    summary.flagged.append(user.user_id)
            except Exception:  # pylint: disable=broad-except
                summary.failures += 1
                log.exception("Weekly status update failed for user %s", user.user_id)
            await asyncio.sleep(0)

    def build_weekly_report(self) -> WeeklyReport:
        aggregate = self._audit_log.aggregate(timedelta(days=WEEKLY_REPORT_DAYS))
        top = sorted(aggregate.by_type.items(), key=lambda entry: (-entry[1], entry[0]))

        by_weekday: Counter[str] = Counter()
        for audit in self._audit_log.audits_since(timedelta(days=PATTERN_WINDOW_DAYS)):
            if not audit.compliant:
                by_weekday[WEEKDAYS[parse_timestamp(audit.created_at).weekday()]] += 1
        histogram = {day: by_weekday.get(day, 0) for day in WEEKDAYS}
        peak = max(WEEKDAYS, key=lambda day: histogram[day]) if by_weekday else None

        return WeeklyReport(
            period_days=WEEKLY_REPORT_DAYS,
            total_audits=aggregate.checked,
            violation_count=aggregate.violating,
            compliance_rate=round(aggregate.compliance_rate * 100),
            top_violations=top[:TOP_VIOLATION_COUNT],
            violations_by_weekday=histogram,
            peak_violation_day=peak,
        )

    def _recompute_user_status(self, user: UserAccount, cutoff: str) -> str:
        recent = [
            record for record in user.compliance_violations if record.recorded_at >= cutoff
        ]
        if any(record.severity == "critical" for record in recent):
            status = "violation"
        elif any(record.severity == "high" for record in recent) or (
            len(recent) > WARNING_VIOLATION_COUNT
        ):
            status = "warning"
        else:
            status = "compliant"
        if status != user.compliance_status:
            log.info(
                "User %s compliance status %s -> %s",
                user.user_id,
                user.compliance_status,
                status,
            )
        self._storage.update_user_compliance(
            user.user_id, status=status, checked_at=self._now_iso()
        )
        return status


__all__ = [
    "SWEEP_KINDS",
    "ComplianceMonitor",
    "SweepSummary",
    "WeeklyReport",
]
