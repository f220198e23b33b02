"""Riot API policy rules for tournaments and coin usage.

Every rule is evaluated independently and reported as a :class:`Violation`;
nothing here raises for a policy breach and nothing touches storage.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Final, Literal, Protocol

from bracket_core.models import TOURNAMENT_FORMATS, PrizePool, Violation

MIN_PARTICIPANTS: Final = 20
MAX_ENTRY_FEE_USD: Final = Decimal("50")
DEFAULT_COIN_TO_USD_RATE: Final = Decimal("0.01")
PRIZE_TOLERANCE: Final = Decimal("0.01")

ALLOWED_FORMATS: Final = frozenset(TOURNAMENT_FORMATS)
ALLOWED_COIN_USAGE: Final = (
    "tournament-entry-fee",
    "cosmetic-purchases",
    "platform-features",
)
NON_COMPLIANT_CREATOR_STATUSES: Final = frozenset({"violation", "suspended"})

# Shared by tournament descriptions and coin-usage purposes.
GAMBLING_KEYWORDS: Final = frozenset(
    {
        "bet",
        "betting",
        "wager",
        "wagering",
        "gamble",
        "gambling",
        "casino",
        "lottery",
        "jackpot",
        "odds",
        "payout",
        "speculation",
        "investment",
        "profit",
        "trading",
        "market",
        "exchange",
    }
)
_KEYWORD_PATTERN: Final = re.compile(
    r"\b(?:" + "|".join(sorted(map(re.escape, GAMBLING_KEYWORDS))) + r")\b",
    re.IGNORECASE,
)

ComplianceLevel = Literal["full", "partial", "violations"]

_RECOMMENDATIONS: Final[dict[str, str]] = {
    "minimum_participants": "Increase tournament capacity to minimum 20 participants",
    "excessive_entry_fee": "Reduce entry fee to $50 USD or less",
    "invalid_format": "Change tournament format to elimination, round-robin, or swiss",
    "invalid_prize_pool": "Lower the prize pool to at most the collected entry fees",
    "prize_distribution_mismatch": "Make the prize distribution add up to the prize pool total",
    "gambling_features": "Remove gambling-related content from tournament description",
    "creator_non_compliant": "Resolve outstanding creator compliance violations",
    "prohibited_coin_usage": "Only use coins for entry fees, cosmetics or platform features",
    "excessive_coin_usage": "Keep coin entry fees within the $50 equivalent cap",
    "excessive_coin_purchase": "Review daily coin purchase volume for this account",
    "account_verification_failed": "Re-link the Riot account or remove the stale link",
}
_DEFAULT_RECOMMENDATION: Final = "Review tournament settings for compliance"


class TournamentLike(Protocol):
    format: str
    max_participants: int
    entry_fee: Decimal
    prize_pool: PrizePool
    description: str


@dataclass(slots=True, frozen=True)
class ComplianceResult:
    is_compliant: bool
    violations: tuple[Violation, ...] = field(default_factory=tuple)
    compliance_level: ComplianceLevel = "full"

    @classmethod
    def from_violations(cls, violations: Iterable[Violation]) -> ComplianceResult:
        collected = tuple(violations)
        return cls(
            is_compliant=not collected,
            violations=collected,
            compliance_level=compliance_level(collected),
        )

    @property
    def violation_types(self) -> list[str]:
        return [violation.type for violation in self.violations]


def compliance_level(violations: Iterable[Violation]) -> ComplianceLevel:
    collected = list(violations)
    if not collected:
        return "full"
    if any(violation.severity == "critical" for violation in collected):
        return "violations"
    return "partial"


def contains_gambling_keywords(text: str | None) -> bool:
    if not text:
        return False
    return _KEYWORD_PATTERN.search(text) is not None


def recommendations_for(violations: Iterable[Violation]) -> list[str]:
    return [
        _RECOMMENDATIONS.get(violation.type, _DEFAULT_RECOMMENDATION)
        for violation in violations
    ]


class ComplianceRuleSet:
    def __init__(self, coin_to_usd_rate: Decimal = DEFAULT_COIN_TO_USD_RATE) -> None:
        if coin_to_usd_rate <= 0:
            raise ValueError("Coin exchange rate must be positive")
        self.coin_to_usd_rate = coin_to_usd_rate

    @property
    def entry_fee_coin_cap(self) -> int:
        """The $50 entry-fee ceiling expressed in coins at the fixed rate."""
        return int(MAX_ENTRY_FEE_USD / self.coin_to_usd_rate)

    def validate_tournament(
        self, tournament: TournamentLike, creator_status: str | None = None
    ) -> ComplianceResult:
        violations: list[Violation] = []

        if tournament.max_participants < MIN_PARTICIPANTS:
            violations.append(
                Violation(
                    type="minimum_participants",
                    description=(
                        f"Tournament must allow minimum {MIN_PARTICIPANTS} participants"
                        " for Riot API compliance"
                    ),
                    severity="critical",
                )
            )

        if tournament.entry_fee > MAX_ENTRY_FEE_USD:
            violations.append(
                Violation(
                    type="excessive_entry_fee",
                    description=(
                        f"Entry fee ${tournament.entry_fee} exceeds"
                        f" ${MAX_ENTRY_FEE_USD} limit"
                    ),
                    severity="high",
                )
            )

        if tournament.format not in ALLOWED_FORMATS:
            violations.append(
                Violation(
                    type="invalid_format",
                    description=f"Format {tournament.format} not allowed",
                    severity="high",
                )
            )

        prize_pool = tournament.prize_pool
        collected_fees = tournament.entry_fee * tournament.max_participants
        if prize_pool.total > collected_fees:
            violations.append(
                Violation(
                    type="invalid_prize_pool",
                    description="Prize pool exceeds entry fee collections",
                    severity="medium",
                )
            )

        if prize_pool.distribution:
            distributed = sum(
                (share.amount for share in prize_pool.distribution), Decimal("0")
            )
            if abs(distributed - prize_pool.total) > PRIZE_TOLERANCE:
                violations.append(
                    Violation(
                        type="prize_distribution_mismatch",
                        description=(
                            f"Prize distribution sums to {distributed}"
                            f" but the prize pool total is {prize_pool.total}"
                        ),
                        severity="medium",
                    )
                )

        if contains_gambling_keywords(tournament.description):
            violations.append(
                Violation(
                    type="gambling_features",
                    description="Tournament description contains gambling-related content",
                    severity="critical",
                )
            )

        if creator_status in NON_COMPLIANT_CREATOR_STATUSES:
            violations.append(
                Violation(
                    type="creator_non_compliant",
                    description="Tournament creator has compliance violations",
                    severity="medium",
                )
            )

        return ComplianceResult.from_violations(violations)

    def validate_coin_usage(
        self, usage_type: str, amount: int, purpose: str | None = None
    ) -> ComplianceResult:
        violations: list[Violation] = []

        if usage_type not in ALLOWED_COIN_USAGE:
            violations.append(
                Violation(
                    type="prohibited_coin_usage",
                    description=f"Coins cannot be used for {usage_type}",
                    severity="high",
                )
            )

        if usage_type == "tournament-entry-fee" and amount > self.entry_fee_coin_cap:
            violations.append(
                Violation(
                    type="excessive_coin_usage",
                    description=(
                        f"Entry fee of {amount} coins exceeds the"
                        f" {self.entry_fee_coin_cap} coin cap"
                    ),
                    severity="high",
                )
            )

        if contains_gambling_keywords(purpose):
            violations.append(
                Violation(
                    type="gambling_features",
                    description="Coin usage purpose contains gambling-related content",
                    severity="critical",
                )
            )

        return ComplianceResult.from_violations(violations)

    recommendations_for = staticmethod(recommendations_for)


_DEFAULT_RULES: Final = ComplianceRuleSet()


def validate_tournament(
    tournament: TournamentLike, creator_status: str | None = None
) -> ComplianceResult:
    return _DEFAULT_RULES.validate_tournament(tournament, creator_status)


def validate_coin_usage(
    usage_type: str, amount: int, purpose: str | None = None
) -> ComplianceResult:
    return _DEFAULT_RULES.validate_coin_usage(usage_type, amount, purpose)


__all__ = [
    "ALLOWED_COIN_USAGE",
    "ALLOWED_FORMATS",
    "GAMBLING_KEYWORDS",
    "MAX_ENTRY_FEE_USD",
    "MIN_PARTICIPANTS",
    "ComplianceResult",
    "ComplianceRuleSet",
    "compliance_level",
    "contains_gambling_keywords",
    "recommendations_for",
    "validate_coin_usage",
    "validate_tournament",
]
