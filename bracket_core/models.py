from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from typing import ClassVar, Literal

ISO_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

TOURNAMENT_FORMATS: tuple[str, ...] = (
    "single-elimination",
    "double-elimination",
    "round-robin",
    "swiss",
)
TOURNAMENT_STATUSES: tuple[str, ...] = (
    "draft",
    "registration",
    "ongoing",
    "completed",
    "cancelled",
)
GAMES: tuple[str, ...] = (
    "League of Legends",
    "Valorant",
    "CS2",
    "Fortnite",
    "Overwatch 2",
    "Dota 2",
    "TFT",
)
SEVERITIES: tuple[str, ...] = ("low", "medium", "high", "critical")
CHECK_TYPES: tuple[str, ...] = (
    "creation",
    "modification",
    "completion",
    "scheduled",
    "manual",
)
AUDITORS: tuple[str, ...] = ("system", "admin", "riot_compliance")
USER_COMPLIANCE_STATUSES: tuple[str, ...] = (
    "compliant",
    "warning",
    "violation",
    "suspended",
)

Severity = Literal["low", "medium", "high", "critical"]
MatchStatus = Literal["pending", "ongoing", "completed"]
SlotOutcome = Literal["winner", "loser"]


def utc_now() -> datetime:
    return datetime.now(UTC)


def format_timestamp(value: datetime) -> str:
    return value.astimezone(UTC).strftime(ISO_FORMAT)


def parse_timestamp(raw: str) -> datetime:
    return datetime.strptime(raw, ISO_FORMAT).replace(tzinfo=UTC)


def utc_now_iso() -> str:
    """Return current UTC timestamp in ISO-8601 format (ms precision)."""
    return format_timestamp(utc_now())


def to_decimal(value: object) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if value is None or value == "":
        return Decimal("0")
    return Decimal(str(value))


def _optional_str(value: object) -> str | None:
    return str(value) if value is not None else None


@dataclass(slots=True, frozen=True)
class Violation:
    type: str
    description: str
    severity: Severity = "medium"

    def to_dict(self) -> dict[str, object]:
        return {
            "type": self.type,
            "description": self.description,
            "severity": self.severity,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Violation:
        severity = str(data.get("severity", "medium"))
        if severity not in SEVERITIES:
            severity = "medium"
        return cls(
            type=str(data.get("type", "")),
            description=str(data.get("description", "")),
            severity=severity,  # type: ignore[arg-type]
        )


@dataclass(slots=True)
class ViolationRecord:
    """A violation stamped onto a tournament or user when it was detected."""

    type: str
    description: str
    severity: Severity
    recorded_at: str

    @classmethod
    def from_violation(cls, violation: Violation, recorded_at: str) -> ViolationRecord:
        return cls(
            type=violation.type,
            description=violation.description,
            severity=violation.severity,
            recorded_at=recorded_at,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "type": self.type,
            "description": self.description,
            "severity": self.severity,
            "recorded_at": self.recorded_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> ViolationRecord:
        violation = Violation.from_dict(data)
        return cls.from_violation(violation, str(data.get("recorded_at", "")))


@dataclass(slots=True)
class PrizeShare:
    position: int
    amount: Decimal

    def to_dict(self) -> dict[str, object]:
        return {"position": self.position, "amount": self.amount}

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> PrizeShare:
        return cls(
            position=int(data.get("position", 0)),
            amount=to_decimal(data.get("amount")),
        )


@dataclass(slots=True)
class PrizePool:
    total: Decimal = Decimal("0")
    distribution: list[PrizeShare] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "total": self.total,
            "distribution": [share.to_dict() for share in self.distribution],
        }

    @classmethod
    def from_dict(cls, data: dict[str, object] | None) -> PrizePool:
        if not data:
            return cls()
        shares: Iterable[dict[str, object]] = data.get("distribution", [])  # type: ignore[assignment]
        return cls(
            total=to_decimal(data.get("total")),
            distribution=[PrizeShare.from_dict(item) for item in shares],
        )


@dataclass(slots=True)
class TournamentTerms:
    """The creator-supplied settings that compliance rules are evaluated against."""

    name: str
    game: str
    format: str
    max_participants: int
    entry_fee: Decimal
    prize_pool: PrizePool = field(default_factory=PrizePool)
    description: str = ""
    team_size: int = 1


@dataclass(slots=True)
class Participant:
    participant_id: str
    kind: Literal["user", "team"] = "user"
    status: str = "registered"
    registered_at: str = ""
    registered_by: str | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "participant_id": self.participant_id,
            "kind": self.kind,
            "status": self.status,
            "registered_at": self.registered_at,
        }
        if self.registered_by is not None:
            data["registered_by"] = self.registered_by
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> Participant:
        kind = "team" if data.get("kind") == "team" else "user"
        return cls(
            participant_id=str(data.get("participant_id", "")),
            kind=kind,
            status=str(data.get("status", "registered")),
            registered_at=str(data.get("registered_at", "")),
            registered_by=_optional_str(data.get("registered_by")),
        )


@dataclass(slots=True)
class BracketSlot:
    """One side of a match.

    A slot either names a participant directly or points at the match whose
    winner (or loser) will fill it.
    """

    participant_id: str | None = None
    source_match_id: str | None = None
    source_outcome: SlotOutcome = "winner"

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {"source_outcome": self.source_outcome}
        if self.participant_id is not None:
            data["participant_id"] = self.participant_id
        if self.source_match_id is not None:
            data["source_match_id"] = self.source_match_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object] | None) -> BracketSlot | None:
        if data is None:
            return None
        outcome = "loser" if data.get("source_outcome") == "loser" else "winner"
        return cls(
            participant_id=_optional_str(data.get("participant_id")),
            source_match_id=_optional_str(data.get("source_match_id")),
            source_outcome=outcome,
        )

    @property
    def resolved(self) -> bool:
        return self.participant_id is not None

    def display(self) -> str:
        if self.participant_id is not None:
            return self.participant_id
        if self.source_match_id is not None:
            prefix = "Loser" if self.source_outcome == "loser" else "Winner"
            return f"{prefix} {self.source_match_id}"
        return "TBD"


@dataclass(slots=True)
class BracketMatch:
    match_id: str
    round_number: int
    slot_one: BracketSlot
    slot_two: BracketSlot | None = None
    winner_id: str | None = None
    status: MatchStatus = "pending"

    @property
    def is_bye(self) -> bool:
        return self.slot_two is None

    @property
    def participant_one(self) -> str | None:
        return self.slot_one.participant_id

    @property
    def participant_two(self) -> str | None:
        return self.slot_two.participant_id if self.slot_two is not None else None

    def slots(self) -> tuple[BracketSlot, ...]:
        if self.slot_two is None:
            return (self.slot_one,)
        return (self.slot_one, self.slot_two)

    def loser_id(self) -> str | None:
        if self.winner_id is None or self.slot_two is None:
            return None
        if self.winner_id == self.participant_one:
            return self.participant_two
        return self.participant_one

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "match_id": self.match_id,
            "round_number": self.round_number,
            "slot_one": self.slot_one.to_dict(),
            "status": self.status,
        }
        if self.slot_two is not None:
            data["slot_two"] = self.slot_two.to_dict()
        if self.winner_id is not None:
            data["winner_id"] = self.winner_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> BracketMatch:
        slot_one = BracketSlot.from_dict(data.get("slot_one", {})) or BracketSlot()  # type: ignore[arg-type]
        status = str(data.get("status", "pending"))
        if status not in ("pending", "ongoing", "completed"):
            status = "pending"
        return cls(
            match_id=str(data.get("match_id", "")),
            round_number=int(data.get("round_number", 0)),
            slot_one=slot_one,
            slot_two=BracketSlot.from_dict(data.get("slot_two")),  # type: ignore[arg-type]
            winner_id=_optional_str(data.get("winner_id")),
            status=status,  # type: ignore[arg-type]
        )


@dataclass(slots=True)
class BracketRound:
    round_number: int
    name: str
    matches: list[BracketMatch]
    side: Literal["winners", "losers", "final"] = "winners"

    def to_dict(self) -> dict[str, object]:
        return {
            "round_number": self.round_number,
            "name": self.name,
            "side": self.side,
            "matches": [match.to_dict() for match in self.matches],
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> BracketRound:
        matches_data: Iterable[dict[str, object]] = data.get("matches", [])  # type: ignore[assignment]
        side = str(data.get("side", "winners"))
        if side not in ("winners", "losers", "final"):
            side = "winners"
        return cls(
            round_number=int(data.get("round_number", 0)),
            name=str(data.get("name", "")),
            matches=[BracketMatch.from_dict(item) for item in matches_data],
            side=side,  # type: ignore[arg-type]
        )


@dataclass(slots=True)
class BracketState:
    format: str
    created_at: str
    rounds: list[BracketRound] = field(default_factory=list)
    planned_rounds: int | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "format": self.format,
            "created_at": self.created_at,
            "rounds": [round_.to_dict() for round_ in self.rounds],
        }
        if self.planned_rounds is not None:
            data["planned_rounds"] = self.planned_rounds
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> BracketState:
        rounds_data: Iterable[dict[str, object]] = data.get("rounds", [])  # type: ignore[assignment]
        planned = data.get("planned_rounds")
        return cls(
            format=str(data.get("format", "single-elimination")),
            created_at=str(data.get("created_at", "")),
            rounds=[BracketRound.from_dict(item) for item in rounds_data],
            planned_rounds=int(planned) if planned is not None else None,
        )

    def clone(self) -> BracketState:
        return BracketState.from_dict(self.to_dict())

    @property
    def is_empty(self) -> bool:
        return not any(round_.matches for round_ in self.rounds)

    def find_match(self, match_id: str) -> BracketMatch | None:
        for round_ in self.rounds:
            for match in round_.matches:
                if match.match_id == match_id:
                    return match
        return None

    def all_matches(self) -> Iterable[BracketMatch]:
        for round_ in self.rounds:
            yield from round_.matches


@dataclass(slots=True)
class Tournament:
    tournament_id: str
    name: str
    game: str
    creator_id: str
    format: str
    max_participants: int
    entry_fee: Decimal
    created_at: str
    updated_at: str
    prize_pool: PrizePool = field(default_factory=PrizePool)
    description: str = ""
    team_size: int = 1
    status: str = "draft"
    participants: list[Participant] = field(default_factory=list)
    bracket: BracketState | None = None
    riot_api_compliant: bool = True
    compliance_checked: bool = False
    compliance_violations: list[ViolationRecord] = field(default_factory=list)
    # Incremented by every stored write; saves are conditional on it.
    version: int = 0

    PK_TEMPLATE: ClassVar[str] = "TOURNAMENT#%s"
    SK_VALUE: ClassVar[str] = "META"
    ENTITY: ClassVar[str] = "tournament"

    @classmethod
    def key(cls, tournament_id: str) -> dict[str, str]:
        return {"pk": cls.PK_TEMPLATE % tournament_id, "sk": cls.SK_VALUE}

    @classmethod
    def from_terms(
        cls,
        tournament_id: str,
        creator_id: str,
        terms: TournamentTerms,
        created_at: str,
    ) -> Tournament:
        return cls(
            tournament_id=tournament_id,
            name=terms.name,
            game=terms.game,
            creator_id=creator_id,
            format=terms.format,
            max_participants=terms.max_participants,
            entry_fee=terms.entry_fee,
            created_at=created_at,
            updated_at=created_at,
            prize_pool=terms.prize_pool,
            description=terms.description,
            team_size=terms.team_size,
        )

    def terms(self) -> TournamentTerms:
        return TournamentTerms(
            name=self.name,
            game=self.game,
            format=self.format,
            max_participants=self.max_participants,
            entry_fee=self.entry_fee,
            prize_pool=self.prize_pool,
            description=self.description,
            team_size=self.team_size,
        )

    def apply_terms(self, terms: TournamentTerms) -> None:
        self.name = terms.name
        self.game = terms.game
        self.format = terms.format
        self.max_participants = terms.max_participants
        self.entry_fee = terms.entry_fee
        self.prize_pool = terms.prize_pool
        self.description = terms.description
        self.team_size = terms.team_size

    @property
    def current_participants(self) -> int:
        return sum(1 for entry in self.participants if entry.status != "eliminated")

    @property
    def spots_remaining(self) -> int:
        return self.max_participants - self.current_participants

    def find_participant(self, participant_id: str) -> Participant | None:
        for entry in self.participants:
            if entry.participant_id == participant_id:
                return entry
        return None

    def to_item(self) -> dict[str, object]:
        item: dict[str, object] = dict(self.key(self.tournament_id))
        item.update(
            {
                "entity": self.ENTITY,
                "tournament_id": self.tournament_id,
                "name": self.name,
                "game": self.game,
                "creator_id": self.creator_id,
                "format": self.format,
                "max_participants": self.max_participants,
                "entry_fee": self.entry_fee,
                "prize_pool": self.prize_pool.to_dict(),
                "description": self.description,
                "team_size": self.team_size,
                "status": self.status,
                "participants": [entry.to_dict() for entry in self.participants],
                "riot_api_compliant": self.riot_api_compliant,
                "compliance_checked": self.compliance_checked,
                "compliance_violations": [
                    record.to_dict() for record in self.compliance_violations
                ],
                "created_at": self.created_at,
                "updated_at": self.updated_at,
                "version": self.version,
            }
        )
        if self.bracket is not None:
            item["bracket"] = self.bracket.to_dict()
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> Tournament:
        tournament_id = str(
            item.get("tournament_id") or str(item["pk"]).split("#", 1)[1]
        )
        participants_data: Iterable[dict[str, object]] = item.get("participants", [])  # type: ignore[assignment]
        violations_data: Iterable[dict[str, object]] = item.get(  # type: ignore[assignment]
            "compliance_violations", []
        )
        bracket_data = item.get("bracket")
        return cls(
            tournament_id=tournament_id,
            name=str(item.get("name", "")),
            game=str(item.get("game", "")),
            creator_id=str(item.get("creator_id", "")),
            format=str(item.get("format", "")),
            max_participants=int(item.get("max_participants", 0)),
            entry_fee=to_decimal(item.get("entry_fee")),
            created_at=str(item.get("created_at", "")),
            updated_at=str(item.get("updated_at", "")),
            prize_pool=PrizePool.from_dict(item.get("prize_pool")),  # type: ignore[arg-type]
            description=str(item.get("description", "")),
            team_size=int(item.get("team_size", 1)),
            status=str(item.get("status", "draft")),
            participants=[Participant.from_dict(data) for data in participants_data],
            bracket=(
                BracketState.from_dict(bracket_data)  # type: ignore[arg-type]
                if isinstance(bracket_data, dict)
                else None
            ),
            riot_api_compliant=bool(item.get("riot_api_compliant", True)),
            compliance_checked=bool(item.get("compliance_checked", False)),
            compliance_violations=[
                ViolationRecord.from_dict(data) for data in violations_data
            ],
            version=int(item.get("version", 0)),
        )


@dataclass(slots=True)
class RiotAccountLink:
    game_name: str
    tag_line: str
    region: str
    puuid: str | None = None

    def to_dict(self) -> dict[str, object]:
        data: dict[str, object] = {
            "game_name": self.game_name,
            "tag_line": self.tag_line,
            "region": self.region,
        }
        if self.puuid is not None:
            data["puuid"] = self.puuid
        return data

    @classmethod
    def from_dict(cls, data: dict[str, object] | None) -> RiotAccountLink | None:
        if not data:
            return None
        return cls(
            game_name=str(data.get("game_name", "")),
            tag_line=str(data.get("tag_line", "")),
            region=str(data.get("region", "")),
            puuid=_optional_str(data.get("puuid")),
        )


@dataclass(slots=True)
class UserAccount:
    user_id: str
    username: str
    account_type: Literal["normal", "creator", "admin"] = "normal"
    coins: int = 0
    riot_account: RiotAccountLink | None = None
    compliance_status: str = "compliant"
    compliance_violations: list[ViolationRecord] = field(default_factory=list)
    last_compliance_check: str | None = None

    PK_TEMPLATE: ClassVar[str] = "USER#%s"
    SK_VALUE: ClassVar[str] = "PROFILE"
    ENTITY: ClassVar[str] = "user"

    @classmethod
    def key(cls, user_id: str) -> dict[str, str]:
        return {"pk": cls.PK_TEMPLATE % user_id, "sk": cls.SK_VALUE}

    @property
    def has_linked_riot_account(self) -> bool:
        return self.riot_account is not None

    def to_item(self) -> dict[str, object]:
        item: dict[str, object] = dict(self.key(self.user_id))
        item.update(
            {
                "entity": self.ENTITY,
                "user_id": self.user_id,
                "username": self.username,
                "account_type": self.account_type,
                "coins": self.coins,
                "has_linked_riot_account": self.has_linked_riot_account,
                "compliance_status": self.compliance_status,
                "compliance_violations": [
                    record.to_dict() for record in self.compliance_violations
                ],
            }
        )
        if self.riot_account is not None:
            item["riot_account"] = self.riot_account.to_dict()
        if self.last_compliance_check is not None:
            item["last_compliance_check"] = self.last_compliance_check
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> UserAccount:
        user_id = str(item.get("user_id") or str(item["pk"]).split("#", 1)[1])
        account_type = str(item.get("account_type", "normal"))
        if account_type not in ("normal", "creator", "admin"):
            account_type = "normal"
        violations_data: Iterable[dict[str, object]] = item.get(  # type: ignore[assignment]
            "compliance_violations", []
        )
        return cls(
            user_id=user_id,
            username=str(item.get("username", "")),
            account_type=account_type,  # type: ignore[arg-type]
            coins=int(item.get("coins", 0)),
            riot_account=RiotAccountLink.from_dict(item.get("riot_account")),  # type: ignore[arg-type]
            compliance_status=str(item.get("compliance_status", "compliant")),
            compliance_violations=[
                ViolationRecord.from_dict(data) for data in violations_data
            ],
            last_compliance_check=_optional_str(item.get("last_compliance_check")),
        )


@dataclass(slots=True)
class CreatorProfile:
    user_id: str
    display_name: str
    application_status: Literal["pending", "approved", "rejected"] = "pending"
    total_earnings: Decimal = Decimal("0")
    last_payout: str | None = None

    PK_TEMPLATE: ClassVar[str] = "USER#%s"
    SK_VALUE: ClassVar[str] = "CREATOR"
    ENTITY: ClassVar[str] = "creator_profile"

    @classmethod
    def key(cls, user_id: str) -> dict[str, str]:
        return {"pk": cls.PK_TEMPLATE % user_id, "sk": cls.SK_VALUE}

    @property
    def approved(self) -> bool:
        return self.application_status == "approved"

    def to_item(self) -> dict[str, object]:
        item: dict[str, object] = dict(self.key(self.user_id))
        item.update(
            {
                "entity": self.ENTITY,
                "user_id": self.user_id,
                "display_name": self.display_name,
                "application_status": self.application_status,
                "total_earnings": self.total_earnings,
            }
        )
        if self.last_payout is not None:
            item["last_payout"] = self.last_payout
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> CreatorProfile:
        status = str(item.get("application_status", "pending"))
        if status not in ("pending", "approved", "rejected"):
            status = "pending"
        return cls(
            user_id=str(item.get("user_id") or str(item["pk"]).split("#", 1)[1]),
            display_name=str(item.get("display_name", "")),
            application_status=status,  # type: ignore[arg-type]
            total_earnings=to_decimal(item.get("total_earnings")),
            last_payout=_optional_str(item.get("last_payout")),
        )


@dataclass(slots=True)
class CoinTransaction:
    transaction_id: str
    user_id: str
    type: Literal[
        "purchase",
        "transfer_in",
        "transfer_out",
        "redemption",
        "entry_fee",
        "spend",
        "refund",
    ]
    amount: int
    created_at: str
    usage_type: str | None = None
    purpose: str | None = None
    counterparty_id: str | None = None

    PK_TEMPLATE: ClassVar[str] = "USER#%s"
    SK_TEMPLATE: ClassVar[str] = "TXN#%s#%s"
    SK_PREFIX: ClassVar[str] = "TXN#"
    ENTITY: ClassVar[str] = "coin_transaction"

    @classmethod
    def key(cls, user_id: str, created_at: str, transaction_id: str) -> dict[str, str]:
        return {
            "pk": cls.PK_TEMPLATE % user_id,
            "sk": cls.SK_TEMPLATE % (created_at, transaction_id),
        }

    def to_item(self) -> dict[str, object]:
        item: dict[str, object] = dict(
            self.key(self.user_id, self.created_at, self.transaction_id)
        )
        item.update(
            {
                "entity": self.ENTITY,
                "transaction_id": self.transaction_id,
                "user_id": self.user_id,
                "type": self.type,
                "amount": self.amount,
                "created_at": self.created_at,
            }
        )
        if self.usage_type is not None:
            item["usage_type"] = self.usage_type
        if self.purpose is not None:
            item["purpose"] = self.purpose
        if self.counterparty_id is not None:
            item["counterparty_id"] = self.counterparty_id
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> CoinTransaction:
        return cls(
            transaction_id=str(item.get("transaction_id", "")),
            user_id=str(item.get("user_id", "")),
            type=str(item.get("type", "purchase")),  # type: ignore[arg-type]
            amount=int(item.get("amount", 0)),
            created_at=str(item.get("created_at", "")),
            usage_type=_optional_str(item.get("usage_type")),
            purpose=_optional_str(item.get("purpose")),
            counterparty_id=_optional_str(item.get("counterparty_id")),
        )


@dataclass(slots=True)
class PurchaseOrder:
    order_id: str
    user_id: str
    package_index: int
    coins: int
    bonus: int
    price: Decimal
    created_at: str
    status: Literal["pending", "completed"] = "pending"

    PK_TEMPLATE: ClassVar[str] = "USER#%s"
    SK_TEMPLATE: ClassVar[str] = "ORDER#%s"
    ENTITY: ClassVar[str] = "purchase_order"

    @classmethod
    def key(cls, user_id: str, order_id: str) -> dict[str, str]:
        return {"pk": cls.PK_TEMPLATE % user_id, "sk": cls.SK_TEMPLATE % order_id}

    @property
    def total_coins(self) -> int:
        return self.coins + self.bonus

    def to_item(self) -> dict[str, object]:
        item: dict[str, object] = dict(self.key(self.user_id, self.order_id))
        item.update(
            {
                "entity": self.ENTITY,
                "order_id": self.order_id,
                "user_id": self.user_id,
                "package_index": self.package_index,
                "coins": self.coins,
                "bonus": self.bonus,
                "price": self.price,
                "status": self.status,
                "created_at": self.created_at,
            }
        )
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> PurchaseOrder:
        status = "completed" if item.get("status") == "completed" else "pending"
        return cls(
            order_id=str(item.get("order_id", "")),
            user_id=str(item.get("user_id", "")),
            package_index=int(item.get("package_index", 0)),
            coins=int(item.get("coins", 0)),
            bonus=int(item.get("bonus", 0)),
            price=to_decimal(item.get("price")),
            created_at=str(item.get("created_at", "")),
            status=status,
        )


@dataclass(slots=True)
class ComplianceAudit:
    audit_id: str
    subject_id: str
    check_type: str
    compliant: bool
    violations: list[Violation]
    compliance_level: str
    recommendations: list[str]
    audited_by: str
    created_at: str
    subject_kind: Literal["tournament", "user", "account"] = "tournament"
    resolution: str | None = None
    resolved: bool | None = None
    resolved_by: str | None = None
    resolved_at: str | None = None

    PK_TEMPLATE: ClassVar[str] = "AUDIT#%s"
    SK_VALUE: ClassVar[str] = "AUDIT"
    ENTITY: ClassVar[str] = "compliance_audit"

    @classmethod
    def key(cls, audit_id: str) -> dict[str, str]:
        return {"pk": cls.PK_TEMPLATE % audit_id, "sk": cls.SK_VALUE}

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None

    def to_item(self) -> dict[str, object]:
        item: dict[str, object] = dict(self.key(self.audit_id))
        item.update(
            {
                "entity": self.ENTITY,
                "audit_id": self.audit_id,
                "subject_id": self.subject_id,
                "subject_kind": self.subject_kind,
                "check_type": self.check_type,
                "compliant": self.compliant,
                "violations": [violation.to_dict() for violation in self.violations],
                "compliance_level": self.compliance_level,
                "recommendations": list(self.recommendations),
                "audited_by": self.audited_by,
                "created_at": self.created_at,
            }
        )
        if self.resolved_at is not None:
            item.update(
                {
                    "resolution": self.resolution,
                    "resolved": self.resolved,
                    "resolved_by": self.resolved_by,
                    "resolved_at": self.resolved_at,
                }
            )
        return item

    @classmethod
    def from_item(cls, item: dict[str, object]) -> ComplianceAudit:
        violations_data: Iterable[dict[str, object]] = item.get("violations", [])  # type: ignore[assignment]
        recommendations: Iterable[object] = item.get("recommendations", [])  # type: ignore[assignment]
        kind = str(item.get("subject_kind", "tournament"))
        if kind not in ("tournament", "user", "account"):
            kind = "tournament"
        resolved = item.get("resolved")
        return cls(
            audit_id=str(item.get("audit_id") or str(item["pk"]).split("#", 1)[1]),
            subject_id=str(item.get("subject_id", "")),
            check_type=str(item.get("check_type", "manual")),
            compliant=bool(item.get("compliant", False)),
            violations=[Violation.from_dict(data) for data in violations_data],
            compliance_level=str(item.get("compliance_level", "full")),
            recommendations=[str(value) for value in recommendations],
            audited_by=str(item.get("audited_by", "system")),
            created_at=str(item.get("created_at", "")),
            subject_kind=kind,  # type: ignore[arg-type]
            resolution=_optional_str(item.get("resolution")),
            resolved=bool(resolved) if resolved is not None else None,
            resolved_by=_optional_str(item.get("resolved_by")),
            resolved_at=_optional_str(item.get("resolved_at")),
        )


__all__ = [
    "AUDITORS",
    "CHECK_TYPES",
    "GAMES",
    "ISO_FORMAT",
    "SEVERITIES",
    "TOURNAMENT_FORMATS",
    "TOURNAMENT_STATUSES",
    "USER_COMPLIANCE_STATUSES",
    "BracketMatch",
    "BracketRound",
    "BracketSlot",
    "BracketState",
    "CoinTransaction",
    "ComplianceAudit",
    "CreatorProfile",
    "Participant",
    "PrizePool",
    "PrizeShare",
    "PurchaseOrder",
    "RiotAccountLink",
    "Tournament",
    "TournamentTerms",
    "UserAccount",
    "Violation",
    "ViolationRecord",
    "format_timestamp",
    "parse_timestamp",
    "to_decimal",
    "utc_now",
    "utc_now_iso",
]
