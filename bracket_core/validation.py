from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation

from .models import GAMES, PrizePool, PrizeShare, TournamentTerms


class PlatformError(Exception):
    """Base exception for the platform core."""


class ValidationError(PlatformError, ValueError):
    """Raised when input is malformed, before any policy is evaluated."""


class NotFound(PlatformError, LookupError):
    """Raised when a referenced entity does not exist."""


class Forbidden(PlatformError):
    """Raised when the caller may not perform the operation."""


class InvalidTransition(PlatformError):
    """Raised when a tournament lifecycle change is not allowed."""


class Conflict(PlatformError):
    """Raised when a tournament changed between being read and written back."""


class InfrastructureError(PlatformError):
    """Raised when storage or network calls fail."""


MAX_PARTICIPANTS_CAP = 256
MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_TEAM_SIZE = 10
PAYOUT_METHODS: tuple[str, ...] = ("paypal", "bank_transfer", "stripe")
RIOT_REGIONS: tuple[str, ...] = (
    "NA1",
    "EUW1",
    "EUN1",
    "KR",
    "JP1",
    "BR1",
    "LAN",
    "LAS",
    "OCE1",
    "TR1",
    "RU",
)


def _require_int(value: object, field_name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as exc:
            raise ValidationError(f"{field_name} must be an integer") from exc
    raise ValidationError(f"{field_name} must be an integer")


def _require_decimal(value: object, field_name: str) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field_name} must be a number")
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValidationError(f"{field_name} must be a number") from exc
    if not parsed.is_finite():
        raise ValidationError(f"{field_name} must be a finite number")
    return parsed


def validate_tournament_name(raw: object) -> str:
    if not isinstance(raw, str):
        raise ValidationError("Tournament name is required")
    name = raw.strip()
    if not name:
        raise ValidationError("Tournament name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"Tournament name cannot exceed {MAX_NAME_LENGTH} characters"
        )
    return name


def validate_max_participants(raw: object) -> int:
    value = _require_int(raw, "Max participants")
    if value < 1:
        raise ValidationError("Max participants must be positive")
    if value > MAX_PARTICIPANTS_CAP:
        raise ValidationError(
            f"Tournament cannot exceed {MAX_PARTICIPANTS_CAP} participants"
        )
    return value


def validate_entry_fee(raw: object) -> Decimal:
    value = _require_decimal(raw, "Entry fee")
    if value < 0:
        raise ValidationError("Entry fee cannot be negative")
    return value


def validate_team_size(raw: object) -> int:
    value = _require_int(raw, "Team size")
    if value < 1 or value > MAX_TEAM_SIZE:
        raise ValidationError(f"Team size must be between 1 and {MAX_TEAM_SIZE}")
    return value


def parse_prize_pool(raw: object) -> PrizePool:
    if raw is None:
        return PrizePool()
    if not isinstance(raw, Mapping):
        raise ValidationError("Prize pool must be an object")
    total = _require_decimal(raw.get("total", 0), "Prize pool total")
    if total < 0:
        raise ValidationError("Prize pool total cannot be negative")
    distribution_raw = raw.get("distribution") or []
    if not isinstance(distribution_raw, (list, tuple)):
        raise ValidationError("Prize distribution must be a list")
    shares: list[PrizeShare] = []
    seen_positions: set[int] = set()
    for entry in distribution_raw:
        if not isinstance(entry, Mapping):
            raise ValidationError("Prize distribution entries must be objects")
        position = _require_int(entry.get("position"), "Prize position")
        if position < 1:
            raise ValidationError("Prize position must be at least 1")
        if position in seen_positions:
            raise ValidationError(f"Duplicate prize position: {position}")
        seen_positions.add(position)
        amount = _require_decimal(entry.get("amount"), "Prize amount")
        if amount < 0:
            raise ValidationError("Prize amount cannot be negative")
        shares.append(PrizeShare(position=position, amount=amount))
    shares.sort(key=lambda share: share.position)
    return PrizePool(total=total, distribution=shares)


def parse_tournament_terms(payload: Mapping[str, object]) -> TournamentTerms:
    """Build validated tournament terms from a creator payload.

    Only shape and type are checked here. Policy limits such as the participant
    minimum or the entry-fee cap are left to the compliance rules so that they
    are reported as violations rather than rejected as malformed input.
    """
    game = payload.get("game")
    if game not in GAMES:
        raise ValidationError("Invalid game selection")
    tournament_format = payload.get("format", "single-elimination")
    if not isinstance(tournament_format, str) or not tournament_format.strip():
        raise ValidationError("Tournament format is required")
    description = payload.get("description") or ""
    if not isinstance(description, str):
        raise ValidationError("Description must be text")
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters"
        )
    return TournamentTerms(
        name=validate_tournament_name(payload.get("name")),
        game=str(game),
        format=tournament_format.strip(),
        max_participants=validate_max_participants(payload.get("max_participants")),
        entry_fee=validate_entry_fee(payload.get("entry_fee", 0)),
        prize_pool=parse_prize_pool(payload.get("prize_pool")),
        description=description,
        team_size=validate_team_size(payload.get("team_size", 1)),
    )


def merge_tournament_terms(
    current: TournamentTerms, changes: Mapping[str, object]
) -> TournamentTerms:
    payload: dict[str, object] = {
        "name": current.name,
        "game": current.game,
        "format": current.format,
        "max_participants": current.max_participants,
        "entry_fee": current.entry_fee,
        "prize_pool": current.prize_pool.to_dict(),
        "description": current.description,
        "team_size": current.team_size,
    }
    payload.update(changes)
    return parse_tournament_terms(payload)


def validate_coin_amount(raw: object) -> int:
    amount = _require_int(raw, "Amount")
    if amount < 1:
        raise ValidationError("Amount must be a positive integer")
    return amount


def validate_payout_method(raw: object) -> str:
    if raw not in PAYOUT_METHODS:
        raise ValidationError("Invalid payout method")
    return str(raw)


def validate_region(raw: object) -> str:
    if not isinstance(raw, str) or raw.strip().upper() not in RIOT_REGIONS:
        raise ValidationError("Invalid region")
    return raw.strip().upper()


__all__ = [
    "PAYOUT_METHODS",
    "RIOT_REGIONS",
    "Conflict",
    "Forbidden",
    "InfrastructureError",
    "InvalidTransition",
    "NotFound",
    "PlatformError",
    "ValidationError",
    "merge_tournament_terms",
    "parse_prize_pool",
    "parse_tournament_terms",
    "validate_coin_amount",
    "validate_entry_fee",
    "validate_max_participants",
    "validate_payout_method",
    "validate_region",
    "validate_team_size",
    "validate_tournament_name",
]
