"""Tournament lifecycle: creation, registration, start, results and completion."""

from __future__ import annotations

import logging
import random
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Final, Protocol

from .bracket import (
    ELIMINATION_FORMATS,
    champion,
    generate_bracket,
    is_complete,
    pair_swiss_round,
)
from .bracket import record_match_result as apply_match_result
from .models import (
    Participant,
    Tournament,
    UserAccount,
    format_timestamp,
    utc_now,
)
from .storage import PlatformStorage
from .validation import (
    Conflict,
    Forbidden,
    InvalidTransition,
    NotFound,
    ValidationError,
    merge_tournament_terms,
    parse_tournament_terms,
)

if TYPE_CHECKING:
    from coin_ledger.ledger import CoinLedger, LedgerResult
    from compliance.audit import ComplianceAuditLog
    from compliance.rules import ComplianceResult, ComplianceRuleSet

log: Final = logging.getLogger("bracket-platform.tournaments")

ALLOWED_TRANSITIONS: Final[dict[str, frozenset[str]]] = {
    "draft": frozenset({"registration", "cancelled"}),
    "registration": frozenset({"ongoing", "cancelled"}),
    "ongoing": frozenset({"completed"}),
    "completed": frozenset(),
    "cancelled": frozenset(),
}
EDITABLE_STATUSES: Final = frozenset({"draft", "registration"})
ENTRY_FEE_USAGE: Final = "tournament-entry-fee"
REFUNDED: Final = "refunded"


class BracketAnnouncer(Protocol):
    async def announce_bracket(self, tournament: Tournament) -> None: ...


@dataclass(slots=True)
class TournamentOutcome:
    """Result of a create/update: the persisted tournament, or None if rejected."""

    tournament: Tournament | None
    compliance: ComplianceResult

    @property
    def accepted(self) -> bool:
        return self.tournament is not None


@dataclass(slots=True)
class JoinOutcome:
    tournament: Tournament
    payment: LedgerResult | None = None

    @property
    def joined(self) -> bool:
        return self.payment is None or self.payment.success


def _transition(tournament: Tournament, target: str) -> None:
    allowed = ALLOWED_TRANSITIONS.get(tournament.status, frozenset())
    if target not in allowed:
        raise InvalidTransition(
            f"Tournament {tournament.tournament_id} cannot move from"
            f" {tournament.status} to {target}"
        )
    tournament.status = target


class TournamentService:
    def __init__(
        self,
        storage: PlatformStorage,
        rules: ComplianceRuleSet,
        audit_log: ComplianceAuditLog,
        ledger: CoinLedger,
        *,
        announcer: BracketAnnouncer | None = None,
        clock: Callable[[], datetime] = utc_now,
        rng: random.Random | None = None,
    ) -> None:
        self._storage = storage
        self._rules = rules
        self._audit_log = audit_log
        self._ledger = ledger
        self._announcer = announcer
        self._clock = clock
        self._rng = rng

    def _now(self) -> str:
        return format_timestamp(self._clock())

    def get_tournament(self, tournament_id: str) -> Tournament:
        tournament = self._storage.get_tournament(tournament_id)
        if tournament is None:
            raise NotFound(f"Tournament {tournament_id} not found")
        return tournament

    def _require_creator(self, user_id: str) -> UserAccount:
        user = self._storage.get_user(user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        if user.account_type != "creator":
            raise Forbidden("Only verified creators can manage tournaments")
        profile = self._storage.get_creator_profile(user_id)
        if profile is None or not profile.approved:
            raise Forbidden("Creator profile is not approved")
        return user

    def _require_owner(self, tournament: Tournament, user_id: str) -> None:
        if tournament.creator_id != user_id:
            raise Forbidden("Only the tournament creator can do that")

    def _creator_status(self, creator_id: str) -> str | None:
        creator = self._storage.get_user(creator_id)
        return creator.compliance_status if creator is not None else None

    def _save(self, tournament: Tournament) -> None:
        if not self._storage.save_tournament(tournament):
            raise Conflict(
                f"Tournament {tournament.tournament_id} was changed by someone else; try again"
            )

    def create_tournament(
        self, creator_id: str, payload: Mapping[str, object]
    ) -> TournamentOutcome:
        creator = self._require_creator(creator_id)
        terms = parse_tournament_terms(payload)
        result = self._rules.validate_tournament(terms, creator.compliance_status)

        now = self._now()
        tournament = Tournament.from_terms(uuid.uuid4().hex, creator_id, terms, now)
        self._audit_log.record_safely(tournament.tournament_id, "creation", result)
        if not result.is_compliant:
            log.warning(
                "Rejected tournament %r from %s: %s",
                terms.name,
                creator_id,
                ", ".join(result.violation_types),
            )
            return TournamentOutcome(tournament=None, compliance=result)

        tournament.compliance_checked = True
        if not self._storage.create_tournament(tournament):
            raise ValidationError(f"Tournament {tournament.tournament_id} already exists")
        log.info("Created tournament %s (%s)", tournament.tournament_id, tournament.name)
        return TournamentOutcome(tournament=tournament, compliance=result)

    def update_tournament(
        self, tournament_id: str, user_id: str, changes: Mapping[str, object]
    ) -> TournamentOutcome:
        tournament = self.get_tournament(tournament_id)
        self._require_owner(tournament, user_id)
        if tournament.status not in EDITABLE_STATUSES:
            raise InvalidTransition(
                f"Tournament {tournament_id} cannot be edited while {tournament.status}"
            )
        terms = merge_tournament_terms(tournament.terms(), changes)
        if terms.max_participants < tournament.current_participants:
            raise ValidationError("Max participants cannot drop below current registrations")

        result = self._rules.validate_tournament(terms, self._creator_status(user_id))
        self._audit_log.record_safely(tournament_id, "modification", result)
        if not result.is_compliant:
            log.warning(
                "Rejected changes to tournament %s: %s",
                tournament_id,
                ", ".join(result.violation_types),
            )
            return TournamentOutcome(tournament=None, compliance=result)

        tournament.apply_terms(terms)
        tournament.updated_at = self._now()
        self._save(tournament)
        return TournamentOutcome(tournament=tournament, compliance=result)

    def open_registration(self, tournament_id: str, user_id: str) -> Tournament:
        tournament = self.get_tournament(tournament_id)
        self._require_owner(tournament, user_id)
        if not tournament.riot_api_compliant:
            raise InvalidTransition("Non-compliant tournaments cannot open registration")
        _transition(tournament, "registration")
        tournament.updated_at = self._now()
        self._save(tournament)
        return tournament

    def entry_fee_coins(self, tournament: Tournament) -> int:
        return self._ledger.usd_to_coins(tournament.entry_fee)

    def join_tournament(
        self, tournament_id: str, user_id: str, *, team_id: str | None = None
    ) -> JoinOutcome:
        tournament = self.get_tournament(tournament_id)
        if tournament.status != "registration":
            raise InvalidTransition("Tournament registration is closed")
        if tournament.team_size > 1 and not team_id:
            raise ValidationError("Team ID is required for team tournaments")
        participant_id = team_id if tournament.team_size > 1 else user_id
        if tournament.find_participant(participant_id) is not None or any(
            entry.registered_by == user_id for entry in tournament.participants
        ):
            raise ValidationError("Already registered for this tournament")
        if tournament.spots_remaining <= 0:
            raise ValidationError("Tournament is full")

        fee = self.entry_fee_coins(tournament)
        payment = None
        if fee > 0:
            payment = self._ledger.spend(
                user_id, fee, ENTRY_FEE_USAGE, f"Entry fee for {tournament.name}"
            )
            if not payment.success:
                return JoinOutcome(tournament=tournament, payment=payment)

        tournament.participants.append(
            Participant(
                participant_id=participant_id,
                kind="team" if tournament.team_size > 1 else "user",
                registered_at=self._now(),
                registered_by=user_id if tournament.team_size > 1 else None,
            )
        )
        tournament.updated_at = self._now()
        try:
            self._save(tournament)
        except Exception:
            if fee > 0:
                self._ledger.refund(user_id, fee, f"Refund for {tournament.name}")
            raise
        log.info("User %s joined tournament %s", user_id, tournament_id)
        return JoinOutcome(tournament=tournament, payment=payment)

    async def start_tournament(self, tournament_id: str, user_id: str) -> Tournament:
        tournament = self.get_tournament(tournament_id)
        self._require_owner(tournament, user_id)
        if tournament.status != "registration":
            raise InvalidTransition("Tournament cannot be started in current status")
        if tournament.current_participants < 2:
            raise InvalidTransition("Tournament needs at least 2 participants to start")

        tournament.bracket = generate_bracket(
            [entry.participant_id for entry in tournament.participants],
            tournament.format,
            rng=self._rng,
            created_at=self._now(),
        )
        _transition(tournament, "ongoing")
        tournament.updated_at = self._now()
        self._save(tournament)
        log.info(
            "Started tournament %s with %s participants",
            tournament_id,
            tournament.current_participants,
        )
        if self._announcer is not None:
            await self._announcer.announce_bracket(tournament)
        return tournament

    def record_match_result(
        self, tournament_id: str, user_id: str, match_id: str, winner_id: str
    ) -> Tournament:
        tournament = self.get_tournament(tournament_id)
        self._require_owner(tournament, user_id)
        if tournament.status != "ongoing" or tournament.bracket is None:
            raise InvalidTransition("Results can only be recorded for ongoing tournaments")
        try:
            match = apply_match_result(tournament.bracket, match_id, winner_id)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        if tournament.format == "single-elimination":
            loser_id = match.loser_id()
            entry = tournament.find_participant(loser_id) if loser_id else None
            if entry is not None:
                entry.status = "eliminated"
        elif tournament.format == "swiss" and not is_complete(tournament.bracket):
            bracket = tournament.bracket
            round_done = all(
                pairing.status == "completed" for pairing in bracket.rounds[-1].matches
            )
            if round_done and len(bracket.rounds) < (bracket.planned_rounds or 0):
                pair_swiss_round(bracket)

        tournament.updated_at = self._now()
        self._save(tournament)
        return tournament

    def complete_tournament(self, tournament_id: str, user_id: str) -> Tournament:
        tournament = self.get_tournament(tournament_id)
        self._require_owner(tournament, user_id)
        if tournament.bracket is None:
            raise InvalidTransition("Tournament has no bracket")
        winner = champion(tournament.bracket)
        if winner is None:
            raise InvalidTransition("Tournament bracket is not finished")
        _transition(tournament, "completed")

        entry = tournament.find_participant(winner)
        if entry is not None:
            entry.status = "winner"
        if tournament.format in ELIMINATION_FORMATS:
            for other in tournament.participants:
                if other.participant_id != winner:
                    other.status = "eliminated"

        result = self._rules.validate_tournament(
            tournament, self._creator_status(tournament.creator_id)
        )
        self._audit_log.record_safely(tournament_id, "completion", result)
        tournament.updated_at = self._now()
        self._save(tournament)
        log.info("Tournament %s completed; winner %s", tournament_id, winner)
        return tournament

    def cancel_tournament(self, tournament_id: str, user_id: str) -> Tournament:
        """Cancel a tournament and pay back its entry fees.

        The cancelled status is stored before any coins move, and every entry is
        marked refunded as soon as its fee is returned. Calling this again on a
        cancelled tournament only pays the entries that were not refunded yet.
        """
        tournament = self.get_tournament(tournament_id)
        self._require_owner(tournament, user_id)
        fee = self.entry_fee_coins(tournament)
        pending = [
            entry for entry in tournament.participants if fee > 0 and entry.status != REFUNDED
        ]
        if tournament.status == "cancelled":
            if not pending:
                raise InvalidTransition(f"Tournament {tournament_id} is already cancelled")
            log.info(
                "Resuming %s refunds for cancelled tournament %s", len(pending), tournament_id
            )
        else:
            _transition(tournament, "cancelled")
            tournament.updated_at = self._now()
            self._save(tournament)
            log.info("Tournament %s cancelled", tournament_id)

        for entry in pending:
            payer = entry.registered_by or entry.participant_id
            result = self._ledger.refund(payer, fee, f"Refund for cancelled {tournament.name}")
            if not result.success:
                log.warning(
                    "Could not refund %s for tournament %s: %s",
                    payer,
                    tournament_id,
                    result.message,
                )
                continue
            entry.status = REFUNDED
            tournament.updated_at = self._now()
            self._save(tournament)
        return tournament


__all__ = [
    "ALLOWED_TRANSITIONS",
    "JoinOutcome",
    "TournamentOutcome",
    "TournamentService",
]
