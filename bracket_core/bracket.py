from __future__ import annotations

import random
from collections import Counter, defaultdict
from collections.abc import Iterable, Sequence
from math import ceil, log2

from .models import (
    TOURNAMENT_FORMATS,
    BracketMatch,
    BracketRound,
    BracketSlot,
    BracketState,
    utc_now_iso,
)

ELIMINATION_FORMATS: tuple[str, ...] = ("single-elimination", "double-elimination")


def _round_name(round_index: int, total_rounds: int) -> str:
    remaining = total_rounds - round_index
    if remaining == 1:
        return "Final"
    if remaining == 2:
        return "Semifinals"
    if remaining == 3:
        return "Quarterfinals"
    return f"Round of {2**remaining}"


def _shuffled(participant_ids: Sequence[str], rng: random.Random | None) -> list[str]:
    entrants = list(participant_ids)
    if len(set(entrants)) != len(entrants):
        raise ValueError("Participant ids must be unique")
    (rng or random.Random()).shuffle(entrants)
    return entrants


def _pair_pool(
    pool: Sequence[BracketSlot], round_number: int, prefix: str
) -> list[BracketMatch]:
    matches: list[BracketMatch] = []
    for index in range(0, len(pool), 2):
        match_id = f"{prefix}{round_number}M{index // 2 + 1}"
        if index + 1 < len(pool):
            matches.append(
                BracketMatch(
                    match_id=match_id,
                    round_number=round_number,
                    slot_one=pool[index],
                    slot_two=pool[index + 1],
                )
            )
            continue
        bye = BracketMatch(match_id=match_id, round_number=round_number, slot_one=pool[index])
        if bye.slot_one.resolved:
            bye.winner_id = bye.slot_one.participant_id
            bye.status = "completed"
        matches.append(bye)
    return matches


def _next_pool(matches: Iterable[BracketMatch]) -> list[BracketSlot]:
    # Bye winners are carried forward first, then the pending match outcomes.
    byes: list[BracketSlot] = []
    contested: list[BracketSlot] = []
    for match in matches:
        if match.is_bye:
            if match.winner_id is not None:
                byes.append(BracketSlot(participant_id=match.winner_id))
            else:
                byes.append(BracketSlot(source_match_id=match.match_id))
        else:
            contested.append(BracketSlot(source_match_id=match.match_id))
    return byes + contested


def _elimination_rounds(
    pool: list[BracketSlot], prefix: str, side: str, first_round: int = 1
) -> tuple[list[BracketRound], list[BracketSlot]]:
    rounds: list[BracketRound] = []
    round_number = first_round
    while len(pool) > 1:
        matches = _pair_pool(pool, round_number, prefix)
        rounds.append(
            BracketRound(round_number=round_number, name="", matches=matches, side=side)  # type: ignore[arg-type]
        )
        pool = _next_pool(matches)
        round_number += 1
    return rounds, pool


def _interleave(first: list[BracketSlot], second: list[BracketSlot]) -> list[BracketSlot]:
    merged: list[BracketSlot] = []
    for index in range(max(len(first), len(second))):
        if index < len(first):
            merged.append(first[index])
        if index < len(second):
            merged.append(second[index])
    return merged


def _single_elimination(entrants: list[str]) -> list[BracketRound]:
    pool = [BracketSlot(participant_id=entrant) for entrant in entrants]
    rounds, _ = _elimination_rounds(pool, "R", "winners")
    for index, round_ in enumerate(rounds):
        round_.name = _round_name(index, len(rounds))
    return rounds


def _double_elimination(entrants: list[str]) -> list[BracketRound]:
    pool = [BracketSlot(participant_id=entrant) for entrant in entrants]
    winners_rounds, champion_pool = _elimination_rounds(pool, "R", "winners")
    for index, round_ in enumerate(winners_rounds):
        round_.name = f"Winners {_round_name(index, len(winners_rounds))}"

    losers_rounds: list[BracketRound] = []
    survivors: list[BracketSlot] = []
    losers_round = 1
    for winners_round in winners_rounds:
        dropped = [
            BracketSlot(source_match_id=match.match_id, source_outcome="loser")
            for match in winners_round.matches
            if not match.is_bye
        ]
        pool = _interleave(survivors, dropped)
        if len(pool) < 2:
            survivors = pool
            continue
        matches = _pair_pool(pool, losers_round, "L")
        losers_rounds.append(
            BracketRound(
                round_number=losers_round,
                name=f"Losers Round {losers_round}",
                matches=matches,
                side="losers",
            )
        )
        survivors = _next_pool(matches)
        losers_round += 1

    tail_rounds, survivors = _elimination_rounds(survivors, "L", "losers", losers_round)
    for round_ in tail_rounds:
        round_.name = f"Losers Round {round_.round_number}"
    losers_rounds.extend(tail_rounds)

    rounds = winners_rounds + losers_rounds
    if champion_pool and survivors:
        grand_final = BracketMatch(
            match_id="GF1",
            round_number=1,
            slot_one=champion_pool[0],
            slot_two=survivors[0],
        )
        rounds.append(
            BracketRound(round_number=1, name="Grand Final", matches=[grand_final], side="final")
        )
    return rounds


def _round_robin(entrants: list[str]) -> list[BracketRound]:
    # Circle method: the first entrant stays fixed while the rest rotate.
    seats: list[str | None] = list(entrants)
    if len(seats) % 2:
        seats.append(None)
    size = len(seats)
    rounds: list[BracketRound] = []
    for round_number in range(1, size):
        matches: list[BracketMatch] = []
        for index in range(size // 2):
            home, away = seats[index], seats[size - 1 - index]
            if home is None or away is None:
                continue
            matches.append(
                BracketMatch(
                    match_id=f"R{round_number}M{len(matches) + 1}",
                    round_number=round_number,
                    slot_one=BracketSlot(participant_id=home),
                    slot_two=BracketSlot(participant_id=away),
                )
            )
        rounds.append(
            BracketRound(round_number=round_number, name=f"Round {round_number}", matches=matches)
        )
        seats = [seats[0], seats[-1], *seats[1:-1]]
    return rounds


def generate_bracket(
    participant_ids: Sequence[str],
    tournament_format: str = "single-elimination",
    *,
    rng: random.Random | None = None,
    created_at: str | None = None,
) -> BracketState:
    """Build the bracket for a tournament that is about to start.

    Entrants are shuffled with fresh randomness on every call unless ``rng`` is
    supplied. Fewer than two participants produce an empty bracket.
    """
    if tournament_format not in TOURNAMENT_FORMATS:
        raise ValueError(f"Unsupported tournament format: {tournament_format}")
    state = BracketState(format=tournament_format, created_at=created_at or utc_now_iso())
    entrants = _shuffled(participant_ids, rng)
    if len(entrants) < 2:
        return state

    if tournament_format == "single-elimination":
        state.rounds = _single_elimination(entrants)
    elif tournament_format == "double-elimination":
        state.rounds = _double_elimination(entrants)
    elif tournament_format == "round-robin":
        state.rounds = _round_robin(entrants)
    else:
        state.planned_rounds = max(1, ceil(log2(len(entrants))))
        pool = [BracketSlot(participant_id=entrant) for entrant in entrants]
        state.rounds = [
            BracketRound(round_number=1, name="Round 1", matches=_pair_pool(pool, 1, "R"))
        ]
    state.planned_rounds = state.planned_rounds or len(state.rounds)
    return state


def _auto_resolve(state: BracketState) -> None:
    index = {match.match_id: match for match in state.all_matches()}
    while True:
        updated = False
        for match in index.values():
            for slot in match.slots():
                if slot.resolved or slot.source_match_id is None:
                    continue
                source = index.get(slot.source_match_id)
                if source is None or source.status != "completed":
                    continue
                if slot.source_outcome == "loser":
                    participant = source.loser_id()
                else:
                    participant = source.winner_id
                if participant is None:
                    continue
                slot.participant_id = participant
                updated = True
            if match.is_bye and match.status != "completed" and match.slot_one.resolved:
                match.winner_id = match.slot_one.participant_id
                match.status = "completed"
                updated = True
        if not updated:
            break


def start_match(state: BracketState, match_id: str) -> BracketMatch:
    match = state.find_match(match_id)
    if match is None:
        raise ValueError(f"Match {match_id} not found")
    if match.is_bye or match.status != "pending":
        raise ValueError(f"Match {match_id} cannot be started")
    if not all(slot.resolved for slot in match.slots()):
        raise ValueError("Match participants are not decided yet")
    match.status = "ongoing"
    return match


def record_match_result(state: BracketState, match_id: str, winner_id: str) -> BracketMatch:
    match = state.find_match(match_id)
    if match is None:
        raise ValueError(f"Match {match_id} not found")
    if match.is_bye:
        raise ValueError("Bye matches are resolved automatically")
    if not all(slot.resolved for slot in match.slots()):
        raise ValueError("Match participants are not decided yet")
    if winner_id not in (match.participant_one, match.participant_two):
        raise ValueError(f"{winner_id} is not playing in match {match_id}")
    if match.winner_id is not None and match.winner_id != winner_id:
        raise ValueError("Match already has a different winner recorded")
    match.winner_id = winner_id
    match.status = "completed"
    _auto_resolve(state)
    return match


def _entrant_order(state: BracketState) -> list[str]:
    order: list[str] = []
    seen: set[str] = set()
    for match in state.all_matches():
        for slot in match.slots():
            participant = slot.participant_id
            if participant is not None and participant not in seen:
                seen.add(participant)
                order.append(participant)
    return order


def standings(state: BracketState) -> list[tuple[str, int]]:
    """Return (participant, wins) pairs, best first, ties in entrant order."""
    wins: Counter[str] = Counter()
    for match in state.all_matches():
        if match.status == "completed" and match.winner_id is not None:
            wins[match.winner_id] += 1
    order = _entrant_order(state)
    position = {participant: index for index, participant in enumerate(order)}
    ranked = sorted(order, key=lambda participant: (-wins[participant], position[participant]))
    return [(participant, wins[participant]) for participant in ranked]


def is_complete(state: BracketState) -> bool:
    if state.is_empty:
        return False
    if any(match.status != "completed" for match in state.all_matches()):
        return False
    return state.planned_rounds is None or len(state.rounds) >= state.planned_rounds


def champion(state: BracketState) -> str | None:
    if state.is_empty:
        return None
    if state.format in ELIMINATION_FORMATS:
        final_match = state.rounds[-1].matches[-1]
        return final_match.winner_id if final_match.status == "completed" else None
    if not is_complete(state):
        return None
    return standings(state)[0][0]


def pair_swiss_round(state: BracketState) -> BracketRound:
    """Append the next swiss round, pairing entrants with equal records."""
    if state.format != "swiss":
        raise ValueError("Only swiss brackets are paired round by round")
    if state.is_empty:
        raise ValueError("Bracket has no entrants")
    if any(match.status != "completed" for match in state.all_matches()):
        raise ValueError("Current round is not finished")
    if state.planned_rounds is not None and len(state.rounds) >= state.planned_rounds:
        raise ValueError("All swiss rounds have been played")

    opponents: defaultdict[str, set[str]] = defaultdict(set)
    had_bye: set[str] = set()
    for match in state.all_matches():
        if match.is_bye:
            had_bye.add(match.slot_one.participant_id or "")
            continue
        one, two = match.participant_one, match.participant_two
        if one is not None and two is not None:
            opponents[one].add(two)
            opponents[two].add(one)

    ranked = [participant for participant, _ in standings(state)]
    bye_player: str | None = None
    if len(ranked) % 2:
        candidates = [participant for participant in reversed(ranked) if participant not in had_bye]
        bye_player = candidates[0] if candidates else ranked[-1]
        ranked.remove(bye_player)

    pool: list[BracketSlot] = []
    remaining = list(ranked)
    while remaining:
        current = remaining.pop(0)
        partner = next(
            (candidate for candidate in remaining if candidate not in opponents[current]),
            remaining[0],
        )
        remaining.remove(partner)
        pool.append(BracketSlot(participant_id=current))
        pool.append(BracketSlot(participant_id=partner))
    if bye_player is not None:
        pool.append(BracketSlot(participant_id=bye_player))

    round_number = len(state.rounds) + 1
    next_round = BracketRound(
        round_number=round_number,
        name=f"Round {round_number}",
        matches=_pair_pool(pool, round_number, "R"),
    )
    state.rounds.append(next_round)
    return next_round


def render_bracket(state: BracketState) -> str:
    lines: list[str] = []
    for round_ in state.rounds:
        lines.append(round_.name)
        for match in round_.matches:
            if match.is_bye:
                lines.append(f"  [{match.match_id}] {match.slot_one.display()} (bye)")
                continue
            competitor_one = match.slot_one.display()
            competitor_two = match.slot_two.display() if match.slot_two else "BYE"
            lines.append(f"  [{match.match_id}] {competitor_one} vs {competitor_two}")
            if match.winner_id is not None:
                lines.append(f"    -> Winner: {match.winner_id}")
            else:
                lines.append("    -> Winner: TBD")
        lines.append("")
    if lines and not lines[-1]:
        lines.pop()
    winner = champion(state)
    if winner:
        lines.append(f"Champion: {winner}")
    return "\n".join(line.rstrip() for line in lines)


__all__ = [
    "ELIMINATION_FORMATS",
    "champion",
    "generate_bracket",
    "is_complete",
    "pair_swiss_round",
    "record_match_result",
    "render_bracket",
    "standings",
    "start_match",
]
