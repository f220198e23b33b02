"""Tournament platform core helpers."""

from .bracket import (
    champion,
    generate_bracket,
    pair_swiss_round,
    record_match_result,
    render_bracket,
    standings,
)
from .models import (
    BracketMatch,
    BracketRound,
    BracketState,
    Participant,
    PrizePool,
    Tournament,
    TournamentTerms,
    UserAccount,
    Violation,
    utc_now_iso,
)
from .storage import PlatformStorage
from .validation import (
    Conflict,
    Forbidden,
    InfrastructureError,
    InvalidTransition,
    NotFound,
    PlatformError,
    ValidationError,
    parse_tournament_terms,
)

__all__ = [
    "champion",
    "generate_bracket",
    "pair_swiss_round",
    "record_match_result",
    "render_bracket",
    "standings",
    "BracketMatch",
    "BracketRound",
    "BracketState",
    "Participant",
    "PrizePool",
    "Tournament",
    "TournamentTerms",
    "UserAccount",
    "Violation",
    "utc_now_iso",
    "PlatformStorage",
    "Conflict",
    "Forbidden",
    "InfrastructureError",
    "InvalidTransition",
    "NotFound",
    "PlatformError",
    "ValidationError",
    "parse_tournament_terms",
]
