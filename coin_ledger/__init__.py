"""Bracket Coins ledger."""

from .ledger import COIN_PACKAGES, MINIMUM_PAYOUT_USD, CoinLedger, CoinPackage, LedgerResult

__all__ = [
    "COIN_PACKAGES",
    "MINIMUM_PAYOUT_USD",
    "CoinLedger",
    "CoinPackage",
    "LedgerResult",
]
